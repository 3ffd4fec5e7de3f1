from __future__ import annotations
from flask import Blueprint, request
from sqlalchemy import or_
from dsr import get_db
from dsr.constants.roles import KIND_GIFT_VOUCHER, VOUCHER_TYPES
from dsr.core import vouchers
from dsr.core.access import assert_record_visible, require
from dsr.decorators.auth import login_required
from dsr.decorators.audit import audit_log
from dsr.models.gift_voucher import GiftVoucher
from dsr.services.policy import current_actor, current_clock, current_scope, filter_query_by_scope, record_store
from dsr.utils.filters import apply_filters
from dsr.utils.listing import paginated_response
from dsr.utils.serialization import row_json
from dsr.utils.sorting import apply_multi_sort

vouchers_bp = Blueprint('vouchers', __name__)


def _voucher_json(v):
    return row_json(v)


@vouchers_bp.get('')
@login_required
def list_vouchers():
    q = get_db().query(GiftVoucher)
    q = filter_query_by_scope(q, GiftVoucher.store_id, current_scope())
    filter_specs = {
        'status': {'op': lambda qu, v: qu.filter(GiftVoucher.status == v), 'validate': lambda v: v in GiftVoucher.ALL_STATUSES},
        'voucher_type': {'op': lambda qu, v: qu.filter(GiftVoucher.voucher_type == v), 'validate': lambda v: v in VOUCHER_TYPES},
        'q': {'op': lambda qu, v: qu.filter(or_(
            GiftVoucher.voucher_number.ilike(f'%{v}%'),
            GiftVoucher.customer_name.ilike(f'%{v}%'),
            GiftVoucher.customer_phone.ilike(f'%{v}%'),
        ))},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {
        'issued_date': GiftVoucher.issued_date,
        'expiry_date': GiftVoucher.expiry_date,
        'original_amount_cents': GiftVoucher.original_amount_cents,
        'status': GiftVoucher.status,
        'id': GiftVoucher.id,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, GiftVoucher.id)
    return paginated_response(q, _voucher_json)


@vouchers_bp.get('/<voucher_number>')
@login_required
def get_voucher(voucher_number: str):
    actor = current_actor()
    require(actor, KIND_GIFT_VOUCHER, 'read')
    row = vouchers.find_voucher(record_store(), voucher_number)
    assert_record_visible(actor, row)
    return _voucher_json(row)


@vouchers_bp.post('')
@login_required
@audit_log('VOUCHER.ISSUE', entity='GiftVoucher', meta_keys=['voucher_number', 'original_amount_cents'])
def issue_voucher():
    data = request.get_json(silent=True) or {}
    row = vouchers.issue_voucher(
        record_store(), current_actor(), data,
        requested_store_id=data.get('store_id'), clock=current_clock(),
    )
    return _voucher_json(row), 201


@vouchers_bp.post('/<voucher_number>/redeem')
@login_required
@audit_log('VOUCHER.REDEEM', entity='GiftVoucher', meta_keys=['voucher_number', 'redeemed_amount_cents'])
def redeem_voucher(voucher_number: str):
    row = vouchers.redeem(record_store(), voucher_number, current_actor(), clock=current_clock())
    return _voucher_json(row)


@vouchers_bp.post('/<voucher_number>/cancel')
@login_required
@audit_log('VOUCHER.CANCEL', entity='GiftVoucher', meta_keys=['voucher_number', 'cancel_reason'])
def cancel_voucher(voucher_number: str):
    data = request.get_json(silent=True) or {}
    row = vouchers.cancel_voucher(record_store(), voucher_number, current_actor(), reason=data.get('reason'))
    return _voucher_json(row)


@vouchers_bp.post('/expire')
@login_required
@audit_log('VOUCHER.EXPIRE', entity='GiftVoucher', entity_id_key=None, meta_keys=['count', 'expired'])
def expire_vouchers():
    """Run the expiry sweep on demand (the same job the CLI command runs)."""
    require(current_actor(), KIND_GIFT_VOUCHER, 'expire')
    expired = vouchers.update_expired(record_store(), clock=current_clock())
    return {'expired': expired, 'count': len(expired)}

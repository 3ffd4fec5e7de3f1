from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select
from dsr import get_db
from dsr.constants.roles import KIND_SALE, SURFACE_INLINE, TENDER_TYPES
from dsr.core import approval
from dsr.core.access import assert_record_visible, can_approve
from dsr.core.batch import SALE_TENDER_SLOTS, parse_slots
from dsr.core.clock import parse_day
from dsr.core.reports import tender_summary
from dsr.decorators.auth import login_required
from dsr.decorators.audit import audit_log
from dsr.models.sale import Sale
from dsr.services.policy import current_actor, current_clock, current_scope, filter_query_by_scope, record_store
from dsr.utils.filters import apply_filters, date_range_specs
from dsr.utils.listing import paginated_response
from dsr.utils.serialization import row_json
from dsr.utils.sorting import apply_multi_sort

sales_bp = Blueprint('sales', __name__)

SALE_FIELDS = [
    'id', 'store_id', 'sale_date', 'tender_type', 'amount_cents', 'transaction_reference',
    'customer_reference', 'notes', 'entered_by', 'approval_status', 'approved_by', 'approved_at',
    'approval_notes', 'created_at',
]


def _sale_json(s):
    return row_json(s, SALE_FIELDS)


def _scoped_query():
    q = get_db().query(Sale)
    q = filter_query_by_scope(q, Sale.store_id, current_scope())
    filter_specs = {
        'tender_type': {'op': lambda qu, v: qu.filter(Sale.tender_type == v), 'validate': lambda v: v in TENDER_TYPES},
        'approval_status': {'op': lambda qu, v: qu.filter(Sale.approval_status == v), 'validate': lambda v: v in Sale.ALL_STATUSES},
        'entered_by': {'coerce': int, 'op': lambda qu, v: qu.filter(Sale.entered_by == v)},
    }
    filter_specs.update(date_range_specs(Sale.sale_date))
    return apply_filters(q, filter_specs, request.args)


@sales_bp.get('')
@login_required
def list_sales():
    q = _scoped_query()
    allowed = {
        'sale_date': Sale.sale_date,
        'amount_cents': Sale.amount_cents,
        'tender_type': Sale.tender_type,
        'approval_status': Sale.approval_status,
        'id': Sale.id,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Sale.id, default='-sale_date')
    return paginated_response(q, _sale_json)


@sales_bp.get('/summary')
@login_required
def sales_summary():
    """Totals per tender type for the visible stores and the requested date range."""
    rows = [_sale_json(s) for s in _scoped_query().all()]
    return tender_summary(rows)


def _load(sale_id: int) -> Sale:
    s = get_db().execute(select(Sale).where(Sale.id == sale_id)).scalar_one_or_none()
    if not s:
        abort(404)
    assert_record_visible(current_actor(), {'store_id': s.store_id})
    return s


@sales_bp.get('/<int:sale_id>')
@login_required
def get_sale(sale_id: int):
    return _sale_json(_load(sale_id))


@sales_bp.patch('/<int:sale_id>')
@login_required
@audit_log('SALE.UPDATE', entity='Sale',
           diff_keys=['sale_date', 'tender_type', 'amount_cents', 'transaction_reference', 'customer_reference', 'notes'],
           pre_fetch=lambda a, kw: _sale_json(_load(kw['sale_id'])))
def update_sale(sale_id: int):
    """Correct a sale before anyone has approved or rejected it."""
    row = approval.update_pending(
        record_store(), KIND_SALE, sale_id, current_actor(), request.get_json(silent=True) or {}, clock=current_clock(),
    )
    return _sale_json(row)


@sales_bp.post('')
@login_required
@audit_log('SALE.CREATE', entity='Sale', meta_keys=['tender_type', 'amount_cents', 'sale_date'])
def create_sale():
    data = request.get_json(silent=True) or {}
    row = approval.submit_for_approval(
        record_store(), current_actor(), KIND_SALE, data,
        requested_store_id=data.get('store_id'), clock=current_clock(),
    )
    return _sale_json(row), 201


@sales_bp.post('/batch')
@login_required
@audit_log('SALE.BATCH_CREATE', entity='Sale', entity_id_key=None,
           meta_builder=lambda data, rv, a, kw: {'count': data.get('created'), 'ids': [r['id'] for r in data.get('data', [])]})
def create_sales_batch():
    """Daily tender grid: one sale per tender slot with an amount above zero."""
    data = request.get_json(silent=True) or {}
    clock = current_clock()
    slots = parse_slots(data.get('entries') or [], 'tender_type', SALE_TENDER_SLOTS)
    shared = {'sale_date': parse_day(data.get('sale_date'), 'sale_date', default=clock.today())}
    if data.get('notes'):
        shared['notes'] = data['notes']
    rows = approval.submit_batch(
        record_store(), current_actor(), KIND_SALE, slots, shared,
        requested_store_id=data.get('store_id'), clock=clock,
    )
    body = [_sale_json(r) for r in rows]
    return {'data': body, 'created': len(body), 'store_id': rows[0]['store_id']}, 201


@sales_bp.patch('/<int:sale_id>/approval')
@login_required
@audit_log('SALE.DECIDE', entity='Sale', meta_keys=['approval_status', 'approval_notes'])
def decide_sale(sale_id: int):
    actor = current_actor()
    if not can_approve(actor, KIND_SALE, SURFACE_INLINE):
        abort(403, description='Insufficient permissions')
    data = request.get_json(silent=True) or {}
    row = approval.decide(
        record_store(), KIND_SALE, sale_id, data.get('approval_status'), actor,
        notes=data.get('approval_notes'), clock=current_clock(),
    )
    return _sale_json(row)

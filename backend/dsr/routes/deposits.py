"""Customer deposits, mostly advances taken against sales orders."""
from __future__ import annotations
from flask import Blueprint, request, abort
from dsr import get_db
from dsr.constants.roles import DEPOSIT_PAYMENT_METHODS, DEPOSIT_TYPES
from dsr.core import deposits
from dsr.core.access import assert_record_visible
from dsr.core.reports import deposits_summary
from dsr.decorators.auth import login_required
from dsr.decorators.audit import audit_log
from dsr.models.deposit import Deposit
from dsr.models.sales_order import SalesOrder
from dsr.services.policy import current_actor, current_clock, current_scope, filter_query_by_scope, record_store
from dsr.utils.filters import apply_filters, date_range_specs
from dsr.utils.listing import paginated_response
from dsr.utils.serialization import row_json
from dsr.utils.sorting import apply_multi_sort

deposits_bp = Blueprint('deposits', __name__)

LINKED_ORDER_FIELDS = ['id', 'order_number', 'total_estimated_amount_cents', 'advance_paid_cents', 'items_description', 'status']


def _deposit_json(d):
    return row_json(d)


def _scoped_query():
    q = get_db().query(Deposit)
    q = filter_query_by_scope(q, Deposit.store_id, current_scope())
    filter_specs = {
        'deposit_type': {'op': lambda qu, v: qu.filter(Deposit.deposit_type == v), 'validate': lambda v: v in DEPOSIT_TYPES},
        'payment_method': {'op': lambda qu, v: qu.filter(Deposit.payment_method == v), 'validate': lambda v: v in DEPOSIT_PAYMENT_METHODS},
        'customer_id': {'coerce': int, 'op': lambda qu, v: qu.filter(Deposit.customer_id == v)},
        'sales_order_id': {'coerce': int, 'op': lambda qu, v: qu.filter(Deposit.sales_order_id == v)},
    }
    filter_specs.update(date_range_specs(Deposit.deposit_date))
    return apply_filters(q, filter_specs, request.args)


def _load(deposit_id: int) -> Deposit:
    d = get_db().get(Deposit, deposit_id)
    if not d:
        abort(404)
    assert_record_visible(current_actor(), {'store_id': d.store_id})
    return d


@deposits_bp.get('')
@login_required
def list_deposits():
    allowed = {
        'deposit_date': Deposit.deposit_date,
        'amount_cents': Deposit.amount_cents,
        'deposit_type': Deposit.deposit_type,
        'id': Deposit.id,
    }
    q = apply_multi_sort(_scoped_query(), request.args.get('sort'), allowed, Deposit.id, default='-deposit_date')
    return paginated_response(q, _deposit_json)


@deposits_bp.get('/stats/summary')
@login_required
def deposits_stats():
    return deposits_summary(_deposit_json(d) for d in _scoped_query().all())


@deposits_bp.get('/<int:deposit_id>')
@login_required
def get_deposit(deposit_id: int):
    d = _load(deposit_id)
    body = _deposit_json(d)
    if d.sales_order_id is not None:
        order = get_db().get(SalesOrder, d.sales_order_id)
        body['linked_sales_order'] = row_json(order, LINKED_ORDER_FIELDS) if order else None
    return body


@deposits_bp.post('')
@login_required
@audit_log('DEPOSIT.CREATE', entity='Deposit', meta_keys=['deposit_type', 'amount_cents', 'sales_order_id'])
def create_deposit():
    data = request.get_json(silent=True) or {}
    row = deposits.record_deposit(
        record_store(), current_actor(), data, requested_store_id=data.get('store_id'), clock=current_clock(),
    )
    return _deposit_json(row), 201


@deposits_bp.patch('/<int:deposit_id>')
@login_required
@audit_log('DEPOSIT.UPDATE', entity='Deposit', diff_keys=['amount_cents', 'payment_method', 'notes'],
           pre_fetch=lambda a, kw: _deposit_json(_load(kw['deposit_id'])))
def update_deposit(deposit_id: int):
    row = deposits.update_deposit(record_store(), current_actor(), deposit_id, request.get_json(silent=True) or {})
    return _deposit_json(row)


@deposits_bp.delete('/<int:deposit_id>')
@login_required
@audit_log('DEPOSIT.DELETE', entity='Deposit', entity_id_arg='deposit_id', entity_id_key=None,
           meta_keys=['amount_cents', 'sales_order_id'])
def delete_deposit(deposit_id: int):
    removed = deposits.delete_deposit(record_store(), current_actor(), deposit_id)
    return {'deleted': deposit_id, 'store_id': removed['store_id'], 'amount_cents': removed['amount_cents'],
            'sales_order_id': removed['sales_order_id']}

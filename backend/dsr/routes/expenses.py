from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select
from dsr import get_db
from dsr.constants.roles import EXPENSE_CATEGORIES, EXPENSE_PAYMENT_METHODS, KIND_EXPENSE, SURFACE_INLINE
from dsr.core import approval
from dsr.core.access import assert_record_visible, can_approve
from dsr.core.batch import EXPENSE_CATEGORY_SLOTS, parse_slots
from dsr.core.clock import parse_day
from dsr.core.reports import summarize_by_key
from dsr.decorators.auth import login_required
from dsr.decorators.audit import audit_log
from dsr.models.expense import Expense
from dsr.services.policy import current_actor, current_clock, current_scope, filter_query_by_scope, record_store
from dsr.utils.filters import apply_filters, date_range_specs
from dsr.utils.listing import paginated_response
from dsr.utils.serialization import row_json
from dsr.utils.sorting import apply_multi_sort

expenses_bp = Blueprint('expenses', __name__)

EXPENSE_FIELDS = [
    'id', 'store_id', 'expense_date', 'category', 'amount_cents', 'description', 'payment_method',
    'voucher_number', 'receipt_number', 'expense_owner', 'notes', 'requested_by', 'approval_status',
    'approved_by', 'approved_at', 'approval_notes', 'created_at',
]
# shared across every row of a batch submission
BATCH_SHARED_FIELDS = ('payment_method', 'expense_owner', 'notes')


def _expense_json(e):
    return row_json(e, EXPENSE_FIELDS)


def _scoped_query():
    q = get_db().query(Expense)
    q = filter_query_by_scope(q, Expense.store_id, current_scope())
    filter_specs = {
        'category': {'op': lambda qu, v: qu.filter(Expense.category == v), 'validate': lambda v: v in EXPENSE_CATEGORIES},
        'payment_method': {'op': lambda qu, v: qu.filter(Expense.payment_method == v), 'validate': lambda v: v in EXPENSE_PAYMENT_METHODS},
        'approval_status': {'op': lambda qu, v: qu.filter(Expense.approval_status == v), 'validate': lambda v: v in Expense.ALL_STATUSES},
        'requested_by': {'coerce': int, 'op': lambda qu, v: qu.filter(Expense.requested_by == v)},
    }
    filter_specs.update(date_range_specs(Expense.expense_date))
    return apply_filters(q, filter_specs, request.args)


@expenses_bp.get('')
@login_required
def list_expenses():
    q = _scoped_query()
    allowed = {
        'expense_date': Expense.expense_date,
        'amount_cents': Expense.amount_cents,
        'category': Expense.category,
        'approval_status': Expense.approval_status,
        'id': Expense.id,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Expense.id, default='-expense_date')
    return paginated_response(q, _expense_json)


@expenses_bp.get('/summary')
@login_required
def expenses_summary():
    rows = [r for r in (_expense_json(e) for e in _scoped_query().all()) if r['approval_status'] != 'rejected']
    by_category = summarize_by_key(rows, 'category', order=EXPENSE_CATEGORIES)
    return {
        'by_category': by_category,
        'total_cents': sum(b['amount_cents'] for b in by_category.values()),
        'count': len(rows),
    }


def _load(expense_id: int) -> Expense:
    e = get_db().execute(select(Expense).where(Expense.id == expense_id)).scalar_one_or_none()
    if not e:
        abort(404)
    assert_record_visible(current_actor(), {'store_id': e.store_id})
    return e


@expenses_bp.get('/<int:expense_id>')
@login_required
def get_expense(expense_id: int):
    return _expense_json(_load(expense_id))


@expenses_bp.patch('/<int:expense_id>')
@login_required
@audit_log('EXPENSE.UPDATE', entity='Expense',
           diff_keys=['expense_date', 'category', 'amount_cents', 'description', 'payment_method', 'notes'],
           pre_fetch=lambda a, kw: _expense_json(_load(kw['expense_id'])))
def update_expense(expense_id: int):
    row = approval.update_pending(
        record_store(), KIND_EXPENSE, expense_id, current_actor(), request.get_json(silent=True) or {}, clock=current_clock(),
    )
    return _expense_json(row)


@expenses_bp.post('')
@login_required
@audit_log('EXPENSE.CREATE', entity='Expense', meta_keys=['category', 'amount_cents', 'expense_date'])
def create_expense():
    data = request.get_json(silent=True) or {}
    row = approval.submit_for_approval(
        record_store(), current_actor(), KIND_EXPENSE, data,
        requested_store_id=data.get('store_id'), clock=current_clock(),
    )
    return _expense_json(row), 201


@expenses_bp.post('/batch')
@login_required
@audit_log('EXPENSE.BATCH_CREATE', entity='Expense', entity_id_key=None,
           meta_builder=lambda data, rv, a, kw: {'count': data.get('created'), 'ids': [r['id'] for r in data.get('data', [])]})
def create_expenses_batch():
    """Daily category grid: rows without an amount or a description are dropped."""
    data = request.get_json(silent=True) or {}
    clock = current_clock()
    slots = parse_slots(data.get('entries') or [], 'category', EXPENSE_CATEGORY_SLOTS)
    shared = {'expense_date': parse_day(data.get('expense_date'), 'expense_date', default=clock.today())}
    shared.update({k: data[k] for k in BATCH_SHARED_FIELDS if data.get(k)})
    rows = approval.submit_batch(
        record_store(), current_actor(), KIND_EXPENSE, slots, shared,
        requested_store_id=data.get('store_id'), clock=clock,
    )
    body = [_expense_json(r) for r in rows]
    return {'data': body, 'created': len(body), 'store_id': rows[0]['store_id']}, 201


@expenses_bp.patch('/<int:expense_id>/approval')
@login_required
@audit_log('EXPENSE.DECIDE', entity='Expense', meta_keys=['approval_status', 'approval_notes'])
def decide_expense(expense_id: int):
    actor = current_actor()
    if not can_approve(actor, KIND_EXPENSE, SURFACE_INLINE):
        abort(403, description='Insufficient permissions')
    data = request.get_json(silent=True) or {}
    row = approval.decide(
        record_store(), KIND_EXPENSE, expense_id, data.get('approval_status'), actor,
        notes=data.get('approval_notes'), clock=current_clock(),
    )
    return _expense_json(row)

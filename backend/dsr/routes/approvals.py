"""Cross-store approval queue.

The queue is a separate surface from the inline approve buttons on the sales
and expenses pages, but every decision still goes through ``approval.decide``.
"""
from __future__ import annotations
from flask import Blueprint, request, abort
from dsr import get_db
from dsr.config.pagination import normalize_pagination
from dsr.constants.roles import KIND_EXPENSE, KIND_SALE, SURFACE_QUEUE
from dsr.core import approval
from dsr.core.access import can_approve
from dsr.decorators.auth import login_required
from dsr.decorators.audit import audit_log
from dsr.models.expense import Expense
from dsr.models.sale import Sale
from dsr.routes.expenses import _expense_json
from dsr.routes.sales import _sale_json
from dsr.services.policy import current_actor, current_clock, current_scope, filter_query_by_scope, record_store

approvals_bp = Blueprint('approvals', __name__)

QUEUE_KINDS = {
    'sales': (KIND_SALE, Sale, Sale.sale_date, _sale_json),
    'expenses': (KIND_EXPENSE, Expense, Expense.expense_date, _expense_json),
}


def _queue_kind(kind_path: str):
    entry = QUEUE_KINDS.get(kind_path)
    if entry is None:
        abort(404, description=f'Unknown approval queue {kind_path}')
    actor = current_actor()
    if not can_approve(actor, entry[0], SURFACE_QUEUE):
        abort(403, description='Insufficient permissions')
    return entry, actor


@approvals_bp.get('/pending')
@login_required
def pending_queue():
    """Pending sales and expenses across the visible stores, oldest first."""
    actor = current_actor()
    if not any(can_approve(actor, kind, SURFACE_QUEUE) for kind, *_ in QUEUE_KINDS.values()):
        abort(403, description='Insufficient permissions')
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))
    scope = current_scope(actor)
    session = get_db()
    out = {'counts': {}}
    for name, (kind, model, date_column, serializer) in QUEUE_KINDS.items():
        q = session.query(model).filter(model.approval_status == approval.STATUS_PENDING)
        q = filter_query_by_scope(q, model.store_id, scope)
        out['counts'][name] = q.count()
        rows = q.order_by(date_column.asc(), model.id.asc()).offset(offset).limit(limit).all()
        out[name] = [serializer(r) for r in rows]
    out['counts']['total'] = sum(out['counts'].values())
    return out


@approvals_bp.patch('/<kind_path>/<int:record_id>')
@login_required
@audit_log('APPROVAL.DECIDE', entity='Approval', meta_keys=['approval_status', 'store_id'])
def decide_one(kind_path: str, record_id: int):
    (kind, _model, _date, serializer), actor = _queue_kind(kind_path)
    data = request.get_json(silent=True) or {}
    row = approval.decide(
        record_store(), kind, record_id, data.get('approval_status'), actor,
        notes=data.get('approval_notes'), clock=current_clock(),
    )
    return serializer(row)


@approvals_bp.post('/<kind_path>/bulk')
@login_required
@audit_log('APPROVAL.BULK_DECIDE', entity='Approval', entity_id_key=None,
           meta_builder=lambda data, rv, a, kw: {
               'kind': kw.get('kind_path'),
               'succeeded': [r['id'] for r in data.get('results', []) if r['ok']],
               'failed': [r['id'] for r in data.get('results', []) if not r['ok']],
           })
def decide_bulk(kind_path: str):
    """Each id is decided on its own; the response lists an outcome per id."""
    (kind, _model, _date, _serializer), actor = _queue_kind(kind_path)
    data = request.get_json(silent=True) or {}
    ids = data.get('ids')
    if not isinstance(ids, list) or not ids:
        abort(400, description='ids must be a non-empty list')
    outcomes = approval.bulk_decide(
        record_store(), kind, ids, data.get('approval_status'), actor,
        notes=data.get('approval_notes'), clock=current_clock(),
    )
    results = [o.to_dict() for o in outcomes]
    succeeded = sum(1 for o in outcomes if o.ok)
    return {'results': results, 'succeeded': succeeded, 'failed': len(outcomes) - succeeded}

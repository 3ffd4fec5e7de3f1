from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select
from dsr import get_db
from dsr.constants.roles import KIND_RETURN, RETURN_PAYMENT_METHODS
from dsr.core.access import assert_record_visible, require
from dsr.core.returns import normalize_return_fields, record_return
from dsr.core.reports import returns_summary
from dsr.decorators.auth import login_required
from dsr.decorators.audit import audit_log
from dsr.models.returns import Return
from dsr.services.policy import current_actor, current_clock, current_scope, filter_query_by_scope, record_store
from dsr.utils.filters import apply_filters, date_range_specs
from dsr.utils.listing import paginated_response
from dsr.utils.serialization import row_json
from dsr.utils.sorting import apply_multi_sort

returns_bp = Blueprint('returns', __name__)


def _return_json(r):
    return row_json(r)


def _scoped_query():
    q = get_db().query(Return)
    q = filter_query_by_scope(q, Return.store_id, current_scope())
    filter_specs = {
        'payment_method': {'op': lambda qu, v: qu.filter(Return.payment_method == v), 'validate': lambda v: v in RETURN_PAYMENT_METHODS},
        'customer_id': {'coerce': int, 'op': lambda qu, v: qu.filter(Return.customer_id == v)},
    }
    filter_specs.update(date_range_specs(Return.return_date))
    return apply_filters(q, filter_specs, request.args)


def _load(return_id: int) -> Return:
    r = get_db().execute(select(Return).where(Return.id == return_id)).scalar_one_or_none()
    if not r:
        abort(404)
    assert_record_visible(current_actor(), {'store_id': r.store_id})
    return r


@returns_bp.get('')
@login_required
def list_returns():
    allowed = {
        'return_date': Return.return_date,
        'return_amount_cents': Return.return_amount_cents,
        'id': Return.id,
    }
    q = apply_multi_sort(_scoped_query(), request.args.get('sort'), allowed, Return.id, default='-return_date')
    return paginated_response(q, _return_json)


@returns_bp.get('/search')
@login_required
def search_returns():
    reference = (request.args.get('bill_reference') or '').strip()
    if not reference:
        abort(400, description='bill_reference is required')
    q = _scoped_query().filter(Return.original_bill_reference.ilike(f'%{reference}%'))
    return {'data': [_return_json(r) for r in q.order_by(Return.id.desc()).limit(50).all()]}


@returns_bp.get('/stats/summary')
@login_required
def returns_stats():
    return returns_summary(_return_json(r) for r in _scoped_query().all())


@returns_bp.get('/<int:return_id>')
@login_required
def get_return(return_id: int):
    return _return_json(_load(return_id))


@returns_bp.post('')
@login_required
@audit_log('RETURN.CREATE', entity='Return', meta_keys=['return_amount_cents', 'payment_method'])
def create_return():
    data = request.get_json(silent=True) or {}
    row = record_return(record_store(), current_actor(), data, requested_store_id=data.get('store_id'), clock=current_clock())
    return _return_json(row), 201


@returns_bp.patch('/<int:return_id>')
@login_required
@audit_log('RETURN.UPDATE', entity='Return',
           diff_keys=['return_amount_cents', 'return_reason', 'payment_method', 'return_date'],
           pre_fetch=lambda a, kw: _return_json(_load(kw['return_id'])))
def update_return(return_id: int):
    require(current_actor(), KIND_RETURN, 'update')
    r = _load(return_id)
    changes = normalize_return_fields(request.get_json(silent=True) or {}, partial=True)
    changes.pop('customer_id', None)
    for key, value in changes.items():
        setattr(r, key, value)
    get_db().commit()
    return _return_json(r)


@returns_bp.delete('/<int:return_id>')
@login_required
@audit_log('RETURN.DELETE', entity='Return', entity_id_arg='return_id', entity_id_key=None)
def delete_return(return_id: int):
    require(current_actor(), KIND_RETURN, 'delete')
    r = _load(return_id)
    store_id = r.store_id
    session = get_db()
    session.delete(r)
    session.commit()
    return {'deleted': return_id, 'store_id': store_id}

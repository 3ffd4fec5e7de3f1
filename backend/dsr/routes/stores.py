from __future__ import annotations
from flask import Blueprint, current_app, request, abort
from sqlalchemy import or_, select, update
from dsr import get_db
from dsr.core.access import can_manage_store, visible_store_scope
from dsr.core.errors import DuplicateRecordError, ForbiddenError, ValidationError
from dsr.core.stores import normalize_store_fields, validate_manager
from dsr.decorators.auth import login_required
from dsr.decorators.audit import audit_log
from dsr.models.authz import User
from dsr.models.store import Store
from dsr.services.policy import current_actor, record_store
from dsr.utils.filters import apply_filters
from dsr.utils.listing import paginated_response
from dsr.utils.serialization import row_json
from dsr.utils.sorting import apply_multi_sort

stores_bp = Blueprint('stores', __name__)

DROPDOWN_FIELDS = ['id', 'store_code', 'store_name']


def _store_json(s):
    return row_json(s)


def _store_cache():
    return current_app.extensions['dsr.store_cache']


def _load_dropdown():
    rows = get_db().execute(
        select(Store).where(Store.is_active.is_(True)).order_by(Store.store_name.asc(), Store.id.asc())
    ).scalars().all()
    return [row_json(s, DROPDOWN_FIELDS) for s in rows]


def _require_manage():
    if not can_manage_store(current_actor()):
        raise ForbiddenError('Insufficient permissions')


def _load(store_id: int) -> Store:
    s = get_db().get(Store, store_id)
    if not s:
        abort(404)
    return s


def _assert_unique_code(code: str, exclude_id=None):
    q = select(Store.id).where(Store.store_code == code)
    if exclude_id is not None:
        q = q.where(Store.id != exclude_id)
    if get_db().execute(q).first():
        raise DuplicateRecordError(f'Store code {code} already exists')


def _assign_manager(s: Store, manager_id):
    """Point the store at its manager and move the manager's own store assignment along."""
    if manager_id in (None, ''):
        s.manager_id = None
        return
    manager = validate_manager(record_store(), manager_id)
    session = get_db()
    session.execute(
        update(Store).where(Store.manager_id == manager['id'], Store.id != s.id).values(manager_id=None)
    )
    s.manager_id = manager['id']
    session.get(User, manager['id']).store_id = s.id


@stores_bp.get('')
@login_required
def list_stores():
    q = get_db().query(Store)
    scope = visible_store_scope(current_actor())
    if not scope.all_stores:
        q = q.filter(Store.id == scope.store_id)
    filter_specs = {
        'is_active': {
            'coerce': lambda v: str(v).lower() in ('1', 'true', 'yes'),
            'op': lambda qu, v: qu.filter(Store.is_active.is_(v)),
        },
        'q': {'op': lambda qu, v: qu.filter(or_(Store.store_code.ilike(f'%{v}%'), Store.store_name.ilike(f'%{v}%')))},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {'store_code': Store.store_code, 'store_name': Store.store_name, 'id': Store.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Store.id, default='store_code')
    return paginated_response(q, _store_json)


@stores_bp.get('/dropdown')
@login_required
def stores_dropdown():
    """Active stores for the store selector; cached, and narrowed to the user's own store."""
    rows = _store_cache().get_or_load(_load_dropdown)
    scope = visible_store_scope(current_actor())
    if not scope.all_stores:
        rows = [r for r in rows if r['id'] == scope.store_id]
    return {'data': rows}


@stores_bp.get('/current')
@login_required
def current_store():
    scope = visible_store_scope(current_actor())
    if scope.all_stores:
        return {'store': None, 'all_stores': True}
    return {'store': _store_json(_load(scope.store_id)), 'all_stores': False}


@stores_bp.get('/<int:store_id>')
@login_required
def get_store(store_id: int):
    scope = visible_store_scope(current_actor())
    if not scope.includes(store_id):
        raise ForbiddenError('Store access denied')
    return _store_json(_load(store_id))


@stores_bp.post('')
@login_required
@audit_log('STORE.CREATE', entity='Store', meta_keys=['store_code', 'store_name'])
def create_store():
    _require_manage()
    data = request.get_json(silent=True) or {}
    fields = normalize_store_fields(data)
    manager_id = fields.pop('manager_id', None)
    _assert_unique_code(fields['store_code'])
    session = get_db()
    s = Store(**fields)
    session.add(s)
    session.flush()
    _assign_manager(s, manager_id)
    session.commit()
    _store_cache().invalidate()
    return _store_json(s), 201


@stores_bp.patch('/<int:store_id>')
@login_required
@audit_log('STORE.UPDATE', entity='Store',
           diff_keys=['store_code', 'store_name', 'address', 'phone', 'petty_cash_limit_cents', 'manager_id', 'is_active'],
           pre_fetch=lambda a, kw: _store_json(_load(kw['store_id'])))
def update_store(store_id: int):
    _require_manage()
    s = _load(store_id)
    data = request.get_json(silent=True) or {}
    fields = normalize_store_fields(data, partial=True)
    if not fields:
        raise ValidationError('No updatable fields provided')
    if 'store_code' in fields:
        _assert_unique_code(fields['store_code'], exclude_id=s.id)
    if 'manager_id' in fields:
        _assign_manager(s, fields.pop('manager_id'))
    for key, value in fields.items():
        setattr(s, key, value)
    get_db().commit()
    _store_cache().invalidate()
    return _store_json(s)


@stores_bp.delete('/<int:store_id>')
@login_required
@audit_log('STORE.DEACTIVATE', entity='Store', meta_keys=['store_code', 'is_active'])
def deactivate_store(store_id: int):
    """Stores are never removed; history keeps pointing at them."""
    _require_manage()
    s = _load(store_id)
    s.is_active = False
    get_db().commit()
    _store_cache().invalidate()
    return _store_json(s)

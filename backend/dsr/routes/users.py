from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import or_, select
from dsr import get_db
from dsr.constants.roles import ALL_ROLES, AUTH_LOCAL, KIND_USER, MULTI_STORE_ROLES
from dsr.core.access import (
    assert_active_store, assert_can_manage_user, can_reassign_role, require,
    validate_user_assignment, visible_store_scope,
)
from dsr.core.errors import DuplicateRecordError, ForbiddenError, ValidationError
from dsr.decorators.auth import login_required
from dsr.decorators.audit import audit_log
from dsr.models.authz import User
from dsr.routes.auth import USER_FIELDS
from dsr.services.policy import current_actor, current_scope, filter_query_by_scope, record_store
from dsr.utils.filters import apply_filters
from dsr.utils.listing import paginated_response
from dsr.utils.serialization import row_json
from dsr.utils.sorting import apply_multi_sort

users_bp = Blueprint('users', __name__)

MIN_PASSWORD_LENGTH = 6


def _user_json(u):
    return row_json(u, USER_FIELDS + ['created_at'])


def _load(user_id: int) -> User:
    u = get_db().get(User, user_id)
    if not u:
        abort(404)
    scope = visible_store_scope(current_actor())
    if not scope.all_stores and u.store_id != scope.store_id:
        raise ForbiddenError('Store access denied')
    return u


def _store_id_for(role: str, raw):
    """Multi-store roles are never pinned to a store."""
    if role in MULTI_STORE_ROLES:
        return None
    if raw in (None, ''):
        return None
    return assert_active_store(record_store(), raw)['id']


def _check_password(password):
    if not password or len(str(password)) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f'password must be at least {MIN_PASSWORD_LENGTH} characters')


@users_bp.get('')
@login_required
def list_users():
    actor = current_actor()
    require(actor, KIND_USER, 'read')
    q = filter_query_by_scope(get_db().query(User), User.store_id, current_scope(actor))
    filter_specs = {
        'role': {'op': lambda qu, v: qu.filter(User.role == v), 'validate': lambda v: v in ALL_ROLES},
        'is_active': {
            'coerce': lambda v: str(v).lower() in ('1', 'true', 'yes'),
            'op': lambda qu, v: qu.filter(User.is_active.is_(v)),
        },
        'q': {'op': lambda qu, v: qu.filter(or_(User.username.ilike(f'%{v}%'), User.full_name.ilike(f'%{v}%')))},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {'username': User.username, 'full_name': User.full_name, 'role': User.role, 'id': User.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, User.id, default='username')
    return paginated_response(q, _user_json)


@users_bp.get('/<int:user_id>')
@login_required
def get_user(user_id: int):
    require(current_actor(), KIND_USER, 'read')
    return _user_json(_load(user_id))


@users_bp.post('')
@login_required
@audit_log('USER.CREATE', entity='User', meta_keys=['username', 'role', 'store_id'])
def create_user():
    actor = current_actor()
    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    full_name = (data.get('full_name') or '').strip()
    if not username or not full_name:
        raise ValidationError('username and full_name are required')
    role = data.get('role')
    auth_type = data.get('authentication_type') or AUTH_LOCAL
    # store managers may leave store_id out and get their own store
    raw_store = data.get('store_id')
    if raw_store in (None, '') and role not in MULTI_STORE_ROLES and actor.store_id is not None:
        raw_store = actor.store_id
    validate_user_assignment(role, None if role in MULTI_STORE_ROLES else raw_store, auth_type)
    store_id = _store_id_for(role, raw_store)
    assert_can_manage_user(actor, role, store_id)
    session = get_db()
    if session.execute(select(User.id).where(User.username == username)).first():
        raise DuplicateRecordError(f'Username {username} already exists')
    u = User(
        username=username,
        full_name=full_name,
        email=(data.get('email') or None),
        role=role,
        store_id=store_id,
        authentication_type=auth_type,
        is_active=True,
    )
    if auth_type == AUTH_LOCAL:
        _check_password(data.get('password'))
        u.set_password(data['password'])
    session.add(u)
    session.commit()
    return _user_json(u), 201


@users_bp.patch('/<int:user_id>')
@login_required
@audit_log('USER.UPDATE', entity='User',
           diff_keys=['full_name', 'email', 'role', 'store_id', 'is_active'],
           pre_fetch=lambda a, kw: _user_json(_load(kw['user_id'])))
def update_user(user_id: int):
    actor = current_actor()
    u = _load(user_id)
    data = request.get_json(silent=True) or {}
    # the account as it is now and as it will be must both be manageable
    assert_can_manage_user(actor, u.role, u.store_id)
    role = data.get('role', u.role)
    if role != u.role and not can_reassign_role(actor):
        raise ForbiddenError('Only super users can change roles')
    raw_store = data['store_id'] if 'store_id' in data else u.store_id
    validate_user_assignment(role, None if role in MULTI_STORE_ROLES else raw_store, u.authentication_type)
    store_id = _store_id_for(role, raw_store)
    assert_can_manage_user(actor, role, store_id)
    if 'is_active' in data and not data['is_active'] and u.id == actor.id:
        raise ValidationError('You cannot deactivate your own account')
    if 'full_name' in data:
        name = (data.get('full_name') or '').strip()
        if not name:
            raise ValidationError('full_name cannot be empty')
        u.full_name = name
    if 'email' in data:
        u.email = data.get('email') or None
    if 'is_active' in data:
        u.is_active = bool(data['is_active'])
    if data.get('password'):
        if u.authentication_type != AUTH_LOCAL:
            raise ValidationError('Password can only be set for local accounts')
        _check_password(data['password'])
        u.set_password(data['password'])
    u.role = role
    u.store_id = store_id
    get_db().commit()
    return _user_json(u)


@users_bp.delete('/<int:user_id>')
@login_required
@audit_log('USER.DEACTIVATE', entity='User', meta_keys=['username', 'is_active'])
def deactivate_user(user_id: int):
    actor = current_actor()
    u = _load(user_id)
    assert_can_manage_user(actor, u.role, u.store_id)
    if u.id == actor.id:
        raise ValidationError('You cannot deactivate your own account')
    u.is_active = False
    get_db().commit()
    return _user_json(u)

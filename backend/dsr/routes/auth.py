from __future__ import annotations
import logging
from flask import Blueprint, request, abort
from flask_jwt_extended import create_access_token
from sqlalchemy import select
from dsr import get_db
from dsr.constants.roles import AUTH_LOCAL
from dsr.core.access import ui_permissions, visible_store_scope
from dsr.decorators.auth import login_required
from dsr.models.authz import User
from dsr.services.policy import current_actor, current_clock
from dsr.utils.serialization import row_json

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger('dsr.auth')

USER_FIELDS = [
    'id', 'username', 'full_name', 'email', 'role', 'store_id', 'authentication_type',
    'is_active', 'last_login_at',
]


@auth_bp.post('/login')
def login():
    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    password = data.get('password')
    if not username or not password:
        abort(400, description='username & password required')
    session = get_db()
    user = session.execute(select(User).where(User.username == username)).scalar_one_or_none()
    # SSO accounts never hold a local password
    if (not user or not user.is_active or user.authentication_type != AUTH_LOCAL
            or not user.verify_password(password)):
        logger.info('login rejected for %s', username)
        abort(401, description='Invalid credentials')
    user.last_login_at = current_clock().now()
    session.commit()
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(
        identity=str(user.id),
        additional_claims={'role': user.role, 'store_id': user.store_id},
    )
    return {'access_token': token, 'user': row_json(user, USER_FIELDS)}


@auth_bp.get('/me')
@login_required
def me():
    actor = current_actor()
    user = get_db().get(User, actor.id)
    scope = visible_store_scope(actor)
    return {
        'user': row_json(user, USER_FIELDS),
        'permissions': ui_permissions(actor),
        'scope': {'all_stores': scope.all_stores, 'store_id': scope.store_id},
    }

from __future__ import annotations
from typing import Any, Optional
from flask import abort, current_app, g, request
from flask_jwt_extended import get_jwt_identity
from sqlalchemy import select
from dsr import get_db
from dsr.core.access import Actor, StoreScope, request_scope
from dsr.core.clock import Clock
from dsr.models.authz import User
from dsr.services.record_store import SqlRecordStore


def record_store() -> SqlRecordStore:
    return SqlRecordStore(get_db())


def current_clock() -> Clock:
    return current_app.extensions['dsr.clock']


def load_actor(user_id: Any) -> Optional[Actor]:
    """Actor for a token identity, or None for unknown / deactivated users."""
    try:
        uid = int(user_id)
    except (TypeError, ValueError):
        return None
    user = get_db().execute(select(User).where(User.id == uid)).scalar_one_or_none()
    if not user or not user.is_active:
        return None
    return Actor(
        id=user.id,
        role=user.role,
        store_id=user.store_id,
        is_active=user.is_active,
        authentication_type=user.authentication_type,
    )


def current_actor() -> Actor:
    actor = getattr(g, 'dsr_actor', None)
    if actor is None:
        actor = load_actor(get_jwt_identity())
        if actor is None:
            abort(401, description='User inactive or not found')
        g.dsr_actor = actor
    return actor


def current_scope(actor: Optional[Actor] = None) -> StoreScope:
    """Visible scope narrowed by the optional ``store_id`` query parameter."""
    actor = actor or current_actor()
    return request_scope(actor, request.args.get('store_id'), record_store())


def filter_query_by_scope(query, model_store_column, scope: StoreScope):
    if scope.all_stores:
        return query
    return query.filter(model_store_column == scope.store_id)

"""Role-scoped access policy.

Every handler asks the same small predicate set which stores a user may see and
which actions they may take; nothing re-derives role rules locally. Scope
violations on a concrete record raise ``ForbiddenError`` instead of filtering
the record out.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from dsr.constants.roles import (
    ALL_AUTH_TYPES, ALL_ROLES, AUTH_LOCAL, KIND_STORE, KIND_USER, MULTI_STORE_ROLES,
    ROLE_CAPABILITIES, ROLE_CASHIER, ROLE_STORE_MANAGER, ROLE_SUPER_USER, SINGLE_STORE_ROLES,
    SURFACE_INLINE, SURFACE_ROLES,
)
from dsr.core.errors import ForbiddenError, ValidationError
from dsr.core.storage import RecordStore


@dataclass(frozen=True)
class Actor:
    id: int
    role: str
    store_id: Optional[int] = None
    is_active: bool = True
    authentication_type: str = AUTH_LOCAL

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'Actor':
        return cls(
            id=row['id'],
            role=row['role'],
            store_id=row.get('store_id'),
            is_active=bool(row.get('is_active', True)),
            authentication_type=row.get('authentication_type') or AUTH_LOCAL,
        )


@dataclass(frozen=True)
class StoreScope:
    all_stores: bool
    store_id: Optional[int] = None

    def includes(self, store_id: Optional[int]) -> bool:
        if self.all_stores:
            return True
        return store_id is not None and store_id == self.store_id


def visible_store_scope(actor: Actor) -> StoreScope:
    if actor.role in MULTI_STORE_ROLES:
        return StoreScope(all_stores=True)
    if actor.role in SINGLE_STORE_ROLES:
        if actor.store_id is None:
            raise ForbiddenError('User not assigned to store')
        return StoreScope(all_stores=False, store_id=actor.store_id)
    raise ForbiddenError(f'Unknown role {actor.role}')


def assert_active_store(store: RecordStore, store_id: Any) -> Dict[str, Any]:
    try:
        store_id = int(store_id)
    except (TypeError, ValueError):
        raise ValidationError('Invalid store_id provided')
    row = store.get(KIND_STORE, store_id)
    if row is None or not row.get('is_active', True):
        raise ValidationError('Invalid store_id provided')
    return row


def narrow_scope(scope: StoreScope, requested_store_id: Any, store: RecordStore) -> StoreScope:
    """Apply an optional ``store_id`` selection; narrowing never widens access."""
    if requested_store_id in (None, ''):
        return scope
    row = assert_active_store(store, requested_store_id)
    if not scope.includes(row['id']):
        raise ForbiddenError('Store access denied')
    return StoreScope(all_stores=False, store_id=row['id'])


def request_scope(actor: Actor, requested_store_id: Any, store: RecordStore) -> StoreScope:
    return narrow_scope(visible_store_scope(actor), requested_store_id, store)


def resolve_target_store(actor: Actor, requested_store_id: Any, store: RecordStore) -> int:
    """Store a new record belongs to: own store, or the selected one for multi-store roles."""
    scope = visible_store_scope(actor)
    if not scope.all_stores:
        if requested_store_id not in (None, '') and _as_int(requested_store_id) != scope.store_id:
            raise ForbiddenError('Store access denied')
        return scope.store_id
    if requested_store_id in (None, ''):
        raise ValidationError('Store selection is required')
    return assert_active_store(store, requested_store_id)['id']


def assert_in_scope(scope: StoreScope, store_id: Optional[int]):
    if not scope.includes(store_id):
        raise ForbiddenError('Store access denied')


def assert_record_visible(actor: Actor, record: Mapping[str, Any]):
    assert_in_scope(visible_store_scope(actor), record.get('store_id'))


def can(actor: Actor, kind: str, action: str) -> bool:
    if not actor.is_active:
        return False
    allowed = ROLE_CAPABILITIES.get(kind, {}).get(action)
    return bool(allowed) and actor.role in allowed


def require(actor: Actor, kind: str, action: str):
    if not can(actor, kind, action):
        raise ForbiddenError('Insufficient permissions')


def can_approve(actor: Actor, kind: str, surface: str = SURFACE_INLINE) -> bool:
    """Surface gate first, then the same rule ``decide`` enforces."""
    return actor.role in SURFACE_ROLES.get(surface, frozenset()) and can(actor, kind, 'approve')


def can_manage_store(actor: Actor) -> bool:
    return can(actor, KIND_STORE, 'manage')


def can_manage_users(actor: Actor) -> bool:
    return can(actor, KIND_USER, 'manage')


def can_reassign_role(actor: Actor) -> bool:
    return can(actor, KIND_USER, 'reassign_role')


def validate_user_assignment(role: str, store_id: Optional[int], authentication_type: str):
    if role not in ALL_ROLES:
        raise ValidationError('Invalid role')
    if authentication_type not in ALL_AUTH_TYPES:
        raise ValidationError('Invalid authentication_type')
    if role == ROLE_CASHIER and authentication_type != AUTH_LOCAL:
        raise ValidationError('Cashiers must use local authentication')
    if store_id is None and role not in MULTI_STORE_ROLES:
        raise ValidationError(f'{role} must be assigned to a store')


def assert_can_manage_user(actor: Actor, role: str, store_id: Optional[int]):
    """Creating or editing a user with ``role`` in ``store_id``."""
    if not can_manage_users(actor):
        raise ForbiddenError('Insufficient permissions')
    if actor.role == ROLE_SUPER_USER:
        return
    if role != ROLE_CASHIER:
        raise ForbiddenError('Only cashier accounts can be managed by this role')
    if actor.role == ROLE_STORE_MANAGER and store_id != actor.store_id:
        raise ForbiddenError('Store managers can only manage users in their own store')


def ui_permissions(actor: Actor) -> Dict[str, bool]:
    flags = {
        f'{kind}.{action}': actor.role in roles
        for kind, actions in ROLE_CAPABILITIES.items()
        for action, roles in actions.items()
    }
    flags.update({
        'approvals.inline': actor.role in SURFACE_ROLES['inline'],
        'approvals.queue': actor.role in SURFACE_ROLES['queue'],
        'stores.select': actor.role in MULTI_STORE_ROLES,
    })
    return flags


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError('Invalid store_id provided')


__all__ = [
    'Actor', 'StoreScope', 'visible_store_scope', 'assert_active_store', 'narrow_scope',
    'request_scope', 'resolve_target_store', 'assert_in_scope', 'assert_record_visible',
    'can', 'require', 'can_approve', 'can_manage_store', 'can_manage_users',
    'can_reassign_role', 'validate_user_assignment', 'assert_can_manage_user', 'ui_permissions',
]

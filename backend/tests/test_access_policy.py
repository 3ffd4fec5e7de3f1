import pytest
from dsr.constants.roles import (
    KIND_EXPENSE, KIND_GIFT_VOUCHER, KIND_HAND_BILL, KIND_SALE, ROLE_ACCOUNTS_INCHARGE, ROLE_CASHIER,
    ROLE_STORE_MANAGER, ROLE_SUPER_USER, SURFACE_INLINE, SURFACE_QUEUE,
)
from dsr.core.access import (
    Actor, StoreScope, assert_can_manage_user, assert_record_visible, can, can_approve, can_manage_store,
    can_reassign_role, request_scope, resolve_target_store, ui_permissions, validate_user_assignment,
    visible_store_scope,
)
from dsr.core.errors import ForbiddenError, ValidationError
from dsr.core.storage import InMemoryStore


@pytest.fixture()
def store():
    s = InMemoryStore()
    s.insert_many('store', [
        {'store_code': 'S01', 'is_active': True},
        {'store_code': 'S02', 'is_active': True},
        {'store_code': 'OLD', 'is_active': False},
    ])
    return s


CASHIER = Actor(id=1, role=ROLE_CASHIER, store_id=1)
MANAGER = Actor(id=2, role=ROLE_STORE_MANAGER, store_id=1)
ACCOUNTS = Actor(id=3, role=ROLE_ACCOUNTS_INCHARGE)
ADMIN = Actor(id=4, role=ROLE_SUPER_USER)


def test_single_store_roles_see_only_their_store():
    assert visible_store_scope(CASHIER) == StoreScope(all_stores=False, store_id=1)
    assert visible_store_scope(MANAGER).includes(1)
    assert not visible_store_scope(MANAGER).includes(2)


def test_multi_store_roles_see_everything():
    assert visible_store_scope(ACCOUNTS).all_stores
    assert visible_store_scope(ADMIN).includes(99)


def test_unassigned_cashier_is_forbidden():
    with pytest.raises(ForbiddenError, match='not assigned'):
        visible_store_scope(Actor(id=9, role=ROLE_CASHIER, store_id=None))


def test_request_scope_narrows_for_multi_store_roles(store):
    assert request_scope(ACCOUNTS, None, store).all_stores
    narrowed = request_scope(ACCOUNTS, '2', store)
    assert narrowed == StoreScope(all_stores=False, store_id=2)


def test_request_scope_never_widens(store):
    assert request_scope(CASHIER, 1, store).store_id == 1
    with pytest.raises(ForbiddenError):
        request_scope(CASHIER, 2, store)


def test_request_scope_rejects_unknown_or_inactive_store(store):
    with pytest.raises(ValidationError):
        request_scope(ACCOUNTS, 42, store)
    with pytest.raises(ValidationError):
        request_scope(ACCOUNTS, 3, store)
    with pytest.raises(ValidationError):
        request_scope(ACCOUNTS, 'abc', store)


def test_resolve_target_store(store):
    assert resolve_target_store(CASHIER, None, store) == 1
    assert resolve_target_store(ADMIN, 2, store) == 2
    with pytest.raises(ValidationError, match='Store selection is required'):
        resolve_target_store(ACCOUNTS, None, store)
    with pytest.raises(ForbiddenError):
        resolve_target_store(CASHIER, 2, store)


def test_out_of_scope_record_raises_instead_of_filtering():
    assert_record_visible(CASHIER, {'store_id': 1})
    with pytest.raises(ForbiddenError):
        assert_record_visible(CASHIER, {'store_id': 2})
    assert_record_visible(ACCOUNTS, {'store_id': 2})


def test_can_approve_depends_on_surface():
    assert not can_approve(CASHIER, KIND_SALE, SURFACE_INLINE)
    assert can_approve(MANAGER, KIND_SALE, SURFACE_INLINE)
    assert not can_approve(MANAGER, KIND_SALE, SURFACE_QUEUE)
    assert can_approve(ACCOUNTS, KIND_EXPENSE, SURFACE_INLINE)
    assert can_approve(ACCOUNTS, KIND_EXPENSE, SURFACE_QUEUE)
    assert not can_approve(ADMIN, KIND_SALE, SURFACE_INLINE)
    assert can_approve(ADMIN, KIND_SALE, SURFACE_QUEUE)


def test_capabilities():
    assert can(CASHIER, KIND_HAND_BILL, 'create')
    assert not can(CASHIER, KIND_HAND_BILL, 'convert')
    assert not can(ACCOUNTS, KIND_HAND_BILL, 'create')
    assert can(CASHIER, KIND_GIFT_VOUCHER, 'redeem')
    assert not can(MANAGER, KIND_GIFT_VOUCHER, 'expire')
    assert not can(Actor(id=5, role=ROLE_SUPER_USER, is_active=False), KIND_SALE, 'read')
    assert can_manage_store(ADMIN) and not can_manage_store(ACCOUNTS)
    assert can_reassign_role(ADMIN) and not can_reassign_role(MANAGER)


def test_validate_user_assignment():
    validate_user_assignment(ROLE_CASHIER, 1, 'local')
    validate_user_assignment(ROLE_ACCOUNTS_INCHARGE, None, 'google_sso')
    with pytest.raises(ValidationError, match='must be assigned'):
        validate_user_assignment(ROLE_STORE_MANAGER, None, 'local')
    with pytest.raises(ValidationError, match='local authentication'):
        validate_user_assignment(ROLE_CASHIER, 1, 'google_sso')
    with pytest.raises(ValidationError):
        validate_user_assignment('owner', 1, 'local')


def test_managers_only_manage_own_cashiers():
    assert_can_manage_user(MANAGER, ROLE_CASHIER, 1)
    with pytest.raises(ForbiddenError):
        assert_can_manage_user(MANAGER, ROLE_CASHIER, 2)
    with pytest.raises(ForbiddenError):
        assert_can_manage_user(MANAGER, ROLE_STORE_MANAGER, 1)
    with pytest.raises(ForbiddenError):
        assert_can_manage_user(CASHIER, ROLE_CASHIER, 1)
    assert_can_manage_user(ADMIN, ROLE_ACCOUNTS_INCHARGE, None)


def test_ui_permissions_flags():
    flags = ui_permissions(MANAGER)
    assert flags['approvals.inline'] is True
    assert flags['approvals.queue'] is False
    assert flags['stores.select'] is False
    assert flags['sale.approve'] is True
    assert ui_permissions(CASHIER)['sale.approve'] is False

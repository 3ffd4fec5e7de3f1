import pytest
from dsr.constants.roles import KIND_SALES_ORDER, ROLE_ACCOUNTS_INCHARGE, ROLE_CASHIER, ROLE_STORE_MANAGER
from dsr.core import convertible, deposits
from dsr.core.access import Actor
from dsr.core.clock import FixedClock
from dsr.core.errors import ForbiddenError, InvalidStateError, ValidationError
from dsr.core.storage import InMemoryStore

CASHIER = Actor(id=10, role=ROLE_CASHIER, store_id=1)
MANAGER = Actor(id=11, role=ROLE_STORE_MANAGER, store_id=1)
OTHER_CASHIER = Actor(id=12, role=ROLE_CASHIER, store_id=2)
ACCOUNTS = Actor(id=13, role=ROLE_ACCOUNTS_INCHARGE)


@pytest.fixture()
def store():
    s = InMemoryStore()
    s.insert_many('store', [{'store_code': 'S01', 'is_active': True}, {'store_code': 'S02', 'is_active': True}])
    s.insert_many('customer', [{'customer_name': 'Asha', 'phone': '9999'}, {'customer_name': 'Ravi', 'phone': '8888'}])
    return s


@pytest.fixture()
def clock():
    return FixedClock()


@pytest.fixture()
def order(store, clock):
    return convertible.open_sales_order(store, CASHIER, {
        'customer_id': 1, 'items_description': 'Bookshelf', 'total_estimated_amount_cents': 10000,
        'advance_paid_cents': 2000,
    }, clock=clock)


def _order_deposit(store, clock, order, amount, actor=CASHIER, **extra):
    fields = {'deposit_type': 'sales_order', 'sales_order_id': order['id'], 'amount_cents': amount, 'payment_method': 'cash'}
    fields.update(extra)
    return deposits.record_deposit(store, actor, fields, clock=clock)


def test_order_deposit_raises_advance(store, clock, order):
    dep = _order_deposit(store, clock, order, 3000)
    assert dep['store_id'] == 1
    assert dep['customer_id'] == 1
    assert dep['deposit_date'] == clock.today()
    assert store.get(KIND_SALES_ORDER, order['id'])['advance_paid_cents'] == 5000


def test_advance_never_exceeds_order_total(store, clock, order):
    with pytest.raises(ValidationError, match='would exceed'):
        _order_deposit(store, clock, order, 8001)
    assert store.get(KIND_SALES_ORDER, order['id'])['advance_paid_cents'] == 2000
    assert store.find('deposit') == []
    _order_deposit(store, clock, order, 8000)
    assert store.get(KIND_SALES_ORDER, order['id'])['advance_paid_cents'] == 10000


def test_order_deposit_validation(store, clock, order):
    with pytest.raises(ValidationError, match='sales_order_id'):
        deposits.record_deposit(store, CASHIER, {'deposit_type': 'sales_order', 'amount_cents': 10, 'payment_method': 'cash'})
    with pytest.raises(ValidationError, match='customer_id does not match'):
        _order_deposit(store, clock, order, 100, customer_id=2)
    with pytest.raises(ValidationError, match='payment_method'):
        _order_deposit(store, clock, order, 100, payment_method='cheque')
    with pytest.raises(ValidationError, match='deposit_type'):
        deposits.record_deposit(store, CASHIER, {'deposit_type': 'layaway', 'amount_cents': 10, 'payment_method': 'cash'})
    with pytest.raises(ValidationError, match='greater than zero'):
        _order_deposit(store, clock, order, 0)


def test_deposit_on_other_store_order_is_forbidden(store, clock, order):
    with pytest.raises(ForbiddenError):
        _order_deposit(store, clock, order, 100, actor=OTHER_CASHIER)


def test_closed_orders_take_no_deposits(store, clock, order):
    convertible.cancel(store, KIND_SALES_ORDER, order['id'], MANAGER)
    with pytest.raises(InvalidStateError):
        _order_deposit(store, clock, order, 100)


def test_other_deposit_needs_store_for_multi_store_roles(store, clock):
    fields = {'deposit_type': 'other', 'amount_cents': 500, 'payment_method': 'upi'}
    with pytest.raises(ValidationError, match='Store selection'):
        deposits.record_deposit(store, ACCOUNTS, fields, clock=clock)
    dep = deposits.record_deposit(store, ACCOUNTS, fields, requested_store_id=2, clock=clock)
    assert dep['store_id'] == 2
    assert dep['sales_order_id'] is None


def test_update_moves_advance_by_difference(store, clock, order):
    dep = _order_deposit(store, clock, order, 3000)
    with pytest.raises(ForbiddenError):
        deposits.update_deposit(store, CASHIER, dep['id'], {'amount_cents': 1000})
    updated = deposits.update_deposit(store, MANAGER, dep['id'], {'amount_cents': 1000, 'notes': ' fixed '})
    assert updated['amount_cents'] == 1000
    assert updated['notes'] == 'fixed'
    assert store.get(KIND_SALES_ORDER, order['id'])['advance_paid_cents'] == 3000
    with pytest.raises(ValidationError, match='would exceed'):
        deposits.update_deposit(store, MANAGER, dep['id'], {'amount_cents': 9000})
    assert store.get('deposit', dep['id'])['amount_cents'] == 1000


def test_delete_takes_amount_off_advance(store, clock, order):
    dep = _order_deposit(store, clock, order, 3000)
    with pytest.raises(ForbiddenError):
        deposits.delete_deposit(store, MANAGER, dep['id'])
    removed = deposits.delete_deposit(store, ACCOUNTS, dep['id'])
    assert removed['amount_cents'] == 3000
    assert store.get('deposit', dep['id']) is None
    assert store.get(KIND_SALES_ORDER, order['id'])['advance_paid_cents'] == 2000


def test_stale_advance_loses_the_race(store, clock, order):
    stale = store.get(KIND_SALES_ORDER, order['id'])
    deposits.shift_advance(store, stale, 1000)
    with pytest.raises(InvalidStateError):
        deposits.shift_advance(store, stale, 1000)
    assert store.get(KIND_SALES_ORDER, order['id'])['advance_paid_cents'] == 3000


def test_bad_deposit_date_is_a_validation_error(store, clock):
    fields = {'deposit_type': 'other', 'amount_cents': 500, 'payment_method': 'cash', 'deposit_date': '15/01/2025'}
    with pytest.raises(ValidationError, match='deposit_date must be YYYY-MM-DD'):
        deposits.record_deposit(store, CASHIER, fields, clock=clock)
    assert store.find('deposit') == []

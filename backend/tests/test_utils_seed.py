"""Test seeding utilities to reduce duplication.

Helpers return primary keys rather than ORM instances: the request teardown
removes the scoped session, so instances held by a test would be detached.
"""
from typing import Dict, Optional
from dsr import get_db
from dsr.constants.roles import (
    AUTH_LOCAL, ROLE_ACCOUNTS_INCHARGE, ROLE_CASHIER, ROLE_STORE_MANAGER, ROLE_SUPER_USER,
)
from dsr.models.authz import User
from dsr.models.customer import Customer
from dsr.models.store import Store

DEFAULT_PASSWORD = 'secret123'


def ensure_store(code: str, name: Optional[str] = None, petty_cash_limit_cents: int = 500000, is_active: bool = True) -> int:
    session = get_db()
    s = session.query(Store).filter_by(store_code=code).one_or_none()
    if not s:
        s = Store(store_code=code, store_name=name or f'Store {code}', petty_cash_limit_cents=petty_cash_limit_cents, is_active=is_active)
        session.add(s); session.commit()
    return s.id


def ensure_user(username: str, role: str, store_id: Optional[int] = None, password: str = DEFAULT_PASSWORD,
                authentication_type: str = AUTH_LOCAL, is_active: bool = True) -> int:
    session = get_db()
    u = session.query(User).filter_by(username=username).one_or_none()
    if not u:
        u = User(username=username, full_name=username.title(), role=role, store_id=store_id,
                 authentication_type=authentication_type, is_active=is_active)
        if authentication_type == AUTH_LOCAL:
            u.set_password(password)
        session.add(u); session.commit()
    return u.id


def ensure_customer(name: str, phone: Optional[str] = None, credit_limit_cents: int = 0) -> int:
    session = get_db()
    c = session.query(Customer).filter_by(customer_name=name).one_or_none()
    if not c:
        c = Customer(customer_name=name, phone=phone, credit_limit_cents=credit_limit_cents)
        session.add(c); session.commit()
    return c.id


def seed_org() -> Dict[str, Dict[str, int]]:
    """Stores S01/S02; a cashier and a manager per store plus the two all-store roles."""
    s1 = ensure_store('S01', 'North Store')
    s2 = ensure_store('S02', 'South Store')
    users = {
        'cashier1': ensure_user('cashier1', ROLE_CASHIER, s1),
        'cashier2': ensure_user('cashier2', ROLE_CASHIER, s2),
        'manager1': ensure_user('manager1', ROLE_STORE_MANAGER, s1),
        'manager2': ensure_user('manager2', ROLE_STORE_MANAGER, s2),
        'accounts': ensure_user('accounts', ROLE_ACCOUNTS_INCHARGE),
        'admin': ensure_user('admin', ROLE_SUPER_USER),
    }
    return {'stores': {'S01': s1, 'S02': s2}, 'users': users}


__all__ = ['DEFAULT_PASSWORD', 'ensure_store', 'ensure_user', 'ensure_customer', 'seed_org']

#!/usr/bin/env python
"""Idempotent seed script for a demo store and one user per role.

Usage:
    python backend/scripts/seed_demo.py               # seed normally
    python backend/scripts/seed_demo.py --dry-run     # run logic then rollback (no DB changes)
    python backend/scripts/seed_demo.py --show-users  # print users after seeding
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from sqlalchemy import select

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from dsr import create_app, get_db  # type: ignore
from dsr.constants.roles import (
    AUTH_LOCAL, ROLE_ACCOUNTS_INCHARGE, ROLE_CASHIER, ROLE_STORE_MANAGER, ROLE_SUPER_USER,
)
from dsr.models.authz import Base, User
from dsr.models.store import Store
import dsr.services.record_store  # noqa: F401  (registers every table)
import dsr.models.audit  # noqa: F401

DEMO_STORE = {'store_code': 'MAIN01', 'store_name': 'Main Street Store', 'petty_cash_limit_cents': 500000}
DEMO_USERS = [
    ('admin', 'Super User', ROLE_SUPER_USER, False),
    ('accounts', 'Accounts Incharge', ROLE_ACCOUNTS_INCHARGE, False),
    ('manager', 'Store Manager', ROLE_STORE_MANAGER, True),
    ('cashier', 'Cashier', ROLE_CASHIER, True),
]


def ensure_store(session):
    store = session.execute(select(Store).where(Store.store_code == DEMO_STORE['store_code'])).scalar_one_or_none()
    if store:
        return store, False
    store = Store(**DEMO_STORE)
    session.add(store)
    session.flush()
    return store, True


def ensure_users(session, store):
    password = os.getenv('SEED_PASSWORD', 'ChangeMe123!')
    created = 0
    for username, full_name, role, store_bound in DEMO_USERS:
        if session.execute(select(User).where(User.username == username)).scalar_one_or_none():
            continue
        user = User(
            username=username,
            full_name=full_name,
            role=role,
            store_id=store.id if store_bound else None,
            authentication_type=AUTH_LOCAL,
            is_active=True,
        )
        user.set_password(password)
        session.add(user)
        session.flush()
        if role == ROLE_STORE_MANAGER and store.manager_id is None:
            store.manager_id = user.id
        created += 1
    return created


def print_users(session):
    users = session.execute(select(User).order_by(User.id.asc())).scalars().all()
    if not users:
        print('[INFO] No users present.')
        return
    name_w = max(len(u.username) for u in users)
    print(f"{'User'.ljust(name_w)} | Role              | Store")
    print('-' * (name_w + 32))
    for u in users:
        print(f"{u.username.ljust(name_w)} | {u.role.ljust(17)} | {u.store_id or '-'}")


def parse_args():
    p = argparse.ArgumentParser(
        description='Seed a demo store and users',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_demo.py\n  dry run: seed_demo.py --dry-run\n"""),
    )
    p.add_argument('--show-users', action='store_true', help='Print users after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        # lightweight fallback if migrations have not been run yet
        Base.metadata.create_all(session.get_bind())
        store, store_created = ensure_store(session)
        created_u = ensure_users(session, store)
        if args.show_users:
            print_users(session)
        if args.dry_run:
            session.rollback()
            print(f'[DRY-RUN] (rolled back) Store would create: {int(store_created)}, Users would create: {created_u}')
        else:
            session.commit()
            print(f'[DONE] Store created: {int(store_created)}, Users created: {created_u}')


if __name__ == '__main__':
    main()

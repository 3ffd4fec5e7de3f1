"""Central enum-like definitions for roles, record kinds and role capabilities.
Extend cautiously; never rename codes silently, stored rows reference them.
"""
from __future__ import annotations
from typing import Dict, FrozenSet

ROLE_CASHIER = 'cashier'
ROLE_STORE_MANAGER = 'store_manager'
ROLE_ACCOUNTS_INCHARGE = 'accounts_incharge'
ROLE_SUPER_USER = 'super_user'
ALL_ROLES = [ROLE_CASHIER, ROLE_STORE_MANAGER, ROLE_ACCOUNTS_INCHARGE, ROLE_SUPER_USER]

AUTH_LOCAL = 'local'
AUTH_GOOGLE_SSO = 'google_sso'
ALL_AUTH_TYPES = [AUTH_LOCAL, AUTH_GOOGLE_SSO]

# Roles whose users see every store and may leave store_id empty
MULTI_STORE_ROLES: FrozenSet[str] = frozenset({ROLE_ACCOUNTS_INCHARGE, ROLE_SUPER_USER})
SINGLE_STORE_ROLES: FrozenSet[str] = frozenset({ROLE_CASHIER, ROLE_STORE_MANAGER})
MANAGER_AND_ABOVE: FrozenSet[str] = frozenset({ROLE_STORE_MANAGER, ROLE_ACCOUNTS_INCHARGE, ROLE_SUPER_USER})
EVERYONE: FrozenSet[str] = frozenset(ALL_ROLES)
FINANCE_ROLES: FrozenSet[str] = frozenset({ROLE_ACCOUNTS_INCHARGE, ROLE_SUPER_USER})
FRONT_DESK: FrozenSet[str] = frozenset({ROLE_CASHIER, ROLE_STORE_MANAGER, ROLE_SUPER_USER})

KIND_STORE = 'store'
KIND_USER = 'user'
KIND_CUSTOMER = 'customer'
KIND_SALE = 'sale'
KIND_EXPENSE = 'expense'
KIND_HAND_BILL = 'hand_bill'
KIND_SALES_ORDER = 'sales_order'
KIND_GIFT_VOUCHER = 'gift_voucher'
KIND_RETURN = 'return'
KIND_DEPOSIT = 'deposit'
KIND_REPORT = 'report'

APPROVAL_KINDS = (KIND_SALE, KIND_EXPENSE)
CONVERTIBLE_KINDS = (KIND_HAND_BILL, KIND_SALES_ORDER)

# Approval surfaces: inline per-page approval vs the cross-store queue
SURFACE_INLINE = 'inline'
SURFACE_QUEUE = 'queue'
SURFACE_ROLES: Dict[str, FrozenSet[str]] = {
    SURFACE_INLINE: frozenset({ROLE_STORE_MANAGER, ROLE_ACCOUNTS_INCHARGE}),
    SURFACE_QUEUE: FINANCE_ROLES,
}

ROLE_CAPABILITIES: Dict[str, Dict[str, FrozenSet[str]]] = {
    KIND_SALE: {
        'read': EVERYONE,
        'create': EVERYONE,
        'update': EVERYONE,
        'edit_any': MANAGER_AND_ABOVE,
        'approve': MANAGER_AND_ABOVE,
    },
    KIND_EXPENSE: {
        'read': EVERYONE,
        'create': EVERYONE,
        'update': EVERYONE,
        'edit_any': MANAGER_AND_ABOVE,
        'approve': MANAGER_AND_ABOVE,
    },
    KIND_HAND_BILL: {
        'read': EVERYONE,
        'create': FRONT_DESK,
        'update': FRONT_DESK,
        'convert': MANAGER_AND_ABOVE,
        'cancel': MANAGER_AND_ABOVE,
    },
    KIND_SALES_ORDER: {
        'read': EVERYONE,
        'create': FRONT_DESK,
        'update': EVERYONE,
        'convert': MANAGER_AND_ABOVE,
        'cancel': MANAGER_AND_ABOVE,
    },
    KIND_GIFT_VOUCHER: {
        'read': EVERYONE,
        'issue': MANAGER_AND_ABOVE,
        'redeem': EVERYONE,
        'cancel': MANAGER_AND_ABOVE,
        'expire': FINANCE_ROLES,
    },
    KIND_DEPOSIT: {
        'read': EVERYONE,
        'create': EVERYONE,
        'update': MANAGER_AND_ABOVE,
        'delete': FINANCE_ROLES,
    },
    KIND_RETURN: {
        'read': EVERYONE,
        'create': EVERYONE,
        'update': MANAGER_AND_ABOVE,
        'delete': FINANCE_ROLES,
    },
    KIND_CUSTOMER: {
        'read': EVERYONE,
        'create': EVERYONE,
        'update': MANAGER_AND_ABOVE,
        'adjust_outstanding': FINANCE_ROLES,
    },
    KIND_STORE: {
        'read': EVERYONE,
        'manage': frozenset({ROLE_SUPER_USER}),
    },
    KIND_USER: {
        'read': MANAGER_AND_ABOVE,
        'manage': MANAGER_AND_ABOVE,
        'reassign_role': frozenset({ROLE_SUPER_USER}),
    },
    KIND_REPORT: {
        'read': EVERYONE,
        'reconcile': MANAGER_AND_ABOVE,
    },
}

TENDER_TYPES = ['cash', 'credit', 'credit_card', 'upi', 'hand_bill', 'rrn', 'gift_voucher']
EXPENSE_CATEGORIES = [
    'staff_welfare', 'logistics', 'maintenance', 'office_supplies',
    'utilities', 'marketing', 'miscellaneous',
]
EXPENSE_PAYMENT_METHODS = ['petty_cash', 'bank_transfer', 'credit_card']
RETURN_PAYMENT_METHODS = ['cash', 'credit_card', 'upi', 'store_credit']
HAND_BILL_PAYMENT_METHODS = ['cash', 'credit', 'credit_card', 'upi']
VOUCHER_TYPES = ['gift', 'promotional', 'refund']
DEPOSIT_TYPE_SALES_ORDER = 'sales_order'
DEPOSIT_TYPE_OTHER = 'other'
DEPOSIT_TYPES = [DEPOSIT_TYPE_SALES_ORDER, DEPOSIT_TYPE_OTHER]
DEPOSIT_PAYMENT_METHODS = ['cash', 'credit_card', 'upi', 'bank_transfer']

from __future__ import annotations
import re
from typing import Any, Dict, Mapping

from dsr.constants.roles import KIND_USER, ROLE_STORE_MANAGER
from dsr.core.batch import parse_amount_cents
from dsr.core.errors import ValidationError
from dsr.core.storage import RecordStore

STORE_CODE_RE = re.compile(r'^[A-Z0-9]{2,10}$')
DEFAULT_PETTY_CASH_LIMIT_CENTS = 500000
EDITABLE = ('store_code', 'store_name', 'address', 'phone', 'petty_cash_limit_cents', 'manager_id', 'is_active')


def normalize_store_code(value: Any) -> str:
    code = str(value or '').strip().upper()
    if not STORE_CODE_RE.match(code):
        raise ValidationError('store_code must be 2-10 uppercase letters or digits')
    return code


def normalize_store_fields(fields: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    """Validated column values for a create (``partial=False``) or an update."""
    row = {k: fields[k] for k in EDITABLE if k in fields}
    if not partial or 'store_code' in row:
        row['store_code'] = normalize_store_code(row.get('store_code'))
    if not partial or 'store_name' in row:
        name = (row.get('store_name') or '').strip()
        if not name:
            raise ValidationError('store_name is required')
        row['store_name'] = name
    if 'petty_cash_limit_cents' in row or not partial:
        limit = row.get('petty_cash_limit_cents')
        limit = DEFAULT_PETTY_CASH_LIMIT_CENTS if limit in (None, '') else parse_amount_cents(limit, 'petty_cash_limit_cents')
        if limit < 0:
            raise ValidationError('petty_cash_limit_cents cannot be negative')
        row['petty_cash_limit_cents'] = limit
    if 'is_active' in row:
        row['is_active'] = bool(row['is_active'])
    return row


def validate_manager(store: RecordStore, manager_id: Any) -> Dict[str, Any]:
    try:
        manager_id = int(manager_id)
    except (TypeError, ValueError):
        raise ValidationError('manager_id must be int')
    user = store.get(KIND_USER, manager_id)
    if user is None or not user.get('is_active', True):
        raise ValidationError('Manager not found')
    if user['role'] != ROLE_STORE_MANAGER:
        raise ValidationError('Assigned manager must have the store_manager role')
    return user


__all__ = ['STORE_CODE_RE', 'DEFAULT_PETTY_CASH_LIMIT_CENTS', 'normalize_store_code', 'normalize_store_fields', 'validate_manager']

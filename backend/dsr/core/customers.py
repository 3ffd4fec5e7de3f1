from __future__ import annotations
import re
from typing import Any, Dict, Mapping

from dsr.core.batch import parse_amount_cents
from dsr.core.errors import ValidationError

PHONE_RE = re.compile(r'^[+]?[\d\s\-()]+$')
EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
EDITABLE = ('customer_name', 'phone', 'email', 'address', 'credit_limit_cents', 'notes')
OUTSTANDING_OPERATIONS = ('add', 'subtract')


def normalize_customer_fields(fields: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    row = {k: fields[k] for k in EDITABLE if k in fields}
    if not partial or 'customer_name' in row:
        name = (row.get('customer_name') or '').strip()
        if not name:
            raise ValidationError('customer_name is required')
        row['customer_name'] = name
    if row.get('phone'):
        phone = str(row['phone']).strip()
        if not PHONE_RE.match(phone):
            raise ValidationError('Invalid phone number format')
        row['phone'] = phone
    elif 'phone' in row:
        row['phone'] = None
    if row.get('email'):
        email = str(row['email']).strip().lower()
        if not EMAIL_RE.match(email):
            raise ValidationError('Invalid email format')
        row['email'] = email
    elif 'email' in row:
        row['email'] = None
    if 'credit_limit_cents' in row or not partial:
        limit = parse_amount_cents(row.get('credit_limit_cents'), 'credit_limit_cents')
        if limit < 0:
            raise ValidationError('credit_limit_cents cannot be negative')
        row['credit_limit_cents'] = limit
    return row


def adjust_outstanding(customer: Mapping[str, Any], operation: str, amount_cents: Any) -> int:
    """New outstanding balance after adding a credit sale or subtracting a payment."""
    if operation not in OUTSTANDING_OPERATIONS:
        raise ValidationError('operation must be add or subtract')
    amount = parse_amount_cents(amount_cents)
    if amount <= 0:
        raise ValidationError('amount_cents must be greater than zero')
    current = int(customer.get('total_outstanding_cents') or 0)
    if operation == 'subtract':
        if amount > current:
            raise ValidationError('Payment exceeds outstanding balance')
        return current - amount
    limit = int(customer.get('credit_limit_cents') or 0)
    if limit and current + amount > limit:
        raise ValidationError('Credit limit exceeded')
    return current + amount


__all__ = ['PHONE_RE', 'EMAIL_RE', 'normalize_customer_fields', 'adjust_outstanding']

"""Customer returns. No approval workflow: a return is final when recorded."""
from __future__ import annotations
import logging
from typing import Any, Dict, Mapping

from dsr.constants.roles import KIND_CUSTOMER, KIND_RETURN, RETURN_PAYMENT_METHODS
from dsr.core.access import Actor, require, resolve_target_store
from dsr.core.batch import parse_amount_cents
from dsr.core.clock import SYSTEM_CLOCK, Clock, parse_day
from dsr.core.errors import ValidationError
from dsr.core.storage import RecordStore

logger = logging.getLogger('dsr.returns')

EDITABLE = (
    'return_date', 'customer_id', 'original_bill_reference', 'return_amount_cents',
    'return_reason', 'payment_method', 'rrn', 'notes',
)


def normalize_return_fields(fields: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    row = {k: fields[k] for k in EDITABLE if k in fields}
    if not partial or 'return_amount_cents' in row:
        amount = parse_amount_cents(row.get('return_amount_cents'), 'return_amount_cents')
        if amount <= 0:
            raise ValidationError('return_amount_cents must be greater than zero')
        row['return_amount_cents'] = amount
    if not partial or 'return_reason' in row:
        reason = (row.get('return_reason') or '').strip()
        if not reason:
            raise ValidationError('return_reason is required')
        row['return_reason'] = reason
    if row.get('payment_method') in ('', None):
        if 'payment_method' in row:
            row['payment_method'] = None
    elif row['payment_method'] not in RETURN_PAYMENT_METHODS:
        raise ValidationError('payment_method invalid')
    if 'return_date' in row:
        row['return_date'] = parse_day(row['return_date'], 'return_date')
        if row['return_date'] is None:
            del row['return_date']
    return row


def record_return(
    store: RecordStore,
    actor: Actor,
    fields: Mapping[str, Any],
    requested_store_id: Any = None,
    clock: Clock = SYSTEM_CLOCK,
) -> Dict[str, Any]:
    require(actor, KIND_RETURN, 'create')
    row = normalize_return_fields(fields)
    row['return_date'] = row.get('return_date') or clock.today()
    if row.get('customer_id') not in (None, ''):
        try:
            row['customer_id'] = int(row['customer_id'])
        except (TypeError, ValueError):
            raise ValidationError('customer_id must be int')
        if store.get(KIND_CUSTOMER, row['customer_id']) is None:
            raise ValidationError('Customer not found')
    else:
        row['customer_id'] = None
    row['store_id'] = resolve_target_store(actor, requested_store_id, store)
    row['processed_by'] = actor.id
    created = store.insert_many(KIND_RETURN, [row])[0]
    logger.info('return %s of %d recorded in store %s by user %s', created['id'], created['return_amount_cents'], row['store_id'], actor.id)
    return created


__all__ = ['normalize_return_fields', 'record_return']

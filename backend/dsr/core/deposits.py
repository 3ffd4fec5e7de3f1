"""Customer deposits.

A deposit against a sales order moves the order's ``advance_paid_cents`` by the
same amount, and the advance always stays within ``0..total_estimated``. The
advance is changed with a conditional update keyed on its previous value, so
two deposits racing on one order cannot both apply against a stale balance.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, Mapping, Optional

from dsr.constants.roles import (
    DEPOSIT_PAYMENT_METHODS, DEPOSIT_TYPE_SALES_ORDER, DEPOSIT_TYPES, KIND_CUSTOMER, KIND_DEPOSIT, KIND_SALES_ORDER,
)
from dsr.core.access import Actor, assert_record_visible, require, resolve_target_store
from dsr.core.batch import parse_amount_cents
from dsr.core.clock import SYSTEM_CLOCK, Clock, parse_day
from dsr.core.convertible import STATUS_PENDING
from dsr.core.errors import InvalidStateError, NotFoundError, ValidationError
from dsr.core.storage import RecordStore

logger = logging.getLogger('dsr.deposits')


def _positive_amount(value) -> int:
    amount = parse_amount_cents(value)
    if amount <= 0:
        raise ValidationError('amount_cents must be greater than zero')
    return amount


def _payment_method(value) -> str:
    if value not in DEPOSIT_PAYMENT_METHODS:
        raise ValidationError('payment_method must be one of ' + ', '.join(DEPOSIT_PAYMENT_METHODS))
    return value


def _customer_id(store: RecordStore, value) -> Optional[int]:
    if value in (None, ''):
        return None
    try:
        customer_id = int(value)
    except (TypeError, ValueError):
        raise ValidationError('customer_id must be int')
    if store.get(KIND_CUSTOMER, customer_id) is None:
        raise ValidationError('Customer not found')
    return customer_id


def _load(store: RecordStore, kind: str, record_id: Any) -> Dict[str, Any]:
    try:
        record_id = int(record_id)
    except (TypeError, ValueError):
        raise ValidationError(f'{kind} id must be int')
    record = store.get(kind, record_id)
    if record is None:
        raise NotFoundError(f'{kind} {record_id} not found')
    return record


def _open_order(store: RecordStore, actor: Actor, order_id: Any) -> Dict[str, Any]:
    order = _load(store, KIND_SALES_ORDER, order_id)
    assert_record_visible(actor, order)
    if order['status'] != STATUS_PENDING:
        raise InvalidStateError('Deposits can only change on pending sales orders')
    return order


def shift_advance(store: RecordStore, order: Mapping[str, Any], delta: int) -> Dict[str, Any]:
    """Move a sales order's advance by ``delta`` cents, keeping it within the order total."""
    current = int(order['advance_paid_cents'] or 0)
    total = int(order['total_estimated_amount_cents'])
    new_advance = current + delta
    if new_advance > total:
        raise ValidationError(f'Total advance ({new_advance}) would exceed order amount ({total})')
    if new_advance < 0:
        raise ValidationError('Advance paid cannot go below zero')
    updated = store.conditional_update(
        KIND_SALES_ORDER, order['id'], 'advance_paid_cents', current, {'advance_paid_cents': new_advance},
    )
    if updated is None:
        raise InvalidStateError('Sales order advance changed concurrently; retry')
    return updated


def record_deposit(
    store: RecordStore,
    actor: Actor,
    fields: Mapping[str, Any],
    requested_store_id: Any = None,
    clock: Clock = SYSTEM_CLOCK,
) -> Dict[str, Any]:
    require(actor, KIND_DEPOSIT, 'create')
    deposit_type = fields.get('deposit_type')
    if deposit_type not in DEPOSIT_TYPES:
        raise ValidationError('deposit_type must be one of ' + ', '.join(DEPOSIT_TYPES))
    row = {
        'deposit_type': deposit_type,
        'amount_cents': _positive_amount(fields.get('amount_cents')),
        'payment_method': _payment_method(fields.get('payment_method')),
        'customer_id': _customer_id(store, fields.get('customer_id')),
        'notes': (fields.get('notes') or '').strip() or None,
        'deposit_date': parse_day(fields.get('deposit_date'), 'deposit_date', default=clock.today()),
        'processed_by': actor.id,
        'sales_order_id': None,
    }
    if deposit_type == DEPOSIT_TYPE_SALES_ORDER:
        if fields.get('sales_order_id') in (None, ''):
            raise ValidationError('sales_order_id is required for sales order deposits')
        order = _open_order(store, actor, fields['sales_order_id'])
        if row['customer_id'] is not None and row['customer_id'] != order['customer_id']:
            raise ValidationError('customer_id does not match the sales order')
        row.update({'sales_order_id': order['id'], 'customer_id': order['customer_id'], 'store_id': order['store_id']})
        shift_advance(store, order, row['amount_cents'])
    else:
        row['store_id'] = resolve_target_store(actor, requested_store_id, store)
    created = store.insert_many(KIND_DEPOSIT, [row])[0]
    logger.info('deposit %s of %d (%s) recorded in store %s by user %s',
                created['id'], created['amount_cents'], deposit_type, created['store_id'], actor.id)
    return created


def update_deposit(store: RecordStore, actor: Actor, deposit_id: Any, fields: Mapping[str, Any]) -> Dict[str, Any]:
    require(actor, KIND_DEPOSIT, 'update')
    deposit = _load(store, KIND_DEPOSIT, deposit_id)
    assert_record_visible(actor, deposit)
    changes: Dict[str, Any] = {}
    if 'amount_cents' in fields:
        changes['amount_cents'] = _positive_amount(fields['amount_cents'])
    if 'payment_method' in fields:
        changes['payment_method'] = _payment_method(fields['payment_method'])
    if 'notes' in fields:
        changes['notes'] = (fields['notes'] or '').strip() or None
    if not changes:
        raise ValidationError('No editable fields supplied')
    delta = changes.get('amount_cents', deposit['amount_cents']) - deposit['amount_cents']
    order = None
    if delta and deposit['sales_order_id'] is not None:
        order = shift_advance(store, _open_order(store, actor, deposit['sales_order_id']), delta)
    updated = store.conditional_update(KIND_DEPOSIT, deposit['id'], 'amount_cents', deposit['amount_cents'], changes)
    if updated is None:
        if order is not None:
            shift_advance(store, order, -delta)
        raise InvalidStateError('Deposit changed concurrently; retry')
    logger.info('deposit %s updated by user %s', deposit['id'], actor.id)
    return updated


def delete_deposit(store: RecordStore, actor: Actor, deposit_id: Any) -> Dict[str, Any]:
    """Remove a deposit and take its amount back off the linked order's advance."""
    require(actor, KIND_DEPOSIT, 'delete')
    deposit = _load(store, KIND_DEPOSIT, deposit_id)
    assert_record_visible(actor, deposit)
    order = None
    if deposit['sales_order_id'] is not None:
        order = shift_advance(store, _open_order(store, actor, deposit['sales_order_id']), -deposit['amount_cents'])
    removed = store.delete(KIND_DEPOSIT, deposit['id'])
    if removed is None:
        if order is not None:
            shift_advance(store, order, deposit['amount_cents'])
        raise NotFoundError(f'deposit {deposit["id"]} not found')
    logger.info('deposit %s deleted by user %s', deposit['id'], actor.id)
    return removed


__all__ = ['shift_advance', 'record_deposit', 'update_deposit', 'delete_deposit']

"""Convertible records: hand bills and sales orders.

Both start pending and end either converted (an ERP bill number is attached) or
cancelled. "Overdue" is derived from the record date at read time and is never
stored.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Mapping, Optional, Sequence

from dsr.constants.roles import HAND_BILL_PAYMENT_METHODS, KIND_CUSTOMER, KIND_HAND_BILL, KIND_SALES_ORDER
from dsr.core.access import Actor, assert_record_visible, require, resolve_target_store
from dsr.core.batch import parse_amount_cents
from dsr.core.clock import SYSTEM_CLOCK, Clock, parse_day
from dsr.core.errors import DuplicateRecordError, InvalidStateError, NotFoundError, ValidationError
from dsr.core.fsm import TransitionValidator
from dsr.core.storage import RecordStore

logger = logging.getLogger('dsr.convertible')

STATUS_PENDING = 'pending'
STATUS_CONVERTED = 'converted'
STATUS_CANCELLED = 'cancelled'
ALL_STATUSES = [STATUS_PENDING, STATUS_CONVERTED, STATUS_CANCELLED]

CONVERTIBLE_FSM = TransitionValidator({
    STATUS_PENDING: {STATUS_CONVERTED, STATUS_CANCELLED},
    STATUS_CONVERTED: set(),
    STATUS_CANCELLED: set(),
})

NUMBER_ATTEMPTS = 3


@dataclass(frozen=True)
class ConvertibleKind:
    prefix: str
    number_field: str
    date_field: str
    amount_field: str
    overdue_days: int
    cancel_reason: str
    editable: Sequence[str]


CONVERTIBLES: Dict[str, ConvertibleKind] = {
    KIND_HAND_BILL: ConvertibleKind(
        'HB', 'bill_number', 'sale_date', 'total_amount_cents', 1, 'Hand bill cancelled',
        ('customer_id', 'customer_name', 'items_description', 'total_amount_cents', 'payment_method',
         'original_image_url', 'notes'),
    ),
    KIND_SALES_ORDER: ConvertibleKind(
        'SO', 'order_number', 'order_date', 'total_estimated_amount_cents', 7, 'Order cancelled',
        ('items_description', 'total_estimated_amount_cents', 'advance_paid_cents', 'delivery_date', 'notes'),
    ),
}


def convertible(kind: str) -> ConvertibleKind:
    try:
        return CONVERTIBLES[kind]
    except KeyError:
        raise ValidationError(f'{kind} is not convertible')


def document_number(prefix: str, day: date, sequence: int) -> str:
    return f'{prefix}-{day.strftime("%Y%m%d")}-{sequence:04d}'


def age_in_days(day: Optional[date], today: date) -> int:
    if day is None:
        return 0
    return (today - day).days


def is_overdue(record: Mapping[str, Any], kind: str, today: date, thresholds: Optional[Mapping[str, int]] = None) -> bool:
    spec = convertible(kind)
    if record.get('status') != STATUS_PENDING:
        return False
    threshold = (thresholds or {}).get(kind, spec.overdue_days)
    return age_in_days(parse_day(record.get(spec.date_field)), today) > threshold


def _load(store: RecordStore, kind: str, record_id: int) -> Dict[str, Any]:
    record = store.get(kind, record_id)
    if record is None:
        raise NotFoundError(f'{kind} {record_id} not found')
    return record


def _validate_amounts(kind: str, row: Dict[str, Any]):
    spec = convertible(kind)
    total = parse_amount_cents(row.get(spec.amount_field), spec.amount_field)
    if total <= 0:
        raise ValidationError(f'{spec.amount_field} must be greater than zero')
    row[spec.amount_field] = total
    if kind == KIND_SALES_ORDER:
        advance = parse_amount_cents(row.get('advance_paid_cents'), 'advance_paid_cents')
        if advance < 0 or advance > total:
            raise ValidationError('advance_paid_cents must be between 0 and the estimated total')
        row['advance_paid_cents'] = advance


def _validate_payment_method(kind: str, row: Dict[str, Any]):
    if kind != KIND_HAND_BILL or row.get('payment_method') in (None, ''):
        return
    if row['payment_method'] not in HAND_BILL_PAYMENT_METHODS:
        raise ValidationError('payment_method must be one of ' + ', '.join(HAND_BILL_PAYMENT_METHODS))


def _validate_customer(store: RecordStore, kind: str, row: Dict[str, Any]):
    customer_id = row.get('customer_id')
    if customer_id in (None, ''):
        if kind == KIND_SALES_ORDER:
            raise ValidationError('customer_id is required')
        row['customer_id'] = None
        return
    try:
        customer_id = int(customer_id)
    except (TypeError, ValueError):
        raise ValidationError('customer_id must be int')
    if store.get(KIND_CUSTOMER, customer_id) is None:
        raise ValidationError('Customer not found')
    row['customer_id'] = customer_id


def _open(store: RecordStore, actor: Actor, kind: str, fields: Mapping[str, Any],
          requested_store_id: Any, clock: Clock) -> Dict[str, Any]:
    spec = convertible(kind)
    require(actor, kind, 'create')
    # customer is fixed at creation for sales orders, so it is not in the editable set
    row = {k: fields.get(k) for k in (*spec.editable, 'customer_id') if k in fields}
    _validate_amounts(kind, row)
    _validate_payment_method(kind, row)
    _validate_customer(store, kind, row)
    if kind == KIND_SALES_ORDER:
        if not (row.get('items_description') or '').strip():
            raise ValidationError('items_description is required')
        row['delivery_date'] = parse_day(row.get('delivery_date'), 'delivery_date')
    day = parse_day(fields.get(spec.date_field), spec.date_field, default=clock.today())
    store_id = resolve_target_store(actor, requested_store_id, store)
    row.update({
        spec.date_field: day,
        'store_id': store_id,
        'status': STATUS_PENDING,
        'created_by': actor.id,
    })
    sequence = len(store.find(kind, store_id=store_id, **{spec.date_field: day})) + 1
    for attempt in range(NUMBER_ATTEMPTS):
        row[spec.number_field] = document_number(spec.prefix, day, sequence + attempt)
        try:
            created = store.insert_many(kind, [row])[0]
        except DuplicateRecordError:
            if attempt == NUMBER_ATTEMPTS - 1:
                raise
            continue
        logger.info('%s %s opened in store %s by user %s', kind, created[spec.number_field], store_id, actor.id)
        return created


def open_hand_bill(store: RecordStore, actor: Actor, fields: Mapping[str, Any],
                   requested_store_id: Any = None, clock: Clock = SYSTEM_CLOCK) -> Dict[str, Any]:
    return _open(store, actor, KIND_HAND_BILL, fields, requested_store_id, clock)


def open_sales_order(store: RecordStore, actor: Actor, fields: Mapping[str, Any],
                     requested_store_id: Any = None, clock: Clock = SYSTEM_CLOCK) -> Dict[str, Any]:
    return _open(store, actor, KIND_SALES_ORDER, fields, requested_store_id, clock)


def update_pending(store: RecordStore, kind: str, record_id: int, actor: Actor, fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Edit a record's details; only pending records may change."""
    spec = convertible(kind)
    require(actor, kind, 'update')
    record = _load(store, kind, record_id)
    assert_record_visible(actor, record)
    if record['status'] != STATUS_PENDING:
        raise InvalidStateError(f'Only pending {kind} records can be edited')
    changes = {k: fields[k] for k in spec.editable if k in fields}
    if not changes:
        raise ValidationError('No editable fields supplied')
    merged = dict(record)
    merged.update(changes)
    _validate_amounts(kind, merged)
    _validate_payment_method(kind, merged)
    _validate_customer(store, kind, merged)
    if 'delivery_date' in changes:
        merged['delivery_date'] = parse_day(changes['delivery_date'], 'delivery_date')
    changes = {k: merged[k] for k in changes}
    updated = store.conditional_update(kind, record_id, 'status', STATUS_PENDING, changes)
    if updated is None:
        raise InvalidStateError(f'Only pending {kind} records can be edited')
    return updated


def convert(
    store: RecordStore,
    kind: str,
    record_id: int,
    erp_bill_number: Optional[str],
    actor: Actor,
    notes: Optional[str] = None,
    extra: Optional[Mapping[str, Any]] = None,
    clock: Clock = SYSTEM_CLOCK,
) -> Dict[str, Any]:
    convertible(kind)
    erp_bill_number = (erp_bill_number or '').strip()
    if not erp_bill_number:
        raise ValidationError('erp_sale_bill_number is required')
    require(actor, kind, 'convert')
    record = _load(store, kind, record_id)
    assert_record_visible(actor, record)
    CONVERTIBLE_FSM.assert_can_transition(record['status'], STATUS_CONVERTED)
    changes = dict(extra or {})
    changes.update({
        'status': STATUS_CONVERTED,
        'erp_sale_bill_number': erp_bill_number,
        'conversion_date': clock.now(),
        'converted_by': actor.id,
        'conversion_notes': notes,
    })
    updated = store.conditional_update(kind, record_id, 'status', STATUS_PENDING, changes)
    if updated is None:
        raise InvalidStateError(f'{kind} {record_id} is no longer pending')
    logger.info('%s %s converted to %s by user %s', kind, record_id, erp_bill_number, actor.id)
    return updated


def cancel(store: RecordStore, kind: str, record_id: int, actor: Actor, reason: Optional[str] = None) -> Dict[str, Any]:
    spec = convertible(kind)
    require(actor, kind, 'cancel')
    record = _load(store, kind, record_id)
    assert_record_visible(actor, record)
    CONVERTIBLE_FSM.assert_can_transition(record['status'], STATUS_CANCELLED)
    changes = {
        'status': STATUS_CANCELLED,
        'cancel_reason': (reason or '').strip() or spec.cancel_reason,
        'cancelled_by': actor.id,
    }
    updated = store.conditional_update(kind, record_id, 'status', STATUS_PENDING, changes)
    if updated is None:
        raise InvalidStateError(f'{kind} {record_id} is no longer pending')
    logger.info('%s %s cancelled by user %s', kind, record_id, actor.id)
    return updated


__all__ = [
    'STATUS_PENDING', 'STATUS_CONVERTED', 'STATUS_CANCELLED', 'ALL_STATUSES', 'CONVERTIBLE_FSM',
    'CONVERTIBLES', 'convertible', 'document_number', 'age_in_days', 'is_overdue',
    'open_hand_bill', 'open_sales_order', 'update_pending', 'convert', 'cancel',
]

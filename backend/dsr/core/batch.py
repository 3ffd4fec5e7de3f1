"""Batch entry reducer for the daily grid screens.

A grid is a fixed, ordered list of slots (tender types for sales, categories
for expenses). Unfilled slots are dropped and every surviving slot becomes one
record carrying the shared fields (date, store). The reducer is pure;
persisting the result all-or-nothing is up to the storage collaborator.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from dsr.constants.roles import EXPENSE_CATEGORIES
from dsr.core.errors import ValidationError

SALE_TENDER_SLOTS = ('cash', 'credit', 'credit_card', 'upi')
EXPENSE_CATEGORY_SLOTS = tuple(EXPENSE_CATEGORIES)


@dataclass
class Slot:
    key: str
    amount_cents: int = 0
    fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def description(self) -> str:
        return (self.fields.get('description') or '').strip()


def blank_slots(keys: Sequence[str]) -> List[Slot]:
    return [Slot(key=k) for k in keys]


def parse_amount_cents(value: Any, name: str = 'amount_cents') -> int:
    if value in (None, ''):
        return 0
    if isinstance(value, bool):
        raise ValidationError(f'{name} must be int')
    try:
        as_float = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be int')
    if not as_float.is_integer():
        raise ValidationError(f'{name} must be int')
    return int(as_float)


def parse_slots(raw: Iterable[Mapping[str, Any]], key_field: str, allowed_keys: Sequence[str]) -> List[Slot]:
    """Turn request rows into slots in grid order; unknown or repeated keys are rejected."""
    by_key: Dict[str, Slot] = {}
    for item in raw or []:
        if not isinstance(item, Mapping):
            raise ValidationError('entries must be objects')
        key = item.get(key_field)
        if key not in allowed_keys:
            raise ValidationError(f'{key_field} invalid: {key}')
        if key in by_key:
            raise ValidationError(f'Duplicate {key_field}: {key}')
        extra = {k: v for k, v in item.items() if k not in (key_field, 'amount_cents')}
        by_key[key] = Slot(key=key, amount_cents=parse_amount_cents(item.get('amount_cents')), fields=extra)
    return [by_key[k] for k in allowed_keys if k in by_key]


def reduce_to_records(
    slots: Sequence[Slot],
    shared_fields: Mapping[str, Any],
    key_field: str = 'tender_type',
    require_description: bool = False,
    empty_message: Optional[str] = None,
) -> List[Dict[str, Any]]:
    records = []
    for slot in slots:
        if slot.amount_cents <= 0:
            continue
        if require_description and not slot.description:
            continue
        record = dict(shared_fields)
        record.update(slot.fields)
        record[key_field] = slot.key
        record['amount_cents'] = slot.amount_cents
        if require_description:
            record['description'] = slot.description
        records.append(record)
    if not records:
        raise ValidationError(empty_message or 'Enter at least one entry with an amount greater than zero')
    return records


__all__ = [
    'Slot', 'SALE_TENDER_SLOTS', 'EXPENSE_CATEGORY_SLOTS', 'blank_slots',
    'parse_amount_cents', 'parse_slots', 'reduce_to_records',
]

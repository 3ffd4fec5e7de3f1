"""Approval state machine for Sales and Expenses.

pending -> approved | rejected; both terminal. Re-deciding a record is an
InvalidStateError, never a silent no-op, and every decision is a single
conditional update gated on ``approval_status == pending``.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from dsr.constants.roles import EXPENSE_CATEGORIES, EXPENSE_PAYMENT_METHODS, KIND_EXPENSE, KIND_SALE, TENDER_TYPES
from dsr.core.access import Actor, assert_record_visible, can, require, resolve_target_store
from dsr.core.batch import EXPENSE_CATEGORY_SLOTS, SALE_TENDER_SLOTS, Slot, parse_amount_cents, reduce_to_records
from dsr.core.clock import SYSTEM_CLOCK, Clock, parse_day
from dsr.core.errors import DomainError, ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from dsr.core.fsm import TransitionValidator
from dsr.core.storage import RecordStore

logger = logging.getLogger('dsr.approval')

STATUS_PENDING = 'pending'
STATUS_APPROVED = 'approved'
STATUS_REJECTED = 'rejected'
DECISIONS = (STATUS_APPROVED, STATUS_REJECTED)

APPROVAL_FSM = TransitionValidator({
    STATUS_PENDING: {STATUS_APPROVED, STATUS_REJECTED},
    STATUS_APPROVED: set(),
    STATUS_REJECTED: set(),
}, field_name='approval_status')


@dataclass(frozen=True)
class ApprovableKind:
    actor_field: str
    date_field: str
    key_field: str
    allowed_keys: Sequence[str]
    slot_keys: Sequence[str]
    columns: Sequence[str]
    require_description: bool = False


APPROVABLE: Dict[str, ApprovableKind] = {
    KIND_SALE: ApprovableKind(
        'entered_by', 'sale_date', 'tender_type', TENDER_TYPES, SALE_TENDER_SLOTS,
        ('sale_date', 'tender_type', 'amount_cents', 'transaction_reference', 'customer_reference', 'notes'),
    ),
    KIND_EXPENSE: ApprovableKind(
        'requested_by', 'expense_date', 'category', EXPENSE_CATEGORIES, EXPENSE_CATEGORY_SLOTS,
        ('expense_date', 'category', 'amount_cents', 'description', 'payment_method', 'voucher_number',
         'receipt_number', 'expense_owner', 'notes'),
        require_description=True,
    ),
}


@dataclass
class BulkOutcome:
    record_id: Any
    ok: bool
    status: int = 200
    error: Optional[str] = None
    record: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {'id': self.record_id, 'ok': self.ok, 'status': self.status}
        if self.error:
            out['error'] = self.error
        if self.record is not None:
            out['approval_status'] = self.record.get('approval_status')
        return out


def approvable(kind: str) -> ApprovableKind:
    try:
        return APPROVABLE[kind]
    except KeyError:
        raise ValidationError(f'{kind} does not support approval')


def _clean_fields(kind: str, spec: ApprovableKind, fields: Mapping[str, Any], clock: Clock) -> Dict[str, Any]:
    row = {k: fields[k] for k in spec.columns if k in fields}
    amount = parse_amount_cents(fields.get('amount_cents'))
    if amount <= 0:
        raise ValidationError('amount_cents must be greater than zero')
    row['amount_cents'] = amount
    if row.get(spec.key_field) not in spec.allowed_keys:
        raise ValidationError(f'{spec.key_field} invalid')
    row[spec.date_field] = parse_day(fields.get(spec.date_field), spec.date_field, default=clock.today())
    if kind == KIND_EXPENSE:
        description = (row.get('description') or '').strip()
        if not description:
            raise ValidationError('description is required')
        row['description'] = description
        row['payment_method'] = row.get('payment_method') or 'petty_cash'
        if row['payment_method'] not in EXPENSE_PAYMENT_METHODS:
            raise ValidationError('payment_method invalid')
    return row


def submit_for_approval(
    store: RecordStore,
    actor: Actor,
    kind: str,
    fields: Mapping[str, Any],
    requested_store_id: Any = None,
    clock: Clock = SYSTEM_CLOCK,
) -> Dict[str, Any]:
    spec = approvable(kind)
    require(actor, kind, 'create')
    row = _clean_fields(kind, spec, fields, clock)
    row['store_id'] = resolve_target_store(actor, requested_store_id, store)
    row['approval_status'] = STATUS_PENDING
    row[spec.actor_field] = actor.id
    created = store.insert_many(kind, [row])[0]
    logger.info('%s %s submitted by user %s', kind, created['id'], actor.id)
    return created


def submit_batch(
    store: RecordStore,
    actor: Actor,
    kind: str,
    slots: Sequence[Slot],
    shared_fields: Mapping[str, Any],
    requested_store_id: Any = None,
    clock: Clock = SYSTEM_CLOCK,
) -> List[Dict[str, Any]]:
    """Reduce a grid to records and persist them in one all-or-nothing insert."""
    spec = approvable(kind)
    require(actor, kind, 'create')
    store_id = resolve_target_store(actor, requested_store_id, store)
    records = reduce_to_records(slots, shared_fields, key_field=spec.key_field, require_description=spec.require_description)
    rows = []
    for record in records:
        row = _clean_fields(kind, spec, record, clock)
        row.update({'store_id': store_id, 'approval_status': STATUS_PENDING, spec.actor_field: actor.id})
        rows.append(row)
    created = store.insert_many(kind, rows)
    logger.info('%s batch of %d submitted by user %s for store %s', kind, len(created), actor.id, store_id)
    return created


def update_pending(
    store: RecordStore,
    kind: str,
    record_id: int,
    actor: Actor,
    fields: Mapping[str, Any],
    clock: Clock = SYSTEM_CLOCK,
) -> Dict[str, Any]:
    """Edit an undecided entry. Cashiers may only touch their own entries."""
    spec = approvable(kind)
    require(actor, kind, 'update')
    record = store.get(kind, record_id)
    if record is None:
        raise NotFoundError(f'{kind} {record_id} not found')
    assert_record_visible(actor, record)
    if record[spec.actor_field] != actor.id and not can(actor, kind, 'edit_any'):
        raise ForbiddenError('Only the author can edit this entry')
    if record['approval_status'] != STATUS_PENDING:
        raise InvalidStateError(f'Only pending {kind} entries can be edited')
    changed = [k for k in spec.columns if k in fields]
    if not changed:
        raise ValidationError('No editable fields supplied')
    merged = dict(record)
    merged.update({k: fields[k] for k in changed})
    cleaned = _clean_fields(kind, spec, merged, clock)
    changes = {k: cleaned.get(k) for k in changed}
    updated = store.conditional_update(kind, record_id, 'approval_status', STATUS_PENDING, changes)
    if updated is None:
        raise InvalidStateError(f'{kind} {record_id} has already been decided')
    logger.info('%s %s edited by user %s', kind, record_id, actor.id)
    return updated


def decide(
    store: RecordStore,
    kind: str,
    record_id: int,
    decision: str,
    actor: Actor,
    notes: Optional[str] = None,
    clock: Clock = SYSTEM_CLOCK,
) -> Dict[str, Any]:
    approvable(kind)
    if decision not in DECISIONS:
        raise ValidationError('approval_status must be approved or rejected')
    require(actor, kind, 'approve')
    record = store.get(kind, record_id)
    if record is None:
        raise NotFoundError(f'{kind} {record_id} not found')
    assert_record_visible(actor, record)
    APPROVAL_FSM.assert_can_transition(record['approval_status'], decision)
    changes = {
        'approval_status': decision,
        'approved_by': actor.id,
        'approved_at': clock.now(),
        'approval_notes': notes,
    }
    updated = store.conditional_update(kind, record_id, 'approval_status', STATUS_PENDING, changes)
    if updated is None:
        # another approver got there between the read and the update
        raise InvalidStateError(f'{kind} {record_id} has already been decided')
    logger.info('%s %s %s by user %s', kind, record_id, decision, actor.id)
    return updated


def bulk_decide(
    store: RecordStore,
    kind: str,
    record_ids: Iterable[Any],
    decision: str,
    actor: Actor,
    notes: Optional[str] = None,
    clock: Clock = SYSTEM_CLOCK,
) -> List[BulkOutcome]:
    """Decide each id independently; failures never undo earlier successes."""
    approvable(kind)
    if decision not in DECISIONS:
        raise ValidationError('approval_status must be approved or rejected')
    require(actor, kind, 'approve')
    outcomes = []
    for raw_id in record_ids:
        try:
            record_id = int(raw_id)
        except (TypeError, ValueError):
            outcomes.append(BulkOutcome(raw_id, False, 400, 'id must be int'))
            continue
        try:
            updated = decide(store, kind, record_id, decision, actor, notes=notes, clock=clock)
        except DomainError as e:
            outcomes.append(BulkOutcome(record_id, False, e.status_code, e.message))
            continue
        outcomes.append(BulkOutcome(record_id, True, 200, record=updated))
    succeeded = sum(1 for o in outcomes if o.ok)
    logger.info('bulk %s of %d %s records: %d succeeded', decision, len(outcomes), kind, succeeded)
    return outcomes


__all__ = [
    'STATUS_PENDING', 'STATUS_APPROVED', 'STATUS_REJECTED', 'DECISIONS', 'APPROVAL_FSM',
    'APPROVABLE', 'BulkOutcome', 'approvable', 'submit_for_approval', 'submit_batch',
    'update_pending', 'decide', 'bulk_decide',
]

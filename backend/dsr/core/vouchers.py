"""Gift voucher lifecycle.

active -> redeemed | expired | cancelled, all terminal. Redemption always takes
the full balance; partial redemption is not offered.
"""
from __future__ import annotations
import logging
import re
from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional

from dsr.constants.roles import KIND_GIFT_VOUCHER, VOUCHER_TYPES
from dsr.core.access import Actor, assert_record_visible, require, resolve_target_store
from dsr.core.batch import parse_amount_cents
from dsr.core.clock import SYSTEM_CLOCK, Clock, parse_day
from dsr.core.errors import InvalidStateError, NotFoundError, ValidationError
from dsr.core.fsm import TransitionValidator
from dsr.core.storage import RecordStore

logger = logging.getLogger('dsr.vouchers')

STATUS_ACTIVE = 'active'
STATUS_REDEEMED = 'redeemed'
STATUS_EXPIRED = 'expired'
STATUS_CANCELLED = 'cancelled'
ALL_STATUSES = [STATUS_ACTIVE, STATUS_REDEEMED, STATUS_EXPIRED, STATUS_CANCELLED]

VOUCHER_FSM = TransitionValidator({
    STATUS_ACTIVE: {STATUS_REDEEMED, STATUS_EXPIRED, STATUS_CANCELLED},
    STATUS_REDEEMED: set(),
    STATUS_EXPIRED: set(),
    STATUS_CANCELLED: set(),
})

DEFAULT_VALIDITY_DAYS = 365
VOUCHER_NUMBER_RE = re.compile(r'^[A-Z0-9\-]{4,32}$')


def find_voucher(store: RecordStore, voucher_number: str) -> Dict[str, Any]:
    number = (voucher_number or '').strip().upper()
    rows = store.find(KIND_GIFT_VOUCHER, voucher_number=number)
    if not rows:
        raise NotFoundError(f'Voucher {number} not found')
    return rows[0]


def issue_voucher(
    store: RecordStore,
    actor: Actor,
    fields: Mapping[str, Any],
    requested_store_id: Any = None,
    clock: Clock = SYSTEM_CLOCK,
) -> Dict[str, Any]:
    require(actor, KIND_GIFT_VOUCHER, 'issue')
    number = (fields.get('voucher_number') or '').strip().upper()
    if not VOUCHER_NUMBER_RE.match(number):
        raise ValidationError('voucher_number must be 4-32 uppercase letters, digits or dashes')
    amount = parse_amount_cents(fields.get('original_amount_cents'), 'original_amount_cents')
    if amount <= 0:
        raise ValidationError('original_amount_cents must be greater than zero')
    voucher_type = fields.get('voucher_type') or 'gift'
    if voucher_type not in VOUCHER_TYPES:
        raise ValidationError('voucher_type invalid')
    issued = parse_day(fields.get('issued_date'), 'issued_date', default=clock.today())
    expiry = parse_day(fields.get('expiry_date'), 'expiry_date', default=issued + timedelta(days=DEFAULT_VALIDITY_DAYS))
    if expiry < issued:
        raise ValidationError('expiry_date cannot be before issued_date')
    row = {
        'voucher_number': number,
        'store_id': resolve_target_store(actor, requested_store_id, store),
        'original_amount_cents': amount,
        'current_balance_cents': amount,
        'status': STATUS_ACTIVE,
        'voucher_type': voucher_type,
        'issued_date': issued,
        'expiry_date': expiry,
        'customer_name': fields.get('customer_name'),
        'customer_phone': fields.get('customer_phone'),
        'issued_by': actor.id,
    }
    created = store.insert_many(KIND_GIFT_VOUCHER, [row])[0]
    logger.info('voucher %s issued for %d by user %s', number, amount, actor.id)
    return created


def redeem(store: RecordStore, voucher_number: str, actor: Actor, clock: Clock = SYSTEM_CLOCK) -> Dict[str, Any]:
    """Redeem the whole remaining balance; the returned row carries ``redeemed_amount_cents``."""
    require(actor, KIND_GIFT_VOUCHER, 'redeem')
    voucher = find_voucher(store, voucher_number)
    assert_record_visible(actor, voucher)
    VOUCHER_FSM.assert_can_transition(voucher['status'], STATUS_REDEEMED)
    if parse_day(voucher['expiry_date']) < clock.today():
        raise InvalidStateError('Voucher has expired')
    changes = {
        'status': STATUS_REDEEMED,
        'current_balance_cents': 0,
        'redeemed_at': clock.now(),
        'redeemed_by': actor.id,
    }
    updated = store.conditional_update(KIND_GIFT_VOUCHER, voucher['id'], 'status', STATUS_ACTIVE, changes)
    if updated is None:
        raise InvalidStateError('Voucher is no longer active')
    updated['redeemed_amount_cents'] = voucher['current_balance_cents']
    logger.info('voucher %s redeemed for %d by user %s', voucher['voucher_number'], voucher['current_balance_cents'], actor.id)
    return updated


def cancel_voucher(store: RecordStore, voucher_number: str, actor: Actor, reason: Optional[str] = None) -> Dict[str, Any]:
    require(actor, KIND_GIFT_VOUCHER, 'cancel')
    voucher = find_voucher(store, voucher_number)
    assert_record_visible(actor, voucher)
    VOUCHER_FSM.assert_can_transition(voucher['status'], STATUS_CANCELLED)
    changes = {
        'status': STATUS_CANCELLED,
        'cancel_reason': (reason or '').strip() or 'Voucher cancelled',
        'cancelled_by': actor.id,
    }
    updated = store.conditional_update(KIND_GIFT_VOUCHER, voucher['id'], 'status', STATUS_ACTIVE, changes)
    if updated is None:
        raise InvalidStateError('Voucher is no longer active')
    logger.info('voucher %s cancelled by user %s', voucher['voucher_number'], actor.id)
    return updated


def update_expired(store: RecordStore, clock: Clock = SYSTEM_CLOCK) -> List[int]:
    """Move every active voucher past its expiry date to expired; returns the ids moved."""
    today = clock.today()
    expired = []
    for voucher in store.find(KIND_GIFT_VOUCHER, status=STATUS_ACTIVE):
        if parse_day(voucher['expiry_date']) >= today:
            continue
        # a voucher redeemed meanwhile simply fails the condition and is skipped
        if store.conditional_update(KIND_GIFT_VOUCHER, voucher['id'], 'status', STATUS_ACTIVE, {'status': STATUS_EXPIRED}):
            expired.append(voucher['id'])
    logger.info('expired %d vouchers as of %s', len(expired), today.isoformat())
    return expired


__all__ = [
    'STATUS_ACTIVE', 'STATUS_REDEEMED', 'STATUS_EXPIRED', 'STATUS_CANCELLED', 'ALL_STATUSES',
    'VOUCHER_FSM', 'find_voucher', 'issue_voucher', 'redeem', 'cancel_voucher', 'update_expired',
]

"""Injectable time source.

Core code never calls ``datetime.now()`` or ``date.today()`` directly; it is
handed a Clock. ``SystemClock`` is the production source, ``FixedClock`` keeps
tests deterministic (cache expiry, overdue classification, voucher expiry).
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from dsr.core.errors import ValidationError


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""
        ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Clock frozen at a given instant until moved with ``advance`` or ``set``."""

    def __init__(self, at: Optional[datetime] = None):
        self._at = _aware(at or datetime(2025, 1, 15, 9, 0, 0, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self._at

    def set(self, at: datetime) -> None:
        self._at = _aware(at)

    def advance(self, seconds: float = 0, days: int = 0) -> datetime:
        self._at = self._at + timedelta(days=days, seconds=seconds)
        return self._at


def _aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_day(value, field_name: str = 'date', default: Optional[date] = None) -> Optional[date]:
    """Accept a ``date``, a ``datetime`` or an ISO ``YYYY-MM-DD`` string."""
    if value in (None, ''):
        return default
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f'{field_name} must be YYYY-MM-DD')


SYSTEM_CLOCK = SystemClock()

__all__ = ['Clock', 'SystemClock', 'FixedClock', 'SYSTEM_CLOCK', 'parse_day']

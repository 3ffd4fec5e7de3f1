"""Storage collaborator contract used by the core workflows.

Each call is atomic on its own. State transitions go through
``conditional_update`` so two actors racing on the same record cannot both win:
the loser gets ``None`` back and the caller turns that into an
``InvalidStateError``.
"""
from __future__ import annotations
import copy
import threading
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from dsr.core.errors import DuplicateRecordError

Row = Dict[str, Any]

# Natural keys enforced by every implementation (SQL mirrors them as unique constraints)
UNIQUE_KEYS: Dict[str, List[Tuple[str, ...]]] = {
    'store': [('store_code',)],
    'user': [('username',)],
    'customer': [('phone',)],
    'gift_voucher': [('voucher_number',)],
    'hand_bill': [('store_id', 'bill_number')],
    'sales_order': [('store_id', 'order_number')],
}


class RecordStore(Protocol):

    def get(self, kind: str, record_id: int) -> Optional[Row]:
        ...

    def find(self, kind: str, **match: Any) -> List[Row]:
        ...

    def conditional_update(self, kind: str, record_id: int, field: str, expected: Any, changes: Row) -> Optional[Row]:
        ...

    def insert_many(self, kind: str, rows: Iterable[Row]) -> List[Row]:
        ...

    def delete(self, kind: str, record_id: int) -> Optional[Row]:
        ...


class InMemoryStore:
    """Dict backed RecordStore guarded by a single lock."""

    def __init__(self):
        self._tables: Dict[str, Dict[int, Row]] = {}
        self._next_id: Dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, kind: str, record_id: int) -> Optional[Row]:
        with self._lock:
            row = self._tables.get(kind, {}).get(record_id)
            return copy.deepcopy(row) if row is not None else None

    def find(self, kind: str, **match: Any) -> List[Row]:
        with self._lock:
            rows = self._tables.get(kind, {}).values()
            return [copy.deepcopy(r) for r in rows if all(r.get(k) == v for k, v in match.items())]

    def conditional_update(self, kind: str, record_id: int, field: str, expected: Any, changes: Row) -> Optional[Row]:
        with self._lock:
            row = self._tables.get(kind, {}).get(record_id)
            if row is None or row.get(field) != expected:
                return None
            row.update(changes)
            return copy.deepcopy(row)

    def insert_many(self, kind: str, rows: Iterable[Row]) -> List[Row]:
        rows = [dict(r) for r in rows]
        with self._lock:
            table = self._tables.setdefault(kind, {})
            self._check_unique(kind, table.values(), rows)
            next_id = self._next_id.get(kind, 1)
            created = []
            for row in rows:
                row.setdefault('id', next_id)
                next_id = max(next_id, row['id']) + 1
                created.append(row)
            for row in created:
                table[row['id']] = row
            self._next_id[kind] = next_id
            return [copy.deepcopy(r) for r in created]

    def delete(self, kind: str, record_id: int) -> Optional[Row]:
        with self._lock:
            return self._tables.get(kind, {}).pop(record_id, None)

    @staticmethod
    def _check_unique(kind: str, existing: Iterable[Row], incoming: List[Row]):
        for key in UNIQUE_KEYS.get(kind, []):
            seen = {tuple(r.get(k) for k in key) for r in existing}
            for row in incoming:
                value = tuple(row.get(k) for k in key)
                if None in value:
                    continue
                if value in seen:
                    raise DuplicateRecordError(f'{kind} with {", ".join(key)} {value} already exists')
                seen.add(value)


__all__ = ['Row', 'RecordStore', 'InMemoryStore', 'UNIQUE_KEYS']

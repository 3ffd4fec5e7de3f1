from __future__ import annotations
from datetime import date, datetime
from typing import Any, Dict, Iterable, Mapping, Optional


def _plain(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def row_json(row: Any, fields: Optional[Iterable[str]] = None, **extra: Any) -> Dict[str, Any]:
    """JSON-safe dict from a model instance or a record-store row."""
    if not isinstance(row, Mapping):
        row = {c.key: getattr(row, c.key) for c in row.__table__.columns}
    keys = list(fields) if fields is not None else [k for k in row if k != 'password_hash']
    out = {k: _plain(row.get(k)) for k in keys}
    out.update({k: _plain(v) for k, v in extra.items()})
    return out

"""JSON line logging for the dsr namespace."""
from __future__ import annotations
import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict

LOGGER_PREFIX = 'dsr'

_STDLIB_KEYS = frozenset(vars(logging.LogRecord('', 0, '', 0, '', (), None)).keys()) | {'message', 'taskName'}


class JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra=`` fields are merged into the envelope."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            'ts': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val
        if record.exc_info and record.exc_info[1] is not None:
            payload['exc_type'] = type(record.exc_info[1]).__name__
            payload['traceback'] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_default)


def _json_default(obj: Any):
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return str(obj)


def configure_logging(level: str = 'INFO', json_lines: bool = True) -> logging.Logger:
    """Attach a single stream handler to the ``dsr`` logger; safe to call repeatedly."""
    root = logging.getLogger(LOGGER_PREFIX)
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    handler = next((h for h in root.handlers if getattr(h, '_dsr_handler', False)), None)
    if handler is None:
        handler = logging.StreamHandler()
        handler._dsr_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    if json_lines:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s'))
    return root


__all__ = ['JsonFormatter', 'configure_logging', 'LOGGER_PREFIX']

"""Audit logging decorator to keep add_audit() calls out of route handlers.

Usage examples:

@audit_log('SALE.CREATE', entity='Sale', entity_id_key='id', meta_keys=['tender_type', 'amount_cents'])
def create_sale():
    ... return _sale_json(row), 201

@audit_log('SALE.BULK_DECIDE', entity='Sale',
           meta_builder=lambda data, rv, args, kwargs: {'succeeded': data.get('succeeded')})
def bulk_decide_sales(): ...

Parameters:
  action: required audit action code (e.g. SALE.CREATE)
  entity: optional entity label (Sale, HandBill, GiftVoucher)
  entity_id_key: key in the returned JSON object whose value becomes entity_id.
  entity_id_arg: name of the path parameter to use for entity_id (fallback if entity_id_key absent).
  meta_keys: list of keys to project from returned JSON into meta dict (shallow copy).
  meta_builder: callable returning a meta dict; receives (data, original_return_value, args, kwargs).
    If provided it overrides meta_keys.
  diff_keys / pre_fetch: pre_fetch(args, kwargs) snapshots the record before the handler runs;
    keys in diff_keys whose value changed are recorded under meta['changes'].

Only successful (< 400) responses are audited. The view's own return value is always passed
through untouched; a failure while writing the audit row is logged, never raised.
"""
from __future__ import annotations
import logging
from functools import wraps
from typing import Any, Callable, Dict, Iterable, Optional

from dsr.services.audit import add_audit
from dsr import get_db

logger = logging.getLogger('dsr.audit')


def _extract_payload(rv: Any):
    """Return (data, status) where data is the JSON-able dict for inspection."""
    if isinstance(rv, tuple) and rv:
        status = rv[1] if len(rv) > 1 and isinstance(rv[1], int) else 200
        return rv[0], status
    return rv, getattr(rv, 'status_code', 200)


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = 'id',
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before_snapshot = pre_fetch(args, kwargs) if (diff_keys and pre_fetch) else None
            rv = fn(*args, **kwargs)
            data, status = _extract_payload(rv)
            if status >= 400:
                return rv
            try:
                if not isinstance(data, dict):
                    data = {}
                entity_id = None
                if entity_id_key and entity_id_key in data:
                    entity_id = data.get(entity_id_key)
                elif entity_id_arg and entity_id_arg in kwargs:
                    entity_id = kwargs.get(entity_id_arg)
                if meta_builder:
                    meta = meta_builder(data, rv, args, kwargs)
                elif meta_keys:
                    meta = {k: data.get(k) for k in meta_keys if k in data}
                else:
                    meta = {}
                if diff_keys and isinstance(before_snapshot, dict):
                    changes = {
                        k: {'before': before_snapshot.get(k), 'after': data.get(k)}
                        for k in diff_keys
                        if k in before_snapshot and k in data and before_snapshot.get(k) != data.get(k)
                    }
                    if changes:
                        meta['changes'] = changes
                add_audit(action, entity, entity_id, meta, store_id=data.get('store_id'))
                get_db().commit()
            except Exception:
                get_db().rollback()
                logger.exception('audit write failed for %s', action)
            return rv
        return wrapper
    return outer

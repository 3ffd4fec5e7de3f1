from __future__ import annotations
from typing import Any, Dict, Optional
from flask import g
from dsr import get_db
from dsr.models.audit import AuditLog


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[Any] = None,
              meta: Optional[Dict[str, Any]] = None, store_id: Optional[int] = None):
    """Persist an audit log entry within the current DB session.

    Parameters:
      action: short action code e.g. SALE.CREATE, SALE.DECIDE, HAND_BILL.CONVERT
      entity: optional entity name (Sale, HandBill, etc.)
      entity_id: optional primary key
      meta: additional JSON-safe dictionary (will be shallow copied)
      store_id: store the audited record belongs to, when there is one
    """
    session = get_db()
    actor = getattr(g, 'dsr_actor', None)
    log = AuditLog(
        actor_user_id=actor.id if actor else 0,
        actor_role=actor.role if actor else None,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        store_id=store_id,
        meta=dict(meta or {}),
    )
    session.add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log

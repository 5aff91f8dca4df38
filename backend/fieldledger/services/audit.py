from __future__ import annotations
from decimal import Decimal
from typing import Any, Dict, Optional
from fieldledger.models.audit import AuditLog
from fieldledger.models.base import money_number
from fieldledger.services.permissions import serialize_permissions


def _json_safe(value):
    if isinstance(value, Decimal):
        return money_number(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def add_audit(session, action: str, entity: Optional[str] = None, entity_id: Optional[Any] = None,
              meta: Optional[Dict[str, Any]] = None, principal=None):
    """Persist an audit log entry within ``session``.

    Parameters:
      action: short action code e.g. REQUEST.APPROVE, ADMIN.UPDATE
      entity: optional entity name (Employee, StockRequest, etc.)
      entity_id: optional primary key
      meta: additional dictionary; Decimal money is stored as a JSON number
      principal: acting admin; 0 is recorded when absent
    """
    log = AuditLog(
        actor_admin_id=principal.id if principal is not None else 0,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        role_snapshot=principal.role if principal is not None else None,
        perms_snapshot=serialize_permissions(principal.permissions) if principal is not None else {},
        meta=_json_safe(dict(meta or {})),
    )
    session.add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log

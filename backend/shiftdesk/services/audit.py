from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from shiftdesk.models.audit_log import AuditLog

log = logging.getLogger("shiftdesk.audit")


def log_audit(
    db: Session,
    *,
    actor_id: int | None,
    action: str,
    entity: str,
    entity_id: int | str,
    meta: dict[str, Any] | None = None,
) -> AuditLog:
    """Append an audit row inside the caller's transaction."""
    row = AuditLog(
        actor_id=actor_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id),
        meta=meta or {},
    )
    db.add(row)
    log.debug("audit %s %s#%s actor=%s", action, entity, entity_id, actor_id)
    return row

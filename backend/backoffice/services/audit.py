import logging

from sqlalchemy.orm import Session
from backoffice.models.audit_log import AuditLog
from backoffice.models.user import User

log = logging.getLogger(__name__)

# every audited action and the kind of row its entity_id points at
ENTITY_BY_ACTION = {
    "user.create": "user",
    "user.update": "user",
    "user.delete": "user",
    "pending_user.approve": "pending_user",
    "pending_user.reject": "pending_user",
    "ledger.upload": "ledger_upload",
    "ledger.delete": "ledger_entry",
}


def log_event(
    s: Session,
    actor: User,
    action: str,
    entity_id: int | None = None,
    details: dict | None = None,
) -> AuditLog:
    if action not in ENTITY_BY_ACTION:
        raise ValueError(f"unknown audit action: {action}")
    row = AuditLog(
        actor_id=actor.id,
        actor_email=actor.email,
        action=action,
        entity_type=ENTITY_BY_ACTION[action],
        entity_id=entity_id,
        details=details or None,
    )
    s.add(row)
    s.commit()
    log.info("audit %s by=%s entity_id=%s", action, actor.email, entity_id)
    return row

from typing import Optional
from sqlmodel import Session
from algomakers.models.audit_model import AuditLog, AuditAction, AuditTargetType
import logging

logger = logging.getLogger(__name__)


def add_audit_log(
    session: Session,
    action: AuditAction,
    target_id: Optional[str] = None,
    target_type: Optional[AuditTargetType] = None,
    actor_id: Optional[str] = None,
    details: Optional[dict] = None,
) -> AuditLog:
    """Stage an audit entry in the caller's transaction."""
    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        target_id=target_id,
        target_type=target_type,
        details=details or {},
    )
    session.add(entry)
    logger.debug(f"Audit {action.value} on {target_type.value if target_type else '-'} {target_id or '-'}")
    return entry


import logging
from typing import Any, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from .models import AuditLog, User

logger = logging.getLogger(__name__)


def log_audit_event(
    db: Session,
    user: User,
    action: str,
    resource: str,
    resource_id: Optional[str] = None,
    organization_id: Optional[str] = None,
    changes: Optional[dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> AuditLog:
    """
    Record an administrative change in the audit trail

    Args:
        action: create, update or delete
        resource: Kind of record touched (organization, service, ...)
        changes: JSON-serializable snapshot of what was written
        request: Source request, for IP address and user agent
    """
    entry = AuditLog(
        user_id=user.id,
        organization_id=organization_id,
        action=action,
        resource=resource,
        resource_id=resource_id,
        changes=changes or {},
        ip_address=request.client.host if request and request.client else None,
        user_agent=request.headers.get("user-agent") if request else None,
    )
    db.add(entry)
    db.commit()

    logger.info(f"📝 AUDIT: {user.email} {action} {resource} {resource_id or ''}".rstrip())
    return entry

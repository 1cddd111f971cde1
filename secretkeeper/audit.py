"""
Audit Logging: Structured security audit trail.

Provides:
- One JSON line per authentication or data event on the ``audit`` logger
- Optional dedicated file sink (``AUDIT_LOG_PATH``)
"""

import json
import logging
import os
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import Request

from .middleware.correlation import get_correlation_id


audit_logger = logging.getLogger("audit")
audit_logger.setLevel(logging.INFO)


class AuditEventType(Enum):
    # Authentication
    AUTH_REGISTERED = "auth.registered"
    AUTH_LOGIN = "auth.login"
    AUTH_LOGOUT = "auth.logout"
    AUTH_FAILED = "auth.failed"

    # Authorization
    AUTHZ_LOGIN_REQUIRED = "authz.login_required"

    # Data
    DATA_CREATED = "data.created"

    # Security
    SECURITY_RATE_LIMITED = "security.rate_limited"


@dataclass
class AuditEvent:
    """Structured audit event."""
    timestamp: str
    event_type: str
    actor: Optional[str]  # User ID or "anonymous"
    resource: Optional[str]
    action: str
    outcome: str  # success, failure
    details: Dict[str, Any]
    ip_address: Optional[str] = None
    request_id: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=str)


def configure_audit_log(path: Optional[str]) -> None:
    """Attach a file handler for the audit trail (once per path)."""
    if not path:
        return
    for handler in audit_logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == os.path.abspath(path):
            return
    handler = logging.FileHandler(path)
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)


def audit_log(
    event_type: AuditEventType,
    details: Dict[str, Any],
    actor: Optional[str] = None,
    resource: Optional[str] = None,
    outcome: str = "success",
    request: Optional[Request] = None,
) -> AuditEvent:
    """
    Log an audit event.

    Args:
        event_type: Type of event
        details: Event-specific details (never passwords or secret bodies)
        actor: User ID or "anonymous"
        resource: Resource being accessed
        outcome: success or failure
        request: Request the event belongs to (client IP and correlation ID)
    """
    ip_address = None
    request_id = None
    if request is not None:
        ip_address = request.client.host if request.client else None
        request_id = get_correlation_id(request)

    event = AuditEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        event_type=event_type.value,
        actor=actor,
        resource=resource,
        action=event_type.value.split(".")[-1],
        outcome=outcome,
        details=details,
        ip_address=ip_address,
        request_id=request_id,
    )

    audit_logger.info(event.to_json())
    return event


# Convenience functions

def audit_auth_success(request: Request, user_id: str, method: str, registered: bool = False):
    """Log successful registration or login."""
    audit_log(
        AuditEventType.AUTH_REGISTERED if registered else AuditEventType.AUTH_LOGIN,
        {"method": method},
        actor=user_id,
        request=request,
    )


def audit_auth_failure(request: Request, method: str, reason: str):
    """Log failed authentication."""
    audit_log(
        AuditEventType.AUTH_FAILED,
        {"method": method, "reason": reason},
        actor="anonymous",
        outcome="failure",
        request=request,
    )

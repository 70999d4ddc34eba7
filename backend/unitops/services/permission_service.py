# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Page Capability Checks and Security Event Logging

Enforce the per-user page capability matrix and keep an audit trail.

DESIGN PRINCIPLES:
- Fail closed: a capability is allowed only if its flag is explicitly true
- Log denials only: grants are not logged
- Pure predicate: authorize_capability reads the session snapshot, not the database
- Super-admin is a role carried in the session claim, never a magic user id
"""

from flask import has_request_context, request

from ..extensions import db
from ..models import SecurityEvent
from ..permissions import Capability, CAPABILITY_FLAGS, parse_capability
from ..time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when user lacks required capability or role."""
    pass


def _request_meta() -> dict:
    if not has_request_context():
        return {}
    return {
        "resource": request.path,
        "ip_address": request.remote_addr,
        "user_agent": (request.headers.get("User-Agent") or "")[:512] or None,
    }


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    Missing resource / client details are filled from the active request.

    event_type examples:
    - LOGIN_FAILED
    - PERMISSION_DENIED
    - SUPER_ADMIN_REQUIRED
    - UNIT_ACCESS_DENIED
    - USER_DELETED
    """
    meta = _request_meta()
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource or meta.get("resource"),
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address or meta.get("ip_address"),
        user_agent=user_agent or meta.get("user_agent"),
        occurred_at=utcnow()
    )

    db.session.add(event)
    db.session.commit()

    return event


def authorize_capability(page_access: dict | None, capability) -> bool:
    """
    True iff the flag backing `capability` is true in the page access snapshot.

    Unknown capabilities and a missing snapshot deny.
    """
    cap = parse_capability(capability)
    if cap is None or not page_access:
        return False
    return page_access.get(CAPABILITY_FLAGS[cap]) is True


def require_capability(context, capability: Capability) -> None:
    """
    Require the session to hold a capability, raise PermissionDeniedError if not.

    Denials are written to security_events.
    """
    if authorize_capability(context.page_access, capability):
        return

    cap = parse_capability(capability)
    code = cap.value if cap else str(capability)
    log_security_event(
        user_id=context.user_id,
        event_type="PERMISSION_DENIED",
        success=False,
        action=code,
        reason=f"Missing capability: {code}",
    )
    raise PermissionDeniedError(f"Permission denied: {code}")


def require_super_admin(context) -> None:
    """
    Unit and product administration are reserved for the super-admin role.
    The admin page flag does not count here.
    """
    if context.is_super_admin:
        return

    log_security_event(
        user_id=context.user_id,
        event_type="SUPER_ADMIN_REQUIRED",
        success=False,
        reason="Super-admin role required",
    )
    raise PermissionDeniedError("Super-admin access required")

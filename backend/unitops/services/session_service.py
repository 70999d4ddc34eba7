# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

Secure session management with absolute timeout and revocation.
Tokens are cryptographically secure, hashed in database, and time-limited.

IDENTITY SNAPSHOT: A session captures the user's display name, super-admin
flag and page access flags at login. resolve_session serves that snapshot
for the lifetime of the token; admin edits to a user's page access are
picked up at the next login, not mid-session.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute timeout (SESSION_LIFETIME_HOURS, default 24)
- Revocable on logout
- Tracks client IP and user agent for security monitoring
"""

import secrets
import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User, PageAccess
from ..permissions import Capability, CAPABILITY_FLAGS, capabilities_from_flags, page_access_dict
from ..time_utils import utcnow, to_utc_z


DEFAULT_SESSION_LIFETIME = timedelta(hours=24)


@dataclass(frozen=True)
class SessionContext:
    """
    Resolved identity claim handed to guards and services.

    page_access holds the PageAccess flag columns (pg_sales, ...) as they
    were at login.
    """
    user_id: int
    display_name: str
    is_super_admin: bool = False
    page_access: dict = field(default_factory=dict)
    session_id: int | None = None
    expires_at: datetime | None = None

    @property
    def capabilities(self) -> frozenset[Capability]:
        return capabilities_from_flags(self.page_access)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "display_name": self.display_name,
            "is_super_admin": self.is_super_admin,
            "page_access": {column: bool(self.page_access.get(column)) for column in CAPABILITY_FLAGS.values()},
            "capabilities": page_access_dict(self.capabilities),
            "expires_at": to_utc_z(self.expires_at),
        }


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)  # 32 bytes = 64 hex characters


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy (unlike passwords), so a fast hash is enough.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _session_lifetime() -> timedelta:
    hours = current_app.config.get("SESSION_LIFETIME_HOURS")
    return timedelta(hours=hours) if hours else DEFAULT_SESSION_LIFETIME


def snapshot_page_access(user: User) -> dict[str, bool]:
    """Current PageAccess flags of a user; all False when the user has no row."""
    return (user.page_access or PageAccess()).flags()


def create_session(
    user: User,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token bound to the user's identity snapshot.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    plaintext_token = generate_token()

    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(plaintext_token),
        display_name=user.name,
        is_super_admin=bool(user.is_super_admin),
        page_access=snapshot_page_access(user),
        created_at=now,
        expires_at=now + _session_lifetime(),
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def context_from_session(session: SessionToken) -> SessionContext:
    return SessionContext(
        user_id=session.user_id,
        display_name=session.display_name,
        is_super_admin=bool(session.is_super_admin),
        page_access=dict(session.page_access or {}),
        session_id=session.id,
        expires_at=session.expires_at,
    )


def resolve_session(token: str | None) -> SessionContext | None:
    """
    Resolve a plaintext token to its SessionContext.

    Returns None if:
    - Token is missing or blank
    - Token is unknown, revoked or expired
    - User account was deleted or deactivated (the session is revoked)
    """
    if not token or not isinstance(token, str) or not token.strip():
        return None

    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token.strip()),
        is_revoked=False
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    user = session.user
    if not user or not user.active:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = "User account deactivated"
        db.session.commit()
        return None

    return context_from_session(session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """
    Revoke session token.

    Returns True if session was revoked, False if not found.
    Revoked sessions cannot be used even if not expired.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason

    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """
    Revoke all active sessions for a user.

    Returns count of sessions revoked. Used when an account is deactivated.
    """
    now = utcnow()

    sessions = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False
    ).all()

    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason

    db.session.commit()
    return len(sessions)


def cleanup_expired_sessions(retention_days: int = 30) -> int:
    """
    Delete expired and revoked sessions older than retention_days.

    Returns count of sessions deleted.
    """
    now = utcnow()
    cutoff = now - timedelta(days=retention_days)

    # Delete sessions that are both old AND (expired OR revoked)
    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(True)
        ),
        SessionToken.created_at < cutoff
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted

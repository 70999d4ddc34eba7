# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Every action must be attributable. Uses bcrypt for password hashing and
enforces a minimum password length.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Inactive accounts cannot log in
- Session tokens managed separately (see session_service.py)
"""

import bcrypt

from ..extensions import db
from ..models import User
from ..time_utils import utcnow


MIN_PASSWORD_LENGTH = 8


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """Raises PasswordValidationError if the password is too short."""
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. Malformed hashes verify as False.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def authenticate(user_name: str, password: str) -> User | None:
    """
    Authenticate user with login name and password.

    Returns User if credentials valid and the account is active, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    if not user_name or not password:
        return None

    user = db.session.query(User).filter(
        User.user_name == user_name.strip(),
        User.active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User, PageAccess, Sale, Expense
from ..permissions import Capability, CAPABILITY_FLAGS, capabilities_from_flags
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    coerce_int,
    require_fields,
)
from .auth_service import hash_password, PasswordValidationError
from .permission_service import PermissionDeniedError, log_security_event
from .session_service import revoke_all_user_sessions
from .unit_access_service import set_user_units


USER_FIELDS = {"name", "user_name", "password", "active", "unit_ids", "page_access"}

_FLAG_KEYS = set(CAPABILITY_FLAGS.values()) | {cap.value for cap in Capability}


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.name.asc()).all()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def _check_fields(payload: dict) -> None:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    for key in payload:
        if key not in USER_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")


def _ensure_unique_user_name(user_name: str, user_id: int | None = None) -> None:
    query = db.session.query(User.id).filter(User.user_name == user_name)
    if user_id is not None:
        query = query.filter(User.id != user_id)
    if query.first():
        raise ConflictError("Username already exists")


def _clean_text(payload: dict, key: str, max_length: int) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} cannot be blank")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}")
    return value


def _parse_unit_ids(raw) -> list[int]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("unit_ids must be a list of integers")
    return [coerce_int("unit_ids", value) for value in raw]


def _apply_page_access(user: User, raw) -> None:
    """Replace every PageAccess flag of the user. Missing flags become False."""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValidationError("page_access must be an object of flags")
    unknown = sorted(set(raw) - _FLAG_KEYS)
    if unknown:
        raise ValidationError(f"Unknown page access flags: {', '.join(unknown)}")
    for key, value in raw.items():
        if not isinstance(value, bool):
            raise ValidationError(f"{key} must be a boolean")

    granted = capabilities_from_flags(raw)
    if user.page_access is None:
        user.page_access = PageAccess()
    for cap, column in CAPABILITY_FLAGS.items():
        setattr(user.page_access, column, cap in granted)


def _apply_unit_ids(user: User, raw) -> None:
    try:
        set_user_units(user, _parse_unit_ids(raw))
    except ValueError as e:
        if isinstance(e, ValidationError):
            raise
        raise ValidationError(str(e))


def _hash(password: str) -> str:
    try:
        return hash_password(password)
    except PasswordValidationError as e:
        raise ValidationError(str(e))


def create_user(payload: dict) -> User:
    """
    Create a user with its page access and unit links.

    Requires name, user_name and password. Login names are unique.
    """
    _check_fields(payload)
    require_fields(payload, ["name", "user_name", "password"])

    name = _clean_text(payload, "name", 128)
    user_name = _clean_text(payload, "user_name", 64)
    _ensure_unique_user_name(user_name)

    active = payload.get("active", True)
    if not isinstance(active, bool):
        raise ValidationError("active must be a boolean")

    user = User(
        name=name,
        user_name=user_name,
        password_hash=_hash(payload["password"]),
        active=active,
        is_super_admin=False,
    )
    db.session.add(user)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Username already exists")

    _apply_page_access(user, payload.get("page_access"))
    _apply_unit_ids(user, payload.get("unit_ids"))

    db.session.commit()
    return user


def update_user(user_id: int, payload: dict) -> User:
    """
    Update a user.

    - password changes only when a non-blank value is supplied
    - unit_ids and page_access, when present, replace the previous sets wholesale
    - deactivating a user revokes their open sessions
    """
    _check_fields(payload)
    user = get_user(user_id)

    if "name" in payload:
        user.name = _clean_text(payload, "name", 128)

    if "user_name" in payload:
        user_name = _clean_text(payload, "user_name", 64)
        _ensure_unique_user_name(user_name, user_id=user.id)
        user.user_name = user_name
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Username already exists")

    password = payload.get("password")
    if isinstance(password, str) and password.strip():
        user.password_hash = _hash(password)

    deactivated = False
    if "active" in payload:
        if not isinstance(payload["active"], bool):
            raise ValidationError("active must be a boolean")
        deactivated = user.active and not payload["active"]
        user.active = payload["active"]

    if "page_access" in payload:
        _apply_page_access(user, payload["page_access"])

    if "unit_ids" in payload:
        _apply_unit_ids(user, payload["unit_ids"])

    db.session.commit()

    if deactivated:
        revoke_all_user_sessions(user.id, reason="User deactivated")

    return user


def delete_user(context, user_id: int) -> None:
    """
    Hard delete a user with their page access, unit links and sessions.

    The super-admin account can never be deleted. Users who recorded sales
    or expenses are kept for attribution; deactivate them instead.
    """
    user = get_user(user_id)

    if user.is_super_admin:
        log_security_event(
            user_id=context.user_id,
            event_type="USER_DELETE_DENIED",
            success=False,
            reason=f"Attempt to delete super-admin user {user_id}",
        )
        raise PermissionDeniedError("The super-admin user cannot be deleted")

    for model, label in ((Sale, "sales"), (Expense, "expenses")):
        if db.session.query(model.id).filter(model.user_id == user_id).first():
            raise ConflictError(f"User has recorded {label}; deactivate the user instead")

    user_name = user.user_name
    db.session.delete(user)
    db.session.commit()

    log_security_event(
        user_id=context.user_id,
        event_type="USER_DELETED",
        success=True,
        reason=f"Deleted user {user_id} ({user_name})",
    )

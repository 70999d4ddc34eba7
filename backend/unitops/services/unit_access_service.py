from __future__ import annotations

from collections.abc import Iterable

from ..extensions import db
from ..models import Unit, UnitAccess, User
from .permission_service import log_security_event


class UnitAccessDeniedError(Exception):
    """Raised when a session is not scoped to every requested unit."""
    pass


def _normalize_unit_ids(unit_ids) -> set[int]:
    if unit_ids is None:
        return set()
    if isinstance(unit_ids, int) and not isinstance(unit_ids, bool):
        return {unit_ids}
    if isinstance(unit_ids, Iterable) and not isinstance(unit_ids, (str, bytes)):
        return {int(u) for u in unit_ids}
    raise TypeError("unit_ids must be an int or a collection of ints")


def get_user_unit_ids(user_id: int) -> set[int]:
    """Unit IDs linked to the user through UnitAccess."""
    rows = db.session.query(UnitAccess.unit_id).filter_by(user_id=user_id).all()
    return {row[0] for row in rows}


def authorize_unit_access(user_id: int, is_super_admin: bool, unit_ids) -> bool:
    """
    True iff the caller may act on every requested unit.

    - Super-admin: always True, even for unit ids that do not exist.
    - Everyone else: every id must have a UnitAccess row; one query per call.
    - Empty request: False.

    Pure predicate, no side effects.
    """
    requested = _normalize_unit_ids(unit_ids)
    if not requested:
        return False
    if is_super_admin:
        return True

    matched = db.session.query(db.func.count(UnitAccess.id)).filter(
        UnitAccess.user_id == user_id,
        UnitAccess.unit_id.in_(requested),
    ).scalar()
    return matched == len(requested)


def require_unit_access(context, unit_ids) -> None:
    """Raise UnitAccessDeniedError (and log it) unless all units are in scope."""
    if authorize_unit_access(context.user_id, context.is_super_admin, unit_ids):
        return

    requested = sorted(_normalize_unit_ids(unit_ids))
    log_security_event(
        user_id=context.user_id,
        event_type="UNIT_ACCESS_DENIED",
        success=False,
        reason=f"Units not in scope: {requested}",
    )
    raise UnitAccessDeniedError("You do not have access to the requested unit(s)")


def accessible_unit_ids(context) -> set[int]:
    """Every unit id for the super-admin, the linked ones for anyone else."""
    if context.is_super_admin:
        return {row[0] for row in db.session.query(Unit.id).all()}
    return get_user_unit_ids(context.user_id)


def set_user_units(user: User, unit_ids) -> list[UnitAccess]:
    """
    Replace a user's UnitAccess rows with exactly `unit_ids`.

    Unknown unit ids raise ValueError. Caller commits.
    """
    wanted = _normalize_unit_ids(unit_ids)
    if wanted:
        found = {row[0] for row in db.session.query(Unit.id).filter(Unit.id.in_(wanted)).all()}
        unknown = sorted(wanted - found)
        if unknown:
            raise ValueError(f"Unknown unit ids: {', '.join(str(u) for u in unknown)}")

    user.unit_access[:] = [link for link in user.unit_access if link.unit_id in wanted]
    existing = {link.unit_id for link in user.unit_access}
    for unit_id in sorted(wanted - existing):
        user.unit_access.append(UnitAccess(unit_id=unit_id))
    return list(user.unit_access)

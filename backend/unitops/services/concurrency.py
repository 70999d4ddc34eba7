# Overview: Service-layer helpers for concurrent writes; encapsulates locking and guarded updates.

from __future__ import annotations

from ..extensions import db
from ..validation import InvalidStateError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def update_exactly(query, values: dict, expected: int, *, message: str) -> int:
    """
    Run one conditional UPDATE and require it to match `expected` rows.

    The store reports the matched row count atomically. On a mismatch the
    update is rolled back and InvalidStateError raised, so either every
    targeted row changes or none does. No retry.
    """
    matched = query.update(values, synchronize_session=False)
    if matched != expected:
        db.session.rollback()
        raise InvalidStateError(message)
    db.session.commit()
    return matched

# Overview: Service-layer operations for maintenance; encapsulates business logic and database work.

from __future__ import annotations

import os
from datetime import timedelta

from ..extensions import db
from ..models import SecurityEvent, ExpenseImage
from ..time_utils import utcnow
from .expense_image_service import upload_dir


def cleanup_security_events(*, retention_days: int = 90) -> int:
    """Delete security events older than retention_days."""
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(
        SecurityEvent.occurred_at < cutoff
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted


def find_orphaned_image_files() -> list[str]:
    """
    Files in the upload directory that no ExpenseImage row refers to.

    Soft-deleted images still own their file and are not reported.
    """
    directory = upload_dir()
    known = {row[0] for row in db.session.query(ExpenseImage.file_name).all()}
    return sorted(
        name for name in os.listdir(directory)
        if os.path.isfile(os.path.join(directory, name)) and name not in known
    )


def remove_orphaned_image_files() -> int:
    directory = upload_dir()
    orphans = find_orphaned_image_files()
    for name in orphans:
        os.remove(os.path.join(directory, name))
    return len(orphans)

"""
Expense receipt images.

Files are written to UPLOAD_DIR (default <instance>/uploads/expenses) under a
generated name `expense_<id>_<millis>_<random><ext>` and served back through
GET /api/images/<file_name>. Only metadata lives in the database.

An upload batch is validated in full before anything touches the disk, so a
single oversized or non-image file rejects the whole batch.
"""

from __future__ import annotations

import os
import secrets
import time

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..extensions import db
from ..models import ExpenseImage
from ..validation import NotFoundError, ValidationError
from .expense_service import get_expense_for


DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024


def upload_dir() -> str:
    configured = current_app.config.get("UPLOAD_DIR")
    path = configured or os.path.join(current_app.instance_path, "uploads", "expenses")
    os.makedirs(path, exist_ok=True)
    return path


def is_safe_file_name(file_name: str | None) -> bool:
    """Plain file names only: no separators, no parent references."""
    if not file_name:
        return False
    return ".." not in file_name and "/" not in file_name and "\\" not in file_name


def _file_size(upload: FileStorage) -> int:
    stream = upload.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def _extension(upload: FileStorage) -> str:
    _, ext = os.path.splitext(secure_filename(upload.filename or ""))
    return ext.lower()


def generate_file_name(expense_id: int, upload: FileStorage) -> str:
    millis = int(time.time() * 1000)
    return f"expense_{expense_id}_{millis}_{secrets.token_hex(6)}{_extension(upload)}"


def validate_uploads(uploads: list[FileStorage]) -> list[tuple[FileStorage, int]]:
    """Check every file (image mime type, size limit); returns (file, size) pairs."""
    files = [u for u in uploads if u is not None and (u.filename or "").strip()]
    if not files:
        raise ValidationError("No files uploaded")

    max_bytes = current_app.config.get("MAX_IMAGE_BYTES") or DEFAULT_MAX_IMAGE_BYTES
    checked = []
    for upload in files:
        label = upload.filename
        mime_type = (upload.mimetype or "").lower()
        if not mime_type.startswith("image/"):
            raise ValidationError(f"File {label} is not an image")
        size = _file_size(upload)
        if size > max_bytes:
            raise ValidationError(f"File {label} is too large (max {max_bytes // (1024 * 1024)}MB)")
        checked.append((upload, size))
    return checked


def upload_images(context, expense_id: int, uploads: list[FileStorage]) -> list[ExpenseImage]:
    """
    Attach one or more images to an active expense the session is scoped to.

    Written files are removed again if the database insert fails.
    """
    expense = get_expense_for(context, expense_id)
    checked = validate_uploads(uploads)

    target_dir = upload_dir()
    written: list[str] = []
    images: list[ExpenseImage] = []
    try:
        for upload, size in checked:
            file_name = generate_file_name(expense.id, upload)
            path = os.path.join(target_dir, file_name)
            upload.save(path)
            written.append(path)

            image = ExpenseImage(
                expense_id=expense.id,
                file_name=file_name,
                file_path=f"/api/images/{file_name}",
                file_size=size,
                mime_type=upload.mimetype,
                active=True,
            )
            db.session.add(image)
            images.append(image)

        db.session.commit()
    except Exception:
        db.session.rollback()
        for path in written:
            if os.path.exists(path):
                os.remove(path)
        raise

    return images


def list_images(context, expense_id: int) -> list[ExpenseImage]:
    get_expense_for(context, expense_id)
    return (
        db.session.query(ExpenseImage)
        .filter(ExpenseImage.expense_id == expense_id, ExpenseImage.active.is_(True))
        .order_by(ExpenseImage.uploaded_at.desc(), ExpenseImage.id.desc())
        .all()
    )


def delete_image(context, expense_id: int, image_id: int) -> ExpenseImage:
    """Soft delete; the file stays on disk."""
    get_expense_for(context, expense_id)
    image = db.session.query(ExpenseImage).filter_by(
        id=image_id,
        expense_id=expense_id,
        active=True,
    ).first()
    if not image:
        raise NotFoundError("Image not found")

    image.active = False
    db.session.commit()
    return image


def resolve_image_path(file_name: str) -> tuple[str, str]:
    """
    (directory, file_name) for an image file on disk.

    Raises ValidationError for unsafe names and NotFoundError when the file is missing.
    """
    if not is_safe_file_name(file_name):
        raise ValidationError("Invalid filename")
    directory = upload_dir()
    if not os.path.isfile(os.path.join(directory, file_name)):
        raise NotFoundError("File not found")
    return directory, file_name

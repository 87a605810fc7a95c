# Overview: Service-layer operations for proof-of-payment uploads stored on local disk.

"""
Proof File Storage

Stores a transaction's proof of payment under UPLOAD_FOLDER and returns the
descriptor persisted in Transaction.proof_file:

    {"path": "/uploads/evidences/<name>", "original_name", "size", "mime_type"}

Stored names are "<timestamp>-<8 hex>-<secure basename><ext>" so two uploads
of the same file never collide.
"""

from __future__ import annotations

import os
import uuid

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..time_utils import utcnow
from ..validation import ValidationError

PUBLIC_PREFIX = "/uploads/evidences"

ALLOWED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".pdf", ".doc", ".docx", ".xls", ".xlsx"})

ALLOWED_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
})

# Multipart field names accepted for the proof, in lookup order
UPLOAD_FIELDS = ("proof_file", "proofFile", "proof", "file", "attachment", "files")

MAX_BASENAME_LENGTH = 80


def extract_upload(files) -> FileStorage | None:
    """First non-empty file among UPLOAD_FIELDS in a request.files MultiDict."""
    if not files:
        return None
    for field in UPLOAD_FIELDS:
        for upload in files.getlist(field):
            if upload and upload.filename:
                return upload
    return None


def _stored_name(original: str) -> str:
    base, ext = os.path.splitext(secure_filename(original) or "file")
    ext = ext.lower()
    base = base[: max(1, MAX_BASENAME_LENGTH - len(ext))] or "file"
    stamp = utcnow().strftime("%Y%m%d%H%M%S")
    return f"{stamp}-{uuid.uuid4().hex[:8]}-{base}{ext}"


def save_proof_file(upload: FileStorage) -> dict:
    """
    Validate and store an uploaded proof.

    Raises:
        ValidationError: unsupported extension or mime type
    """
    original = upload.filename or ""
    ext = os.path.splitext(original)[1].lower()
    mime_type = upload.mimetype or None

    if ext not in ALLOWED_EXTENSIONS or (mime_type and mime_type not in ALLOWED_MIME_TYPES):
        raise ValidationError(
            "Unsupported file type. Allowed: jpg, jpeg, png, pdf, doc, docx, xls, xlsx"
        )

    folder = current_app.config["UPLOAD_FOLDER"]
    os.makedirs(folder, exist_ok=True)

    name = _stored_name(original)
    target = os.path.join(folder, name)
    upload.save(target)

    current_app.logger.info("Stored proof file %s (%s)", name, mime_type)

    return {
        "path": f"{PUBLIC_PREFIX}/{name}",
        "original_name": original,
        "size": os.path.getsize(target),
        "mime_type": mime_type,
    }


def discard_proof_file(proof_file: dict | None) -> None:
    """Remove a stored proof whose transaction write was rejected."""
    if not proof_file:
        return
    name = os.path.basename(proof_file.get("path") or "")
    if not name:
        return
    try:
        os.remove(os.path.join(current_app.config["UPLOAD_FOLDER"], name))
    except FileNotFoundError:
        return
    current_app.logger.info("Discarded proof file %s", name)

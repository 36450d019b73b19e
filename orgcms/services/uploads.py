"""
Media file storage on the local filesystem.

Files land under ``UPLOAD_FOLDER/images`` or ``UPLOAD_FOLDER/documents`` and
are served from ``UPLOAD_URL_PREFIX/<subdir>/<filename>``. Validation
problems come back as an ``UploadResult`` with ``error`` set; only
filesystem failures raise.
"""
from __future__ import annotations

import os
import re
import secrets
import time
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

# Accepted MIME type -> stored extension; the client filename never sets it
_IMAGE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}
_DOCUMENT_EXTENSIONS = {
    "application/pdf": ".pdf",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
}
IMAGE_TYPES = tuple(_IMAGE_EXTENSIONS)
DOCUMENT_TYPES = tuple(_DOCUMENT_EXTENSIONS)
ALL_TYPES = IMAGE_TYPES + DOCUMENT_TYPES

MAX_IMAGE_SIZE = 5 * 1024 * 1024       # 5MB
MAX_DOCUMENT_SIZE = 10 * 1024 * 1024   # 10MB

_SLUG_RE = re.compile(r"[^a-z0-9]+")


@dataclass
class UploadResult:
    success: bool
    filename: Optional[str] = None
    url: Optional[str] = None
    size: Optional[int] = None
    error: Optional[str] = None


def file_category(mime_type: str) -> str:
    if mime_type in IMAGE_TYPES:
        return "image"
    if mime_type in DOCUMENT_TYPES:
        return "document"
    return "unknown"


def _subdir(mime_type: str) -> str:
    category = file_category(mime_type)
    if category == "unknown":
        raise ValueError(f"Unsupported file type: {mime_type}")
    return "images" if category == "image" else "documents"


def is_allowed_type(mime_type: str, category: Optional[str] = None) -> bool:
    if category == "image":
        return mime_type in IMAGE_TYPES
    if category == "document":
        return mime_type in DOCUMENT_TYPES
    return mime_type in ALL_TYPES


def max_size_for(mime_type: str) -> int:
    return MAX_IMAGE_SIZE if mime_type in IMAGE_TYPES else MAX_DOCUMENT_SIZE


def is_allowed_size(size: int, mime_type: str) -> bool:
    if mime_type not in ALL_TYPES:
        return False
    return size <= max_size_for(mime_type)


def extension_for(mime_type: str) -> str:
    ext = _IMAGE_EXTENSIONS.get(mime_type) or _DOCUMENT_EXTENSIONS.get(mime_type)
    if ext is None:
        raise ValueError(f"Unsupported file type: {mime_type}")
    return ext


def safe_filename(original_name: str, mime_type: str) -> str:
    """
    ``<slug(<=20)>-<epoch ms>-<16 hex><ext>``; only [a-z0-9-] before the extension.
    The extension comes from ``mime_type``; the client's own extension is dropped.
    """
    ext = extension_for(mime_type)
    cleaned = secure_filename(original_name or "") or "file"
    stem, _ = os.path.splitext(cleaned)
    slug = _SLUG_RE.sub("-", stem.lower()).strip("-")[:20].strip("-") or "file"
    return f"{slug}-{int(time.time() * 1000)}-{secrets.token_hex(8)}{ext}"


def upload_root() -> str:
    return current_app.config["UPLOAD_FOLDER"]


def _ensure_directories() -> None:
    for sub in ("images", "documents"):
        os.makedirs(os.path.join(upload_root(), sub), exist_ok=True)


def public_url(filename: str, mime_type: str) -> str:
    prefix = current_app.config.get("UPLOAD_URL_PREFIX", "/uploads").rstrip("/")
    return f"{prefix}/{_subdir(mime_type)}/{filename}"


def _stream_size(storage: FileStorage) -> int:
    stream = storage.stream
    pos = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(pos)
    return size


def upload_file(storage: FileStorage, category: Optional[str] = None) -> UploadResult:
    mime_type = storage.mimetype or ""
    size = _stream_size(storage)

    if not is_allowed_type(mime_type, category):
        return UploadResult(success=False, error=f"Unsupported file type: {mime_type or 'unknown'}")

    if not is_allowed_size(size, mime_type):
        max_mb = max_size_for(mime_type) // (1024 * 1024)
        return UploadResult(success=False, error=f"File too large. Maximum: {max_mb}MB")

    _ensure_directories()
    filename = safe_filename(storage.filename or "", mime_type)
    storage.save(os.path.join(upload_root(), _subdir(mime_type), filename))

    return UploadResult(
        success=True,
        filename=filename,
        url=public_url(filename, mime_type),
        size=size,
    )


def delete_file(filename: str, mime_type: str) -> bool:
    """Remove a stored file; False when it is already gone or the type is unknown."""
    try:
        path = os.path.join(upload_root(), _subdir(mime_type), os.path.basename(filename))
    except ValueError:
        return False
    if not os.path.exists(path):
        return False
    os.remove(path)
    return True


def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    units = ("Bytes", "KB", "MB", "GB")
    value, i = float(size), 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"

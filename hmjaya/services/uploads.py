# hmjaya/services/uploads.py
from __future__ import annotations

import os
import secrets
import time

from flask import current_app
from werkzeug.utils import secure_filename

from hmjaya.errors import ActionError, NotFoundError

URL_PREFIX = "/uploads/"


# =========================================================
# Storage helpers
# =========================================================
def upload_dir() -> str:
    """
    Priority:
      1) Flask config: UPLOAD_DIR
      2) Env: UPLOAD_DIR
      3) instance_path/uploads
    """
    base = current_app.config.get("UPLOAD_DIR") or os.getenv("UPLOAD_DIR")
    if not base:
        base = os.path.join(current_app.instance_path, "uploads")

    os.makedirs(base, exist_ok=True)
    return base


def _stored_name(original: str | None, prefix: str) -> str:
    _, ext = os.path.splitext(secure_filename(original or ""))
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(6)}{ext.lower()}"


def _path_for(url_or_name: str) -> str:
    name = os.path.basename((url_or_name or "").strip().rstrip("/"))
    if not name or name in (".", ".."):
        raise ActionError("No file path provided")
    return os.path.join(upload_dir(), name)


def store_uploads(files, prefix: str = "field-visit") -> list[str]:
    """Write uploaded files to disk; returns their public URLs. Empty files are skipped."""
    files = [f for f in (files or []) if f and f.filename]
    if not files:
        raise ActionError("No files provided")

    base = upload_dir()
    urls = []
    for storage in files:
        data = storage.read()
        if not data:
            continue
        name = _stored_name(storage.filename, prefix)
        with open(os.path.join(base, name), "wb") as f:
            f.write(data)
        urls.append(f"{URL_PREFIX}{name}")
    return urls


def delete_upload(pathname: str) -> None:
    abs_path = _path_for(pathname)
    if not os.path.exists(abs_path):
        raise NotFoundError("File not found")
    os.remove(abs_path)


def discard_uploads(urls) -> int:
    """Remove files whose records are gone. Missing files are logged, not raised."""
    removed = 0
    for url in urls or []:
        try:
            os.remove(_path_for(url))
            removed += 1
        except (OSError, ActionError):
            current_app.logger.warning("Failed to delete uploaded file %s", url)
    return removed

"""
ezla/storage.py: Файловое хранилище вложений дел.

Пути вложений (``attachment_file_ids`` и т.п.): относительные ключи внутри
``settings.storage_dir``, например ``summaries/<case_id>/Wizyta_z_dnia_2025-01-31.pdf``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ezla.config import get_settings
from ezla.exceptions import BadRequestError, NotFoundError

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "pdf": "application/pdf",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
}


def storage_root() -> Path:
    return Path(get_settings().storage_dir).resolve()


def resolve(key: str) -> Path:
    """Абсолютный путь ключа; ключи вне хранилища отклоняются."""
    root = storage_root()
    path = (root / key.lstrip("/")).resolve()
    if root != path and root not in path.parents:
        raise BadRequestError("Invalid storage path", details={"path": key})
    return path


def write_bytes(key: str, data: bytes) -> Path:
    path = resolve(key)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    logger.info("Stored %d bytes at %s", len(data), key)
    return path


def read_bytes(key: str) -> bytes:
    path = resolve(key)
    if not path.is_file():
        raise NotFoundError("File", key)
    return path.read_bytes()


def content_type_for(key: str) -> str:
    """MIME-тип по расширению (по умолчанию application/octet-stream)."""
    ext = key.rsplit(".", 1)[-1].lower() if "." in key else ""
    return CONTENT_TYPES.get(ext, "application/octet-stream")

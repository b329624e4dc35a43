"""Profile picture storage on the local filesystem under STORAGE_DIR."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gatehouse.core.config import Settings

logger = logging.getLogger(__name__)

PICTURE_SUBDIR = "profile-pictures"
ALLOWED_EXTENSIONS = frozenset({"jpeg", "jpg", "png", "gif"})

# Leading bytes of each accepted image format.
_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\xff\xd8\xff", "jpg"),
    (b"\x89PNG\r\n\x1a\n", "png"),
    (b"GIF87a", "gif"),
    (b"GIF89a", "gif"),
)


class PictureValidationError(Exception):
    """Raised when an upload is not an accepted image."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


def detect_image_type(content: bytes) -> str | None:
    for signature, kind in _SIGNATURES:
        if content.startswith(signature):
            return kind
    return None


def validate_picture(filename: str | None, content: bytes, settings: Settings) -> str:
    """Return the stored extension for a valid upload, else raise PictureValidationError."""
    if not content:
        raise PictureValidationError("A profile picture is required.")
    suffix = PurePosixPath(filename or "").suffix.lower().lstrip(".")
    if suffix not in ALLOWED_EXTENSIONS:
        raise PictureValidationError("The image must be a file of type: jpeg, png, jpg, gif.")
    if len(content) > settings.PROFILE_PICTURE_MAX_BYTES:
        max_mb = settings.PROFILE_PICTURE_MAX_BYTES / (1024 * 1024)
        raise PictureValidationError(f"The image may not be greater than {max_mb:g}MB.")
    kind = detect_image_type(content)
    if kind is None:
        raise PictureValidationError("The file must be an image.")
    return kind


def _absolute(settings: Settings, relative_path: str) -> Path:
    root = Path(settings.STORAGE_DIR).resolve()
    target = (root / relative_path).resolve()
    if root not in target.parents:
        raise ValueError(f"Path escapes storage root: {relative_path}")
    return target


def store_picture(content: bytes, extension: str, settings: Settings) -> str:
    """Write the image and return its path relative to STORAGE_DIR."""
    relative = f"{PICTURE_SUBDIR}/{uuid.uuid4().hex}.{extension}"
    target = _absolute(settings, relative)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)
    logger.info("Profile picture stored", extra={"path": relative, "size": len(content)})
    return relative


def delete_picture(relative_path: str | None, settings: Settings) -> bool:
    """Remove a stored picture. External URLs (e.g. OAuth avatars) are left alone."""
    if not relative_path or "://" in relative_path:
        return False
    try:
        target = _absolute(settings, relative_path)
    except ValueError:
        logger.warning("Refusing to delete path outside storage", extra={"path": relative_path})
        return False
    if not target.exists():
        return False
    target.unlink()
    return True

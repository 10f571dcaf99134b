"""Miscellaneous helper functions."""

from __future__ import annotations

from pathlib import PurePath

_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}

DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"


def mime_type_for_filename(filename: str | None) -> str:
    """Return the image MIME type implied by ``filename``'s extension.

    Unknown or missing extensions map to ``image/jpeg``, which every
    vision model accepts.
    """
    if not filename:
        return DEFAULT_IMAGE_MIME_TYPE
    ext = PurePath(filename).suffix.lower().lstrip(".")
    return _MIME_TYPES.get(ext, DEFAULT_IMAGE_MIME_TYPE)


def normalise_filename(filename: str) -> str:
    """Remove potentially dangerous characters and ensure a safe filename."""
    keepchars = {"-", "_", "."}
    safe = "".join(c for c in PurePath(filename).name if c.isalnum() or c in keepchars)
    return safe.lstrip(".") or "receipt"

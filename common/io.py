"""Common IO helpers for plugins."""

from __future__ import annotations

import os

SAFE_FILENAME_CHARS = {"-", "_", "."}


def secure_filename(filename: str, *, fallback: str = "upload") -> str:
    """Sanitize filenames without relying on Werkzeug internals.

    Unlike :func:`werkzeug.utils.secure_filename`, non-ASCII letters survive so
    names such as ``"informe_página_2"`` stay readable.
    """

    if not filename:
        return fallback
    name, ext = os.path.splitext(filename)
    safe_name = "".join(
        ch if ch.isalnum() or ch in SAFE_FILENAME_CHARS else "_" for ch in name
    )
    safe_ext = "".join(ch for ch in ext if ch.isalnum() or ch in SAFE_FILENAME_CHARS)
    safe_name = safe_name.strip("._") or fallback
    safe_ext = safe_ext.strip("._")
    return f"{safe_name}{f'.{safe_ext}' if safe_ext else ''}"


__all__ = ["secure_filename"]

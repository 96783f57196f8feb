"""Deterministic output file names and size labels."""

from __future__ import annotations

import re

from common.io import secure_filename

from .page_ranges import PageInterval

DEFAULT_MERGE_NAME = "documento_final"
MAX_NAME_LENGTH = 200

_INVALID_CHARS = re.compile(r'[/\\:*?"<>|]')
_RESERVED_NAMES = frozenset(
    ["CON", "PRN", "AUX", "NUL"]
    + [f"COM{n}" for n in range(1, 10)]
    + [f"LPT{n}" for n in range(1, 10)]
)

_LABELS = {
    "es": ("página {start}", "páginas {start}-{end}"),
    "en": ("page {start}", "pages {start}-{end}"),
}


class OutputNameError(ValueError):
    """Raised when a user-chosen output name is unusable."""

    def __init__(self, message: str, *, code: str):
        super().__init__(message)
        self.code = code


def base_name(filename: str | None, *, fallback: str = "document") -> str:
    """Sanitised ``filename`` without its ``.pdf`` suffix."""

    name = (filename or "").strip()
    if name.lower().endswith(".pdf"):
        name = name[: -len(".pdf")]
    return secure_filename(name, fallback=fallback)


def interval_label(interval: PageInterval, locale: str = "es") -> str:
    single, span = _LABELS.get(locale, _LABELS["es"])
    template = single if interval.is_single else span
    return template.format(start=interval.start, end=interval.end)


def split_output_name(source_name: str | None, interval: PageInterval, locale: str = "es") -> str:
    return f"{base_name(source_name)}_{interval_label(interval, locale)}.pdf"


def compressed_output_name(source_name: str | None) -> str:
    return f"{base_name(source_name)}_comprimido.pdf"


def resolve_output_name(raw: str | None, *, default: str = DEFAULT_MERGE_NAME) -> str:
    """Validate a merge output name and return it with a ``.pdf`` suffix.

    Blank names fall back to ``default``. Names with path or shell
    metacharacters, Windows device names and overly long names are rejected
    rather than silently rewritten.
    """

    name = (raw or "").strip()
    if not name:
        return f"{default}.pdf"
    if _INVALID_CHARS.search(name):
        raise OutputNameError(
            'Name cannot contain any of: / \\ : * ? " < > |', code="pdf.invalid_output_name"
        )
    stem = name[: -len(".pdf")] if name.lower().endswith(".pdf") else name
    if stem.upper() in _RESERVED_NAMES:
        raise OutputNameError("Name is reserved by the system", code="pdf.reserved_output_name")
    if len(name) > MAX_NAME_LENGTH:
        raise OutputNameError(
            f"Name is too long (maximum {MAX_NAME_LENGTH} characters)",
            code="pdf.output_name_too_long",
        )
    return f"{stem}.pdf"


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


__all__ = [
    "DEFAULT_MERGE_NAME",
    "OutputNameError",
    "base_name",
    "compressed_output_name",
    "format_file_size",
    "interval_label",
    "resolve_output_name",
    "split_output_name",
]

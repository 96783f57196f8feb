"""Localised, user-facing messages for page range errors."""

from __future__ import annotations

from typing import Mapping

from .page_ranges import RangeError, RangeErrorKind

DEFAULT_LOCALE = "es"

_CATALOG: Mapping[str, Mapping[RangeErrorKind, str]] = {
    "es": {
        RangeErrorKind.EMPTY_INPUT: "Debes especificar al menos un rango o página.",
        RangeErrorKind.MALFORMED_TOKEN: 'Rango inválido: "{token}". Usa formato como "1-3".',
        RangeErrorKind.NON_POSITIVE_PAGE: (
            'Las páginas deben ser números positivos. Error en: "{token}".'
        ),
        RangeErrorKind.PAGE_OUT_OF_BOUNDS: (
            'Las páginas no pueden ser mayores a {total_pages}. Error en: "{token}".'
        ),
        RangeErrorKind.INVERTED_RANGE: (
            'El inicio del rango no puede ser mayor al final. Error en: "{token}".'
        ),
    },
    "en": {
        RangeErrorKind.EMPTY_INPUT: "Specify at least one page or range.",
        RangeErrorKind.MALFORMED_TOKEN: 'Invalid range: "{token}". Use a format like "1-3".',
        RangeErrorKind.NON_POSITIVE_PAGE: 'Pages must be positive numbers. Error in: "{token}".',
        RangeErrorKind.PAGE_OUT_OF_BOUNDS: (
            'Pages cannot be greater than {total_pages}. Error in: "{token}".'
        ),
        RangeErrorKind.INVERTED_RANGE: (
            'Range start cannot be greater than its end. Error in: "{token}".'
        ),
    },
}

# Single-page wording differs from the range wording in Spanish.
_MALFORMED_PAGE = {
    "es": 'Página inválida: "{token}". Debe ser un número.',
    "en": 'Invalid page: "{token}". It must be a number.',
}

_MISSING_PAGE = {
    "es": 'La página {token} no existe. El PDF tiene {total_pages} páginas.',
    "en": 'Page {token} does not exist. The PDF has {total_pages} pages.',
}


def supported_locales() -> list[str]:
    return sorted(_CATALOG)


def resolve_locale(locale: str | None, default: str = DEFAULT_LOCALE) -> str:
    if locale:
        short = locale.split("-", 1)[0].split("_", 1)[0].lower()
        if short in _CATALOG:
            return short
    return default if default in _CATALOG else DEFAULT_LOCALE


def describe(error: RangeError, locale: str | None = None) -> str:
    """Render ``error`` as a sentence in ``locale``."""

    lang = resolve_locale(locale)
    token = (error.token or "").strip()
    template = _CATALOG[lang][error.kind]
    if error.kind is RangeErrorKind.MALFORMED_TOKEN and "-" not in token:
        template = _MALFORMED_PAGE[lang]
    elif error.kind is RangeErrorKind.PAGE_OUT_OF_BOUNDS and "-" not in token:
        template = _MISSING_PAGE[lang]
    return template.format(token=token, total_pages=error.total_pages)


__all__ = ["DEFAULT_LOCALE", "describe", "resolve_locale", "supported_locales"]

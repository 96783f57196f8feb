"""Parsing and validation of page range expressions such as ``"1-3, 5, 7-10"``.

:func:`parse` never raises for bad user input. It returns a
:class:`ParseResult` that either holds the resolved intervals or a
:class:`RangeError` naming the first offending token and the rule it broke,
so callers can branch on :class:`RangeErrorKind` instead of matching message
strings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Mapping


class RangeErrorKind(str, Enum):
    EMPTY_INPUT = "empty_input"
    MALFORMED_TOKEN = "malformed_token"
    NON_POSITIVE_PAGE = "non_positive_page"
    PAGE_OUT_OF_BOUNDS = "page_out_of_bounds"
    INVERTED_RANGE = "inverted_range"


@dataclass(frozen=True, slots=True)
class PageInterval:
    """Inclusive, 1-indexed span of pages."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 1:
            raise ValueError(f"page interval must start at 1 or later, got {self.start}")
        if self.start > self.end:
            raise ValueError(f"page interval is inverted: {self.start}-{self.end}")

    @property
    def page_count(self) -> int:
        return self.end - self.start + 1

    @property
    def is_single(self) -> bool:
        return self.start == self.end

    def page_numbers(self) -> range:
        return range(self.start, self.end + 1)

    def page_indices(self) -> range:
        """Zero-based indices as expected by ``PdfReader.pages``."""

        return range(self.start - 1, self.end)

    def __str__(self) -> str:
        if self.is_single:
            return str(self.start)
        return f"{self.start}-{self.end}"


@dataclass(frozen=True, slots=True)
class RangeError:
    """First rule violated while parsing a range expression.

    ``token`` is the untrimmed text between commas, exactly as typed.
    """

    kind: RangeErrorKind
    token: str | None = None
    total_pages: int | None = None
    position: int | None = None

    def to_dict(self) -> Mapping[str, Any]:
        payload: dict[str, Any] = {"kind": self.kind.value, "token": self.token}
        if self.total_pages is not None:
            payload["total_pages"] = self.total_pages
        if self.position is not None:
            payload["position"] = self.position
        return payload

    def __str__(self) -> str:
        if self.kind is RangeErrorKind.EMPTY_INPUT:
            return "No page range specified"
        if self.kind is RangeErrorKind.PAGE_OUT_OF_BOUNDS:
            return f"Page out of bounds in {self.token!r} (document has {self.total_pages} pages)"
        return f"{self.kind.value.replace('_', ' ').capitalize()}: {self.token!r}"


class PageRangeError(ValueError):
    """Raised when a page range cannot be parsed."""

    def __init__(self, error: RangeError):
        super().__init__(str(error))
        self.error = error


@dataclass(frozen=True, slots=True)
class ParseResult:
    intervals: tuple[PageInterval, ...] = field(default_factory=tuple)
    error: RangeError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> tuple[PageInterval, ...]:
        if self.error is not None:
            raise PageRangeError(self.error)
        return self.intervals


_NUMBER_RE = re.compile(r"\d+", re.ASCII)


def _to_int(text: str, total_pages: int) -> int | None:
    """Parse a page number, capping anything wider than ``total_pages``.

    Digit strings longer than the page count are reported as
    ``total_pages + 1`` so that arbitrarily long input never reaches
    :func:`int` and still fails the bounds check.
    """

    text = text.strip()
    if not _NUMBER_RE.fullmatch(text):
        return None
    digits = text.lstrip("0")
    if not digits:
        return 0
    if len(digits) > len(str(total_pages)):
        return total_pages + 1
    return int(digits)


def _check_token(raw: str, position: int, total_pages: int) -> PageInterval | RangeError:
    part = raw.strip()
    if "-" in part:
        sides = part.split("-")
        if len(sides) == 2:
            numbers = [_to_int(side, total_pages) for side in sides]
        else:
            numbers = [None]
    else:
        numbers = [_to_int(part, total_pages)]

    if any(number is None for number in numbers):
        return RangeError(RangeErrorKind.MALFORMED_TOKEN, token=raw, position=position)
    if any(number < 1 for number in numbers):
        return RangeError(RangeErrorKind.NON_POSITIVE_PAGE, token=raw, position=position)
    if any(number > total_pages for number in numbers):
        return RangeError(
            RangeErrorKind.PAGE_OUT_OF_BOUNDS,
            token=raw,
            total_pages=total_pages,
            position=position,
        )

    start, end = numbers[0], numbers[-1]
    if start > end:
        return RangeError(RangeErrorKind.INVERTED_RANGE, token=raw, position=position)
    return PageInterval(start, end)


def parse(text: str, total_pages: int) -> ParseResult:
    """Resolve ``text`` into page intervals for a document of ``total_pages``.

    Intervals keep the order in which they were typed; duplicates and
    overlaps are preserved. A ``total_pages`` of zero means no document is
    loaded, so every page number is out of bounds.
    """

    if isinstance(total_pages, bool) or not isinstance(total_pages, int):
        raise TypeError("total_pages must be an integer")
    if total_pages < 0:
        raise ValueError("total_pages cannot be negative")

    if not text or not text.strip():
        return ParseResult(error=RangeError(RangeErrorKind.EMPTY_INPUT))

    intervals: List[PageInterval] = []
    for position, raw in enumerate(text.split(",")):
        checked = _check_token(raw, position, total_pages)
        if isinstance(checked, RangeError):
            return ParseResult(error=checked)
        intervals.append(checked)
    return ParseResult(intervals=tuple(intervals))


def interval_count(text: str, total_pages: int) -> int | RangeError:
    """Number of output documents ``text`` would produce, or why it is invalid."""

    result = parse(text, total_pages)
    if result.error is not None:
        return result.error
    return len(result.intervals)


def expand_pages(text: str | None, total_pages: int) -> List[int]:
    """Return 1-indexed page numbers selected by ``text``.

    Blank text and ``"all"`` select the whole document.
    """

    if not text or not text.strip() or text.strip().lower() == "all":
        return list(range(1, total_pages + 1))
    pages: List[int] = []
    for interval in parse(text, total_pages).unwrap():
        pages.extend(interval.page_numbers())
    return pages


def format_intervals(intervals: Iterable[PageInterval]) -> str:
    return ", ".join(str(interval) for interval in intervals)


__all__ = [
    "PageInterval",
    "PageRangeError",
    "ParseResult",
    "RangeError",
    "RangeErrorKind",
    "expand_pages",
    "format_intervals",
    "interval_count",
    "parse",
]

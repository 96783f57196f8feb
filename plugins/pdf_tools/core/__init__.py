from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from typing import Iterable, List

from PyPDF2 import PdfReader, PdfWriter

from common.logging import get_logger

from .compress import (
    DEFAULT_LEVEL,
    DEFAULT_LEVELS,
    CompressionError,
    CompressionLevel,
    CompressionResult,
    compress_pdf,
    load_levels,
    render_preview,
)
from .messages import describe, resolve_locale
from .naming import (
    OutputNameError,
    base_name,
    compressed_output_name,
    format_file_size,
    interval_label,
    resolve_output_name,
    split_output_name,
)
from .page_ranges import (
    PageInterval,
    PageRangeError,
    ParseResult,
    RangeError,
    RangeErrorKind,
    expand_pages,
    format_intervals,
    interval_count,
    parse,
)

logger = get_logger("pdf_utilities.pdf_tools")


@dataclass(frozen=True)
class MergeSpec:
    """Specification for merging a single PDF input."""

    data: bytes
    page_range: str = "all"
    filename: str = "document.pdf"


@dataclass(frozen=True)
class PdfMetadata:
    """Metadata extracted from a PDF document."""

    pages: int
    size_bytes: int


@dataclass(frozen=True)
class SplitOutput:
    """One document produced by splitting along a :class:`PageInterval`."""

    name: str
    label: str
    interval: PageInterval
    data: bytes


def _write(writer: PdfWriter) -> bytes:
    buf = BytesIO()
    writer.write(buf)
    return buf.getvalue()


def merge_pdfs(specs: Iterable[MergeSpec]) -> bytes:
    writer = PdfWriter()
    count = 0
    for spec in specs:
        reader = PdfReader(BytesIO(spec.data))
        pages = expand_pages(spec.page_range, len(reader.pages))
        for page_num in pages:
            writer.add_page(reader.pages[page_num - 1])
        count += 1
    logger.info("merged %d documents into %d pages", count, len(writer.pages))
    return _write(writer)


def split_pdf_ranges(
    stream: bytes,
    intervals: Iterable[PageInterval],
    source_name: str | None = None,
    *,
    locale: str = "es",
) -> List[SplitOutput]:
    """Extract one document per interval, in the order given.

    Intervals are 1-indexed and must already be validated against the page
    count of ``stream``, typically via :func:`parse`.
    """

    reader = PdfReader(BytesIO(stream))
    total_pages = len(reader.pages)
    outputs: List[SplitOutput] = []
    for interval in intervals:
        if interval.end > total_pages:
            raise PageRangeError(
                RangeError(
                    RangeErrorKind.PAGE_OUT_OF_BOUNDS,
                    token=str(interval),
                    total_pages=total_pages,
                )
            )
        writer = PdfWriter()
        for index in interval.page_indices():
            writer.add_page(reader.pages[index])
        outputs.append(
            SplitOutput(
                name=split_output_name(source_name, interval, locale),
                label=interval_label(interval, locale),
                interval=interval,
                data=_write(writer),
            )
        )
    logger.info("split %d pages into %d documents", total_pages, len(outputs))
    return outputs


def pdf_metadata(data: bytes) -> PdfMetadata:
    reader = PdfReader(BytesIO(data))
    return PdfMetadata(pages=len(reader.pages), size_bytes=len(data))


__all__ = [
    "CompressionError",
    "CompressionLevel",
    "CompressionResult",
    "DEFAULT_LEVEL",
    "DEFAULT_LEVELS",
    "MergeSpec",
    "OutputNameError",
    "PageInterval",
    "PageRangeError",
    "ParseResult",
    "PdfMetadata",
    "RangeError",
    "RangeErrorKind",
    "SplitOutput",
    "base_name",
    "compress_pdf",
    "compressed_output_name",
    "describe",
    "expand_pages",
    "format_file_size",
    "format_intervals",
    "interval_count",
    "interval_label",
    "load_levels",
    "merge_pdfs",
    "parse",
    "pdf_metadata",
    "render_preview",
    "resolve_locale",
    "resolve_output_name",
    "split_output_name",
    "split_pdf_ranges",
]

"""Lossy PDF compression by re-rasterising every page as JPEG.

Rendering is delegated to PyMuPDF and JPEG encoding to Pillow; this module
only wires them together and reports the resulting sizes.
"""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from typing import Any, Mapping

import fitz
from PIL import Image

from common.logging import get_logger

logger = get_logger("pdf_utilities.pdf_tools.compress")


class CompressionError(ValueError):
    """Raised when a document cannot be compressed."""


@dataclass(frozen=True)
class CompressionLevel:
    name: str
    scale: float
    quality: float
    description: str = ""

    @property
    def jpeg_quality(self) -> int:
        return max(1, min(95, int(round(self.quality * 100))))


DEFAULT_LEVELS: dict[str, CompressionLevel] = {
    "low": CompressionLevel("low", 1.0, 0.9, "Best quality, smallest reduction"),
    "medium": CompressionLevel("medium", 0.8, 0.7, "Balanced"),
    "high": CompressionLevel("high", 0.6, 0.5, "Lowest quality, largest reduction"),
}
DEFAULT_LEVEL = "medium"


@dataclass(frozen=True)
class CompressionResult:
    data: bytes
    original_size: int
    compressed_size: int
    pages: int
    level: str

    @property
    def reduction_percent(self) -> int:
        return reduction_percent(self.original_size, self.compressed_size)


def reduction_percent(original: int, compressed: int) -> int:
    if original <= 0:
        return 0
    return round((original - compressed) / original * 100)


def load_levels(raw: Mapping[str, Any] | None) -> dict[str, CompressionLevel]:
    """Merge ``compression_levels`` from ``config.yml`` over the defaults."""

    levels = dict(DEFAULT_LEVELS)
    if not raw:
        return levels
    for name, data in raw.items():
        if not isinstance(data, Mapping):
            continue
        base = levels.get(str(name), DEFAULT_LEVELS[DEFAULT_LEVEL])
        try:
            scale = float(data.get("scale", base.scale))
            quality = float(data.get("quality", base.quality))
        except (TypeError, ValueError):
            logger.warning("ignoring malformed compression level %s", name)
            continue
        if scale <= 0 or not 0 < quality <= 1:
            logger.warning("ignoring out-of-range compression level %s", name)
            continue
        levels[str(name)] = CompressionLevel(
            name=str(name),
            scale=scale,
            quality=quality,
            description=str(data.get("description", base.description)),
        )
    return levels


def _open(data: bytes) -> fitz.Document:
    try:
        return fitz.open(stream=data, filetype="pdf")
    except Exception as exc:
        raise CompressionError(f"Unable to open PDF: {exc}") from exc


def _render_jpeg(page: fitz.Page, scale: float, quality: int) -> bytes:
    pixmap = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
    image = Image.frombytes("RGB", (pixmap.width, pixmap.height), pixmap.samples)
    buffer = BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def compress_pdf(data: bytes, level: CompressionLevel) -> CompressionResult:
    """Rebuild ``data`` as a PDF of JPEG page images.

    Output pages keep the size of the source pages; only the raster
    resolution follows ``level.scale``.
    """

    source = _open(data)
    output = fitz.open()
    try:
        if source.page_count == 0:
            raise CompressionError("PDF has no pages")
        for page in source:
            jpeg = _render_jpeg(page, level.scale, level.jpeg_quality)
            target = output.new_page(width=page.rect.width, height=page.rect.height)
            target.insert_image(target.rect, stream=jpeg)
        compressed = output.tobytes(garbage=3, deflate=True)
        pages = source.page_count
    finally:
        output.close()
        source.close()

    result = CompressionResult(
        data=compressed,
        original_size=len(data),
        compressed_size=len(compressed),
        pages=pages,
        level=level.name,
    )
    logger.info(
        "compressed %d pages at level %s: %d -> %d bytes",
        pages,
        level.name,
        result.original_size,
        result.compressed_size,
    )
    return result


def render_preview(data: bytes, *, scale: float = 0.3, quality: float = 0.8) -> bytes:
    """Return a JPEG thumbnail of the first page."""

    document = _open(data)
    try:
        if document.page_count == 0:
            raise CompressionError("PDF has no pages")
        return _render_jpeg(document[0], scale, int(round(quality * 100)))
    finally:
        document.close()


__all__ = [
    "CompressionError",
    "CompressionLevel",
    "CompressionResult",
    "DEFAULT_LEVEL",
    "DEFAULT_LEVELS",
    "compress_pdf",
    "load_levels",
    "reduction_percent",
    "render_preview",
]

"""PDF tools API blueprint with standardized responses."""

from __future__ import annotations

import base64
import json
import zipfile
from io import BytesIO
from typing import Iterable

import pydantic
from flask import Blueprint, Response, current_app, request
from pydantic import Field

from common.errors import AppError, ValidationAppError
from common.logging import get_logger
from common.responses import attachment, fail, ok
from common.validation import (
    FileLimit,
    SchemaModel,
    ValidationError,
    enforce_limits,
    parse_model,
    validate_mime,
)

from ..core import (
    DEFAULT_LEVEL,
    CompressionError,
    MergeSpec,
    OutputNameError,
    PageInterval,
    PageRangeError,
    RangeError,
    base_name,
    compress_pdf,
    compressed_output_name,
    describe,
    format_file_size,
    format_intervals,
    load_levels,
    merge_pdfs,
    parse,
    pdf_metadata,
    render_preview,
    resolve_locale,
    resolve_output_name,
    split_pdf_ranges,
)
from ..ui import ui_bp

logger = get_logger("pdf_utilities.pdf_tools.api")


class MergeItem(SchemaModel):
    field: str
    filename: str | None = None
    pages: str = "all"


class MergePayload(SchemaModel):
    manifest: list[MergeItem]
    output_name: str | None = None


class RangeRequest(SchemaModel):
    # Token text is reported verbatim, so surrounding whitespace is kept.
    model_config = pydantic.ConfigDict(str_strip_whitespace=False)

    ranges: str = ""
    total_pages: int = Field(ge=0)


def _settings() -> dict:
    return current_app.config.get("PLUGIN_SETTINGS", {}).get("pdf_tools", {}) or {}


def _limit(key: str, *, default_max_files: int, default_max_mb: int) -> FileLimit:
    return FileLimit.from_settings(
        _settings().get(key),
        default_max_files=default_max_files,
        default_max_mb=default_max_mb,
    )


def _locale() -> str:
    site_default = current_app.config.get("SITE_SETTINGS", {}).get("locale")
    requested = request.args.get("lang") or request.form.get("lang")
    return resolve_locale(requested, default=resolve_locale(site_default))


def _range_failure(error: RangeError) -> Response:
    return fail(
        ValidationAppError(
            message=describe(error, _locale()),
            code=f"pdf.{error.kind.value}",
            details=error.to_dict(),
        )
    )


def _upload_failure(exc: ValidationError) -> Response:
    return fail(
        ValidationAppError(
            message=str(exc),
            code="pdf.invalid_upload",
            details=getattr(exc, "details", None),
        )
    )


def _interval_payload(interval: PageInterval) -> dict[str, int]:
    return {"start": interval.start, "end": interval.end, "pages": interval.page_count}


api_bp = Blueprint("pdf_tools_api", __name__, url_prefix="/api/pdf_tools")


def _load_manifest() -> MergePayload | Response:
    manifest_raw = request.form.get("manifest")
    if not manifest_raw:
        return fail(
            ValidationAppError(
                message="Missing merge manifest", code="pdf.missing_manifest"
            )
        )
    try:
        manifest = json.loads(manifest_raw)
    except json.JSONDecodeError as exc:
        return fail(
            ValidationAppError(
                message="Invalid manifest format",
                code="pdf.invalid_manifest",
                details={"error": str(exc)},
            )
        )
    if not isinstance(manifest, list):
        return fail(
            ValidationAppError(
                message="Manifest must be a list", code="pdf.invalid_manifest"
            )
        )
    payload = {"manifest": manifest, "output_name": request.form.get("output_name")}
    try:
        return parse_model(MergePayload, payload)
    except ValidationError as exc:
        return fail(
            ValidationAppError(
                message=str(exc),
                code="pdf.invalid_manifest",
                details=getattr(exc, "details", None),
            )
        )


def _collect_uploads(manifest: Iterable[MergeItem]) -> list:
    uploads = []
    for item in manifest:
        file = request.files.get(item.field)
        if file is None:
            raise ValidationAppError(
                message=f"Missing file for field {item.field}", code="pdf.missing_file"
            )
        uploads.append(file)
    return uploads


def _download_requested() -> bool:
    return request.args.get("download") == "1"


def _zip(entries: Iterable[tuple[str, bytes]]) -> bytes:
    zip_buf = BytesIO()
    with zipfile.ZipFile(zip_buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, content in entries:
            zf.writestr(name, content)
    return zip_buf.getvalue()


@api_bp.post("/ranges/validate")
def validate_ranges() -> Response:
    raw = request.get_json(silent=True)
    if raw is None:
        raw = {
            key: request.form.get(key)
            for key in ("ranges", "total_pages")
            if key in request.form
        }
    try:
        payload = parse_model(RangeRequest, raw)
    except ValidationError as exc:
        return fail(
            ValidationAppError(
                message=str(exc),
                code="pdf.invalid_range_request",
                details=getattr(exc, "details", None),
            )
        )

    result = parse(payload.ranges, payload.total_pages)
    if result.error is not None:
        return _range_failure(result.error)
    return ok(
        {
            "intervals": [_interval_payload(item) for item in result.intervals],
            "count": len(result.intervals),
            "normalized": format_intervals(result.intervals),
        }
    )


@api_bp.post("/merge")
def merge() -> Response:
    manifest = _load_manifest()
    if isinstance(manifest, Response):
        return manifest

    try:
        uploads = _collect_uploads(manifest.manifest)
        enforce_limits(uploads, _limit("merge_upload", default_max_files=10, default_max_mb=5))
        validate_mime(uploads, {"application/pdf"})
    except ValidationAppError as exc:
        return fail(exc)
    except ValidationError as exc:
        return _upload_failure(exc)

    if len(uploads) < 2:
        return fail(
            ValidationAppError(
                message="At least two PDF files are required to merge",
                code="pdf.merge_requires_two",
            )
        )

    try:
        safe_name = resolve_output_name(manifest.output_name)
    except OutputNameError as exc:
        return fail(ValidationAppError(message=str(exc), code=exc.code))

    specs: list[MergeSpec] = []
    for item, file in zip(manifest.manifest, uploads, strict=False):
        filename = item.filename or file.filename or file.name or "document.pdf"
        specs.append(MergeSpec(data=file.read(), page_range=item.pages, filename=filename))

    try:
        merged = merge_pdfs(specs)
    except PageRangeError as exc:
        return _range_failure(exc.error)

    if _download_requested():
        return attachment(merged, mimetype="application/pdf", filename=safe_name)
    payload = {
        "filename": safe_name,
        "pdf_base64": base64.b64encode(merged).decode("ascii"),
        "total_files": len(specs),
        "size_bytes": len(merged),
        "size_label": format_file_size(len(merged)),
    }
    return ok(payload)


@api_bp.post("/split")
def split() -> Response:
    file = request.files.get("file")
    if not file:
        return fail(
            ValidationAppError(message="No file provided", code="pdf.file_missing")
        )
    try:
        enforce_limits([file], _limit("split_upload", default_max_files=1, default_max_mb=5))
        validate_mime([file], {"application/pdf"})
    except ValidationError as exc:
        return _upload_failure(exc)

    data = file.read()
    try:
        meta = pdf_metadata(data)
    except Exception:  # pragma: no cover
        logger.exception("unable to read uploaded PDF")
        return fail(AppError(code="pdf.metadata_error", message="Unable to read PDF"))

    ranges = request.form.get("ranges")
    if ranges is not None:
        result = parse(ranges, meta.pages)
        if result.error is not None:
            return _range_failure(result.error)
        intervals = list(result.intervals)
    else:
        intervals = [PageInterval(page, page) for page in range(1, meta.pages + 1)]

    locale = _locale()
    try:
        outputs = split_pdf_ranges(data, intervals, file.filename, locale=locale)
    except PageRangeError as exc:  # pragma: no cover - intervals come from parse
        return _range_failure(exc.error)

    if _download_requested():
        archive = _zip((output.name, output.data) for output in outputs)
        return attachment(
            archive,
            mimetype="application/zip",
            filename=f"{base_name(file.filename)}_split.zip",
        )
    files_payload = [
        {
            "name": output.name,
            "label": output.label,
            **_interval_payload(output.interval),
            "size_bytes": len(output.data),
            "pdf_base64": base64.b64encode(output.data).decode("ascii"),
        }
        for output in outputs
    ]
    payload = {
        "files": files_payload,
        "count": len(files_payload),
        "page_count": meta.pages,
    }
    return ok(payload)


@api_bp.post("/metadata")
def metadata() -> Response:
    file = request.files.get("file")
    if not file:
        return fail(
            ValidationAppError(message="No file provided", code="pdf.file_missing")
        )

    merge_limit = _limit("merge_upload", default_max_files=10, default_max_mb=5)
    metadata_limit = FileLimit(max_files=1, max_size=merge_limit.max_size)

    try:
        enforce_limits([file], metadata_limit)
        validate_mime([file], {"application/pdf"})
    except ValidationError as exc:
        return _upload_failure(exc)

    try:
        info = pdf_metadata(file.read())
    except Exception:  # pragma: no cover
        logger.exception("unable to read uploaded PDF")
        return fail(AppError(code="pdf.metadata_error", message="Unable to read PDF"))

    payload = {
        "pages": info.pages,
        "size_bytes": info.size_bytes,
        "size_label": format_file_size(info.size_bytes),
    }
    return ok(payload)


@api_bp.get("/compress/levels")
def compression_levels() -> Response:
    levels = load_levels(_settings().get("compression_levels"))
    payload = [
        {
            "name": level.name,
            "scale": level.scale,
            "quality": level.quality,
            "description": level.description,
        }
        for level in levels.values()
    ]
    return ok({"levels": payload, "default": DEFAULT_LEVEL})


@api_bp.post("/compress")
def compress() -> Response:
    files = request.files.getlist("file")
    try:
        enforce_limits(files, _limit("compress_upload", default_max_files=10, default_max_mb=50))
        validate_mime(files, {"application/pdf"})
    except ValidationError as exc:
        return _upload_failure(exc)

    levels = load_levels(_settings().get("compression_levels"))
    level_name = (request.form.get("level") or DEFAULT_LEVEL).strip().lower()
    level = levels.get(level_name)
    if level is None:
        return fail(
            ValidationAppError(
                message=f"Unknown compression level {level_name}",
                code="pdf.invalid_compression_level",
                details={"allowed": sorted(levels)},
            )
        )

    results: list[dict[str, object]] = []
    outputs: list[tuple[str, bytes]] = []
    skipped: list[str] = []
    seen: set[tuple[str, int]] = set()
    for file in files:
        data = file.read()
        filename = file.filename or "document.pdf"
        key = (filename, len(data))
        if key in seen:
            skipped.append(filename)
            continue
        seen.add(key)

        name = compressed_output_name(filename)
        try:
            result = compress_pdf(data, level)
        except CompressionError as exc:
            logger.warning("compression failed for %s: %s", filename, exc)
            results.append(
                {"name": name, "source": filename, "original_size": len(data), "error": str(exc)}
            )
            continue
        outputs.append((name, result.data))
        results.append(
            {
                "name": name,
                "source": filename,
                "pages": result.pages,
                "original_size": result.original_size,
                "compressed_size": result.compressed_size,
                "original_label": format_file_size(result.original_size),
                "compressed_label": format_file_size(result.compressed_size),
                "reduction_percent": result.reduction_percent,
                "pdf_base64": base64.b64encode(result.data).decode("ascii"),
            }
        )

    if not outputs:
        return fail(
            ValidationAppError(
                message="No file could be compressed",
                code="pdf.compression_failed",
                details={"files": results},
            )
        )

    if _download_requested():
        if len(outputs) == 1:
            name, content = outputs[0]
            return attachment(content, mimetype="application/pdf", filename=name)
        return attachment(
            _zip(outputs), mimetype="application/zip", filename="pdfs_comprimidos.zip"
        )
    return ok({"level": level.name, "files": results, "skipped": skipped})


@api_bp.post("/preview")
def preview() -> Response:
    file = request.files.get("file")
    if not file:
        return fail(
            ValidationAppError(message="No file provided", code="pdf.file_missing")
        )
    try:
        enforce_limits([file], _limit("compress_upload", default_max_files=10, default_max_mb=50))
        validate_mime([file], {"application/pdf"})
    except ValidationError as exc:
        return _upload_failure(exc)

    try:
        image = render_preview(file.read())
    except CompressionError as exc:
        return fail(ValidationAppError(message=str(exc), code="pdf.preview_error"))
    return ok(
        {
            "mimetype": "image/jpeg",
            "preview_base64": base64.b64encode(image).decode("ascii"),
        }
    )


blueprints = [api_bp, ui_bp]


__all__ = [
    "blueprints",
    "compress",
    "compression_levels",
    "merge",
    "metadata",
    "preview",
    "split",
    "validate_ranges",
]

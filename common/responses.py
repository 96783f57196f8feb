"""Standardized JSON and download response helpers."""

from __future__ import annotations

from io import BytesIO
from typing import Any, Mapping

from flask import Response, jsonify, send_file

from .errors import AppError


def ok(data: Any, *, status: int = 200) -> Response:
    """Return a success envelope."""

    response = jsonify({"success": True, "data": data})
    response.status_code = status
    return response


def fail(error: AppError | Mapping[str, Any], *, status: int | None = None) -> Response:
    """Return a standardized failure envelope."""

    if isinstance(error, AppError):
        response = jsonify({"success": False, "error": error.to_dict()})
        response.status_code = status or error.status_code
        return response

    response = jsonify({"success": False, "error": dict(error)})
    response.status_code = status or 400
    return response


def attachment(data: bytes, *, mimetype: str, filename: str) -> Response:
    """Stream ``data`` as a non-cacheable download."""

    return send_file(
        BytesIO(data),
        mimetype=mimetype,
        as_attachment=True,
        download_name=filename,
        max_age=0,
    )


__all__ = ["ok", "fail", "attachment"]

"""Server-rendered entry page for the PDF tools."""

from __future__ import annotations

from flask import Blueprint, current_app, url_for

from ..core.messages import supported_locales

ui_bp = Blueprint("pdf_tools", __name__, url_prefix="/pdf_tools")

TOOLS = ("merge", "split", "compress")


@ui_bp.get("/")
def index():
    settings = current_app.config.get("PLUGIN_SETTINGS", {}).get("pdf_tools", {}) or {}
    props = {
        "tools": list(TOOLS),
        "api": {
            "merge": url_for("pdf_tools_api.merge"),
            "split": url_for("pdf_tools_api.split"),
            "compress": url_for("pdf_tools_api.compress"),
            "validate_ranges": url_for("pdf_tools_api.validate_ranges"),
            "metadata": url_for("pdf_tools_api.metadata"),
            "preview": url_for("pdf_tools_api.preview"),
        },
        "range_examples": settings.get("range_examples", ["1-3", "1, 3, 5", "1-2, 5, 8-10"]),
        "locales": supported_locales(),
    }
    render_page = current_app.extensions["render_page"]
    return render_page("pdf_tools", props)


__all__ = ["ui_bp", "index"]

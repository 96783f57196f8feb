"""Application factory for the PDF utilities server."""

from __future__ import annotations

import importlib
import pkgutil
from pathlib import Path
from typing import Iterable

import yaml
from flask import Flask, render_template, request, url_for

from common.errors import InternalAppError, PayloadTooLargeAppError
from common.logging import get_logger, install_request_logging
from common.responses import fail

from . import config as config_module

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yml"

logger = get_logger("pdf_utilities.app")


def _load_yaml_config(path: Path = CONFIG_PATH) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def _discover_plugins(package: str = "plugins") -> Iterable[str]:
    """Yield import paths for all plugin packages."""

    package_path = Path(__file__).resolve().parent.parent / package
    if not package_path.exists():
        return []
    for module_info in pkgutil.iter_modules([str(package_path)]):
        if module_info.ispkg:
            yield f"{package}.{module_info.name}"


def _plugin_blueprints(package: str = "plugins") -> list:
    """Collect the ``blueprints`` list exported by each plugin's ``api`` module."""

    blueprints = []
    for dotted in _discover_plugins(package):
        module = importlib.import_module(f"{dotted}.api")
        blueprints.extend(getattr(module, "blueprints", None) or [])
    return blueprints


def _load_manifests() -> list[dict[str, str]]:
    manifests: list[dict[str, str]] = []
    for dotted in _discover_plugins():
        module = importlib.import_module(dotted)
        manifest = getattr(module, "manifest", None)
        if manifest:
            manifests.append(dict(manifest))
    manifests.sort(key=lambda item: item["title"].lower())
    return manifests


def create_app(config_name: str | None = None) -> Flask:
    """Create and configure the Flask application instance."""

    app = Flask(__name__, template_folder="ui/templates")
    app.config.from_object(config_module.BaseConfig)

    yaml_config = _load_yaml_config()
    site_settings = yaml_config.get("site", {}) or {}
    plugin_settings = yaml_config.get("plugins", {}) or {}

    app.config["SITE_SETTINGS"] = site_settings
    if "max_content_length_mb" in site_settings:
        try:
            max_bytes = int(float(site_settings["max_content_length_mb"]) * 1024 * 1024)
            app.config["MAX_CONTENT_LENGTH"] = max_bytes
        except (TypeError, ValueError):
            logger.warning(
                "ignoring invalid max_content_length_mb=%r",
                site_settings["max_content_length_mb"],
            )

    app.config["PLUGIN_SETTINGS"] = plugin_settings

    if config_name:
        config_obj = getattr(config_module, config_name, None)
        if config_obj:
            app.config.from_object(config_obj)

    for blueprint in _plugin_blueprints():
        app.register_blueprint(blueprint)
    install_request_logging(app)

    def _prepare_manifests() -> list[dict]:
        manifests: list[dict] = []
        for manifest in app.config.get("PLUGIN_MANIFESTS", []):
            entry = dict(manifest)
            blueprint = entry.get("blueprint")
            if blueprint:
                entry["href"] = url_for(f"{blueprint}.index")
            manifests.append(entry)
        return manifests

    def _render_page(page: str, props: dict | None = None, status: int = 200):
        site_config = app.config.get("SITE_SETTINGS", {})
        state = {
            "page": page,
            "locale": site_config.get("locale", "es"),
            "siteSettings": site_config,
            "manifests": _prepare_manifests(),
            "props": props or {},
        }
        return (
            render_template("app.html", initial_state=state),
            status,
        )

    app.extensions["render_page"] = _render_page

    @app.context_processor
    def inject_site_settings():
        return {"site_settings": app.config.get("SITE_SETTINGS", {})}

    @app.after_request
    def apply_response_headers(response):
        """Attach strict security headers to every outgoing response."""

        configured = app.config.get("RESPONSE_HEADERS", {})
        for header, value in configured.items():
            if header not in response.headers:
                response.headers[header] = value
        return response

    manifests = _load_manifests()
    for manifest in manifests:
        blueprint = manifest.get("blueprint")
        plugin_config = plugin_settings.get(blueprint, {}) if blueprint else {}
        if plugin_config.get("summary"):
            manifest["summary"] = plugin_config["summary"]
    app.config["PLUGIN_MANIFESTS"] = manifests

    @app.route("/")
    def home():
        return _render_page("home", {"plugins": _prepare_manifests()})

    def _wants_json() -> bool:
        return request.path.startswith("/api/")

    @app.errorhandler(400)
    def bad_request(error):  # pragma: no cover - simple template rendering
        return render_template("errors/400.html"), 400

    @app.errorhandler(413)
    def payload_too_large(error):
        if _wants_json():
            limit = app.config.get("MAX_CONTENT_LENGTH")
            return fail(
                PayloadTooLargeAppError(
                    message="Upload exceeds the allowed size",
                    details={"max_bytes": limit},
                )
            )
        return render_template("errors/413.html"), 413

    @app.errorhandler(500)
    def server_error(error):  # pragma: no cover
        if _wants_json():
            return fail(InternalAppError(message="Unexpected server error"))
        return render_template("errors/500.html"), 500

    logger.debug("application created with %d plugins", len(manifests))
    return app


__all__ = ["create_app"]

"""Flask application configuration and blueprint registration."""

from __future__ import annotations

import time
from datetime import datetime

from flask import Flask, jsonify, request

from lingobatch.logger import get_logger
from lingobatch.web import tasks

from .routes.translation import translation_bp

logger = get_logger(__name__)

_STARTED_AT = time.time()

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}


def build_app() -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)

    # Ensure JSON responses keep Unicode data.
    app.json.ensure_ascii = False
    app.config["MAX_CONTENT_LENGTH"] = 10 * 1024 * 1024

    @app.before_request
    def log_request():
        logger.debug("%s %s", request.method, request.path)
        if request.method == "OPTIONS":
            return app.make_default_options_response()

    @app.after_request
    def add_headers(response):
        response.headers.update(SECURITY_HEADERS)
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    register_blueprints(app)
    register_default_routes(app)

    return app


def register_blueprints(app: Flask) -> None:
    """Register Flask blueprints."""
    app.register_blueprint(translation_bp)


def register_default_routes(app: Flask) -> None:
    """Register the health route and JSON error handlers."""

    @app.get("/health")
    def health_check():
        logger.debug("Health check requested")
        return jsonify({
            "status": "ok",
            "uptime": round(time.time() - _STARTED_AT, 3),
            "timestamp": datetime.now().isoformat(),
            "translationRunning": tasks.is_running(),
        })

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({
            "error": "Not found",
            "message": f"Route {request.method} {request.path} not found",
        }), 404

    @app.errorhandler(500)
    def internal_error(e):
        logger.exception("Internal server error: %s", e)
        return jsonify({"error": "Internal server error"}), 500

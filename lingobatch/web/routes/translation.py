"""Translation run API routes."""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Dict

from flask import Blueprint, Response, jsonify, request, stream_with_context

from lingobatch.ai.exceptions import ConfigError
from lingobatch.config import DEFAULT_CONFIG, build_run_config, import_run_options, load_config
from lingobatch.core import database as db
from lingobatch.logger import get_logger
import lingobatch.language_codes as lc
from lingobatch.resources import FileFormat
from lingobatch.web import tasks

translation_bp = Blueprint("translation", __name__)
logger = get_logger(__name__)

DEFAULT_LANGUAGES = "uk"
DEFAULT_FILE_TYPE = "php"
ALLOWED_FILE_TYPES = ("php", "json", "files")

SSE_POLL_INTERVAL = 0.5
SSE_TIMEOUT = 30 * 60

# USD per 1K input tokens
MODEL_PRICING = {
    "google/gemini-2.0-flash-lite-001": 0.00005,
    "google/gemini-2.5-flash-lite": 0.00004,
    "openai/gpt-5-nano": 0.0001,
}
AVG_TOKENS_PER_STRING = 50


def _error(message: str, status: int, code: str = None, details: Dict[str, Any] = None):
    payload: Dict[str, Any] = {"error": message}
    if code:
        payload["code"] = code
    if details:
        payload["details"] = details
    return jsonify(payload), status


@translation_bp.post("/translate")
def start_translation():
    """Validate the request and start a background run."""
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    languages = data.get("lang") or DEFAULT_LANGUAGES
    file_type = data.get("fileType") or DEFAULT_FILE_TYPE
    params = data.get("params") or {}

    if not isinstance(params, dict):
        return _error("params must be an object", 400, code="invalid_params")

    if file_type not in ALLOWED_FILE_TYPES:
        return _error(
            "Invalid file type",
            400,
            code="invalid_file_type",
            details={"message": f"File type must be one of: {', '.join(ALLOWED_FILE_TYPES)}"},
        )

    codes = lc.parse_language_list(languages)
    if not codes:
        return _error("At least one target language is required", 400, code="invalid_languages")

    try:
        config = build_run_config(params)
    except ConfigError as e:
        logger.warning("Rejected translation request: %s", e)
        return _error(str(e), 400, code=e.code or "config_error", details=e.details)

    if tasks.is_running():
        return _error("Translation already in progress", 409, code="run_in_progress")

    app_config = load_config()
    started = tasks.start_run(
        ",".join(codes),
        FileFormat.parse(file_type),
        config,
        Path(app_config["input_dir"]),
        Path(app_config["output_dir"]),
    )
    if not started:
        return _error("Translation already in progress", 409, code="run_in_progress")
    return jsonify({"status": "started"}), 202


@translation_bp.post("/stop")
def stop_translation():
    if tasks.stop_run():
        return jsonify({"message": "Translation stopped"})
    return jsonify({"message": "No active translation to stop"})


@translation_bp.get("/status")
def get_status():
    return jsonify(tasks.get_state())


@translation_bp.get("/progress")
def get_progress():
    return jsonify(tasks.get_progress())


def _sse(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


@translation_bp.get("/logs/stream")
def stream_logs():
    """Server-sent events: the latest log line and stats every poll until the run is done."""

    def generate():
        state = tasks.get_state()
        yield _sse({"log": "Connected to log stream", "stats": state["stats"]})
        deadline = time.monotonic() + SSE_TIMEOUT
        last_sent = None
        while time.monotonic() < deadline:
            state = tasks.get_state()
            if state["log"]:
                line = state["log"][-1]
                if line != last_sent:
                    yield _sse({"log": line, "stats": state["stats"]})
                    last_sent = line
            if state["done"] or not state["running"]:
                break
            time.sleep(SSE_POLL_INTERVAL)

    headers = {"Cache-Control": "no-cache", "Connection": "keep-alive"}
    return Response(stream_with_context(generate()), mimetype="text/event-stream", headers=headers)


@translation_bp.get("/history")
def get_history():
    try:
        return jsonify(db.get_history())
    except Exception as e:
        logger.exception("Failed to load history: %s", e)
        return _error("Failed to load history", 500, details={"message": str(e)})


def _int_arg(name: str, default: int) -> int:
    try:
        value = int(request.args.get(name, ""))
    except ValueError:
        return default
    return value if value > 0 else default


@translation_bp.get("/export-config")
def export_config():
    """Download the run options, query parameters overriding the saved config."""
    saved = load_config()

    def saved_int(name: str) -> int:
        try:
            return int(saved.get(name, DEFAULT_CONFIG[name]))
        except (TypeError, ValueError):
            return DEFAULT_CONFIG[name]

    config = {
        "maxConcurrency": _int_arg("maxConcurrency", saved_int("MAX_CONCURRENCY")),
        "batchLimit": _int_arg("batchLimit", saved_int("MAX_BATCH_CHAR_LIMIT")),
        "retryDelay": _int_arg("retryDelay", saved_int("RETRY_DELAY")),
        "maxErrors": _int_arg("maxErrors", saved_int("MAX_ERRORS")),
        "model": request.args.get("model") or saved.get("activeModel") or DEFAULT_CONFIG["activeModel"],
    }
    response = jsonify(config)
    response.headers["Content-Disposition"] = "attachment; filename=translator-config.json"
    return response


@translation_bp.post("/import-config")
def import_config():
    """Load a file produced by /export-config back into the saved config."""
    data = request.get_json(silent=True)
    try:
        imported = import_run_options(data)
    except ConfigError as e:
        return _error(str(e), 400, code=e.code, details=e.details)
    return jsonify({"success": True, "config": imported})


@translation_bp.post("/estimate-cost")
def estimate_cost():
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    model = data.get("model")
    try:
        files_count = int(data.get("filesCount") or 0)
        total_strings = int(data.get("totalStrings") or 0)
    except (TypeError, ValueError):
        return _error("filesCount and totalStrings must be integers", 400, code="invalid_params")

    estimated_tokens = (total_strings or 100) * AVG_TOKENS_PER_STRING
    price = MODEL_PRICING.get(model, 0)
    estimated_cost = estimated_tokens / 1000 * price
    return jsonify({
        "filesCount": files_count,
        "totalStrings": total_strings,
        "estimatedTokens": estimated_tokens,
        "estimatedCost": f"{estimated_cost:.4f}",
        "currency": "USD",
        "isFree": price == 0,
        "model": model,
    })

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from lingobatch.ai.exceptions import ConfigError
from lingobatch.core import database as db
from lingobatch.logger import get_logger

logger = get_logger(__name__)

# Run configuration defaults (mirrors the control surface defaults)
DEFAULT_MAX_CONCURRENCY = 5
DEFAULT_MAX_BATCH_CHAR_LIMIT = 12000
DEFAULT_RETRY_DELAY_MS = 2000
DEFAULT_MAX_ERRORS = 10
DEFAULT_MODEL = "google/gemini-2.0-flash-lite-001"
DEFAULT_API_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_SOURCE_LANGUAGE = "en"

# Get base directory (project root)
BASE_DIR = Path(__file__).parent.parent
DEFAULT_INPUT_DIR = BASE_DIR / "input"
DEFAULT_OUTPUT_DIR = BASE_DIR / "output"

KEYS_ENV_VAR = "LINGOBATCH_KEYS"
MODEL_ENV_VAR = "LINGOBATCH_MODEL"

# Default configuration template
DEFAULT_CONFIG = {
    "MAX_CONCURRENCY": DEFAULT_MAX_CONCURRENCY,
    "MAX_BATCH_CHAR_LIMIT": DEFAULT_MAX_BATCH_CHAR_LIMIT,
    "RETRY_DELAY": DEFAULT_RETRY_DELAY_MS,
    "MAX_ERRORS": DEFAULT_MAX_ERRORS,
    "KEYS": [],
    "activeModel": DEFAULT_MODEL,
    "api_url": DEFAULT_API_URL,
    "source_language": DEFAULT_SOURCE_LANGUAGE,
    "input_dir": str(DEFAULT_INPUT_DIR),
    "output_dir": str(DEFAULT_OUTPUT_DIR),
    "glossary": {},
    "log_mode": "info",
}

# camelCase names accepted from the control surface -> canonical names
PARAM_ALIASES = {
    "maxConcurrency": "MAX_CONCURRENCY",
    "batchLimit": "MAX_BATCH_CHAR_LIMIT",
    "retryDelay": "RETRY_DELAY",
    "maxErrors": "MAX_ERRORS",
    "apiKeys": "KEYS",
    "model": "activeModel",
}

INTEGER_PARAMS = ("MAX_CONCURRENCY", "MAX_BATCH_CHAR_LIMIT", "RETRY_DELAY", "MAX_ERRORS")


@dataclass(frozen=True)
class RunConfig:
    """Validated, immutable options for one translation run."""

    keys: Tuple[str, ...]
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    max_batch_char_limit: int = DEFAULT_MAX_BATCH_CHAR_LIMIT
    retry_delay: int = DEFAULT_RETRY_DELAY_MS
    max_errors: int = DEFAULT_MAX_ERRORS
    active_model: str = DEFAULT_MODEL
    api_url: str = DEFAULT_API_URL
    source_language: str = DEFAULT_SOURCE_LANGUAGE
    glossary: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def retry_delay_seconds(self) -> float:
        return self.retry_delay / 1000.0

    def to_public_dict(self) -> Dict[str, Any]:
        """Serializable view with credentials masked."""
        return {
            "MAX_CONCURRENCY": self.max_concurrency,
            "MAX_BATCH_CHAR_LIMIT": self.max_batch_char_limit,
            "RETRY_DELAY": self.retry_delay,
            "MAX_ERRORS": self.max_errors,
            "KEYS": [_mask_key(k) for k in self.keys],
            "activeModel": self.active_model,
            "api_url": self.api_url,
        }


def _mask_key(key: str) -> str:
    if len(key) <= 8:
        return "****"
    return f"{key[:4]}...{key[-4:]}"


def parse_keys(value: Any) -> List[str]:
    """Accept a list of keys or a comma separated string; drop blanks."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        raise ConfigError("KEYS must be a list or a comma separated string",
                          details={"field": "KEYS"})
    return [str(k).strip() for k in items if k is not None and str(k).strip()]


def normalize_params(params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Map camelCase aliases onto canonical option names. Canonical names win."""
    normalized: Dict[str, Any] = {}
    for key, value in (params or {}).items():
        canonical = PARAM_ALIASES.get(key)
        if canonical is not None:
            normalized.setdefault(canonical, value)
        else:
            normalized[key] = value
    return normalized


def _check_integers(options: Mapping[str, Any], errors: List[str]) -> Dict[str, int]:
    """Validate the numeric run options present in ``options``; problems go to ``errors``."""
    numbers: Dict[str, int] = {}
    for name in INTEGER_PARAMS:
        if name not in options:
            continue
        raw = options[name]
        try:
            if isinstance(raw, bool):
                raise ValueError(name)
            value = int(raw)
        except (TypeError, ValueError):
            errors.append(f"{name} must be an integer (got {raw!r})")
            continue
        if name == "RETRY_DELAY":
            if value < 0:
                errors.append(f"{name} must not be negative")
        elif value < 1:
            errors.append(f"{name} must be at least 1")
        numbers[name] = value
    return numbers


def build_run_config(params: Optional[Mapping[str, Any]] = None,
                     defaults: Optional[Mapping[str, Any]] = None) -> RunConfig:
    """
    Build a RunConfig from caller supplied parameters.

    Missing options fall back to ``defaults`` (the persisted app config when
    omitted) and then to DEFAULT_CONFIG.

    Raises:
        ConfigError: If no credential is available or a numeric option is not a positive int.
    """
    base = dict(DEFAULT_CONFIG)
    base.update(defaults if defaults is not None else load_config())
    # Blank values fall back to the persisted defaults
    supplied = {k: v for k, v in normalize_params(params).items() if v not in (None, "", [])}
    merged = {**base, **supplied}

    errors: List[str] = []
    numbers = _check_integers(merged, errors)

    keys = parse_keys(merged.get("KEYS"))
    if not keys:
        errors.append("At least one valid API key is required")

    model = merged.get("activeModel")
    if not isinstance(model, str) or not model.strip():
        errors.append("activeModel must be a non-empty string")

    if errors:
        raise ConfigError("Invalid run configuration: " + "; ".join(errors),
                          details={"errors": errors})

    glossary = merged.get("glossary") or {}
    return RunConfig(
        keys=tuple(keys),
        max_concurrency=numbers["MAX_CONCURRENCY"],
        max_batch_char_limit=numbers["MAX_BATCH_CHAR_LIMIT"],
        retry_delay=numbers["RETRY_DELAY"],
        max_errors=numbers["MAX_ERRORS"],
        active_model=model.strip(),
        api_url=merged.get("api_url") or DEFAULT_API_URL,
        source_language=merged.get("source_language") or DEFAULT_SOURCE_LANGUAGE,
        glossary=glossary if isinstance(glossary, dict) else {},
    )


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    env_keys = os.environ.get(KEYS_ENV_VAR)
    if env_keys:
        config["KEYS"] = parse_keys(env_keys)
    env_model = os.environ.get(MODEL_ENV_VAR)
    if env_model:
        config["activeModel"] = env_model.strip()
    return config


def _load_stored_config() -> Dict[str, Any]:
    config = json.loads(json.dumps(DEFAULT_CONFIG))
    if not db.DB_FILE.exists():
        return config
    try:
        config_json = db.get_app_config('config')
        if config_json:
            stored = json.loads(config_json)
            if isinstance(stored, dict):
                config.update(stored)
                logger.debug("Configuration loaded from database")
            else:
                logger.warning("Stored configuration is not an object, using defaults")
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse config from database: {e}")
        logger.warning("Using default configuration")
    except Exception as e:
        logger.error(f"Failed to load config from database: {e}")
        logger.warning("Using default configuration")
    return config


def load_config() -> Dict[str, Any]:
    """Load the persisted app configuration, falling back to defaults."""
    return _apply_env_overrides(_load_stored_config())


def save_config(config: Dict[str, Any]):
    """Save the configuration to database."""
    try:
        config_json = json.dumps(config, ensure_ascii=False)
        db.set_app_config('config', config_json)
        logger.info("Configuration saved to database")
    except Exception as e:
        logger.error(f"Failed to save config to database: {e}")
        raise

    from lingobatch.logger import _clear_log_mode_cache
    _clear_log_mode_cache()


# Options an exported config file may carry back in
IMPORTABLE_OPTIONS = INTEGER_PARAMS + ("activeModel",)


def import_run_options(options: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate an exported options file and persist it over the saved config.

    Unknown entries are ignored; credentials are never imported.

    Returns:
        The options that were applied, under their canonical names

    Raises:
        ConfigError: If any option is invalid (nothing is saved then)
    """
    if not isinstance(options, Mapping):
        raise ConfigError("Imported configuration must be a JSON object")

    normalized = normalize_params(options)
    imported = {k: normalized[k] for k in IMPORTABLE_OPTIONS if k in normalized}

    errors: List[str] = []
    imported.update(_check_integers(imported, errors))
    model = imported.get("activeModel")
    if model is not None:
        if not isinstance(model, str) or not model.strip():
            errors.append("activeModel must be a non-empty string")
        else:
            imported["activeModel"] = model.strip()
    if errors:
        raise ConfigError("Invalid imported configuration: " + "; ".join(errors),
                          details={"errors": errors})

    config = _load_stored_config()
    config.update(imported)
    save_config(config)
    logger.info(f"Imported configuration options: {', '.join(imported) or 'none'}")
    return imported


def initialize_app():
    """
    Initialize the application.
    Creates the database and input/output directories on first run.
    """
    from lingobatch.core.schema import initialize_database

    logger.info("Initializing application...")
    initialize_database()
    logger.info("Database initialized")

    config = load_config()
    for name in ("input_dir", "output_dir"):
        Path(config[name]).mkdir(parents=True, exist_ok=True)
    logger.info("Application initialization complete")

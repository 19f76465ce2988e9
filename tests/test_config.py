import json

import pytest

from lingobatch.ai.exceptions import ConfigError
from lingobatch.config import (
    DEFAULT_CONFIG,
    DEFAULT_MODEL,
    build_run_config,
    load_config,
    normalize_params,
    parse_keys,
    save_config,
)
from lingobatch.core import database as db


@pytest.fixture
def defaults():
    return dict(DEFAULT_CONFIG)


def test_defaults_with_keys(defaults):
    config = build_run_config({"KEYS": "a, b ,,c"}, defaults=defaults)
    assert config.keys == ("a", "b", "c")
    assert config.max_concurrency == 5
    assert config.max_batch_char_limit == 12000
    assert config.retry_delay == 2000
    assert config.retry_delay_seconds == 2.0
    assert config.max_errors == 10
    assert config.active_model == DEFAULT_MODEL


def test_camel_case_aliases(defaults):
    config = build_run_config({
        "apiKeys": ["k1"],
        "maxConcurrency": "3",
        "batchLimit": 500,
        "retryDelay": 0,
        "maxErrors": 4,
        "model": "openai/gpt-5-nano",
    }, defaults=defaults)
    assert config.keys == ("k1",)
    assert config.max_concurrency == 3
    assert config.max_batch_char_limit == 500
    assert config.retry_delay == 0
    assert config.max_errors == 4
    assert config.active_model == "openai/gpt-5-nano"


def test_canonical_name_wins_over_alias():
    assert normalize_params({"maxErrors": 1, "MAX_ERRORS": 7}) == {"MAX_ERRORS": 7}


def test_missing_keys_is_a_config_error(defaults):
    with pytest.raises(ConfigError) as excinfo:
        build_run_config({}, defaults=defaults)
    assert "API key" in str(excinfo.value)


def test_all_problems_are_reported(defaults):
    with pytest.raises(ConfigError) as excinfo:
        build_run_config({"KEYS": ["k"], "MAX_CONCURRENCY": 0, "MAX_ERRORS": "many"}, defaults=defaults)
    errors = excinfo.value.details["errors"]
    assert len(errors) == 2
    assert excinfo.value.code == "config_invalid"


def test_blank_values_fall_back_to_defaults(defaults):
    config = build_run_config({"KEYS": ["k"], "maxConcurrency": "", "model": None}, defaults=defaults)
    assert config.max_concurrency == 5
    assert config.active_model == DEFAULT_MODEL


def test_parse_keys_rejects_other_types():
    assert parse_keys(None) == []
    with pytest.raises(ConfigError):
        parse_keys(42)


def test_public_dict_masks_keys(defaults):
    config = build_run_config({"KEYS": ["sk-or-v1-abcdef123456", "short"]}, defaults=defaults)
    assert config.to_public_dict()["KEYS"] == ["sk-o...3456", "****"]


def test_load_config_without_database(tmp_path, monkeypatch):
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "absent.db")
    monkeypatch.delenv("LINGOBATCH_KEYS", raising=False)
    monkeypatch.delenv("LINGOBATCH_MODEL", raising=False)
    assert load_config() == json.loads(json.dumps(DEFAULT_CONFIG))


def test_saved_config_round_trip(temp_db):
    save_config({"KEYS": ["persisted"], "MAX_ERRORS": 3})
    loaded = load_config()
    assert loaded["KEYS"] == ["persisted"]
    assert loaded["MAX_ERRORS"] == 3
    assert loaded["MAX_CONCURRENCY"] == 5

    config = build_run_config({})
    assert config.keys == ("persisted",)
    assert config.max_errors == 3


def test_environment_overrides(temp_db, monkeypatch):
    monkeypatch.setenv("LINGOBATCH_KEYS", "env-1,env-2")
    monkeypatch.setenv("LINGOBATCH_MODEL", "google/gemini-2.5-flash-lite")
    loaded = load_config()
    assert loaded["KEYS"] == ["env-1", "env-2"]
    assert loaded["activeModel"] == "google/gemini-2.5-flash-lite"


def test_history_is_trimmed_and_newest_first(temp_db):
    for i in range(db.HISTORY_LIMIT + 5):
        db.add_history_entry("uk", i, i * 10, 1, "m", success=i % 2 == 0)

    history = db.get_history()
    assert len(history) == db.HISTORY_LIMIT
    assert history[0]["files_count"] == db.HISTORY_LIMIT + 4
    assert history[0]["success"] is True
    assert history[1]["success"] is False


def test_app_config_values_are_decoded(temp_db):
    db.set_app_config("config", json.dumps({"a": 1}))
    db.set_app_config("note", "plain text")
    assert db.get_all_app_config() == {"config": {"a": 1}, "note": "plain text"}

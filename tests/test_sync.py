import json

import pytest

from lingobatch.core.sync import (
    FAILED,
    MERGED,
    NO_ORIGINAL,
    NO_TRANSLATION,
    UNCHANGED,
    merge_locales,
    merge_translated_file,
)
from lingobatch.resources.keyed_array import parse_keyed_array, render_keyed_array


def _write_php(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_keyed_array(data), encoding="utf-8")


def _write_json(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


def test_php_overlay_adds_and_replaces_keys(tmp_path):
    locale = tmp_path / "locale.php"
    translated = tmp_path / "translated.php"
    _write_php(locale, {"a": "old", "keep": "kept"})
    _write_php(translated, {"a": "new", "b": "added"})

    assert merge_translated_file(locale, translated, "php") is True
    assert parse_keyed_array(locale.read_text(encoding="utf-8")) == {"a": "new", "keep": "kept", "b": "added"}


def test_php_without_changes_is_not_rewritten(tmp_path):
    locale = tmp_path / "locale.php"
    translated = tmp_path / "translated.php"
    _write_php(locale, {"a": "same"})
    _write_php(translated, {"a": "same"})
    before = locale.stat().st_mtime_ns

    assert merge_translated_file(locale, translated, "keyed-array") is False
    assert locale.stat().st_mtime_ns == before


def test_json_overlay(tmp_path):
    locale = tmp_path / "messages.json"
    translated = tmp_path / "t" / "messages.json"
    _write_json(locale, {"title": {"message": "Old"}, "desc": {"message": "Keep"}})
    _write_json(translated, {"title": {"message": "Новий"}})

    assert merge_translated_file(locale, translated, "json") is True
    assert json.loads(locale.read_text(encoding="utf-8")) == {
        "title": {"message": "Новий"},
        "desc": {"message": "Keep"},
    }


def test_missing_translated_file_is_skipped(tmp_path):
    locale = tmp_path / "locale.php"
    _write_php(locale, {"a": "b"})
    assert merge_translated_file(locale, tmp_path / "absent.php", "php") is False


def test_plain_text_is_not_mergeable(tmp_path):
    with pytest.raises(ValueError):
        merge_translated_file(tmp_path / "a.txt", tmp_path / "b.txt", "files")


def test_merge_locales_reports_per_language(tmp_path):
    locales = tmp_path / "_locales"
    translated = tmp_path / "translated"
    _write_json(locales / "de" / "messages.json", {"a": "alt"})
    _write_json(translated / "de" / "messages.json", {"a": "neu"})
    _write_json(locales / "fr" / "messages.json", {"a": "même"})
    _write_json(translated / "fr" / "messages.json", {"a": "même"})
    _write_json(locales / "it" / "messages.json", {"a": "x"})
    (locales / "pl").mkdir()
    _write_json(locales / "uk" / "messages.json", {"a": "x"})
    (translated / "uk").mkdir(parents=True)
    (translated / "uk" / "messages.json").write_text("{broken", encoding="utf-8")

    results = merge_locales(locales, translated, "messages.json", "json")

    assert results == {
        "de": MERGED,
        "fr": UNCHANGED,
        "it": NO_TRANSLATION,
        "pl": NO_ORIGINAL,
        "uk": FAILED,
    }
    assert json.loads((locales / "de" / "messages.json").read_text(encoding="utf-8")) == {"a": "neu"}

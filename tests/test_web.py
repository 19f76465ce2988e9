import time

import pytest

from lingobatch.config import load_config, save_config
from lingobatch.web import create_app, tasks
from lingobatch.web.routes import translation as translation_routes
from lingobatch.resources.keyed_array import parse_keyed_array, render_keyed_array
from lingobatch.translation.manager import TranslationManager

from tests.fakes import translating_backend


@pytest.fixture
def app_dirs(tmp_path, temp_db):
    input_dir = tmp_path / "input"
    output_dir = tmp_path / "output"
    save_config({"input_dir": str(input_dir), "output_dir": str(output_dir)})
    return input_dir, output_dir


@pytest.fixture
def client(app_dirs, monkeypatch):
    monkeypatch.setattr(tasks, "_state", tasks.RunState())
    monkeypatch.setattr(tasks, "_manager", None)
    app = create_app()
    app.config["TESTING"] = True
    return app.test_client()


def _wait_until_done(timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if tasks.get_state()["done"]:
            return
        time.sleep(0.02)
    raise AssertionError("run did not finish")


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "ok"
    assert body["translationRunning"] is False
    assert response.headers["X-Frame-Options"] == "DENY"


def test_unknown_route_is_json_404(client):
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.get_json()["error"] == "Not found"


def test_translate_requires_keys(client):
    response = client.post("/translate", json={"lang": "uk", "fileType": "php", "params": {}})
    assert response.status_code == 400
    body = response.get_json()
    assert body["code"] == "config_invalid"
    assert "API key" in body["error"]


def test_translate_rejects_unknown_file_type(client):
    response = client.post("/translate", json={"fileType": "yaml", "params": {"apiKeys": "k"}})
    assert response.status_code == 400
    assert response.get_json()["code"] == "invalid_file_type"


def test_translate_rejects_bad_numbers(client):
    response = client.post("/translate", json={"params": {"apiKeys": "k", "maxConcurrency": 0}})
    assert response.status_code == 400
    assert response.get_json()["details"]["errors"] == ["MAX_CONCURRENCY must be at least 1"]


def test_translate_conflicts_with_active_run(client, monkeypatch):
    monkeypatch.setattr(tasks, "_state", tasks.RunState(running=True))
    response = client.post("/translate", json={"params": {"apiKeys": "k"}})
    assert response.status_code == 409


def test_stop_without_run(client):
    assert client.post("/stop").get_json() == {"message": "No active translation to stop"}


def test_full_run_through_the_api(client, app_dirs, monkeypatch):
    input_dir, output_dir = app_dirs
    (input_dir / "app.php").write_text(render_keyed_array({"hello": "Hello", "bye": "Bye"}), encoding="utf-8")
    backend = translating_backend()
    monkeypatch.setattr(
        tasks,
        "build_manager",
        lambda config, i, o: TranslationManager(config, i, o, transport=backend.transport),
    )

    response = client.post("/translate", json={
        "lang": "uk",
        "fileType": "php",
        "params": {"apiKeys": "k1,k2", "retryDelay": 0},
    })
    assert response.status_code == 202
    assert response.get_json() == {"status": "started"}

    _wait_until_done()

    assert parse_keyed_array((output_dir / "uk" / "app.php").read_text(encoding="utf-8")) == {
        "hello": "HELLO",
        "bye": "BYE",
    }

    status = client.get("/status").get_json()
    assert status["running"] is False
    assert status["stats"]["filesProcessed"] == 1
    assert status["stats"]["stringsTranslated"] == 2
    assert status["log"][-1].startswith("Translation complete!")

    progress = client.get("/progress").get_json()
    assert progress["percent"] == 100

    history = client.get("/history").get_json()
    assert len(history) == 1
    assert history[0]["languages"] == "uk"
    assert history[0]["success"] is True
    assert history[0]["strings_translated"] == 2

    stream = client.get("/logs/stream")
    assert stream.mimetype == "text/event-stream"
    body = stream.get_data(as_text=True)
    assert body.startswith("data: ")
    assert "Translation complete!" in body


def test_log_is_capped():
    state = tasks.RunState()
    for i in range(tasks.MAX_LOG_ENTRIES + 20):
        state.append_log(f"line {i}")
    assert len(state.log) == tasks.MAX_LOG_ENTRIES
    assert state.log[0] == "line 20"


def test_export_config_overrides(client):
    response = client.get("/export-config?maxConcurrency=7&model=openai/gpt-5-nano")
    body = response.get_json()
    assert body["maxConcurrency"] == 7
    assert body["batchLimit"] == 12000
    assert body["model"] == "openai/gpt-5-nano"
    assert "attachment" in response.headers["Content-Disposition"]


def test_estimate_cost(client):
    response = client.post("/estimate-cost", json={
        "filesCount": 2,
        "totalStrings": 1000,
        "model": "google/gemini-2.0-flash-lite-001",
    })
    body = response.get_json()
    assert body["estimatedTokens"] == 1000 * translation_routes.AVG_TOKENS_PER_STRING
    assert body["estimatedCost"] == "0.0025"
    assert body["isFree"] is False


def test_estimate_cost_unknown_model_is_free(client):
    body = client.post("/estimate-cost", json={"model": "other/model"}).get_json()
    assert body["estimatedTokens"] == 100 * translation_routes.AVG_TOKENS_PER_STRING
    assert body["isFree"] is True


def test_import_config_applies_an_exported_file(client):
    exported = client.get("/export-config?maxConcurrency=3&model=openai/gpt-5-nano").get_json()

    response = client.post("/import-config", json=exported)

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["config"]["MAX_CONCURRENCY"] == 3
    assert body["config"]["activeModel"] == "openai/gpt-5-nano"
    saved = load_config()
    assert saved["MAX_CONCURRENCY"] == 3
    assert saved["activeModel"] == "openai/gpt-5-nano"
    assert saved["KEYS"] == []
    assert client.get("/export-config").get_json()["maxConcurrency"] == 3


def test_import_config_rejects_invalid_options(client):
    response = client.post("/import-config", json={"maxConcurrency": 0, "maxErrors": "many"})

    assert response.status_code == 400
    body = response.get_json()
    assert body["code"] == "config_invalid"
    assert len(body["details"]["errors"]) == 2
    assert load_config()["MAX_CONCURRENCY"] == 5


def test_import_config_requires_an_object(client):
    response = client.post("/import-config", data="[1, 2]", content_type="application/json")
    assert response.status_code == 400

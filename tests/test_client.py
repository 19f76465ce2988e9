import asyncio
import json

import httpx
import pytest

from lingobatch.ai.client import BackendClient, classify_http_error
from lingobatch.ai.exceptions import (
    AuthenticationError,
    MalformedResponseError,
    RateLimitError,
    RunAbortError,
    TransientNetworkError,
)
from lingobatch.translation.context import RunContext

from tests.fakes import (
    TEST_API_URL,
    FakeBackend,
    chat_response,
    make_config,
    text_from_prompt,
    uppercase_batch,
)


def _translate_batch(backend, batch, config=None, context=None, language="Ukrainian"):
    config = config or make_config()
    context = context or RunContext(config.keys, config.max_errors)

    async def go():
        async with BackendClient(config, context, transport=backend.transport) as client:
            return await client.translate_batch(batch, language)

    return asyncio.run(go())


def _translate_text(backend, text, config=None):
    config = config or make_config()
    context = RunContext(config.keys, config.max_errors)

    async def go():
        async with BackendClient(config, context, transport=backend.transport) as client:
            return await client.translate_text(text, "German")

    return asyncio.run(go())


def test_batch_request_shape():
    backend = FakeBackend(lambda prompt, _n: uppercase_batch(prompt))
    result = _translate_batch(backend, {"title": "Hello", "bye": "Goodbye"},
                              config=make_config(active_model="test/model"))

    assert result == {"title": "HELLO", "bye": "GOODBYE"}
    assert len(backend.calls) == 1
    call = backend.calls[0]
    assert call["url"] == TEST_API_URL
    assert call["model"] == "test/model"
    assert call["key"] == "key-1"
    assert call["title"] == "LingoBatch"
    assert "Ukrainian" in call["prompt"]


def test_credentials_rotate_across_retries():
    def responder(prompt, n):
        if n < 3:
            return httpx.Response(500, json={"error": {"message": "upstream"}})
        return uppercase_batch(prompt)

    backend = FakeBackend(responder)
    config = make_config(keys=("a", "b", "c"))
    result = _translate_batch(backend, {"k": "v"}, config=config)

    assert result == {"k": "V"}
    assert [c["key"] for c in backend.calls] == ["a", "b", "c"]


def test_credentials_rotate_across_calls():
    backend = FakeBackend(lambda prompt, _n: uppercase_batch(prompt))
    config = make_config(keys=("a", "b"))
    context = RunContext(config.keys, config.max_errors)

    for _ in range(3):
        _translate_batch(backend, {"k": "v"}, config=config, context=context)

    assert [c["key"] for c in backend.calls] == ["a", "b", "a"]


def test_authentication_error_makes_exactly_one_call():
    backend = FakeBackend(lambda prompt, _n: httpx.Response(401, json={"error": {"message": "No auth"}}))
    config = make_config(keys=("a", "b"))
    context = RunContext(config.keys, config.max_errors)

    with pytest.raises(AuthenticationError):
        _translate_batch(backend, {"k": "v"}, config=config, context=context)

    assert len(backend.calls) == 1
    assert context.error_count == 1


def test_invalid_key_error_payload_is_authentication_error():
    backend = FakeBackend(lambda prompt, _n: httpx.Response(
        200, json={"error": {"message": "Invalid API key provided", "code": 401}}))

    with pytest.raises(AuthenticationError):
        _translate_batch(backend, {"k": "v"})
    assert len(backend.calls) == 1


def test_rate_limit_is_retried():
    def responder(prompt, n):
        if n == 1:
            return httpx.Response(429, json={"error": {"message": "slow down"}})
        return uppercase_batch(prompt)

    backend = FakeBackend(responder)
    assert _translate_batch(backend, {"k": "v"}) == {"k": "V"}
    assert len(backend.calls) == 2


def test_backoff_delays():
    config = make_config(retry_delay=2000)
    client = BackendClient(config, RunContext(config.keys, config.max_errors))
    assert client._backoff_for(RateLimitError("429")) == 6.0
    assert client._backoff_for(TransientNetworkError("503")) == 2.0
    assert client._backoff_for(MalformedResponseError("junk")) == 2.0


def test_fenced_json_reply_is_parsed():
    backend = FakeBackend(lambda prompt, _n: chat_response('```json\n{"k": "Значення"}\n```'))
    assert _translate_batch(backend, {"k": "Value"}) == {"k": "Значення"}


def test_wrapped_translations_object_is_unwrapped():
    backend = FakeBackend(lambda prompt, _n: chat_response('{"translations": {"k": "Wert"}}'))
    assert _translate_batch(backend, {"k": "Value"}) == {"k": "Wert"}


def test_non_string_values_are_dropped():
    backend = FakeBackend(lambda prompt, _n: chat_response('{"a": "Eins", "b": 2}'))
    assert _translate_batch(backend, {"a": "One", "b": "Two"}) == {"a": "Eins"}


def test_malformed_reply_is_retried_then_succeeds():
    def responder(prompt, n):
        if n == 1:
            return chat_response("Sure! Here is your translation:")
        return uppercase_batch(prompt)

    backend = FakeBackend(responder)
    assert _translate_batch(backend, {"k": "v"}) == {"k": "V"}
    assert len(backend.calls) == 2


def test_timeout_is_transient_and_retried():
    def responder(prompt, n):
        if n == 1:
            raise httpx.ReadTimeout("timed out")
        return uppercase_batch(prompt)

    backend = FakeBackend(responder)
    assert _translate_batch(backend, {"k": "v"}) == {"k": "V"}


def test_retries_exhausted_aborts_run():
    backend = FakeBackend(lambda prompt, _n: httpx.Response(503, text="unavailable"))

    with pytest.raises(RunAbortError) as excinfo:
        _translate_batch(backend, {"k": "v"})

    assert excinfo.value.reason == "retries_exhausted"
    assert isinstance(excinfo.value.__cause__, TransientNetworkError)
    assert len(backend.calls) == 3


def test_error_budget_aborts_run():
    backend = FakeBackend(lambda prompt, _n: httpx.Response(500, text="boom"))
    config = make_config(max_errors=2)

    with pytest.raises(RunAbortError) as excinfo:
        _translate_batch(backend, {"k": "v"}, config=config)

    assert excinfo.value.reason == "error_budget"
    assert len(backend.calls) == 2


def test_error_budget_counts_failures_across_successes():
    def responder(prompt, n):
        if n % 2 == 1:
            return httpx.Response(500, text="flaky")
        return uppercase_batch(prompt)

    backend = FakeBackend(responder)
    config = make_config(max_errors=3)
    context = RunContext(config.keys, config.max_errors)
    results = []

    async def go():
        async with BackendClient(config, context, transport=backend.transport) as client:
            for i in range(10):
                results.append(await client.translate_batch({f"k{i}": "v"}, "Ukrainian"))

    with pytest.raises(RunAbortError) as excinfo:
        asyncio.run(go())

    assert excinfo.value.reason == "error_budget"
    assert results == [{"k0": "V"}, {"k1": "V"}]
    assert context.error_count == 3
    assert len(backend.calls) == 5


def test_cancelled_run_makes_no_call():
    backend = FakeBackend(lambda prompt, _n: uppercase_batch(prompt))
    config = make_config()
    context = RunContext(config.keys, config.max_errors)
    context.request_cancel()

    with pytest.raises(RunAbortError) as excinfo:
        _translate_batch(backend, {"k": "v"}, config=config, context=context)

    assert excinfo.value.reason == "cancelled"
    assert backend.calls == []


def test_empty_batch_makes_no_call():
    backend = FakeBackend(lambda prompt, _n: uppercase_batch(prompt))
    assert _translate_batch(backend, {}) == {}
    assert backend.calls == []


class TestSingleText:
    def test_translated_field_is_returned_unescaped(self):
        backend = FakeBackend(lambda prompt, _n: chat_response(
            json.dumps({"translated": "Erste Zeile\\nZweite Zeile"})))
        assert _translate_text(backend, "First line\nSecond line") == "Erste Zeile\nZweite Zeile"

    def test_text_is_escaped_into_prompt(self):
        backend = FakeBackend(lambda prompt, _n: chat_response('{"translated": "ok"}'))
        _translate_text(backend, 'Say "hi"\nbye')
        assert text_from_prompt(backend.calls[0]["prompt"]) == 'Say \\"hi\\"\\nbye'

    def test_secondary_parser_recovers_unescaped_quote(self):
        backend = FakeBackend(lambda prompt, _n: chat_response('{"translated": "Sag "Hallo" zu allen"}'))
        assert _translate_text(backend, 'Say "hello" to everyone') == 'Sag "Hallo" zu allen'
        assert len(backend.calls) == 1

    def test_missing_field_is_retried(self):
        def responder(prompt, n):
            if n == 1:
                return chat_response('{"text": "wrong field"}')
            return chat_response('{"translated": "Richtig"}')

        backend = FakeBackend(responder)
        assert _translate_text(backend, "Right") == "Richtig"
        assert len(backend.calls) == 2


@pytest.mark.parametrize("status,expected", [
    (401, AuthenticationError),
    (403, AuthenticationError),
    (429, RateLimitError),
    (500, TransientNetworkError),
    (408, TransientNetworkError),
    (400, MalformedResponseError),
])
def test_classify_http_error(status, expected):
    response = httpx.Response(status, json={"error": {"message": "nope"}})
    assert isinstance(classify_http_error(response), expected)

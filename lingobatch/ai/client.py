"""
Translation Backend Client

Issues one chat-completions call per batch (or per whole text in
single-text mode) against an OpenAI-compatible endpoint:
- Credential rotation through the run's RunContext
- Error classification (auth / rate limit / network / malformed)
- Bounded retry with backoff
- JSON extraction from model output
"""

import asyncio
from typing import Any, Dict, Mapping, Optional

import httpx

from lingobatch.ai.exceptions import (
    AuthenticationError,
    MalformedResponseError,
    RateLimitError,
    RunAbortError,
    TranslationError,
    TransientNetworkError,
)
from lingobatch.ai.prompts import build_batch_prompt, build_single_text_prompt
from lingobatch.config import RunConfig
from lingobatch.logger import get_logger
from lingobatch.translation.context import RunContext
from lingobatch.translation.utils import (
    Malformed,
    Parsed,
    extract_translated_field,
    parse_json_object,
    unescape_control_chars,
)

logger = get_logger(__name__)

SINGLE_TEXT_TIMEOUT = 60.0
BATCH_TIMEOUT = 90.0
MAX_RETRIES = 3
RATE_LIMIT_BACKOFF_MULTIPLIER = 3

APP_REFERER = "https://lingobatch.local"
APP_TITLE = "LingoBatch"


def get_httpx_timeout(read_timeout: float) -> httpx.Timeout:
    """Build the timeout for one call; the read budget bounds the whole model reply."""
    return httpx.Timeout(
        connect=10.0,
        write=30.0,
        read=read_timeout,
        pool=10.0,
    )


def _error_message(payload: Any) -> str:
    if isinstance(payload, dict):
        error = payload.get("error", payload)
        if isinstance(error, dict):
            return str(error.get("message") or error)
        return str(error)
    return str(payload)


def _is_auth_error(error: Any) -> bool:
    """Backend-reported auth failures arrive with HTTP 200 on some gateways."""
    if not isinstance(error, dict):
        return False
    if error.get("code") in (401, 403, "401", "403"):
        return True
    message = str(error.get("message") or "").lower()
    return "invalid" in message and "key" in message


def classify_http_error(response: httpx.Response) -> TranslationError:
    """Map a non-2xx response onto the error taxonomy."""
    status = response.status_code
    try:
        detail = _error_message(response.json())
    except ValueError:
        detail = response.text[:200]

    details = {"status": status}
    if status in (401, 403):
        return AuthenticationError(
            f"Authentication failed ({status}): check your API key. {detail}".strip(),
            details=details,
        )
    if status == 429:
        return RateLimitError(f"Rate limit exceeded (429): {detail}", details=details)
    if status >= 500 or status == 408:
        return TransientNetworkError(f"Backend unavailable ({status}): {detail}", details=details)
    return MalformedResponseError(f"HTTP error {status}: {detail}", details=details)


class BackendClient:
    """
    Async client for the translation backend.

    Use as an async context manager so the underlying connection pool is
    closed at the end of the run. ``transport`` is passed to httpx (tests
    inject an ``httpx.MockTransport``).
    """

    def __init__(self, config: RunConfig, context: RunContext,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 max_retries: int = MAX_RETRIES):
        self.config = config
        self.context = context
        self.max_retries = max_retries
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "BackendClient":
        self._client = httpx.AsyncClient(transport=self._transport)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("BackendClient must be used as an async context manager")
        return self._client

    # ------------------------------------------------------------------
    # Public calls
    # ------------------------------------------------------------------

    async def translate_text(self, text: str, language_name: str) -> str:
        """Translate one whole text (single-text mode)."""
        prompt = build_single_text_prompt(text, language_name, glossary=self.config.glossary)
        return await self._with_retries(
            prompt,
            timeout=SINGLE_TEXT_TIMEOUT,
            parse=self._parse_single_text,
            label=f"text ({len(text)} chars)",
        )

    async def translate_batch(self, batch: Mapping[str, str], language_name: str) -> Dict[str, str]:
        """Translate a batch; returns key -> translation for the keys the model answered."""
        if not batch:
            return {}
        prompt = build_batch_prompt(batch, language_name, glossary=self.config.glossary)
        return await self._with_retries(
            prompt,
            timeout=BATCH_TIMEOUT,
            parse=lambda content: self._parse_batch(content, batch),
            label=f"batch of {len(batch)} keys",
        )

    # ------------------------------------------------------------------
    # Retry loop
    # ------------------------------------------------------------------

    async def _with_retries(self, prompt: str, *, timeout: float, parse, label: str):
        last_error: Optional[TranslationError] = None

        for attempt in range(self.max_retries):
            if self.context.cancelled:
                raise RunAbortError("Translation cancelled", reason="cancelled")
            if attempt > 0:
                logger.info(f"  Retry attempt {attempt + 1}/{self.max_retries} for {label}")

            try:
                content = await self._call(prompt, timeout)
                result = parse(content)
            except AuthenticationError as e:
                self.context.record_error()
                logger.error(f"Authentication error: {e}")
                raise
            except (RateLimitError, TransientNetworkError, MalformedResponseError) as e:
                last_error = e
                errors = self.context.record_error()
                logger.warning(f"  Attempt {attempt + 1} for {label} failed: {e}")
                if errors >= self.context.max_errors:
                    raise RunAbortError(
                        f"Too many errors ({errors}/{self.context.max_errors}). Last error: {e}",
                        reason="error_budget",
                    ) from e
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(self._backoff_for(e))
                continue

            return result

        raise RunAbortError(
            f"Translation failed after {self.max_retries} attempts: {last_error}",
            reason="retries_exhausted",
        ) from last_error

    def _backoff_for(self, error: TranslationError) -> float:
        delay = self.config.retry_delay_seconds
        if isinstance(error, RateLimitError):
            return delay * RATE_LIMIT_BACKOFF_MULTIPLIER
        return delay

    async def _call(self, prompt: str, timeout: float) -> str:
        """One POST with the next credential; returns the first choice's message content."""
        api_key = self.context.next_credential()
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": APP_REFERER,
            "X-Title": APP_TITLE,
        }
        body = {
            "model": self.config.active_model,
            "messages": [{"role": "user", "content": prompt}],
        }

        logger.debug(f"  Calling backend (model: {self.config.active_model})...")
        try:
            response = await asyncio.wait_for(
                self.client.post(
                    self.config.api_url,
                    headers=headers,
                    json=body,
                    timeout=get_httpx_timeout(timeout),
                ),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise TransientNetworkError(f"Translation request timed out after {timeout:.0f}s") from e
        except httpx.TransportError as e:
            raise TransientNetworkError(f"Network error: cannot reach translation service ({e})") from e

        if response.is_error:
            raise classify_http_error(response)

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError("Backend response is not JSON", raw_text=response.text[:500]) from e

        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            if _is_auth_error(error):
                raise AuthenticationError(f"Authentication failed: {_error_message(data)}")
            raise MalformedResponseError(f"API error: {_error_message(data)}")

        try:
            content = data["choices"][0]["message"].get("content") or ""
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise MalformedResponseError("No choices in backend response") from e

        content = content.strip()
        if not content:
            raise MalformedResponseError("Empty backend response content")
        logger.debug(f"  Received {len(content)} chars from backend")
        return content

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_single_text(content: str) -> str:
        outcome = parse_json_object(content)
        if isinstance(outcome, Parsed):
            value = outcome.value
            if isinstance(value, dict) and isinstance(value.get("translated"), str):
                return unescape_control_chars(value["translated"])
            raise MalformedResponseError(
                'Response does not contain a valid "translated" field', raw_text=content[:500]
            )

        recovered = extract_translated_field(outcome.raw_text)
        if recovered is None:
            raise MalformedResponseError(
                f"Failed to parse or extract translation response: {outcome.reason}",
                raw_text=content[:500],
            )
        logger.warning(f"Recovered translated text with fallback parser, length: {len(recovered)}")
        return recovered

    @staticmethod
    def _parse_batch(content: str, batch: Mapping[str, str]) -> Dict[str, str]:
        outcome = parse_json_object(content)
        if isinstance(outcome, Malformed):
            raise MalformedResponseError(
                f"Batch response is not valid JSON: {outcome.reason}", raw_text=content[:500]
            )

        value = outcome.value
        # Some models wrap the object: {"translations": {...}}
        if isinstance(value, dict) and isinstance(value.get("translations"), dict) and "translations" not in batch:
            value = value["translations"]
        if not isinstance(value, dict):
            raise MalformedResponseError("Batch response is not a JSON object", raw_text=content[:500])

        result = {k: v for k, v in value.items() if isinstance(v, str)}
        if not result and batch:
            raise MalformedResponseError("Empty or invalid response from API", raw_text=content[:500])
        return result

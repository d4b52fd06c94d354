"""Provider adapters for the code model backends and parsing of their raw output."""

from __future__ import annotations

import json
import logging
import os
import re
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Literal

from zerocode import config
from zerocode.errors import (
    ParseError,
    ProviderAuthError,
    ProviderEmptyResponseError,
    ProviderError,
    ProviderTransientError,
)
from zerocode.models import GenerationSettings
from zerocode.prompting import FILE_USER_PROMPT, build_system_prompt

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_KEY_FILE = Path(".api_keys/Gemini.md")
DEFAULT_ANTHROPIC_KEY_FILE = Path(".api_keys/Anthropic.md")

RETRYABLE_STATUS = frozenset({408, 409, 425, 429})

FailureKind = Literal["auth", "permanent", "transient"]


def _resolve_api_key(env_var: str, key_file: Path) -> str | None:
    api_key = (os.getenv(env_var) or "").strip()
    if api_key:
        return api_key

    if key_file.exists():
        fallback_key = key_file.read_text(encoding="utf-8").strip()
        if fallback_key:
            return fallback_key

    return None


def resolve_gemini_api_key(key_file: Path = DEFAULT_GEMINI_KEY_FILE) -> str | None:
    """Resolve the Gemini API key from environment or fallback file.

    Resolution order:
    1. ``GEMINI_API_KEY`` environment variable.
    2. ``key_file`` plaintext contents.

    Args:
        key_file: Optional fallback file containing only the API key.

    Returns:
        The non-empty API key when found, otherwise ``None``.
    """
    return _resolve_api_key("GEMINI_API_KEY", key_file)


def resolve_anthropic_api_key(key_file: Path = DEFAULT_ANTHROPIC_KEY_FILE) -> str | None:
    """Resolve the Anthropic API key from ``ANTHROPIC_API_KEY`` or ``key_file``."""
    return _resolve_api_key("ANTHROPIC_API_KEY", key_file)


def _status_of(exc: BaseException) -> int | None:
    """Best-effort HTTP status extraction across SDK exception types."""
    for attr in ("status_code", "code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value
    return None


def classify_failure(exc: BaseException) -> FailureKind:
    """Decide whether a provider exception is worth retrying.

    Credentials problems fail fast, other client errors are permanent, and
    everything else (timeouts, connection resets, 429, 5xx, unknown) is retried.
    """
    if isinstance(exc, ProviderAuthError):
        return "auth"
    if isinstance(exc, ProviderTransientError):
        return "transient"
    if isinstance(exc, ProviderError):
        return "permanent"

    status = _status_of(exc)
    if status in (401, 403):
        return "auth"
    if status is not None:
        if status in RETRYABLE_STATUS or status >= 500:
            return "transient"
        if 400 <= status < 500:
            return "permanent"
    return "transient"


class ModelProvider:
    """Uniform call interface shared by every model backend.

    Subclasses implement ``_complete``; retry, backoff, and structured attempt
    logging live here so callers never branch on provider identity.
    """

    name = "base"
    default_model = ""

    def __init__(
        self,
        model_name: str | None = None,
        max_attempts: int = config.PROVIDER_MAX_ATTEMPTS,
        retry_delay: float = config.PROVIDER_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.model_name = model_name or self.default_model
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self.sleep = sleep

    def generate(self, prompt: str, context: GenerationSettings | None = None) -> str:
        """Request a structured (JSON) answer for a plan or repair prompt.

        Args:
            prompt: Non-empty prompt text.
            context: Technology selectors; defaults are used when omitted.

        Returns:
            Non-empty raw response text.

        Raises:
            ValueError: If the prompt is blank.
            ProviderAuthError: If credentials are missing or rejected.
            ProviderError: On a permanent client error.
            ProviderTransientError: When retries are exhausted.
            ProviderEmptyResponseError: When every attempt returned no text.
        """
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValueError("Prompt must be a non-empty string.")
        system_prompt = build_system_prompt(context or GenerationSettings())
        return self._call_with_retry(
            "generate",
            lambda: self._complete(system_prompt, prompt, config.PLAN_MAX_TOKENS, json_mode=True),
        )

    def generate_file(self, file_prompt: str) -> str:
        """Request the raw source of a single file."""
        if not isinstance(file_prompt, str) or not file_prompt.strip():
            raise ValueError("File prompt must be a non-empty string.")
        return self._call_with_retry(
            "generate_file",
            lambda: self._complete(file_prompt, FILE_USER_PROMPT, config.FILE_MAX_TOKENS, json_mode=False),
        )

    def _complete(self, system_prompt: str, user_prompt: str, max_tokens: int, json_mode: bool) -> str:
        raise NotImplementedError

    def _call_with_retry(self, operation: str, call: Callable[[], str]) -> str:
        last_exc: BaseException | None = None

        for attempt in range(1, self.max_attempts + 1):
            started = time.monotonic()
            try:
                text = (call() or "").strip()
            except Exception as exc:
                kind = classify_failure(exc)
                self._log_attempt(operation, attempt, kind, started, error=exc)
                if kind == "auth":
                    if isinstance(exc, ProviderAuthError):
                        raise
                    raise ProviderAuthError(
                        f"{self.name} rejected the request credentials: {exc}",
                        provider=self.name,
                        status=_status_of(exc),
                    ) from exc
                if kind == "permanent":
                    if isinstance(exc, ProviderError):
                        raise
                    raise ProviderError(
                        f"{self.name} request failed permanently: {exc}",
                        provider=self.name,
                        status=_status_of(exc),
                    ) from exc
                last_exc = exc
            else:
                if text:
                    self._log_attempt(operation, attempt, "success", started)
                    return text
                last_exc = ProviderEmptyResponseError(f"{self.name} returned an empty response", provider=self.name)
                self._log_attempt(operation, attempt, "empty", started)

            if attempt < self.max_attempts:
                self.sleep(attempt * self.retry_delay)

        if isinstance(last_exc, ProviderEmptyResponseError):
            raise ProviderEmptyResponseError(
                f"{self.name} returned an empty response on all {self.max_attempts} attempts",
                provider=self.name,
                attempts=self.max_attempts,
            )
        raise ProviderTransientError(
            f"{self.name} request failed after {self.max_attempts} attempts. Last error: {last_exc}",
            provider=self.name,
            status=_status_of(last_exc) if last_exc else None,
            attempts=self.max_attempts,
        ) from last_exc

    def _log_attempt(
        self,
        operation: str,
        attempt: int,
        outcome: str,
        started: float,
        error: BaseException | None = None,
    ) -> None:
        latency_ms = (time.monotonic() - started) * 1000
        fields = {
            "provider": self.name,
            "operation": operation,
            "attempt": attempt,
            "max_attempts": self.max_attempts,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 1),
        }
        if error is None:
            logger.info(
                "provider=%s op=%s attempt=%d/%d outcome=%s latency_ms=%.1f",
                self.name, operation, attempt, self.max_attempts, outcome, latency_ms,
                extra=fields,
            )
        else:
            logger.warning(
                "provider=%s op=%s attempt=%d/%d outcome=%s latency_ms=%.1f error=%r",
                self.name, operation, attempt, self.max_attempts, outcome, latency_ms, error,
                extra=fields,
            )


class GeminiProvider(ModelProvider):
    """Thin adapter around Google GenAI content generation."""

    name = "gemini"
    default_model = config.GEMINI_MODEL

    def _complete(self, system_prompt: str, user_prompt: str, max_tokens: int, json_mode: bool) -> str:
        api_key = resolve_gemini_api_key()
        if not api_key:
            raise ProviderAuthError("Missing GEMINI_API_KEY (set env var or .api_keys/Gemini.md)", provider=self.name)

        from google import genai
        from google.genai import types

        client = genai.Client(api_key=api_key)
        response = client.models.generate_content(
            model=self.model_name,
            contents=user_prompt,
            config=types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=config.TEMPERATURE,
                max_output_tokens=max_tokens,
                response_mime_type="application/json" if json_mode else "text/plain",
            ),
        )
        return response.text or ""


class ClaudeProvider(ModelProvider):
    """Thin adapter around the Anthropic Messages API."""

    name = "claude"
    default_model = config.CLAUDE_MODEL

    def _complete(self, system_prompt: str, user_prompt: str, max_tokens: int, json_mode: bool) -> str:
        api_key = resolve_anthropic_api_key()
        if not api_key:
            raise ProviderAuthError(
                "Missing ANTHROPIC_API_KEY (set env var or .api_keys/Anthropic.md)", provider=self.name
            )

        import anthropic

        client = anthropic.Anthropic(api_key=api_key)
        message = client.messages.create(
            model=self.model_name,
            max_tokens=max_tokens,
            temperature=config.TEMPERATURE,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        return "".join(
            getattr(block, "text", "") for block in message.content if getattr(block, "type", "") == "text"
        )


PROVIDERS: dict[str, type[ModelProvider]] = {
    GeminiProvider.name: GeminiProvider,
    ClaudeProvider.name: ClaudeProvider,
}


def get_provider(name: str, model_name: str | None = None, **kwargs: Any) -> ModelProvider:
    """Instantiate the backend registered under ``name``."""
    try:
        provider_cls = PROVIDERS[name]
    except KeyError:
        raise ValueError(f"Unknown provider {name!r}; expected one of {sorted(PROVIDERS)}") from None
    return provider_cls(model_name=model_name, **kwargs)


_FENCE_FULL_RE = re.compile(r"^```[\w+.-]*[ \t]*\r?\n(.*?)\r?\n?[ \t]*```$", re.DOTALL)
_FENCE_INNER_RE = re.compile(r"```[\w+.-]*[ \t]*\r?\n(.*?)```", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding Markdown code fence when present.

    When the text is not itself a fenced block but contains one (for example a
    sentence followed by the code), the first fenced block is returned.
    """
    stripped = text.strip()
    fenced = _FENCE_FULL_RE.match(stripped)
    if fenced:
        return fenced.group(1).strip()
    inner = _FENCE_INNER_RE.search(stripped)
    if inner:
        return inner.group(1).strip()
    return stripped


def _extract_largest_object(text: str) -> str | None:
    """Return the span from the first ``{`` to the last ``}``, if any."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def parse_plan(raw: str) -> Any:
    """Parse a model response that should contain one JSON document.

    A strict parse is tried first; when it fails, the largest ``{...}`` span is
    extracted and parsed once more.

    Args:
        raw: Raw model response text.

    Returns:
        The decoded JSON value. Shape checks are left to the structural validator.

    Raises:
        ParseError: If neither parse succeeds.
    """
    candidate = strip_code_fence(raw)
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as first_error:
        extracted = _extract_largest_object(candidate)
        if extracted is None:
            raise ParseError(f"Model output is not valid JSON: {first_error}", raw=raw) from first_error
        try:
            return json.loads(extracted)
        except json.JSONDecodeError as exc:
            raise ParseError(f"Model output is not valid JSON after object extraction: {exc}", raw=raw) from exc

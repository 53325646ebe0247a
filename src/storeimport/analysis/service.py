"""OpenRouter chat client that labels markup fragments with a block type."""

from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, Callable, Protocol

import openai
from openai import OpenAI

from storeimport.analysis.config import ClassifierServiceSettings
from storeimport.errors import ClassificationUnavailable
from storeimport.models import LAYOUT_TYPES, BlockType

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    openai.RateLimitError,
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.InternalServerError,
    TimeoutError,
    ConnectionError,
)
_TRANSIENT_STATUS = frozenset({408, 409, 429, 500, 502, 503, 504})
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_FRAGMENT_LIMIT = 6000

_SYSTEM_PROMPT = (
    "You classify HTML fragments from online stores into page-builder blocks. "
    "Answer with a JSON object {\"label\": <one of the allowed labels or \"Unknown\">, "
    "\"confidence\": <number between 0 and 1>} and nothing else."
)


class ContentClassifierService(Protocol):
    """Best-effort content-understanding collaborator."""

    def classify(self, fragment: str) -> tuple[str, float]:
        """Return ``(label, confidence)`` for a markup fragment."""


def allowed_labels() -> list[str]:
    return [member.value for member in BlockType if member is not BlockType.RAW_HTML and member not in LAYOUT_TYPES]


def is_transient(exc: Exception) -> bool:
    if isinstance(exc, _TRANSIENT_ERRORS):
        return True
    return getattr(exc, "status_code", None) in _TRANSIENT_STATUS


def answer_text(response: Any, *, model: str) -> str:
    """Text of the first choice of a chat completion."""

    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError) as exc:
        raise ClassificationUnavailable(model=model, message="Classification response missing choices") from exc
    if isinstance(content, list):
        content = "".join(str(part.get("text", "")) for part in content if isinstance(part, dict))
    text = (content or "").strip()
    if not text:
        raise ClassificationUnavailable(model=model, message="Classification response returned empty text")
    return text


def parse_label(text: str, *, model: str) -> tuple[str, float]:
    """Read ``(label, confidence)`` from a model answer that should be JSON."""

    match = _JSON_OBJECT_RE.search(text)
    if match is None:
        raise ClassificationUnavailable(model=model, message=f"Classification answer is not JSON: {text[:80]!r}")
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ClassificationUnavailable(model=model, message=f"Classification answer is not JSON: {exc}") from exc

    label = str(payload.get("label") or "").strip()
    if not label:
        raise ClassificationUnavailable(model=model, message="Classification answer missing label")
    try:
        confidence = float(payload.get("confidence", 0.0))
    except (TypeError, ValueError) as exc:
        raise ClassificationUnavailable(model=model, message="Classification confidence is not a number") from exc
    return label, max(0.0, min(confidence, 1.0))


def _default_client(settings: ClassifierServiceSettings) -> OpenAI:
    # retries are handled here, not by the SDK
    return OpenAI(
        api_key=settings.api_key,
        base_url=settings.base_url,
        timeout=settings.request_timeout_seconds,
        max_retries=0,
    )


class OpenRouterClassifier:
    """Ask an OpenRouter chat model for the block type of a fragment.

    Transient failures (rate limits, timeouts, 5xx) are retried with
    exponential backoff; anything else, and an exhausted retry budget, raises
    ``ClassificationUnavailable``.
    """

    def __init__(
        self,
        settings: ClassifierServiceSettings,
        *,
        client: Any | None = None,
        retries: int | None = None,
        backoff_seconds: float = 0.25,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        retries = settings.retries if retries is None else retries
        if retries < 0:
            raise ValueError("retries cannot be negative")
        if backoff_seconds < 0:
            raise ValueError("backoff_seconds cannot be negative")

        self._settings = settings
        self._client = client if client is not None else _default_client(settings)
        self._retries = retries
        self._backoff_seconds = backoff_seconds
        self._sleep = sleep

    @property
    def model(self) -> str:
        return self._settings.model

    def classify(self, fragment: str) -> tuple[str, float]:
        body = fragment.strip()
        if not body:
            raise ValueError("fragment cannot be empty")

        messages = [
            {"role": "system", "content": _SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"Allowed labels: {', '.join(allowed_labels())}\n\nFragment:\n{body[:_FRAGMENT_LIMIT]}",
            },
        ]
        response = self._complete(messages)
        return parse_label(answer_text(response, model=self.model), model=self.model)

    def _complete(self, messages: list[dict[str, str]]) -> Any:
        attempt = 0
        while True:
            try:
                return self._client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=0.0,
                    max_tokens=60,
                )
            except Exception as exc:
                if attempt >= self._retries or not is_transient(exc):
                    raise ClassificationUnavailable(
                        model=self.model,
                        message=f"Classification request failed after {attempt + 1} attempt(s): {exc}",
                    ) from exc
                delay = self._backoff_seconds * (2**attempt)
                logger.debug("Retrying classification in %.2fs after %s", delay, type(exc).__name__)
                self._sleep(delay)
                attempt += 1

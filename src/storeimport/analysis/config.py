"""Runtime configuration for the external content classifier."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Mapping


DEFAULT_OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_REQUEST_TIMEOUT_SECONDS = 20.0
DEFAULT_RETRIES = 1

_REQUIRED = ("OPENROUTER_API_KEY", "OPENROUTER_CLASSIFIER_MODEL")


@dataclass(frozen=True, slots=True)
class ClassifierServiceSettings:
    """OpenRouter access for fragment classification.

    The service is optional: without an API key the analyzer runs on its
    local rules alone, see ``optional_from_env``.
    """

    api_key: str
    model: str
    base_url: str = DEFAULT_OPENROUTER_BASE_URL
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    retries: int = DEFAULT_RETRIES

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ClassifierServiceSettings":
        source: Mapping[str, str] = os.environ if environ is None else environ
        values = {name: source.get(name, "").strip() for name in _REQUIRED}
        absent = [name for name, value in values.items() if not value]
        if absent:
            raise ValueError(f"Missing required classifier environment variables: {', '.join(absent)}")

        base_url = source.get("OPENROUTER_BASE_URL", DEFAULT_OPENROUTER_BASE_URL).strip().rstrip("/")
        if not base_url.startswith(("http://", "https://")):
            raise ValueError("OPENROUTER_BASE_URL must start with http:// or https://")

        timeout = float(source.get("OPENROUTER_CLASSIFIER_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT_SECONDS))
        if timeout <= 0:
            raise ValueError("OPENROUTER_CLASSIFIER_TIMEOUT_SECONDS must be > 0")
        retries = int(source.get("OPENROUTER_CLASSIFIER_RETRIES", DEFAULT_RETRIES))
        if retries < 0:
            raise ValueError("OPENROUTER_CLASSIFIER_RETRIES cannot be negative")

        return cls(
            api_key=values["OPENROUTER_API_KEY"],
            model=values["OPENROUTER_CLASSIFIER_MODEL"],
            base_url=base_url,
            request_timeout_seconds=timeout,
            retries=retries,
        )

    @classmethod
    def optional_from_env(cls, environ: Mapping[str, str] | None = None) -> "ClassifierServiceSettings | None":
        """Settings, or None when no API key is configured."""

        source: Mapping[str, str] = os.environ if environ is None else environ
        if not source.get("OPENROUTER_API_KEY", "").strip():
            return None
        return cls.from_env(source)

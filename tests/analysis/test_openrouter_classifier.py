from __future__ import annotations

from types import SimpleNamespace

import pytest

from storeimport.analysis import ClassifierServiceSettings, OpenRouterClassifier
from storeimport.analysis.service import parse_label
from storeimport.errors import ClassificationUnavailable


_SETTINGS = ClassifierServiceSettings(api_key="key", model="openai/gpt-4o-mini")


class _RateLimited(Exception):
    status_code = 429


class _FakeCompletions:
    def __init__(self, outcomes: list[object]) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[dict] = []

    def create(self, **kwargs: object) -> object:
        self.calls.append(kwargs)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _client(*outcomes: object) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=_FakeCompletions(list(outcomes))))


def _answer(text: str) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def test_classify_sends_allowed_labels_and_parses_answer() -> None:
    client = _client(_answer('{"label": "FAQ", "confidence": 0.82}'))
    classifier = OpenRouterClassifier(_SETTINGS, client=client)

    label, confidence = classifier.classify("<section><details>?</details></section>")

    assert (label, confidence) == ("FAQ", 0.82)
    call = client.chat.completions.calls[0]
    assert call["model"] == "openai/gpt-4o-mini"
    assert call["temperature"] == 0.0
    user_prompt = call["messages"][1]["content"]
    assert "ProductGrid" in user_prompt
    assert "RawHtml" not in user_prompt
    assert "Header" not in user_prompt


def test_retryable_errors_are_retried_with_backoff() -> None:
    delays: list[float] = []
    client = _client(_RateLimited("slow down"), _answer('{"label": "Banner", "confidence": 0.7}'))
    classifier = OpenRouterClassifier(_SETTINGS, client=client, retries=2, backoff_seconds=0.5, sleep=delays.append)

    assert classifier.classify("<div>x</div>") == ("Banner", 0.7)
    assert delays == [0.5]


def test_non_retryable_error_raises_classification_unavailable() -> None:
    delays: list[float] = []
    client = _client(ValueError("bad request"))
    classifier = OpenRouterClassifier(_SETTINGS, client=client, retries=3, sleep=delays.append)

    with pytest.raises(ClassificationUnavailable, match="after 1 attempt"):
        classifier.classify("<div>x</div>")
    assert delays == []


def test_empty_choices_and_empty_fragment_are_rejected() -> None:
    classifier = OpenRouterClassifier(_SETTINGS, client=_client(SimpleNamespace(choices=[])))

    with pytest.raises(ValueError, match="empty"):
        classifier.classify("   ")
    with pytest.raises(ClassificationUnavailable, match="missing choices"):
        classifier.classify("<div>x</div>")


def test_parse_label_tolerates_wrapping_text_and_clamps_confidence() -> None:
    assert parse_label('Sure: {"label": "Image", "confidence": 1.7}', model="m") == ("Image", 1.0)
    assert parse_label('{"label": "Unknown"}', model="m") == ("Unknown", 0.0)

    with pytest.raises(ClassificationUnavailable, match="not JSON"):
        parse_label("Image", model="m")
    with pytest.raises(ClassificationUnavailable, match="missing label"):
        parse_label('{"confidence": 0.4}', model="m")


def test_invalid_retry_arguments() -> None:
    with pytest.raises(ValueError, match="retries"):
        OpenRouterClassifier(_SETTINGS, client=_client(), retries=-1)

from __future__ import annotations

import pytest

from storeimport.config import ImportSettings


def test_defaults_apply_when_environment_is_empty() -> None:
    settings = ImportSettings.from_env({})

    assert settings == ImportSettings()
    assert settings.max_workers == 4
    assert settings.detection_threshold == 0.3
    assert settings.classification_threshold == 0.55
    assert settings.escalation_timeout_seconds == 8.0
    assert settings.escalation_concurrency == 2


def test_environment_overrides_are_parsed() -> None:
    settings = ImportSettings.from_env(
        {
            "STOREIMPORT_MAX_WORKERS": "8",
            "STOREIMPORT_DETECTION_THRESHOLD": "0.5",
            "STOREIMPORT_CLASSIFICATION_THRESHOLD": " 0.7 ",
            "STOREIMPORT_ESCALATION_TIMEOUT_SECONDS": "2.5",
            "STOREIMPORT_ESCALATION_CONCURRENCY": "1",
        }
    )

    assert settings.max_workers == 8
    assert settings.detection_threshold == 0.5
    assert settings.classification_threshold == 0.7
    assert settings.escalation_timeout_seconds == 2.5
    assert settings.escalation_concurrency == 1


@pytest.mark.parametrize(
    ("name", "value", "message"),
    [
        ("STOREIMPORT_MAX_WORKERS", "0", ">= 1"),
        ("STOREIMPORT_DETECTION_THRESHOLD", "1.5", "between 0.0 and 1.0"),
        ("STOREIMPORT_ESCALATION_TIMEOUT_SECONDS", "0", ">= 0.01"),
        ("STOREIMPORT_ESCALATION_CONCURRENCY", "  ", "cannot be empty"),
    ],
)
def test_invalid_values_are_rejected(name: str, value: str, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        ImportSettings.from_env({name: value})

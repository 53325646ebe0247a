"""Runtime configuration for import jobs."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Mapping


DEFAULT_MAX_WORKERS = 4
DEFAULT_DETECTION_THRESHOLD = 0.3
DEFAULT_CLASSIFICATION_THRESHOLD = 0.55
DEFAULT_ESCALATION_TIMEOUT_SECONDS = 8.0
DEFAULT_ESCALATION_CONCURRENCY = 2


def _parse_positive_int(*, name: str, raw_value: str, minimum: int = 1) -> int:
    value = int(raw_value)
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _parse_ratio(*, name: str, raw_value: str) -> float:
    value = float(raw_value)
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be between 0.0 and 1.0")
    return value


def _parse_positive_float(*, name: str, raw_value: str, minimum: float = 0.001) -> float:
    value = float(raw_value)
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


@dataclass(frozen=True, slots=True)
class ImportSettings:
    """Validated pipeline tuning knobs."""

    max_workers: int = DEFAULT_MAX_WORKERS
    detection_threshold: float = DEFAULT_DETECTION_THRESHOLD
    classification_threshold: float = DEFAULT_CLASSIFICATION_THRESHOLD
    escalation_timeout_seconds: float = DEFAULT_ESCALATION_TIMEOUT_SECONDS
    escalation_concurrency: int = DEFAULT_ESCALATION_CONCURRENCY

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ImportSettings":
        source: Mapping[str, str] = os.environ if environ is None else environ

        workers_raw = source.get("STOREIMPORT_MAX_WORKERS", str(DEFAULT_MAX_WORKERS)).strip()
        detection_raw = source.get("STOREIMPORT_DETECTION_THRESHOLD", str(DEFAULT_DETECTION_THRESHOLD)).strip()
        classification_raw = source.get(
            "STOREIMPORT_CLASSIFICATION_THRESHOLD", str(DEFAULT_CLASSIFICATION_THRESHOLD)
        ).strip()
        timeout_raw = source.get(
            "STOREIMPORT_ESCALATION_TIMEOUT_SECONDS", str(DEFAULT_ESCALATION_TIMEOUT_SECONDS)
        ).strip()
        concurrency_raw = source.get(
            "STOREIMPORT_ESCALATION_CONCURRENCY", str(DEFAULT_ESCALATION_CONCURRENCY)
        ).strip()

        for name, raw in (
            ("STOREIMPORT_MAX_WORKERS", workers_raw),
            ("STOREIMPORT_DETECTION_THRESHOLD", detection_raw),
            ("STOREIMPORT_CLASSIFICATION_THRESHOLD", classification_raw),
            ("STOREIMPORT_ESCALATION_TIMEOUT_SECONDS", timeout_raw),
            ("STOREIMPORT_ESCALATION_CONCURRENCY", concurrency_raw),
        ):
            if not raw:
                raise ValueError(f"{name} cannot be empty")

        return cls(
            max_workers=_parse_positive_int(name="STOREIMPORT_MAX_WORKERS", raw_value=workers_raw),
            detection_threshold=_parse_ratio(name="STOREIMPORT_DETECTION_THRESHOLD", raw_value=detection_raw),
            classification_threshold=_parse_ratio(
                name="STOREIMPORT_CLASSIFICATION_THRESHOLD",
                raw_value=classification_raw,
            ),
            escalation_timeout_seconds=_parse_positive_float(
                name="STOREIMPORT_ESCALATION_TIMEOUT_SECONDS",
                raw_value=timeout_raw,
                minimum=0.01,
            ),
            escalation_concurrency=_parse_positive_int(
                name="STOREIMPORT_ESCALATION_CONCURRENCY",
                raw_value=concurrency_raw,
            ),
        )

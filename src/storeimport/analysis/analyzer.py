"""Cascading block classification: local rules, then the external service, then fallback.

Candidates that the extractors already typed with enough confidence pass
through untouched. The rest are scored by the local keyword rules; when the
local answer is still below the classification threshold and a service is
configured, the fragment is escalated under a per-job concurrency cap and a
per-fragment timeout. Any service failure degrades to the local answer.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, replace
import logging
import threading
from typing import Literal

from storeimport.analysis.rules import classify_markup
from storeimport.analysis.service import ContentClassifierService
from storeimport.config import DEFAULT_CLASSIFICATION_THRESHOLD, DEFAULT_ESCALATION_CONCURRENCY, DEFAULT_ESCALATION_TIMEOUT_SECONDS
from storeimport.extraction.properties import extract_properties
from storeimport.models import LAYOUT_TYPES, BlockType, CandidateBlock, Issue

logger = logging.getLogger(__name__)

STAGE = "analyzing"


@dataclass(frozen=True, slots=True)
class ClassificationOutcome:
    """Result of the cascade; ``block_type`` None means the fragment stays Unknown."""

    block_type: BlockType | None
    confidence: float
    source: Literal["local", "service", "fallback"]
    fallback_used: bool = False
    detail: str | None = None


class EscalationGate:
    """Job-scoped bound on calls to the content-understanding service.

    A slot is held until the service call actually returns, so calls that
    outlive their timeout still count against the cap.
    """

    def __init__(
        self,
        *,
        concurrency: int = DEFAULT_ESCALATION_CONCURRENCY,
        timeout_seconds: float = DEFAULT_ESCALATION_TIMEOUT_SECONDS,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self._timeout = timeout_seconds
        self._slots = threading.BoundedSemaphore(concurrency)
        self._executor = ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="escalation")

    def __enter__(self) -> "EscalationGate":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def call(self, service: ContentClassifierService, fragment: str) -> tuple[str, float]:
        if not self._slots.acquire(timeout=self._timeout):
            raise TimeoutError(f"no escalation slot free within {self._timeout}s")
        try:
            future = self._executor.submit(service.classify, fragment)
        except RuntimeError:
            self._slots.release()
            raise
        future.add_done_callback(lambda _: self._slots.release())
        try:
            return future.result(timeout=self._timeout)
        except FutureTimeoutError as exc:
            raise TimeoutError(f"classification timed out after {self._timeout}s") from exc


class ContentAnalyzer:
    """Assign canonical block types to Unknown or low-confidence candidates."""

    def __init__(
        self,
        service: ContentClassifierService | None = None,
        *,
        threshold: float = DEFAULT_CLASSIFICATION_THRESHOLD,
    ) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError("threshold must be between 0.0 and 1.0")
        self._service = service
        self._threshold = threshold

    @property
    def escalates(self) -> bool:
        return self._service is not None

    def classify(self, candidate: CandidateBlock, gate: EscalationGate | None = None) -> ClassificationOutcome:
        if candidate.block_type is not None and candidate.confidence >= self._threshold:
            return ClassificationOutcome(candidate.block_type, candidate.confidence, "local")

        local = self._local(candidate)
        if local.block_type is not None and local.confidence >= self._threshold:
            return local
        if self._service is None or gate is None or not candidate.markup.strip():
            return local

        try:
            label, confidence = gate.call(self._service, candidate.markup)
        except Exception as exc:
            logger.warning("Classification service unavailable, using local rules: %s", exc)
            return replace(local, source="fallback", fallback_used=True, detail=str(exc))

        if label.strip().casefold() == "unknown":
            return local
        block_type = BlockType.parse(label)
        if block_type is None or block_type is BlockType.RAW_HTML or block_type in LAYOUT_TYPES:
            detail = f"service returned label outside the block registry: {label!r}"
            logger.warning("%s", detail)
            return replace(local, source="fallback", fallback_used=True, detail=detail)
        return ClassificationOutcome(block_type, confidence, "service")

    def _local(self, candidate: CandidateBlock) -> ClassificationOutcome:
        scored = classify_markup(candidate.markup)
        if candidate.block_type is not None and (scored is None or scored.score <= candidate.confidence):
            return ClassificationOutcome(candidate.block_type, candidate.confidence, "local")
        if scored is None:
            return ClassificationOutcome(None, 0.0, "local")
        return ClassificationOutcome(scored.block_type, scored.score, "local")

    def analyze(
        self,
        candidates: list[CandidateBlock],
        *,
        gate: EscalationGate | None = None,
        path: str = "blocks",
    ) -> tuple[list[CandidateBlock], list[Issue]]:
        """Classify a candidate list (children included) into new candidates plus issues."""

        analyzed: list[CandidateBlock] = []
        issues: list[Issue] = []
        for position, candidate in enumerate(candidates):
            location = f"{path}[{position}]"
            outcome = self.classify(candidate, gate)
            if outcome.fallback_used:
                issues.append(
                    Issue(
                        code="classification_unavailable",
                        stage=STAGE,
                        message=f"Fell back to local rules: {outcome.detail}",
                        path=location,
                    )
                )
            if outcome.block_type is None:
                issues.append(
                    Issue(
                        code="unclassified_fragment",
                        stage=STAGE,
                        message="Fragment matches no known block type",
                        path=location,
                    )
                )

            children, child_issues = self.analyze(candidate.children, gate=gate, path=f"{location}.children")
            issues.extend(child_issues)
            analyzed.append(self._apply(candidate, outcome, children))
        return analyzed, issues

    def _apply(
        self,
        candidate: CandidateBlock,
        outcome: ClassificationOutcome,
        children: list[CandidateBlock],
    ) -> CandidateBlock:
        properties = dict(candidate.properties)
        if outcome.block_type is not None and outcome.block_type is not candidate.block_type and candidate.markup:
            # explicit values from the source win over what the markup yields
            properties = {**extract_properties(outcome.block_type, candidate.markup), **properties}
        return replace(
            candidate,
            block_type=outcome.block_type,
            confidence=outcome.confidence,
            properties=properties,
            children=children,
        )

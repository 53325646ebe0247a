"""Import job orchestration from a source bundle to an ``ImportReport``.

A job walks through ``detecting -> extracting -> analyzing -> normalizing ->
composing -> completed``. Detection, kit expansion and the adapter pass run
once per bundle; every later phase fans out per page on a thread pool and
fans back in before the job advances. Items are reported in the order the
adapter emitted their page entities.
"""

from __future__ import annotations

from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from contextlib import nullcontext
from dataclasses import dataclass, field
from enum import Enum
import logging
import threading
from typing import Callable, Iterable
import uuid

from storeimport.adapters import GenericAdapter, PlatformAdapter, build_default_adapters, select_adapter
from storeimport.analysis.analyzer import ContentAnalyzer, EscalationGate
from storeimport.analysis.service import ContentClassifierService
from storeimport.composer import AssetIndex, PageComposer, PageDraft, build_shared_blocks
from storeimport.config import ImportSettings
from storeimport.detector import PlatformDetector
from storeimport.errors import BundleUnreadable, EmptyPage
from storeimport.extraction.layout import collect_layout_signatures
from storeimport.extraction.page import PageExtractor
from storeimport.kits import KitUnbundler
from storeimport.models import (
    Block,
    BlockType,
    CandidateBlock,
    DetectionResult,
    EntityKind,
    ImportItemResult,
    ImportReport,
    Issue,
    ItemOutcome,
    Page,
    PlatformId,
    RawEntity,
    SourceBundle,
)
from storeimport.normalize.normalizer import BlockNormalizer

logger = logging.getLogger(__name__)

DEGRADATION_CODES = frozenset(
    {
        "raw_content_fallback",
        "schema_dropped",
        "schema_violation",
        "unresolved_reference",
        "unclassified_fragment",
        "classification_unavailable",
    }
)


class JobState(Enum):
    DETECTING = "detecting"
    EXTRACTING = "extracting"
    ANALYZING = "analyzing"
    NORMALIZING = "normalizing"
    COMPOSING = "composing"
    COMPLETED = "completed"
    FAILED = "failed"


class CancellationToken:
    """Cooperative stop signal shared between a caller and a running job."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(slots=True)
class ImportJob:
    job_id: str
    state: JobState = JobState.DETECTING
    history: list[JobState] = field(default_factory=lambda: [JobState.DETECTING])

    def advance(self, state: JobState) -> None:
        logger.info("Job %s: %s -> %s", self.job_id, self.state.value, state.value)
        self.state = state
        self.history.append(state)


@dataclass(slots=True)
class _PageWork:
    """Mutable per-page state carried from one phase to the next."""

    page: RawEntity
    sections: list[RawEntity] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)
    headers: list[CandidateBlock] = field(default_factory=list)
    footers: list[CandidateBlock] = field(default_factory=list)
    candidates: list[CandidateBlock] = field(default_factory=list)
    header_blocks: list[Block] = field(default_factory=list)
    footer_blocks: list[Block] = field(default_factory=list)
    blocks: list[tuple[int, Block]] = field(default_factory=list)
    produced: Page | None = None
    outcome: ItemOutcome | None = None

    @property
    def source_id(self) -> str:
        return self.page.source_id

    @property
    def active(self) -> bool:
        return self.outcome is None

    def stop(self, outcome: ItemOutcome, issue: Issue) -> None:
        self.outcome = outcome
        self.issues.append(issue)

    def result(self) -> ImportItemResult:
        outcome = self.outcome
        if outcome is None:
            degraded = any(issue.code in DEGRADATION_CODES for issue in self.issues)
            outcome = ItemOutcome.PARTIALLY_IMPORTED if degraded else ItemOutcome.IMPORTED
        return ImportItemResult(
            source_id=self.source_id,
            outcome=outcome,
            produced_page=self.produced if outcome is not ItemOutcome.FAILED else None,
            issues=tuple(self.issues),
        )


class ImportPipeline:
    """Run import jobs over source bundles."""

    def __init__(
        self,
        settings: ImportSettings | None = None,
        *,
        service: ContentClassifierService | None = None,
        detector: PlatformDetector | None = None,
        unbundler: KitUnbundler | None = None,
        adapters: dict[PlatformId, PlatformAdapter] | None = None,
        extractor: PageExtractor | None = None,
        analyzer: ContentAnalyzer | None = None,
        normalizer: BlockNormalizer | None = None,
        composer: PageComposer | None = None,
    ) -> None:
        self._settings = settings or ImportSettings()
        self._detector = detector or PlatformDetector(threshold=self._settings.detection_threshold)
        self._unbundler = unbundler or KitUnbundler()
        self._adapters = adapters if adapters is not None else build_default_adapters()
        self._extractor = extractor or PageExtractor()
        self._analyzer = analyzer or ContentAnalyzer(service, threshold=self._settings.classification_threshold)
        self._normalizer = normalizer or BlockNormalizer()
        self._composer = composer or PageComposer()

    @property
    def settings(self) -> ImportSettings:
        return self._settings

    def create_job(self, job_id: str | None = None) -> ImportJob:
        return ImportJob(job_id=job_id or f"job_{uuid.uuid4().hex[:12]}")

    def run(
        self,
        bundle: SourceBundle,
        *,
        job_id: str | None = None,
        cancel: CancellationToken | None = None,
    ) -> ImportReport:
        return self.run_job(self.create_job(job_id), bundle, cancel=cancel)

    def run_job(
        self,
        job: ImportJob,
        bundle: SourceBundle,
        *,
        cancel: CancellationToken | None = None,
    ) -> ImportReport:
        """Drive ``job`` to ``completed``; only ``BundleUnreadable`` escapes."""

        try:
            report = self._run(job, bundle, cancel)
        except Exception:
            job.advance(JobState.FAILED)
            raise
        job.advance(JobState.COMPLETED)
        summary = report.summary
        logger.info(
            "Job %s finished: %d item(s), %d imported, %d partial, %d skipped, %d failed",
            job.job_id,
            summary["total"],
            summary["imported"],
            summary["partially_imported"],
            summary["skipped"],
            summary["failed"],
        )
        return report

    def _run(self, job: ImportJob, bundle: SourceBundle, cancel: CancellationToken | None) -> ImportReport:
        if not bundle.documents:
            raise BundleUnreadable(source=bundle.bundle_id, message="Bundle holds no documents")

        detection = self._detector.detect(bundle)
        unbundled = self._unbundler.unbundle(bundle)

        job.advance(JobState.EXTRACTING)
        adapter, entities = self._adapt(unbundled.bundle, detection)
        works = self._group(entities)
        if not works and not unbundled.rejections:
            raise BundleUnreadable(source=bundle.bundle_id, message="Bundle holds no importable pages")

        assets = AssetIndex(
            str(entity.attributes.get("url") or entity.source_id)
            for entity in entities
            if entity.kind is EntityKind.ASSET
        )
        repeated = collect_layout_signatures(
            work.page.raw_markup or ""
            for work in works
            if work.page.attributes.get("detect_layout") and work.page.raw_markup
        )
        shared, shared_issues = build_shared_blocks(unbundled.layout, self._normalizer, platform=adapter.platform)

        for work in works:
            error = work.page.attributes.get("error")
            if error:
                work.stop(
                    ItemOutcome.FAILED,
                    Issue(code="adapter_extraction_failed", stage=JobState.EXTRACTING.value, message=str(error)),
                )

        with ThreadPoolExecutor(max_workers=self._settings.max_workers, thread_name_prefix="import") as executor:
            self._fan_out(
                executor,
                works,
                JobState.EXTRACTING,
                lambda work: self._extract(work, repeated),
                cancel=cancel,
            )

            job.advance(JobState.ANALYZING)
            gate_scope = (
                EscalationGate(
                    concurrency=self._settings.escalation_concurrency,
                    timeout_seconds=self._settings.escalation_timeout_seconds,
                )
                if self._analyzer.escalates
                else nullcontext()
            )
            with gate_scope as gate:
                self._fan_out(
                    executor,
                    works,
                    JobState.ANALYZING,
                    lambda work: self._analyze(work, gate),
                    cancel=cancel,
                )

            job.advance(JobState.NORMALIZING)
            self._fan_out(
                executor,
                works,
                JobState.NORMALIZING,
                lambda work: self._normalize(work, adapter.platform),
                cancel=cancel,
            )

            job.advance(JobState.COMPOSING)
            self._fan_out(
                executor,
                works,
                JobState.COMPOSING,
                lambda work: self._compose(work, shared, shared_issues, assets),
                cancel=cancel,
            )

        items = [work.result() for work in works]
        position = {work.source_id: index for index, work in enumerate(works)}
        placed: list[tuple[tuple[int, int, int], ImportItemResult]] = [
            ((index, 0, 0), item) for index, item in enumerate(items)
        ]
        for sequence, rejection in enumerate(unbundled.rejections):
            if rejection.after in position:
                slot = (position[rejection.after], 1)
            elif rejection.before in position:
                slot = (position[rejection.before], -1)
            else:
                slot = (len(works), 0)
            rejected = ImportItemResult(
                source_id=rejection.source_id,
                outcome=ItemOutcome.FAILED,
                issues=(Issue(code="kit_page_rejected", stage=JobState.EXTRACTING.value, message=rejection.message),),
            )
            placed.append(((*slot, sequence), rejected))
        placed.sort(key=lambda entry: entry[0])
        return ImportReport(job_id=job.job_id, detection=detection, items=tuple(item for _, item in placed))

    def _adapt(self, bundle: SourceBundle, detection: DetectionResult) -> tuple[PlatformAdapter, list[RawEntity]]:
        adapter = select_adapter(self._adapters, bundle, detection)
        logger.info("Using %s adapter for bundle %s", adapter.platform.value, bundle.bundle_id)
        try:
            return adapter, adapter.extract(bundle)
        except Exception as exc:
            if adapter.platform is PlatformId.UNKNOWN:
                raise BundleUnreadable(source=bundle.bundle_id, message=f"Bundle could not be read: {exc}") from exc
            logger.exception("%s adapter failed on bundle %s, using generic extraction", adapter.platform.value, bundle.bundle_id)

        fallback = self._adapters.get(PlatformId.UNKNOWN) or GenericAdapter()
        try:
            return fallback, fallback.extract(bundle)
        except Exception as exc:
            raise BundleUnreadable(source=bundle.bundle_id, message=f"Bundle could not be read: {exc}") from exc

    def _group(self, entities: list[RawEntity]) -> list[_PageWork]:
        works: list[_PageWork] = []
        by_page: dict[str, _PageWork] = {}
        for entity in entities:
            if entity.kind is EntityKind.PAGE:
                if entity.source_id in by_page:
                    logger.warning("Duplicate page entity %s ignored", entity.source_id)
                    continue
                work = _PageWork(page=entity)
                by_page[entity.source_id] = work
                works.append(work)
        for entity in entities:
            if entity.kind is not EntityKind.SECTION:
                continue
            owner = by_page.get(str(entity.attributes.get("page")))
            if owner is None:
                logger.warning("Section %s has no page entity", entity.source_id)
                continue
            owner.sections.append(entity)
        return works

    def _fan_out(
        self,
        executor: ThreadPoolExecutor,
        works: Iterable[_PageWork],
        state: JobState,
        task: Callable[[_PageWork], None],
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Run ``task`` over active pages with at most ``max_workers`` in flight.

        With a ``cancel`` token, pages not yet submitted to this phase when it
        fires are skipped; submitted ones finish the phase.
        """

        running: dict[Future[None], _PageWork] = {}

        def settle(done: Iterable[Future[None]]) -> None:
            for future in done:
                work = running.pop(future)
                exc = future.exception()
                if exc is not None:
                    logger.error("Stage %s failed for %s: %s", state.value, work.source_id, exc, exc_info=exc)
                    work.stop(
                        ItemOutcome.FAILED,
                        Issue(code="stage_error", stage=state.value, message=f"{type(exc).__name__}: {exc}"),
                    )

        for work in works:
            if not work.active:
                continue
            while len(running) >= self._settings.max_workers:
                done, _ = wait(list(running), return_when=FIRST_COMPLETED)
                settle(done)
            if cancel is not None and cancel.cancelled:
                work.stop(
                    ItemOutcome.SKIPPED,
                    Issue(
                        code="cancelled",
                        stage=state.value,
                        message=f"Job was cancelled before {state.value} started for this page",
                    ),
                )
                continue
            running[executor.submit(task, work)] = work

        if running:
            done, _ = wait(list(running))
            settle(done)

    def _extract(self, work: _PageWork, repeated: dict[str, int]) -> None:
        attributes = work.page.attributes
        detect_layout = bool(attributes.get("detect_layout", True))
        markup = work.page.raw_markup or ""
        removed: list[str] = []

        if not attributes.get("sectioned"):
            extraction = self._extractor.extract_page(markup, repeated=repeated, with_layout=detect_layout)
            work.candidates = extraction.blocks
            removed.extend(extraction.removed)
        else:
            extraction = (
                self._extractor.extract_page(markup, repeated=repeated, layout_only=True)
                if detect_layout and markup
                else None
            )
            for section in sorted(work.sections, key=lambda entity: entity.attributes.get("order", 0)):
                candidate = self._section_candidate(section, removed)
                if candidate.block_type is BlockType.HEADER:
                    work.headers.append(candidate)
                elif candidate.block_type is BlockType.FOOTER:
                    work.footers.append(candidate)
                else:
                    work.candidates.append(candidate)

        # detected layout comes after adapter-typed layout sections
        if extraction is not None:
            if extraction.header is not None and not attributes.get("header_ref"):
                work.headers.append(extraction.header)
            if extraction.footer is not None and not attributes.get("footer_ref"):
                work.footers.append(extraction.footer)

        for overlay in removed:
            logger.info("Removed overlay from %s: %s", work.source_id, overlay)
            work.issues.append(Issue(code="overlay_removed", stage=JobState.EXTRACTING.value, message=overlay))

        logger.debug(
            "Extracted %d candidate(s) from %s (%d section entities)",
            len(work.candidates),
            work.source_id,
            len(work.sections),
        )

    def _section_candidate(self, section: RawEntity, removed: list[str]) -> CandidateBlock:
        attributes = section.attributes
        order = int(attributes.get("order", 0))
        candidate = self._extractor.extract_section(
            section.raw_markup,
            block_type=attributes.get("block_type"),
            settings=attributes.get("settings"),
            order=order,
            removed=removed,
        )
        candidate.children = [
            self._extractor.extract_section(
                child.get("markup"),
                block_type=child.get("block_type"),
                settings=child.get("settings"),
                order=position,
                removed=removed,
            )
            for position, child in enumerate(attributes.get("children") or [])
        ]
        return candidate

    def _analyze(self, work: _PageWork, gate: EscalationGate | None) -> None:
        work.candidates, issues = self._analyzer.analyze(work.candidates, gate=gate)
        work.issues.extend(issues)

    def _normalize(self, work: _PageWork, platform: PlatformId) -> None:
        blocks, issues = self._normalizer.normalize(work.candidates, source_id=work.source_id, platform=platform)
        work.blocks = [(candidate.order, block) for candidate, block in zip(work.candidates, blocks)]
        work.issues.extend(issues)
        layout = (("header", work.headers, work.header_blocks), ("footer", work.footers, work.footer_blocks))
        for role, found, target in layout:
            for position, candidate in enumerate(found):
                block, block_issues = self._normalizer.normalize_one(
                    candidate,
                    source_id=work.source_id,
                    platform=platform,
                    path=role if position == 0 else f"{role}[{position}]",
                )
                target.append(block)
                work.issues.extend(block_issues)

    def _compose(
        self,
        work: _PageWork,
        shared: dict[str, Block],
        shared_issues: dict[str, list[Issue]],
        assets: AssetIndex,
    ) -> None:
        attributes = work.page.attributes
        header_ref = attributes.get("header_ref")
        footer_ref = attributes.get("footer_ref")
        draft = PageDraft(
            source_id=work.source_id,
            title=str(attributes.get("title") or work.source_id),
            slug=str(attributes.get("slug") or "page"),
            blocks=work.blocks,
            headers=work.header_blocks,
            footers=work.footer_blocks,
            header_ref=header_ref,
            footer_ref=footer_ref,
        )
        try:
            page, issues = self._composer.compose(draft, shared=shared, assets=assets)
        except EmptyPage as exc:
            logger.info("Skipping %s: %s", work.source_id, exc)
            work.stop(ItemOutcome.SKIPPED, Issue(code="empty_page", stage=JobState.COMPOSING.value, message=str(exc)))
            return
        for ref in dict.fromkeys((header_ref, footer_ref)):
            if ref is not None:
                work.issues.extend(shared_issues.get(ref, ()))
        work.issues.extend(issues)
        work.produced = page

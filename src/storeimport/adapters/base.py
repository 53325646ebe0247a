"""Shared adapter contract and entity builders for platform adapters."""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
import re
from typing import Any, Callable, Iterable, Protocol, runtime_checkable

from storeimport.errors import AdapterExtractionFailed
from storeimport.extraction.dom import first_heading, parse_html
from storeimport.models import BlockType, DetectionResult, EntityKind, PlatformId, RawEntity, SourceBundle, SourceDocument
from storeimport.text import normalize_whitespace, slugify

logger = logging.getLogger(__name__)

_INDEX_STEMS = {"index", "home", "inicio", "default"}


@runtime_checkable
class PlatformAdapter(Protocol):
    """Protocol that every platform adapter must implement."""

    platform: PlatformId

    def supports(self, bundle: SourceBundle, detection: DetectionResult) -> bool:
        """Return True when this adapter can translate the given bundle."""

    def extract(self, bundle: SourceBundle) -> list[RawEntity]:
        """Translate the bundle into raw page, section and asset entities."""


def page_title(doc: SourceDocument) -> str:
    if doc.title:
        return doc.title
    if doc.media_type == "text/html":
        soup = parse_html(doc.content)
        if soup.title is not None and soup.title.get_text(strip=True):
            return normalize_whitespace(soup.title.get_text(" ", strip=True))
        heading = first_heading(soup)
        if heading:
            return heading
    return PurePosixPath(doc.path).stem.replace("-", " ").replace("_", " ").strip().title() or "Page"


def page_slug(doc: SourceDocument) -> str:
    if doc.slug:
        return slugify(doc.slug)
    path = PurePosixPath(doc.path.split("?", 1)[0].rstrip("/"))
    stem = path.stem or path.name
    if stem.lower() in _INDEX_STEMS and path.parent.name not in {"", "."}:
        stem = path.parent.name
    if stem.lower() in _INDEX_STEMS:
        return "home"
    return slugify(stem)


def page_entity(
    doc: SourceDocument,
    *,
    source_id: str | None = None,
    markup: str | None = None,
    sectioned: bool = False,
    detect_layout: bool = True,
    **attributes: Any,
) -> RawEntity:
    base = {
        "path": doc.path,
        "title": page_title(doc),
        "slug": page_slug(doc),
        "header_ref": doc.header_ref,
        "footer_ref": doc.footer_ref,
        "sectioned": sectioned,
        "detect_layout": detect_layout,
    }
    base.update(attributes)
    return RawEntity(
        kind=EntityKind.PAGE,
        source_id=source_id or doc.path,
        attributes=base,
        raw_markup=doc.content if markup is None else markup,
    )


def section_entity(
    page_id: str,
    key: str,
    *,
    order: int,
    block_type: BlockType | None = None,
    settings: dict[str, Any] | None = None,
    markup: str | None = None,
    children: list[dict[str, Any]] | None = None,
    platform_type: str | None = None,
) -> RawEntity:
    return RawEntity(
        kind=EntityKind.SECTION,
        source_id=f"{page_id}#{key}",
        attributes={
            "page": page_id,
            "order": order,
            "block_type": block_type,
            "settings": dict(settings or {}),
            "children": list(children or []),
            "platform_type": platform_type,
        },
        raw_markup=markup,
    )


def failed_page(doc: SourceDocument, platform: PlatformId, exc: Exception, *, source_id: str | None = None) -> RawEntity:
    error = AdapterExtractionFailed(source_id=source_id or doc.path, platform=platform.value, message=str(exc))
    return RawEntity(
        kind=EntityKind.PAGE,
        source_id=source_id or doc.path,
        attributes={"path": doc.path, "title": doc.title or doc.path, "slug": page_slug(doc), "error": str(error)},
    )


def asset_entities(bundle: SourceBundle, host_pattern: re.Pattern[str] | None = None) -> list[RawEntity]:
    """One asset entity per referenced URL; platform assets are flagged by host."""

    return [
        RawEntity(
            kind=EntityKind.ASSET,
            source_id=url,
            attributes={
                "url": url,
                "name": PurePosixPath(url.split("?", 1)[0]).name,
                "platform_host": bool(host_pattern and host_pattern.search(url)),
            },
        )
        for url in bundle.asset_urls
    ]


def isolated(
    docs: Iterable[SourceDocument],
    platform: PlatformId,
    translate: Callable[[SourceDocument], list[RawEntity]],
) -> list[RawEntity]:
    """Translate documents one by one; a failing document becomes a flagged page entity."""

    entities: list[RawEntity] = []
    for doc in docs:
        try:
            entities.extend(translate(doc))
        except Exception as exc:
            logger.exception("%s adapter failed on %s", platform.value, doc.path)
            entities.append(failed_page(doc, platform, exc))
    return entities

"""Expansion of multi-page theme kits into independent page documents.

A kit manifest is a JSON document shaped like::

    {"kit": {"name": "summer",
             "shared": {"header": "<header>..</header>", "footer": "parts/footer.html"},
             "pages": [{"slug": "home", "title": "Home", "html": "<main>..</main>"},
                       {"slug": "about", "source": "pages/about.html"}]}}

Shared regions may be inline markup or a path to another bundle document.
Unbundled pages carry references into ``SharedLayout`` instead of copies of
the shared markup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from typing import Any

from storeimport.models import SourceBundle, SourceDocument
from storeimport.text import slugify

logger = logging.getLogger(__name__)

_LAYOUT_ROLES = ("header", "footer")


@dataclass(slots=True)
class SharedLayout:
    """Job-scoped registry of kit-level header/footer markup by reference."""

    regions: dict[str, str] = field(default_factory=dict)

    def register(self, ref: str, markup: str) -> None:
        self.regions[ref] = markup

    def resolve(self, ref: str | None) -> str | None:
        if ref is None:
            return None
        return self.regions.get(ref)


@dataclass(slots=True)
class KitRejection:
    """A kit page that could not be unbundled, placed between its emitted neighbours."""

    source_id: str
    message: str
    after: str | None = None
    before: str | None = None


@dataclass(slots=True)
class UnbundledBundle:
    bundle: SourceBundle
    layout: SharedLayout
    rejections: list[KitRejection] = field(default_factory=list)
    kit_names: list[str] = field(default_factory=list)


def _parse_manifest(doc: SourceDocument) -> dict[str, Any] | None:
    if doc.media_type != "application/json":
        return None
    try:
        payload = json.loads(doc.content)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    kit = payload.get("kit")
    if isinstance(kit, dict) and isinstance(kit.get("pages"), list):
        return kit
    return None


def is_kit(doc: SourceDocument) -> bool:
    return _parse_manifest(doc) is not None


def _looks_like_markup(value: str) -> bool:
    return value.lstrip().startswith("<")


class KitUnbundler:
    """Replace kit manifests in a bundle with one document per logical page."""

    def unbundle(self, bundle: SourceBundle) -> UnbundledBundle:
        by_path = {doc.path: doc for doc in bundle.documents}
        layout = SharedLayout()
        rejections: list[KitRejection] = []
        kit_names: list[str] = []
        consumed: set[str] = set()
        expanded: list[SourceDocument | list[SourceDocument]] = []

        for doc in bundle.documents:
            kit = _parse_manifest(doc)
            if kit is None:
                expanded.append(doc)
                continue

            name = slugify(str(kit.get("name") or doc.path), fallback="kit")
            kit_names.append(name)
            refs = self._register_shared(kit, name, by_path, layout, consumed)
            pages = self._expand_pages(kit, name, doc.path, refs, by_path, consumed, rejections)
            logger.info("Unbundled kit %s from %s into %d page(s)", name, doc.path, len(pages))
            expanded.append(pages)

        if not kit_names:
            return UnbundledBundle(bundle=bundle, layout=layout)

        documents: list[SourceDocument] = []
        for entry in expanded:
            if isinstance(entry, list):
                documents.extend(entry)
            elif entry.path not in consumed:
                documents.append(entry)

        return UnbundledBundle(
            bundle=SourceBundle(
                bundle_id=bundle.bundle_id,
                documents=tuple(documents),
                platform_hint=bundle.platform_hint,
                asset_urls=bundle.asset_urls,
            ),
            layout=layout,
            rejections=rejections,
            kit_names=kit_names,
        )

    def _register_shared(
        self,
        kit: dict[str, Any],
        name: str,
        by_path: dict[str, SourceDocument],
        layout: SharedLayout,
        consumed: set[str],
    ) -> dict[str, str]:
        shared = kit.get("shared")
        refs: dict[str, str] = {}
        if not isinstance(shared, dict):
            return refs

        for role in _LAYOUT_ROLES:
            value = shared.get(role)
            if not isinstance(value, str) or not value.strip():
                continue
            markup = value
            if not _looks_like_markup(value):
                target = by_path.get(value)
                if target is None:
                    logger.warning("Kit %s references missing shared %s document %s", name, role, value)
                    continue
                consumed.add(target.path)
                markup = target.content
            ref = f"kit:{name}:{role}"
            layout.register(ref, markup)
            refs[role] = ref
        return refs

    def _expand_pages(
        self,
        kit: dict[str, Any],
        name: str,
        manifest_path: str,
        refs: dict[str, str],
        by_path: dict[str, SourceDocument],
        consumed: set[str],
        rejections: list[KitRejection],
    ) -> list[SourceDocument]:
        pages: list[SourceDocument] = []
        seen_slugs: set[str] = set()
        pending: list[KitRejection] = []

        def reject(source_id: str, message: str) -> None:
            rejection = KitRejection(source_id, message, after=pages[-1].path if pages else None)
            pending.append(rejection)
            rejections.append(rejection)

        for index, entry in enumerate(kit["pages"], start=1):
            if not isinstance(entry, dict):
                reject(f"{manifest_path}#{index}", "Kit page entry is not an object")
                continue

            title = str(entry.get("title") or "").strip() or None
            slug = slugify(str(entry.get("slug") or title or f"page-{index}"))
            if slug in seen_slugs:
                slug = f"{slug}-{index}"
            seen_slugs.add(slug)
            path = f"kit/{name}/{slug}.html"

            markup = entry.get("html")
            source = entry.get("source")
            if not isinstance(markup, str) and isinstance(source, str):
                target = by_path.get(source)
                if target is not None:
                    consumed.add(target.path)
                    markup = target.content
            if not isinstance(markup, str) or not markup.strip():
                reject(path, "Kit page has neither inline html nor a readable source")
                continue

            pages.append(
                SourceDocument(
                    path=path,
                    content=markup,
                    media_type="text/html",
                    title=title,
                    slug=slug,
                    header_ref=refs.get("header"),
                    footer_ref=refs.get("footer"),
                )
            )
            for rejection in pending:
                rejection.before = path
            pending.clear()
        return pages

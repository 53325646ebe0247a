"""Shopify theme exports: JSON templates and rendered ``shopify-section`` pages."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from bs4 import Tag

from storeimport.adapters.base import asset_entities, isolated, page_entity, section_entity
from storeimport.extraction.dom import parse_html
from storeimport.models import BlockType, DetectionResult, PlatformId, RawEntity, SourceBundle, SourceDocument

logger = logging.getLogger(__name__)

_CDN_RE = re.compile(r"cdn\.shopify\.com|shopify://")
_TEMPLATE_RE = re.compile(r"(^|/)templates/(?P<name>[^/]+)\.json$")
_SECTION_ID_RE = re.compile(r"^shopify-section-(?:.*__)?(?P<type>[a-z0-9_-]+)$", re.IGNORECASE)

SECTION_TYPES: dict[str, BlockType] = {
    "header": BlockType.HEADER,
    "footer": BlockType.FOOTER,
    "announcement-bar": BlockType.RICH_TEXT,
    "image-banner": BlockType.BANNER,
    "image-with-text": BlockType.BANNER,
    "slideshow": BlockType.BANNER,
    "hero": BlockType.BANNER,
    "banner": BlockType.BANNER,
    "rich-text": BlockType.SECTION,
    "featured-collection": BlockType.PRODUCT_GRID,
    "main-collection-product-grid": BlockType.PRODUCT_GRID,
    "product-recommendations": BlockType.PRODUCT_GRID,
    "featured-product": BlockType.PRODUCT_CARD,
    "main-product": BlockType.PRODUCT_CARD,
    "video": BlockType.YOUTUBE_VIDEO,
    "newsletter": BlockType.NEWSLETTER,
    "email-signup-banner": BlockType.NEWSLETTER,
    "collapsible-content": BlockType.FAQ,
    "faq": BlockType.FAQ,
    "multicolumn": BlockType.FEATURE_LIST,
    "icon-with-text": BlockType.FEATURE_LIST,
    "collection-list": BlockType.CATEGORY_LIST,
    "testimonials": BlockType.TESTIMONIALS,
    "image-gallery": BlockType.IMAGE_GALLERY,
    "collage": BlockType.IMAGE_GALLERY,
    "main-page": BlockType.RICH_TEXT,
}

BLOCK_TYPES: dict[str, BlockType] = {
    "heading": BlockType.RICH_TEXT,
    "text": BlockType.RICH_TEXT,
    "button": BlockType.BUTTON,
    "buttons": BlockType.BUTTON,
    "image": BlockType.IMAGE,
    "video": BlockType.YOUTUBE_VIDEO,
    "slide": BlockType.BANNER,
}

# section blocks that become list items of the section itself
_ITEM_BLOCKS: dict[BlockType, tuple[str, dict[str, str]]] = {
    BlockType.FAQ: ("items", {"heading": "question", "row_content": "answer", "content": "answer"}),
    BlockType.FEATURE_LIST: ("items", {"title": "title", "heading": "title", "text": "description", "image": "icon_url"}),
    BlockType.IMAGE_GALLERY: ("images", {"image": "src", "alt": "alt"}),
    BlockType.CATEGORY_LIST: ("categories", {"collection": "name", "title": "name", "link": "url", "image": "image_url"}),
    BlockType.TESTIMONIALS: ("items", {"quote": "quote", "text": "quote", "author": "author", "rating": "rating"}),
}

_CUSTOM_MARKUP_KEYS = ("custom_liquid", "html", "content")


def section_type(raw: str) -> BlockType | None:
    """Map a theme section type (``image-banner``, ``featured_collection``) to a block type."""

    key = raw.strip().lower().replace("_", "-")
    if key in SECTION_TYPES:
        return SECTION_TYPES[key]
    matches = [name for name in SECTION_TYPES if key.startswith(name)]
    return SECTION_TYPES[max(matches, key=len)] if matches else None


def _ordered(container: dict[str, Any], order_key: str, items_key: str) -> list[tuple[str, dict[str, Any]]]:
    items = container.get(items_key) or {}
    if not isinstance(items, dict):
        raise ValueError(f"'{items_key}' must be an object")
    order = container.get(order_key)
    keys = [key for key in order if key in items] if isinstance(order, list) else list(items)
    return [(key, items[key]) for key in keys if isinstance(items[key], dict) and not items[key].get("disabled")]


class ShopifyAdapter:
    """Translate Shopify theme templates and rendered theme pages."""

    platform = PlatformId.SHOPIFY

    def supports(self, bundle: SourceBundle, detection: DetectionResult) -> bool:
        return any(_TEMPLATE_RE.search(doc.path) for doc in bundle.documents) or any(
            "shopify-section" in doc.content for doc in bundle.documents_of("text/html")
        )

    def extract(self, bundle: SourceBundle) -> list[RawEntity]:
        docs = [
            doc
            for doc in bundle.documents
            if doc.media_type == "text/html" or _TEMPLATE_RE.search(doc.path)
        ]
        return isolated(docs, self.platform, self._translate) + asset_entities(bundle, _CDN_RE)

    def _translate(self, doc: SourceDocument) -> list[RawEntity]:
        if _TEMPLATE_RE.search(doc.path):
            return self._template(doc)
        return self._rendered(doc)

    def _template(self, doc: SourceDocument) -> list[RawEntity]:
        payload = json.loads(doc.content)
        if not isinstance(payload, dict):
            raise ValueError("Template is not a JSON object")

        name = _TEMPLATE_RE.search(doc.path).group("name")
        slug = "home" if name == "index" else name.replace(".", "-")
        title = doc.title or ("Home" if name == "index" else name.replace(".", " ").replace("-", " ").title())
        page = page_entity(doc, markup="", sectioned=True, detect_layout=False, title=title, slug=slug)
        entities = [page]

        for order, (key, section) in enumerate(_ordered(payload, "order", "sections")):
            raw_type = str(section.get("type") or "")
            block_type = section_type(raw_type)
            settings = dict(section.get("settings") or {})
            blocks = _ordered(section, "block_order", "blocks")
            markup = None
            if block_type is None:
                markup = next((settings.pop(k) for k in _CUSTOM_MARKUP_KEYS if isinstance(settings.get(k), str)), None)
            children = self._fold_blocks(block_type, settings, blocks)
            entities.append(
                section_entity(
                    page.source_id,
                    key,
                    order=order,
                    block_type=block_type,
                    settings=settings,
                    markup=markup,
                    children=children,
                    platform_type=raw_type,
                )
            )
        logger.debug("Shopify template %s yielded %d section(s)", doc.path, len(entities) - 1)
        return entities

    def _fold_blocks(
        self,
        block_type: BlockType | None,
        settings: dict[str, Any],
        blocks: list[tuple[str, dict[str, Any]]],
    ) -> list[dict[str, Any]]:
        """Fold theme blocks into list properties, banner settings or child entries."""

        if block_type in _ITEM_BLOCKS:
            prop, renames = _ITEM_BLOCKS[block_type]
            settings[prop] = [
                {renames[name]: value for name, value in (block.get("settings") or {}).items() if name in renames}
                for _, block in blocks
            ]
            return []

        if block_type is BlockType.BANNER and blocks:
            for _, block in blocks:
                for name, value in (block.get("settings") or {}).items():
                    settings.setdefault(name, value)
            return []

        children: list[dict[str, Any]] = []
        for _, block in blocks:
            raw_type = str(block.get("type") or "")
            child_settings = dict(block.get("settings") or {})
            child_type = BLOCK_TYPES.get(raw_type.replace("_", "-"))
            if raw_type == "heading" and "heading" in child_settings:
                child_settings = {"content": f"<h2>{child_settings.pop('heading')}</h2>", **child_settings}
            children.append({"block_type": child_type, "settings": child_settings, "platform_type": raw_type})
        return children

    def _rendered(self, doc: SourceDocument) -> list[RawEntity]:
        soup = parse_html(doc.content)
        wrappers = [
            element
            for element in soup.find_all(id=re.compile(r"^shopify-section-"))
            if isinstance(element, Tag) and element.find_parent(id=re.compile(r"^shopify-section-")) is None
        ]
        if not wrappers:
            return [page_entity(doc)]

        typed = [self._wrapper_type(element) for element in wrappers]
        has_layout = any(block_type in (BlockType.HEADER, BlockType.FOOTER) for block_type, _ in typed)
        page = page_entity(doc, sectioned=True, detect_layout=not has_layout)
        entities = [page]
        for order, (element, (block_type, raw_type)) in enumerate(zip(wrappers, typed)):
            key = str(element.get("id"))[len("shopify-section-"):]
            entities.append(
                section_entity(
                    page.source_id,
                    key,
                    order=order,
                    block_type=block_type,
                    markup=str(element),
                    platform_type=raw_type,
                )
            )
        return entities

    def _wrapper_type(self, element: Tag) -> tuple[BlockType | None, str]:
        match = _SECTION_ID_RE.match(str(element.get("id") or ""))
        raw_type = match.group("type") if match else ""
        section_hint = str(element.get("data-section-type") or "")
        for candidate in (section_hint, raw_type):
            if candidate:
                block_type = section_type(candidate)
                # rendered generic sections are segmented by the extractors instead
                if block_type is BlockType.SECTION:
                    return None, candidate
                if block_type is not None:
                    return block_type, candidate
        return None, raw_type

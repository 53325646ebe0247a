"""WooCommerce stores: WordPress WXR exports and rendered theme pages."""

from __future__ import annotations

import logging
import re

from bs4 import Tag
from lxml import etree

from storeimport.adapters.base import asset_entities, failed_page, isolated, page_entity, section_entity
from storeimport.extraction.dom import element_children, hint_text, is_visible_content, parse_html
from storeimport.models import BlockType, DetectionResult, PlatformId, RawEntity, SourceBundle, SourceDocument
from storeimport.text import normalize_whitespace

logger = logging.getLogger(__name__)

_WXR_MARKER = "wordpress.org/export/"
_CONTENT_NS = "http://purl.org/rss/1.0/modules/content/"
_UPLOADS_RE = re.compile(r"wp-content/uploads")
_IMPORTED_POST_TYPES = {"page", "product"}
_SKIPPED_STATUSES = {"trash", "auto-draft", "inherit"}

# Gutenberg and WooCommerce block classes
_WP_BLOCK_TYPES: tuple[tuple[re.Pattern[str], BlockType], ...] = (
    (re.compile(r"wp-block-embed-youtube|is-provider-youtube"), BlockType.YOUTUBE_VIDEO),
    (re.compile(r"wp-block-cover|wp-block-media-text"), BlockType.BANNER),
    (re.compile(r"wp-block-gallery"), BlockType.IMAGE_GALLERY),
    (re.compile(r"wp-block-image"), BlockType.IMAGE),
    (re.compile(r"wp-block-buttons?\b"), BlockType.BUTTON),
    (re.compile(r"wp-block-woocommerce-(?:product|handpicked|all-products)|woocommerce\s.*columns-\d"), BlockType.PRODUCT_GRID),
    (re.compile(r"wp-block-woocommerce-featured-product"), BlockType.PRODUCT_CARD),
    (re.compile(r"wp-block-woocommerce-product-categories|wp-block-woocommerce-featured-category"), BlockType.CATEGORY_LIST),
)


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(item: etree._Element, name: str) -> str:
    for child in item:
        if isinstance(child.tag, str) and _local(child.tag) == name:
            return (child.text or "").strip()
    return ""


def _content_encoded(item: etree._Element) -> str:
    node = item.find(f"{{{_CONTENT_NS}}}encoded")
    return (node.text or "").strip() if node is not None else ""


def _post_meta(item: etree._Element) -> dict[str, str]:
    meta: dict[str, str] = {}
    for child in item:
        if not isinstance(child.tag, str) or _local(child.tag) != "postmeta":
            continue
        key = _child_text(child, "meta_key")
        if key:
            meta[key] = _child_text(child, "meta_value")
    return meta


def _wp_block_type(tag: Tag) -> BlockType | None:
    hints = hint_text(tag)
    for pattern, block_type in _WP_BLOCK_TYPES:
        if pattern.search(hints):
            return block_type
    return None


class WooCommerceAdapter:
    """Translate WXR page/product items and ``entry-content`` theme pages."""

    platform = PlatformId.WOOCOMMERCE

    def supports(self, bundle: SourceBundle, detection: DetectionResult) -> bool:
        return any(_WXR_MARKER in doc.content for doc in bundle.documents_of("application/xml")) or any(
            "woocommerce" in doc.content or "wp-content" in doc.content for doc in bundle.documents_of("text/html")
        )

    def extract(self, bundle: SourceBundle) -> list[RawEntity]:
        entities: list[RawEntity] = []
        for doc in bundle.documents:
            if doc.media_type == "application/xml" and _WXR_MARKER in doc.content:
                entities.extend(self._export(doc))
            elif doc.media_type == "text/html":
                entities.extend(isolated([doc], self.platform, self._rendered))
        return entities + asset_entities(bundle, _UPLOADS_RE)

    def _export(self, doc: SourceDocument) -> list[RawEntity]:
        parser = etree.XMLParser(resolve_entities=False, no_network=True, load_dtd=False, huge_tree=False, recover=False)
        try:
            root = etree.fromstring(doc.content.encode("utf-8"), parser=parser)
        except etree.XMLSyntaxError as exc:
            logger.exception("Unreadable WXR export %s", doc.path)
            return [failed_page(doc, self.platform, exc)]

        entities: list[RawEntity] = []
        for item in root.iter("item"):
            post_id = _child_text(item, "post_id") or str(len(entities))
            source_id = f"{doc.path}#{post_id}"
            try:
                entities.extend(self._item(doc, item, source_id))
            except Exception as exc:
                logger.exception("WooCommerce adapter failed on %s", source_id)
                entities.append(failed_page(doc, self.platform, exc, source_id=source_id))
        return entities

    def _item(self, doc: SourceDocument, item: etree._Element, source_id: str) -> list[RawEntity]:
        post_type = _child_text(item, "post_type")
        status = _child_text(item, "status")
        if post_type not in _IMPORTED_POST_TYPES or status in _SKIPPED_STATUSES:
            return []

        title = normalize_whitespace(_child_text(item, "title"))
        slug = _child_text(item, "post_name") or None
        content = _content_encoded(item)
        page_doc = SourceDocument(path=source_id, content="", title=title or None, slug=slug)

        if post_type == "page":
            if not content:
                raise ValueError("Page item has no content:encoded body")
            return [page_entity(page_doc, markup=f"<main>{content}</main>", detect_layout=False)]

        meta = _post_meta(item)
        page = page_entity(page_doc, markup="", sectioned=True, detect_layout=False)
        product = section_entity(
            page.source_id,
            "product",
            order=0,
            block_type=BlockType.PRODUCT_CARD,
            settings={
                "name": title,
                "regular_price": meta.get("_regular_price") or None,
                "sale_price": meta.get("_sale_price") or None,
                "currency": meta.get("_currency") or None,
                "url": _child_text(item, "link") or None,
            },
        )
        entities = [page, product]
        if content:
            entities.append(section_entity(page.source_id, "description", order=1, markup=f"<div>{content}</div>"))
        return entities

    def _rendered(self, doc: SourceDocument) -> list[RawEntity]:
        soup = parse_html(doc.content)
        body = soup.find(class_="entry-content")
        if body is None:
            return [page_entity(doc)]

        page = page_entity(doc, sectioned=True)
        entities = [page]
        for order, child in enumerate(child for child in element_children(body) if is_visible_content(child)):
            entities.append(
                section_entity(
                    page.source_id,
                    f"block-{order}",
                    order=order,
                    block_type=_wp_block_type(child),
                    markup=str(child),
                )
            )
        return entities

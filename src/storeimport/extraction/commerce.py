"""Detection of e-commerce regions: product grids, single products, price/CTA clusters."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Tag

from storeimport.extraction.dom import hint_text, span_of, text_of
from storeimport.extraction.properties import extract_properties, repeated_children
from storeimport.models import BlockType, CandidateBlock
from storeimport.text import find_currency_tokens

_CONTAINER_TAGS = ["section", "div", "ul", "ol"]
_GRID_HINT_RE = re.compile(r"product|produto|grid|vitrine|showcase|collection|colecao|shelf|prateleira")
_PRODUCT_HINT_RE = re.compile(r"product-(?:detail|single|page|info|main)|produto-(?:detalhe|principal)|pdp")
_BUY_RE = re.compile(
    r"comprar|compre|buy|add to cart|adicionar|adicione|carrinho|shop now|eu quero",
    re.IGNORECASE,
)
_SKIP_ANCESTORS = {"html", "body", "main"}
_MAX_CLUSTER_TEXT = 1500


def _has_buy_action(tag: Tag) -> bool:
    for element in tag.find_all(["a", "button", "input"]):
        label = text_of(element) or str(element.get("value") or "")
        if _BUY_RE.search(label) or _BUY_RE.search(hint_text(element)):
            return True
    return False


def _is_card(tag: Tag) -> bool:
    return bool(find_currency_tokens(text_of(tag))) and tag.find(["img", "a", "h2", "h3", "h4"]) is not None


def _with_image(
    element: Tag,
    span: tuple[int, int],
    qualifying: dict[int, tuple[Tag, tuple[int, int]]],
) -> tuple[Tag, tuple[int, int]]:
    """Widen an image-less price/CTA cluster to a qualifying ancestor that shows the product."""

    if element.find("img") is not None:
        return element, span
    for ancestor in list(element.parents)[:2]:
        found = qualifying.get(id(ancestor))
        if found is not None and ancestor.find("img") is not None:
            return found
    return element, span


def _deepest(elements: list[tuple[Tag, tuple[int, int]]]) -> list[tuple[Tag, tuple[int, int]]]:
    """Drop elements that contain another qualifying element."""

    kept = []
    for element, span in elements:
        contains_other = any(
            other is not element and span[0] <= other_span[0] and other_span[1] <= span[1]
            for other, other_span in elements
        )
        if not contains_other:
            kept.append((element, span))
    return kept


class CommerceDetector:
    """Identify commerce regions by repeated card shape and currency cues."""

    def detect(self, soup: BeautifulSoup, index: dict[int, int]) -> list[CandidateBlock]:
        grids = self._grids(soup, index)
        grid_spans = [candidate.span for candidate in grids]
        singles = self._singles(soup, index, grid_spans)
        return [*grids, *singles]

    def _grids(self, soup: BeautifulSoup, index: dict[int, int]) -> list[CandidateBlock]:
        qualifying: list[tuple[Tag, tuple[int, int]]] = []
        priced_counts: dict[int, int] = {}
        for container in soup.find_all(_CONTAINER_TAGS):
            cards = repeated_children(container)
            if len(cards) < 2:
                continue
            priced = sum(1 for card in cards if _is_card(card))
            if priced < 2:
                continue
            qualifying.append((container, span_of(container, index)))
            priced_counts[id(container)] = priced

        # a wrapper around several grids is not itself a grid
        candidates: list[CandidateBlock] = []
        for container, span in _deepest(qualifying):
            priced = priced_counts[id(container)]
            confidence = 0.6 + 0.05 * min(priced, 5)
            if _GRID_HINT_RE.search(hint_text(container)):
                confidence += 0.1
            candidates.append(
                CandidateBlock(
                    block_type=BlockType.PRODUCT_GRID,
                    properties=extract_properties(BlockType.PRODUCT_GRID, container),
                    confidence=min(confidence, 0.95),
                    span=span,
                    markup=str(container),
                    origin="commerce:grid",
                )
            )
        return candidates

    def _singles(
        self,
        soup: BeautifulSoup,
        index: dict[int, int],
        grid_spans: list[tuple[int, int]],
    ) -> list[CandidateBlock]:
        qualifying: list[tuple[Tag, tuple[int, int]]] = []
        for element in soup.find_all(["div", "section", "article", "form"]):
            if element.name in _SKIP_ANCESTORS:
                continue
            span = span_of(element, index)
            if any(start <= span[0] and span[1] <= end for start, end in grid_spans):
                continue
            text = text_of(element)
            if len(text) > _MAX_CLUSTER_TEXT:
                continue
            tokens = find_currency_tokens(text)
            if not tokens or len(tokens) > 3:
                continue
            if _has_buy_action(element) or _PRODUCT_HINT_RE.search(hint_text(element)):
                qualifying.append((element, span))

        by_id = {id(element): (element, span) for element, span in qualifying}
        selected: dict[int, tuple[Tag, tuple[int, int]]] = {}
        for element, span in _deepest(qualifying):
            widened = _with_image(element, span, by_id)
            selected.setdefault(id(widened[0]), widened)

        candidates: list[CandidateBlock] = []
        for element, span in sorted(selected.values(), key=lambda item: item[1][0]):
            itemtype = str(element.get("itemtype") or "")
            has_image = element.find("img") is not None
            if has_image:
                confidence = 0.7
                if "schema.org/Product" in itemtype or _PRODUCT_HINT_RE.search(hint_text(element)):
                    confidence += 0.1
                block_type = BlockType.PRODUCT_CARD
                origin = "commerce:product"
            else:
                confidence = 0.6
                block_type = BlockType.CALL_TO_ACTION
                origin = "commerce:price-cta"
            candidates.append(
                CandidateBlock(
                    block_type=block_type,
                    properties=extract_properties(block_type, element),
                    confidence=confidence,
                    span=span,
                    markup=str(element),
                    origin=origin,
                )
            )
        return candidates

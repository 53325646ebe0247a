"""Header/footer detection by landmark, class hints and content scoring.

Candidates come from HTML5 landmarks (``<header>``/``<footer>``), ARIA
roles (``banner``/``contentinfo``) and class/id hints. Each is scored on
its navigational content, its position in the document and whether the
same region repeats on other pages of the bundle.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
import hashlib
import re
from typing import Iterable, Mapping

from bs4 import BeautifulSoup, Tag

from storeimport.extraction.dom import clean_soup, hint_text, links_of, parse_html, span_of, text_of
from storeimport.extraction.properties import extract_properties
from storeimport.models import BlockType, CandidateBlock
from storeimport.text import normalize_text

ACCEPT_SCORE = 0.5

_HEADER_HINT_RE = re.compile(r"(^|[\s_-])(site-?header|header|cabecalho|topo|masthead|navbar)([\s_-]|$)")
_FOOTER_HINT_RE = re.compile(r"(^|[\s_-])(site-?footer|footer|rodape)([\s_-]|$)")
_CART_RE = re.compile(r"cart|carrinho|sacola|minicart|bag|search|busca", re.IGNORECASE)
_LOGO_RE = re.compile(r"logo|brand|marca", re.IGNORECASE)
_COPYRIGHT_RE = re.compile(r"©|copyright|todos os direitos|all rights reserved|cnpj", re.IGNORECASE)
_SOCIAL_RE = re.compile(r"facebook|instagram|twitter|tiktok|youtube|whatsapp|pinterest", re.IGNORECASE)
_PAYMENT_RE = re.compile(r"visa|mastercard|amex|elo|pix|boleto|paypal", re.IGNORECASE)
_CONTENT_ANCESTORS = {"article", "section", "main", "aside"}


@dataclass(slots=True)
class LayoutResult:
    header: CandidateBlock | None = None
    footer: CandidateBlock | None = None
    header_element: Tag | None = None
    footer_element: Tag | None = None


def layout_signature(tag: Tag) -> str:
    """Stable fingerprint of a region's visible text, used to spot repetition."""

    payload = normalize_text(text_of(tag))[:2000]
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def _landmarks(soup: BeautifulSoup, role: str) -> list[tuple[Tag, float]]:
    tag_name, aria, hint_re = (
        ("header", "banner", _HEADER_HINT_RE) if role == "header" else ("footer", "contentinfo", _FOOTER_HINT_RE)
    )
    found: dict[int, tuple[Tag, float]] = {}
    for element in soup.find_all(tag_name):
        if element.find_parent(list(_CONTENT_ANCESTORS)) is None:
            found[id(element)] = (element, 0.45)
    for element in soup.find_all(attrs={"role": aria}):
        found.setdefault(id(element), (element, 0.45))
    for element in soup.find_all(["div", "section", "nav"]):
        if hint_re.search(hint_text(element)) and element.find_parent(tag_name) is None:
            found.setdefault(id(element), (element, 0.3))
    return list(found.values())


def collect_layout_signatures(markups: Iterable[str]) -> Counter[str]:
    """Count, across pages, how many pages contain each header/footer region."""

    counts: Counter[str] = Counter()
    for markup in markups:
        soup = clean_soup(parse_html(markup))
        seen = {
            layout_signature(element)
            for role in ("header", "footer")
            for element, _ in _landmarks(soup, role)
            if text_of(element)
        }
        counts.update(seen)
    return counts


class LayoutDetector:
    """Locate the structurally repeated top and bottom regions of a page."""

    def __init__(self, *, accept_score: float = ACCEPT_SCORE) -> None:
        self._accept_score = accept_score

    def detect(
        self,
        soup: BeautifulSoup,
        index: dict[int, int],
        *,
        repeated: Mapping[str, int] | None = None,
    ) -> LayoutResult:
        total = max(len(index), 1)
        repeated = repeated or {}

        header = self._best(soup, "header", index, total, repeated)
        footer = self._best(soup, "footer", index, total, repeated)
        if header is not None and footer is not None and header[0] is footer[0]:
            footer = None

        result = LayoutResult()
        if header is not None:
            element, score = header
            result.header = self._candidate(BlockType.HEADER, element, score, index)
            result.header_element = element
        if footer is not None:
            element, score = footer
            result.footer = self._candidate(BlockType.FOOTER, element, score, index)
            result.footer_element = element
        return result

    def _best(
        self,
        soup: BeautifulSoup,
        role: str,
        index: dict[int, int],
        total: int,
        repeated: Mapping[str, int],
    ) -> tuple[Tag, float] | None:
        scored: list[tuple[float, int, Tag]] = []
        for element, base in _landmarks(soup, role):
            if not text_of(element) and element.find("img") is None:
                continue
            score = base + self._content_score(element, role)
            start = index.get(id(element), 0)
            relative = start / total
            if (role == "header" and relative <= 0.25) or (role == "footer" and relative >= 0.5):
                score += 0.1
            if repeated.get(layout_signature(element), 0) >= 2:
                score += 0.2
            scored.append((min(score, 1.0), start, element))

        if not scored:
            return None
        # highest score, earliest header / latest footer on ties
        if role == "header":
            score, _, element = min(scored, key=lambda item: (-item[0], item[1]))
        else:
            score, _, element = min(scored, key=lambda item: (-item[0], -item[1]))
        if score < self._accept_score:
            return None
        return element, score

    def _content_score(self, element: Tag, role: str) -> float:
        hints = " ".join(hint_text(child) for child in element.find_all(True))
        links = links_of(element)
        if role == "header":
            score = 0.0
            if element.find("nav") is not None or len(links) >= 3:
                score += 0.15
            logo = element.find("img")
            if logo is not None and (_LOGO_RE.search(hints) or _LOGO_RE.search(str(logo.get("alt") or ""))):
                score += 0.1
            if element.find("input", attrs={"type": "search"}) is not None or _CART_RE.search(hints):
                score += 0.1
            return score

        text = text_of(element)
        score = 0.0
        if _COPYRIGHT_RE.search(text):
            score += 0.15
        if len(links) >= 3:
            score += 0.1
        if any(_SOCIAL_RE.search(link["url"]) for link in links):
            score += 0.1
        if _PAYMENT_RE.search(text) or _PAYMENT_RE.search(hints):
            score += 0.05
        return score

    def _candidate(
        self,
        block_type: BlockType,
        element: Tag,
        score: float,
        index: dict[int, int],
    ) -> CandidateBlock:
        return CandidateBlock(
            block_type=block_type,
            properties=extract_properties(block_type, element),
            confidence=score,
            span=span_of(element, index),
            markup=str(element),
            origin="layout",
        )

"""Run the layout, commerce and structure detectors over one page."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Mapping

from storeimport.extraction.commerce import CommerceDetector
from storeimport.extraction.dom import clean_soup, element_children, index_elements, parse_html
from storeimport.extraction.layout import LayoutDetector
from storeimport.extraction.properties import extract_properties
from storeimport.extraction.structure import UNTYPED_CONFIDENCE, StructureDetector
from storeimport.models import BlockType, CandidateBlock

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PageExtraction:
    header: CandidateBlock | None = None
    footer: CandidateBlock | None = None
    blocks: list[CandidateBlock] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)


def resolve_overlaps(candidates: list[CandidateBlock]) -> list[CandidateBlock]:
    """Keep the most confident of overlapping candidates, returned in document order.

    Equal confidence goes to the candidate that starts first in the document.
    """

    ranked = sorted(candidates, key=lambda candidate: (-candidate.confidence, candidate.span[0]))
    kept: list[CandidateBlock] = []
    for candidate in ranked:
        if any(candidate.overlaps(other) for other in kept):
            continue
        kept.append(candidate)
    return sorted(kept, key=lambda candidate: candidate.span[0])


class PageExtractor:
    def __init__(
        self,
        *,
        layout: LayoutDetector | None = None,
        commerce: CommerceDetector | None = None,
        structure: StructureDetector | None = None,
    ) -> None:
        self._layout = layout or LayoutDetector()
        self._commerce = commerce or CommerceDetector()
        self._structure = structure or StructureDetector()

    def extract_page(
        self,
        markup: str,
        *,
        repeated: Mapping[str, int] | None = None,
        layout_only: bool = False,
        with_layout: bool = True,
    ) -> PageExtraction:
        result = PageExtraction()
        soup = clean_soup(parse_html(markup), result.removed)
        index = index_elements(soup)
        if with_layout:
            layout = self._layout.detect(soup, index, repeated=repeated)
            result.header, result.footer = layout.header, layout.footer
            # layout regions are not content; spans stay valid against the original index
            for element in (layout.header_element, layout.footer_element):
                if element is not None and not element.decomposed:
                    element.decompose()
        if layout_only:
            return result

        commerce = self._commerce.detect(soup, index)
        claimed = [candidate.span for candidate in commerce]
        structural = self._structure.detect(soup, index, claimed)
        result.blocks = resolve_overlaps([*commerce, *structural])
        for position, candidate in enumerate(result.blocks):
            candidate.order = position
        logger.debug(
            "Extracted %s candidates (header=%s, footer=%s)",
            len(result.blocks),
            result.header is not None,
            result.footer is not None,
        )
        return result

    def extract_section(
        self,
        markup: str | None,
        *,
        block_type: BlockType | None = None,
        settings: Mapping[str, Any] | None = None,
        order: int = 0,
        removed: list[str] | None = None,
    ) -> CandidateBlock:
        """Turn one platform section into a single candidate.

        A known ``block_type`` is trusted; explicit ``settings`` override what
        the markup yields. Untyped sections keep a commerce or media reading
        only when it is the sole candidate found in the fragment. Overlays
        stripped from the fragment are described in ``removed``.
        """

        settings = dict(settings or {})
        markup = markup or ""
        if block_type is not None:
            properties = extract_properties(block_type, markup) if markup else {}
            properties.update({key: value for key, value in settings.items() if value is not None})
            return CandidateBlock(
                block_type=block_type,
                properties=properties,
                confidence=1.0,
                order=order,
                markup=markup,
                origin="adapter",
            )

        if markup:
            soup = clean_soup(parse_html(markup), removed)
            index = index_elements(soup)
            commerce = self._commerce.detect(soup, index)
            found = resolve_overlaps([*commerce, *self._structure.detect(soup, index, [c.span for c in commerce])])
            typed = [candidate for candidate in found if candidate.block_type is not None]
            if len(found) == 1 and typed:
                candidate = typed[0]
                candidate.properties.update(settings)
                candidate.order = order
                return candidate
            body = soup.body or soup
            if not element_children(body) and not body.get_text(strip=True):
                markup = ""

        return CandidateBlock(
            block_type=None,
            properties=settings,
            confidence=UNTYPED_CONFIDENCE,
            order=order,
            markup=markup,
            origin="adapter",
        )

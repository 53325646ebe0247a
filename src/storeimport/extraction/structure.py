"""Fallback segmentation of a page body into generic content sections."""

from __future__ import annotations

from typing import Sequence

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import Comment

from storeimport.extraction.dom import element_children, is_visible_content, span_of, text_of
from storeimport.extraction.properties import extract_properties, youtube_id
from storeimport.models import BlockType, CandidateBlock

UNTYPED_CONFIDENCE = 0.3
_MAX_DEPTH = 4

_FLOW_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6", "p", "ul", "ol", "dl", "blockquote", "table", "hr", "span", "strong", "em", "a", "br"}
_MEDIA_TAGS = {"img", "picture", "figure", "video"}


def _has_own_text(tag: Tag) -> bool:
    return any(
        isinstance(child, NavigableString) and not isinstance(child, Comment) and child.strip()
        for child in tag.children
    )


def _content_root(soup: BeautifulSoup) -> Tag:
    root: Tag = soup.find("main") or soup.body or soup
    for _ in range(3):
        children = element_children(root)
        if len(children) != 1 or _has_own_text(root) or children[0].name in _FLOW_TAGS | _MEDIA_TAGS:
            break
        root = children[0]
    return root


class StructureDetector:
    """Split the remaining content into sections when no specific pattern matched."""

    def detect(
        self,
        soup: BeautifulSoup,
        index: dict[int, int],
        claimed: Sequence[tuple[int, int]] = (),
    ) -> list[CandidateBlock]:
        """Segment the content root; regions inside ``claimed`` spans are left alone."""

        root = _content_root(soup)
        children = [child for child in element_children(root) if is_visible_content(child)]
        if not children:
            if root.name not in {"html", "[document]"} and is_visible_content(root):
                return [self._candidate([root], index)]
            return []
        return self._segment(children, index, claimed, depth=0)

    def _segment(
        self,
        children: list[Tag],
        index: dict[int, int],
        claimed: Sequence[tuple[int, int]],
        depth: int,
    ) -> list[CandidateBlock]:
        candidates: list[CandidateBlock] = []
        flow: list[Tag] = []

        def flush() -> None:
            if flow:
                candidates.append(self._candidate(list(flow), index))
                flow.clear()

        for child in children:
            span = span_of(child, index)
            if any(start <= span[0] and span[1] <= end for start, end in claimed):
                flush()
                continue
            wraps_claimed = any(span[0] <= start and end <= span[1] for start, end in claimed)
            if wraps_claimed:
                flush()
                if depth < _MAX_DEPTH:
                    inner = [element for element in element_children(child) if is_visible_content(element)]
                    candidates.extend(self._segment(inner, index, claimed, depth + 1))
                continue
            if child.name in _FLOW_TAGS:
                flow.append(child)
                continue
            flush()
            candidates.append(self._candidate([child], index))
        flush()
        return candidates

    def _candidate(self, elements: list[Tag], index: dict[int, int]) -> CandidateBlock:
        start = span_of(elements[0], index)[0]
        end = span_of(elements[-1], index)[1]
        markup = "".join(str(element) for element in elements)
        block_type, confidence = self._obvious_type(elements)
        properties = extract_properties(block_type, elements[0]) if block_type is not None else {}
        return CandidateBlock(
            block_type=block_type,
            properties=properties,
            confidence=confidence,
            span=(start, end),
            markup=markup,
            origin="structure",
        )

    def _obvious_type(self, elements: list[Tag]) -> tuple[BlockType | None, float]:
        if len(elements) != 1:
            return None, UNTYPED_CONFIDENCE
        element = elements[0]
        text = text_of(element)
        frames = [str(frame.get("src") or "") for frame in element.find_all("iframe")]
        if element.name == "iframe":
            frames.append(str(element.get("src") or ""))
        if any(youtube_id(src) for src in frames) and len(text) < 200:
            return BlockType.YOUTUBE_VIDEO, 0.85
        images = element.find_all("img") if element.name != "img" else [element]
        if len(images) == 1 and not text and element.find("iframe") is None:
            return BlockType.IMAGE, 0.8
        if len(images) >= 3 and len(text) < 40:
            return BlockType.IMAGE_GALLERY, 0.75
        return None, UNTYPED_CONFIDENCE

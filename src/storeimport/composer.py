"""Assemble normalized blocks of one source page into a ``Page``."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
from pathlib import PurePosixPath
import re
from typing import Any, Iterable, Mapping

from storeimport.errors import EmptyPage
from storeimport.extraction.properties import extract_properties
from storeimport.fingerprint import fingerprint_blocks, page_id
from storeimport.kits import SharedLayout
from storeimport.models import Block, BlockType, CandidateBlock, Issue, Page, PlatformId
from storeimport.normalize.normalizer import BlockNormalizer

logger = logging.getLogger(__name__)

STAGE = "composing"


@dataclass(slots=True)
class PageDraft:
    """Everything the composer needs about one page; ``blocks`` pairs each block with its source order."""

    source_id: str
    title: str
    slug: str
    blocks: list[tuple[int, Block]] = field(default_factory=list)
    headers: list[Block] = field(default_factory=list)
    footers: list[Block] = field(default_factory=list)
    header_ref: str | None = None
    footer_ref: str | None = None


_IMAGE_PROPS = ("image_url", "src", "logo_url", "icon_url")
_ABSOLUTE_RE = re.compile(r"^(?:https?:)?//|^data:", re.IGNORECASE)
_PLATFORM_REF_RE = re.compile(r"^(?:shopify://|wix:)", re.IGNORECASE)


def _basename(value: str) -> str:
    return PurePosixPath(value.split("#", 1)[0].split("?", 1)[0]).name.lower()


class AssetIndex:
    """Bundle asset URLs keyed by file name."""

    def __init__(self, urls: Iterable[str] = ()) -> None:
        self._by_name: dict[str, str] = {}
        for url in urls:
            name = _basename(url)
            if name:
                self._by_name.setdefault(name, url)

    def __len__(self) -> int:
        return len(self._by_name)

    def resolve(self, value: str) -> str | None:
        """Absolute URL for ``value``; None when a platform reference has no match.

        Absolute and data URLs are returned unchanged, as are relative paths
        with no matching asset.
        """

        if _ABSOLUTE_RE.match(value):
            return value
        found = self._by_name.get(_basename(value))
        if found is not None:
            return found
        return None if _PLATFORM_REF_RE.match(value) else value


def build_shared_blocks(
    layout: SharedLayout,
    normalizer: BlockNormalizer,
    *,
    platform: PlatformId = PlatformId.UNKNOWN,
) -> tuple[dict[str, Block], dict[str, list[Issue]]]:
    """Normalize each kit-level header/footer once so every page shares one block.

    Repair issues are keyed by reference so they can be reported on every
    page that uses the block.
    """

    blocks: dict[str, Block] = {}
    issues: dict[str, list[Issue]] = {}
    for ref, markup in sorted(layout.regions.items()):
        block_type = BlockType.FOOTER if ref.endswith(":footer") else BlockType.HEADER
        candidate = CandidateBlock(
            block_type=block_type,
            properties=extract_properties(block_type, markup),
            confidence=1.0,
            markup=markup,
            origin="kit",
        )
        block, block_issues = normalizer.normalize_one(candidate, source_id=ref, platform=platform, path="layout")
        blocks[ref] = block
        issues[ref] = block_issues
    return blocks, issues


_MERGEABLE = frozenset({BlockType.FAQ, BlockType.TESTIMONIALS})


def merge_adjacent(blocks: list[Block], issues: list[Issue]) -> list[Block]:
    """Fold neighbouring FAQ or Testimonials blocks into the first block of each run.

    Items keep their order; exact repeats are dropped. Blocks of these types
    that are not neighbours stay where they are.
    """

    merged: list[Block] = []
    for block in blocks:
        previous = merged[-1] if merged else None
        if previous is None or block.type not in _MERGEABLE or block.type is not previous.type:
            merged.append(block)
            continue
        items = list(previous.properties.get("items") or [])
        for item in block.properties.get("items") or []:
            if item not in items:
                items.append(item)
        properties = {**previous.properties, "items": items}
        if not properties.get("title") and block.properties.get("title"):
            properties["title"] = block.properties["title"]
        merged[-1] = replace(previous, properties=properties, children=previous.children + block.children)
        issues.append(
            Issue(
                code="blocks_merged",
                stage=STAGE,
                message=f"Merged {block.type.value} block {block.id} into {previous.id}",
                path=f"blocks[{len(merged) - 1}]",
            )
        )
    return merged


class PageComposer:
    """Turn a page draft into a ``Page`` with ordered content and attached layout."""

    def compose(
        self,
        draft: PageDraft,
        *,
        shared: Mapping[str, Block] | None = None,
        assets: AssetIndex | None = None,
    ) -> tuple[Page, list[Issue]]:
        shared = shared or {}
        assets = assets or AssetIndex()
        issues: list[Issue] = []
        headers = list(draft.headers)
        footers = list(draft.footers)
        content: list[Block] = []

        for _, block in sorted(draft.blocks, key=lambda item: item[0]):
            if block.type is BlockType.HEADER:
                headers.append(block)
            elif block.type is BlockType.FOOTER:
                footers.append(block)
            else:
                content.append(block)

        header = self._attach("header", draft.header_ref, headers, shared, draft.source_id, issues)
        footer = self._attach("footer", draft.footer_ref, footers, shared, draft.source_id, issues)

        if not content:
            raise EmptyPage(source_id=draft.source_id)

        content = merge_adjacent(content, issues)
        content = [self._with_assets(block, assets, f"blocks[{index}]", issues) for index, block in enumerate(content)]
        if header is not None:
            header = self._with_assets(header, assets, "header", issues)
        if footer is not None:
            footer = self._with_assets(footer, assets, "footer", issues)

        page = Page(
            id=page_id(draft.source_id),
            slug=draft.slug,
            title=draft.title,
            blocks=tuple(content),
            header=header,
            footer=footer,
            fingerprint=fingerprint_blocks(content, header=header, footer=footer),
        )
        return page, issues

    def _with_assets(self, block: Block, assets: AssetIndex, path: str, issues: list[Issue]) -> Block:
        properties = {
            name: self._resolve_value(name, value, assets, f"{path}.{name}", issues)
            for name, value in block.properties.items()
        }
        children = tuple(
            self._with_assets(child, assets, f"{path}.children[{index}]", issues)
            for index, child in enumerate(block.children)
        )
        if properties == block.properties and children == block.children:
            return block
        return replace(block, properties=properties, children=children)

    def _resolve_value(self, name: str, value: Any, assets: AssetIndex, path: str, issues: list[Issue]) -> Any:
        if isinstance(value, list):
            return [
                {
                    key: self._resolve_value(key, inner, assets, f"{path}[{index}].{key}", issues)
                    for key, inner in item.items()
                }
                if isinstance(item, dict)
                else item
                for index, item in enumerate(value)
            ]
        if name not in _IMAGE_PROPS or not isinstance(value, str) or not value:
            return value
        resolved = assets.resolve(value)
        if resolved is None:
            logger.warning("Unresolved asset reference %s at %s", value, path)
            issues.append(
                Issue(
                    code="unresolved_reference",
                    stage=STAGE,
                    message=f"Asset reference {value!r} has no matching bundle asset",
                    path=path,
                )
            )
            return value
        return resolved

    def _attach(
        self,
        role: str,
        ref: str | None,
        found: list[Block],
        shared: Mapping[str, Block],
        source_id: str,
        issues: list[Issue],
    ) -> Block | None:
        chosen: Block | None = None
        if ref is not None:
            chosen = shared.get(ref)
            if chosen is None:
                logger.warning("Unresolved shared %s reference %s on %s", role, ref, source_id)
                issues.append(
                    Issue(
                        code="unresolved_reference",
                        stage=STAGE,
                        message=f"Shared {role} reference {ref!r} does not resolve",
                        path=role,
                    )
                )

        candidates = found if chosen is None else [chosen, *found]
        if not candidates:
            return None
        for extra in candidates[1:]:
            issues.append(
                Issue(
                    code="duplicate_layout",
                    stage=STAGE,
                    message=f"Dropped additional {role} block {extra.id}",
                    path=role,
                )
            )
        return candidates[0]

"""Per-platform property clean-up run before the generic schema pass."""

from __future__ import annotations

from dataclasses import replace
import re
from typing import Any, Mapping, Protocol

from storeimport.models import BlockType, CandidateBlock, PlatformId

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")
_SHORTCODE_RE = re.compile(r"\[/?[A-Za-z_][\w-]*(?:\s[^\[\]]*)?/?\]")


class PlatformStage(Protocol):
    """Platform-specific rewrite of one candidate's properties."""

    platform: PlatformId

    def apply(self, candidate: CandidateBlock) -> CandidateBlock:
        """Return a candidate whose properties use canonical names and shapes."""


def _snake(name: str) -> str:
    return _CAMEL_RE.sub(r"_\1", name).replace("-", "_").lower()


def _map_strings(value: Any, transform) -> Any:
    if isinstance(value, str):
        return transform(value)
    if isinstance(value, list):
        return [_map_strings(item, transform) for item in value]
    if isinstance(value, dict):
        return {key: _map_strings(item, transform) for key, item in value.items()}
    return value


class ShopifyStage:
    """Theme settings use snake_case names that differ from the block schema."""

    platform = PlatformId.SHOPIFY

    _RENAMES: dict[str, str] = {
        "youtube_url": "youtubeUrl",
        "video_url": "youtubeUrl",
        "heading": "title",
        "button_label": "button_text",
        "button_link": "button_url",
        "link": "url",
        "label": "text",
    }
    _BY_TYPE: dict[BlockType, dict[str, str]] = {
        BlockType.BANNER: {"image": "image_url", "text": "subtitle", "subheading": "subtitle"},
        BlockType.IMAGE: {"image": "src", "image_url": "src", "url": "link_url"},
        BlockType.RICH_TEXT: {"text": "content"},
        BlockType.NEWSLETTER: {"button_label": "button_text"},
        BlockType.PRODUCT_GRID: {"products_to_show": "columns", "columns_desktop": "columns"},
    }
    _NOISE = ("share", "compartilhar", "watch on youtube", "assistir no youtube")
    _NOISE_RE = re.compile(r"\s*(?:share|compartilhar|watch on youtube|assistir no youtube)\s*$", re.IGNORECASE)

    def apply(self, candidate: CandidateBlock) -> CandidateBlock:
        per_type = self._BY_TYPE.get(candidate.block_type, {}) if candidate.block_type else {}
        properties: dict[str, Any] = {}
        for raw_name, value in candidate.properties.items():
            name = raw_name if raw_name == "youtubeUrl" else _snake(raw_name)
            # a type-specific name wins over the general rename
            name = per_type.get(name) or self._RENAMES.get(name, name)
            if candidate.block_type is BlockType.NEWSLETTER and raw_name == "label":
                name = "button_text"
            if name in properties and properties[name] not in (None, ""):
                continue
            properties[name] = _map_strings(value, self._strip_noise)
        return replace(candidate, properties=properties)

    def _strip_noise(self, text: str) -> str:
        if text.strip().casefold() in self._NOISE:
            return ""
        return self._NOISE_RE.sub("", text)


class WooCommerceStage:
    """WordPress content carries shortcodes and split regular/sale prices."""

    platform = PlatformId.WOOCOMMERCE

    def apply(self, candidate: CandidateBlock) -> CandidateBlock:
        properties = _map_strings(dict(candidate.properties), self._strip_shortcodes)
        properties = self._prices(properties)
        if isinstance(properties.get("products"), list):
            properties["products"] = [
                self._prices(item) if isinstance(item, dict) else item for item in properties["products"]
            ]
        markup = self._strip_shortcodes(candidate.markup) if candidate.markup else candidate.markup
        return replace(candidate, properties=properties, markup=markup)

    @staticmethod
    def _strip_shortcodes(text: str) -> str:
        return _SHORTCODE_RE.sub("", text)

    @staticmethod
    def _prices(values: Mapping[str, Any]) -> dict[str, Any]:
        result = dict(values)
        regular = result.pop("regular_price", None)
        sale = result.pop("sale_price", None)
        chosen = sale if sale not in (None, "") else regular
        if chosen not in (None, "") and result.get("price") in (None, ""):
            result["price"] = chosen
        return result


def default_stages() -> dict[PlatformId, PlatformStage]:
    return {stage.platform: stage for stage in (ShopifyStage(), WooCommerceStage())}

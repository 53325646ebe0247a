"""Canonical block-type registry: the property contract of every block type."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping

from storeimport.models import BlockType

PropKind = Literal["str", "html", "int", "float", "price", "bool", "list"]


@dataclass(frozen=True, slots=True)
class PropSpec:
    name: str
    kind: PropKind = "str"
    required: bool = False
    default: Any = None
    fields: tuple["PropSpec", ...] = ()

    def default_value(self) -> Any:
        if isinstance(self.default, (list, dict)):
            return type(self.default)(self.default)
        return self.default


def _req(name: str, kind: PropKind = "str", default: Any = "", fields: tuple[PropSpec, ...] = ()) -> PropSpec:
    return PropSpec(name=name, kind=kind, required=True, default=default, fields=fields)


def _opt(name: str, kind: PropKind = "str", default: Any = None, fields: tuple[PropSpec, ...] = ()) -> PropSpec:
    return PropSpec(name=name, kind=kind, default=default, fields=fields)


_LINK = (_req("label"), _req("url"))
_PRODUCT = (
    _req("name"),
    _opt("price", "price"),
    _opt("currency"),
    _opt("image_url"),
    _opt("url"),
)

BLOCK_REGISTRY: dict[BlockType, tuple[PropSpec, ...]] = {
    BlockType.HEADER: (
        _opt("logo_url"),
        _req("menu_items", "list", [], _LINK),
        _opt("show_search", "bool", False),
        _opt("show_cart", "bool", True),
    ),
    BlockType.FOOTER: (
        _req("links", "list", [], _LINK),
        _opt("social_links", "list", [], _LINK),
        _opt("copyright", "str", ""),
    ),
    BlockType.BANNER: (
        _req("title"),
        _opt("subtitle"),
        _opt("image_url"),
        _opt("button_text"),
        _opt("button_url"),
    ),
    BlockType.RICH_TEXT: (_req("content", "html"),),
    BlockType.PRODUCT_GRID: (
        _opt("title", "str", ""),
        _req("products", "list", [], _PRODUCT),
        _opt("columns", "int", 4),
    ),
    BlockType.PRODUCT_CARD: (*_PRODUCT, _opt("description")),
    BlockType.CALL_TO_ACTION: (
        _req("text"),
        _opt("url"),
        _opt("price", "price"),
        _opt("currency"),
    ),
    BlockType.IMAGE: (_req("src"), _opt("alt", "str", ""), _opt("link_url")),
    BlockType.IMAGE_GALLERY: (
        _opt("title"),
        _req("images", "list", [], (_req("src"), _opt("alt", "str", ""))),
    ),
    BlockType.YOUTUBE_VIDEO: (_req("youtubeUrl"), _opt("title")),
    BlockType.BUTTON: (_req("text"), _opt("url")),
    BlockType.TESTIMONIALS: (
        _opt("title"),
        _req("items", "list", [], (_req("quote"), _opt("author"), _opt("rating", "int"))),
    ),
    BlockType.FAQ: (
        _opt("title"),
        _req("items", "list", [], (_req("question"), _opt("answer", "str", ""))),
    ),
    BlockType.NEWSLETTER: (_req("title"), _opt("placeholder", "str", ""), _opt("button_text")),
    BlockType.FEATURE_LIST: (
        _opt("title"),
        _req("items", "list", [], (_req("title"), _opt("description"), _opt("icon_url"))),
    ),
    BlockType.CATEGORY_LIST: (
        _opt("title"),
        _req("categories", "list", [], (_req("name"), _opt("url"), _opt("image_url"))),
    ),
    BlockType.SECTION: (_opt("title"),),
    BlockType.RAW_HTML: (_req("html", "html"),),
}


def specs_for(block_type: BlockType, registry: Mapping[BlockType, tuple[PropSpec, ...]] | None = None) -> tuple[PropSpec, ...]:
    return (registry or BLOCK_REGISTRY)[block_type]


def is_known(block_type: BlockType | None, registry: Mapping[BlockType, tuple[PropSpec, ...]] | None = None) -> bool:
    return block_type is not None and block_type in (registry or BLOCK_REGISTRY)


def satisfies_contract(block_type: BlockType, properties: Mapping[str, Any]) -> bool:
    """True when every required property is present with a value of its kind."""

    for spec in specs_for(block_type):
        if spec.name not in properties:
            return False
        if spec.required and not _kind_matches(spec, properties[spec.name]):
            return False
    return set(properties) <= {spec.name for spec in specs_for(block_type)}


def _kind_matches(spec: PropSpec, value: Any) -> bool:
    if spec.kind in ("str", "html"):
        return isinstance(value, str)
    if spec.kind == "int":
        return isinstance(value, int) and not isinstance(value, bool)
    if spec.kind in ("float", "price"):
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if spec.kind == "bool":
        return isinstance(value, bool)
    if spec.kind == "list":
        return isinstance(value, list) and all(
            not spec.fields or (isinstance(item, dict) and all(
                field.name in item and (not field.required or _kind_matches(field, item[field.name]))
                for field in spec.fields
            ))
            for item in value
        )
    return False

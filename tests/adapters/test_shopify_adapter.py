from __future__ import annotations

import json

from storeimport.adapters import ShopifyAdapter
from storeimport.adapters.shopify import section_type
from storeimport.models import BlockType, DetectionResult, EntityKind, PlatformId, SourceBundle, SourceDocument


_DETECTION = DetectionResult(platform=PlatformId.SHOPIFY, confidence=1.0)


def _template(name: str, payload: object) -> SourceDocument:
    return SourceDocument(path=f"templates/{name}.json", content=json.dumps(payload), media_type="application/json")


def test_section_type_maps_theme_names_and_prefixes() -> None:
    assert section_type("image-banner") is BlockType.BANNER
    assert section_type("featured_collection") is BlockType.PRODUCT_GRID
    assert section_type("slideshow-custom") is BlockType.BANNER
    assert section_type("custom-liquid") is None


def test_template_sections_follow_order_and_skip_disabled() -> None:
    payload = {
        "sections": {
            "faq": {
                "type": "collapsible-content",
                "settings": {"heading": "Dúvidas"},
                "blocks": {
                    "q1": {"type": "collapsible_row", "settings": {"heading": "Prazo?", "row_content": "7 dias"}},
                },
                "block_order": ["q1"],
            },
            "hero": {"type": "image-banner", "settings": {"image": "shopify://shop_images/hero.jpg"}},
            "old": {"type": "rich-text", "disabled": True},
            "custom": {"type": "custom-liquid", "settings": {"custom_liquid": "<div>Liquid</div>"}},
        },
        "order": ["hero", "faq", "old", "custom"],
    }
    bundle = SourceBundle(bundle_id="theme", documents=(_template("index", payload),))

    entities = ShopifyAdapter().extract(bundle)

    page, *sections = entities
    assert page.kind is EntityKind.PAGE
    assert page.attributes["slug"] == "home"
    assert page.attributes["sectioned"] is True
    assert page.attributes["detect_layout"] is False
    assert [section.source_id for section in sections] == [
        "templates/index.json#hero",
        "templates/index.json#faq",
        "templates/index.json#custom",
    ]
    assert [section.attributes["order"] for section in sections] == [0, 1, 2]
    faq = sections[1]
    assert faq.attributes["block_type"] is BlockType.FAQ
    assert faq.attributes["settings"]["items"] == [{"question": "Prazo?", "answer": "7 dias"}]
    custom = sections[2]
    assert custom.attributes["block_type"] is None
    assert custom.raw_markup == "<div>Liquid</div>"
    assert "custom_liquid" not in custom.attributes["settings"]


def test_section_blocks_become_children_for_generic_sections() -> None:
    payload = {
        "sections": {
            "story": {
                "type": "rich-text",
                "blocks": {
                    "h": {"type": "heading", "settings": {"heading": "Nossa história"}},
                    "b": {"type": "button", "settings": {"label": "Saiba mais", "link": "/pages/sobre"}},
                },
                "block_order": ["h", "b"],
            }
        },
        "order": ["story"],
    }
    bundle = SourceBundle(bundle_id="theme", documents=(_template("page.about", payload),))

    page, section = ShopifyAdapter().extract(bundle)

    assert page.attributes["slug"] == "page-about"
    assert section.attributes["block_type"] is BlockType.SECTION
    children = section.attributes["children"]
    assert children[0] == {
        "block_type": BlockType.RICH_TEXT,
        "settings": {"content": "<h2>Nossa história</h2>"},
        "platform_type": "heading",
    }
    assert children[1]["block_type"] is BlockType.BUTTON


def test_broken_template_is_isolated_as_failed_page() -> None:
    bundle = SourceBundle(
        bundle_id="theme",
        documents=(
            SourceDocument(path="templates/broken.json", content="{not json", media_type="application/json"),
            _template("index", {"sections": {}, "order": []}),
        ),
        asset_urls=("https://cdn.shopify.com/s/files/1/hero.jpg", "https://example.com/x.png"),
    )

    entities = ShopifyAdapter().extract(bundle)

    broken = entities[0]
    assert "error" in broken.attributes
    assert "templates/broken.json" in broken.attributes["error"]
    assert entities[1].attributes["slug"] == "home"
    assets = [entity for entity in entities if entity.kind is EntityKind.ASSET]
    assert [asset.attributes["platform_host"] for asset in assets] == [True, False]


def test_rendered_page_splits_on_section_wrappers() -> None:
    html = (
        "<body>"
        '<div id="shopify-section-header"><header><nav><a href="/">Início</a></nav></header></div>'
        '<div id="shopify-section-template--1__image_banner"><h1>Verão</h1></div>'
        '<div id="shopify-section-template--1__rich_text"><p>Texto</p></div>'
        "</body>"
    )
    bundle = SourceBundle(bundle_id="site", documents=(SourceDocument(path="index.html", content=html),))
    adapter = ShopifyAdapter()

    assert adapter.supports(bundle, _DETECTION)
    page, header, banner, text = adapter.extract(bundle)

    assert page.attributes["detect_layout"] is False
    assert header.attributes["block_type"] is BlockType.HEADER
    assert banner.attributes["block_type"] is BlockType.BANNER
    assert banner.attributes["platform_type"] == "image_banner"
    assert text.attributes["block_type"] is None


def test_plain_html_bundle_is_not_supported() -> None:
    bundle = SourceBundle(bundle_id="site", documents=(SourceDocument(path="index.html", content="<p>x</p>"),))

    assert not ShopifyAdapter().supports(bundle, _DETECTION)

from __future__ import annotations

from storeimport.adapters import WooCommerceAdapter
from storeimport.models import BlockType, DetectionResult, EntityKind, PlatformId, SourceBundle, SourceDocument


_WXR = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
  xmlns:content="http://purl.org/rss/1.0/modules/content/"
  xmlns:wp="http://wordpress.org/export/1.2/">
<channel>
  <item>
    <title>Sobre nós</title>
    <wp:post_id>10</wp:post_id>
    <wp:post_name>sobre-nos</wp:post_name>
    <wp:post_type>page</wp:post_type>
    <wp:status>publish</wp:status>
    <content:encoded><![CDATA[<p>Somos uma loja [vc_row]independente[/vc_row].</p>]]></content:encoded>
  </item>
  <item>
    <title>Caneca Azul</title>
    <link>https://loja.example/produto/caneca-azul</link>
    <wp:post_id>11</wp:post_id>
    <wp:post_name>caneca-azul</wp:post_name>
    <wp:post_type>product</wp:post_type>
    <wp:status>publish</wp:status>
    <content:encoded><![CDATA[<p>Cerâmica, 300 ml.</p>]]></content:encoded>
    <wp:postmeta><wp:meta_key>_regular_price</wp:meta_key><wp:meta_value>39.90</wp:meta_value></wp:postmeta>
    <wp:postmeta><wp:meta_key>_sale_price</wp:meta_key><wp:meta_value>29.90</wp:meta_value></wp:postmeta>
  </item>
  <item>
    <title>hero.jpg</title>
    <wp:post_id>12</wp:post_id>
    <wp:post_type>attachment</wp:post_type>
    <wp:status>inherit</wp:status>
  </item>
  <item>
    <title>Rascunho</title>
    <wp:post_id>13</wp:post_id>
    <wp:post_type>page</wp:post_type>
    <wp:status>draft</wp:status>
  </item>
</channel>
</rss>
"""


def _export(content: str = _WXR) -> SourceBundle:
    return SourceBundle(
        bundle_id="wp",
        documents=(SourceDocument(path="export.xml", content=content, media_type="application/xml"),),
        asset_urls=("https://loja.example/wp-content/uploads/2024/hero.jpg",),
    )


def test_wxr_pages_and_products_become_entities() -> None:
    adapter = WooCommerceAdapter()
    bundle = _export()

    assert adapter.supports(bundle, DetectionResult(platform=PlatformId.WOOCOMMERCE, confidence=1.0))
    entities = adapter.extract(bundle)

    pages = [entity for entity in entities if entity.kind is EntityKind.PAGE]
    assert [page.source_id for page in pages] == ["export.xml#10", "export.xml#11", "export.xml#13"]
    about = pages[0]
    assert about.attributes["title"] == "Sobre nós"
    assert about.attributes["slug"] == "sobre-nos"
    assert about.attributes["detect_layout"] is False
    assert about.raw_markup.startswith("<main><p>Somos")

    sections = [entity for entity in entities if entity.kind is EntityKind.SECTION]
    product = sections[0]
    assert product.attributes["page"] == "export.xml#11"
    assert product.attributes["block_type"] is BlockType.PRODUCT_CARD
    assert product.attributes["settings"]["regular_price"] == "39.90"
    assert product.attributes["settings"]["sale_price"] == "29.90"
    assert product.attributes["settings"]["url"] == "https://loja.example/produto/caneca-azul"
    assert sections[1].raw_markup == "<div><p>Cerâmica, 300 ml.</p></div>"

    assets = [entity for entity in entities if entity.kind is EntityKind.ASSET]
    assert assets[0].attributes["platform_host"] is True


def test_page_without_body_is_isolated_as_failure() -> None:
    entities = WooCommerceAdapter().extract(_export())

    draft = [entity for entity in entities if entity.source_id == "export.xml#13"][0]
    assert "content:encoded" in draft.attributes["error"]


def test_malformed_export_yields_single_failed_page() -> None:
    entities = WooCommerceAdapter().extract(_export("<rss xmlns:wp='http://wordpress.org/export/1.2/'><channel>"))

    pages = [entity for entity in entities if entity.kind is EntityKind.PAGE]
    assert len(pages) == 1
    assert "error" in pages[0].attributes


def test_rendered_entry_content_is_split_by_wordpress_blocks() -> None:
    html = (
        "<html><body><header>Loja</header><div class='entry-content'>"
        "<div class='wp-block-cover'><h2>Outono</h2></div>"
        "<figure class='wp-block-embed is-provider-youtube wp-block-embed-youtube'>"
        "<iframe src='https://www.youtube.com/embed/abc123def45'></iframe></figure>"
        "<p>Texto livre</p>"
        "</div></body></html>"
    )
    bundle = SourceBundle(bundle_id="wp", documents=(SourceDocument(path="sobre/index.html", content=html),))

    page, *sections = WooCommerceAdapter().extract(bundle)

    assert page.attributes["sectioned"] is True
    assert page.attributes["slug"] == "sobre"
    assert [section.attributes["block_type"] for section in sections] == [
        BlockType.BANNER,
        BlockType.YOUTUBE_VIDEO,
        None,
    ]

from __future__ import annotations

from storeimport.adapters import PROFILES, ProfiledAdapter, build_default_adapters, select_adapter
from storeimport.adapters import GenericAdapter
from storeimport.models import BlockType, DetectionResult, EntityKind, PlatformId, SourceBundle, SourceDocument


_NUVEMSHOP_PAGE = """
<html><body>
<header class="js-head-main"><a href="/">Início</a><a href="/produtos">Produtos</a></header>
<section data-store="home-slider"><div class="slide"><img src="/s1.jpg"><h2>Liquidação</h2></div></section>
<section data-store="home-products-featured">
  <div data-store="home-products-featured-item"><h3>Caneca</h3><span>R$ 29,90</span></div>
</section>
<section data-store="home-empty"></section>
<footer class="js-footer"><p>© 2024 Loja</p></footer>
</body></html>
"""


def _bundle(content: str) -> SourceBundle:
    return SourceBundle(
        bundle_id="ns",
        documents=(SourceDocument(path="index.html", content=content),),
        asset_urls=("https://d26lpennugtm8s.cloudfront.net/stores/1/logo.png", "/local.png"),
    )


def test_profiled_sections_are_typed_and_layout_is_attached() -> None:
    adapter = ProfiledAdapter(PROFILES[PlatformId.NUVEMSHOP])

    entities = adapter.extract(_bundle(_NUVEMSHOP_PAGE))

    page = entities[0]
    assert page.kind is EntityKind.PAGE
    assert page.attributes["slug"] == "home"
    assert page.attributes["detect_layout"] is False
    sections = [entity for entity in entities if entity.kind is EntityKind.SECTION]
    assert [(section.attributes["order"], section.attributes["block_type"]) for section in sections] == [
        (-1, BlockType.HEADER),
        (2, BlockType.FOOTER),
        (0, BlockType.BANNER),
        (1, BlockType.PRODUCT_GRID),
    ]
    assets = [entity for entity in entities if entity.kind is EntityKind.ASSET]
    assert [asset.attributes["platform_host"] for asset in assets] == [True, False]


def test_page_without_profile_sections_is_left_whole() -> None:
    adapter = ProfiledAdapter(PROFILES[PlatformId.TRAY])

    entities = adapter.extract(_bundle("<main><p>Página simples</p></main>"))

    assert entities[0].attributes["sectioned"] is False
    assert entities[0].raw_markup == "<main><p>Página simples</p></main>"


def test_select_adapter_falls_back_to_generic() -> None:
    adapters = build_default_adapters()
    bundle = _bundle("<p>x</p>")

    assert set(PROFILES) <= set(adapters)
    nuvemshop = select_adapter(adapters, bundle, DetectionResult(platform=PlatformId.NUVEMSHOP, confidence=0.8))
    shopify = select_adapter(adapters, bundle, DetectionResult(platform=PlatformId.SHOPIFY, confidence=0.8))

    assert nuvemshop.platform is PlatformId.NUVEMSHOP
    assert isinstance(shopify, GenericAdapter)

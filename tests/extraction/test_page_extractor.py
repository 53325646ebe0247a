from __future__ import annotations

from storeimport.extraction import PageExtractor, collect_layout_signatures, resolve_overlaps
from storeimport.extraction.dom import clean_soup, parse_html
from storeimport.models import BlockType, CandidateBlock


_PAGE = """
<html><body>
<div class="cookie-banner">Aceite os cookies</div>
<header class="site-header">
  <img class="logo" src="/logo.svg" alt="Loja">
  <nav><a href="/">Home</a><a href="/shop">Shop</a><a href="/blog">Blog</a></nav>
  <a class="cart" href="/cart">Carrinho</a>
</header>
<main>
  <section class="hero" style="background-image: url('/img/hero.jpg')">
    <h1>Nova coleção</h1><p>Peças leves para o verão</p><a class="btn" href="/colecao">Ver agora</a>
  </section>
  <ul class="product-grid">
    <li><img src="/a.jpg"><h3>Vestido</h3><span>R$ 199,90</span></li>
    <li><img src="/b.jpg"><h3>Saia</h3><span>R$ 89,90</span></li>
  </ul>
  <iframe src="https://www.youtube.com/embed/dQw4w9WgXcQ"></iframe>
</main>
<footer><p>© 2024 Loja. CNPJ 00.000.000/0001-00</p><a href="https://facebook.com/loja">Facebook</a></footer>
<script>track()</script>
</body></html>
"""


def test_extract_page_finds_layout_commerce_and_media_in_document_order() -> None:
    result = PageExtractor().extract_page(_PAGE)

    assert result.header is not None
    assert result.header.block_type is BlockType.HEADER
    assert result.header.confidence >= 0.5
    assert result.header.properties["logo_url"] == "/logo.svg"
    assert result.header.properties["show_cart"] is True
    assert result.footer is not None
    assert result.footer.properties["social_links"] == [{"label": "Facebook", "url": "https://facebook.com/loja"}]

    types = [candidate.block_type for candidate in result.blocks]
    assert BlockType.PRODUCT_GRID in types
    assert types[-1] is BlockType.YOUTUBE_VIDEO
    assert [candidate.order for candidate in result.blocks] == list(range(len(result.blocks)))
    spans = [candidate.span[0] for candidate in result.blocks]
    assert spans == sorted(spans)
    grid = result.blocks[types.index(BlockType.PRODUCT_GRID)]
    assert [product["name"] for product in grid.properties["products"]] == ["Vestido", "Saia"]
    assert all("cookie" not in candidate.markup for candidate in result.blocks)


def test_without_layout_detection_header_markup_stays_content() -> None:
    markup = "<main><header><h2>Nossa história</h2></header><p>Começamos em 2010.</p></main>"

    result = PageExtractor().extract_page(markup, with_layout=False)

    assert result.header is None
    assert any("Nossa história" in candidate.markup for candidate in result.blocks)


def test_repeated_regions_raise_layout_confidence() -> None:
    header = "<div class='topo'><a href='/'>Início</a><a href='/a'>A</a><a href='/b'>B</a></div>"
    notice = "<div class='aviso'><span>Frete grátis</span></div>"
    pages = [f"<body>{notice}{header}<main><p>Página {index}</p></main></body>" for index in range(3)]
    repeated = collect_layout_signatures(pages)

    alone = PageExtractor().extract_page(pages[0])
    shared = PageExtractor().extract_page(pages[0], repeated=repeated)

    assert alone.header is None
    assert shared.header is not None
    assert shared.header.confidence >= 0.5


def test_resolve_overlaps_prefers_confidence_then_document_order() -> None:
    wide = CandidateBlock(block_type=BlockType.SECTION, confidence=0.4, span=(0, 10))
    grid = CandidateBlock(block_type=BlockType.PRODUCT_GRID, confidence=0.9, span=(2, 6))
    first = CandidateBlock(block_type=None, confidence=0.3, span=(12, 14))
    second = CandidateBlock(block_type=None, confidence=0.3, span=(13, 15))

    kept = resolve_overlaps([wide, second, grid, first])

    assert kept == [grid, first]


def test_extract_section_trusts_adapter_type_and_settings() -> None:
    candidate = PageExtractor().extract_section(
        "<section><h2>Old title</h2><img src='/x.jpg'></section>",
        block_type=BlockType.BANNER,
        settings={"title": "New title", "subtitle": None},
        order=3,
    )

    assert candidate.block_type is BlockType.BANNER
    assert candidate.confidence == 1.0
    assert candidate.order == 3
    assert candidate.properties["title"] == "New title"
    assert candidate.properties["image_url"] == "/x.jpg"


def test_extract_section_without_type_keeps_single_typed_reading() -> None:
    candidate = PageExtractor().extract_section(
        "<div><iframe src='https://youtu.be/dQw4w9WgXcQ'></iframe></div>",
        order=1,
    )

    assert candidate.block_type is BlockType.YOUTUBE_VIDEO
    assert candidate.properties["youtubeUrl"] == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
    assert candidate.order == 1


def test_extract_section_without_type_or_signal_is_unknown() -> None:
    candidate = PageExtractor().extract_section("<div><p>Texto livre</p><p>Mais texto</p></div>", settings={"x": 1})

    assert candidate.block_type is None
    assert candidate.properties == {"x": 1}
    assert candidate.confidence < 0.5


def test_clean_soup_strips_scripts_and_consent_overlays() -> None:
    soup = clean_soup(parse_html("<body><div id='lgpd-popup'>Aceito</div><script>x()</script><p>ok</p></body>"))

    assert soup.find("script") is None
    assert "Aceito" not in soup.get_text()
    assert soup.find("p").get_text() == "ok"


def test_only_real_overlays_are_stripped_and_they_are_reported() -> None:
    markup = """
    <body>
      <section class="featured-products js-quickview-modal">
        <div class="card"><img src="/a.jpg"><h3>Vestido</h3><span>R$ 199,90</span></div>
        <div class="card"><img src="/b.jpg"><h3>Saia</h3><span>R$ 89,90</span></div>
      </section>
      <div class="newsletter-popup" role="dialog"><p>Ganhe 10% de desconto</p></div>
      <div class="about-modal"><p>Somos uma loja de família.</p></div>
    </body>
    """

    result = PageExtractor().extract_page(markup, with_layout=False)

    assert BlockType.PRODUCT_GRID in [candidate.block_type for candidate in result.blocks]
    assert any("Somos uma loja" in candidate.markup for candidate in result.blocks)
    assert len(result.removed) == 1
    assert "newsletter-popup" in result.removed[0]

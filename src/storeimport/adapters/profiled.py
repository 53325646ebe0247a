"""Adapters for HTML-exported platforms described by a section profile.

These platforms ship rendered theme pages whose sections carry
platform-specific classes or data attributes. A ``PlatformProfile`` names
the selectors and class hints; ``ProfiledAdapter`` does the rest.
"""

from __future__ import annotations

from dataclasses import dataclass
import re

from bs4 import Tag

from storeimport.adapters.base import asset_entities, isolated, page_entity, section_entity
from storeimport.extraction.dom import hint_text, is_visible_content, parse_html
from storeimport.models import BlockType, DetectionResult, PlatformId, RawEntity, SourceBundle, SourceDocument

_COMMON_HINTS: tuple[tuple[str, BlockType], ...] = (
    (r"newsletter", BlockType.NEWSLETTER),
    (r"video|youtube", BlockType.YOUTUBE_VIDEO),
    (r"testimonial|depoimento|review", BlockType.TESTIMONIALS),
    (r"faq|perguntas", BlockType.FAQ),
    (r"categor|departament", BlockType.CATEGORY_LIST),
    (r"instagram|instafeed|gallery|galeria", BlockType.IMAGE_GALLERY),
    (r"slider|slideshow|full-?banner|hero|carousel", BlockType.BANNER),
)


@dataclass(frozen=True, slots=True)
class PlatformProfile:
    platform: PlatformId
    section_selector: str
    header_selector: str = "header"
    footer_selector: str = "footer"
    asset_host: str = r"^$"
    type_hints: tuple[tuple[str, BlockType], ...] = ()

    def block_type_for(self, section: Tag) -> BlockType | None:
        hints = " ".join([hint_text(section), str(section.get("data-store") or ""), str(section.get("data-testid") or "")])
        for pattern, block_type in (*self.type_hints, *_COMMON_HINTS):
            if re.search(pattern, hints, re.IGNORECASE):
                return block_type
        return None


PROFILES: dict[PlatformId, PlatformProfile] = {
    PlatformId.NUVEMSHOP: PlatformProfile(
        platform=PlatformId.NUVEMSHOP,
        section_selector="[data-store^='home-'], section.section-home",
        header_selector="header.js-head-main, header",
        footer_selector="footer.js-footer, footer",
        asset_host=r"d26lpennugtm8s\.cloudfront\.net|mitiendanube\.com",
        type_hints=(
            (r"home-products|featured|js-products", BlockType.PRODUCT_GRID),
            (r"institutional|informative|benefit", BlockType.FEATURE_LIST),
        ),
    ),
    PlatformId.TRAY: PlatformProfile(
        platform=PlatformId.TRAY,
        section_selector="[data-tray-section], .section-showcase, .banner-home, .vitrine",
        header_selector="header, .header",
        footer_selector="footer, .footer",
        asset_host=r"tcdn\.com\.br|cdn\.tray\.com\.br",
        type_hints=((r"showcase|vitrine", BlockType.PRODUCT_GRID), (r"banner", BlockType.BANNER)),
    ),
    PlatformId.LOJA_INTEGRADA: PlatformProfile(
        platform=PlatformId.LOJA_INTEGRADA,
        section_selector=".secao-banners, .vitrine, .secao-newsletter, .secao-principal > .conteudo > div",
        header_selector="#cabecalho, .cabecalho, header",
        footer_selector="#rodape, .rodape, footer",
        asset_host=r"cdn\.awsli\.com\.br",
        type_hints=((r"vitrine|listagem", BlockType.PRODUCT_GRID), (r"banner", BlockType.BANNER)),
    ),
    PlatformId.YAMPI: PlatformProfile(
        platform=PlatformId.YAMPI,
        section_selector="[data-section-id], .yampi-section",
        asset_host=r"yampi\.com\.br|yampi\.me",
        type_hints=((r"products|showcase|shelf", BlockType.PRODUCT_GRID), (r"banner", BlockType.BANNER)),
    ),
    PlatformId.BAGY: PlatformProfile(
        platform=PlatformId.BAGY,
        section_selector="[data-bagy-section], .bagy-section",
        asset_host=r"cdn\.bagy|bagy\.com\.br",
        type_hints=((r"products|vitrine|showcase", BlockType.PRODUCT_GRID), (r"banner", BlockType.BANNER)),
    ),
    PlatformId.WIX: PlatformProfile(
        platform=PlatformId.WIX,
        section_selector="section.wixui-section, section[data-testid='section'], section[data-testid='strip']",
        header_selector="header#SITE_HEADER, header",
        footer_selector="footer#SITE_FOOTER, footer",
        asset_host=r"static\.wixstatic\.com",
        type_hints=((r"product-gallery|wix-stores|grid", BlockType.PRODUCT_GRID),),
    ),
    PlatformId.VTEX: PlatformProfile(
        platform=PlatformId.VTEX,
        section_selector="[data-vtex-section], .vtex-flex-layout-0-x-flexRow, .vtex-store-components-3-x-container",
        header_selector=".vtex-store-header-2-x-headerStickyRow, header",
        footer_selector=".vtex-store-footer-2-x-footerLayout, footer",
        asset_host=r"vtexassets\.com|vteximg\.com\.br",
        type_hints=((r"shelf|product-summary", BlockType.PRODUCT_GRID), (r"slider-layout|infocard", BlockType.BANNER)),
    ),
    PlatformId.MAGENTO: PlatformProfile(
        platform=PlatformId.MAGENTO,
        section_selector=".page-main .widget, .page-main .block-static-block, .page-main .block-products-list",
        header_selector="header.page-header, header",
        footer_selector="footer.page-footer, footer",
        asset_host=r"/static/version\d+/|/media/catalog/",
        type_hints=((r"products-grid|block-products-list|widget-product", BlockType.PRODUCT_GRID),),
    ),
}


def _outermost(elements: list[Tag]) -> list[Tag]:
    chosen = {id(element) for element in elements}
    return [
        element
        for element in elements
        if not any(id(parent) in chosen for parent in element.parents)
    ]


class ProfiledAdapter:
    """Split rendered pages into sections using a platform profile."""

    def __init__(self, profile: PlatformProfile) -> None:
        self._profile = profile
        self.platform = profile.platform

    @property
    def profile(self) -> PlatformProfile:
        return self._profile

    def supports(self, bundle: SourceBundle, detection: DetectionResult) -> bool:
        return detection.platform is self.platform and bool(bundle.documents_of("text/html"))

    def extract(self, bundle: SourceBundle) -> list[RawEntity]:
        entities = isolated(bundle.documents_of("text/html"), self.platform, self._page)
        return entities + asset_entities(bundle, re.compile(self._profile.asset_host))

    def _page(self, doc: SourceDocument) -> list[RawEntity]:
        soup = parse_html(doc.content)
        sections = [
            element
            for element in _outermost(soup.select(self._profile.section_selector))
            if is_visible_content(element)
        ]
        if not sections:
            return [page_entity(doc)]

        header = soup.select_one(self._profile.header_selector)
        footer = soup.select_one(self._profile.footer_selector)
        layout = [(role, element) for role, element in (("header", header), ("footer", footer)) if element is not None]
        page = page_entity(doc, sectioned=True, detect_layout=not layout)
        entities = [page]

        order = 0
        for role, element in layout:
            entities.append(
                section_entity(
                    page.source_id,
                    role,
                    order=-1 if role == "header" else len(sections),
                    block_type=BlockType.HEADER if role == "header" else BlockType.FOOTER,
                    markup=str(element),
                )
            )
        regions = [region for _, region in layout]
        for element in sections:
            if any(element is region or any(parent is region for parent in element.parents) for region in regions):
                continue
            entities.append(
                section_entity(
                    page.source_id,
                    f"section-{order}",
                    order=order,
                    block_type=self._profile.block_type_for(element),
                    markup=str(element),
                    platform_type=" ".join(element.get("class") or []) or None,
                )
            )
            order += 1
        return entities


def build_profiled_adapters() -> dict[PlatformId, ProfiledAdapter]:
    return {platform: ProfiledAdapter(profile) for platform, profile in PROFILES.items()}

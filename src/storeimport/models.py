"""Canonical data structures shared by every import pipeline stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PlatformId(Enum):
    SHOPIFY = "shopify"
    NUVEMSHOP = "nuvemshop"
    WOOCOMMERCE = "woocommerce"
    TRAY = "tray"
    LOJA_INTEGRADA = "loja_integrada"
    YAMPI = "yampi"
    BAGY = "bagy"
    WIX = "wix"
    VTEX = "vtex"
    MAGENTO = "magento"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str | None) -> "PlatformId":
        """Map a free-form platform name to a known id, or UNKNOWN."""
        if not raw:
            return cls.UNKNOWN
        key = raw.strip().lower().replace("-", "_").replace(" ", "_")
        for member in cls:
            if member.value == key:
                return member
        return cls.UNKNOWN


class BlockType(Enum):
    HEADER = "Header"
    FOOTER = "Footer"
    BANNER = "Banner"
    RICH_TEXT = "RichText"
    PRODUCT_GRID = "ProductGrid"
    PRODUCT_CARD = "ProductCard"
    CALL_TO_ACTION = "CallToAction"
    IMAGE = "Image"
    IMAGE_GALLERY = "ImageGallery"
    YOUTUBE_VIDEO = "YouTubeVideo"
    BUTTON = "Button"
    TESTIMONIALS = "Testimonials"
    FAQ = "FAQ"
    NEWSLETTER = "Newsletter"
    FEATURE_LIST = "FeatureList"
    CATEGORY_LIST = "CategoryList"
    SECTION = "Section"
    RAW_HTML = "RawHtml"

    @classmethod
    def parse(cls, raw: str | None) -> "BlockType | None":
        """Resolve a block type by value or member name, case-insensitively."""
        if not raw:
            return None
        key = raw.strip().casefold()
        for member in cls:
            if member.value.casefold() == key or member.name.casefold() == key:
                return member
        return None


LAYOUT_TYPES = frozenset({BlockType.HEADER, BlockType.FOOTER})


class EntityKind(Enum):
    PAGE = "page"
    SECTION = "section"
    ASSET = "asset"


class ItemOutcome(Enum):
    IMPORTED = "imported"
    PARTIALLY_IMPORTED = "partially_imported"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class SourceDocument:
    """One file or fetched payload inside a source bundle."""

    path: str
    content: str
    media_type: str = "text/html"
    title: str | None = None
    slug: str | None = None
    header_ref: str | None = None
    footer_ref: str | None = None


@dataclass(frozen=True, slots=True)
class SourceBundle:
    """Read-only export of a third-party store handed to the pipeline."""

    bundle_id: str
    documents: tuple[SourceDocument, ...] = ()
    platform_hint: str | None = None
    asset_urls: tuple[str, ...] = ()

    def documents_of(self, *media_types: str) -> list[SourceDocument]:
        wanted = set(media_types)
        return [doc for doc in self.documents if doc.media_type in wanted]

    def joined_text(self) -> str:
        return "\n".join(doc.content for doc in self.documents)


@dataclass(frozen=True, slots=True)
class DetectionResult:
    """Platform classification of a bundle; produced once per run."""

    platform: PlatformId
    confidence: float
    signals: tuple[tuple[str, bool], ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform.value,
            "confidence": round(self.confidence, 4),
            "signals": [{"rule": name, "matched": matched} for name, matched in self.signals],
        }


@dataclass(slots=True)
class RawEntity:
    """Adapter output before semantic normalization."""

    kind: EntityKind
    source_id: str
    attributes: dict[str, Any] = field(default_factory=dict)
    raw_markup: str | None = None


@dataclass(slots=True)
class CandidateBlock:
    """Tentatively classified fragment; ``block_type`` None means Unknown."""

    block_type: BlockType | None
    properties: dict[str, Any] = field(default_factory=dict)
    children: list["CandidateBlock"] = field(default_factory=list)
    confidence: float = 0.0
    order: int = 0
    span: tuple[int, int] = (0, 0)
    markup: str = ""
    origin: str = "unknown"

    def overlaps(self, other: "CandidateBlock") -> bool:
        return self.span[0] < other.span[1] and other.span[0] < self.span[1]


@dataclass(frozen=True, slots=True)
class Block:
    """Schema-validated unit of the editor's page model."""

    id: str
    type: BlockType
    properties: dict[str, Any]
    children: tuple["Block", ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "props": self.properties,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass(frozen=True, slots=True)
class Page:
    id: str
    slug: str
    title: str
    blocks: tuple[Block, ...]
    header: Block | None = None
    footer: Block | None = None
    fingerprint: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "slug": self.slug,
            "title": self.title,
            "header": self.header.to_dict() if self.header else None,
            "blocks": [block.to_dict() for block in self.blocks],
            "footer": self.footer.to_dict() if self.footer else None,
            "fingerprint": self.fingerprint,
        }


@dataclass(frozen=True, slots=True)
class Issue:
    """Non-fatal defect or degradation recorded for one imported item."""

    code: str
    stage: str
    message: str
    path: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {"code": self.code, "stage": self.stage, "message": self.message, "path": self.path}


@dataclass(frozen=True, slots=True)
class ImportItemResult:
    source_id: str
    outcome: ItemOutcome
    produced_page: Page | None = None
    issues: tuple[Issue, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "outcome": self.outcome.value,
            "page": self.produced_page.to_dict() if self.produced_page else None,
            "issues": [issue.to_dict() for issue in self.issues],
        }


@dataclass(frozen=True, slots=True)
class ImportReport:
    """Per-job outcome handed back to the caller once the run completes."""

    job_id: str
    detection: DetectionResult
    items: tuple[ImportItemResult, ...] = ()

    @property
    def summary(self) -> dict[str, int]:
        counts = {outcome.value: 0 for outcome in ItemOutcome}
        for item in self.items:
            counts[item.outcome.value] += 1
        counts["total"] = len(self.items)
        return counts

    @property
    def pages(self) -> list[Page]:
        return [item.produced_page for item in self.items if item.produced_page is not None]

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "platform": self.detection.platform.value,
            "detection": self.detection.to_dict(),
            "summary": self.summary,
            "items": [item.to_dict() for item in self.items],
        }

"""Platform-agnostic content extractors."""

from .commerce import CommerceDetector
from .layout import LayoutDetector, collect_layout_signatures
from .page import PageExtraction, PageExtractor, resolve_overlaps
from .properties import extract_properties
from .structure import StructureDetector

__all__ = [
    "CommerceDetector",
    "LayoutDetector",
    "PageExtraction",
    "PageExtractor",
    "StructureDetector",
    "collect_layout_signatures",
    "extract_properties",
    "resolve_overlaps",
]

"""Fallback adapter: one page entity per HTML document, no platform parsing."""

from __future__ import annotations

from storeimport.adapters.base import asset_entities, isolated, page_entity
from storeimport.models import DetectionResult, PlatformId, RawEntity, SourceBundle, SourceDocument


class GenericAdapter:
    """Hand every HTML document to the content extractors as a whole page."""

    platform = PlatformId.UNKNOWN

    def supports(self, bundle: SourceBundle, detection: DetectionResult) -> bool:
        return bool(bundle.documents_of("text/html"))

    def extract(self, bundle: SourceBundle) -> list[RawEntity]:
        entities = isolated(bundle.documents_of("text/html"), self.platform, self._page)
        return entities + asset_entities(bundle)

    def _page(self, doc: SourceDocument) -> list[RawEntity]:
        return [page_entity(doc)]

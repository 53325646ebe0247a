"""Platform adapter implementations and contracts."""

from .base import PlatformAdapter
from .generic import GenericAdapter
from .profiled import PROFILES, PlatformProfile, ProfiledAdapter, build_profiled_adapters
from .shopify import ShopifyAdapter
from .woocommerce import WooCommerceAdapter

from storeimport.models import DetectionResult, PlatformId, SourceBundle


def build_default_adapters() -> dict[PlatformId, PlatformAdapter]:
    """Return the adapter map keyed by platform; ``UNKNOWN`` maps to the generic adapter."""
    adapters: dict[PlatformId, PlatformAdapter] = {
        PlatformId.SHOPIFY: ShopifyAdapter(),
        PlatformId.WOOCOMMERCE: WooCommerceAdapter(),
        PlatformId.UNKNOWN: GenericAdapter(),
    }
    adapters.update(build_profiled_adapters())
    return adapters


def select_adapter(
    adapters: dict[PlatformId, PlatformAdapter],
    bundle: SourceBundle,
    detection: DetectionResult,
) -> PlatformAdapter:
    """Adapter for the detected platform, or the generic one when it does not apply."""
    adapter = adapters.get(detection.platform)
    if adapter is not None and adapter.supports(bundle, detection):
        return adapter
    return adapters.get(PlatformId.UNKNOWN) or GenericAdapter()


__all__ = [
    "GenericAdapter",
    "PROFILES",
    "PlatformAdapter",
    "PlatformProfile",
    "ProfiledAdapter",
    "ShopifyAdapter",
    "WooCommerceAdapter",
    "build_default_adapters",
    "select_adapter",
]

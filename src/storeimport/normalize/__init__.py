"""Block registry and schema normalization."""

from .normalizer import BlockNormalizer
from .platform_stages import PlatformStage, ShopifyStage, WooCommerceStage, default_stages
from .registry import BLOCK_REGISTRY, PropSpec, satisfies_contract, specs_for

__all__ = [
    "BLOCK_REGISTRY",
    "BlockNormalizer",
    "PlatformStage",
    "PropSpec",
    "ShopifyStage",
    "WooCommerceStage",
    "default_stages",
    "satisfies_contract",
    "specs_for",
]

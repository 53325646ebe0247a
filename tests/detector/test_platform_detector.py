from __future__ import annotations

import pytest

from storeimport.detector import PlatformDetector, SignatureRule
from storeimport.models import PlatformId, SourceBundle, SourceDocument


def _bundle(*contents: str, hint: str | None = None, assets: tuple[str, ...] = ()) -> SourceBundle:
    return SourceBundle(
        bundle_id="b",
        documents=tuple(SourceDocument(path=f"p{index}.html", content=content) for index, content in enumerate(contents)),
        platform_hint=hint,
        asset_urls=assets,
    )


def test_shopify_theme_page_is_detected() -> None:
    bundle = _bundle(
        '<div id="shopify-section-header"></div><script>Shopify.theme = {}</script>',
        assets=("https://cdn.shopify.com/s/files/1/logo.png",),
    )

    result = PlatformDetector().detect(bundle)

    assert result.platform is PlatformId.SHOPIFY
    assert result.confidence == pytest.approx(0.75)
    assert ("shopify:cdn_host", True) in result.signals
    assert ("shopify:theme_templates", False) in result.signals


def test_every_rule_is_recorded_in_declared_order() -> None:
    detector = PlatformDetector()
    result = detector.detect(_bundle("<p>plain</p>"))

    names = [name for name, _ in result.signals]
    assert names[0] == "shopify:cdn_host"
    assert names.index("nuvemshop:brand_marker") < names.index("bagy:cdn_host")
    assert result.platform is PlatformId.UNKNOWN
    assert result.confidence == 0.0


def test_equal_match_counts_resolve_by_priority() -> None:
    rules = (
        SignatureRule("bagy:marker", PlatformId.BAGY, lambda bundle: True),
        SignatureRule("tray:marker", PlatformId.TRAY, lambda bundle: True),
    )

    result = PlatformDetector(rules).detect(_bundle("<p>any</p>"))

    assert result.platform is PlatformId.TRAY
    assert result.confidence == 1.0


def test_low_confidence_winner_is_reported_as_unknown() -> None:
    # one WooCommerce rule out of four
    result = PlatformDetector().detect(_bundle('<img src="/wp-content/uploads/2024/banner.jpg">'))

    assert result.platform is PlatformId.UNKNOWN
    assert result.confidence == pytest.approx(0.25)


def test_platform_hint_adds_a_signal() -> None:
    result = PlatformDetector().detect(_bundle('<img src="/wp-content/uploads/x.jpg">', hint="WooCommerce"))

    assert ("hint:woocommerce", True) in result.signals
    assert result.platform is PlatformId.WOOCOMMERCE
    assert result.confidence == pytest.approx(0.5)


def test_empty_bundle_is_unknown_without_raising() -> None:
    result = PlatformDetector().detect(SourceBundle(bundle_id="empty"))

    assert result.platform is PlatformId.UNKNOWN
    assert result.confidence == 0.0
    assert all(matched is False for _, matched in result.signals)


def test_invalid_threshold_is_rejected() -> None:
    with pytest.raises(ValueError, match="threshold"):
        PlatformDetector(threshold=1.5)


def test_equal_counts_below_threshold_resolve_to_priority_platform() -> None:
    # one rule each: shopify 1/4 and nuvemshop 1/3
    result = PlatformDetector().detect(_bundle('<img src="https://cdn.shopify.com/x.png"><p>nuvemshop</p>'))

    assert result.platform is PlatformId.SHOPIFY
    assert result.confidence == pytest.approx(0.25)
    assert ("shopify:cdn_host", True) in result.signals
    assert ("nuvemshop:brand_marker", True) in result.signals

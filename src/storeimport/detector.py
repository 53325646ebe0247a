"""Signature-based classification of a bundle's source platform.

Each known platform owns an ordered list of named rules (asset hosts,
marker attributes, theme file layout, API response keys). A platform's
confidence is the share of its rules that matched. The platform with the
most matched rules wins; equal counts resolve by ``PLATFORM_PRIORITY`` so
the most widely used platform is preferred on ambiguous bundles.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import re
from typing import Callable

from storeimport.config import DEFAULT_DETECTION_THRESHOLD
from storeimport.models import DetectionResult, PlatformId, SourceBundle

logger = logging.getLogger(__name__)

PLATFORM_PRIORITY: tuple[PlatformId, ...] = (
    PlatformId.SHOPIFY,
    PlatformId.NUVEMSHOP,
    PlatformId.WOOCOMMERCE,
    PlatformId.TRAY,
    PlatformId.LOJA_INTEGRADA,
    PlatformId.YAMPI,
    PlatformId.WIX,
    PlatformId.VTEX,
    PlatformId.MAGENTO,
    PlatformId.BAGY,
)


@dataclass(frozen=True, slots=True)
class SignatureRule:
    name: str
    platform: PlatformId
    predicate: Callable[[SourceBundle], bool]

    def evaluate(self, bundle: SourceBundle) -> bool:
        try:
            return bool(self.predicate(bundle))
        except Exception:
            logger.exception("Detection rule %s raised", self.name)
            return False


def _content(pattern: str) -> Callable[[SourceBundle], bool]:
    compiled = re.compile(pattern, re.IGNORECASE)
    return lambda bundle: any(compiled.search(doc.content) for doc in bundle.documents) or any(
        compiled.search(url) for url in bundle.asset_urls
    )


def _path(pattern: str) -> Callable[[SourceBundle], bool]:
    compiled = re.compile(pattern, re.IGNORECASE)
    return lambda bundle: any(compiled.search(doc.path) for doc in bundle.documents)


def _json_keys(*keys: str) -> Callable[[SourceBundle], bool]:
    wanted = set(keys)

    def _check(bundle: SourceBundle) -> bool:
        for doc in bundle.documents_of("application/json"):
            try:
                payload = json.loads(doc.content)
            except json.JSONDecodeError:
                continue
            items = payload if isinstance(payload, list) else [payload]
            for item in items:
                if isinstance(item, dict) and wanted.issubset(item):
                    return True
        return False

    return _check


def _rules(platform: PlatformId, **predicates: Callable[[SourceBundle], bool]) -> list[SignatureRule]:
    return [
        SignatureRule(name=f"{platform.value}:{name}", platform=platform, predicate=predicate)
        for name, predicate in predicates.items()
    ]


DEFAULT_RULES: tuple[SignatureRule, ...] = (
    *_rules(
        PlatformId.SHOPIFY,
        cdn_host=_content(r"cdn\.shopify\.com"),
        section_wrapper=_content(r"shopify-section"),
        theme_global=_content(r"Shopify\.theme|data-shopify"),
        theme_templates=_path(r"(^|/)(templates|sections)/[^/]+\.(json|liquid)$"),
    ),
    *_rules(
        PlatformId.NUVEMSHOP,
        brand_marker=_content(r"nuvemshop|tiendanube"),
        cdn_host=_content(r"d26lpennugtm8s\.cloudfront\.net"),
        theme_classes=_content(r"js-item-product|js-nuvemshop"),
    ),
    *_rules(
        PlatformId.WOOCOMMERCE,
        plugin_path=_content(r"wp-content/plugins/woocommerce"),
        body_class=_content(r"class=\"[^\"]*\bwoocommerce\b"),
        wxr_export=_content(r"xmlns:wp=\"http://wordpress\.org/export/"),
        uploads_path=_content(r"wp-content/uploads"),
    ),
    *_rules(
        PlatformId.TRAY,
        cdn_host=_content(r"cdn\.tray\.com\.br|images\.tcdn\.com\.br"),
        brand_marker=_content(r"traycorp|tray\.com\.br"),
        data_attribute=_content(r"data-tray"),
    ),
    *_rules(
        PlatformId.LOJA_INTEGRADA,
        brand_marker=_content(r"lojaintegrada|loja-integrada"),
        cdn_host=_content(r"cdn\.awsli\.com\.br"),
    ),
    *_rules(
        PlatformId.YAMPI,
        cdn_host=_content(r"cdn\.yampi\.com\.br|images\.yampi\.me"),
        checkout_host=_content(r"checkout\.yampi"),
        api_shape=_json_keys("merchant_id", "sku_id"),
    ),
    *_rules(
        PlatformId.WIX,
        static_host=_content(r"static\.wixstatic\.com"),
        runtime_host=_content(r"parastorage\.com"),
        component_classes=_content(r"wixui-|data-mesh-id"),
    ),
    *_rules(
        PlatformId.VTEX,
        asset_host=_content(r"vtexassets\.com|vteximg\.com\.br"),
        store_components=_content(r"vtex-store-components|data-vtex"),
        render_state=_content(r"__RENDER_8_STATE__"),
    ),
    *_rules(
        PlatformId.MAGENTO,
        mage_init=_content(r"data-mage-init"),
        mage_cookies=_content(r"Mage\.Cookies"),
        static_version=_content(r"/static/version\d+/frontend/"),
    ),
    *_rules(
        PlatformId.BAGY,
        brand_marker=_content(r"bagy\.com\.br"),
        cdn_host=_content(r"cdn\.bagy"),
    ),
)


class PlatformDetector:
    """Classify a bundle against ordered platform signature rules."""

    def __init__(
        self,
        rules: tuple[SignatureRule, ...] = DEFAULT_RULES,
        *,
        threshold: float = DEFAULT_DETECTION_THRESHOLD,
        priority: tuple[PlatformId, ...] = PLATFORM_PRIORITY,
    ) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError("threshold must be between 0.0 and 1.0")
        self._rules = rules
        self._threshold = threshold
        self._priority = priority

    def detect(self, bundle: SourceBundle) -> DetectionResult:
        signals: list[tuple[str, bool]] = []
        matched: dict[PlatformId, int] = {}
        totals: dict[PlatformId, int] = {}

        for rule in self._rules:
            hit = rule.evaluate(bundle) if bundle.documents else False
            signals.append((rule.name, hit))
            totals[rule.platform] = totals.get(rule.platform, 0) + 1
            if hit:
                matched[rule.platform] = matched.get(rule.platform, 0) + 1

        hinted = PlatformId.parse(bundle.platform_hint)
        if hinted is not PlatformId.UNKNOWN:
            signals.append((f"hint:{hinted.value}", True))
            matched[hinted] = matched.get(hinted, 0) + 1
            totals.setdefault(hinted, 1)

        if not matched:
            return DetectionResult(platform=PlatformId.UNKNOWN, confidence=0.0, signals=tuple(signals))

        winner = min(matched, key=lambda platform: (-matched[platform], self._rank(platform)))
        # an equal-count tie is settled by priority, never by the threshold
        tied = sum(1 for count in matched.values() if count == matched[winner]) > 1
        confidence = min(1.0, matched[winner] / max(totals[winner], 1))
        logger.info(
            "Detection for bundle %s: %s matched %d/%d rules (confidence %.2f)",
            bundle.bundle_id,
            winner.value,
            matched[winner],
            totals[winner],
            confidence,
        )

        if confidence < self._threshold and not tied:
            return DetectionResult(platform=PlatformId.UNKNOWN, confidence=confidence, signals=tuple(signals))
        return DetectionResult(platform=winner, confidence=confidence, signals=tuple(signals))

    def _rank(self, platform: PlatformId) -> int:
        try:
            return self._priority.index(platform)
        except ValueError:
            return len(self._priority)

"""Block classification: local keyword rules with optional service escalation."""

from .analyzer import ClassificationOutcome, ContentAnalyzer, EscalationGate
from .config import ClassifierServiceSettings
from .rules import CategoryScore, classify_markup
from .service import ContentClassifierService, OpenRouterClassifier

__all__ = [
    "CategoryScore",
    "ClassificationOutcome",
    "ClassifierServiceSettings",
    "ContentAnalyzer",
    "ContentClassifierService",
    "EscalationGate",
    "OpenRouterClassifier",
    "classify_markup",
]

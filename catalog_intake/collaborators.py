"""Contracts of the external collaborators a form session talks to.

Nothing here talks to a network. The backend platform, the notification sink
and the content services are consumed through the protocols below; the UI shell
injects concrete clients. Responses coming back from a backend are checked
against a JSON Schema before they are trusted.

Collaborators:
- SupplierBackend.create_supplier_submission(payload) -> SubmissionReceipt
- ProductBackend.create_product(payload) -> ProductReceipt
- Notifier.notify(Notification), fire-and-forget
- ContentOptimizer.optimize(OptimizationRequest) -> list of OptimizationResult
- CompetitorAnalyzer.analyze(CompetitorInsightRequest) -> list of CompetitorInsight
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Optional

from jsonschema import Draft7Validator
from typing_extensions import Literal, Protocol

from catalog_intake.errors import SubmissionError
from catalog_intake.fields import is_empty, url_address
from catalog_intake.types import Severity


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    """A user-facing message for the UI shell's notification area."""
    title: str
    description: str
    severity: Severity = Severity.INFO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
        }


class Notifier(Protocol):
    """Fire-and-forget notification sink."""

    def notify(self, notification: Notification) -> None:
        ...


class LoggingNotifier:
    """Notifier that writes notifications to the log.

    Used when the UI shell does not provide a sink of its own.
    """

    _LEVELS = {
        Severity.INFO: logging.INFO,
        Severity.SUCCESS: logging.INFO,
        Severity.WARNING: logging.WARNING,
        Severity.ERROR: logging.ERROR,
    }

    def notify(self, notification: Notification) -> None:
        logger.log(
            self._LEVELS[notification.severity],
            "%s: %s",
            notification.title,
            notification.description,
        )


@dataclass(frozen=True)
class SubmissionReceipt:
    """Backend acknowledgement of a supplier submission."""
    id: str


@dataclass(frozen=True)
class ProductReceipt:
    """Backend acknowledgement of a created product."""
    id: str
    sku: str


class SupplierBackend(Protocol):
    def create_supplier_submission(self, payload: Dict[str, Any]) -> Awaitable[SubmissionReceipt]:
        ...


class ProductBackend(Protocol):
    def create_product(self, payload: Dict[str, Any]) -> Awaitable[ProductReceipt]:
        ...


SUBMISSION_RECEIPT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {"id": {"type": "string", "minLength": 1}},
    "required": ["id"],
}

PRODUCT_RECEIPT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "sku": {"type": "string", "minLength": 1},
    },
    "required": ["id", "sku"],
}

_submission_receipt_validator = Draft7Validator(SUBMISSION_RECEIPT_SCHEMA)
_product_receipt_validator = Draft7Validator(PRODUCT_RECEIPT_SCHEMA)


def _check_response(validator: Draft7Validator, data: Any, what: str) -> None:
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        details = "; ".join(e.message for e in errors)
        raise SubmissionError(f"Malformed {what} from backend: {details}")


def parse_submission_receipt(data: Any) -> SubmissionReceipt:
    """Parse a raw ``{id}`` response.

    A SubmissionReceipt is returned as it is, for backends that already build one.

    Raises:
        SubmissionError: If the response does not have the expected shape
    """
    if isinstance(data, SubmissionReceipt):
        return data
    _check_response(_submission_receipt_validator, data, "submission receipt")
    return SubmissionReceipt(id=data["id"])


def parse_product_receipt(data: Any) -> ProductReceipt:
    """Parse a raw ``{id, sku}`` response.

    A ProductReceipt is returned as it is.

    Raises:
        SubmissionError: If the response does not have the expected shape
    """
    if isinstance(data, ProductReceipt):
        return data
    _check_response(_product_receipt_validator, data, "product receipt")
    return ProductReceipt(id=data["id"], sku=data["sku"])


# Content services. Their output is whatever the remote service produces; no
# rewriting happens on this side.

OptimizationTarget = Literal["title", "description", "tags"]


@dataclass(frozen=True)
class OptimizationSettings:
    seo_focus: int = 70
    conversion_focus: int = 30
    use_industry_terms: bool = True
    include_emoji: bool = False
    tone_consistency: bool = True

    def __post_init__(self):
        for name in ("seo_focus", "conversion_focus"):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise ValueError(f"{name} must be between 0 and 100, got {value}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seoFocus": self.seo_focus,
            "conversionFocus": self.conversion_focus,
            "useIndustryTerms": self.use_industry_terms,
            "includeEmoji": self.include_emoji,
            "toneConsistency": self.tone_consistency,
        }


@dataclass(frozen=True)
class OptimizationRequest:
    """Product copy to optimize. At least a title or a description is needed."""
    title: str = ""
    description: str = ""
    tags: str = ""
    settings: OptimizationSettings = field(default_factory=OptimizationSettings)

    def __post_init__(self):
        if is_empty(self.title) and is_empty(self.description):
            raise ValueError("Provide at least a product title or description to optimize")

    @property
    def targets(self) -> List[str]:
        """Parts of the copy the service is asked to optimize."""
        return [name for name in ("title", "description", "tags") if not is_empty(getattr(self, name))]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "tags": self.tags,
            "settings": self.settings.to_dict(),
        }


@dataclass(frozen=True)
class OptimizationResult:
    original: str
    optimized: str
    type: OptimizationTarget
    improvements: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OptimizationResult":
        return cls(
            original=data["original"],
            optimized=data["optimized"],
            type=data["type"],
            improvements=list(data.get("improvements", [])),
        )


class ContentOptimizer(Protocol):
    def optimize(self, request: OptimizationRequest) -> Awaitable[List[OptimizationResult]]:
        ...


_competitor_url = url_address("Please provide a valid competitor URL to analyze")


@dataclass(frozen=True)
class CompetitorInsightRequest:
    competitor_url: str
    categories: List[str] = field(default_factory=list)

    def __post_init__(self):
        outcome = _competitor_url(self.competitor_url)
        if not outcome.valid:
            raise ValueError(outcome.reason)

    def to_dict(self) -> Dict[str, Any]:
        return {"competitorUrl": self.competitor_url, "categories": list(self.categories)}


@dataclass(frozen=True)
class CompetitorInsight:
    title: str
    description: str
    impact: Literal["high", "medium", "low"]
    action: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompetitorInsight":
        impact = data["impact"]
        if impact not in ("high", "medium", "low"):
            raise ValueError(f"Unknown insight impact: {impact!r}")
        return cls(
            title=data["title"],
            description=data["description"],
            impact=impact,
            action=data.get("action"),
        )


class CompetitorAnalyzer(Protocol):
    def analyze(self, request: CompetitorInsightRequest) -> Awaitable[List[CompetitorInsight]]:
        ...


__all__ = [
    "Notification",
    "Notifier",
    "LoggingNotifier",
    "SubmissionReceipt",
    "ProductReceipt",
    "SupplierBackend",
    "ProductBackend",
    "parse_submission_receipt",
    "parse_product_receipt",
    "OptimizationSettings",
    "OptimizationRequest",
    "OptimizationResult",
    "ContentOptimizer",
    "CompetitorInsightRequest",
    "CompetitorInsight",
    "CompetitorAnalyzer",
]

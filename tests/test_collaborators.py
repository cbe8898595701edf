"""Unit tests for collaborator contracts and response parsing."""

import logging

import pytest

from catalog_intake.collaborators import (
    CompetitorInsight,
    CompetitorInsightRequest,
    LoggingNotifier,
    Notification,
    OptimizationRequest,
    OptimizationResult,
    OptimizationSettings,
    ProductReceipt,
    SubmissionReceipt,
    parse_product_receipt,
    parse_submission_receipt,
)
from catalog_intake.errors import SubmissionError
from catalog_intake.types import Severity


class TestReceipts:
    """Test parsing of backend responses."""

    def test_submission_receipt(self):
        """Should parse an {id} response."""
        assert parse_submission_receipt({"id": "sub_1"}) == SubmissionReceipt(id="sub_1")

    def test_product_receipt(self):
        """Should parse an {id, sku} response."""
        assert parse_product_receipt({"id": "p1", "sku": "ROSE-1"}) == ProductReceipt("p1", "ROSE-1")

    @pytest.mark.parametrize("data", [{}, {"id": ""}, {"id": 7}, "sub_1"])
    def test_malformed_submission_receipt(self, data):
        """Should raise SubmissionError for unexpected shapes."""
        with pytest.raises(SubmissionError, match="Malformed submission receipt"):
            parse_submission_receipt(data)

    def test_product_receipt_needs_sku(self):
        """Should require the sku."""
        with pytest.raises(SubmissionError):
            parse_product_receipt({"id": "p1"})

    def test_receipt_instances_pass_through(self):
        """Should return receipts a backend already built."""
        receipt = SubmissionReceipt(id="sub_1")
        assert parse_submission_receipt(receipt) is receipt
        product = ProductReceipt("p1", "ROSE-1")
        assert parse_product_receipt(product) is product

    @pytest.mark.parametrize("data", [None, [], ["sub_1"]])
    def test_empty_response_is_malformed(self, data):
        """Should refuse a missing or non-object response."""
        with pytest.raises(SubmissionError, match="Malformed submission receipt"):
            parse_submission_receipt(data)
        with pytest.raises(SubmissionError, match="Malformed product receipt"):
            parse_product_receipt(data)


class TestLoggingNotifier:
    """Test the default notification sink."""

    def test_logs_by_severity(self, caplog):
        """Should log errors at ERROR level."""
        with caplog.at_level(logging.INFO, logger="catalog_intake.collaborators"):
            LoggingNotifier().notify(Notification("Submission failed", "Try again", Severity.ERROR))
        assert caplog.records[-1].levelno == logging.ERROR
        assert "Submission failed: Try again" in caplog.text

    def test_notification_to_dict(self):
        """Should serialize the severity value."""
        data = Notification("Saved", "Draft saved", Severity.SUCCESS).to_dict()
        assert data["severity"] == "success"


class TestContentOptimization:
    """Test optimizer request and result contracts."""

    def test_needs_title_or_description(self):
        """Should refuse a request with nothing to optimize."""
        with pytest.raises(ValueError):
            OptimizationRequest(title=" ", description="")

    def test_targets(self):
        """Should target only the filled-in parts."""
        request = OptimizationRequest(title="Rose Oil", tags="rose, oil")
        assert request.targets == ["title", "tags"]
        assert request.to_dict()["settings"]["seoFocus"] == 70

    def test_settings_bounds(self):
        """Should reject focus values outside 0-100."""
        with pytest.raises(ValueError):
            OptimizationSettings(seo_focus=120)

    def test_result_from_dict(self):
        """Should parse a service result."""
        result = OptimizationResult.from_dict(
            {"original": "rose oil", "optimized": "Rose Oil", "type": "title"}
        )
        assert result.improvements == []


class TestCompetitorInsights:
    """Test competitor analysis contracts."""

    def test_requires_valid_url(self):
        """Should refuse a request without a valid competitor URL."""
        with pytest.raises(ValueError, match="valid competitor URL"):
            CompetitorInsightRequest(competitor_url="not a url")

    def test_request_to_dict(self):
        """Should serialize with camelCase keys."""
        request = CompetitorInsightRequest("https://rival.example.com", ["pricing"])
        assert request.to_dict() == {
            "competitorUrl": "https://rival.example.com",
            "categories": ["pricing"],
        }

    def test_insight_impact(self):
        """Should reject unknown impact levels."""
        insight = CompetitorInsight.from_dict(
            {"title": "Cheaper", "description": "Lower prices", "impact": "high"}
        )
        assert insight.action is None
        with pytest.raises(ValueError):
            CompetitorInsight.from_dict({"title": "t", "description": "d", "impact": "huge"})

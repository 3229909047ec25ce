"""Tests for error handling service"""
import asyncio

import pytest

from lien_sync.services.error_handling import (
    ErrorHandler,
    ErrorCategory,
    RecoveryAction,
    error_handler,
)


class TestErrorCategorization:
    """Test error categorization"""

    def test_transient_errors(self):
        """Network hiccups are retried"""
        transient_errors = [
            "Connection refused",
            "Operation timed out",
            "net::ERR_CONNECTION_RESET at https://legacy.recorder.maricopa.gov",
            "getaddrinfo ENOTFOUND legacy.recorder.maricopa.gov",
            "socket hang up",
        ]
        for error in transient_errors:
            category = error_handler.categorize_error(error)
            assert category == ErrorCategory.TRANSIENT, \
                f"Expected TRANSIENT for '{error}', got {category}"

    def test_record_errors(self):
        """Browser state lost on one document"""
        record_errors = [
            "Frame was detached",
            "Target closed",
            "Execution context was destroyed, most likely because of a navigation",
            "Lost connection to the browser",
        ]
        for error in record_errors:
            category = error_handler.categorize_error(error)
            assert category == ErrorCategory.RECORD, \
                f"Expected RECORD for '{error}', got {category}"

    def test_county_errors(self):
        """Failures that make a whole county unusable"""
        county_errors = [
            "Failed to launch browser after 3 attempts",
            "Executable doesn't exist at /ms-playwright/chromium",
            "Could not reach search form",
            "Captcha required",
        ]
        for error in county_errors:
            category = error_handler.categorize_error(error)
            assert category == ErrorCategory.COUNTY, \
                f"Expected COUNTY for '{error}', got {category}"

    def test_data_quality_errors(self):
        """Records produced without a usable PDF"""
        data_errors = [
            "PDF download failed",
            "Invalid PDF for 20260000001",
            "No PDF link found",
        ]
        for error in data_errors:
            category = error_handler.categorize_error(error)
            assert category == ErrorCategory.DATA_QUALITY, \
                f"Expected DATA_QUALITY for '{error}', got {category}"

    def test_delivery_errors(self):
        """Downstream store rejections"""
        delivery_errors = [
            "Airtable API error (422)",
            "Batch 2: INVALID_VALUE_FOR_COLUMN",
        ]
        for error in delivery_errors:
            category = error_handler.categorize_error(error)
            assert category == ErrorCategory.DELIVERY, \
                f"Expected DELIVERY for '{error}', got {category}"

    def test_unknown_errors(self):
        """Test unknown error fallback"""
        unknown_errors = [
            "Something went wrong",
            "Random failure 12345",
        ]
        for error in unknown_errors:
            category = error_handler.categorize_error(error)
            assert category == ErrorCategory.UNKNOWN, \
                f"Expected UNKNOWN for '{error}', got {category}"

    def test_exceptions_use_type_name(self):
        """An empty asyncio timeout still classifies by its type"""
        assert error_handler.categorize_error(asyncio.TimeoutError()) == ErrorCategory.TRANSIENT


class TestErrorDiagnosis:
    """Test error diagnosis"""

    def test_transient_errors_retry(self):
        handler = ErrorHandler()

        diag = handler.diagnose_error("Connection refused", "download_pdf")
        assert diag.is_transient is True
        assert diag.recommended_action == RecoveryAction.RETRY_WITH_BACKOFF
        assert diag.severity == "low"

    def test_record_errors_skip(self):
        diag = ErrorHandler().diagnose_error("Target closed", "process_record")
        assert diag.recommended_action == RecoveryAction.SKIP_RECORD

    def test_county_errors_fail_county(self):
        diag = ErrorHandler().diagnose_error("Failed to launch browser", "scrape_county")
        assert diag.is_transient is False
        assert diag.recommended_action == RecoveryAction.FAIL_COUNTY

    def test_missing_pdf_holds_for_review(self):
        diag = ErrorHandler().diagnose_error("PDF download failed", "deliver")
        assert diag.recommended_action == RecoveryAction.HOLD_FOR_REVIEW
        assert "held" in diag.user_message

    def test_is_transient(self):
        assert error_handler.is_transient("socket hang up") is True
        assert error_handler.is_transient("Captcha required") is False


class TestErrorLogEntry:
    """Test error log entry creation"""

    def test_create_error_entry(self):
        """Test error log entry structure"""
        handler = ErrorHandler()

        entry = handler.create_error_entry(
            "Connection refused",
            "scrape_county",
            context={"county": "Maricopa"},
        )

        assert "timestamp" in entry
        assert entry["task"] == "scrape_county"
        assert entry["error"] == "Connection refused"
        assert entry["category"] == "transient"
        assert entry["recommended_action"] == "retry_backoff"
        assert entry["context"] == {"county": "Maricopa"}

    def test_summarize(self):
        handler = ErrorHandler()
        entries = [
            handler.create_error_entry("Connection refused", "a"),
            handler.create_error_entry("Operation timed out", "b"),
            handler.create_error_entry("Captcha required", "c"),
        ]

        assert handler.summarize(entries) == {"transient": 2, "county": 1}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

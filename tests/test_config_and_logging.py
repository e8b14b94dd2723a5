"""
Tests for settings validation and logging helpers.
"""
import json
import logging

import pytest
from pydantic import ValidationError

from docsign.config import Settings
from docsign.utils.logging import (
    CloudLoggingFormatter,
    clear_context,
    fingerprint,
    set_context,
)


class TestSettings:
    """Test Settings parsing and validation."""

    def test_defaults(self):
        settings = Settings()

        assert settings.min_signature_width == 20.0
        assert settings.min_clamped_height == 10.0
        assert settings.storage_bucket == "public-documents"

    def test_allowed_origins_csv_and_semicolons(self):
        settings = Settings(ALLOWED_ORIGINS="https://a.example; https://b.example,https://c.example")

        assert settings.allowed_origins == ["https://a.example", "https://b.example", "https://c.example"]

    def test_allowed_origins_json(self):
        settings = Settings(ALLOWED_ORIGINS='["https://a.example"]')

        assert settings.allowed_origins == ["https://a.example"]

    @pytest.mark.parametrize("field", ["MIN_SIGNATURE_WIDTH", "MIN_SIGNATURE_HEIGHT", "MIN_CLAMPED_HEIGHT"])
    def test_non_positive_minimum_rejected(self, field):
        with pytest.raises(ValidationError):
            Settings(**{field: 0})

    def test_transparency_threshold_range(self):
        with pytest.raises(ValidationError):
            Settings(WACOM_TRANSPARENCY_THRESHOLD=300)


class TestLoggingHelpers:
    """Test PII-safe logging helpers."""

    def test_fingerprint_is_case_insensitive(self):
        assert fingerprint("Signer@Example.com") == fingerprint("signer@example.com")
        assert fingerprint("signer@example.com", "rcp_").startswith("rcp_")
        assert len(fingerprint("signer@example.com")) == 8

    def test_fingerprint_of_nothing(self):
        assert fingerprint(None, "rcp_") == "rcp_none"

    def test_cloud_formatter_carries_context(self):
        set_context(document_id="doc-1", recipient_email="signer@example.com", operation="send")
        try:
            record = logging.LogRecord("docsign", logging.INFO, __file__, 1, "merged", None, None)
            entry = json.loads(CloudLoggingFormatter().format(record))
        finally:
            clear_context()

        assert entry["severity"] == "INFO"
        assert entry["document_id"] == "doc-1"
        assert entry["operation"] == "send"
        assert entry["recipient_fp"] == fingerprint("signer@example.com", "rcp_")
        assert "signer@example.com" not in json.dumps(entry)

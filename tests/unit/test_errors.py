"""Tests for inkgen.core.errors — error kinds and response envelopes."""

from __future__ import annotations

import pytest

from inkgen.core.errors import (
    ErrorKind,
    ExtractionError,
    GenerationError,
    QuotaExceededError,
    ValidationError,
)


class TestGenerationError:
    @pytest.mark.parametrize(
        ("kind", "status"),
        [
            (ErrorKind.CONTENT_BLOCKED, 400),
            (ErrorKind.PAYMENT_REQUIRED, 402),
            (ErrorKind.GENERATION_FAILED, 500),
            (ErrorKind.VALIDATION_ERROR, 400),
            (ErrorKind.DAILY_LIMIT_REACHED, 429),
            (ErrorKind.UNKNOWN, 500),
        ],
    )
    def test_default_status(self, kind, status):
        assert GenerationError(kind, "msg").status_code == status

    def test_status_override(self):
        assert GenerationError(ErrorKind.UNKNOWN, "msg", status_code=503).status_code == 503

    def test_content_blocked_wire_value(self):
        assert ErrorKind.CONTENT_BLOCKED.value == "NSFW_BLOCKED"

    def test_to_dict(self):
        error = GenerationError(ErrorKind.PAYMENT_REQUIRED, "Insufficient credit to generate images.")
        assert error.to_dict() == {
            "success": False,
            "error": "PAYMENT_REQUIRED",
            "message": "Insufficient credit to generate images.",
        }

    def test_only_generation_failures_are_retryable(self):
        assert GenerationError(ErrorKind.GENERATION_FAILED, "x").retryable
        assert not GenerationError(ErrorKind.CONTENT_BLOCKED, "x").retryable
        assert not GenerationError(ErrorKind.UNKNOWN, "x").retryable


class TestSubclasses:
    def test_validation_error(self):
        error = ValidationError("Prompt is required")
        assert error.kind is ErrorKind.VALIDATION_ERROR
        assert error.status_code == 400
        assert str(error) == "Prompt is required"

    def test_validation_error_rejects_non_client_status(self):
        with pytest.raises(ValueError):
            ValidationError("bad", status_code=500)

    def test_quota_exceeded(self):
        error = QuotaExceededError(5)
        assert error.status_code == 429
        assert error.to_dict() == {
            "success": False,
            "error": "DAILY_LIMIT_REACHED",
            "message": "You have reached your daily limit of 5 generations. Upgrade to Pro!",
            "remaining": 0,
        }

    def test_extraction_error_message(self):
        assert ExtractionError("Prediction").message == (
            "Could not extract URL from provider response. Type: Prediction"
        )
        assert ExtractionError("Prediction", ["id", "status"]).message.endswith("Fields: id, status")

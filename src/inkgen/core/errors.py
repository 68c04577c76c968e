"""Error taxonomy shared by the gateway, the endpoints and the quota guard.

Every failure that reaches the HTTP boundary is a :class:`GenerationError`
(or one of its subclasses).  The error carries a machine-readable ``kind``,
a user-facing ``message`` and the HTTP ``status_code`` it maps to, so the
error responder in :mod:`inkgen.api.errors` never needs to inspect message
text.

Kinds
-----
========================  ======  ==========================================
Kind                      Status  Meaning
========================  ======  ==========================================
``NSFW_BLOCKED``          400     Provider refused the input or the output
``PAYMENT_REQUIRED``      402     Provider account has insufficient credit
``GENERATION_FAILED``     500     Transient provider failure or throttling
``VALIDATION_ERROR``      4xx     Missing or malformed request fields
``DAILY_LIMIT_REACHED``   429     Free user exhausted the daily quota
``UNKNOWN``               500     Anything unrecognized
========================  ======  ==========================================
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Machine-readable error kinds sent in the ``error`` field."""

    CONTENT_BLOCKED = "NSFW_BLOCKED"
    PAYMENT_REQUIRED = "PAYMENT_REQUIRED"
    GENERATION_FAILED = "GENERATION_FAILED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DAILY_LIMIT_REACHED = "DAILY_LIMIT_REACHED"
    UNKNOWN = "UNKNOWN"


_DEFAULT_STATUS: dict[ErrorKind, int] = {
    ErrorKind.CONTENT_BLOCKED: 400,
    ErrorKind.PAYMENT_REQUIRED: 402,
    ErrorKind.GENERATION_FAILED: 500,
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.DAILY_LIMIT_REACHED: 429,
    ErrorKind.UNKNOWN: 500,
}


class GenerationError(Exception):
    """A failure with a kind, a user-facing message and an HTTP status.

    Args:
        kind: The error kind.
        message: Human-readable message, returned to the client verbatim.
        status_code: HTTP status override.  Defaults to the status
            associated with ``kind``.
        details: Extra fields merged into the error response body.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code or _DEFAULT_STATUS[kind]
        self.details = details or {}

    @property
    def retryable(self) -> bool:
        """Whether a caller may safely retry the same request."""
        return self.kind is ErrorKind.GENERATION_FAILED

    def to_dict(self) -> dict[str, Any]:
        """Convert the error to the uniform response envelope."""
        return {
            "success": False,
            "error": self.kind.value,
            "message": self.message,
            **self.details,
        }


class ValidationError(GenerationError):
    """Missing or malformed request fields.

    The message is intended to be displayed directly to the user.
    """

    def __init__(self, message: str, status_code: int = 400) -> None:
        if not 400 <= status_code < 500:
            raise ValueError(f"Validation errors must use a 4xx status, got {status_code}")
        super().__init__(ErrorKind.VALIDATION_ERROR, message, status_code=status_code)


class QuotaExceededError(GenerationError):
    """A free user has used every generation allowed for today."""

    def __init__(self, daily_limit: int) -> None:
        super().__init__(
            ErrorKind.DAILY_LIMIT_REACHED,
            f"You have reached your daily limit of {daily_limit} generations. Upgrade to Pro!",
            details={"remaining": 0},
        )
        self.daily_limit = daily_limit


class ExtractionError(GenerationError):
    """The provider returned a response without a recognizable image URL.

    Attributes:
        observed_type: Type name of the value that could not be read.
        fields: Public attribute or key names seen on that value.
    """

    def __init__(self, observed_type: str, fields: list[str] | None = None) -> None:
        self.observed_type = observed_type
        self.fields = fields or []
        message = f"Could not extract URL from provider response. Type: {observed_type}"
        if self.fields:
            message += f", Fields: {', '.join(self.fields)}"
        super().__init__(ErrorKind.UNKNOWN, message)

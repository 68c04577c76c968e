"""Provider gateway - the single entry point for Replicate model runs.

Every generation feature calls :meth:`ProviderGateway.invoke` with a model
identifier and an input mapping.  The gateway runs the model through the
Replicate SDK and, when the run fails, classifies the failure into the error
taxonomy of :mod:`inkgen.core.errors` using :data:`ERROR_RULES`.

Error Rules
-----------
The provider reports most failures only through message text, so the
classification is an ordered list of ``(predicate, kind, user message)``
rules evaluated top to bottom; the first match wins.  Anything that matches
no rule becomes ``UNKNOWN`` with the provider's original message.

A failed prediction surfaces from the SDK as ``ModelError`` whose text is
only the model's own error, so it is matched as ``Prediction failed: <text>``.

Retries
-------
By default a failed run surfaces immediately.  With ``max_retries > 0`` the
gateway re-runs the model for ``GENERATION_FAILED`` errors only.  Content
safety and payment errors are definitive and are never retried.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from replicate.exceptions import ModelError

from inkgen.core.errors import ErrorKind, GenerationError
from inkgen.core.events import ERROR_KIND_MAPPED, EventSink, default_sink

logger = logging.getLogger(__name__)


class ProviderClient(Protocol):
    """The subset of :class:`replicate.Client` used by the gateway."""

    async def async_run(self, ref: str, input: dict[str, Any] | None = None, **params: Any) -> Any: ...


@dataclass(frozen=True)
class ErrorRule:
    """Map provider messages matching ``matches`` to ``kind`` and ``message``."""

    name: str
    matches: Callable[[str], bool]
    kind: ErrorKind
    message: str


def _contains(*needles: str) -> Callable[[str], bool]:
    return lambda text: any(needle in text for needle in needles)


ERROR_RULES: list[ErrorRule] = [
    ErrorRule(
        name="nsfw_input",
        matches=_contains("NSFW content detected"),
        kind=ErrorKind.CONTENT_BLOCKED,
        message=(
            "The design could not be generated because it was flagged as adult content. "
            "Try a different design or adjust your prompt to be more specific."
        ),
    ),
    ErrorRule(
        name="sensitive_output",
        matches=_contains("flagged as sensitive"),
        kind=ErrorKind.CONTENT_BLOCKED,
        message=(
            "The generated design was flagged as sensitive content. "
            "Please try a different design or adjust your prompt."
        ),
    ),
    ErrorRule(
        name="payment_required",
        matches=_contains("402"),
        kind=ErrorKind.PAYMENT_REQUIRED,
        message="Insufficient credit to generate images.",
    ),
    ErrorRule(
        name="prediction_failed",
        matches=_contains("Prediction failed"),
        kind=ErrorKind.GENERATION_FAILED,
        message="Failed to generate. Please try again.",
    ),
    ErrorRule(
        name="rate_limited",
        matches=_contains("rate limit", "429"),
        kind=ErrorKind.GENERATION_FAILED,
        message="Service is busy. Please try again in a moment.",
    ),
]


def classify_provider_error(exc: BaseException, events: EventSink = default_sink) -> GenerationError:
    """Translate a provider exception into a :class:`GenerationError`.

    Args:
        exc: The exception raised by the provider SDK.
        events: Sink notified with the chosen rule and kind.

    Returns:
        A :class:`GenerationError`.  Unmatched errors keep their original
        message and are classified as ``UNKNOWN``.
    """
    text = str(exc)
    # The SDK raises ModelError with only the prediction's error text.
    candidate = f"Prediction failed: {text}" if isinstance(exc, ModelError) else text
    for rule in ERROR_RULES:
        if rule.matches(candidate):
            events.emit(ERROR_KIND_MAPPED, rule=rule.name, kind=rule.kind.value)
            return GenerationError(rule.kind, rule.message)
    events.emit(ERROR_KIND_MAPPED, rule=None, kind=ErrorKind.UNKNOWN.value)
    return GenerationError(ErrorKind.UNKNOWN, text)


class ProviderGateway:
    """Run provider models and normalise their failures.

    Args:
        client: A Replicate client (or any object with ``async_run``).
        events: Sink for ``error_kind_mapped`` events.
        max_retries: Extra attempts for ``GENERATION_FAILED`` errors.
    """

    def __init__(
        self,
        client: ProviderClient,
        events: EventSink = default_sink,
        max_retries: int = 0,
    ) -> None:
        self.client = client
        self.events = events
        self.max_retries = max_retries

    async def invoke(self, model_id: str, input: Mapping[str, Any]) -> Any:
        """Run ``model_id`` with ``input`` and return the raw provider output.

        Raises:
            GenerationError: If the provider call fails.
        """
        attempt = 0
        while True:
            attempt += 1
            logger.info("Running provider model %s (attempt %d).", model_id, attempt)
            try:
                output = await self.client.async_run(model_id, input=dict(input))
            except Exception as exc:
                logger.error("Provider error from %s: %s", model_id, exc)
                error = classify_provider_error(exc, self.events)
                if error.retryable and attempt <= self.max_retries:
                    logger.warning("Retrying %s after %s.", model_id, error.kind.value)
                    continue
                raise error from exc
            logger.info("Provider model %s completed.", model_id)
            return output

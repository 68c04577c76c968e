"""Structured decision-point events.

Components that make a notable decision (falling back to the original image,
choosing how to read a provider response, mapping a provider error) report it
through an :class:`EventSink` instead of writing free-form log lines.  The
default sink forwards events to the ``inkgen.events`` logger; tests inject a
recording sink and assert on the events themselves.

Event names
-----------
``normalization_fallback``
    An image could not be re-encoded and was sent upstream unchanged.
``extraction_method_chosen``
    The response shape and probe used to locate the result URL.
``error_kind_mapped``
    A provider error was classified into an error kind.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

NORMALIZATION_FALLBACK = "normalization_fallback"
EXTRACTION_METHOD_CHOSEN = "extraction_method_chosen"
ERROR_KIND_MAPPED = "error_kind_mapped"


class EventSink(Protocol):
    """Receiver for structured events."""

    def emit(self, event: str, **fields: Any) -> None: ...


class LoggingEventSink:
    """Event sink that writes each event as a single log record.

    The event name and its fields are attached to the record via ``extra``
    (as ``record.event`` and ``record.fields``) so log handlers that emit
    JSON can serialise them without parsing the message.

    Args:
        logger: Logger to write to.  Defaults to ``inkgen.events``.
        level: Level used for every event.
    """

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.INFO) -> None:
        self.logger = logger or logging.getLogger("inkgen.events")
        self.level = level

    def emit(self, event: str, **fields: Any) -> None:
        self.logger.log(
            self.level,
            "%s %s",
            event,
            fields,
            extra={"event": event, "fields": fields},
        )


default_sink = LoggingEventSink()

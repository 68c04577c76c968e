"""Locate the result image URL in a provider response.

The Replicate SDK returns different wrapper shapes depending on the model and
the SDK version: a bare URL string, a ``FileOutput`` object, a list of either,
or a plain mapping.  This module is the only place that knows about those
shapes.  When the provider changes its wrapper again, edit
:data:`OBJECT_PROBES` or :func:`classify_response` and nothing else.

Resolution order
----------------
1. A URL string is returned as-is.
2. A non-empty sequence is resolved through its first element (which must be
   a URL string or an object; sequences are not nested).
3. An object or mapping is probed in :data:`OBJECT_PROBES` order: a callable
   ``url`` accessor, a string ``url`` field, its string conversion, then the
   alternate ``path``/``uri``/``href``/``link`` fields.
4. Anything else raises :class:`~inkgen.core.errors.ExtractionError`.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from enum import Enum
from typing import Any

from inkgen.core.errors import ExtractionError
from inkgen.core.events import EXTRACTION_METHOD_CHOSEN, EventSink, default_sink

ALTERNATE_URL_FIELDS: tuple[str, ...] = ("path", "uri", "href", "link")


class ResponseShape(str, Enum):
    """Closed set of provider response shapes."""

    URL_STRING = "url_string"
    SEQUENCE = "sequence"
    URL_ACCESSOR_OBJECT = "url_accessor_object"
    PLAIN_URL_FIELD = "plain_url_field"
    UNSUPPORTED = "unsupported"


def is_url(value: Any) -> bool:
    """Return ``True`` for strings with an ``http://`` or ``https://`` scheme."""
    return isinstance(value, str) and value.lower().startswith(("http://", "https://"))


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _field_names(obj: Any) -> list[str]:
    if isinstance(obj, Mapping):
        return [str(key) for key in obj]
    names = getattr(obj, "__dict__", None)
    if names:
        return sorted(name for name in names if not name.startswith("_"))
    return sorted(name for name in dir(obj) if not name.startswith("_"))


def classify_response(response: Any) -> ResponseShape:
    """Decide which shape a provider response has.

    Args:
        response: Any value returned by the provider.

    Returns:
        The :class:`ResponseShape` the extractor should treat it as.
    """
    if isinstance(response, str):
        return ResponseShape.URL_STRING if is_url(response) else ResponseShape.UNSUPPORTED
    if isinstance(response, (bytes, bytearray)) or response is None:
        return ResponseShape.UNSUPPORTED
    if isinstance(response, Sequence):
        return ResponseShape.SEQUENCE if len(response) > 0 else ResponseShape.UNSUPPORTED
    try:
        accessor = _field(response, "url")
    except Exception:
        accessor = None
    if callable(accessor):
        return ResponseShape.URL_ACCESSOR_OBJECT
    return ResponseShape.PLAIN_URL_FIELD


# ---------------------------------------------------------------------------
# Object probes.  Each returns a URL or None; exceptions count as a miss.
# ---------------------------------------------------------------------------


def _probe_url_accessor(obj: Any) -> str | None:
    accessor = _field(obj, "url")
    if callable(accessor):
        value = accessor()
        return value if is_url(value) else None
    return None


def _probe_url_field(obj: Any) -> str | None:
    value = _field(obj, "url")
    return value if is_url(value) else None


def _probe_string_conversion(obj: Any) -> str | None:
    if isinstance(obj, Mapping):
        return None
    value = str(obj)
    return value if is_url(value) else None


def _probe_alternate_fields(obj: Any) -> str | None:
    for name in ALTERNATE_URL_FIELDS:
        value = _field(obj, name)
        if is_url(value):
            return value
    return None


OBJECT_PROBES: list[tuple[str, Callable[[Any], str | None]]] = [
    ("url_method", _probe_url_accessor),
    ("url_property", _probe_url_field),
    ("to_string", _probe_string_conversion),
    ("alternate_field", _probe_alternate_fields),
]


def _extract_from_object(obj: Any, shape: ResponseShape, events: EventSink) -> str:
    for method, probe in OBJECT_PROBES:
        try:
            url = probe(obj)
        except Exception:
            continue
        if url is not None:
            events.emit(EXTRACTION_METHOD_CHOSEN, shape=shape.value, method=method)
            return url
    raise ExtractionError(type(obj).__name__, _field_names(obj))


def extract_url(response: Any, events: EventSink = default_sink) -> str:
    """Return the result image URL contained in a provider response.

    Args:
        response: The value returned by the provider invocation.
        events: Sink notified with the shape and probe that succeeded.

    Returns:
        The URL string.

    Raises:
        ExtractionError: If no URL could be located.  The error carries the
            observed type name and the available field names.
    """
    shape = classify_response(response)

    if shape is ResponseShape.URL_STRING:
        events.emit(EXTRACTION_METHOD_CHOSEN, shape=shape.value, method="direct")
        return response

    if shape is ResponseShape.SEQUENCE:
        first = response[0]
        first_shape = classify_response(first)
        if first_shape is ResponseShape.URL_STRING:
            events.emit(EXTRACTION_METHOD_CHOSEN, shape=shape.value, method="first_item")
            return first
        if first_shape in (ResponseShape.URL_ACCESSOR_OBJECT, ResponseShape.PLAIN_URL_FIELD):
            return _extract_from_object(first, first_shape, events)
        raise ExtractionError(
            f"{type(response).__name__}[{type(first).__name__}]",
            _field_names(first) if first_shape is not ResponseShape.UNSUPPORTED else [],
        )

    if shape in (ResponseShape.URL_ACCESSOR_OBJECT, ResponseShape.PLAIN_URL_FIELD):
        return _extract_from_object(response, shape, events)

    raise ExtractionError(type(response).__name__)

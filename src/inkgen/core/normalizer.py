"""EXIF orientation normalization for uploaded images.

Phone cameras store pixels in sensor orientation and record the intended
rotation in an EXIF tag.  Upstream models ignore that tag, so an upright
portrait can come back sideways.  Before any image is sent to the provider
it is rotated according to its EXIF orientation, stripped of all metadata
and re-encoded as JPEG.

Normalization never fails the caller.  If an image cannot be decoded or
re-encoded, the original value is returned unchanged and a
``normalization_fallback`` event is emitted; the provider will reject a truly
invalid image downstream with a clearer error.
"""

from __future__ import annotations

import asyncio
import base64
import re
from collections.abc import Mapping, Sequence
from io import BytesIO
from typing import Any

from PIL import Image, ImageOps

from inkgen.core.events import NORMALIZATION_FALLBACK, EventSink, default_sink

# Provider input fields that carry images.  Anything else passes through.
IMAGE_FIELDS: tuple[str, ...] = (
    "image",
    "image_input",
    "reference_image",
    "conditioning_image",
    "mask_image",
    "mask",
)

OUTPUT_MEDIA_TYPE = "image/jpeg"
JPEG_QUALITY = 95

_DATA_URI_PREFIX = re.compile(r"^data:image/[^;]+;base64,")


def to_data_uri(data: bytes, media_type: str) -> str:
    """Wrap raw bytes in a base64 data URI.

    Args:
        data: Raw file bytes.
        media_type: Declared media type (e.g. ``image/png``).

    Returns:
        ``data:<media_type>;base64,<payload>``
    """
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


def _decode(image: str) -> bytes:
    payload = _DATA_URI_PREFIX.sub("", image, count=1)
    # MIME-wrapped base64 carries line breaks.
    payload = "".join(payload.split())
    return base64.b64decode(payload, validate=True)


def _reencode(raw: bytes) -> bytes:
    with Image.open(BytesIO(raw)) as img:
        upright = ImageOps.exif_transpose(img)
        if upright.mode != "RGB":
            upright = upright.convert("RGB")
        # A fresh image built from the pixel data carries no EXIF/ICC/XMP.
        clean = Image.frombytes(upright.mode, upright.size, upright.tobytes())
    buffer = BytesIO()
    clean.save(buffer, format="JPEG", quality=JPEG_QUALITY)
    return buffer.getvalue()


def normalize_image(image: str, events: EventSink = default_sink) -> str:
    """Rotate an encoded image upright and strip its metadata.

    Args:
        image: A data URI or bare base64 payload.
        events: Sink notified when the fallback is taken.

    Returns:
        A ``data:image/jpeg;base64,...`` URI, or ``image`` unchanged if it
        could not be processed.
    """
    try:
        raw = _decode(image)
        return to_data_uri(_reencode(raw), OUTPUT_MEDIA_TYPE)
    except Exception as exc:
        events.emit(
            NORMALIZATION_FALLBACK,
            reason=type(exc).__name__,
            detail=str(exc),
        )
        return image


async def normalize_images(images: Sequence[Any], events: EventSink = default_sink) -> list[Any]:
    """Normalize a sequence of images concurrently, preserving order.

    Each string element is normalized in its own worker thread; non-string
    elements are returned as-is.  A failure in one element only affects that
    element.
    """

    async def _one(item: Any) -> Any:
        if not isinstance(item, str):
            return item
        return await asyncio.to_thread(normalize_image, item, events)

    return list(await asyncio.gather(*(_one(item) for item in images)))


async def normalize_payload(
    payload: Mapping[str, Any],
    events: EventSink = default_sink,
) -> dict[str, Any]:
    """Return a copy of ``payload`` with every recognized image field normalized.

    Args:
        payload: Provider input mapping.  It is not modified.
        events: Sink notified when a fallback is taken.

    Returns:
        A new dictionary.  Recognized fields holding a string are normalized;
        recognized fields holding a list or tuple have every element
        normalized; all other fields are copied unchanged.
    """
    normalized = dict(payload)
    for field in IMAGE_FIELDS:
        value = normalized.get(field)
        if not value:
            continue
        if isinstance(value, str):
            normalized[field] = await asyncio.to_thread(normalize_image, value, events)
        elif isinstance(value, (list, tuple)):
            normalized[field] = await normalize_images(value, events)
    return normalized

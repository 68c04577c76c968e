"""Generation features built on the provider gateway.

Each feature follows the same pipeline:

1. Validate the required fields (``ValidationError`` before any work).
2. Normalize every image field (:mod:`inkgen.core.normalizer`).
3. Build the provider input from the feature's fixed model and defaults.
4. Run the model (:class:`~inkgen.core.gateway.ProviderGateway`).
5. Extract the result URL (:func:`~inkgen.core.extractor.extract_url`).

Features
--------
==============================  ========================================
Method                          Model
==============================  ========================================
``remove_background``           ``recraft-ai/recraft-remove-background``
``generate_image``              ``google/imagen-4``
``style_single_image``          ``google/nano-banana``
``style_image``                 ``google/nano-banana``
``add_tattoo``                  ``black-forest-labs/flux-fill-pro``
``generate_with_references``    ``bytedance/seedream-4``
==============================  ========================================

The per-feature defaults below are part of each feature's behaviour and are
not configurable.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from inkgen.core.errors import ValidationError
from inkgen.core.events import EventSink, default_sink
from inkgen.core.extractor import extract_url
from inkgen.core.gateway import ProviderGateway
from inkgen.core.normalizer import normalize_images, normalize_payload

logger = logging.getLogger(__name__)

BACKGROUND_REMOVAL_MODEL = "recraft-ai/recraft-remove-background"
TEXT_TO_IMAGE_MODEL = "google/imagen-4"
STYLE_MODEL = "google/nano-banana"
TATTOO_MODEL = "black-forest-labs/flux-fill-pro"
REFERENCE_MODEL = "bytedance/seedream-4"

STYLE_DEFAULTS: dict[str, Any] = {
    "aspect_ratio": "match_input_image",
    "output_format": "jpg",
}

TATTOO_DEFAULTS: dict[str, Any] = {
    "steps": 50,
    "guidance": 60,
    "outpaint": "None",
    "output_format": "jpg",
    "safety_tolerance": 2,
    "prompt_upsampling": False,
}

REFERENCE_DEFAULTS: dict[str, Any] = {
    "size": "2K",
    "enhance_prompt": True,
    "sequential_image_generation": "disabled",
}

MAX_STYLE_IMAGES = 2

# Request fields that identify the caller and never reach the provider.
CALLER_FIELDS: tuple[str, ...] = ("userId",)


class GenerationService:
    """Image generation features.

    Args:
        gateway: Provider gateway used for every model run.
        events: Sink passed to the normalizer and the extractor.
    """

    def __init__(self, gateway: ProviderGateway, events: EventSink = default_sink) -> None:
        self.gateway = gateway
        self.events = events

    async def _run(self, model_id: str, provider_input: Mapping[str, Any]) -> str:
        output = await self.gateway.invoke(model_id, provider_input)
        url = extract_url(output, self.events)
        logger.info("Model %s returned %s", model_id, url)
        return url

    async def _normalize_one(self, image: str) -> str:
        return (await normalize_images([image], self.events))[0]

    async def remove_background(self, image: str | None) -> str:
        """Remove the background of ``image`` and return the result URL."""
        if not image:
            raise ValidationError("Image data is required for background removal")

        normalized = await self._normalize_one(image)
        return await self._run(BACKGROUND_REMOVAL_MODEL, {"image": normalized})

    async def generate_image(self, payload: Mapping[str, Any]) -> str:
        """Generate an image from a free-form provider payload.

        The payload must contain a non-empty ``prompt``.  Every other field is
        passed to the model verbatim, except caller identifiers and image
        fields, which are normalized first.
        """
        prompt = payload.get("prompt") if payload else None
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValidationError("A valid input object with a prompt is required.")

        logger.info("Starting image generation: %.50s", prompt)
        provider_input = {k: v for k, v in payload.items() if k not in CALLER_FIELDS}
        provider_input = await normalize_payload(provider_input, self.events)
        return await self._run(TEXT_TO_IMAGE_MODEL, provider_input)

    async def style_image(self, images: Sequence[str] | None, style: str | None) -> str:
        """Restyle or composite one or two images according to ``style``."""
        if not images:
            raise ValidationError("At least one image is required for styling")
        if len(images) > MAX_STYLE_IMAGES:
            raise ValidationError(f"Maximum of {MAX_STYLE_IMAGES} images allowed")
        if not style or not isinstance(style, str):
            raise ValidationError("Style prompt is required and must be a string")

        normalized = await normalize_images(images, self.events)
        return await self._run(
            STYLE_MODEL,
            {"image_input": normalized, "prompt": style, **STYLE_DEFAULTS},
        )

    async def style_single_image(self, image: str | None, style: str | None) -> str:
        """Restyle a single image."""
        if not image:
            raise ValidationError("Image is required for styling")
        return await self.style_image([image], style)

    async def add_tattoo(self, prompt: str | None, photo: str | None, mask: str | None) -> str:
        """Inpaint a tattoo described by ``prompt`` into ``photo`` inside ``mask``."""
        if not prompt:
            raise ValidationError("Prompt is required for tattoo generation.")
        if not photo or not mask:
            raise ValidationError("Both image files are required.")

        normalized_photo, normalized_mask = await normalize_images([photo, mask], self.events)
        return await self._run(
            TATTOO_MODEL,
            {"image": normalized_photo, "mask": normalized_mask, "prompt": prompt, **TATTOO_DEFAULTS},
        )

    async def generate_with_references(
        self,
        prompt: str | None,
        images: Sequence[str] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> str:
        """Generate an image from ``prompt`` guided by optional reference images.

        ``options`` override the feature defaults; ``prompt`` always wins.
        """
        if not prompt:
            raise ValidationError("Prompt is required for image generation")

        normalized = await normalize_images(images or [], self.events)
        return await self._run(
            REFERENCE_MODEL,
            {**REFERENCE_DEFAULTS, "image_input": normalized, **(options or {}), "prompt": prompt},
        )

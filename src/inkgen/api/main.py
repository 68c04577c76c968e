"""Inkgen - FastAPI Application.

This module is the single entry point for the web application.  It defines
the FastAPI ``app`` instance, all REST API routes, and the ``main()`` CLI
function that launches the uvicorn server.

Architecture
------------
The application is a stateless proxy in front of Replicate:

- **Clients** (Replicate, RevenueCat over ``httpx``, Firestore) are built
  once in the lifespan handler and injected into the
  :class:`~inkgen.core.generation.GenerationService` and the
  :class:`~inkgen.core.quota.QuotaGuard`, both stored on ``app.state``.
- **Uploads** arrive as multipart files and are converted to data URIs
  before they reach the normalizer.
- **Errors** propagate out of the routes and are rendered by the handlers in
  :mod:`inkgen.api.errors`.

Endpoints
---------
========  ==============================  ====================================
Method    Path                            Purpose
========  ==============================  ====================================
GET       ``/``                           Liveness text
GET       ``/health``                     Health check
POST      ``/api/bg-removal``             Remove the background of an image
POST      ``/api/generate-image``         Text-to-image (quota metered)
POST      ``/api/styleImage/single``      Restyle one image
POST      ``/api/styleImage``             Restyle or composite 1-2 images
POST      ``/api/add-Tattoo``             Inpaint a tattoo into a photo
POST      ``/api/generateImage``          Generate with optional references
========  ==============================  ====================================

Usage
-----
CLI (installed entry point)::

    inkgen

Direct invocation::

    python -m inkgen.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from inkgen import __version__
from inkgen.api.errors import register_exception_handlers
from inkgen.api.models import (
    GenerateImageResponse,
    HealthResponse,
    ImageUrlResponse,
    TextToImageRequest,
)
from inkgen.core.config import InkgenConfig, config
from inkgen.core.errors import ErrorKind, GenerationError, QuotaExceededError, ValidationError
from inkgen.core.events import EventSink, default_sink
from inkgen.core.gateway import ProviderClient, ProviderGateway
from inkgen.core.generation import GenerationService
from inkgen.core.normalizer import to_data_uri
from inkgen.core.quota import DenialReason, QuotaGuard
from inkgen.core.subscriptions import RevenueCatClient, SubscriptionLookup
from inkgen.core.usage_store import FirestoreUsageStore, InMemoryUsageStore, UsageStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Client construction.
# ---------------------------------------------------------------------------


def build_provider_client(cfg: InkgenConfig) -> ProviderClient:
    """Create the Replicate client."""
    import replicate

    return replicate.Client(api_token=cfg.replicate_api_token)


def build_usage_store(cfg: InkgenConfig) -> UsageStore:
    """Create the usage store selected by ``cfg.usage_backend``."""
    if cfg.usage_backend == "memory":
        logger.warning("Using in-memory usage store; daily counts reset on restart.")
        return InMemoryUsageStore()
    return FirestoreUsageStore.from_project(cfg.firestore_project, cfg.usage_collection)


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(
    cfg: InkgenConfig = config,
    *,
    provider_client: ProviderClient | None = None,
    subscriptions: SubscriptionLookup | None = None,
    usage_store: UsageStore | None = None,
    events: EventSink = default_sink,
) -> FastAPI:
    """Build the FastAPI application.

    Any client passed explicitly replaces the one the lifespan handler would
    otherwise build from ``cfg``.

    Args:
        cfg: Application configuration.
        provider_client: Replicate client (or compatible object).
        subscriptions: Subscription status lookup.
        usage_store: Per-user usage document store.
        events: Sink for structured decision-point events.

    Returns:
        The configured application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Build the clients on startup and close them on shutdown."""
        async with httpx.AsyncClient(timeout=cfg.http_timeout_seconds) as http:
            gateway = ProviderGateway(
                provider_client or build_provider_client(cfg),
                events,
                max_retries=cfg.provider_max_retries,
            )
            app.state.generation = GenerationService(gateway, events)
            app.state.quota = QuotaGuard(
                subscriptions or RevenueCatClient(http, cfg.revenuecat_api_key, cfg.revenuecat_api_url),
                usage_store or build_usage_store(cfg),
                daily_limit=cfg.daily_limit,
            )
            logger.info("Inkgen %s ready (usage backend: %s).", __version__, cfg.usage_backend)

            yield  # Application runs here.

        logger.info("Inkgen shut down.")

    app = FastAPI(
        title="Inkgen",
        description="Image generation backend proxying requests to Replicate.",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.get("/", response_class=PlainTextResponse)(index)
    app.get("/health", response_model=HealthResponse)(health)
    app.include_router(router, prefix=cfg.api_prefix)
    return app


# ---------------------------------------------------------------------------
# Request helpers.
# ---------------------------------------------------------------------------


def get_generation(request: Request) -> GenerationService:
    return request.app.state.generation


def get_quota(request: Request) -> QuotaGuard:
    return request.app.state.quota


async def read_upload(upload: UploadFile | None, default_media_type: str | None = None) -> str | None:
    """Convert an uploaded file to a data URI.

    Returns ``None`` when no file was sent, the file is empty, or no media
    type is known.
    """
    if upload is None:
        return None
    data = await upload.read()
    media_type = upload.content_type or default_media_type
    if not data or not media_type:
        return None
    return to_data_uri(data, media_type)


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------

router = APIRouter()


async def index() -> str:
    """Liveness text for load balancers that only check ``GET /``."""
    return "Image Processing Server is Running."


async def health() -> dict[str, Any]:
    """Return ``{"status": "ok"}``."""
    return {"status": "ok"}


@router.post("/bg-removal", response_model=ImageUrlResponse)
async def remove_background(
    image: UploadFile | None = File(default=None),
    generation: GenerationService = Depends(get_generation),
) -> ImageUrlResponse:
    """Remove the background of the uploaded ``image``."""
    image_uri = await read_upload(image)
    if image_uri is None:
        raise ValidationError('Image file is required in the "image" field.')

    image_url = await generation.remove_background(image_uri)
    return ImageUrlResponse(imageUrl=image_url)


@router.post("/generate-image", response_model=GenerateImageResponse)
async def generate_image(
    req: TextToImageRequest,
    generation: GenerationService = Depends(get_generation),
    quota: QuotaGuard = Depends(get_quota),
) -> GenerateImageResponse:
    """Text-to-image generation gated by the daily quota.

    This endpoint:

    1. Requires ``userId`` and a non-empty ``prompt``.
    2. Asks the quota guard for a decision (429 when the limit is reached).
    3. Runs the model with every other request field passed through.
    4. Records the generation for free users after it succeeds.

    Raises:
        ValidationError: 400 for missing ``userId`` or ``prompt``.
        QuotaExceededError: 429 when a free user has no generations left.
        GenerationError: Provider failures, mapped by the error responder.
    """
    if not req.userId:
        raise ValidationError("userId is required in request body")
    if not req.prompt or not req.prompt.strip():
        raise ValidationError("A valid input object with a prompt is required.")

    decision = await quota.check(req.userId)
    if not decision.allowed:
        if decision.reason is DenialReason.LIMIT_REACHED:
            raise QuotaExceededError(quota.daily_limit)
        raise GenerationError(ErrorKind.UNKNOWN, "Failed to verify generation limit")

    image_url = await generation.generate_image(req.provider_payload())

    if decision.should_record:
        try:
            await quota.record_usage(req.userId)
        except Exception:
            logger.exception("Failed to record generation for %s.", req.userId)

    return GenerateImageResponse(
        imageUrl=image_url,
        remaining=decision.remaining,
        isSubscribed=decision.is_subscribed,
    )


@router.post("/styleImage/single", response_model=ImageUrlResponse)
async def style_single_image(
    image: UploadFile | None = File(default=None),
    style: str | None = Form(default=None),
    generation: GenerationService = Depends(get_generation),
) -> ImageUrlResponse:
    """Restyle a single uploaded image with the ``style`` prompt."""
    image_uri = await read_upload(image)
    if image_uri is None:
        raise ValidationError('Image file is required in the "image" field.')
    if not style:
        raise ValidationError('Style prompt is required in the "style" field.')

    image_url = await generation.style_single_image(image_uri, style)
    return ImageUrlResponse(imageUrl=image_url)


@router.post("/styleImage", response_model=ImageUrlResponse)
async def style_image(
    image1: UploadFile | None = File(default=None),
    image2: UploadFile | None = File(default=None),
    style: str | None = Form(default=None),
    generation: GenerationService = Depends(get_generation),
) -> ImageUrlResponse:
    """Restyle ``image1``, or composite ``image1`` and ``image2``."""
    first = await read_upload(image1)
    if first is None:
        raise ValidationError("At least image1 is required.")
    if not style:
        raise ValidationError('Style prompt is required in the "style" field.')

    images = [first]
    second = await read_upload(image2)
    if second is not None:
        images.append(second)
    logger.info("Styling with %d image(s).", len(images))

    image_url = await generation.style_image(images, style)
    return ImageUrlResponse(imageUrl=image_url)


@router.post("/add-Tattoo", response_model=ImageUrlResponse)
async def add_tattoo(
    resizedImage: UploadFile | None = File(default=None),
    originalPhoto: UploadFile | None = File(default=None),
    prompt: str | None = Form(default=None),
    generation: GenerationService = Depends(get_generation),
) -> ImageUrlResponse:
    """Inpaint the tattoo described by ``prompt`` into ``originalPhoto``.

    ``resizedImage`` is the mask marking where the tattoo goes.
    """
    if not prompt:
        raise ValidationError("Prompt is required for tattoo generation.")

    mask = await read_upload(resizedImage, "image/png")
    photo = await read_upload(originalPhoto, "image/jpeg")
    if mask is None or photo is None:
        raise ValidationError(
            "Both image files are required. "
            'Please ensure "resizedImage" (mask) and "originalPhoto" are uploaded.'
        )

    image_url = await generation.add_tattoo(prompt, photo, mask)
    return ImageUrlResponse(imageUrl=image_url)


@router.post("/generateImage", response_model=ImageUrlResponse)
async def generate_with_references(
    image1: UploadFile | None = File(default=None),
    image2: UploadFile | None = File(default=None),
    prompt: str | None = Form(default=None),
    generation: GenerationService = Depends(get_generation),
) -> ImageUrlResponse:
    """Generate an image from ``prompt`` with up to two reference images."""
    if not prompt:
        raise ValidationError("Prompt is required.")

    references = []
    for upload in (image1, image2):
        reference = await read_upload(upload)
        if reference is not None:
            references.append(reference)

    image_url = await generation.generate_with_references(prompt, references)
    return ImageUrlResponse(imageUrl=image_url)


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~inkgen.core.config.config` (which
    loads from ``INKGEN_SERVER_HOST`` and ``INKGEN_SERVER_PORT``
    environment variables).  Defaults to ``0.0.0.0:3000``.

    This function is registered as the ``inkgen`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "inkgen.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()

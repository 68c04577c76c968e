"""Pydantic request and response models for the Inkgen API.

These models define the JSON schema of the endpoints.  FastAPI uses them for
request parsing, response serialisation and OpenAPI documentation.

Field names follow the mobile client's camelCase contract (``userId``,
``imageUrl``, ``isSubscribed``).

Models
------
TextToImageRequest
    Payload for ``POST /api/generate-image``.  Unknown fields are kept and
    passed to the model verbatim.
ImageUrlResponse
    Success body of every generation endpoint.
GenerateImageResponse
    Success body of ``POST /api/generate-image`` with quota information.
ErrorResponse
    Uniform error envelope.
HealthResponse
    Body of ``GET /health``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TextToImageRequest(BaseModel):
    """Request body for the ``POST /api/generate-image`` endpoint.

    Only ``prompt`` and ``userId`` are interpreted by the server.  They are
    optional here so that missing values produce the uniform validation error
    envelope instead of a schema error.

    Attributes:
        prompt: Text prompt for the model.
        userId: Caller identifier used for subscription and quota checks.
    """

    model_config = ConfigDict(extra="allow")

    prompt: str | None = Field(
        default=None,
        description="Text prompt for the model.",
    )
    userId: str | None = Field(
        default=None,
        description="Caller identifier (RevenueCat app user id).",
    )

    def provider_payload(self) -> dict[str, Any]:
        """Return every field sent by the client, including extras."""
        return self.model_dump(exclude_none=True)


class ImageUrlResponse(BaseModel):
    """Success body of a generation endpoint."""

    success: bool = True
    imageUrl: str = Field(..., description="URL of the generated image.")


class GenerateImageResponse(ImageUrlResponse):
    """Success body of ``POST /api/generate-image``.

    Attributes:
        remaining: Free generations left today, computed before this
            generation was recorded.  ``None`` for subscribers.
        isSubscribed: Whether the caller holds an active subscription.
    """

    remaining: int | None = Field(default=None)
    isSubscribed: bool = Field(default=False)


class ErrorResponse(BaseModel):
    """Uniform error envelope returned for every failure."""

    model_config = ConfigDict(extra="allow")

    success: bool = False
    error: str = Field(..., description="Machine-readable error kind.")
    message: str = Field(..., description="Human-readable message.")


class HealthResponse(BaseModel):
    """Body of ``GET /health``."""

    status: str = "ok"

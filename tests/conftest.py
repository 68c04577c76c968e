"""Shared pytest fixtures for Inkgen tests."""

from __future__ import annotations

import base64
from collections.abc import Generator
from datetime import date
from io import BytesIO
from typing import Any
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from inkgen.api.main import create_app
from inkgen.core.config import InkgenConfig
from inkgen.core.usage_store import InMemoryUsageStore

RESULT_URL = "https://replicate.delivery/pbxt/result.jpg"
TODAY = date(2026, 10, 18)

# EXIF tag id for orientation.
ORIENTATION_TAG = 0x0112


class RecordingEventSink:
    """Event sink that keeps every event for assertions."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event: str, **fields: Any) -> None:
        self.events.append((event, fields))

    def named(self, event: str) -> list[dict[str, Any]]:
        return [fields for name, fields in self.events if name == event]


class FakeSubscriptions:
    """Subscription lookup backed by a set of subscribed user ids."""

    def __init__(self, subscribed: set[str] | None = None, error: Exception | None = None) -> None:
        self.subscribed = subscribed or set()
        self.error = error
        self.calls: list[str] = []

    async def is_subscribed(self, user_id: str) -> bool:
        self.calls.append(user_id)
        if self.error is not None:
            raise self.error
        return user_id in self.subscribed


def make_image_bytes(
    size: tuple[int, int] = (40, 20),
    fmt: str = "JPEG",
    mode: str = "RGB",
    orientation: int | None = None,
) -> bytes:
    """Create an encoded test image, optionally tagged with an EXIF orientation.

    Args:
        size: (width, height) of the stored pixels.
        fmt: Pillow format name.
        mode: Pillow image mode.
        orientation: EXIF orientation value (1-8) or None for no EXIF.

    Returns:
        Encoded image bytes.
    """
    color = (200, 30, 30, 255) if mode == "RGBA" else (200, 30, 30)
    img = Image.new(mode, size, color=color)
    buffer = BytesIO()
    if orientation is not None:
        exif = Image.Exif()
        exif[ORIENTATION_TAG] = orientation
        img.save(buffer, format=fmt, exif=exif.tobytes())
    else:
        img.save(buffer, format=fmt)
    return buffer.getvalue()


def make_data_uri(data: bytes, media_type: str = "image/jpeg") -> str:
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


def open_data_uri(uri: str) -> Image.Image:
    """Decode a data URI produced by the normalizer into a PIL image."""
    payload = uri.split(",", 1)[1]
    return Image.open(BytesIO(base64.b64decode(payload)))


@pytest.fixture
def events() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def test_config() -> InkgenConfig:
    """Create a test configuration that never touches external services.

    Returns:
        InkgenConfig instance for testing
    """
    return InkgenConfig(
        _env_file=None,
        replicate_api_token="test-token",
        revenuecat_api_key="test-key",
        usage_backend="memory",
        daily_limit=5,
    )


@pytest.fixture
def provider_client() -> AsyncMock:
    """Mock Replicate client whose runs return a single URL string."""
    client = AsyncMock()
    client.async_run.return_value = [RESULT_URL]
    return client


@pytest.fixture
def subscriptions() -> FakeSubscriptions:
    return FakeSubscriptions()


@pytest.fixture
def usage_store() -> InMemoryUsageStore:
    return InMemoryUsageStore()


@pytest.fixture
def test_client(
    test_config: InkgenConfig,
    provider_client: AsyncMock,
    subscriptions: FakeSubscriptions,
    usage_store: InMemoryUsageStore,
    events: RecordingEventSink,
) -> Generator[TestClient, None, None]:
    """TestClient for an app wired to mocks, with the lifespan running.

    Yields:
        TestClient whose app uses the mock provider, fake subscriptions and
        the in-memory usage store.
    """
    app = create_app(
        test_config,
        provider_client=provider_client,
        subscriptions=subscriptions,
        usage_store=usage_store,
        events=events,
    )
    with TestClient(app, raise_server_exceptions=False) as client:
        app.state.quota.today = lambda: TODAY
        yield client


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes()

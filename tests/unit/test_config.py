"""Tests for inkgen.core.config — configuration management.

Tests cover:
- Default values for all configuration fields.
- Environment variable overrides via the INKGEN_ prefix.
- Pydantic validation constraints (port range, retry bound, backend literal).
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from inkgen.core.config import InkgenConfig


@pytest.fixture
def clean_env(monkeypatch):
    """Remove INKGEN_* variables that would leak into defaults."""
    for name in (
        "INKGEN_USAGE_BACKEND",
        "INKGEN_DAILY_LIMIT",
        "INKGEN_SERVER_PORT",
        "INKGEN_API_PREFIX",
        "INKGEN_PROVIDER_MAX_RETRIES",
    ):
        monkeypatch.delenv(name, raising=False)


class TestConfigDefaults:
    """Verify that InkgenConfig provides the documented defaults."""

    def test_defaults(self, clean_env):
        cfg = InkgenConfig(_env_file=None)
        assert cfg.usage_backend == "firestore"
        assert cfg.usage_collection == "users"
        assert cfg.daily_limit == 5
        assert cfg.api_prefix == "/api"
        assert cfg.server_port == 3000
        assert cfg.provider_max_retries == 0
        assert cfg.cors_allow_origins == ["*"]
        assert cfg.revenuecat_api_url == "https://api.revenuecat.com/v1"

    def test_fixture_uses_memory_backend(self, test_config: InkgenConfig):
        assert test_config.usage_backend == "memory"


class TestEnvironmentOverrides:
    """Environment variables with the INKGEN_ prefix override defaults."""

    def test_daily_limit_from_env(self, monkeypatch):
        monkeypatch.setenv("INKGEN_DAILY_LIMIT", "10")
        assert InkgenConfig(_env_file=None).daily_limit == 10

    def test_backend_from_env(self, monkeypatch):
        monkeypatch.setenv("INKGEN_USAGE_BACKEND", "memory")
        assert InkgenConfig(_env_file=None).usage_backend == "memory"

    def test_prefix_is_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("inkgen_server_port", "8080")
        assert InkgenConfig(_env_file=None).server_port == 8080


class TestValidation:
    """Pydantic constraints reject out-of-range values."""

    def test_port_range(self):
        with pytest.raises(ValidationError):
            InkgenConfig(_env_file=None, server_port=80)

    def test_retry_bound(self):
        with pytest.raises(ValidationError):
            InkgenConfig(_env_file=None, provider_max_retries=4)

    def test_unknown_backend(self):
        with pytest.raises(ValidationError):
            InkgenConfig(_env_file=None, usage_backend="redis")

    def test_negative_daily_limit(self):
        with pytest.raises(ValidationError):
            InkgenConfig(_env_file=None, daily_limit=-1)

"""Configuration management for the Inkgen backend.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the INKGEN_ prefix,
allowing credentials and limits to change without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (INKGEN_* prefix)
2. .env file in the project root
3. Default values defined in InkgenConfig

Example .env file:
    INKGEN_REPLICATE_API_TOKEN=r8_xxx
    INKGEN_REVENUECAT_API_KEY=sk_xxx
    INKGEN_USAGE_BACKEND=firestore
    INKGEN_FIRESTORE_PROJECT=my-project
    INKGEN_DAILY_LIMIT=5

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
It is only read by the process entry point (``inkgen.api.main``); components
such as the gateway and the quota guard receive their clients and limits
explicitly when the application starts.

Usage Example
-------------
    from inkgen.core.config import config

    print(config.daily_limit)
    print(config.usage_backend)

Usage Backends
--------------
- ``firestore``: per-user counters live in a Firestore collection
  (``usage_collection``, default ``users``).  Credentials are resolved by the
  Google client library (``GOOGLE_APPLICATION_CREDENTIALS`` or workload
  identity).
- ``memory``: counters live in process memory and are lost on restart.  Used
  for local development and tests.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class InkgenConfig(BaseSettings):
    """Main configuration for the Inkgen backend.

    Attributes
    ----------
    Provider Settings:
        replicate_api_token : str
            API token used by the Replicate client
        provider_max_retries : int
            Extra attempts for transient provider failures (0 disables retry)

    Subscription Settings:
        revenuecat_api_key : str
            Secret API key for the RevenueCat REST API
        revenuecat_api_url : str
            Base URL of the RevenueCat REST API
        http_timeout_seconds : float
            Timeout applied to outbound HTTP lookups

    Quota Settings:
        usage_backend : Literal["firestore", "memory"]
            Where per-user daily counters are stored
        firestore_project : str | None
            Google Cloud project for Firestore (None = library default)
        usage_collection : str
            Firestore collection holding one document per user
        daily_limit : int
            Free generations per user per calendar day

    Server Settings:
        api_prefix : str
            Path prefix shared by all generation routes
        cors_allow_origins : list[str]
            Origins allowed by the CORS middleware
        server_host : str
            Bind address for uvicorn
        server_port : int
            Port for uvicorn (1024-65535)
        log_level : str
            Root logging level used by ``main()``

    Examples
    --------
    Create a configuration for local development:

        >>> cfg = InkgenConfig(usage_backend="memory", daily_limit=3)
        >>> cfg.daily_limit
        3
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="INKGEN_",
        case_sensitive=False,
    )

    # Provider settings
    replicate_api_token: str = Field(
        default="",
        description="API token for the Replicate client",
    )
    provider_max_retries: int = Field(
        default=0,
        description="Extra attempts for GENERATION_FAILED provider errors",
        ge=0,
        le=3,
    )

    # Subscription settings
    revenuecat_api_key: str = Field(
        default="",
        description="Secret API key for RevenueCat",
    )
    revenuecat_api_url: str = Field(
        default="https://api.revenuecat.com/v1",
        description="Base URL of the RevenueCat REST API",
    )
    http_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for outbound HTTP lookups",
        gt=0,
    )

    # Quota settings
    usage_backend: Literal["firestore", "memory"] = Field(
        default="firestore",
        description="Storage backend for per-user daily counters",
    )
    firestore_project: str | None = Field(
        default=None,
        description="Google Cloud project for Firestore (None = library default)",
    )
    usage_collection: str = Field(
        default="users",
        description="Firestore collection with one document per user",
    )
    daily_limit: int = Field(
        default=5,
        description="Free generations per user per calendar day",
        ge=0,
    )

    # Server settings
    api_prefix: str = Field(
        default="/api",
        description="Path prefix for the generation routes",
    )
    cors_allow_origins: list[str] = Field(
        default=["*"],
        description="Origins allowed by the CORS middleware",
    )
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=3000,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: str = Field(
        default="INFO",
        description="Root logging level",
    )


# Global configuration instance
# Loaded from environment variables (INKGEN_* prefix) and the .env file.
config = InkgenConfig()

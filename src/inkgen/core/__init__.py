"""Core functionality for the Inkgen backend.

Architecture Overview
---------------------
The core package is layered leaf-first:

1. **Configuration Layer** (config.py):
   - Environment-based configuration using Pydantic Settings
   - All settings prefixed with INKGEN_ in .env files

2. **Image Layer** (normalizer.py):
   - EXIF orientation correction and metadata stripping before upload

3. **Provider Layer** (gateway.py, extractor.py):
   - Replicate model runs with data-driven error classification
   - Result URL extraction across provider response shapes

4. **Feature Layer** (generation.py):
   - One method per generation feature with fixed model defaults

5. **Quota Layer** (quota.py, subscriptions.py, usage_store.py):
   - Subscription lookups, per-user daily counters, allow/deny decisions

6. **Support Utilities**:
   - errors.py: Error taxonomy shared by every layer
   - events.py: Structured decision-point events
"""

from .config import InkgenConfig, config
from .errors import ErrorKind, ExtractionError, GenerationError, QuotaExceededError, ValidationError
from .extractor import extract_url
from .gateway import ProviderGateway
from .generation import GenerationService
from .normalizer import normalize_image, normalize_images, normalize_payload
from .quota import QuotaDecision, QuotaGuard, QuotaState

__all__ = [
    "InkgenConfig",
    "config",
    "ErrorKind",
    "ExtractionError",
    "GenerationError",
    "QuotaExceededError",
    "ValidationError",
    "extract_url",
    "ProviderGateway",
    "GenerationService",
    "normalize_image",
    "normalize_images",
    "normalize_payload",
    "QuotaDecision",
    "QuotaGuard",
    "QuotaState",
]

"""Inkgen - image-generation backend proxying requests to Replicate."""

__version__ = "0.3.0"

from inkgen.core.config import InkgenConfig, config

__all__ = [
    "InkgenConfig",
    "config",
]

"""Layered configuration and listen-address resolution for network services."""

from .endpoints import Endpoint, normalize_endpoint
from .logging import configure_logging
from .resolver import ConfigResolver
from .snapshot import ConfigSnapshot, merge_layers

__all__ = [
    "ConfigResolver",
    "ConfigSnapshot",
    "Endpoint",
    "merge_layers",
    "normalize_endpoint",
    "configure_logging",
]

"""
AI Providers Package
Per-vendor adapters behind a single generate interface.
"""

from .adapters import get_adapter, ProviderAdapter, UpstreamError, validate_base_url

__all__ = [
    "get_adapter",
    "ProviderAdapter",
    "UpstreamError",
    "validate_base_url",
]

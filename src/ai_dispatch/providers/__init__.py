"""
Provider configuration and registry.
"""

from ai_dispatch.providers.config import (
    DEFAULT_PROVIDERS,
    DispatchSettings,
    ProviderConfig,
    default_provider_configs,
    load_provider_configs,
)
from ai_dispatch.providers.registry import ProviderRegistry

__all__ = [
    "DEFAULT_PROVIDERS",
    "DispatchSettings",
    "ProviderConfig",
    "ProviderRegistry",
    "default_provider_configs",
    "load_provider_configs",
]

"""Configuration for the happening-now service."""

from .settings import (
    CacheConfig,
    CommunityConfig,
    PredictHQConfig,
    ProviderConfig,
    Settings,
    TicketmasterConfig,
    load_settings,
    validate_settings,
)

__all__ = [
    "CacheConfig",
    "CommunityConfig",
    "PredictHQConfig",
    "ProviderConfig",
    "Settings",
    "TicketmasterConfig",
    "load_settings",
    "validate_settings",
]

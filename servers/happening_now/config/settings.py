"""
Injected configuration for providers, stores and the cache layer.

Credentials and base URLs live here, never in adapter modules. Every adapter
receives its own config object so tests can point it at a fake backend and
keys can rotate without a code change.
"""

import os
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field
import structlog

log = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0


class ProviderConfig(BaseModel):
    """Settings common to every provider adapter."""

    enabled: bool = True
    timeout: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    page_size: int = Field(default=50, gt=0)
    failure_threshold: int = Field(default=5, gt=0)
    recovery_timeout: float = Field(default=60.0, ge=0)


class TicketmasterConfig(ProviderConfig):
    api_key: Optional[str] = None
    base_url: str = "https://app.ticketmaster.com/discovery/v2"


class PredictHQConfig(ProviderConfig):
    api_key: Optional[str] = None
    base_url: str = "https://api.predicthq.com/v1"
    categories: list[str] = Field(default_factory=lambda: [
        "concerts",
        "sports",
        "festivals",
        "performing-arts",
        "community",
        "expos",
    ])


class CommunityConfig(ProviderConfig):
    """Community-submitted events, read from the managed PostgREST backend."""

    url: Optional[str] = None
    api_key: Optional[str] = None
    table: str = "community_events"


class CacheConfig(BaseModel):
    enabled: bool = True
    url: Optional[str] = None
    api_key: Optional[str] = None
    table: str = "happening_now_cache"
    timeout: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    tonight_ttl_minutes: float = Field(default=5, gt=0)
    default_ttl_minutes: float = Field(default=30, gt=0)
    coalesce: bool = False


class Settings(BaseModel):
    """Top-level settings for the happening-now service."""

    ticketmaster: TicketmasterConfig = Field(default_factory=TicketmasterConfig)
    predicthq: PredictHQConfig = Field(default_factory=PredictHQConfig)
    community: CommunityConfig = Field(default_factory=CommunityConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    default_radius_miles: float = Field(default=50, gt=0)
    default_limit: int = Field(default=50, ge=0)
    # Below this many ticketmaster results a coverage-fill signal is logged
    coverage_fill_threshold: int = Field(default=10, ge=0)


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build settings from environment variables.

    Args:
        env: Mapping to read from (defaults to os.environ)

    Returns:
        Settings with every unset value at its default
    """
    env = os.environ if env is None else env

    timeout = _float(env, "HAPPENING_NOW_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)
    supabase_url = env.get("SUPABASE_URL") or None
    supabase_key = env.get("SUPABASE_KEY") or None

    settings = Settings(
        ticketmaster=TicketmasterConfig(
            api_key=env.get("TICKETMASTER_API_KEY") or None,
            timeout=timeout,
        ),
        predicthq=PredictHQConfig(
            api_key=env.get("PREDICTHQ_API_KEY") or None,
            timeout=timeout,
        ),
        community=CommunityConfig(
            url=supabase_url,
            api_key=supabase_key,
            timeout=timeout,
        ),
        cache=CacheConfig(
            url=supabase_url,
            api_key=supabase_key,
            timeout=timeout,
            tonight_ttl_minutes=_float(env, "HAPPENING_NOW_CACHE_TTL_TONIGHT", 5),
            default_ttl_minutes=_float(env, "HAPPENING_NOW_CACHE_TTL_DEFAULT", 30),
        ),
    )

    log.debug(
        "settings_loaded",
        ticketmaster=settings.ticketmaster.api_key is not None,
        predicthq=settings.predicthq.api_key is not None,
        backend=supabase_url is not None,
    )
    return settings


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning("invalid_setting", name=name, value=raw, default=default)
        return default


def validate_settings(settings: Settings) -> list[str]:
    """
    Report configuration problems without raising.

    Returns:
        List of problem descriptions (empty if valid)
    """
    errors: list[str] = []

    if settings.ticketmaster.enabled and not settings.ticketmaster.api_key:
        errors.append("Ticketmaster is enabled but TICKETMASTER_API_KEY is not set")
    if settings.predicthq.enabled and not settings.predicthq.api_key:
        errors.append("PredictHQ is enabled but PREDICTHQ_API_KEY is not set")
    if settings.community.enabled and not settings.community.url:
        errors.append("Community events are enabled but SUPABASE_URL is not set")

    if settings.cache.tonight_ttl_minutes > settings.cache.default_ttl_minutes:
        errors.append(
            f"Tonight cache TTL ({settings.cache.tonight_ttl_minutes} min) is longer "
            f"than the default TTL ({settings.cache.default_ttl_minutes} min)"
        )

    return errors


def describe_settings(settings: Settings) -> dict[str, Any]:
    """Settings as a dict with credentials masked, for logs and the CLI."""
    data = settings.model_dump()
    for section in data.values():
        if isinstance(section, dict) and section.get("api_key"):
            section["api_key"] = "***"
    return data

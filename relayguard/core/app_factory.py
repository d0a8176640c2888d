"""Application factory for the relay plugin.

Centralizes construction of the data source, rate limiter, decision engine
and relay processor so the CLI and tests build them the same way.
"""

from __future__ import annotations

import logging

from relayguard.adapters.identity.factory import create_identity_source
from relayguard.adapters.rate_limit.base import AbstractRateLimiter
from relayguard.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from relayguard.core.config import FiltersSettings, Settings
from relayguard.services.decision_engine import DecisionEngine, rate_limit_active
from relayguard.services.relay_processor import RelayProcessor

logger = logging.getLogger(__name__)


def build_rate_limiter(filters: FiltersSettings) -> AbstractRateLimiter | None:
    """Create the per-identity limiter, or None when rate limiting is off."""

    if not rate_limit_active(filters):
        return None
    rate_limit = filters.rate_limit
    return InMemoryFixedWindowRateLimiter(
        limit=rate_limit.max_events,
        window_seconds=rate_limit.window_seconds,
        sweep_interval_seconds=rate_limit.sweep_interval_seconds,
    )


def create_engine(settings: Settings) -> DecisionEngine:
    """Build the decision engine for the configured data source.

    Raises:
        ConfigError: If the snapshot file is unusable.
        DataSourceConnectionError: If the store cannot be reached.
    """

    identity_source = create_identity_source(settings)
    engine = DecisionEngine(
        settings.filters,
        identity_source,
        build_rate_limiter(settings.filters),
    )

    filters = settings.filters
    logger.info(
        "engine.ready",
        extra={
            "datasource": identity_source.name,
            "identity_filter": filters.identity.mode.value if filters.identity.enabled else "off",
            "category_filter": filters.category.mode.value if filters.category.enabled else "off",
            "content_filter": filters.content.enabled,
            "content_categories": filters.content.categories,
            "rate_limit": rate_limit_active(filters),
        },
    )
    return engine


def create_processor(settings: Settings) -> RelayProcessor:
    """Create the relay processor wired with a fresh decision engine."""

    return RelayProcessor(
        create_engine(settings),
        on_error=settings.on_error,
        workers=settings.workers,
    )

"""Decision engine running the ordered write-policy filter pipeline.

For each event the filters run in a fixed order and the first one that
denies decides the outcome; later filters are not consulted:

1. rate limit (per identity, fixed window)
2. identity (blacklist/whitelist)
3. category (blacklist/whitelist)
4. content (blacklisted words, optionally only for some categories)

Data source failures propagate as QueryError. The engine never turns them
into an accept or a reject; that policy belongs to the caller.
"""

from __future__ import annotations

import logging

from relayguard.adapters.identity.base import AbstractIdentitySource
from relayguard.adapters.rate_limit.base import AbstractRateLimiter
from relayguard.core.config import FiltersSettings
from relayguard.core.errors import ValidationAppError
from relayguard.core.logging import short_identity
from relayguard.schemas.decision import Outcome, RejectReason
from relayguard.schemas.events import Event

logger = logging.getLogger(__name__)


def rate_limit_active(filters: FiltersSettings) -> bool:
    """Whether the rate-limit step runs at all (a zero budget disables it)."""
    return filters.rate_limit.enabled and filters.rate_limit.max_events > 0


def content_filter_applies(filters: FiltersSettings, category: int) -> bool:
    """Whether the content filter runs for events of this category.

    An empty category list means the filter applies to every category.
    """
    content = filters.content
    if not content.enabled:
        return False
    return not content.categories or category in content.categories


def evaluate(
    event: Event,
    filters: FiltersSettings,
    identity_source: AbstractIdentitySource,
    rate_limiter: AbstractRateLimiter | None,
) -> Outcome:
    """Decide whether an event may be written.

    Args:
        event: Event under evaluation.
        filters: Read-only filter configuration.
        identity_source: Backend answering identity/category/content lookups.
        rate_limiter: Per-identity limiter; required when rate limiting is active.

    Returns:
        Outcome: Accept, or Reject for the first filter that denied.

    Raises:
        QueryError: If a data source lookup fails.
        ValidationAppError: If rate limiting is active but no limiter was given.
    """
    if rate_limit_active(filters):
        if rate_limiter is None:
            raise ValidationAppError(
                code="rate_limiter_missing",
                message="Rate limiting is enabled but no rate limiter was provided",
            )
        result = rate_limiter.consume(event.identity)
        if not result.allowed:
            logger.debug(
                "filter.rate_limit.denied",
                extra={
                    "identity": short_identity(event.identity),
                    "retry_after_s": result.retry_after_seconds,
                },
            )
            return Outcome.reject(RejectReason.RATE_LIMITED)

    if filters.identity.enabled:
        if not identity_source.check_identity(event.identity, filters.identity.mode):
            return Outcome.reject(RejectReason.IDENTITY_BLOCKED, event.identity)

    if filters.category.enabled:
        if not identity_source.check_category(event.category, filters.category.mode):
            return Outcome.reject(RejectReason.CATEGORY_BLOCKED, event.category)

    if content_filter_applies(filters, event.category):
        text_result = identity_source.check_text(event.text)
        if not text_result.allowed:
            return Outcome.reject(
                RejectReason.CONTENT_BLOCKED, list(text_result.matched_words)
            )

    return Outcome.accept()


class DecisionEngine:
    """Filter pipeline bound to one data source, limiter and configuration.

    All collaborators are read-only after construction except the rate
    limiter, which handles its own locking, so one engine can be shared by
    any number of worker threads.
    """

    def __init__(
        self,
        filters: FiltersSettings,
        identity_source: AbstractIdentitySource,
        rate_limiter: AbstractRateLimiter | None = None,
    ) -> None:
        if rate_limit_active(filters) and rate_limiter is None:
            raise ValidationAppError(
                code="rate_limiter_missing",
                message="Rate limiting is enabled but no rate limiter was provided",
            )
        self._filters = filters
        self._identity_source = identity_source
        self._rate_limiter = rate_limiter

    @property
    def filters(self) -> FiltersSettings:
        return self._filters

    @property
    def identity_source(self) -> AbstractIdentitySource:
        return self._identity_source

    def evaluate(self, event: Event) -> Outcome:
        """Run the pipeline for one event. See the module-level evaluate()."""
        return evaluate(event, self._filters, self._identity_source, self._rate_limiter)

    def close(self) -> None:
        self._identity_source.close()

"""Daily generation quota for free users.

The quota guard decides whether a user may run a metered generation and
records the usage afterwards.  Subscribers are unlimited; everyone else gets
``daily_limit`` generations per calendar day.

Decision Flow
-------------
1. A user id is required (``ValidationError`` otherwise).
2. The subscription lookup runs first.  If it fails, the user is treated as
   unsubscribed (fail-open on the lookup only).
3. Subscribers are allowed without touching the usage record.
4. For free users the usage record is read.  A record from an earlier day is
   reset to zero for today as part of the read.  ``count >= daily_limit``
   denies the request; otherwise the decision carries
   ``remaining = daily_limit - count``.
5. Any other fault while deciding (store unavailable, corrupt record) denies
   the request (fail-secure).

The caller runs the generation and then calls :meth:`QuotaGuard.record_usage`
exactly once, only after success, and only for ``ALLOWED_FREE`` decisions.

Known Race
----------
The read in :meth:`check` and the read-modify-write in :meth:`record_usage`
are separate store round trips.  Two concurrent generations for the same
user near the limit can both be admitted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from enum import Enum

from inkgen.core.errors import ValidationError
from inkgen.core.subscriptions import SubscriptionLookup
from inkgen.core.usage_store import COUNT_FIELD, DATE_FIELD, UsageStore

logger = logging.getLogger(__name__)

DAILY_LIMIT = 5


class QuotaState(str, Enum):
    """Per-request quota states."""

    UNCHECKED = "unchecked"
    ALLOWED_SUBSCRIBED = "allowed_subscribed"
    ALLOWED_FREE = "allowed_free"
    DENIED = "denied"


class DenialReason(str, Enum):
    """Why a request was denied."""

    LIMIT_REACHED = "limit_reached"
    VERIFICATION_FAILED = "verification_failed"


@dataclass(frozen=True)
class UsageRecord:
    """A user's generation count for one calendar day."""

    count: int
    day: date


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of :meth:`QuotaGuard.check`.

    Attributes:
        user_id: The user the decision applies to.
        state: Resulting quota state.
        remaining: Generations left today, computed before this request is
            recorded.  ``None`` for subscribers and for faults.
        reason: Set when ``state`` is ``DENIED``.
    """

    user_id: str
    state: QuotaState
    remaining: int | None = None
    reason: DenialReason | None = None

    @property
    def allowed(self) -> bool:
        return self.state in (QuotaState.ALLOWED_FREE, QuotaState.ALLOWED_SUBSCRIBED)

    @property
    def is_subscribed(self) -> bool:
        return self.state is QuotaState.ALLOWED_SUBSCRIBED

    @property
    def should_record(self) -> bool:
        return self.state is QuotaState.ALLOWED_FREE


class QuotaGuard:
    """Gate metered generations behind a subscription or a daily counter.

    Args:
        subscriptions: Subscription status lookup.
        store: Per-user usage document store.
        daily_limit: Free generations per calendar day.
        today: Returns the current calendar day.
    """

    def __init__(
        self,
        subscriptions: SubscriptionLookup,
        store: UsageStore,
        daily_limit: int = DAILY_LIMIT,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.subscriptions = subscriptions
        self.store = store
        self.daily_limit = daily_limit
        self.today = today

    async def _is_subscribed(self, user_id: str) -> bool:
        try:
            return await self.subscriptions.is_subscribed(user_id)
        except Exception as exc:
            logger.warning("Subscription lookup failed for %s, treating as free: %s", user_id, exc)
            return False

    async def read_usage(self, user_id: str) -> UsageRecord:
        """Return today's usage, resetting a record left over from an earlier day."""
        today = self.today()
        document = await self.store.get(user_id)
        if document is None:
            return UsageRecord(count=0, day=today)

        if document.get(DATE_FIELD) != today.isoformat():
            logger.info("Resetting daily count for %s (stored day %s).", user_id, document.get(DATE_FIELD))
            await self.store.set(user_id, {COUNT_FIELD: 0, DATE_FIELD: today.isoformat()})
            return UsageRecord(count=0, day=today)

        count = int(document.get(COUNT_FIELD) or 0)
        if count < 0:
            raise ValueError(f"Negative generation count for {user_id}: {count}")
        return UsageRecord(count=count, day=today)

    async def check(self, user_id: str | None) -> QuotaDecision:
        """Decide whether ``user_id`` may run a metered generation.

        Raises:
            ValidationError: If ``user_id`` is missing.
        """
        if not user_id:
            raise ValidationError("userId is required in request body")

        try:
            if await self._is_subscribed(user_id):
                return QuotaDecision(user_id, QuotaState.ALLOWED_SUBSCRIBED)

            usage = await self.read_usage(user_id)
        except Exception:
            logger.exception("Failed to verify generation limit for %s.", user_id)
            return QuotaDecision(
                user_id,
                QuotaState.DENIED,
                reason=DenialReason.VERIFICATION_FAILED,
            )

        if usage.count >= self.daily_limit:
            logger.info("User %s reached the daily limit (%d).", user_id, self.daily_limit)
            return QuotaDecision(
                user_id,
                QuotaState.DENIED,
                remaining=0,
                reason=DenialReason.LIMIT_REACHED,
            )

        return QuotaDecision(
            user_id,
            QuotaState.ALLOWED_FREE,
            remaining=self.daily_limit - usage.count,
        )

    async def record_usage(self, user_id: str) -> int:
        """Increment today's count for ``user_id`` and return the new count."""
        today = self.today()
        document = await self.store.get(user_id) or {}
        current = int(document.get(COUNT_FIELD) or 0) if document.get(DATE_FIELD) == today.isoformat() else 0
        await self.store.set(user_id, {COUNT_FIELD: current + 1, DATE_FIELD: today.isoformat()})
        logger.info("Recorded generation %d for %s.", current + 1, user_id)
        return current + 1

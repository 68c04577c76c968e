"""Subscription status lookups against the RevenueCat REST API."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)


class SubscriptionLookup(Protocol):
    """Answers whether a user currently holds an active subscription."""

    async def is_subscribed(self, user_id: str) -> bool: ...


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def has_active_entitlement(subscriber: dict[str, Any], now: datetime | None = None) -> bool:
    """Return ``True`` if any entitlement is lifetime or not yet expired.

    Args:
        subscriber: The ``subscriber`` object of a RevenueCat response.
        now: Reference time (defaults to the current UTC time).
    """
    now = now or datetime.now(timezone.utc)
    entitlements = subscriber.get("entitlements") or {}
    for entitlement in entitlements.values():
        expires = entitlement.get("expires_date")
        if expires is None or _parse_timestamp(expires) > now:
            return True
    return False


class RevenueCatClient:
    """Read subscriber entitlements from RevenueCat.

    Errors are raised to the caller; the quota guard decides how to treat an
    unavailable lookup.

    Args:
        http: Shared ``httpx.AsyncClient``.
        api_key: RevenueCat secret API key.
        base_url: RevenueCat API root.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str,
        base_url: str = "https://api.revenuecat.com/v1",
    ) -> None:
        self.http = http
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    async def is_subscribed(self, user_id: str) -> bool:
        if not user_id:
            return False
        response = await self.http.get(
            f"{self.base_url}/subscribers/{user_id}",
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        response.raise_for_status()
        subscriber = response.json().get("subscriber") or {}
        return has_active_entitlement(subscriber)

"""Two-tier sliding-window rate limiter.

Tier 1 limits each client (keyed by its identity, usually the IP address).
Tier 2 limits the whole process against the provider budget and is shared
by all clients. Tiers are checked in that order and a tier-1 rejection never
touches tier 2, so the reported reason always names exactly one tier.

Each tier keeps a sorted event log in the shared store:

    1. window_start = now - window
    2. atomically: drop events <= window_start, count, add now, refresh expiry
    3. count >= limit -> reject and remove the event just added

A removal that fails is logged and the rejection still stands; the stray
event expires with the window.

If the store is unreachable the limiter fails open and flags the result as
degraded.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable

from app.exceptions import CacheUnavailable
from app.models import RateLimitResult
from app.services.cache.service import KeyValueStore

logger = logging.getLogger(__name__)

REASON_IP_LIMIT = "ip_limit"
REASON_SYSTEM_LIMIT = "system_limit"
REASON_DEGRADED = "degraded"

SYSTEM_KEY = "ratelimit:system"


@dataclass(frozen=True)
class RateLimitTier:
    """One sliding window: at most ``limit`` events per ``window_seconds``."""

    name: str
    limit: int
    window_seconds: int


@dataclass
class _TierOutcome:
    admitted: bool
    count: int
    member: str
    key: str


class RateLimiter:
    """Admits or rejects searches that would reach the provider."""

    def __init__(
        self,
        store: KeyValueStore,
        ip_limit: int = 10,
        ip_window_seconds: int = 300,
        system_limit: int = 100,
        system_window_seconds: int = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ip_tier = RateLimitTier(REASON_IP_LIMIT, ip_limit, ip_window_seconds)
        self._system_tier = RateLimitTier(
            REASON_SYSTEM_LIMIT, system_limit, system_window_seconds
        )
        self._clock = clock

    @staticmethod
    def build_client_key(client_id: str) -> str:
        return f"ratelimit:ip:{client_id}"

    async def _hit(self, tier: RateLimitTier, key: str, now: float) -> _TierOutcome:
        now_ms = int(now * 1000)
        window_start_ms = int((now - tier.window_seconds) * 1000)
        member = f"{now_ms}-{uuid.uuid4().hex}"

        count = await self._store.window_add(
            key,
            window_start=window_start_ms,
            score=now_ms,
            member=member,
            ttl_seconds=tier.window_seconds,
        )
        if count >= tier.limit:
            # Rejected checks must not consume budget
            await self._discard(key, member)
            return _TierOutcome(False, count, member, key)
        return _TierOutcome(True, count, member, key)

    async def _discard(self, key: str, member: str) -> None:
        """Remove one event, logging instead of raising if the store fails."""
        try:
            await self._store.window_remove(key, member)
        except CacheUnavailable as e:
            logger.warning(f"[RATE] Could not remove rejected event from {key}: {e}")

    @staticmethod
    def _reset_at_ms(tier: RateLimitTier, now: float) -> int:
        return int((now + tier.window_seconds) * 1000)

    def _rejected(self, tier: RateLimitTier, now: float) -> RateLimitResult:
        return RateLimitResult(
            admitted=False,
            limit=tier.limit,
            remaining=0,
            reset_at_ms=self._reset_at_ms(tier, now),
            reason=tier.name,
        )

    async def check_limit(self, client_id: str) -> RateLimitResult:
        """Check and count one search for ``client_id``.

        The returned limit/remaining/reset describe the per-client tier,
        which is what the client can act on, unless the process-wide tier
        rejected.
        """
        now = self._clock()
        ip_tier = self._ip_tier

        try:
            ip_outcome = await self._hit(ip_tier, self.build_client_key(client_id), now)
            if not ip_outcome.admitted:
                logger.info(
                    f"[RATE] {client_id} rejected: {ip_outcome.count}/{ip_tier.limit} "
                    f"in {ip_tier.window_seconds}s"
                )
                return self._rejected(ip_tier, now)

            system_outcome = await self._hit(self._system_tier, SYSTEM_KEY, now)
            if not system_outcome.admitted:
                # Give the client its slot back, the request never reaches the provider
                await self._discard(ip_outcome.key, ip_outcome.member)
                logger.warning(
                    f"[RATE] System budget exhausted: {system_outcome.count}/"
                    f"{self._system_tier.limit} in {self._system_tier.window_seconds}s"
                )
                return self._rejected(self._system_tier, now)
        except CacheUnavailable as e:
            logger.warning(f"[RATE] Store unavailable, failing open for {client_id}: {e}")
            return RateLimitResult(
                admitted=True,
                limit=ip_tier.limit,
                remaining=ip_tier.limit,
                reset_at_ms=self._reset_at_ms(ip_tier, now),
                reason=REASON_DEGRADED,
            )

        return RateLimitResult(
            admitted=True,
            limit=ip_tier.limit,
            remaining=max(0, ip_tier.limit - ip_outcome.count - 1),
            reset_at_ms=self._reset_at_ms(ip_tier, now),
        )

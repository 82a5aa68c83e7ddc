"""
Credit Service

Handles the credit ledger operations the worker needs: refunds for failed
stories, balance lookups and story pricing.
"""

import time
from typing import Callable, Dict, Optional
from uuid import UUID

from supabase import Client

from bedtime.config import config
from bedtime.jobs.models import StoryLength
from bedtime.utils.logging import storage_logger as logger
from .client import get_supabase_admin_client


# Used when the pricing table has no row for a key
FALLBACK_CREDIT_COSTS: Dict[StoryLength, int] = {
    StoryLength.SHORT: 20,
    StoryLength.MEDIUM: 35,
    StoryLength.LONG: 50,
}

FALLBACK_INTERACTIVE_CREDIT_COSTS: Dict[StoryLength, int] = {
    StoryLength.SHORT: 60,
    StoryLength.MEDIUM: 80,
    StoryLength.LONG: 100,
}


class PricingCache:
    """
    Time-limited copy of the story_pricing table (key -> credits).

    Owned by whoever creates it; call invalidate() after pricing changes.
    """

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._prices: Optional[Dict[str, int]] = None
        self._loaded_at = 0.0

    def get(self) -> Optional[Dict[str, int]]:
        if self._prices is None:
            return None
        if self._clock() - self._loaded_at >= self.ttl_seconds:
            return None
        return self._prices

    def store(self, prices: Dict[str, int]):
        self._prices = prices
        self._loaded_at = self._clock()

    def invalidate(self):
        self._prices = None
        self._loaded_at = 0.0


class CreditService:
    """
    Service class for credit operations.

    All credit modifications are rows in story_credit_transactions; the
    balance is their sum.
    """

    def __init__(self, client: Optional[Client] = None, pricing_cache: Optional[PricingCache] = None):
        self._client = client
        self.pricing_cache = pricing_cache or PricingCache(ttl_seconds=config.PRICING_CACHE_TTL_SECONDS)

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_admin_client()
        return self._client

    # =========================================================================
    # Balance
    # =========================================================================

    async def get_balance(self, user_id: UUID | str) -> int:
        """Get user's current credit balance."""
        result = (
            self.client.table("story_credit_transactions")
            .select("amount")
            .eq("user_id", str(user_id))
            .execute()
        )
        return sum(row["amount"] for row in result.data)

    # =========================================================================
    # Refunds
    # =========================================================================

    async def refund_for_story(
        self,
        user_id: UUID | str,
        story_id: UUID | str,
        amount: int,
    ) -> bool:
        """
        Give back the credits charged for a failed story.

        At most one refund is recorded per story; a second call is a no-op.
        The (story_id, type) unique key makes this hold for concurrent
        calls too: the conflicting insert is ignored and returns no rows.

        Returns:
            True if a refund row was written
        """
        result = (
            self.client.table("story_credit_transactions")
            .upsert(
                {
                    "user_id": str(user_id),
                    "story_id": str(story_id),
                    "type": "refund",
                    "amount": amount,
                    "reason": "story_failed",
                    "source": "worker",
                },
                on_conflict="story_id,type",
                ignore_duplicates=True,
            )
            .execute()
        )
        if not result.data:
            logger.warning("Refund already recorded", story_id=str(story_id))
            return False

        logger.info("Refunded credits", story_id=str(story_id), amount=amount)
        return True

    # =========================================================================
    # Pricing
    # =========================================================================

    async def _load_prices(self) -> Dict[str, int]:
        prices = self.pricing_cache.get()
        if prices is not None:
            return prices

        result = self.client.table("story_pricing").select("key, credits").execute()
        prices = {row["key"]: row["credits"] for row in result.data}
        self.pricing_cache.store(prices)
        return prices

    async def get_story_cost(self, length: StoryLength | str, interactive: bool = False) -> int:
        """Credits charged for a story of the given length."""
        story_length = StoryLength(length)
        prices = await self._load_prices()

        key = f"story_interactive_{story_length.value}" if interactive else f"story_{story_length.value}"
        if key in prices:
            return prices[key]

        fallback = FALLBACK_INTERACTIVE_CREDIT_COSTS if interactive else FALLBACK_CREDIT_COSTS
        return fallback[story_length]

import asyncio

import pytest

from bedtime.config import config
from bedtime.database.credits import CreditService, PricingCache
from bedtime.jobs.models import StoryLength

from .supabase_fake import FakeSupabase


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


async def test_refund_inserts_one_refund_row():
    db = FakeSupabase()
    service = CreditService(client=db)

    assert await service.refund_for_story("user-1", "story-1", 25) is True

    assert db.tables["story_credit_transactions"] == [{
        "user_id": "user-1",
        "story_id": "story-1",
        "type": "refund",
        "amount": 25,
        "reason": "story_failed",
        "source": "worker",
    }]


async def test_refund_is_idempotent_per_story():
    db = FakeSupabase()
    service = CreditService(client=db)

    await service.refund_for_story("user-1", "story-1", 25)
    assert await service.refund_for_story("user-1", "story-1", 25) is False

    assert len(db.tables["story_credit_transactions"]) == 1


async def test_concurrent_refunds_record_one_row():
    db = FakeSupabase()
    first = CreditService(client=db)
    second = CreditService(client=db)

    results = await asyncio.gather(
        first.refund_for_story("user-1", "story-1", 25),
        second.refund_for_story("user-1", "story-1", 25),
    )

    assert sorted(results) == [False, True]
    assert len(db.tables["story_credit_transactions"]) == 1
    assert db.upserts == [
        ("story_credit_transactions", ("story_id", "type"), True),
        ("story_credit_transactions", ("story_id", "type"), True),
    ]


def test_pricing_cache_ttl_comes_from_config(monkeypatch):
    monkeypatch.setattr(config, "PRICING_CACHE_TTL_SECONDS", 5.0)

    service = CreditService(client=FakeSupabase())

    assert service.pricing_cache.ttl_seconds == 5.0


async def test_balance_sums_ledger():
    db = FakeSupabase({"story_credit_transactions": [
        {"user_id": "user-1", "amount": 100, "type": "purchase"},
        {"user_id": "user-1", "amount": -25, "type": "charge"},
        {"user_id": "user-2", "amount": 40, "type": "purchase"},
    ]})
    service = CreditService(client=db)
    await service.refund_for_story("user-1", "story-1", 25)

    assert await service.get_balance("user-1") == 100


async def test_story_cost_prefers_pricing_table():
    db = FakeSupabase({"story_pricing": [
        {"key": "story_short", "credits": 15},
        {"key": "story_interactive_long", "credits": 120},
    ]})
    service = CreditService(client=db)

    assert await service.get_story_cost("short") == 15
    assert await service.get_story_cost(StoryLength.LONG, interactive=True) == 120


async def test_story_cost_falls_back_to_defaults():
    service = CreditService(client=FakeSupabase())

    assert await service.get_story_cost("medium") == 35
    assert await service.get_story_cost("long") == 50
    assert await service.get_story_cost("short", interactive=True) == 60


async def test_story_cost_rejects_unknown_length():
    service = CreditService(client=FakeSupabase())

    with pytest.raises(ValueError):
        await service.get_story_cost("epic")


async def test_pricing_is_cached_until_ttl_or_invalidation():
    clock = FakeClock()
    db = FakeSupabase({"story_pricing": [{"key": "story_short", "credits": 15}]})
    service = CreditService(client=db, pricing_cache=PricingCache(ttl_seconds=60, clock=clock))

    assert await service.get_story_cost("short") == 15
    db.tables["story_pricing"][0]["credits"] = 18

    clock.now += 30
    assert await service.get_story_cost("short") == 15

    service.pricing_cache.invalidate()
    assert await service.get_story_cost("short") == 18

    db.tables["story_pricing"][0]["credits"] = 22
    clock.now += 61
    assert await service.get_story_cost("short") == 22

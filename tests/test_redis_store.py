"""Tests for the Redis assessment store"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from redis.asyncio.client import Pipeline
from redis.exceptions import ConnectionError as RedisConnectionError

from remit_risk.config import settings
from remit_risk.exceptions import StoreUnavailableError
from remit_risk.models.risk_score import RiskAction, RiskAssessment, RiskLevel
from remit_risk.storage.redis_store import (
    ALL_INDEX_KEY,
    ASSESSMENT_KEY,
    EVENTS_KEY,
    HISTORY_KEY,
    PROFILE_KEY,
    USER_INDEX_KEY,
    RedisRiskStore,
)

T0 = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _assessment(tx_id: str, user_id: str = "user_1", at: datetime = T0) -> RiskAssessment:
    return RiskAssessment(
        transaction_id=tx_id,
        user_id=user_id,
        score=0.12,
        level=RiskLevel.LOW,
        reasons=["Round number transaction"],
        action=RiskAction.APPROVE,
        requires_review=False,
        timestamp=at,
    )


@pytest.mark.asyncio
async def test_save_and_get(store, redis_client):
    record = _assessment("tx_1")
    assert await store.save(record) is True

    loaded = await store.get("tx_1")
    assert loaded == record
    ttl = await redis_client.ttl(ASSESSMENT_KEY.format("tx_1"))
    assert 0 < ttl <= settings.ASSESSMENT_TTL_SEC


@pytest.mark.asyncio
async def test_assessment_is_created_once(store):
    original = _assessment("tx_1")
    assert await store.save(original) is True
    assert await store.save(_assessment("tx_1", user_id="intruder")) is False
    assert (await store.get("tx_1")).user_id == "user_1"


@pytest.mark.asyncio
async def test_get_missing_returns_none(store):
    assert await store.get("nope") is None


@pytest.mark.asyncio
async def test_listing_is_newest_first(store):
    for i in range(3):
        await store.save(_assessment(f"tx_{i}", at=T0 + timedelta(minutes=i)))
    await store.save(_assessment("other", user_id="user_2", at=T0 + timedelta(minutes=10)))

    assert [a.transaction_id for a in await store.list_by_user("user_1")] == ["tx_2", "tx_1", "tx_0"]
    assert [a.transaction_id for a in await store.list_all()] == ["other", "tx_2", "tx_1", "tx_0"]
    assert await store.list_by_user("nobody") == []


@pytest.mark.asyncio
async def test_expired_records_drop_out_of_listings(store, redis_client):
    await store.save(_assessment("tx_1"))
    await store.save(_assessment("tx_2", at=T0 + timedelta(minutes=1)))
    await redis_client.delete(ASSESSMENT_KEY.format("tx_1"))

    assert [a.transaction_id for a in await store.list_by_user("user_1")] == ["tx_2"]


@pytest.mark.asyncio
async def test_history_is_bounded_and_newest_first(store):
    for i in range(30):
        await store.append_transaction_history("user_1", Decimal(i), T0 + timedelta(minutes=i))

    recent = await store.get_recent_transactions("user_1")
    assert len(recent) == settings.HISTORY_MAX_ENTRIES
    assert recent[0].amount == Decimal(29)
    assert recent[0].timestamp == T0 + timedelta(minutes=29)
    assert len(await store.get_recent_transactions("user_1", 5)) == 5


@pytest.mark.asyncio
async def test_malformed_history_entries_are_skipped(store, redis_client):
    await store.append_transaction_history("user_1", Decimal("10.50"), T0)
    await redis_client.lpush(HISTORY_KEY.format("user_1"), "{not json")

    recent = await store.get_recent_transactions("user_1")
    assert [e.amount for e in recent] == [Decimal("10.50")]


@pytest.mark.asyncio
async def test_device_set(store):
    assert await store.add_device_fingerprint("user_1", "fp_a", T0) is True
    assert await store.add_device_fingerprint("user_1", "fp_a", T0 + timedelta(hours=1)) is False
    assert await store.add_device_fingerprint("user_1", "fp_b", T0) is True

    assert await store.count_devices("user_1") == 2
    assert await store.is_known_device("user_1", "fp_a") is True
    assert await store.is_known_device("user_1", "fp_c") is False


@pytest.mark.asyncio
async def test_profile_cache(store, redis_client):
    assert await store.get_account_created_at("user_1") is None
    await store.save_user_profile("user_1", T0)
    assert await store.get_account_created_at("user_1") == T0

    await redis_client.set(PROFILE_KEY.format("user_2"), "garbage")
    with pytest.raises(StoreUnavailableError):
        await store.get_account_created_at("user_2")


@pytest.mark.asyncio
async def test_event_log_is_capped(store, monkeypatch):
    monkeypatch.setattr(settings, "EVENT_LOG_MAX_ENTRIES", 3)
    for i in range(5):
        await store.record_event(_assessment(f"tx_{i}"))

    events = await store.recent_events(10)
    assert [e.transaction_id for e in events] == ["tx_4", "tx_3", "tx_2"]


@pytest.mark.asyncio
async def test_timeout_raises_store_unavailable():
    async def hang(*args, **kwargs):
        await asyncio.sleep(5)

    client = MagicMock()
    client.get = hang
    with pytest.raises(StoreUnavailableError):
        await RedisRiskStore(client, timeout=0.01).get("tx_1")


@pytest.mark.asyncio
async def test_corrupt_assessment_is_reported_as_unavailable(store, redis_client):
    await redis_client.set(ASSESSMENT_KEY.format("tx_bad"), "{not json")
    with pytest.raises(StoreUnavailableError):
        await store.get("tx_bad")


@pytest.mark.asyncio
async def test_listings_skip_corrupt_records(store, redis_client):
    await store.save(_assessment("tx_1"))
    await redis_client.set(ASSESSMENT_KEY.format("tx_bad"), '{"transaction_id": "tx_bad"}')
    await redis_client.zadd(USER_INDEX_KEY.format("user_1"), {"tx_bad": T0.timestamp()})

    assert [a.transaction_id for a in await store.list_by_user("user_1")] == ["tx_1"]


@pytest.mark.asyncio
async def test_event_log_skips_corrupt_entries(store, redis_client):
    await store.record_event(_assessment("tx_1"))
    await redis_client.lpush(EVENTS_KEY, "garbage")
    assert [e.transaction_id for e in await store.recent_events()] == ["tx_1"]


@pytest.mark.asyncio
async def test_failed_save_leaves_no_partial_record(store, monkeypatch):
    async def lost(self, raise_on_error=True):
        raise RedisConnectionError("connection lost")

    monkeypatch.setattr(Pipeline, "execute", lost)
    with pytest.raises(StoreUnavailableError):
        await store.save(_assessment("tx_1"))
    monkeypatch.undo()

    assert await store.get("tx_1") is None
    assert await store.list_all() == []
    assert await store.save(_assessment("tx_1")) is True
    assert [a.transaction_id for a in await store.list_all()] == ["tx_1"]


@pytest.mark.asyncio
async def test_concurrent_saves_of_one_id_index_it_once(store, redis_client):
    outcomes = await asyncio.gather(
        *(store.save(_assessment("tx_1", user_id=f"user_{i}")) for i in range(4))
    )
    assert outcomes.count(True) == 1
    assert await redis_client.zcard(ALL_INDEX_KEY) == 1

    winner = (await store.get("tx_1")).user_id
    for i in range(4):
        expected = ["tx_1"] if f"user_{i}" == winner else []
        assert [a.transaction_id for a in await store.list_by_user(f"user_{i}")] == expected

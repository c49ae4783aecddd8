"""Tests for the velocity analyzer"""

import asyncio
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from remit_risk.exceptions import StoreUnavailableError
from remit_risk.features.velocity import VelocityAnalyzer
from remit_risk.storage.redis_store import RedisRiskStore
from tests.conftest import DAYTIME, seed_history


@pytest.mark.asyncio
async def test_no_history_scores_zero(store, rules):
    result = await VelocityAnalyzer(store).compute("user_1", Decimal("500"), DAYTIME, rules)
    assert result.score == 0.0
    assert result.reasons == []


@pytest.mark.asyncio
async def test_more_than_three_in_last_hour(store, rules):
    await seed_history(
        store, "user_1", [(200, DAYTIME - timedelta(minutes=m)) for m in (50, 40, 20, 5)]
    )
    result = await VelocityAnalyzer(store).compute("user_1", Decimal("500"), DAYTIME, rules)
    assert result.reasons == ["High transaction velocity detected"]
    assert result.score == pytest.approx(0.5)


@pytest.mark.asyncio
async def test_three_in_last_hour_is_fine(store, rules):
    await seed_history(
        store, "user_1", [(200, DAYTIME - timedelta(minutes=m)) for m in (90, 40, 20, 5)]
    )
    result = await VelocityAnalyzer(store).compute("user_1", Decimal("500"), DAYTIME, rules)
    assert result.score == 0.0


@pytest.mark.asyncio
async def test_daily_amount_limit(store, rules):
    await seed_history(
        store,
        "user_1",
        [(15000, DAYTIME - timedelta(hours=h)) for h in (5, 4, 3)],
    )
    under = await VelocityAnalyzer(store).compute("user_1", Decimal("5000"), DAYTIME, rules)
    assert under.reasons == []

    over = await VelocityAnalyzer(store).compute("user_1", Decimal("5000.01"), DAYTIME, rules)
    assert over.reasons == ["Daily amount limit exceeded"]
    assert over.score == pytest.approx(0.6)


@pytest.mark.asyncio
async def test_daily_transaction_count(store, rules):
    # ten transfers today, none inside the trailing hour
    await seed_history(
        store,
        "user_1",
        [(100, DAYTIME - timedelta(hours=2, minutes=10 * i)) for i in range(10)],
    )
    result = await VelocityAnalyzer(store).compute("user_1", Decimal("100"), DAYTIME, rules)
    assert result.reasons == ["Daily transaction limit exceeded"]
    assert result.score == pytest.approx(0.4)


@pytest.mark.asyncio
async def test_previous_days_are_not_counted(store, rules):
    await seed_history(
        store,
        "user_1",
        [(20000, DAYTIME - timedelta(days=1, minutes=i)) for i in range(10)],
    )
    result = await VelocityAnalyzer(store).compute("user_1", Decimal("20000"), DAYTIME, rules)
    assert result.score == 0.0


@pytest.mark.asyncio
async def test_all_rules_clamp_to_one(store, rules):
    await seed_history(
        store,
        "user_1",
        [(5000, DAYTIME - timedelta(minutes=5 * i)) for i in range(10)],
    )
    result = await VelocityAnalyzer(store).compute("user_1", Decimal("1000"), DAYTIME, rules)
    assert len(result.reasons) == 3
    assert result.score == 1.0


@pytest.mark.asyncio
async def test_store_unavailable_degrades(store, rules):
    store.get_recent_transactions = AsyncMock(side_effect=StoreUnavailableError("down"))
    result = await VelocityAnalyzer(store).compute("user_1", Decimal("500"), DAYTIME, rules)
    assert result.score == pytest.approx(0.3)
    assert result.reasons == ["Unable to verify transaction history"]


@pytest.mark.asyncio
async def test_redis_error_degrades(rules):
    client = MagicMock()
    client.lrange = AsyncMock(side_effect=RedisConnectionError("refused"))
    result = await VelocityAnalyzer(RedisRiskStore(client)).compute(
        "user_1", Decimal("500"), DAYTIME, rules
    )
    assert result.reasons == ["Unable to verify transaction history"]


@pytest.mark.asyncio
async def test_slow_store_times_out_and_degrades(rules):
    async def hang(*args, **kwargs):
        await asyncio.sleep(5)

    client = MagicMock()
    client.lrange = hang
    result = await VelocityAnalyzer(RedisRiskStore(client, timeout=0.01)).compute(
        "user_1", Decimal("500"), DAYTIME, rules
    )
    assert result.reasons == ["Unable to verify transaction history"]

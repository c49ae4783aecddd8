"""Pytest fixtures for testing"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, List
from zoneinfo import ZoneInfo

import fakeredis
import pytest

from remit_risk.config import settings
from remit_risk.core.risk_engine import RiskEngine
from remit_risk.core.rules import RuleConfigService
from remit_risk.models.rules import RuleConfig
from remit_risk.models.transaction import (
    DeviceContext,
    TransactionInput,
    UserContext,
    UserLocation,
)
from remit_risk.storage.redis_store import RedisRiskStore

TZ = ZoneInfo(settings.TIMEZONE)
DAYTIME = datetime(2026, 3, 10, 14, 0, tzinfo=TZ)
NIGHT = datetime(2026, 3, 10, 23, 30, tzinfo=TZ)


class MutableClock:
    """Clock the tests can move forward."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def redis_client():
    """Isolated in-memory Redis server per test"""
    return fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def store(redis_client) -> RedisRiskStore:
    return RedisRiskStore(redis_client)


@pytest.fixture
def rules() -> RuleConfig:
    return RuleConfig.from_settings(settings)


@pytest.fixture
def rule_service(store, rules) -> RuleConfigService:
    return RuleConfigService(store, rules)


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock(DAYTIME)


@pytest.fixture
def engine(store, rule_service, clock) -> RiskEngine:
    return RiskEngine(store, rule_service, clock=clock)


@pytest.fixture
def make_tx() -> Callable[..., TransactionInput]:
    counter = {"n": 0}

    def _make(**overrides) -> TransactionInput:
        counter["n"] += 1
        data = {
            "transaction_id": f"tx_{counter['n']}",
            "user_id": "user_1",
            "amount": Decimal("250"),
            "currency": "ZAR",
            "recipient_country": "ZW",
            "kyc_verified": True,
        }
        data.update(overrides)
        return TransactionInput(**data)

    return _make


def make_user(user_id: str = "user_1", days_old: float = 30, country: str = "ZA", now: datetime = DAYTIME) -> UserContext:
    return UserContext(
        user_id=user_id,
        location=UserLocation(country=country),
        created_at=now - timedelta(days=days_old),
    )


def make_device(**overrides) -> DeviceContext:
    data = {
        "user_agent": "Mozilla/5.0 (Linux; Android 14) Mobile Safari/537.36",
        "ip": "41.13.22.7",
        "screen_resolution": "1080x2400",
        "timezone": "Africa/Johannesburg",
        "language": "en-ZA",
    }
    data.update(overrides)
    return DeviceContext(**data)


async def seed_history(
    store: RedisRiskStore, user_id: str, entries: List[tuple]
) -> None:
    """entries: (amount, timestamp) pairs, oldest first"""
    for amount, ts in entries:
        await store.append_transaction_history(user_id, Decimal(str(amount)), ts)

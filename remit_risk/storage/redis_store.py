"""
Redis-backed assessment store.

Key layout
==========
  risk_assessment:<tx_id>          ←  assessment JSON, written once under WATCH/MULTI (24 h)
  risk_assessments:user:<user_id>  ←  ZSET tx_id → epoch, per-user index
  risk_assessments:all             ←  ZSET tx_id → epoch, global index
  user_transactions:<user_id>      ←  LIST newest-first {amount, timestamp}, capped
  user_devices:<user_id>           ←  ZSET fingerprint → last-seen epoch
  user_profile:<user_id>           ←  cached profile JSON {created_at}
  risk_events                      ←  LIST newest-first assessment events, capped
  risk_rules:current               ←  active rule config JSON
  risk_rules:snapshots             ←  LIST newest-first {saved_at, rules}, capped

Every multi-step mutation goes through a MULTI pipeline so concurrent
assessments for the same user never race on read-modify-write.  Each call is
bounded by STORE_TIMEOUT_SEC; timeouts and Redis errors surface as
StoreUnavailableError.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Dict, List, Optional

import redis.asyncio as aioredis
from pydantic import ValidationError
from redis.exceptions import RedisError, WatchError

from remit_risk.config import settings
from remit_risk.exceptions import StoreUnavailableError
from remit_risk.models.risk_score import RiskAssessment
from remit_risk.models.rules import RuleConfig

logger = logging.getLogger(__name__)

ASSESSMENT_KEY = "risk_assessment:{}"
USER_INDEX_KEY = "risk_assessments:user:{}"
ALL_INDEX_KEY = "risk_assessments:all"
HISTORY_KEY = "user_transactions:{}"
DEVICES_KEY = "user_devices:{}"
PROFILE_KEY = "user_profile:{}"
EVENTS_KEY = "risk_events"
RULES_CURRENT_KEY = "risk_rules:current"
RULES_SNAPSHOTS_KEY = "risk_rules:snapshots"


# ── Connection ───────────────────────────────────────────────

async def get_redis_client() -> aioredis.Redis:
    """Create and return an async Redis client."""
    client = aioredis.Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        db=settings.REDIS_DB,
        password=settings.REDIS_PASSWORD or None,
        socket_timeout=settings.STORE_TIMEOUT_SEC,
        decode_responses=True,
    )
    await client.ping()
    logger.info("✅ Redis connected at %s:%d", settings.REDIS_HOST, settings.REDIS_PORT)
    return client


@dataclass(frozen=True)
class HistoryEntry:
    """One past transaction in a user's history window."""
    amount: Decimal
    timestamp: datetime


def _as_utc(ts: datetime) -> datetime:
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


class RedisRiskStore:
    """Assessment persistence plus the velocity / device auxiliary sets."""

    def __init__(self, client: aioredis.Redis, timeout: Optional[float] = None) -> None:
        self.client = client
        self.timeout = settings.STORE_TIMEOUT_SEC if timeout is None else timeout

    async def _bounded(self, op: str, fn: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        try:
            return await asyncio.wait_for(fn(*args), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise StoreUnavailableError(f"{op} timed out after {self.timeout}s") from exc
        except (RedisError, OSError) as exc:
            raise StoreUnavailableError(f"{op} failed: {exc}") from exc

    async def ping(self) -> bool:
        return bool(await self._bounded("ping", self.client.ping))

    # ── assessments ──────────────────────────────────────────

    async def save(self, assessment: RiskAssessment) -> bool:
        """Persist an assessment once. Returns False if the id was already taken."""
        return await self._bounded("save", self._save, assessment)

    async def _save(self, assessment: RiskAssessment) -> bool:
        ttl = settings.ASSESSMENT_TTL_SEC
        key = ASSESSMENT_KEY.format(assessment.transaction_id)
        epoch = _as_utc(assessment.timestamp).timestamp()
        user_index = USER_INDEX_KEY.format(assessment.user_id)
        # record and both index entries land together or not at all
        async with self.client.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                if await pipe.exists(key):
                    return False
                pipe.multi()
                pipe.set(key, assessment.model_dump_json(), ex=ttl)
                pipe.zadd(user_index, {assessment.transaction_id: epoch})
                pipe.zremrangebyscore(user_index, "-inf", epoch - ttl)
                pipe.expire(user_index, ttl)
                pipe.zadd(ALL_INDEX_KEY, {assessment.transaction_id: epoch})
                pipe.zremrangebyscore(ALL_INDEX_KEY, "-inf", epoch - ttl)
                await pipe.execute()
            except WatchError:
                return False
        return True

    async def get(self, transaction_id: str) -> Optional[RiskAssessment]:
        raw = await self._bounded("get", self.client.get, ASSESSMENT_KEY.format(transaction_id))
        if not raw:
            return None
        try:
            return RiskAssessment.model_validate_json(raw)
        except ValidationError as exc:
            raise StoreUnavailableError(f"corrupt assessment for transaction {transaction_id}") from exc

    async def list_by_user(self, user_id: str) -> List[RiskAssessment]:
        return await self._bounded("list_by_user", self._list_index, USER_INDEX_KEY.format(user_id))

    async def list_all(self) -> List[RiskAssessment]:
        return await self._bounded("list_all", self._list_index, ALL_INDEX_KEY)

    async def _list_index(self, index_key: str) -> List[RiskAssessment]:
        tx_ids = await self.client.zrevrange(index_key, 0, -1)
        if not tx_ids:
            return []
        rows = await self.client.mget([ASSESSMENT_KEY.format(t) for t in tx_ids])
        records: List[RiskAssessment] = []
        for tx_id, row in zip(tx_ids, rows):
            # expired records leave dangling index members
            if not row:
                continue
            try:
                records.append(RiskAssessment.model_validate_json(row))
            except ValidationError:
                logger.warning("Skipping corrupt assessment record %s", tx_id)
        records.sort(key=lambda a: _as_utc(a.timestamp), reverse=True)
        return records

    # ── transaction history window ───────────────────────────

    async def append_transaction_history(
        self, user_id: str, amount: Decimal, timestamp: datetime
    ) -> None:
        await self._bounded("append_transaction_history", self._append_history, user_id, amount, timestamp)

    async def _append_history(self, user_id: str, amount: Decimal, timestamp: datetime) -> None:
        key = HISTORY_KEY.format(user_id)
        entry = json.dumps({"amount": str(amount), "timestamp": _as_utc(timestamp).isoformat()})
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.lpush(key, entry)
            pipe.ltrim(key, 0, settings.HISTORY_MAX_ENTRIES - 1)
            pipe.expire(key, settings.HISTORY_TTL_SEC)
            await pipe.execute()

    async def get_recent_transactions(
        self, user_id: str, limit: Optional[int] = None
    ) -> List[HistoryEntry]:
        limit = limit or settings.HISTORY_MAX_ENTRIES
        rows = await self._bounded(
            "get_recent_transactions", self.client.lrange, HISTORY_KEY.format(user_id), 0, limit - 1
        )
        entries: List[HistoryEntry] = []
        for row in rows:
            try:
                data = json.loads(row)
                entries.append(
                    HistoryEntry(
                        amount=Decimal(data["amount"]),
                        timestamp=_as_utc(datetime.fromisoformat(data["timestamp"])),
                    )
                )
            except (ValueError, KeyError, TypeError, InvalidOperation):
                logger.warning("Skipping malformed history entry for user %s: %r", user_id, row)
        return entries

    # ── device set ───────────────────────────────────────────

    async def add_device_fingerprint(
        self, user_id: str, fingerprint: str, seen_at: Optional[datetime] = None
    ) -> bool:
        """Register a fingerprint; True when it was not in the set beforehand."""
        return await self._bounded("add_device_fingerprint", self._add_device, user_id, fingerprint, seen_at)

    async def _add_device(self, user_id: str, fingerprint: str, seen_at: Optional[datetime]) -> bool:
        key = DEVICES_KEY.format(user_id)
        now = _as_utc(seen_at or datetime.now(timezone.utc))
        retention = timedelta(days=settings.DEVICE_RETENTION_DAYS)
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(key, "-inf", (now - retention).timestamp())
            pipe.zadd(key, {fingerprint: now.timestamp()})
            pipe.expire(key, int(retention.total_seconds()))
            _, added, _ = await pipe.execute()
        return bool(added)

    async def count_devices(self, user_id: str) -> int:
        return int(await self._bounded("count_devices", self.client.zcard, DEVICES_KEY.format(user_id)))

    async def is_known_device(self, user_id: str, fingerprint: str) -> bool:
        score = await self._bounded("is_known_device", self.client.zscore, DEVICES_KEY.format(user_id), fingerprint)
        return score is not None

    # ── user profile cache ───────────────────────────────────

    async def save_user_profile(self, user_id: str, created_at: datetime) -> None:
        payload = json.dumps({"created_at": _as_utc(created_at).isoformat()})
        await self._bounded(
            "save_user_profile", self.client.setex, PROFILE_KEY.format(user_id), settings.PROFILE_TTL_SEC, payload
        )

    async def get_account_created_at(self, user_id: str) -> Optional[datetime]:
        raw = await self._bounded("get_account_created_at", self.client.get, PROFILE_KEY.format(user_id))
        if not raw:
            return None
        try:
            return _as_utc(datetime.fromisoformat(json.loads(raw)["created_at"]))
        except (ValueError, KeyError, TypeError) as exc:
            raise StoreUnavailableError(f"corrupt profile for user {user_id}") from exc

    # ── event log ────────────────────────────────────────────

    async def record_event(self, assessment: RiskAssessment) -> None:
        await self._bounded("record_event", self._record_event, assessment)

    async def _record_event(self, assessment: RiskAssessment) -> None:
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.lpush(EVENTS_KEY, assessment.model_dump_json())
            pipe.ltrim(EVENTS_KEY, 0, settings.EVENT_LOG_MAX_ENTRIES - 1)
            await pipe.execute()

    async def recent_events(self, limit: int = 100) -> List[RiskAssessment]:
        rows = await self._bounded("recent_events", self.client.lrange, EVENTS_KEY, 0, limit - 1)
        events: List[RiskAssessment] = []
        for row in rows:
            try:
                events.append(RiskAssessment.model_validate_json(row))
            except ValidationError:
                logger.warning("Skipping corrupt risk event: %r", row)
        return events

    # ── rule config ──────────────────────────────────────────

    async def save_rules_snapshot(self, rules: RuleConfig, saved_at: datetime) -> None:
        await self._bounded("save_rules_snapshot", self._save_rules, rules, saved_at)

    async def _save_rules(self, rules: RuleConfig, saved_at: datetime) -> None:
        current = rules.model_dump_json()
        snapshot = json.dumps(
            {"saved_at": _as_utc(saved_at).isoformat(), "rules": rules.model_dump(mode="json")}
        )
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.set(RULES_CURRENT_KEY, current)
            pipe.lpush(RULES_SNAPSHOTS_KEY, snapshot)
            pipe.ltrim(RULES_SNAPSHOTS_KEY, 0, settings.RULES_SNAPSHOT_MAX_ENTRIES - 1)
            await pipe.execute()

    async def load_rules(self) -> Optional[RuleConfig]:
        raw = await self._bounded("load_rules", self.client.get, RULES_CURRENT_KEY)
        return RuleConfig.model_validate_json(raw) if raw else None

    async def rule_snapshots(self, limit: int = 20) -> List[Dict[str, Any]]:
        rows = await self._bounded("rule_snapshots", self.client.lrange, RULES_SNAPSHOTS_KEY, 0, limit - 1)
        return [json.loads(r) for r in rows]

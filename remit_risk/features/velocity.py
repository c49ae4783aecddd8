"""
Velocity feature extraction.

Reads the user's recent transaction window (newest 24 entries) and checks
same-day totals, same-day counts and the trailing-hour burst rate.

Risk sub-score  S_velocity  ∈ [0, 1]
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal

from remit_risk.config import settings
from remit_risk.exceptions import StoreUnavailableError
from remit_risk.models.risk_score import RiskFactorResult
from remit_risk.models.rules import RuleConfig
from remit_risk.storage.redis_store import RedisRiskStore

logger = logging.getLogger(__name__)

DAILY_AMOUNT_PENALTY = 0.6
DAILY_COUNT_PENALTY = 0.4
BURST_PENALTY = 0.5
HISTORY_UNAVAILABLE_PENALTY = 0.3


class VelocityAnalyzer:
    """Same-day and trailing-window velocity scoring."""

    def __init__(self, store: RedisRiskStore) -> None:
        self.store = store

    async def compute(
        self, user_id: str, amount: Decimal, now: datetime, rules: RuleConfig
    ) -> RiskFactorResult:
        try:
            history = await self.store.get_recent_transactions(user_id, settings.HISTORY_MAX_ENTRIES)
        except StoreUnavailableError as exc:
            logger.warning("Velocity check degraded for user %s: %s", user_id, exc)
            return RiskFactorResult(
                score=HISTORY_UNAVAILABLE_PENALTY,
                reasons=["Unable to verify transaction history"],
            )

        score = 0.0
        reasons = []

        # ── same calendar day (local zone of `now`) ──────────
        today = now.date()
        todays = [e for e in history if e.timestamp.astimezone(now.tzinfo).date() == today]
        daily_total = sum((e.amount for e in todays), Decimal("0"))

        if daily_total + amount > rules.max_daily_amount:
            score += DAILY_AMOUNT_PENALTY
            reasons.append("Daily amount limit exceeded")

        if len(todays) >= rules.max_daily_transactions:
            score += DAILY_COUNT_PENALTY
            reasons.append("Daily transaction limit exceeded")

        # ── trailing window burst ────────────────────────────
        window_start = now - timedelta(seconds=rules.velocity_window_seconds)
        recent = [e for e in history if e.timestamp > window_start]
        if len(recent) > rules.max_hourly_transactions:
            score += BURST_PENALTY
            reasons.append("High transaction velocity detected")

        logger.debug(
            "velocity user=%s today=%d total=%s last_window=%d",
            user_id, len(todays), daily_total, len(recent),
        )
        return RiskFactorResult(score=score, reasons=reasons)

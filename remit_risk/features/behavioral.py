"""
Behavioural feature extraction.

Features
────────
• suspicious_hour   – local time inside the configured window (22:00–06:00
                      by default, wrapping past midnight)
• new_account       – account younger than new_account_days
• unverified_large  – large amount without KYC verification

Account creation time comes from the caller's user snapshot, falling back to
the cached user profile in the store.

Risk sub-score  S_behavioral  ∈ [0, 1]
"""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional

from remit_risk.exceptions import StoreUnavailableError
from remit_risk.models.risk_score import RiskFactorResult
from remit_risk.models.rules import RuleConfig
from remit_risk.models.transaction import UserContext
from remit_risk.storage.redis_store import RedisRiskStore

logger = logging.getLogger(__name__)

SUSPICIOUS_HOUR_PENALTY = 0.3
NEW_ACCOUNT_PENALTY = 0.4
UNVERIFIED_LARGE_PENALTY = 0.5
PROFILE_UNAVAILABLE_PENALTY = 0.2


def in_time_window(moment: time, start: time, end: time) -> bool:
    """Half-open [start, end) check that handles windows crossing midnight."""
    if start <= end:
        return start <= moment < end
    return moment >= start or moment < end


class BehavioralAnalyzer:
    """Timing, account-age and KYC signals for a single transaction."""

    def __init__(self, store: RedisRiskStore) -> None:
        self.store = store

    async def _created_at(self, user_id: str, user: Optional[UserContext]) -> Optional[datetime]:
        if user is not None and user.created_at is not None:
            return user.created_at
        return await self.store.get_account_created_at(user_id)

    async def compute(
        self,
        user_id: str,
        user: Optional[UserContext],
        amount: Decimal,
        kyc_verified: bool,
        now: datetime,
        rules: RuleConfig,
    ) -> RiskFactorResult:
        score = 0.0
        reasons = []

        start, end = rules.suspicious_window
        if in_time_window(now.time().replace(tzinfo=None), start, end):
            score += SUSPICIOUS_HOUR_PENALTY
            reasons.append("Transaction during suspicious time window")

        try:
            created_at = await self._created_at(user_id, user)
        except StoreUnavailableError as exc:
            logger.warning("Behavioral check degraded for user %s: %s", user_id, exc)
            score += PROFILE_UNAVAILABLE_PENALTY
            reasons.append("Unable to verify user behavior")
        else:
            if created_at is not None:
                if created_at.tzinfo is None:
                    created_at = created_at.replace(tzinfo=timezone.utc)
                if now - created_at < timedelta(days=rules.new_account_days):
                    score += NEW_ACCOUNT_PENALTY
                    reasons.append(f"New account (less than {rules.new_account_days} days old)")

        if amount > rules.large_amount_kyc_threshold and not kyc_verified:
            score += UNVERIFIED_LARGE_PENALTY
            reasons.append("Large transaction without KYC verification")

        return RiskFactorResult(score=score, reasons=reasons)

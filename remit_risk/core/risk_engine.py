"""
Risk fusion engine.

Runs the five analyzers, applies the fixed weighted fusion formula,
derives the risk level and enforcement action, and persists the resulting
assessment for audit.

Fusion formula:
    R = 0.20 × S_amount
      + 0.25 × S_velocity
      + 0.15 × S_geographic
      + 0.20 × S_device
      + 0.20 × S_behavioral

Any error the analyzers do not degrade on their own fails closed:
score 1.0, level HIGH, action BLOCK.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo

from remit_risk.config import settings
from remit_risk.core.decision import decide
from remit_risk.core.rules import RuleConfigService
from remit_risk.exceptions import RiskCalculationError, StoreUnavailableError
from remit_risk.features.amount import score_amount
from remit_risk.features.behavioral import BehavioralAnalyzer
from remit_risk.features.device_risk import DeviceAnalyzer
from remit_risk.features.fingerprint import fingerprint
from remit_risk.features.geographic import score_geography
from remit_risk.features.velocity import VelocityAnalyzer
from remit_risk.models.risk_score import (
    RiskAction,
    RiskAssessment,
    RiskBreakdown,
    RiskFactorResult,
    RiskLevel,
    clamp_score,
)
from remit_risk.models.rules import RuleConfig
from remit_risk.models.transaction import DeviceContext, TransactionInput, UserContext
from remit_risk.storage.redis_store import RedisRiskStore

logger = logging.getLogger(__name__)

# Execution order is also the order reasons are reported in
FACTOR_WEIGHTS: Dict[str, float] = {
    "amount": 0.20,
    "velocity": 0.25,
    "geographic": 0.15,
    "device": 0.20,
    "behavioral": 0.20,
}

FAILSAFE_REASON = "Risk calculation error"


def _local_now() -> datetime:
    return datetime.now(ZoneInfo(settings.TIMEZONE))


def fuse_scores(results: Mapping[str, RiskFactorResult]) -> float:
    """Weighted sum of the factor scores, clamped into [0, 1]."""
    for name in FACTOR_WEIGHTS:
        if name not in results:
            raise RiskCalculationError(f"missing {name} factor")
    fused = sum(FACTOR_WEIGHTS[name] * clamp_score(results[name].score) for name in FACTOR_WEIGHTS)
    return clamp_score(round(fused, 4))


def risk_level(score: float, rules: RuleConfig) -> RiskLevel:
    if score >= rules.high_risk_threshold:
        return RiskLevel.HIGH
    if score >= rules.medium_risk_threshold:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


class RiskEngine:
    """Central risk scoring engine – one instance per app."""

    def __init__(
        self,
        store: RedisRiskStore,
        rules: RuleConfigService,
        clock: Callable[[], datetime] = _local_now,
    ) -> None:
        self.store = store
        self.rules = rules
        self.clock = clock

        # feature extractors
        self.velocity = VelocityAnalyzer(store)
        self.device = DeviceAnalyzer(store)
        self.behavioral = BehavioralAnalyzer(store)

    # ── scoring ──────────────────────────────────────────────

    async def _analyze(
        self,
        tx: TransactionInput,
        user: Optional[UserContext],
        device: DeviceContext,
        now: datetime,
        rules: RuleConfig,
    ) -> Dict[str, RiskFactorResult]:
        amount = score_amount(tx.amount, rules)
        geographic = score_geography(tx.recipient_country, user, rules)

        # store-backed analyzers are independent I/O; run them together
        velocity, device_result, behavioral = await asyncio.gather(
            self.velocity.compute(tx.user_id, tx.amount, now, rules),
            self.device.compute(tx.user_id, device, now, rules, fingerprint(device)),
            self.behavioral.compute(tx.user_id, user, tx.amount, tx.kyc_verified, now, rules),
        )
        return {
            "amount": amount,
            "velocity": velocity,
            "geographic": geographic,
            "device": device_result,
            "behavioral": behavioral,
        }

    async def calculate_risk(
        self,
        tx: TransactionInput,
        user: Optional[UserContext],
        device: DeviceContext,
        now: datetime,
        rules: RuleConfig,
    ) -> Tuple[float, RiskLevel, List[str], RiskBreakdown]:
        """Score, level, ordered reasons and per-factor breakdown."""
        try:
            results = await self._analyze(tx, user, device, now, rules)
            score = fuse_scores(results)
            reasons: List[str] = []
            for name in FACTOR_WEIGHTS:
                reasons.extend(results[name].reasons)
            breakdown = RiskBreakdown(
                **{name: round(results[name].score, 4) for name in FACTOR_WEIGHTS}
            )
            return score, risk_level(score, rules), reasons, breakdown
        except Exception:
            logger.exception("Risk calculation failed for transaction %s", tx.transaction_id)
            return 1.0, RiskLevel.HIGH, [FAILSAFE_REASON], RiskBreakdown()

    # ── main entry point ─────────────────────────────────────

    async def assess(
        self,
        tx: TransactionInput,
        user: Optional[UserContext],
        device: DeviceContext,
    ) -> RiskAssessment:
        """
        Full assessment pipeline for a single transaction.
        Always returns; errors resolve to the fail-closed assessment.
        """
        t0 = time.perf_counter()
        try:
            existing = await self._existing(tx.transaction_id)
            if existing is not None:
                logger.info("Transaction %s already assessed, returning stored record", tx.transaction_id)
                return existing

            now = self.clock()
            rules = self.rules.current()
            score, level, reasons, breakdown = await self.calculate_risk(tx, user, device, now, rules)
            action, requires_review = decide(level)

            assessment = RiskAssessment(
                transaction_id=tx.transaction_id,
                user_id=tx.user_id,
                score=score,
                level=level,
                reasons=reasons,
                action=action,
                requires_review=requires_review,
                breakdown=breakdown,
                processing_time_ms=round((time.perf_counter() - t0) * 1000, 2),
                timestamp=now,
            )
        except Exception:
            logger.exception("Assessment failed for transaction %s", tx.transaction_id)
            assessment = self._fail_closed(tx)

        stored = await self._persist(assessment, tx, user)
        self._log_outcome(stored)
        return stored

    def _fail_closed(self, tx: TransactionInput) -> RiskAssessment:
        action, requires_review = decide(RiskLevel.HIGH)
        return RiskAssessment(
            transaction_id=tx.transaction_id,
            user_id=tx.user_id,
            score=1.0,
            level=RiskLevel.HIGH,
            reasons=[FAILSAFE_REASON],
            action=action,
            requires_review=requires_review,
        )

    async def _existing(self, transaction_id: str) -> Optional[RiskAssessment]:
        try:
            return await self.store.get(transaction_id)
        except StoreUnavailableError as exc:
            logger.warning("Could not check for prior assessment of %s: %s", transaction_id, exc)
            return None

    async def _persist(
        self, assessment: RiskAssessment, tx: TransactionInput, user: Optional[UserContext]
    ) -> RiskAssessment:
        """Save, log the event and extend the velocity window. Never raises."""
        try:
            created = await self.store.save(assessment)
        except StoreUnavailableError as exc:
            logger.error("Failed to persist assessment %s: %s", assessment.transaction_id, exc)
        else:
            if not created:
                # id already on record, e.g. a concurrent submission won the write
                prior = await self._existing(assessment.transaction_id)
                if prior is not None:
                    return prior
                assessment = self._fail_closed(tx)

        if user is not None and user.created_at is not None:
            try:
                await self.store.save_user_profile(tx.user_id, user.created_at)
            except StoreUnavailableError as exc:
                logger.warning("Failed to cache profile for user %s: %s", tx.user_id, exc)

        try:
            await self.store.record_event(assessment)
        except StoreUnavailableError as exc:
            logger.warning("Failed to record risk event %s: %s", assessment.transaction_id, exc)

        # blocked transfers never execute, so they do not count toward velocity
        if assessment.action != RiskAction.BLOCK:
            try:
                await self.store.append_transaction_history(tx.user_id, tx.amount, assessment.timestamp)
            except StoreUnavailableError as exc:
                logger.warning("Failed to append history for user %s: %s", tx.user_id, exc)

        return assessment

    def _log_outcome(self, assessment: RiskAssessment) -> None:
        log = logger.warning if assessment.action == RiskAction.BLOCK else logger.info
        log(
            "Assessment %s user=%s score=%.4f level=%s action=%s reasons=%s",
            assessment.transaction_id,
            assessment.user_id,
            assessment.score,
            assessment.level.value,
            assessment.action.value,
            assessment.reasons,
        )

    # ── history ──────────────────────────────────────────────

    async def get_history(
        self, user_id: Optional[str] = None, transaction_id: Optional[str] = None
    ) -> List[RiskAssessment]:
        """Assessments newest first, filtered by user and/or transaction."""
        try:
            if transaction_id:
                record = await self.store.get(transaction_id)
                if record is None or (user_id and record.user_id != user_id):
                    return []
                return [record]
            if user_id:
                return await self.store.list_by_user(user_id)
            return await self.store.list_all()
        except StoreUnavailableError as exc:
            logger.error("Error retrieving assessment history: %s", exc)
            return []

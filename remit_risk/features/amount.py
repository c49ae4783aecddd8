"""
Amount heuristics.

Pure function of the transfer amount and the active rules:
round figures, amounts over the single-transaction limit and
very small probing amounts each add a fixed penalty.
"""

from __future__ import annotations

from decimal import Decimal

from remit_risk.models.risk_score import RiskFactorResult
from remit_risk.models.rules import RuleConfig

ROUND_NUMBER_PENALTY = 0.3
OVER_LIMIT_PENALTY = 0.5
SMALL_AMOUNT_PENALTY = 0.2


def score_amount(amount: Decimal, rules: RuleConfig) -> RiskFactorResult:
    score = 0.0
    reasons = []

    if amount % rules.round_amount_unit == 0:
        score += ROUND_NUMBER_PENALTY
        reasons.append("Round number transaction")

    if amount > rules.max_single_transaction:
        score += OVER_LIMIT_PENALTY
        reasons.append("Amount exceeds single transaction limit")

    if amount < rules.small_amount_threshold:
        score += SMALL_AMOUNT_PENALTY
        reasons.append("Very small transaction amount")

    return RiskFactorResult(score=score, reasons=reasons)

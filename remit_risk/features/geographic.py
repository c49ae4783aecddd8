"""
Geographic risk.

Corridor checks against the configured allowed / high-risk country lists,
plus a penalty when the sender lives outside the primary operating country.
"""

from __future__ import annotations

from typing import Optional

from remit_risk.models.risk_score import RiskFactorResult
from remit_risk.models.rules import RuleConfig
from remit_risk.models.transaction import UserContext

NOT_ALLOWED_PENALTY = 0.8
HIGH_RISK_PENALTY = 0.4
FOREIGN_USER_PENALTY = 0.3


def score_geography(
    recipient_country: str, user: Optional[UserContext], rules: RuleConfig
) -> RiskFactorResult:
    score = 0.0
    reasons = []

    if recipient_country not in rules.allowed_countries:
        score += NOT_ALLOWED_PENALTY
        reasons.append("Recipient country not in allowed list")

    if recipient_country in rules.high_risk_countries:
        score += HIGH_RISK_PENALTY
        reasons.append("High-risk recipient country")

    home = user.location.country if user and user.location else None
    if home and home != rules.primary_country:
        score += FOREIGN_USER_PENALTY
        reasons.append("User location outside primary country")

    return RiskFactorResult(score=score, reasons=reasons)

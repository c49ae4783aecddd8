"""
Decision table: risk level → enforcement action.

Pure mapping, no I/O.
"""

from __future__ import annotations

from typing import Dict, Tuple

from remit_risk.models.risk_score import RiskAction, RiskLevel

DECISION_TABLE: Dict[RiskLevel, Tuple[RiskAction, bool]] = {
    RiskLevel.HIGH: (RiskAction.BLOCK, True),
    RiskLevel.MEDIUM: (RiskAction.REVIEW, True),
    RiskLevel.LOW: (RiskAction.APPROVE, False),
}


def decide(level: RiskLevel) -> Tuple[RiskAction, bool]:
    """Return ``(action, requires_review)`` for *level*."""
    return DECISION_TABLE[level]

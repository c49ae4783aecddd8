"""
Risk score models and response structures.
Used by the analyzers, the aggregator and the API layer.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List

from pydantic import BaseModel, Field, field_validator


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class RiskAction(str, Enum):
    APPROVE = "APPROVE"
    REVIEW = "REVIEW"
    BLOCK = "BLOCK"


def clamp_score(value: float) -> float:
    return max(0.0, min(float(value), 1.0))


class RiskFactorResult(BaseModel):
    """Output of one analyzer. Score is clamped into [0, 1] on construction."""
    score: float = 0.0
    reasons: List[str] = Field(default_factory=list)

    @field_validator("score")
    @classmethod
    def clamp(cls, v: float) -> float:
        return clamp_score(v)


class RiskBreakdown(BaseModel):
    """Per-factor sub-scores (each 0-1) before weighting."""
    amount: float = Field(0.0, ge=0, le=1)
    velocity: float = Field(0.0, ge=0, le=1)
    geographic: float = Field(0.0, ge=0, le=1)
    device: float = Field(0.0, ge=0, le=1)
    behavioral: float = Field(0.0, ge=0, le=1)


class RiskAssessment(BaseModel):
    """Durable, immutable result of scoring one transaction."""
    transaction_id: str
    user_id: str
    score: float = Field(ge=0, le=1)
    level: RiskLevel
    reasons: List[str] = []
    action: RiskAction
    requires_review: bool
    breakdown: RiskBreakdown = Field(default_factory=RiskBreakdown)
    processing_time_ms: float = 0.0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}

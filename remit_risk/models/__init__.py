from remit_risk.models.risk_score import (
    RiskAction,
    RiskAssessment,
    RiskBreakdown,
    RiskFactorResult,
    RiskLevel,
)
from remit_risk.models.rules import RuleConfig
from remit_risk.models.transaction import (
    DeviceContext,
    TransactionInput,
    UserContext,
    UserLocation,
)

__all__ = [
    "DeviceContext",
    "RiskAction",
    "RiskAssessment",
    "RiskBreakdown",
    "RiskFactorResult",
    "RiskLevel",
    "RuleConfig",
    "TransactionInput",
    "UserContext",
    "UserLocation",
]

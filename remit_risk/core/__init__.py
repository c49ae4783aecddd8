from remit_risk.core.decision import decide
from remit_risk.core.risk_engine import FACTOR_WEIGHTS, RiskEngine, fuse_scores, risk_level
from remit_risk.core.rules import RuleConfigService

__all__ = [
    "FACTOR_WEIGHTS",
    "RiskEngine",
    "RuleConfigService",
    "decide",
    "fuse_scores",
    "risk_level",
]

"""Engine-specific exceptions"""


class RiskEngineError(Exception):
    """Base exception for the risk engine"""

    pass


class StoreUnavailableError(RiskEngineError):
    """Backing store timed out, refused the connection or returned garbage.

    Analyzers treat this as a recoverable degradation.
    """

    pass


class RiskCalculationError(RiskEngineError):
    """Scoring cannot produce a trustworthy result"""

    pass

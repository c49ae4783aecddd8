from remit_risk.features.amount import score_amount
from remit_risk.features.behavioral import BehavioralAnalyzer
from remit_risk.features.device_risk import DeviceAnalyzer
from remit_risk.features.fingerprint import fingerprint
from remit_risk.features.geographic import score_geography
from remit_risk.features.velocity import VelocityAnalyzer

__all__ = [
    "BehavioralAnalyzer",
    "DeviceAnalyzer",
    "VelocityAnalyzer",
    "fingerprint",
    "score_amount",
    "score_geography",
]

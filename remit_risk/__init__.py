"""Real-time transaction risk scoring for money transfers."""

__version__ = "1.0.0"

"""
Application configuration.
Loads settings from environment variables with sensible defaults.
"""

from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration for the transaction risk-scoring engine."""

    # ── Application ─────────────────────────────────────────
    APP_NAME: str = "Transfer Risk Scoring Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # ── Redis ───────────────────────────────────────────────
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""

    # Every store call is bounded; a timeout counts as "store unavailable"
    STORE_TIMEOUT_SEC: float = 0.5

    # ── Retention ───────────────────────────────────────────
    ASSESSMENT_TTL_SEC: int = 86400
    HISTORY_MAX_ENTRIES: int = 24
    HISTORY_TTL_SEC: int = 7 * 86400
    DEVICE_RETENTION_DAYS: int = 90
    PROFILE_TTL_SEC: int = 86400
    EVENT_LOG_MAX_ENTRIES: int = 1000
    RULES_SNAPSHOT_MAX_ENTRIES: int = 500

    # Calendar day / hour-of-day rules are evaluated in this zone
    TIMEZONE: str = "Africa/Johannesburg"

    # ── Default rule values (seed RuleConfig at startup) ────
    MAX_DAILY_TRANSACTIONS: int = 10
    MAX_DAILY_AMOUNT: float = 50000.0
    MAX_SINGLE_TRANSACTION: float = 10000.0
    MAX_DEVICES_PER_USER: int = 3

    VELOCITY_WINDOW_SEC: int = 3600
    MAX_HOURLY_TRANSACTIONS: int = 3

    HIGH_RISK_THRESHOLD: float = 0.8
    MEDIUM_RISK_THRESHOLD: float = 0.5

    ALLOWED_COUNTRIES: List[str] = ["ZA", "ZW", "BW", "LS", "SZ", "NA"]
    HIGH_RISK_COUNTRIES: List[str] = ["NG", "GH", "KE"]
    PRIMARY_COUNTRY: str = "ZA"

    SUSPICIOUS_WINDOW_START: str = "22:00"
    SUSPICIOUS_WINDOW_END: str = "06:00"

    ROUND_AMOUNT_UNIT: float = 1000.0
    SMALL_AMOUNT_THRESHOLD: float = 100.0
    LARGE_AMOUNT_KYC_THRESHOLD: float = 5000.0
    NEW_ACCOUNT_DAYS: int = 7
    BOT_USER_AGENT_MARKERS: List[str] = [
        "bot",
        "crawler",
        "spider",
        "headless",
        "selenium",
        "puppeteer",
        "phantomjs",
        "python-requests",
        "curl/",
        "wget/",
    ]

    model_config = {"env_file": ".env", "case_sensitive": True}


settings = Settings()

"""
Runtime-mutable rule thresholds.

A RuleConfig is an immutable value; RuleConfigService swaps in a new
instance on every successful administrative update.
"""

from __future__ import annotations

import re
from datetime import time
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from remit_risk.config import Settings

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(value: str) -> time:
    m = _HHMM.match(value)
    if not m:
        raise ValueError(f"expected HH:MM, got {value!r}")
    return time(int(m.group(1)), int(m.group(2)))


class RuleConfig(BaseModel):
    """Thresholds and limits consulted by the analyzers."""

    # ── limits ──────────────────────────────────────────────
    max_daily_transactions: int = Field(10, gt=0)
    max_daily_amount: Decimal = Field(Decimal("50000"), gt=0)
    max_single_transaction: Decimal = Field(Decimal("10000"), gt=0)
    max_devices_per_user: int = Field(3, gt=0)

    # ── velocity windows ────────────────────────────────────
    velocity_window_seconds: int = Field(3600, gt=0)
    max_hourly_transactions: int = Field(3, gt=0)

    # ── level thresholds ────────────────────────────────────
    high_risk_threshold: float = Field(0.8, gt=0, le=1)
    medium_risk_threshold: float = Field(0.5, gt=0, le=1)

    # ── geography ───────────────────────────────────────────
    allowed_countries: List[str] = ["ZA", "ZW", "BW", "LS", "SZ", "NA"]
    high_risk_countries: List[str] = ["NG", "GH", "KE"]
    primary_country: str = "ZA"

    # ── behaviour ───────────────────────────────────────────
    suspicious_window_start: str = "22:00"
    suspicious_window_end: str = "06:00"
    new_account_days: int = Field(7, gt=0)

    # ── amount heuristics ───────────────────────────────────
    round_amount_unit: Decimal = Field(Decimal("1000"), gt=0)
    small_amount_threshold: Decimal = Field(Decimal("100"), gt=0)
    large_amount_kyc_threshold: Decimal = Field(Decimal("5000"), gt=0)

    bot_user_agent_markers: List[str] = ["bot"]

    model_config = {
        "frozen": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    @field_validator("allowed_countries", "high_risk_countries")
    @classmethod
    def check_country_codes(cls, v: List[str]) -> List[str]:
        codes = []
        for code in v:
            code = code.strip().upper()
            if len(code) != 2 or not code.isalpha():
                raise ValueError(f"invalid ISO country code {code!r}")
            codes.append(code)
        return codes

    @field_validator("primary_country")
    @classmethod
    def check_primary_country(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != 2 or not v.isalpha():
            raise ValueError(f"invalid ISO country code {v!r}")
        return v

    @field_validator("suspicious_window_start", "suspicious_window_end")
    @classmethod
    def check_window_time(cls, v: str) -> str:
        parse_hhmm(v)
        return v

    @field_validator("bot_user_agent_markers")
    @classmethod
    def normalise_markers(cls, v: List[str]) -> List[str]:
        markers = [m.strip().lower() for m in v if m and m.strip()]
        if not markers:
            raise ValueError("at least one user-agent marker is required")
        return markers

    @model_validator(mode="after")
    def check_threshold_order(self) -> "RuleConfig":
        if self.medium_risk_threshold >= self.high_risk_threshold:
            raise ValueError("medium_risk_threshold must be below high_risk_threshold")
        return self

    # ── helpers ─────────────────────────────────────────────

    @property
    def suspicious_window(self) -> tuple[time, time]:
        return parse_hhmm(self.suspicious_window_start), parse_hhmm(self.suspicious_window_end)

    @classmethod
    def from_settings(cls, s: Settings) -> "RuleConfig":
        return cls(
            max_daily_transactions=s.MAX_DAILY_TRANSACTIONS,
            max_daily_amount=Decimal(str(s.MAX_DAILY_AMOUNT)),
            max_single_transaction=Decimal(str(s.MAX_SINGLE_TRANSACTION)),
            max_devices_per_user=s.MAX_DEVICES_PER_USER,
            velocity_window_seconds=s.VELOCITY_WINDOW_SEC,
            max_hourly_transactions=s.MAX_HOURLY_TRANSACTIONS,
            high_risk_threshold=s.HIGH_RISK_THRESHOLD,
            medium_risk_threshold=s.MEDIUM_RISK_THRESHOLD,
            allowed_countries=s.ALLOWED_COUNTRIES,
            high_risk_countries=s.HIGH_RISK_COUNTRIES,
            primary_country=s.PRIMARY_COUNTRY,
            suspicious_window_start=s.SUSPICIOUS_WINDOW_START,
            suspicious_window_end=s.SUSPICIOUS_WINDOW_END,
            new_account_days=s.NEW_ACCOUNT_DAYS,
            round_amount_unit=Decimal(str(s.ROUND_AMOUNT_UNIT)),
            small_amount_threshold=Decimal(str(s.SMALL_AMOUNT_THRESHOLD)),
            large_amount_kyc_threshold=Decimal(str(s.LARGE_AMOUNT_KYC_THRESHOLD)),
            bot_user_agent_markers=s.BOT_USER_AGENT_MARKERS,
        )

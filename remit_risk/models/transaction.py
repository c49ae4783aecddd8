"""
Pydantic models for the scoring inputs: transaction, user snapshot, device.

All three are immutable once submitted; the engine only reads them.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class TransactionInput(BaseModel):
    """Pending money transfer submitted by the transaction pipeline."""
    transaction_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    currency: str = "ZAR"
    recipient_country: str = Field(..., min_length=2, max_length=2)
    kyc_verified: bool = False

    model_config = {"frozen": True}

    @field_validator("recipient_country", "currency")
    @classmethod
    def upper_case(cls, v: str) -> str:
        return v.strip().upper()


class UserLocation(BaseModel):
    country: Optional[str] = None

    model_config = {"frozen": True}

    @field_validator("country")
    @classmethod
    def upper_case(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v


class UserContext(BaseModel):
    """Read-only user profile snapshot supplied by the caller."""
    user_id: str
    location: Optional[UserLocation] = None
    created_at: Optional[datetime] = Field(
        None, description="Account creation time; read from the profile cache when absent"
    )

    model_config = {"frozen": True}


class DeviceContext(BaseModel):
    """Observable attributes of the reporting device (missing => empty)."""
    user_agent: str = ""
    ip: str = ""
    screen_resolution: str = ""
    timezone: str = ""
    language: str = ""

    model_config = {"frozen": True}

    @field_validator("*", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

"""
Device-risk feature extraction.

Registers the device fingerprint in the user's device set (atomic sorted-set
add, so re-registering the same device is idempotent) and scores:

• device_count        – more devices than max_devices_per_user
• new_device          – fingerprint absent from the set before this call
• bot_user_agent      – automation marker in the user agent
• private_ip          – private / reserved / loopback / link-local origin

Risk sub-score  S_device  ∈ [0, 1]
"""

from __future__ import annotations

import ipaddress
import logging
from datetime import datetime
from typing import Iterable, Optional

from remit_risk.exceptions import StoreUnavailableError
from remit_risk.features.fingerprint import fingerprint
from remit_risk.models.risk_score import RiskFactorResult
from remit_risk.models.rules import RuleConfig
from remit_risk.models.transaction import DeviceContext
from remit_risk.storage.redis_store import RedisRiskStore

logger = logging.getLogger(__name__)

TOO_MANY_DEVICES_PENALTY = 0.6
NEW_DEVICE_PENALTY = 0.3
BOT_AGENT_PENALTY = 0.8
PRIVATE_IP_PENALTY = 0.4
DEVICE_UNAVAILABLE_PENALTY = 0.3


def is_private_ip(ip_str: str) -> bool:
    """True for private, reserved, loopback or link-local addresses.

    A forwarded-for list is judged by its first (client) hop; anything that
    does not parse as an address is not flagged.
    """
    candidate = ip_str.split(",")[0].strip()
    if not candidate:
        return False
    try:
        addr = ipaddress.ip_address(candidate)
    except ValueError:
        return False
    return addr.is_private or addr.is_loopback or addr.is_reserved or addr.is_link_local


def is_bot_user_agent(user_agent: str, markers: Iterable[str]) -> bool:
    ua = user_agent.lower()
    return any(marker in ua for marker in markers)


class DeviceAnalyzer:
    """Evaluate device-level risk and keep the user's device set current."""

    def __init__(self, store: RedisRiskStore) -> None:
        self.store = store

    async def compute(
        self,
        user_id: str,
        device: DeviceContext,
        now: datetime,
        rules: RuleConfig,
        device_fingerprint: Optional[str] = None,
    ) -> RiskFactorResult:
        fp = device_fingerprint or fingerprint(device)
        score = 0.0
        reasons = []

        try:
            is_new = await self.store.add_device_fingerprint(user_id, fp, now)
            device_count = await self.store.count_devices(user_id)
        except StoreUnavailableError as exc:
            logger.warning("Device check degraded for user %s: %s", user_id, exc)
            score += DEVICE_UNAVAILABLE_PENALTY
            reasons.append("Unable to verify device information")
        else:
            if device_count > rules.max_devices_per_user:
                score += TOO_MANY_DEVICES_PENALTY
                reasons.append("Too many devices associated with user")
            if is_new:
                score += NEW_DEVICE_PENALTY
                reasons.append("New device detected")

        if device.user_agent and is_bot_user_agent(device.user_agent, rules.bot_user_agent_markers):
            score += BOT_AGENT_PENALTY
            reasons.append("Bot-like user agent detected")

        if device.ip and is_private_ip(device.ip):
            score += PRIVATE_IP_PENALTY
            reasons.append("Private IP address detected")

        return RiskFactorResult(score=score, reasons=reasons)

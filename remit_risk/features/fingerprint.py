"""
Device fingerprinting.

The fingerprint is a SHA-256 digest over the lower-cased device attributes in
a fixed order, so identical attributes always map to the same set member in
the user's device set.
"""

from __future__ import annotations

import hashlib

from remit_risk.models.transaction import DeviceContext

FINGERPRINT_FIELDS = ("user_agent", "ip", "screen_resolution", "timezone", "language")


def fingerprint(device: DeviceContext) -> str:
    """Return the hex fingerprint for *device*."""
    parts = [(getattr(device, name) or "").strip().lower() for name in FINGERPRINT_FIELDS]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()

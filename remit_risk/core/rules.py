"""
Rule configuration service.

Holds the active RuleConfig and applies administrative updates with a
validate → snapshot → swap lifecycle.  The active config is an immutable
value, so an assessment that already picked it up is never affected by a
concurrent update.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from remit_risk.config import settings
from remit_risk.exceptions import StoreUnavailableError
from remit_risk.models.rules import RuleConfig
from remit_risk.storage.redis_store import RedisRiskStore

logger = logging.getLogger(__name__)

# snake_case and camelCase both address a field
_FIELD_LOOKUP: Dict[str, str] = {}
for _name in RuleConfig.model_fields:
    _FIELD_LOOKUP[_name] = _name
    _FIELD_LOOKUP[to_camel(_name)] = _name


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RuleConfigService:
    """Process-wide rule thresholds with audited runtime updates."""

    def __init__(
        self,
        store: RedisRiskStore,
        initial: Optional[RuleConfig] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self._rules = initial or RuleConfig.from_settings(settings)
        self._clock = clock
        self._lock = asyncio.Lock()

    def current(self) -> RuleConfig:
        return self._rules

    async def load(self) -> RuleConfig:
        """Restore the last persisted config; keep defaults if none or unreachable."""
        try:
            stored = await self.store.load_rules()
        except StoreUnavailableError as exc:
            logger.warning("Could not load persisted rules, using defaults: %s", exc)
            return self._rules
        if stored is not None:
            self._rules = stored
            logger.info("Loaded persisted risk rules")
        return self._rules

    def _apply(self, base: RuleConfig, name: str, value: Any) -> RuleConfig:
        return RuleConfig.model_validate({**base.model_dump(), name: value})

    async def update(self, partial: Mapping[str, Any]) -> bool:
        """
        Apply every valid field of *partial*; ignore unknown or invalid ones.

        Returns True when at least one field was applied and the full
        resulting config was snapshotted.  On False the active config is
        unchanged.
        """
        async with self._lock:
            candidate = self._rules
            applied: List[str] = []
            pending: List[tuple] = []

            for key, value in partial.items():
                name = _FIELD_LOOKUP.get(key)
                if name is None:
                    logger.info("Ignoring unknown rule field %r", key)
                    continue
                if value is None or isinstance(value, bool):
                    logger.info("Ignoring empty or non-numeric value for %r", key)
                    continue
                pending.append((name, value))

            # second pass lets interdependent fields (e.g. both thresholds)
            # land regardless of submission order
            for _ in range(2):
                failed = []
                for name, value in pending:
                    try:
                        candidate = self._apply(candidate, name, value)
                    except ValidationError as exc:
                        failed.append((name, value, exc))
                        continue
                    applied.append(name)
                pending = [(n, v) for n, v, _ in failed]
                if not pending:
                    break

            for name, value in pending:
                logger.warning("Rejected invalid value for %s: %r", name, value)

            if not applied:
                return False

            try:
                await self.store.save_rules_snapshot(candidate, self._clock())
            except StoreUnavailableError as exc:
                logger.error("Rule update not applied, snapshot failed: %s", exc)
                return False

            self._rules = candidate
            logger.info("Risk rules updated: %s", ", ".join(applied))
            return True

"""
REST API routes.

Thin transport over the engine: the transaction pipeline posts to
/assess, the admin / compliance UI reads history and updates rules.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from remit_risk.exceptions import StoreUnavailableError
from remit_risk.models.risk_score import RiskAssessment
from remit_risk.models.transaction import DeviceContext, TransactionInput, UserContext

logger = logging.getLogger(__name__)

router = APIRouter()

# These will be injected by main.py at startup
_engine = None
_rules = None
_store = None


def init_routes(engine, rules, store):
    """Called once at startup to inject shared dependencies."""
    global _engine, _rules, _store
    _engine = engine
    _rules = rules
    _store = store


class AssessRequest(BaseModel):
    transaction: TransactionInput
    user: Optional[UserContext] = None
    device: DeviceContext = DeviceContext()


# ── health ───────────────────────────────────────────────────

@router.get("/health")
async def health():
    store_ok = False
    if _store is not None:
        try:
            store_ok = await _store.ping()
        except StoreUnavailableError:
            store_ok = False
    return {"status": "ok" if store_ok else "degraded", "store": store_ok}


# ── scoring ──────────────────────────────────────────────────

@router.post("/assess", response_model=RiskAssessment)
async def assess(req: AssessRequest):
    if not _engine:
        raise HTTPException(503, "Engine not ready")
    return await _engine.assess(req.transaction, req.user, req.device)


# ── history ──────────────────────────────────────────────────

@router.get("/assessments", response_model=List[RiskAssessment])
async def list_assessments(
    user_id: Optional[str] = Query(None),
    transaction_id: Optional[str] = Query(None),
):
    if not _engine:
        raise HTTPException(503, "Engine not ready")
    return await _engine.get_history(user_id=user_id, transaction_id=transaction_id)


@router.get("/assessments/{transaction_id}", response_model=RiskAssessment)
async def get_assessment(transaction_id: str):
    if not _engine:
        raise HTTPException(503, "Engine not ready")
    records = await _engine.get_history(transaction_id=transaction_id)
    if not records:
        raise HTTPException(404, f"No assessment for transaction {transaction_id}")
    return records[0]


@router.get("/events", response_model=List[RiskAssessment])
async def recent_events(limit: int = Query(100, ge=1, le=1000)):
    if not _store:
        raise HTTPException(503, "Engine not ready")
    try:
        return await _store.recent_events(limit)
    except StoreUnavailableError as exc:
        raise HTTPException(503, str(exc))


# ── rules ────────────────────────────────────────────────────

@router.get("/rules")
async def get_rules():
    if not _rules:
        raise HTTPException(503, "Engine not ready")
    return _rules.current().model_dump(mode="json")


@router.patch("/rules")
async def update_rules(partial: Dict[str, Any]):
    if not _rules:
        raise HTTPException(503, "Engine not ready")
    updated = await _rules.update(partial)
    return {"updated": updated, "rules": _rules.current().model_dump(mode="json")}

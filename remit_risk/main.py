"""
FastAPI application entry-point.

Lifespan:
  startup  → connect Redis; load persisted rules; build the risk engine
  shutdown → close the Redis connection
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from remit_risk.api.routes import init_routes, router as api_router
from remit_risk.config import settings
from remit_risk.core.risk_engine import RiskEngine
from remit_risk.core.rules import RuleConfigService
from remit_risk.storage.redis_store import RedisRiskStore, get_redis_client

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s │ %(levelname)-7s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def create_app(store: Optional[RedisRiskStore] = None) -> FastAPI:
    """Build the app; pass *store* to reuse an existing connection."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("🚀 Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)

        # ── Redis ────────────────────────────────────────────
        owned = store is None
        risk_store = store or RedisRiskStore(await get_redis_client())

        # ── Rules + engine ───────────────────────────────────
        rules = RuleConfigService(risk_store)
        await rules.load()
        engine = RiskEngine(risk_store, rules)

        init_routes(engine, rules, risk_store)
        app.state.store = risk_store
        app.state.rules = rules
        app.state.risk_engine = engine

        logger.info("✅ Risk engine online")
        yield

        # ── shutdown ─────────────────────────────────────────
        logger.info("Shutting down …")
        if owned:
            await risk_store.client.aclose()
        logger.info("👋 Shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )
    app.include_router(api_router, prefix="/api")

    @app.get("/")
    async def root():
        return {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": "/docs",
        }

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("remit_risk.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)

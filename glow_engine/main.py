from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import logging
import random
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from glow_engine import config
from glow_engine.routes.health import router as health_router
from glow_engine.routes.v1 import router as v1_router
from glow_engine.services.engine import PersonalizationEngine
from glow_engine.store.session_state import SessionManager
from glow_engine.store.storage import build_storage


logger = logging.getLogger("glow-engine.main")


def _setup_logging() -> None:
    logging.basicConfig(
        level=config.log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_engine() -> PersonalizationEngine:
    storage = build_storage(
        config.redis_url(),
        connect_timeout_s=config.redis_connect_timeout_s(),
        socket_timeout_s=config.redis_socket_timeout_s(),
    )
    session = SessionManager(
        storage,
        storage_key=config.session_storage_key(),
        max_age_ms=config.session_max_age_ms(),
    )
    rng = random.Random() if config.recommendation_variety() else None
    return PersonalizationEngine(session, rng=rng)


async def _flush_periodically(engine: PersonalizationEngine, interval_s: float) -> None:
    while True:
        await asyncio.sleep(interval_s)
        if not await asyncio.to_thread(engine.flush):
            logger.warning("session_flush_failed interval_s=%s", interval_s)


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine: Optional[PersonalizationEngine] = getattr(app.state, "engine", None)
    if engine is None:
        engine = await asyncio.to_thread(build_engine)
        app.state.engine = engine

    interval_s = config.session_flush_interval_s()
    flusher = asyncio.create_task(_flush_periodically(engine, interval_s)) if interval_s > 0 else None
    logger.info("glow_engine_ready session_id=%s flush_interval_s=%s", engine.session.get_state().session_id, interval_s)
    try:
        yield
    finally:
        if flusher is not None:
            flusher.cancel()
            try:
                await flusher
            except asyncio.CancelledError:
                pass
        if not await asyncio.to_thread(engine.flush):
            logger.warning("session_final_flush_failed")


def create_app(engine: Optional[PersonalizationEngine] = None) -> FastAPI:
    _setup_logging()
    app = FastAPI(title="Glow Personalization Engine", version="0.1.0", lifespan=lifespan)
    if engine is not None:
        app.state.engine = engine

    origins = config.cors_origins()
    allow_all = "*" in origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=86400,
    )

    app.include_router(health_router)
    app.include_router(v1_router, prefix="/v1")

    return app


app = create_app()

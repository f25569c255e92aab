from __future__ import annotations  # FastAPI server hosting the interview session coordinator

import asyncio
import logging
import os
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.events import EventDispatcher
from api.realtime import router as realtime_router
from api.routes import records_router
from api.routes import router as sessions_router
from config.settings import settings
from interview_session.coordinator import SessionCoordinator
from interview_session.generator import generator_from_config
from interview_session.store import SessionStore
from storage.migrate import migrate


logger = logging.getLogger(__name__)

PURGE_INTERVAL_S = 60.0


def build_coordinator() -> SessionCoordinator:  # Wire store, generator, and persistence from settings
    store = SessionStore(retention_minutes=settings.SESSION_RETENTION_MINUTES)
    generator = generator_from_config(Path(settings.GENERATOR_CONFIG_PATH), settings.GENERATOR_TARGET)
    return SessionCoordinator(store, generator)


async def _purge_loop(coordinator: SessionCoordinator) -> None:
    while True:
        await asyncio.sleep(PURGE_INTERVAL_S)
        purged = coordinator.purge()
        if purged:
            logger.info("Purged %d finished sessions", purged)


def create_app(coordinator: Optional[SessionCoordinator] = None) -> FastAPI:  # Application factory
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        migrate(settings.DB_PATH)
        active = coordinator or build_coordinator()
        app.state.coordinator = active
        app.state.dispatcher = EventDispatcher(active)
        purger = asyncio.create_task(_purge_loop(active)) if settings.SESSION_RETENTION_MINUTES else None
        try:
            yield
        finally:
            if purger is not None:
                purger.cancel()
                with suppress(asyncio.CancelledError):
                    await purger
            active.store.clear()

    application = FastAPI(title="Interview Session Coordinator", lifespan=lifespan)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(sessions_router)
    application.include_router(records_router)
    application.include_router(realtime_router)

    @application.get("/")
    def health() -> dict:  # Liveness probe
        return {"status": "ok"}

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "4000")))

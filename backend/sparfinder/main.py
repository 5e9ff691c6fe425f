# backend/sparfinder/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine

from . import __version__
from .core.config import settings
from .database import SessionFactory, SessionLocal, engine as default_engine, init_db
from .errors import register_error_handlers
from .routes.v1 import (
    conversations as conversations_v1,
    messages as messages_v1,
    notifications as notifications_v1,
    realtime as realtime_v1,
)
from .services.messaging import (
    BackgroundTaskRunner,
    ChatGateway,
    ConnectionRegistry,
    MessagingStore,
    NotificationFanout,
)

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

API_TITLE = "Sparfinder Chat API"

# Seconds to wait for background work (fan-out, read markers) at shutdown
SHUTDOWN_DRAIN_TIMEOUT = 10.0


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{API_TITLE} starting up (environment: {settings.environment})")
    bind: Optional[Engine] = app.state.engine
    if settings.auto_create_tables and bind is not None:
        init_db(bind)

    yield

    runner: BackgroundTaskRunner = app.state.runner
    if runner.pending:
        logger.info(f"[BACKGROUND] Draining {runner.pending} pending task(s)")
    await runner.drain(timeout=SHUTDOWN_DRAIN_TIMEOUT)
    logger.info(f"{API_TITLE} shut down")


def build_app(
    session_factory: Optional[SessionFactory] = None,
    *,
    engine: Optional[Engine] = None,
) -> FastAPI:
    """
    Assemble the application.

    The realtime objects (connection registry, background runner, store,
    fan-out and gateway) are created once here and kept on ``app.state``;
    REST routes and the websocket endpoint share them.

    Args:
        session_factory: Session factory for every store call. Defaults to
            the configured database.
        engine: Engine to create tables on at startup. Defaults to the
            configured engine when no factory is given.
    """
    if session_factory is None:
        session_factory = SessionLocal
        engine = engine or default_engine

    app = FastAPI(
        title=API_TITLE,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
    )
    register_error_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["*"],
    )

    store = MessagingStore(session_factory)
    registry = ConnectionRegistry()
    runner = BackgroundTaskRunner(concurrency=settings.background_task_concurrency)
    fanout = NotificationFanout(store)

    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.store = store
    app.state.registry = registry
    app.state.runner = runner
    app.state.fanout = fanout
    app.state.gateway = ChatGateway(
        store,
        registry,
        runner,
        fanout,
        history_page_size=settings.history_page_size,
    )

    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(conversations_v1.router, prefix="/conversations")
    api_v1.include_router(messages_v1.router, prefix="/messages")
    api_v1.include_router(notifications_v1.router, prefix="/notifications")
    app.include_router(api_v1)
    app.include_router(realtime_v1.router)

    @app.get("/health", tags=["health"])
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = build_app()

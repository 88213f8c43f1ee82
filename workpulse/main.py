"""
WorkPulse — FastAPI application entry-point.

Run with:
    uvicorn workpulse.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from workpulse.config import Settings, settings
from workpulse.database import create_tables

# ── Import routers ──
from workpulse.routers import events, notifications, realtime, subscriptions
from workpulse.services.broker import build_broker
from workpulse.services.notifier import LocalDelivery
from workpulse.services.push import PushSender
from workpulse.services.realtime import RoomManager
from workpulse.services.registry import SubscriptionRegistry

logger = logging.getLogger(__name__)


def configure_logging(config: Settings) -> None:
    logging.basicConfig(
        level=config.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


# ── Lifespan: tables + per-process delivery state ──
@asynccontextmanager
async def lifespan(app: FastAPI):
    config: Settings = app.state.settings
    await create_tables()

    app.state.registry = SubscriptionRegistry()
    app.state.rooms = RoomManager()
    app.state.push_sender = PushSender(config)
    broker = build_broker(config)
    broker.set_handler(LocalDelivery(app.state.registry, app.state.rooms))
    await broker.start()
    app.state.broker = broker
    logger.info(f"{config.APP_NAME} started (broker={broker.name})")

    try:
        yield
    finally:
        try:
            await broker.stop()
        finally:
            app.state.registry.clear()
        logger.info(f"{config.APP_NAME} stopped")


def create_app(config: Settings = settings) -> FastAPI:
    app = FastAPI(
        title=config.APP_NAME,
        description="Notification delivery for attendance, leave, task and project events.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["*"],
    )

    # ── Register API routers ──
    app.include_router(events.router)
    app.include_router(realtime.router)
    app.include_router(notifications.router)
    app.include_router(subscriptions.router)

    @app.get("/health")
    async def health(request: Request):
        state = request.app.state
        return {
            "status": "ok",
            "sse_connections": state.registry.connection_count(),
            "socket_connections": state.rooms.connection_count(),
            "broker": state.broker.name,
        }

    return app


configure_logging(settings)
app = create_app()

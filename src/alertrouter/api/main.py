from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from alertrouter.api.deps import RouterState, build_state
from alertrouter.api.routes import alerts, health, silences, status
from alertrouter.config import ConfigManager, Settings, get_settings
from alertrouter.logging import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    configure_logging(settings.log_level, json=settings.log_json)

    if getattr(app.state, "router", None) is None:
        manager = ConfigManager(settings.config_file)
        manager.reload()
        app.state.router = build_state(settings, manager)

    state: RouterState = app.state.router
    state.dispatcher.start()
    loop_task = asyncio.create_task(state.dispatcher.run())
    try:
        yield
    finally:
        state.dispatcher.stop()
        await loop_task
        state.dispatcher.drain()


def create_app(settings: Settings | None = None, state: RouterState | None = None) -> FastAPI:
    settings = settings or (state.settings if state else get_settings())

    app = FastAPI(
        title="alertrouter",
        version="0.1.0",
        docs_url=f"{settings.api_prefix}/docs",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.router = state

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in settings.cors_origins],
            allow_methods=["*"],
            allow_headers=["*"],
            allow_credentials=True,
        )

    app.include_router(alerts.router, prefix=settings.api_prefix, tags=["alerts"])
    app.include_router(silences.router, prefix=settings.api_prefix, tags=["silences"])
    app.include_router(status.router, prefix=settings.api_prefix, tags=["status"])
    app.include_router(health.router, tags=["health"])
    return app


app = create_app()

"""FastAPI application for shellgate."""

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from shellgate import __version__
from shellgate.config import Config
from shellgate.providers.base import ShellProvider
from shellgate.providers.ssh import AsyncSSHProvider
from shellgate.server import websocket
from shellgate.server.routes import health, sessions
from shellgate.services.connection import RemoteShellConnection
from shellgate.services.reaper import InactivityReaper
from shellgate.services.registry import SessionRegistry

logger = logging.getLogger(__name__)


def create_app(config: Optional[Config] = None, provider: Optional[ShellProvider] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Application configuration (loaded from env/YAML if None)
        provider: Remote shell provider (asyncssh if None)
    """
    if config is None:
        config = Config.load()
    if provider is None:
        provider = AsyncSSHProvider(
            known_hosts=config.known_hosts,
            keepalive_interval=config.keepalive_interval,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Own the registry and reaper for the lifetime of the process."""
        registry = SessionRegistry(lambda: RemoteShellConnection(provider, read_size=config.read_size))
        reaper = InactivityReaper(
            registry,
            check_interval=config.cleanup_interval_seconds,
            inactivity_threshold=timedelta(seconds=config.inactivity_timeout_seconds),
        )
        app.state.registry = registry
        app.state.reaper = reaper
        reaper.start()
        logger.info("shellgate %s started", __version__)

        yield

        await reaper.stop()
        await registry.shutdown()
        app.state.registry = None
        logger.info("shellgate stopped")

    app = FastAPI(
        title="shellgate",
        description="Browser-based SSH session gateway",
        version=__version__,
        lifespan=lifespan,
        debug=config.debug,
    )
    app.state.config = config
    app.state.registry = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(sessions.router)
    app.include_router(websocket.router)

    # Mount static files if directory exists
    static_dir = Path(__file__).parent.parent.parent / "static"
    if static_dir.exists():
        app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="static")

    return app

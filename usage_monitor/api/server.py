"""FastAPI server for the usage monitor."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from usage_monitor import __version__
from usage_monitor.api.usage_routes import usage_router
from usage_monitor.config import Settings, settings
from usage_monitor.engine.assembler import UsageResolver
from usage_monitor.engine.reconciler import AllowancePolicy
from usage_monitor.monitor.poller import UsagePoller
from usage_monitor.monitor.refresh import RefreshContext
from usage_monitor.portal.client import PortalClient

logger = logging.getLogger(__name__)


def build_resolver(config: Settings = settings) -> UsageResolver:
    """Wire a UsageResolver from settings."""
    portal = PortalClient(
        base_url=config.portal_base_url,
        user_agent=config.portal_user_agent,
        timeout=config.portal_timeout,
    )
    policy = AllowancePolicy(
        default_credit_allowance=config.default_credit_allowance,
        default_message_allowance=config.default_message_allowance,
    )
    return UsageResolver(portal, policy=policy, offset_hours=config.display_utc_offset_hours)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize shared resources on startup."""
    app.state.resolver = build_resolver()
    app.state.refresh_context = RefreshContext(token=settings.portal_token)

    poller: UsagePoller | None = None
    if settings.enable_auto_refresh:
        poller = UsagePoller(
            resolver=app.state.resolver,
            context=app.state.refresh_context,
            interval=settings.refresh_interval,
        )
        await poller.start()
    else:
        logger.info("Auto refresh disabled")
    app.state.poller = poller

    yield

    if poller is not None:
        await poller.stop()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Usage Monitor",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(usage_router, prefix="/api")

    @app.get("/health")
    def health() -> dict[str, object]:
        return {"ok": True, "version": __version__}

    return app


app = create_app()

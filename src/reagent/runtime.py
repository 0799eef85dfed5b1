"""Application context and lifespan for the reagent server."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, field

from fastmcp import FastMCP

from reagent.config import Settings, load_settings
from reagent.registry import SessionRegistry
from reagent.service import ReviewService

logger = logging.getLogger("reagent")


@dataclass
class AppContext:
    """Process-wide state: settings, the session registry and the service over it."""

    settings: Settings
    registry: SessionRegistry
    service: ReviewService
    started_at: float = field(default_factory=time.monotonic)


def build_app_context(settings: Settings | None = None) -> AppContext:
    settings = settings or load_settings()
    registry = SessionRegistry()
    return AppContext(
        settings=settings,
        registry=registry,
        service=ReviewService(registry, settings),
    )


# Module-level AppContext for HTTP route handlers, set by reagent_lifespan.
_app_ctx: AppContext | None = None


def set_app_context(ctx: AppContext | None) -> None:
    global _app_ctx
    _app_ctx = ctx


def current_app_context() -> AppContext:
    if _app_ctx is None:
        raise RuntimeError("reagent application context is not initialized")
    return _app_ctx


async def _periodic_cleanup(ctx: AppContext) -> None:
    while True:
        await asyncio.sleep(ctx.settings.cleanup_interval_seconds)
        try:
            ctx.service.cleanup()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("background cleanup failed")


def shutdown_app_context(ctx: AppContext) -> int:
    """Cancel every pending session so blocked waiters are released."""
    cancelled = ctx.registry.clear()
    if cancelled:
        logger.info("shutdown -> cancelled %s pending review(s)", cancelled)
    return cancelled


@asynccontextmanager
async def reagent_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Create the registry at startup; cancel pending reviews on shutdown."""
    del server
    ctx = build_app_context()
    set_app_context(ctx)
    cleanup_task = asyncio.create_task(_periodic_cleanup(ctx))
    logger.info(
        "Reagent ready - review host=%s, session timeout=%ss",
        ctx.settings.review_host,
        ctx.settings.session_timeout_seconds,
    )
    try:
        yield ctx
    finally:
        cleanup_task.cancel()
        with suppress(asyncio.CancelledError):
            await cleanup_task
        shutdown_app_context(ctx)
        set_app_context(None)

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sf_gateway.app.settings import Settings
from libs.common.logging import get_logger

logger = get_logger("sf_gateway.lifespan")


def create_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        registry = app.state.registry
        logger.info(
            "server_starting",
            service=settings.service_name,
            host=settings.host,
            port=settings.port,
            auth_enabled=settings.require_auth,
            secret_configured="yes" if settings.secret_key else "no",
            tool_count=len(registry),
        )
        try:
            yield
        finally:
            logger.info("server_stopped", service=settings.service_name)

    return lifespan

from __future__ import annotations

from fastapi import APIRouter


def build_api_router() -> APIRouter:
    from sf_gateway.modules.health.api import router as health_router
    from sf_gateway.modules.mcp.api import router as mcp_router
    from sf_gateway.modules.tools.api import router as tools_router

    api_router = APIRouter()
    api_router.include_router(health_router)
    api_router.include_router(tools_router)
    api_router.include_router(mcp_router)
    return api_router


__all__ = ["build_api_router"]

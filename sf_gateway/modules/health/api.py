from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from sf_gateway.modules.common.deps import get_settings

router = APIRouter()


@router.get("/health")
async def health(request: Request) -> dict[str, str]:
    return {"status": "healthy", "service": get_settings(request).service_name}


@router.get("/")
async def service_metadata(request: Request) -> dict[str, Any]:
    app_settings = get_settings(request)
    return {
        "service": app_settings.service_name,
        "version": app_settings.service_version,
        "description": "Salesforce 조직을 MCP 도구로 노출하는 JSON-RPC 게이트웨이예요.",
        "endpoints": {
            "health": "GET /health",
            "tools": "GET /tools",
            "mcp": "POST /mcp",
        },
    }

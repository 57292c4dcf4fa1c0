from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from sf_gateway.modules.common.deps import client_ip, get_envelope_router

router = APIRouter()


@router.post("/mcp")
async def handle_mcp(request: Request) -> JSONResponse:
    body = await request.body()
    reply = await get_envelope_router(request).handle(body, request.headers, client_ip=client_ip(request))
    return JSONResponse(status_code=reply.status_code, content=reply.payload)

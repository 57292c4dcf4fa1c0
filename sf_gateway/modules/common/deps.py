from __future__ import annotations

from fastapi import HTTPException, Request, status

from sf_gateway.app.rpc import EnvelopeRouter
from sf_gateway.app.settings import Settings, settings
from sf_gateway.app.tools.registry import OperationRegistry


def get_settings(request: Request) -> Settings:
    configured = getattr(request.app.state, "settings", None)
    if isinstance(configured, Settings):
        return configured
    return settings


def get_registry(request: Request) -> OperationRegistry:
    return request.app.state.registry  # type: ignore[no-any-return]


def get_envelope_router(request: Request) -> EnvelopeRouter:
    router = getattr(request.app.state, "envelope_router", None)
    if not isinstance(router, EnvelopeRouter):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="요청 라우터를 사용할 수 없어요.")
    return router


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from sf_gateway.modules.common.deps import get_registry

router = APIRouter()


@router.get("/tools")
async def list_tools(request: Request) -> dict[str, list[dict[str, Any]]]:
    """`tools/list` 결과와 같은 모양으로 도구 카탈로그를 돌려줘요."""
    return {"tools": get_registry(request).list_specs()}

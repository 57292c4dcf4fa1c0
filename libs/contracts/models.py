from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RpcRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    jsonrpc: Any = None
    method: Any = None
    params: Any = None
    id: Any = None


class RpcErrorObject(BaseModel):
    code: int
    message: str
    data: dict[str, Any] | None = None


class RpcResponse(BaseModel):
    jsonrpc: Literal["2.0"] = "2.0"
    id: Any = None
    result: dict[str, Any] | None = None
    error: RpcErrorObject | None = None

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> "RpcResponse":
        if (self.result is None) == (self.error is None):
            raise ValueError("result와 error 중 정확히 하나만 채워야 해요.")
        return self

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"jsonrpc": self.jsonrpc}
        if self.error is not None:
            payload["error"] = self.error.model_dump(exclude_none=True)
        else:
            payload["result"] = self.result
        payload["id"] = self.id
        return payload


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolCallResult(BaseModel):
    content: list[TextContent] = Field(default_factory=list)

"""`POST /mcp` 요청 하나를 JSON-RPC 응답으로 바꾸는 라우터예요.

처리 순서는 본문 해석 → 인증 가드 → 자격 증명 추출 → `method` 분기예요.
각 단계는 예외 대신 `GatewayFailure`를 돌려주고, 라우터는 어떤 경우에도
`jsonrpc`/`id`와 `result` 또는 `error` 하나를 담은 응답을 만들어요.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from libs.contracts.models import RpcErrorObject, RpcRequest, RpcResponse, TextContent, ToolCallResult
from sf_gateway.app.auth import AuthPolicy, check_request
from sf_gateway.app.credentials import Credentials, extract_credentials
from sf_gateway.app.dispatcher import Dispatcher
from sf_gateway.app.failures import (
    GatewayFailure,
    execution_error,
    invalid_request,
    malformed_envelope,
    method_not_found,
)
from sf_gateway.app.mcp_protocol import (
    METHOD_INITIALIZE,
    METHOD_TOOLS_CALL,
    METHOD_TOOLS_LIST,
    McpServerInfo,
)
from sf_gateway.app.tools.base import ToolResult
from sf_gateway.app.tools.registry import OperationRegistry
from sf_gateway.app.tools.validator import validate_call
from libs.common.logging import get_logger

logger = get_logger("sf_gateway.rpc")


@dataclass(slots=True, frozen=True)
class RpcReply:
    payload: dict[str, Any]
    status_code: int = 200


def failure_reply(request_id: Any, failure: GatewayFailure) -> RpcReply:
    response = RpcResponse(id=request_id, error=RpcErrorObject(**failure.to_error()))
    return RpcReply(payload=response.to_payload(), status_code=failure.http_status)


def _result_reply(request_id: Any, result: dict[str, Any]) -> RpcReply:
    return RpcReply(payload=RpcResponse(id=request_id, result=result).to_payload())


def parse_envelope(body: bytes) -> RpcRequest | GatewayFailure:
    """원시 본문을 한 번만 해석해요. 객체가 아니면 실패 값을 돌려줘요."""
    try:
        decoded = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as exc:
        return malformed_envelope(str(exc))
    if not isinstance(decoded, dict):
        return invalid_request("JSON-RPC 요청은 객체여야 해요.")
    return RpcRequest.model_validate(decoded)


def _tool_call_result(result: ToolResult) -> dict[str, Any]:
    return ToolCallResult(content=[TextContent(text=item.text) for item in result.content]).model_dump()


class EnvelopeRouter:
    def __init__(
        self,
        *,
        registry: OperationRegistry,
        dispatcher: Dispatcher,
        server_info: McpServerInfo,
        auth_policy: AuthPolicy,
    ) -> None:
        self._registry = registry
        self._dispatcher = dispatcher
        self._server_info = server_info
        self._auth_policy = auth_policy

    async def handle(self, body: bytes, headers: Mapping[str, str], *, client_ip: str | None) -> RpcReply:
        envelope = parse_envelope(body)
        if isinstance(envelope, GatewayFailure):
            logger.warning("rpc_request_rejected", reason=envelope.kind.value, client_ip=client_ip)
            return failure_reply(None, envelope)

        logger.info("mcp_request_received", method=envelope.method, request_id=envelope.id, client_ip=client_ip)

        rejection = check_request(
            self._auth_policy,
            {"method": envelope.method},
            headers,
            client_ip=client_ip,
        )
        if rejection is not None:
            return failure_reply(envelope.id, rejection)

        credentials = extract_credentials(headers)
        try:
            return await self.route(envelope, credentials, client_ip=client_ip)
        except Exception as exc:
            logger.exception("rpc_route_failed", method=envelope.method, client_ip=client_ip, error=str(exc))
            return failure_reply(envelope.id, execution_error(str(exc) or type(exc).__name__))

    async def route(self, envelope: RpcRequest, credentials: Credentials, *, client_ip: str | None) -> RpcReply:
        """인증을 통과한 요청을 `method`에 따라 처리해요."""
        method = envelope.method
        if method == METHOD_INITIALIZE:
            return _result_reply(envelope.id, self._server_info.initialize_result())
        if method == METHOD_TOOLS_LIST:
            return _result_reply(envelope.id, {"tools": self._registry.list_specs()})
        if method == METHOD_TOOLS_CALL:
            return await self._call_tool(envelope, credentials, client_ip=client_ip)

        failure = method_not_found(method)
        logger.warning("rpc_request_failed", reason=failure.kind.value, method=method, client_ip=client_ip)
        return failure_reply(envelope.id, failure)

    async def _call_tool(self, envelope: RpcRequest, credentials: Credentials, *, client_ip: str | None) -> RpcReply:
        params = envelope.params if isinstance(envelope.params, dict) else {}
        checked = validate_call(self._registry, params.get("name"), params.get("arguments"))
        if isinstance(checked, GatewayFailure):
            logger.warning(
                "rpc_request_failed",
                reason=checked.kind.value,
                method=envelope.method,
                operation=checked.operation,
                field=checked.field,
                client_ip=client_ip,
            )
            return failure_reply(envelope.id, checked)

        outcome = await self._dispatcher.dispatch(checked, credentials)
        if isinstance(outcome, GatewayFailure):
            logger.warning(
                "rpc_request_failed",
                reason=outcome.kind.value,
                method=envelope.method,
                operation=checked.name,
                client_ip=client_ip,
            )
            return failure_reply(envelope.id, outcome)

        try:
            return _result_reply(envelope.id, _tool_call_result(outcome))
        except (TypeError, ValueError) as exc:
            logger.warning("tool_result_invalid", operation=checked.name, client_ip=client_ip, error=str(exc))
            return failure_reply(envelope.id, execution_error(str(exc), operation=checked.name))

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import pytest

from sf_gateway.app.auth import AuthPolicy
from sf_gateway.app.dispatcher import Dispatcher
from sf_gateway.app.failures import FailureKind, GatewayFailure
from sf_gateway.app.mcp_protocol import McpServerInfo
from sf_gateway.app.rpc import EnvelopeRouter, parse_envelope
from sf_gateway.app.tools.base import ArgumentField, ArgumentKind, OperationDescriptor, TextContent, ToolResult
from sf_gateway.app.tools.defaults import build_default_registry
from sf_gateway.app.tools.registry import OperationRegistry
from tests.conftest import FakeSession, SessionFactoryStub, rpc

_HEADERS = {"x-secret-key": "abc", "x-salesforce-username": "admin@example.com", "x-salesforce-password": "pw"}


def _router(factory: SessionFactoryStub, *, require_auth: bool = True) -> EnvelopeRouter:
    return EnvelopeRouter(
        registry=build_default_registry(),
        dispatcher=Dispatcher(factory),
        server_info=McpServerInfo(name="salesforce-mcp-server", version="1.0.0"),
        auth_policy=AuthPolicy(require_auth=require_auth, configured_secret="abc"),
    )


def _body(value: Any) -> bytes:
    return json.dumps(value).encode("utf-8")


def test_parse_envelope_rejects_garbage() -> None:
    failure = parse_envelope(b"{not json")
    assert isinstance(failure, GatewayFailure)
    assert failure.kind is FailureKind.MALFORMED_ENVELOPE

    failure = parse_envelope(b"[1, 2]")
    assert isinstance(failure, GatewayFailure)
    assert failure.kind is FailureKind.INVALID_REQUEST


@pytest.mark.asyncio
async def test_initialize_returns_server_metadata() -> None:
    reply = await _router(SessionFactoryStub()).handle(_body(rpc("initialize", {})), {}, client_ip=None)
    assert reply.status_code == 200
    assert reply.payload["result"]["protocolVersion"] == "2024-11-05"
    assert reply.payload["result"]["serverInfo"] == {"name": "salesforce-mcp-server", "version": "1.0.0"}
    assert "error" not in reply.payload


@pytest.mark.asyncio
async def test_unknown_method_never_reaches_dispatcher() -> None:
    factory = SessionFactoryStub()
    reply = await _router(factory).handle(_body(rpc("resources/list")), _HEADERS, client_ip=None)
    assert reply.status_code == 200
    assert reply.payload["error"]["code"] == -32601
    assert factory.credentials == []


@pytest.mark.asyncio
async def test_tools_call_passes_header_credentials_to_dispatcher() -> None:
    session = FakeSession(queries=[{"records": [{"attributes": {"type": "Account"}, "Id": "001"}]}])
    factory = SessionFactoryStub(session)
    params = {"name": "salesforce_query_records", "arguments": {"objectName": "Account", "fields": ["Id"]}}

    reply = await _router(factory).handle(_body(rpc("tools/call", params, "req-7")), _HEADERS, client_ip="1.2.3.4")

    assert reply.status_code == 200
    assert reply.payload["id"] == "req-7"
    content = reply.payload["result"]["content"]
    assert content[0]["type"] == "text"
    assert '"Id": "001"' in content[0]["text"]
    assert factory.credentials[0].username == "admin@example.com"
    assert session.soql == ["SELECT Id FROM Account"]


@pytest.mark.asyncio
async def test_validation_failure_skips_dispatch() -> None:
    factory = SessionFactoryStub()
    params = {"name": "salesforce_query_records", "arguments": {"fields": ["Id"]}}
    reply = await _router(factory).handle(_body(rpc("tools/call", params)), _HEADERS, client_ip=None)
    assert reply.payload["error"]["data"]["field"] == "objectName"
    assert factory.credentials == []


@pytest.mark.asyncio
async def test_auth_rejection_short_circuits_with_401() -> None:
    factory = SessionFactoryStub()
    params = {"name": "salesforce_query_records", "arguments": {"objectName": "Account", "fields": ["Id"]}}
    reply = await _router(factory).handle(_body(rpc("tools/call", params, 9)), {}, client_ip=None)
    assert reply.status_code == 401
    assert reply.payload == {
        "jsonrpc": "2.0",
        "error": {"code": -32001, "message": reply.payload["error"]["message"], "data": {"reason": "missing_credential"}},
        "id": 9,
    }
    assert factory.credentials == []


@pytest.mark.asyncio
async def test_execution_error_is_encoded_in_body() -> None:
    factory = SessionFactoryStub(error=RuntimeError("connection refused"))
    params = {"name": "salesforce_describe_object", "arguments": {"objectName": "Account"}}
    reply = await _router(factory).handle(_body(rpc("tools/call", params)), _HEADERS, client_ip=None)
    assert reply.status_code == 200
    assert reply.payload["error"]["code"] == -32603
    assert "connection refused" in reply.payload["error"]["message"]


@pytest.mark.asyncio
async def test_unparseable_body_returns_parse_error_with_null_id() -> None:
    reply = await _router(SessionFactoryStub()).handle(b"{", {}, client_ip=None)
    assert reply.status_code == 200
    assert reply.payload["error"]["code"] == -32700
    assert reply.payload["id"] is None


@pytest.mark.asyncio
async def test_non_object_params_is_unknown_operation() -> None:
    reply = await _router(SessionFactoryStub()).handle(_body(rpc("tools/call", ["x"])), _HEADERS, client_ip=None)
    assert reply.payload["error"]["code"] == -32602
    assert reply.payload["error"]["data"]["reason"] == "unknown_operation"


@dataclass(slots=True, frozen=True)
class _EchoArgs:
    message: str


async def _non_text_result(session: FakeSession, args: _EchoArgs) -> ToolResult:
    del session, args
    return ToolResult(content=(TextContent(text=None),))  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_result_composition_fault_becomes_execution_error() -> None:
    descriptor = OperationDescriptor(
        name="echo_operation",
        description="결과 변환 실패를 확인하는 도구예요.",
        fields=(ArgumentField("message", ArgumentKind.STRING, "메시지예요.", required=True),),
        arguments_type=_EchoArgs,
        handler=_non_text_result,
    )
    factory = SessionFactoryStub()
    router = EnvelopeRouter(
        registry=OperationRegistry([descriptor]),
        dispatcher=Dispatcher(factory),
        server_info=McpServerInfo(name="salesforce-mcp-server", version="1.0.0"),
        auth_policy=AuthPolicy(require_auth=True, configured_secret="abc"),
    )
    params = {"name": "echo_operation", "arguments": {"message": "hi"}}

    reply = await router.handle(_body(rpc("tools/call", params, 3)), _HEADERS, client_ip=None)

    assert reply.status_code == 200
    assert reply.payload["id"] == 3
    assert "result" not in reply.payload
    error = reply.payload["error"]
    assert error["code"] == -32603
    assert error["message"].startswith("도구 실행 중 오류가 발생했어요:")
    assert "TextContent" in error["message"]
    assert error["data"]["operation"] == "echo_operation"


def test_parse_envelope_treats_deep_nesting_as_malformed() -> None:
    failure = parse_envelope(b"[" * 200_000 + b"]" * 200_000)
    assert isinstance(failure, GatewayFailure)
    assert failure.kind is FailureKind.MALFORMED_ENVELOPE

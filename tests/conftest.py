from __future__ import annotations

from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from sf_gateway.app.credentials import Credentials
from sf_gateway.app.main import create_app
from sf_gateway.app.settings import Settings


class FakeSession:
    """Salesforce 세션 대역이에요. 준비한 응답을 순서대로 돌려주고 호출을 기록해요."""

    def __init__(
        self,
        *,
        queries: list[dict[str, Any]] | None = None,
        tooling_queries: list[dict[str, Any]] | None = None,
        responses: list[Any] | None = None,
        user_id: str | None = "005000000000001AAA",
        api_version: str = "59.0",
    ) -> None:
        self.query_results = list(queries or [])
        self.tooling_results = list(tooling_queries or [])
        self.responses = list(responses or [])
        self.user_id = user_id
        self.api_version = api_version
        self.soql: list[str] = []
        self.tooling_soql: list[str] = []
        self.requests: list[dict[str, Any]] = []
        self.closed = False

    async def query(self, soql: str) -> dict[str, Any]:
        self.soql.append(soql)
        return self.query_results.pop(0) if self.query_results else {"records": []}

    async def tooling_query(self, soql: str) -> dict[str, Any]:
        self.tooling_soql.append(soql)
        return self.tooling_results.pop(0) if self.tooling_results else {"records": []}

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        tooling: bool = False,
    ) -> Any:
        self.requests.append({"method": method, "path": path, "params": params, "json": json, "tooling": tooling})
        if not self.responses:
            return None
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def aclose(self) -> None:
        self.closed = True


class SessionFactoryStub:
    """디스패처에 넘기는 세션 팩토리 대역이에요. 받은 자격 증명을 기록해요."""

    def __init__(self, session: FakeSession | None = None, error: Exception | None = None) -> None:
        self.session = session or FakeSession()
        self.error = error
        self.credentials: list[Credentials] = []

    async def __call__(self, credentials: Credentials) -> FakeSession:
        self.credentials.append(credentials)
        if self.error is not None:
            raise self.error
        return self.session


@pytest.fixture
def app_settings() -> Settings:
    """인증을 켜고 비밀 키를 `abc`로 둔 테스트 설정이에요."""
    return Settings(_env_file=None, secret_key="abc", require_auth=True)


@pytest.fixture
def session_factory() -> SessionFactoryStub:
    return SessionFactoryStub()


@pytest.fixture
def app(app_settings: Settings, session_factory: SessionFactoryStub) -> FastAPI:
    return create_app(app_settings, session_factory=session_factory)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


def rpc(method: str, params: Any = None, request_id: Any = 1) -> dict[str, Any]:
    """JSON-RPC 요청 본문을 만드는 헬퍼예요."""
    body: dict[str, Any] = {"jsonrpc": "2.0", "method": method, "id": request_id}
    if params is not None:
        body["params"] = params
    return body

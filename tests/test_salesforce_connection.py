from __future__ import annotations

import json

import httpx
import pytest

from sf_gateway.app.credentials import Credentials
from sf_gateway.app.salesforce.connection import (
    SalesforceApiError,
    SalesforceLoginError,
    SalesforceSession,
    establish_session,
)
from libs.common.errors import ConfigurationError, UpstreamTransientError

_LOGIN_OK = """<?xml version="1.0" encoding="UTF-8"?>
<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/" xmlns="urn:partner.soap.sforce.com">
  <soapenv:Body>
    <loginResponse>
      <result>
        <serverUrl>https://acme.my.salesforce.com/services/Soap/u/59.0/00D000000000001</serverUrl>
        <sessionId>00D!SESSION</sessionId>
        <userId>005000000000001AAA</userId>
      </result>
    </loginResponse>
  </soapenv:Body>
</soapenv:Envelope>"""

_LOGIN_FAULT = """<?xml version="1.0" encoding="UTF-8"?>
<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/">
  <soapenv:Body>
    <soapenv:Fault>
      <faultcode>INVALID_LOGIN</faultcode>
      <faultstring>INVALID_LOGIN: Invalid username, password, security token; or user locked out.</faultstring>
    </soapenv:Fault>
  </soapenv:Body>
</soapenv:Envelope>"""


@pytest.mark.asyncio
async def test_establish_session_logs_in_with_password_and_token() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=_LOGIN_OK)

    credentials = Credentials(
        username="admin@example.com",
        password="p<w",
        token="TOKEN",
        login_url="https://test.salesforce.com/",
    )
    session = await establish_session(
        credentials,
        api_version="59.0",
        timeout_seconds=5.0,
        transport=httpx.MockTransport(handler),
    )

    request = seen[0]
    assert str(request.url) == "https://test.salesforce.com/services/Soap/u/59.0"
    assert request.headers["SOAPAction"] == "login"
    assert b"<urn:password>p&lt;wTOKEN</urn:password>" in request.content
    assert session.instance_url == "https://acme.my.salesforce.com"
    assert session.user_id == "005000000000001AAA"
    assert "SESSION" not in repr(session)
    await session.aclose()


@pytest.mark.asyncio
async def test_establish_session_raises_on_soap_fault() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text=_LOGIN_FAULT))
    with pytest.raises(SalesforceLoginError) as exc_info:
        await establish_session(
            Credentials(username="admin", password="bad"),
            api_version="59.0",
            timeout_seconds=5.0,
            transport=transport,
        )
    assert "INVALID_LOGIN" in exc_info.value.message


@pytest.mark.asyncio
async def test_establish_session_requires_username_and_password() -> None:
    with pytest.raises(ConfigurationError):
        await establish_session(Credentials(username=None), api_version="59.0", timeout_seconds=5.0)


@pytest.mark.asyncio
async def test_establish_session_wraps_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamTransientError):
        await establish_session(
            Credentials(username="admin", password="pw"),
            api_version="59.0",
            timeout_seconds=5.0,
            transport=httpx.MockTransport(handler),
        )


def _session(handler) -> SalesforceSession:
    return SalesforceSession(
        instance_url="https://acme.my.salesforce.com",
        access_token="00D!SESSION",
        api_version="59.0",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_query_follows_next_records_url() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        assert request.headers["Authorization"] == "Bearer 00D!SESSION"
        if request.url.path.endswith("/query"):
            assert request.url.params["q"] == "SELECT Id FROM Account"
            return httpx.Response(
                200,
                json={
                    "totalSize": 2,
                    "done": False,
                    "nextRecordsUrl": "/services/data/v59.0/query/01g-2000",
                    "records": [{"Id": "001A"}],
                },
            )
        return httpx.Response(200, json={"totalSize": 2, "done": True, "records": [{"Id": "001B"}]})

    async with _session(handler) as session:
        result = await session.query("SELECT Id FROM Account")

    assert paths == ["/services/data/v59.0/query", "/services/data/v59.0/query/01g-2000"]
    assert [record["Id"] for record in result["records"]] == ["001A", "001B"]
    assert result["totalSize"] == 2


@pytest.mark.asyncio
async def test_tooling_requests_use_tooling_prefix() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json={"done": True, "records": []})

    async with _session(handler) as session:
        await session.tooling_query("SELECT Id FROM ApexClass")

    assert paths == ["/services/data/v59.0/tooling/query"]


@pytest.mark.asyncio
async def test_request_raises_salesforce_api_error_with_error_code() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json=[{"message": "No such column 'Foo' on entity 'Account'", "errorCode": "INVALID_FIELD"}],
        )

    async with _session(handler) as session:
        with pytest.raises(SalesforceApiError) as exc_info:
            await session.request("GET", "query", params={"q": "SELECT Foo FROM Account"})

    assert exc_info.value.error_code == "INVALID_FIELD"
    assert exc_info.value.status_code == 400
    assert "No such column" in exc_info.value.message


@pytest.mark.asyncio
async def test_server_errors_are_transient() -> None:
    async with _session(lambda request: httpx.Response(503, text="Service Unavailable")) as session:
        with pytest.raises(UpstreamTransientError):
            await session.request("GET", "sobjects")


@pytest.mark.asyncio
async def test_no_content_and_text_bodies() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "DELETE":
            return httpx.Response(204)
        return httpx.Response(200, text="USER_DEBUG|hello", headers={"content-type": "text/plain"})

    async with _session(handler) as session:
        assert await session.request("DELETE", "sobjects/TraceFlag/7tf", tooling=True) is None
        assert await session.request("GET", "sobjects/ApexLog/07L/Body") == "USER_DEBUG|hello"


@pytest.mark.asyncio
async def test_request_sends_json_body() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": "001X", "success": True})

    async with _session(handler) as session:
        result = await session.request("POST", "sobjects/Account", json={"Name": "Acme"})

    assert captured == {"method": "POST", "body": {"Name": "Acme"}}
    assert result == {"id": "001X", "success": True}

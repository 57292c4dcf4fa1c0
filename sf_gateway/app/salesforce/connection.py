"""Salesforce 세션을 맺고 REST/Tooling API를 호출하는 클라이언트예요.

`establish_session`은 SOAP partner `login`으로 세션 ID를 받아요. 요청마다 새
세션을 만들고 호출이 끝나면 닫아요. 세션을 캐시하거나 풀링하지 않아요.
"""

from __future__ import annotations

import xml.etree.ElementTree as ElementTree
from typing import Any
from urllib.parse import urlsplit
from xml.sax.saxutils import escape

import httpx

from sf_gateway.app.credentials import Credentials
from libs.common.errors import (
    AuthenticationError,
    ConfigurationError,
    UpstreamRejectedError,
    UpstreamTransientError,
)

_SOAP_LOGIN_TEMPLATE = """<?xml version="1.0" encoding="utf-8" ?>
<env:Envelope xmlns:xsd="http://www.w3.org/2001/XMLSchema"
    xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
    xmlns:env="http://schemas.xmlsoap.org/soap/envelope/"
    xmlns:urn="urn:partner.soap.sforce.com">
  <env:Body>
    <urn:login>
      <urn:username>{username}</urn:username>
      <urn:password>{password}</urn:password>
    </urn:login>
  </env:Body>
</env:Envelope>"""


class SalesforceLoginError(AuthenticationError):
    def __init__(self, message: str = "Salesforce 로그인에 실패했어요.") -> None:
        super().__init__(message)


class SalesforceApiError(UpstreamRejectedError):
    def __init__(self, message: str, *, status_code: int | None = None, error_code: str = "SALESFORCE_API_ERROR") -> None:
        super().__init__(message, error_code=error_code)
        self.status_code = status_code


def _find_text(root: ElementTree.Element, local_name: str) -> str | None:
    for element in root.iter():
        if element.tag.rsplit("}", 1)[-1] == local_name and element.text:
            return element.text
    return None


def _parse_login_response(text: str) -> tuple[str, str, str | None]:
    try:
        root = ElementTree.fromstring(text)
    except ElementTree.ParseError as exc:
        raise SalesforceLoginError("Salesforce 로그인 응답을 해석하지 못했어요.") from exc

    fault = _find_text(root, "faultstring")
    if fault:
        raise SalesforceLoginError(f"Salesforce 로그인에 실패했어요: {fault}")

    session_id = _find_text(root, "sessionId")
    server_url = _find_text(root, "serverUrl")
    if not session_id or not server_url:
        raise SalesforceLoginError("Salesforce 로그인 응답에 세션 정보가 없어요.")
    return session_id, server_url, _find_text(root, "userId")


def _instance_url(server_url: str) -> str:
    parsed = urlsplit(server_url)
    return f"{parsed.scheme}://{parsed.netloc}"


def _api_error(response: httpx.Response) -> Exception:
    message = response.text.strip() or f"HTTP {response.status_code}"
    error_code = "SALESFORCE_API_ERROR"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, list):
        parts: list[str] = []
        for item in body:
            if not isinstance(item, dict):
                continue
            code_value = item.get("errorCode")
            message_value = item.get("message")
            if isinstance(code_value, str) and error_code == "SALESFORCE_API_ERROR":
                error_code = code_value
            parts.append(f"{code_value}: {message_value}" if code_value else str(message_value))
        if parts:
            message = "; ".join(parts)

    if response.status_code >= 500:
        return UpstreamTransientError(f"Salesforce 서버 오류예요 ({response.status_code}): {message}")
    return SalesforceApiError(message, status_code=response.status_code, error_code=error_code)


class SalesforceSession:
    def __init__(
        self,
        *,
        instance_url: str,
        access_token: str,
        api_version: str,
        user_id: str | None = None,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.instance_url = instance_url.rstrip("/")
        self.api_version = api_version
        self.user_id = user_id
        self._client = httpx.AsyncClient(
            base_url=self.instance_url,
            timeout=timeout_seconds,
            transport=transport,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
        )

    def __repr__(self) -> str:
        return f"SalesforceSession(instance_url={self.instance_url!r}, api_version={self.api_version!r})"

    async def __aenter__(self) -> "SalesforceSession":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _path(self, path: str, *, tooling: bool) -> str:
        if path.startswith("/services/"):
            return path
        base = f"/services/data/v{self.api_version}"
        if tooling:
            base = f"{base}/tooling"
        return f"{base}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        tooling: bool = False,
    ) -> Any:
        try:
            response = await self._client.request(
                method,
                self._path(path, tooling=tooling),
                params=params,
                json=json,
            )
        except httpx.TimeoutException as exc:
            raise UpstreamTransientError("Salesforce 요청 시간이 초과됐어요.") from exc
        except httpx.HTTPError as exc:
            raise UpstreamTransientError(f"Salesforce 요청에 실패했어요: {exc}") from exc

        if response.status_code >= 400:
            raise _api_error(response)
        if response.status_code == 204 or not response.content:
            return None
        if "json" in response.headers.get("content-type", ""):
            return response.json()
        return response.text

    async def _query(self, soql: str, *, tooling: bool) -> dict[str, Any]:
        page = await self.request("GET", "query", params={"q": soql}, tooling=tooling)
        if not isinstance(page, dict):
            raise SalesforceApiError("쿼리 응답 형식이 올바르지 않아요.")
        records = list(page.get("records") or [])
        while not page.get("done", True) and page.get("nextRecordsUrl"):
            page = await self.request("GET", page["nextRecordsUrl"])
            records.extend(page.get("records") or [])
        return {"totalSize": page.get("totalSize", len(records)), "done": True, "records": records}

    async def query(self, soql: str) -> dict[str, Any]:
        """SOQL을 실행하고 모든 페이지의 레코드를 모아서 반환해요."""
        return await self._query(soql, tooling=False)

    async def tooling_query(self, soql: str) -> dict[str, Any]:
        return await self._query(soql, tooling=True)


async def establish_session(
    credentials: Credentials,
    *,
    api_version: str,
    timeout_seconds: float,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SalesforceSession:
    """사용자 이름/비밀번호(+보안 토큰)로 로그인해서 세션을 만들어요.

    Raises:
        ConfigurationError: 사용자 이름이나 비밀번호 헤더가 없을 때예요.
        SalesforceLoginError: Salesforce가 로그인을 거절했을 때예요.
        UpstreamTransientError: 네트워크 오류나 시간 초과일 때예요.
    """
    if not credentials.username or not credentials.password:
        raise ConfigurationError("x-salesforce-username과 x-salesforce-password 헤더가 필요해요.")

    login_url = credentials.login_url.rstrip("/")
    body = _SOAP_LOGIN_TEMPLATE.format(
        username=escape(credentials.username),
        password=escape(credentials.password + (credentials.token or "")),
    )
    async with httpx.AsyncClient(timeout=timeout_seconds, transport=transport) as client:
        try:
            response = await client.post(
                f"{login_url}/services/Soap/u/{api_version}",
                content=body.encode("utf-8"),
                headers={"Content-Type": "text/xml; charset=UTF-8", "SOAPAction": "login"},
            )
        except httpx.TimeoutException as exc:
            raise UpstreamTransientError("Salesforce 로그인 요청 시간이 초과됐어요.") from exc
        except httpx.HTTPError as exc:
            raise UpstreamTransientError(f"Salesforce 로그인 요청에 실패했어요: {exc}") from exc

    session_id, server_url, user_id = _parse_login_response(response.text)
    return SalesforceSession(
        instance_url=_instance_url(server_url),
        access_token=session_id,
        api_version=api_version,
        user_id=user_id,
        timeout_seconds=timeout_seconds,
        transport=transport,
    )

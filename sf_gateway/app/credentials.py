from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

AUTH_MODE_USER_PASSWORD = "User_Password"
DEFAULT_LOGIN_URL = "https://login.salesforce.com"

HEADER_USERNAME = "x-salesforce-username"
HEADER_PASSWORD = "x-salesforce-password"
HEADER_TOKEN = "x-salesforce-token"
HEADER_INSTANCE_URL = "x-salesforce-instance-url"


@dataclass(slots=True, frozen=True)
class Credentials:
    """요청 하나 동안만 쓰는 Salesforce 접속 정보예요. 비밀 값은 repr에 나오지 않아요."""

    username: str | None
    password: str | None = field(default=None, repr=False)
    token: str | None = field(default=None, repr=False)
    login_url: str = DEFAULT_LOGIN_URL
    # 클라이언트가 다른 인증 방식을 고를 수 없어요
    auth_mode: str = field(default=AUTH_MODE_USER_PASSWORD, init=False)


def _header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is None or value == "":
        return None
    return value


def extract_credentials(headers: Mapping[str, str]) -> Credentials:
    """요청 헤더를 `Credentials`로 옮겨요. 검증이나 I/O는 하지 않아요.

    Args:
        headers: 대소문자를 구분하지 않는 헤더 매핑이에요 (Starlette `Headers` 등).
            일반 dict를 넘길 때는 키를 소문자로 맞춰야 해요.
    """
    return Credentials(
        username=_header(headers, HEADER_USERNAME),
        password=_header(headers, HEADER_PASSWORD),
        token=_header(headers, HEADER_TOKEN),
        login_url=_header(headers, HEADER_INSTANCE_URL) or DEFAULT_LOGIN_URL,
    )

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sf_gateway.app.failures import GatewayFailure, invalid_credential, missing_credential
from sf_gateway.app.mcp_protocol import METHOD_TOOLS_CALL
from sf_gateway.app.settings import Settings
from libs.common.logging import get_logger

SECRET_HEADER = "x-secret-key"

logger = get_logger("sf_gateway.auth")


@dataclass(slots=True, frozen=True)
class AuthPolicy:
    require_auth: bool
    configured_secret: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthPolicy":
        return cls(require_auth=settings.require_auth, configured_secret=settings.secret_key)


def _envelope_method(envelope: Any) -> Any:
    if isinstance(envelope, dict):
        return envelope.get("method")
    return None


def check_request(
    policy: AuthPolicy,
    envelope: Any,
    headers: Mapping[str, str],
    *,
    client_ip: str | None,
) -> GatewayFailure | None:
    """라우팅 전에 공유 비밀 키를 확인해요.

    `tools/call`만 검사하고 `initialize`, `tools/list` 같은 조회 메서드는 항상
    통과시켜요. 비밀 키가 설정되지 않았으면 경고만 남기고 통과시켜요.

    Returns:
        통과하면 ``None``, 거부하면 인증 실패 `GatewayFailure`예요.
    """
    if not policy.require_auth:
        return None

    if not policy.configured_secret:
        logger.warning("auth_secret_not_configured", client_ip=client_ip)
        return None

    method = _envelope_method(envelope)
    if method != METHOD_TOOLS_CALL:
        return None

    provided = headers.get(SECRET_HEADER)
    if not provided:
        logger.warning("auth_rejected", reason="missing_credential", client_ip=client_ip, method=method)
        return missing_credential()

    if provided != policy.configured_secret:
        logger.warning("auth_rejected", reason="invalid_credential", client_ip=client_ip, method=method)
        return invalid_credential()

    return None

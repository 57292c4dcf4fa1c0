"""요청 처리 파이프라인이 반환하는 실패 값이에요.

인증 가드, 인자 검증기, 디스패처는 예외를 던지지 않고 `GatewayFailure`를
돌려줘요. 라우터는 이 값을 그대로 JSON-RPC `error` 객체로 바꿔요.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from sf_gateway.app.mcp_protocol import (
    AUTHENTICATION_ERROR,
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
)


class FailureKind(str, Enum):
    MISSING_CREDENTIAL = "missing_credential"
    INVALID_CREDENTIAL = "invalid_credential"
    METHOD_NOT_FOUND = "method_not_found"
    UNKNOWN_OPERATION = "unknown_operation"
    INVALID_ARGUMENTS = "invalid_arguments"
    EXECUTION_ERROR = "execution_error"
    MALFORMED_ENVELOPE = "malformed_envelope"
    INVALID_REQUEST = "invalid_request"


_CODES: dict[FailureKind, int] = {
    FailureKind.MISSING_CREDENTIAL: AUTHENTICATION_ERROR,
    FailureKind.INVALID_CREDENTIAL: AUTHENTICATION_ERROR,
    FailureKind.METHOD_NOT_FOUND: METHOD_NOT_FOUND,
    FailureKind.UNKNOWN_OPERATION: INVALID_PARAMS,
    FailureKind.INVALID_ARGUMENTS: INVALID_PARAMS,
    FailureKind.EXECUTION_ERROR: INTERNAL_ERROR,
    FailureKind.MALFORMED_ENVELOPE: PARSE_ERROR,
    FailureKind.INVALID_REQUEST: INVALID_REQUEST,
}

_AUTH_KINDS = frozenset({FailureKind.MISSING_CREDENTIAL, FailureKind.INVALID_CREDENTIAL})


@dataclass(slots=True, frozen=True)
class GatewayFailure:
    kind: FailureKind
    message: str
    operation: str | None = None
    field: str | None = None

    @property
    def code(self) -> int:
        return _CODES[self.kind]

    @property
    def http_status(self) -> int:
        """인증 실패만 401이고 나머지는 모두 본문에 담아 200으로 보내요."""
        return 401 if self.kind in _AUTH_KINDS else 200

    def to_error(self) -> dict[str, Any]:
        data: dict[str, Any] = {"reason": self.kind.value}
        if self.operation is not None:
            data["operation"] = self.operation
        if self.field is not None:
            data["field"] = self.field
        return {"code": self.code, "message": self.message, "data": data}


def missing_credential() -> GatewayFailure:
    return GatewayFailure(FailureKind.MISSING_CREDENTIAL, "도구를 실행하려면 인증이 필요해요.")


def invalid_credential() -> GatewayFailure:
    return GatewayFailure(FailureKind.INVALID_CREDENTIAL, "도구 실행 인증 정보가 올바르지 않아요.")


def method_not_found(method: Any) -> GatewayFailure:
    return GatewayFailure(FailureKind.METHOD_NOT_FOUND, f"지원하지 않는 메서드예요: {method}")


def unknown_operation(name: Any) -> GatewayFailure:
    operation = name if isinstance(name, str) else None
    return GatewayFailure(
        FailureKind.UNKNOWN_OPERATION,
        f"등록되지 않은 도구예요: {name}",
        operation=operation,
    )


def invalid_arguments(operation: str, field: str, *, malformed: bool) -> GatewayFailure:
    if malformed:
        message = f"{operation} 도구의 {field} 인자 형식이 올바르지 않아요."
    else:
        message = f"{operation} 도구에는 {field} 인자가 필요해요."
    return GatewayFailure(FailureKind.INVALID_ARGUMENTS, message, operation=operation, field=field)


def execution_error(message: str, *, operation: str | None = None) -> GatewayFailure:
    return GatewayFailure(
        FailureKind.EXECUTION_ERROR,
        f"도구 실행 중 오류가 발생했어요: {message}",
        operation=operation,
    )


def malformed_envelope(message: str) -> GatewayFailure:
    return GatewayFailure(FailureKind.MALFORMED_ENVELOPE, f"요청 본문을 해석하지 못했어요: {message}")


def invalid_request(message: str) -> GatewayFailure:
    return GatewayFailure(FailureKind.INVALID_REQUEST, message)

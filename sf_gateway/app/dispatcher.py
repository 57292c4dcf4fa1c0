from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from sf_gateway.app.credentials import Credentials
from sf_gateway.app.failures import GatewayFailure, execution_error
from sf_gateway.app.tools.base import SessionProtocol, ToolResult
from sf_gateway.app.tools.validator import ValidatedCall
from libs.common.errors import DomainError
from libs.common.logging import get_logger

SessionFactory = Callable[[Credentials], Awaitable[SessionProtocol]]

logger = get_logger("sf_gateway.dispatcher")


def _failure_message(exc: BaseException) -> str:
    if isinstance(exc, DomainError):
        return exc.message
    return str(exc) or type(exc).__name__


class Dispatcher:
    """검증을 통과한 호출 하나를 실행해요.

    호출마다 `session_factory`로 새 Salesforce 세션을 맺고, 끝나면 닫아요.
    재시도나 세션 캐시는 하지 않아요. 핸들러나 세션 연결에서 난 예외는 모두
    `execution_error`로 바꿔서 반환해요.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def dispatch(self, call: ValidatedCall, credentials: Credentials) -> ToolResult | GatewayFailure:
        session: SessionProtocol | None = None
        try:
            session = await self._session_factory(credentials)
            result = await call.descriptor.handler(session, call.arguments)
        except Exception as exc:
            logger.warning(
                "tool_call_failed",
                operation=call.name,
                error_type=type(exc).__name__,
                error=_failure_message(exc),
                retryable=getattr(exc, "retryable", False),
            )
            return execution_error(_failure_message(exc), operation=call.name)
        finally:
            if session is not None:
                await _close_quietly(session, call.name)

        if not isinstance(result, ToolResult):
            logger.warning("tool_call_failed", operation=call.name, error_type="InvalidResult")
            return execution_error(f"{call.name} 도구가 올바른 결과를 반환하지 않았어요.", operation=call.name)
        return result


async def _close_quietly(session: Any, operation: str) -> None:
    try:
        await session.aclose()
    except Exception as exc:
        logger.warning("session_close_failed", operation=operation, error=str(exc))

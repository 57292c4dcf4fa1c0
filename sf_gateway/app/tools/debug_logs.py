"""사용자 디버그 로그 추적 플래그를 켜고 끄고, 로그를 가져오는 도구예요."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from sf_gateway.app.salesforce.soql import path_segment, quote_literal
from sf_gateway.app.tools.base import ArgumentField, ArgumentKind, OperationDescriptor, ToolResult
from libs.common.errors import NotFoundError, ValidationError

LOG_LEVELS = ("NONE", "ERROR", "WARN", "INFO", "DEBUG", "FINE", "FINER", "FINEST")
DEFAULT_EXPIRATION_MINUTES = 30
# TraceFlag 유효 기간은 24시간을 넘길 수 없어요.
MAX_EXPIRATION_MINUTES = 24 * 60
DEFAULT_LOG_LIMIT = 10


@dataclass(slots=True, frozen=True)
class ManageDebugLogsArgs:
    operation: str
    username: str
    log_level: str | None = None
    expiration_time: int | None = None
    limit: int | None = None
    log_id: str | None = None
    include_body: bool | None = None


def _salesforce_datetime(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%S.000+0000")


async def find_user_id(session: Any, username: str) -> str:
    result = await session.query(f"SELECT Id FROM User WHERE Username = {quote_literal(username)} LIMIT 1")
    records = result.get("records") or []
    if not records:
        raise NotFoundError(f"사용자를 찾지 못했어요: {username}")
    return str(records[0]["Id"])


async def _delete_trace_flags(session: Any, user_id: str) -> int:
    result = await session.tooling_query(
        f"SELECT Id FROM TraceFlag WHERE TracedEntityId = {quote_literal(user_id)}"
    )
    records = result.get("records") or []
    for record in records:
        await session.request("DELETE", f"sobjects/TraceFlag/{record['Id']}", tooling=True)
    return len(records)


async def enable_trace(session: Any, user_id: str, *, level: str, minutes: int) -> tuple[str, datetime]:
    """사용자에게 USER_DEBUG 추적 플래그를 새로 걸고 (TraceFlag Id, 만료 시각)을 반환해요.

    같은 사용자에게 걸린 기존 추적 플래그는 먼저 지워요. 기간이 겹치는 플래그는
    Salesforce가 거절하기 때문이에요.
    """
    if level not in LOG_LEVELS:
        raise ValidationError(f"지원하지 않는 로그 레벨이에요: {level}")
    minutes = max(1, min(minutes, MAX_EXPIRATION_MINUTES))

    debug_level = await session.request(
        "POST",
        "sobjects/DebugLevel",
        json={
            "DeveloperName": f"SFGW_{uuid.uuid4().hex[:12]}",
            "MasterLabel": f"SFGW {level}",
            "ApexCode": level,
            "ApexProfiling": "INFO",
            "Callout": "INFO",
            "Database": "INFO",
            "System": "DEBUG",
            "Validation": "INFO",
            "Visualforce": "INFO",
            "Workflow": "INFO",
        },
        tooling=True,
    )
    await _delete_trace_flags(session, user_id)

    started_at = datetime.now(timezone.utc)
    expires_at = started_at + timedelta(minutes=minutes)
    trace_flag = await session.request(
        "POST",
        "sobjects/TraceFlag",
        json={
            "TracedEntityId": user_id,
            "DebugLevelId": debug_level["id"],
            "LogType": "USER_DEBUG",
            "StartDate": _salesforce_datetime(started_at),
            "ExpirationDate": _salesforce_datetime(expires_at),
        },
        tooling=True,
    )
    return str(trace_flag["id"]), expires_at


async def fetch_log_body(session: Any, log_id: str) -> str:
    body = await session.request("GET", f"sobjects/ApexLog/{path_segment(log_id)}/Body")
    return body if isinstance(body, str) else ""


async def latest_logs(session: Any, user_id: str, limit: int) -> list[dict[str, Any]]:
    result = await session.query(
        "SELECT Id, Operation, Status, LogLength, StartTime, DurationMilliseconds FROM ApexLog "
        f"WHERE LogUserId = {quote_literal(user_id)} ORDER BY StartTime DESC LIMIT {limit}"
    )
    return list(result.get("records") or [])


def _describe_log(record: dict[str, Any]) -> str:
    return (
        f"- {record.get('Id')} | {record.get('StartTime')} | {record.get('Operation')} | "
        f"{record.get('Status')} | {record.get('LogLength')} bytes"
    )


async def handle_manage_debug_logs(session: Any, args: ManageDebugLogsArgs) -> ToolResult:
    user_id = await find_user_id(session, args.username)

    if args.operation == "enable":
        level = args.log_level or "DEBUG"
        trace_id, expires_at = await enable_trace(
            session,
            user_id,
            level=level,
            minutes=int(args.expiration_time or DEFAULT_EXPIRATION_MINUTES),
        )
        return ToolResult.text(
            f"{args.username} 사용자의 디버그 로그를 켰어요. "
            f"(레벨 {level}, TraceFlag {trace_id}, 만료 {_salesforce_datetime(expires_at)})"
        )

    if args.operation == "disable":
        removed = await _delete_trace_flags(session, user_id)
        if removed == 0:
            return ToolResult.text(f"{args.username} 사용자에게 켜진 디버그 로그가 없어요.")
        return ToolResult.text(f"{args.username} 사용자의 추적 플래그 {removed}개를 지웠어요.")

    if args.operation == "retrieve":
        if args.log_id:
            body = await fetch_log_body(session, args.log_id)
            return ToolResult.text(f"로그 {args.log_id} 본문이에요:\n{body}")

        records = await latest_logs(session, user_id, int(args.limit or DEFAULT_LOG_LIMIT))
        if not records:
            return ToolResult.text(f"{args.username} 사용자의 디버그 로그가 없어요.")
        chunks = [f"{args.username} 사용자의 최근 디버그 로그 {len(records)}건이에요:"]
        for record in records:
            chunks.append(_describe_log(record))
            if args.include_body:
                chunks.append(await fetch_log_body(session, str(record["Id"])))
        return ToolResult.text("\n".join(chunks))

    raise ValidationError(f"지원하지 않는 디버그 로그 작업이에요: {args.operation}")


MANAGE_DEBUG_LOGS = OperationDescriptor(
    name="salesforce_manage_debug_logs",
    description=(
        "사용자의 디버그 로그 추적 플래그를 켜거나 끄고, 최근 로그 목록과 본문을 가져와요. "
        "enable은 기본 30분 동안 유지돼요."
    ),
    fields=(
        ArgumentField(
            "operation",
            ArgumentKind.STRING,
            "수행할 작업이에요.",
            required=True,
            enum=("enable", "disable", "retrieve"),
        ),
        ArgumentField("username", ArgumentKind.STRING, "대상 사용자의 Username이에요.", required=True),
        ArgumentField("logLevel", ArgumentKind.STRING, "enable 시 Apex 코드 로그 레벨이에요.", enum=LOG_LEVELS),
        ArgumentField("expirationTime", ArgumentKind.NUMBER, "enable 유지 시간(분)이에요. 최대 1440분이에요."),
        ArgumentField("limit", ArgumentKind.NUMBER, "retrieve 시 가져올 로그 수예요. 기본값은 10이에요."),
        ArgumentField("logId", ArgumentKind.STRING, "retrieve 시 특정 로그 Id예요."),
        ArgumentField("includeBody", ArgumentKind.BOOLEAN, "retrieve 시 로그 본문까지 가져와요."),
    ),
    arguments_type=ManageDebugLogsArgs,
    handler=handle_manage_debug_logs,
)

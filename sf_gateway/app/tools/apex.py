"""Apex 클래스/트리거 읽기·쓰기와 익명 Apex 실행 도구예요.

새 클래스와 트리거는 Tooling API sObject로 바로 만들고, 기존 코드 수정은
`MetadataContainer` → `*Member` → `ContainerAsyncRequest` 순서로 배포해요.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from typing import Any

from sf_gateway.app.salesforce.connection import SalesforceApiError
from sf_gateway.app.salesforce.soql import like_pattern, quote_literal
from sf_gateway.app.tools.base import ArgumentField, ArgumentKind, OperationDescriptor, ToolResult
from sf_gateway.app.tools.debug_logs import LOG_LEVELS, enable_trace, fetch_log_body, latest_logs
from sf_gateway.app.tools.metadata import created_id
from libs.common.errors import NotFoundError, UpstreamTransientError, ValidationError
from libs.common.logging import get_logger

DEPLOY_POLL_INTERVAL_SECONDS = 1.0
DEPLOY_POLL_ATTEMPTS = 60
ANONYMOUS_TRACE_MINUTES = 5

_DEPLOY_PENDING_STATES = {"Queued"}
_DEPLOY_FAILED_STATES = {"Failed", "Error", "Aborted", "Invalidated"}

logger = get_logger("sf_gateway.tools.apex")


@dataclass(slots=True, frozen=True)
class ReadApexArgs:
    class_name: str | None = None
    name_pattern: str | None = None
    include_metadata: bool | None = None


@dataclass(slots=True, frozen=True)
class WriteApexArgs:
    operation: str
    class_name: str
    body: str
    api_version: str | None = None


@dataclass(slots=True, frozen=True)
class ReadApexTriggerArgs:
    trigger_name: str | None = None
    name_pattern: str | None = None
    include_metadata: bool | None = None


@dataclass(slots=True, frozen=True)
class WriteApexTriggerArgs:
    operation: str
    trigger_name: str
    body: str
    object_name: str | None = None
    api_version: str | None = None


@dataclass(slots=True, frozen=True)
class ExecuteAnonymousArgs:
    apex_code: str
    log_level: str | None = None


_CLASS_METADATA_FIELDS = "Id, Name, ApiVersion, Status, IsValid, LengthWithoutComments, LastModifiedDate"
_TRIGGER_METADATA_FIELDS = "Id, Name, TableEnumOrId, ApiVersion, Status, IsValid, LengthWithoutComments, LastModifiedDate"


def _metadata_line(record: dict[str, Any]) -> str:
    parts = [f"{key}: {value}" for key, value in record.items() if key not in {"attributes", "Body", "Name"}]
    return ", ".join(parts)


async def _read_code(
    session: Any,
    *,
    sobject: str,
    label: str,
    metadata_fields: str,
    name: str | None,
    name_pattern: str | None,
    include_metadata: bool,
) -> ToolResult:
    if name:
        result = await session.tooling_query(
            f"SELECT {metadata_fields}, Body FROM {sobject} WHERE Name = {quote_literal(name)}"
        )
        records = result.get("records") or []
        if not records:
            raise NotFoundError(f"{label}를 찾지 못했어요: {name}")
        record = records[0]
        chunks = [f"{label} {record.get('Name')}"]
        if include_metadata:
            chunks.append(_metadata_line(record))
        chunks.append(f"```apex\n{record.get('Body', '')}\n```")
        return ToolResult.text("\n".join(chunks))

    soql = f"SELECT {metadata_fields} FROM {sobject}"
    if name_pattern:
        soql = f"{soql} WHERE Name LIKE {quote_literal(like_pattern(name_pattern))}"
    result = await session.tooling_query(f"{soql} ORDER BY Name")
    records = result.get("records") or []
    if not records:
        return ToolResult.text(f"조건에 맞는 {label}가 없어요.")

    lines = [f"{label} {len(records)}개를 찾았어요:"]
    for record in records:
        if include_metadata:
            lines.append(f"- {record.get('Name')} ({_metadata_line(record)})")
        else:
            lines.append(f"- {record.get('Name')}")
    return ToolResult.text("\n".join(lines))


async def _find_code_id(session: Any, sobject: str, name: str) -> str | None:
    result = await session.tooling_query(f"SELECT Id FROM {sobject} WHERE Name = {quote_literal(name)}")
    records = result.get("records") or []
    return str(records[0]["Id"]) if records else None


def _deploy_problems(status: dict[str, Any]) -> str:
    if status.get("ErrorMsg"):
        return str(status["ErrorMsg"])
    details = status.get("DeployDetails") or {}
    failures = details.get("componentFailures") or []
    problems = [
        f"{failure.get('fullName')} {failure.get('lineNumber')}행: {failure.get('problem')}"
        for failure in failures
        if isinstance(failure, dict)
    ]
    return "; ".join(problems) or "원인을 알 수 없어요."


async def deploy_member(session: Any, *, member_sobject: str, content_entity_id: str, body: str) -> None:
    """기존 클래스/트리거 본문을 MetadataContainer로 배포하고 끝날 때까지 기다려요."""
    container = await session.request(
        "POST",
        "sobjects/MetadataContainer",
        json={"Name": f"sfgw{uuid.uuid4().hex[:24]}"},
        tooling=True,
    )
    container_id = created_id(container)
    try:
        await session.request(
            "POST",
            f"sobjects/{member_sobject}",
            json={"MetadataContainerId": container_id, "ContentEntityId": content_entity_id, "Body": body},
            tooling=True,
        )
        deploy = await session.request(
            "POST",
            "sobjects/ContainerAsyncRequest",
            json={"MetadataContainerId": container_id, "IsCheckOnly": False},
            tooling=True,
        )
        request_id = created_id(deploy)
        for _ in range(DEPLOY_POLL_ATTEMPTS):
            status = await session.request("GET", f"sobjects/ContainerAsyncRequest/{request_id}", tooling=True)
            state = status.get("State")
            if state in _DEPLOY_PENDING_STATES:
                await asyncio.sleep(DEPLOY_POLL_INTERVAL_SECONDS)
                continue
            if state in _DEPLOY_FAILED_STATES:
                raise SalesforceApiError(f"배포에 실패했어요 ({state}): {_deploy_problems(status)}")
            return
        raise UpstreamTransientError("배포 결과를 기다리는 시간이 초과됐어요.")
    finally:
        try:
            await session.request("DELETE", f"sobjects/MetadataContainer/{container_id}", tooling=True)
        except Exception as exc:
            logger.warning("metadata_container_cleanup_failed", container_id=container_id, error=str(exc))


def _api_version(session: Any, requested: str | None) -> float:
    return float(requested or session.api_version)


async def handle_read_apex(session: Any, args: ReadApexArgs) -> ToolResult:
    return await _read_code(
        session,
        sobject="ApexClass",
        label="Apex 클래스",
        metadata_fields=_CLASS_METADATA_FIELDS,
        name=args.class_name,
        name_pattern=args.name_pattern,
        include_metadata=bool(args.include_metadata),
    )


async def handle_read_apex_trigger(session: Any, args: ReadApexTriggerArgs) -> ToolResult:
    return await _read_code(
        session,
        sobject="ApexTrigger",
        label="Apex 트리거",
        metadata_fields=_TRIGGER_METADATA_FIELDS,
        name=args.trigger_name,
        name_pattern=args.name_pattern,
        include_metadata=bool(args.include_metadata),
    )


async def handle_write_apex(session: Any, args: WriteApexArgs) -> ToolResult:
    existing_id = await _find_code_id(session, "ApexClass", args.class_name)

    if args.operation == "create":
        if existing_id is not None:
            raise ValidationError(f"이미 있는 Apex 클래스예요: {args.class_name}")
        response = await session.request(
            "POST",
            "sobjects/ApexClass",
            json={"Name": args.class_name, "Body": args.body, "ApiVersion": _api_version(session, args.api_version)},
            tooling=True,
        )
        return ToolResult.text(f"Apex 클래스 {args.class_name}을 만들었어요. (Id: {created_id(response)})")

    if args.operation == "update":
        if existing_id is None:
            raise NotFoundError(f"Apex 클래스를 찾지 못했어요: {args.class_name}")
        await deploy_member(session, member_sobject="ApexClassMember", content_entity_id=existing_id, body=args.body)
        return ToolResult.text(f"Apex 클래스 {args.class_name}을 수정했어요.")

    raise ValidationError(f"지원하지 않는 Apex 작업이에요: {args.operation}")


async def handle_write_apex_trigger(session: Any, args: WriteApexTriggerArgs) -> ToolResult:
    existing_id = await _find_code_id(session, "ApexTrigger", args.trigger_name)

    if args.operation == "create":
        if existing_id is not None:
            raise ValidationError(f"이미 있는 Apex 트리거예요: {args.trigger_name}")
        if not args.object_name:
            raise ValidationError("트리거를 만들려면 objectName이 필요해요.")
        response = await session.request(
            "POST",
            "sobjects/ApexTrigger",
            json={
                "Name": args.trigger_name,
                "TableEnumOrId": args.object_name,
                "Body": args.body,
                "ApiVersion": _api_version(session, args.api_version),
            },
            tooling=True,
        )
        return ToolResult.text(f"Apex 트리거 {args.trigger_name}을 만들었어요. (Id: {created_id(response)})")

    if args.operation == "update":
        if existing_id is None:
            raise NotFoundError(f"Apex 트리거를 찾지 못했어요: {args.trigger_name}")
        await deploy_member(session, member_sobject="ApexTriggerMember", content_entity_id=existing_id, body=args.body)
        return ToolResult.text(f"Apex 트리거 {args.trigger_name}을 수정했어요.")

    raise ValidationError(f"지원하지 않는 트리거 작업이에요: {args.operation}")


async def handle_execute_anonymous(session: Any, args: ExecuteAnonymousArgs) -> ToolResult:
    if args.log_level and session.user_id:
        await enable_trace(session, session.user_id, level=args.log_level, minutes=ANONYMOUS_TRACE_MINUTES)

    result = await session.request(
        "GET",
        "executeAnonymous/",
        params={"anonymousBody": args.apex_code},
        tooling=True,
    )
    if not result.get("compiled"):
        return ToolResult.text(
            f"컴파일에 실패했어요 ({result.get('line')}행 {result.get('column')}열): {result.get('compileProblem')}"
        )

    chunks: list[str] = []
    if result.get("success"):
        chunks.append("익명 Apex를 실행했어요.")
    else:
        chunks.append(f"실행 중 예외가 발생했어요: {result.get('exceptionMessage')}")
        if result.get("exceptionStackTrace"):
            chunks.append(str(result["exceptionStackTrace"]))

    if args.log_level and session.user_id:
        logs = await latest_logs(session, session.user_id, 1)
        if logs:
            chunks.append(f"디버그 로그 ({logs[0]['Id']}):\n{await fetch_log_body(session, str(logs[0]['Id']))}")
        else:
            logger.info("anonymous_apex_log_missing", user_id=session.user_id)
    return ToolResult.text("\n".join(chunks))


READ_APEX = OperationDescriptor(
    name="salesforce_read_apex",
    description=(
        "Apex 클래스를 읽어요. className을 주면 본문을, 주지 않으면 클래스 목록을 보여줘요. "
        "namePattern에는 * 와일드카드를 쓸 수 있어요."
    ),
    fields=(
        ArgumentField("className", ArgumentKind.STRING, "본문을 읽을 클래스 이름이에요."),
        ArgumentField("namePattern", ArgumentKind.STRING, "목록을 거를 이름 패턴이에요. 예: 'Account*'"),
        ArgumentField("includeMetadata", ArgumentKind.BOOLEAN, "API 버전, 상태 같은 메타데이터도 보여줘요."),
    ),
    arguments_type=ReadApexArgs,
    handler=handle_read_apex,
)

WRITE_APEX = OperationDescriptor(
    name="salesforce_write_apex",
    description="Apex 클래스를 새로 만들거나 기존 클래스 본문을 교체해요.",
    fields=(
        ArgumentField("operation", ArgumentKind.STRING, "수행할 작업이에요.", required=True, enum=("create", "update")),
        ArgumentField("className", ArgumentKind.STRING, "클래스 이름이에요.", required=True),
        ArgumentField("apiVersion", ArgumentKind.STRING, "클래스 API 버전이에요. 기본값은 서버 설정이에요."),
        ArgumentField("body", ArgumentKind.STRING, "클래스 전체 본문이에요.", required=True),
    ),
    arguments_type=WriteApexArgs,
    handler=handle_write_apex,
)

READ_APEX_TRIGGER = OperationDescriptor(
    name="salesforce_read_apex_trigger",
    description=(
        "Apex 트리거를 읽어요. triggerName을 주면 본문을, 주지 않으면 트리거 목록을 보여줘요. "
        "namePattern에는 * 와일드카드를 쓸 수 있어요."
    ),
    fields=(
        ArgumentField("triggerName", ArgumentKind.STRING, "본문을 읽을 트리거 이름이에요."),
        ArgumentField("namePattern", ArgumentKind.STRING, "목록을 거를 이름 패턴이에요."),
        ArgumentField("includeMetadata", ArgumentKind.BOOLEAN, "대상 객체, API 버전 같은 메타데이터도 보여줘요."),
    ),
    arguments_type=ReadApexTriggerArgs,
    handler=handle_read_apex_trigger,
)

WRITE_APEX_TRIGGER = OperationDescriptor(
    name="salesforce_write_apex_trigger",
    description="Apex 트리거를 새로 만들거나 기존 트리거 본문을 교체해요. 만들 때는 objectName이 필요해요.",
    fields=(
        ArgumentField("operation", ArgumentKind.STRING, "수행할 작업이에요.", required=True, enum=("create", "update")),
        ArgumentField("triggerName", ArgumentKind.STRING, "트리거 이름이에요.", required=True),
        ArgumentField("objectName", ArgumentKind.STRING, "트리거를 걸 객체 API 이름이에요."),
        ArgumentField("apiVersion", ArgumentKind.STRING, "트리거 API 버전이에요."),
        ArgumentField("body", ArgumentKind.STRING, "트리거 전체 본문이에요.", required=True),
    ),
    arguments_type=WriteApexTriggerArgs,
    handler=handle_write_apex_trigger,
)

EXECUTE_ANONYMOUS = OperationDescriptor(
    name="salesforce_execute_anonymous",
    description=(
        "익명 Apex 코드를 실행하고 컴파일/실행 결과를 알려줘요. logLevel을 주면 로그인 사용자에게 "
        "잠시 추적 플래그를 걸고 실행 직후의 디버그 로그를 함께 가져와요."
    ),
    fields=(
        ArgumentField("apexCode", ArgumentKind.STRING, "실행할 Apex 코드예요.", required=True),
        ArgumentField("logLevel", ArgumentKind.STRING, "Apex 코드 로그 레벨이에요.", enum=LOG_LEVELS),
    ),
    arguments_type=ExecuteAnonymousArgs,
    handler=handle_execute_anonymous,
)

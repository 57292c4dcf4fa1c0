"""레코드 insert/update/delete/upsert 도구예요. sObject Collections API를 써요."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sf_gateway.app.salesforce.soql import path_segment
from sf_gateway.app.tools.base import ArgumentField, ArgumentKind, OperationDescriptor, ToolResult
from libs.common.errors import ValidationError

# sObject Collections 요청 하나에 담을 수 있는 최대 레코드 수예요.
COLLECTION_BATCH_SIZE = 200


@dataclass(slots=True, frozen=True)
class DMLArgs:
    operation: str
    object_name: str
    records: list[dict[str, Any]]
    external_id_field: str | None = None


def _batches(records: list[Any]) -> list[list[Any]]:
    return [records[start : start + COLLECTION_BATCH_SIZE] for start in range(0, len(records), COLLECTION_BATCH_SIZE)]


def _with_type(object_name: str, record: dict[str, Any]) -> dict[str, Any]:
    return {"attributes": {"type": object_name}, **record}


async def _run_batch(session: Any, args: DMLArgs, batch: list[dict[str, Any]]) -> list[dict[str, Any]]:
    if args.operation == "delete":
        ids = [str(record.get("Id") or record.get("id") or "") for record in batch]
        return await session.request(
            "DELETE",
            "composite/sobjects",
            params={"ids": ",".join(ids), "allOrNone": "false"},
        )

    body = {"allOrNone": False, "records": [_with_type(args.object_name, record) for record in batch]}
    if args.operation == "insert":
        return await session.request("POST", "composite/sobjects", json=body)
    if args.operation == "update":
        return await session.request("PATCH", "composite/sobjects", json=body)
    # upsert
    path = f"composite/sobjects/{path_segment(args.object_name)}/{path_segment(args.external_id_field or '')}"
    return await session.request("PATCH", path, json=body)


def _format_errors(result: dict[str, Any]) -> str:
    errors = result.get("errors") or []
    messages = [f"{error.get('statusCode')}: {error.get('message')}" for error in errors if isinstance(error, dict)]
    return "; ".join(messages) or "알 수 없는 오류"


async def handle_dml_records(session: Any, args: DMLArgs) -> ToolResult:
    if args.operation not in {"insert", "update", "delete", "upsert"}:
        raise ValidationError(f"지원하지 않는 DML 작업이에요: {args.operation}")
    if args.operation == "upsert" and not args.external_id_field:
        raise ValidationError("upsert 작업에는 externalIdField가 필요해요.")
    if not args.records:
        return ToolResult.text(f"{args.operation} 작업할 레코드가 없어요.")

    results: list[dict[str, Any]] = []
    for batch in _batches(args.records):
        results.extend(await _run_batch(session, args, batch) or [])

    succeeded = [result for result in results if result.get("success")]
    failed = [(index, result) for index, result in enumerate(results) if not result.get("success")]

    lines = [
        f"{args.object_name} {args.operation} 작업 결과: 성공 {len(succeeded)}건, 실패 {len(failed)}건",
    ]
    for result in succeeded:
        created = " (생성)" if result.get("created") else ""
        lines.append(f"- 성공: {result.get('id')}{created}")
    for index, result in failed:
        lines.append(f"- 실패 #{index + 1}: {_format_errors(result)}")
    return ToolResult.text("\n".join(lines))


DML_RECORDS = OperationDescriptor(
    name="salesforce_dml_records",
    description=(
        "레코드를 insert, update, delete, upsert해요. 200건씩 나눠서 보내고 "
        "레코드별 성공/실패를 알려줘요. update와 delete에는 각 레코드의 Id가 필요해요."
    ),
    fields=(
        ArgumentField(
            "operation",
            ArgumentKind.STRING,
            "수행할 작업이에요.",
            required=True,
            enum=("insert", "update", "delete", "upsert"),
        ),
        ArgumentField("objectName", ArgumentKind.STRING, "대상 객체의 API 이름이에요.", required=True),
        ArgumentField(
            "records",
            ArgumentKind.ARRAY,
            "작업할 레코드 목록이에요.",
            required=True,
            item_kind=ArgumentKind.OBJECT,
        ),
        ArgumentField("externalIdField", ArgumentKind.STRING, "upsert에 쓸 외부 ID 필드예요."),
    ),
    arguments_type=DMLArgs,
    handler=handle_dml_records,
)

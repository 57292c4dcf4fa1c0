"""객체 목록 검색과 객체 스키마 조회 도구예요."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sf_gateway.app.salesforce.soql import path_segment
from sf_gateway.app.tools.base import ArgumentField, ArgumentKind, OperationDescriptor, ToolResult


@dataclass(slots=True, frozen=True)
class SearchObjectsArgs:
    search_pattern: str


@dataclass(slots=True, frozen=True)
class DescribeObjectArgs:
    object_name: str


async def handle_search_objects(session: Any, args: SearchObjectsArgs) -> ToolResult:
    described = await session.request("GET", "sobjects")
    sobjects = described.get("sobjects", []) if isinstance(described, dict) else []
    terms = [term.lower() for term in args.search_pattern.split() if term]

    matches: list[dict[str, Any]] = []
    for sobject in sobjects:
        name = str(sobject.get("name", ""))
        label = str(sobject.get("label", ""))
        haystack = (name.lower(), label.lower())
        if all(any(term in text for text in haystack) for term in terms):
            matches.append(sobject)

    if not matches:
        return ToolResult.text(f"'{args.search_pattern}'와 일치하는 객체가 없어요.")

    lines = [f"'{args.search_pattern}'와 일치하는 객체 {len(matches)}개를 찾았어요:"]
    for sobject in matches:
        suffix = " (커스텀)" if sobject.get("custom") else ""
        lines.append(f"- {sobject.get('name')}{suffix}: {sobject.get('label')}")
    return ToolResult.text("\n".join(lines))


def _describe_field(item: dict[str, Any]) -> str:
    details = [str(item.get("type"))]
    if item.get("length"):
        details.append(f"길이 {item['length']}")
    if item.get("type") in {"double", "currency", "percent"}:
        details.append(f"정밀도 {item.get('precision')}, 소수 {item.get('scale')}")
    if not item.get("nillable", True) and item.get("createable"):
        details.append("필수")
    if item.get("unique"):
        details.append("고유")
    if item.get("externalId"):
        details.append("외부 ID")
    references = item.get("referenceTo") or []
    if references:
        details.append(f"참조 {', '.join(references)}")
    picklist = [value.get("value") for value in item.get("picklistValues") or [] if value.get("active", True)]
    if picklist:
        details.append(f"선택값 {', '.join(str(value) for value in picklist)}")
    return f"- {item.get('name')} ({item.get('label')}): {', '.join(details)}"


async def handle_describe_object(session: Any, args: DescribeObjectArgs) -> ToolResult:
    describe = await session.request("GET", f"sobjects/{path_segment(args.object_name)}/describe")
    if not isinstance(describe, dict):
        return ToolResult.text(f"{args.object_name} 객체 정보를 읽지 못했어요.")

    lines = [
        f"객체: {describe.get('name')} ({describe.get('label')})",
        f"커스텀 객체: {'예' if describe.get('custom') else '아니요'}",
        "필드:",
    ]
    lines.extend(_describe_field(item) for item in describe.get("fields") or [])
    return ToolResult.text("\n".join(lines))


SEARCH_OBJECTS = OperationDescriptor(
    name="salesforce_search_objects",
    description=(
        "이름이나 라벨에 검색어가 들어간 표준/커스텀 객체를 찾아요. "
        "공백으로 나눈 검색어가 모두 포함된 객체만 반환해요. 예: 'Account Coverage'"
    ),
    fields=(
        ArgumentField(
            "searchPattern",
            ArgumentKind.STRING,
            "객체 이름이나 라벨에서 찾을 검색어예요.",
            required=True,
        ),
    ),
    arguments_type=SearchObjectsArgs,
    handler=handle_search_objects,
)

DESCRIBE_OBJECT = OperationDescriptor(
    name="salesforce_describe_object",
    description="객체의 필드, 타입, 참조 관계, 선택값 목록 같은 스키마 정보를 보여줘요.",
    fields=(
        ArgumentField(
            "objectName",
            ArgumentKind.STRING,
            "조회할 객체의 API 이름이에요. 예: 'Account', 'Custom_Object__c'",
            required=True,
        ),
    ),
    arguments_type=DescribeObjectArgs,
    handler=handle_describe_object,
)

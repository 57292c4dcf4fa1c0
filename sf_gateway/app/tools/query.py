"""SOQL 조회, 집계 조회, SOSL 전체 검색 도구예요."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from sf_gateway.app.salesforce.soql import build_select, escape_sosl, quote_literal, strip_attributes
from sf_gateway.app.tools.base import ArgumentField, ArgumentKind, OperationDescriptor, ToolResult


@dataclass(slots=True, frozen=True)
class QueryArgs:
    object_name: str
    fields: list[str]
    where_clause: str | None = None
    order_by: str | None = None
    limit: int | None = None


@dataclass(slots=True, frozen=True)
class AggregateQueryArgs:
    object_name: str
    select_fields: list[str]
    group_by_fields: list[str]
    where_clause: str | None = None
    having_clause: str | None = None
    order_by: str | None = None
    limit: int | None = None


@dataclass(slots=True, frozen=True)
class SearchAllArgs:
    search_term: str
    objects: list[dict[str, Any]]
    search_in: str | None = None
    with_clauses: list[dict[str, Any]] | None = None
    updateable: bool | None = None
    viewable: bool | None = None


def _format_records(records: list[Any]) -> str:
    return json.dumps(strip_attributes(records), ensure_ascii=False, indent=2)


async def handle_query_records(session: Any, args: QueryArgs) -> ToolResult:
    soql = build_select(
        args.object_name,
        args.fields,
        where=args.where_clause,
        order_by=args.order_by,
        limit=args.limit,
    )
    result = await session.query(soql)
    records = result.get("records", [])
    return ToolResult.text(f"{args.object_name} 레코드 {len(records)}건을 조회했어요.\n{_format_records(records)}")


async def handle_aggregate_query(session: Any, args: AggregateQueryArgs) -> ToolResult:
    soql = build_select(
        args.object_name,
        args.select_fields,
        where=args.where_clause,
        group_by=args.group_by_fields,
        having=args.having_clause,
        order_by=args.order_by,
        limit=args.limit,
    )
    result = await session.query(soql)
    records = result.get("records", [])
    return ToolResult.text(f"집계 결과 {len(records)}건이에요.\n{_format_records(records)}")


_VALUE_WITH_TYPES = {"DIVISION", "METADATA", "PRICEBOOKID"}


def _with_clause(clause: dict[str, Any]) -> str:
    clause_type = str(clause.get("type", "")).upper()
    value = clause.get("value")
    if clause_type == "DATA_CATEGORY" and value:
        return f"WITH DATA CATEGORY {value}"
    if clause_type in _VALUE_WITH_TYPES and value:
        return f"WITH {clause_type} = {quote_literal(str(value))}"
    if clause_type == "NETWORK" and value:
        if isinstance(value, list):
            return f"WITH NETWORK IN ({', '.join(quote_literal(str(item)) for item in value)})"
        return f"WITH NETWORK = {quote_literal(str(value))}"
    if clause_type == "SNIPPET":
        if value:
            return f"WITH SNIPPET (target_length={int(value)})"
        return "WITH SNIPPET"
    if clause_type == "SPELL_CORRECTION":
        enabled = "true" if value in (None, True, "true") else "false"
        return f"WITH SPELL_CORRECTION = {enabled}"
    return f"WITH {clause_type}"


def _returning(item: dict[str, Any]) -> str:
    parts = [", ".join(item["fields"])]
    if item.get("where"):
        parts.append(f"WHERE {item['where']}")
    if item.get("orderBy"):
        parts.append(f"ORDER BY {item['orderBy']}")
    if item.get("limit") is not None:
        parts.append(f"LIMIT {item['limit']}")
    return f"{item['name']}({' '.join(parts)})"


def build_sosl(args: SearchAllArgs) -> str:
    search_in = args.search_in or "ALL FIELDS"
    sosl = (
        f"FIND {{{escape_sosl(args.search_term)}}} IN {search_in} "
        f"RETURNING {', '.join(_returning(item) for item in args.objects)}"
    )
    for clause in args.with_clauses or []:
        sosl = f"{sosl} {_with_clause(clause)}"
    if args.updateable:
        sosl = f"{sosl} UPDATE TRACKING"
    if args.viewable:
        sosl = f"{sosl} UPDATE VIEWSTAT"
    return sosl


async def handle_search_all(session: Any, args: SearchAllArgs) -> ToolResult:
    result = await session.request("GET", "search", params={"q": build_sosl(args)})
    search_records = result.get("searchRecords", []) if isinstance(result, dict) else []

    grouped: dict[str, list[Any]] = {}
    for record in search_records:
        record_type = record.get("attributes", {}).get("type", "Unknown")
        grouped.setdefault(record_type, []).append(strip_attributes(record))

    if not grouped:
        return ToolResult.text(f"'{args.search_term}' 검색 결과가 없어요.")

    lines = [f"'{args.search_term}' 검색 결과 {len(search_records)}건이에요."]
    for record_type, records in grouped.items():
        lines.append(f"\n{record_type} ({len(records)}건):")
        lines.append(json.dumps(records, ensure_ascii=False, indent=2))
    return ToolResult.text("\n".join(lines))


QUERY_RECORDS = OperationDescriptor(
    name="salesforce_query_records",
    description=(
        "SOQL로 레코드를 조회해요. 부모 관계(Account.Name)와 자식 서브쿼리"
        "((SELECT Name FROM Contacts))도 필드 목록에 쓸 수 있어요. "
        "집계 함수가 필요하면 salesforce_aggregate_query를 써요."
    ),
    fields=(
        ArgumentField("objectName", ArgumentKind.STRING, "조회할 객체의 API 이름이에요.", required=True),
        ArgumentField(
            "fields",
            ArgumentKind.ARRAY,
            "조회할 필드 목록이에요. 관계 필드와 서브쿼리도 쓸 수 있어요.",
            required=True,
            item_kind=ArgumentKind.STRING,
        ),
        ArgumentField("whereClause", ArgumentKind.STRING, "WHERE 조건이에요. 예: \"Industry = 'Technology'\""),
        ArgumentField("orderBy", ArgumentKind.STRING, "ORDER BY 절이에요. 예: 'CreatedDate DESC'"),
        ArgumentField("limit", ArgumentKind.NUMBER, "반환할 최대 레코드 수예요."),
    ),
    arguments_type=QueryArgs,
    handler=handle_query_records,
)

AGGREGATE_QUERY = OperationDescriptor(
    name="salesforce_aggregate_query",
    description=(
        "GROUP BY와 집계 함수(COUNT, SUM, AVG, MIN, MAX, COUNT_DISTINCT)로 레코드를 집계해요. "
        "집계 함수가 아닌 SELECT 필드는 모두 groupByFields에 있어야 해요. "
        "집계 결과 조건은 whereClause가 아니라 havingClause에 써요."
    ),
    fields=(
        ArgumentField("objectName", ArgumentKind.STRING, "집계할 객체의 API 이름이에요.", required=True),
        ArgumentField(
            "selectFields",
            ArgumentKind.ARRAY,
            "SELECT할 필드와 집계 함수예요. 예: ['StageName', 'COUNT(Id) OpportunityCount']",
            required=True,
            item_kind=ArgumentKind.STRING,
        ),
        ArgumentField(
            "groupByFields",
            ArgumentKind.ARRAY,
            "GROUP BY 필드 목록이에요.",
            required=True,
            item_kind=ArgumentKind.STRING,
        ),
        ArgumentField("whereClause", ArgumentKind.STRING, "집계 전에 적용할 WHERE 조건이에요."),
        ArgumentField("havingClause", ArgumentKind.STRING, "집계 결과에 적용할 HAVING 조건이에요."),
        ArgumentField("orderBy", ArgumentKind.STRING, "ORDER BY 절이에요."),
        ArgumentField("limit", ArgumentKind.NUMBER, "반환할 최대 행 수예요."),
    ),
    arguments_type=AggregateQueryArgs,
    handler=handle_aggregate_query,
)

SEARCH_ALL = OperationDescriptor(
    name="salesforce_search_all",
    description=(
        "SOSL로 여러 객체를 한 번에 검색해요. 객체마다 반환할 필드와 WHERE/ORDER BY/LIMIT을 "
        "지정할 수 있고 WITH 절도 붙일 수 있어요."
    ),
    fields=(
        ArgumentField("searchTerm", ArgumentKind.STRING, "검색어예요. 예약 문자는 자동으로 이스케이프해요.", required=True),
        ArgumentField(
            "objects",
            ArgumentKind.ARRAY,
            "검색할 객체와 반환 필드 목록이에요.",
            required=True,
            item_fields=(
                ArgumentField("name", ArgumentKind.STRING, "객체 API 이름이에요.", required=True),
                ArgumentField(
                    "fields",
                    ArgumentKind.ARRAY,
                    "반환할 필드 목록이에요.",
                    required=True,
                    item_kind=ArgumentKind.STRING,
                ),
                ArgumentField("where", ArgumentKind.STRING, "이 객체에 적용할 WHERE 조건이에요."),
                ArgumentField("orderBy", ArgumentKind.STRING, "이 객체의 ORDER BY 절이에요."),
                ArgumentField("limit", ArgumentKind.NUMBER, "이 객체에서 반환할 최대 레코드 수예요."),
            ),
        ),
        ArgumentField(
            "searchIn",
            ArgumentKind.STRING,
            "검색할 필드 범위예요. 기본값은 ALL FIELDS예요.",
            enum=("ALL FIELDS", "NAME FIELDS", "EMAIL FIELDS", "PHONE FIELDS", "SIDEBAR FIELDS"),
        ),
        ArgumentField(
            "withClauses",
            ArgumentKind.ARRAY,
            "WITH 절 목록이에요. 각 항목은 {type, value} 형태예요.",
            item_kind=ArgumentKind.OBJECT,
        ),
        ArgumentField("updateable", ArgumentKind.BOOLEAN, "검색 추적(UPDATE TRACKING)을 남겨요."),
        ArgumentField("viewable", ArgumentKind.BOOLEAN, "조회수 통계(UPDATE VIEWSTAT)를 갱신해요."),
    ),
    arguments_type=SearchAllArgs,
    handler=handle_search_all,
)

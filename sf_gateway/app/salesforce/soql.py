from __future__ import annotations

from typing import Any
from urllib.parse import quote

_SOSL_RESERVED = set('?&|!{}[]()^~*:\\"\'+-')


def quote_literal(value: str) -> str:
    """SOQL 문자열 리터럴로 감싸요."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def like_pattern(pattern: str) -> str:
    """`*` 와일드카드를 SOQL LIKE 패턴으로 바꿔요. 와일드카드가 없으면 부분 일치로 봐요."""
    if "*" in pattern:
        return pattern.replace("*", "%")
    return f"%{pattern}%"


def escape_sosl(term: str) -> str:
    return "".join(f"\\{char}" if char in _SOSL_RESERVED else char for char in term)


def path_segment(value: str) -> str:
    return quote(value, safe="")


def strip_attributes(value: Any) -> Any:
    """REST 응답 레코드에서 `attributes` 메타데이터를 걷어내요."""
    if isinstance(value, dict):
        return {key: strip_attributes(item) for key, item in value.items() if key != "attributes"}
    if isinstance(value, list):
        return [strip_attributes(item) for item in value]
    return value


def build_select(
    object_name: str,
    fields: list[str],
    *,
    where: str | None = None,
    group_by: list[str] | None = None,
    having: str | None = None,
    order_by: str | None = None,
    limit: int | None = None,
) -> str:
    parts = [f"SELECT {', '.join(fields)} FROM {object_name}"]
    if where:
        parts.append(f"WHERE {where}")
    if group_by:
        parts.append(f"GROUP BY {', '.join(group_by)}")
    if having:
        parts.append(f"HAVING {having}")
    if order_by:
        parts.append(f"ORDER BY {order_by}")
    if limit is not None:
        parts.append(f"LIMIT {limit}")
    return " ".join(parts)

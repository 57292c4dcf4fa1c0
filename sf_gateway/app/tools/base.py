"""도구 카탈로그의 기본 타입이에요.

새 도구를 추가하려면 인자 dataclass와 `ArgumentField` 목록을 정의하고,
`async def handler(session, args) -> ToolResult`를 작성한 다음
`OperationDescriptor`로 묶어서 `build_default_registry()`에 넣으면 돼요.
인자 검증은 `validator.validate_call`이 필드 정의만 보고 공통으로 처리해요.
"""

from __future__ import annotations

import dataclasses
import json
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


class ArgumentKind(str, Enum):
    """검증기가 확인하는 대략적인 형태예요."""

    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"
    BOOLEAN = "boolean"
    NUMBER = "number"
    INTEGER = "integer"


@dataclass(slots=True, frozen=True)
class ArgumentField:
    name: str
    kind: ArgumentKind
    description: str
    required: bool = False
    enum: tuple[str, ...] | None = None
    item_kind: ArgumentKind | None = None
    """ARRAY 원소의 형태예요. 스키마 안내용이고 원소 단위로 검사하진 않아요."""
    item_fields: tuple["ArgumentField", ...] | None = None
    """ARRAY 원소가 레코드일 때 원소마다 검사할 필드예요."""

    @property
    def attribute(self) -> str:
        """인자 dataclass에서 쓰는 snake_case 이름이에요."""
        return _CAMEL_BOUNDARY.sub("_", self.name).lower()

    def to_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.kind.value, "description": self.description}
        if self.enum is not None:
            schema["enum"] = list(self.enum)
        if self.item_fields is not None:
            schema["items"] = _object_schema(self.item_fields)
        elif self.item_kind is not None:
            schema["items"] = {"type": self.item_kind.value}
        return schema


def _object_schema(fields: tuple[ArgumentField, ...]) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {item.name: item.to_schema() for item in fields},
        "required": [item.name for item in fields if item.required],
    }


@dataclass(slots=True, frozen=True)
class TextContent:
    text: str
    type: str = "text"


@dataclass(slots=True, frozen=True)
class ToolResult:
    """도구 실행 결과예요. 라우터가 `result.content`로 그대로 옮겨요."""

    content: tuple[TextContent, ...] = ()

    @classmethod
    def text(cls, *chunks: str) -> "ToolResult":
        return cls(content=tuple(TextContent(text=chunk) for chunk in chunks))

    @classmethod
    def json(cls, value: Any) -> "ToolResult":
        return cls.text(json.dumps(value, ensure_ascii=False, indent=2))


class SessionProtocol(Protocol):
    async def query(self, soql: str) -> dict[str, Any]: ...
    async def tooling_query(self, soql: str) -> dict[str, Any]: ...
    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        tooling: bool = False,
    ) -> Any: ...
    async def aclose(self) -> None: ...


Handler = Callable[[Any, Any], Awaitable[ToolResult]]


@dataclass(slots=True, frozen=True)
class OperationDescriptor:
    name: str
    description: str
    fields: tuple[ArgumentField, ...]
    arguments_type: type
    handler: Handler = field(repr=False, compare=False)

    def __post_init__(self) -> None:
        declared = [item.attribute for item in self.fields]
        expected = [item.name for item in dataclasses.fields(self.arguments_type)]
        if sorted(declared) != sorted(expected):
            raise ValueError(f"{self.name} 도구의 인자 정의와 {self.arguments_type.__name__} 필드가 달라요.")

    @property
    def input_schema(self) -> dict[str, Any]:
        return _object_schema(self.fields)

    def to_spec(self) -> dict[str, Any]:
        """`tools/list`에 그대로 나가는 도구 스펙이에요."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }

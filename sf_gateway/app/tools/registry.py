"""도구 이름으로 `OperationDescriptor`를 찾는 고정 카탈로그예요."""

from __future__ import annotations

import copy
from collections.abc import Iterable, Iterator
from types import MappingProxyType
from typing import Any

from sf_gateway.app.tools.base import OperationDescriptor


class OperationRegistry:
    """프로세스 시작 시 한 번 만들고 이후에는 읽기만 하는 레지스트리예요.

    요청 간에 공유되지만 변경 메서드가 없어서 별도 동기화가 필요 없어요.

    사용법::

        registry = OperationRegistry([SEARCH_OBJECTS, DESCRIBE_OBJECT])
        registry.get("salesforce_describe_object")
        registry.list_specs()  # tools/list 결과
    """

    def __init__(self, descriptors: Iterable[OperationDescriptor]) -> None:
        table: dict[str, OperationDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in table:
                raise ValueError(f"도구 이름이 중복됐어요: {descriptor.name}")
            table[descriptor.name] = descriptor
        self._descriptors = MappingProxyType(table)
        self._specs = tuple(descriptor.to_spec() for descriptor in table.values())

    def get(self, name: str) -> OperationDescriptor | None:
        """이름으로 도구를 조회해요."""
        return self._descriptors.get(name)

    def list_names(self) -> list[str]:
        return list(self._descriptors.keys())

    def list_specs(self) -> list[dict[str, Any]]:
        """`tools/list`와 `/tools`가 공유하는 공개 스펙 목록이에요."""
        return copy.deepcopy(list(self._specs))

    def __iter__(self) -> Iterator[OperationDescriptor]:
        return iter(self._descriptors.values())

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

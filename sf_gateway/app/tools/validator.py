"""`tools/call` 인자를 도구별 필드 정의로 검사하고 인자 dataclass로 바꿔요.

검사는 의도적으로 얕아요. 필수 필드가 있는지, 대략적인 형태(문자열/배열/
레코드/불리언/숫자)가 맞는지만 봐요. 대상 객체가 실제로 있는지 같은 깊은
검증은 Salesforce 호출 단계에서 실행 오류로 드러나요.

여러 필드가 잘못돼도 선언 순서상 첫 번째 필드 하나만 보고해요.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from sf_gateway.app.failures import GatewayFailure, invalid_arguments, unknown_operation
from sf_gateway.app.tools.base import ArgumentField, ArgumentKind, OperationDescriptor
from sf_gateway.app.tools.registry import OperationRegistry


@dataclass(slots=True, frozen=True)
class ValidatedCall:
    descriptor: OperationDescriptor
    arguments: Any

    @property
    def name(self) -> str:
        return self.descriptor.name


def _matches_kind(kind: ArgumentKind, value: Any) -> bool:
    if kind is ArgumentKind.STRING:
        return isinstance(value, str)
    if kind is ArgumentKind.ARRAY:
        return isinstance(value, list)
    if kind is ArgumentKind.OBJECT:
        return isinstance(value, dict)
    if kind is ArgumentKind.BOOLEAN:
        return isinstance(value, bool)
    if kind is ArgumentKind.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool)
    # NUMBER
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_field(operation: str, spec: ArgumentField, value: Any, path: str) -> GatewayFailure | None:
    if value is None or (spec.required and value == ""):
        if spec.required:
            return invalid_arguments(operation, path, malformed=False)
        return None

    if not _matches_kind(spec.kind, value):
        return invalid_arguments(operation, path, malformed=True)

    if spec.item_fields is not None:
        for index, item in enumerate(value):
            item_path = f"{path}[{index}]"
            if not isinstance(item, dict):
                return invalid_arguments(operation, item_path, malformed=True)
            failure = _check_fields(operation, spec.item_fields, item, prefix=f"{item_path}.")
            if failure is not None:
                return failure
    return None


def _check_fields(
    operation: str,
    fields: Iterable[ArgumentField],
    values: Mapping[str, Any],
    *,
    prefix: str = "",
) -> GatewayFailure | None:
    ordered = list(fields)
    # 필수 필드를 먼저 훑고, 그다음 선택 필드의 형태를 봐요.
    for spec in [item for item in ordered if item.required] + [item for item in ordered if not item.required]:
        failure = _check_field(operation, spec, values.get(spec.name), f"{prefix}{spec.name}")
        if failure is not None:
            return failure
    return None


def validate_call(registry: OperationRegistry, name: Any, arguments: Any) -> ValidatedCall | GatewayFailure:
    """도구 이름과 인자를 검사해요.

    Returns:
        성공하면 인자 dataclass를 담은 `ValidatedCall`, 실패하면 `GatewayFailure`예요.
        선택 필드가 빠졌으면 ``None``으로 채워요.
    """
    if not isinstance(name, str):
        return unknown_operation(name)
    descriptor = registry.get(name)
    if descriptor is None:
        return unknown_operation(name)

    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        return invalid_arguments(name, "arguments", malformed=True)

    failure = _check_fields(name, descriptor.fields, arguments)
    if failure is not None:
        return failure

    values = {spec.attribute: arguments.get(spec.name) for spec in descriptor.fields}
    return ValidatedCall(descriptor=descriptor, arguments=descriptor.arguments_type(**values))

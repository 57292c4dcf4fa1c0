"""기본 Salesforce 도구를 등록한 OperationRegistry를 생성하는 팩토리예요."""

from __future__ import annotations

from sf_gateway.app.tools.apex import (
    EXECUTE_ANONYMOUS,
    READ_APEX,
    READ_APEX_TRIGGER,
    WRITE_APEX,
    WRITE_APEX_TRIGGER,
)
from sf_gateway.app.tools.debug_logs import MANAGE_DEBUG_LOGS
from sf_gateway.app.tools.dml import DML_RECORDS
from sf_gateway.app.tools.metadata import MANAGE_FIELD, MANAGE_FIELD_PERMISSIONS, MANAGE_OBJECT
from sf_gateway.app.tools.query import AGGREGATE_QUERY, QUERY_RECORDS, SEARCH_ALL
from sf_gateway.app.tools.registry import OperationRegistry
from sf_gateway.app.tools.search import DESCRIBE_OBJECT, SEARCH_OBJECTS


def build_default_registry() -> OperationRegistry:
    """기본 도구 15개가 모두 등록된 `OperationRegistry`를 생성해요.

    Returns:
        `tools/list`에 나가는 순서대로 도구가 등록된 레지스트리예요.
    """
    return OperationRegistry(
        [
            SEARCH_OBJECTS,
            DESCRIBE_OBJECT,
            QUERY_RECORDS,
            AGGREGATE_QUERY,
            DML_RECORDS,
            MANAGE_OBJECT,
            MANAGE_FIELD,
            MANAGE_FIELD_PERMISSIONS,
            SEARCH_ALL,
            READ_APEX,
            WRITE_APEX,
            READ_APEX_TRIGGER,
            WRITE_APEX_TRIGGER,
            EXECUTE_ANONYMOUS,
            MANAGE_DEBUG_LOGS,
        ]
    )

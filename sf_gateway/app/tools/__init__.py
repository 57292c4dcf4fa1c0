from sf_gateway.app.tools.base import ArgumentField, ArgumentKind, OperationDescriptor, ToolResult
from sf_gateway.app.tools.registry import OperationRegistry
from sf_gateway.app.tools.validator import ValidatedCall, validate_call

__all__ = [
    "ArgumentField",
    "ArgumentKind",
    "OperationDescriptor",
    "OperationRegistry",
    "ToolResult",
    "ValidatedCall",
    "validate_call",
]

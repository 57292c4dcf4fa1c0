from __future__ import annotations

from sf_gateway.bootstrap.container import RuntimeComponents, build_runtime_components, build_session_factory
from sf_gateway.bootstrap.lifespan import create_lifespan

__all__ = [
    "RuntimeComponents",
    "build_runtime_components",
    "build_session_factory",
    "create_lifespan",
]

from __future__ import annotations

from sf_gateway.modules.common.deps import (
    client_ip,
    get_envelope_router,
    get_registry,
    get_settings,
)

__all__ = [
    "client_ip",
    "get_envelope_router",
    "get_registry",
    "get_settings",
]

from __future__ import annotations

import uvicorn

from sf_gateway.app.settings import settings


def _run(*, reload_enabled: bool) -> None:
    uvicorn.run(
        "sf_gateway.app.main:app",
        host=settings.host,
        port=settings.port,
        reload=reload_enabled,
    )


def main() -> None:
    _run(reload_enabled=False)


def main_dev() -> None:
    _run(reload_enabled=True)

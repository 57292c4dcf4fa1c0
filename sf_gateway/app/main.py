from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sf_gateway.app.dispatcher import SessionFactory
from sf_gateway.app.settings import Settings, settings
from sf_gateway.bootstrap import build_runtime_components, create_lifespan
from sf_gateway.modules import build_api_router
from libs.common.http_handlers import register_exception_handlers
from libs.common.logging import configure_logging

configure_logging()


def create_app(app_settings: Settings, *, session_factory: SessionFactory | None = None) -> FastAPI:
    runtime = build_runtime_components(app_settings, session_factory=session_factory)

    app = FastAPI(
        title=app_settings.service_name,
        version=app_settings.service_version,
        lifespan=create_lifespan(app_settings),
    )
    app.state.settings = app_settings
    app.state.registry = runtime.registry
    app.state.envelope_router = runtime.envelope_router

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(build_api_router())
    register_exception_handlers(app, "sf_gateway.errors")
    return app


app = create_app(settings)

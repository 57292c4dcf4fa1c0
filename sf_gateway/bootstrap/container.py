from __future__ import annotations

from dataclasses import dataclass

from sf_gateway.app.auth import AuthPolicy
from sf_gateway.app.credentials import Credentials
from sf_gateway.app.dispatcher import Dispatcher, SessionFactory
from sf_gateway.app.mcp_protocol import McpServerInfo
from sf_gateway.app.rpc import EnvelopeRouter
from sf_gateway.app.salesforce.connection import SalesforceSession, establish_session
from sf_gateway.app.settings import Settings
from sf_gateway.app.tools.defaults import build_default_registry
from sf_gateway.app.tools.registry import OperationRegistry


@dataclass(slots=True)
class RuntimeComponents:
    auth_policy: AuthPolicy
    registry: OperationRegistry
    dispatcher: Dispatcher
    envelope_router: EnvelopeRouter


def build_session_factory(settings: Settings) -> SessionFactory:
    async def open_session(credentials: Credentials) -> SalesforceSession:
        return await establish_session(
            credentials,
            api_version=settings.salesforce_api_version,
            timeout_seconds=settings.salesforce_timeout_seconds,
        )

    return open_session


def build_runtime_components(
    settings: Settings,
    *,
    session_factory: SessionFactory | None = None,
) -> RuntimeComponents:
    auth_policy = AuthPolicy.from_settings(settings)
    registry = build_default_registry()
    dispatcher = Dispatcher(session_factory or build_session_factory(settings))
    envelope_router = EnvelopeRouter(
        registry=registry,
        dispatcher=dispatcher,
        server_info=McpServerInfo(name=settings.server_info_name, version=settings.service_version),
        auth_policy=auth_policy,
    )
    return RuntimeComponents(
        auth_policy=auth_policy,
        registry=registry,
        dispatcher=dispatcher,
        envelope_router=envelope_router,
    )

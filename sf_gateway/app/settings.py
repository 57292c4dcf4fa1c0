from __future__ import annotations

from typing import Annotated

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
        frozen=True,
    )

    service_name: str = "mcp-salesforce-server"
    service_version: str = "1.0.0"
    server_info_name: str = "salesforce-mcp-server"
    host: str = "0.0.0.0"
    port: int = 8080
    secret_key: str = ""
    require_auth: bool = True
    salesforce_api_version: str = "59.0"
    salesforce_timeout_seconds: float = 30.0
    # CSV 문자열 또는 리스트 모두 허용해요
    cors_allow_origins: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"])

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _parse_origins(cls, value: object) -> list[str]:
        """환경변수에서 CSV 문자열로 들어온 경우 리스트로 변환해요."""
        if isinstance(value, str):
            parts = [p.strip() for p in value.split(",") if p.strip()]
            return parts if parts else ["*"]
        return value  # type: ignore[return-value]

    @model_validator(mode="after")
    def _warn_missing_secret(self) -> "Settings":
        """인증을 켜 두고 SECRET_KEY를 비워 둔 설정을 시작 시점에 알려요."""
        import logging
        _log = logging.getLogger("sf_gateway.settings")
        if self.require_auth and not self.secret_key:
            _log.warning("REQUIRE_AUTH가 켜져 있지만 SECRET_KEY가 비어 있어요. tools/call 인증이 적용되지 않아요.")
        return self


settings = Settings()

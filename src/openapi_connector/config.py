"""Configuration for the OpenAPI connector."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional, Set

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError
from .models import CompileOptions


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", case_sensitive=False, extra="ignore"
    )

    service_name: str = Field(default="openapi-connector")

    client_id: str = Field(default="")
    client_secret: str = Field(default="")
    api_base_url: str = Field(default="")
    auth_base_url: Optional[str] = Field(default=None)
    auth_path: str = Field(default="/auth/token")

    openapi_spec_path: str = Field(default="")
    openapi_tool_prefix: str = Field(default="")
    openapi_include_only: Optional[str] = Field(default=None)
    openapi_exclude: Optional[str] = Field(default=None)
    openapi_cache_seconds: int = Field(default=3600)

    connector_transport: str = Field(default="stdio")
    connector_host: str = Field(default="0.0.0.0")
    connector_port: int = Field(default=8000)
    connector_auth_token: Optional[str] = Field(default=None)
    connector_max_concurrency: int = Field(default=20)
    connector_request_timeout_seconds: float = Field(default=30)

    connector_log_level: str = Field(default="INFO")

    def validate_required(self) -> None:
        required = {
            "CLIENT_ID": self.client_id,
            "CLIENT_SECRET": self.client_secret,
            "API_BASE_URL": self.api_base_url,
            "OPENAPI_SPEC_PATH": self.openapi_spec_path,
        }
        missing: List[str] = [name for name, value in required.items() if not value]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

    def resolved_auth_base_url(self) -> str:
        return self.auth_base_url or self.api_base_url

    def include_only(self) -> Set[str]:
        return _split_names(self.openapi_include_only)

    def exclude(self) -> Set[str]:
        return _split_names(self.openapi_exclude)

    def compile_options(self) -> CompileOptions:
        return CompileOptions(
            prefix=self.openapi_tool_prefix,
            include_only=self.include_only() or None,
            exclude=self.exclude(),
        )


def _split_names(value: Optional[str]) -> Set[str]:
    if not value:
        return set()
    return {item.strip() for item in value.split(",") if item.strip()}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

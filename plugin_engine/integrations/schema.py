"""Configuration schema for plugins, instances and catalog queries.

JSON keys are camelCase (``baseUrl``, ``authType``, ``sslConfig`` …) so the
persisted plugin files and the HTTP payloads share one wire format.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, NamedTuple, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Pydantic base that reads and writes camelCase JSON keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AuthType(str, Enum):
    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"
    API_KEY = "api_key"


class AuthConfig(CamelModel):
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    key: Optional[str] = None
    header: Optional[str] = None


class SslConfig(CamelModel):
    reject_unauthorized: Optional[bool] = None
    allow_self_signed: Optional[bool] = None
    timeout: Optional[int] = Field(default=None, description="Request timeout in milliseconds")


@dataclass(frozen=True, slots=True)
class NoAuth:
    kind: Literal["none"] = "none"


@dataclass(frozen=True, slots=True)
class BasicAuth:
    username: str
    password: str
    kind: Literal["basic"] = "basic"


@dataclass(frozen=True, slots=True)
class BearerAuth:
    token: str
    kind: Literal["bearer"] = "bearer"


@dataclass(frozen=True, slots=True)
class ApiKeyAuth:
    key: str
    header: Optional[str] = None
    kind: Literal["api_key"] = "api_key"


Credentials = Union[NoAuth, BasicAuth, BearerAuth, ApiKeyAuth]


class PluginInstance(CamelModel):
    """One configured connection endpoint of a plugin."""

    id: str
    name: str
    base_url: str
    auth_type: AuthType = AuthType.NONE
    auth_config: AuthConfig = Field(default_factory=AuthConfig)
    is_active: bool = True
    tags: list[str] = Field(default_factory=list)
    ssl_config: Optional[SslConfig] = None

    def credentials(self) -> Credentials:
        """Resolve ``auth_type`` + ``auth_config`` into a single credential variant.

        Incomplete combinations resolve to ``NoAuth``.
        """
        cfg = self.auth_config
        if self.auth_type is AuthType.BASIC and cfg.username and cfg.password:
            return BasicAuth(username=cfg.username, password=cfg.password)
        if self.auth_type is AuthType.BEARER and cfg.token:
            return BearerAuth(token=cfg.token)
        if self.auth_type is AuthType.API_KEY and cfg.key:
            return ApiKeyAuth(key=cfg.key, header=cfg.header)
        return NoAuth()

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "baseUrl": self.base_url,
            "authType": self.auth_type.value,
            "tags": list(self.tags),
            "isActive": self.is_active,
        }


class RateLimiting(CamelModel):
    requests_per_minute: int
    burst_size: int


class PluginConfig(CamelModel):
    instances: list[PluginInstance] = Field(default_factory=list)
    default_refresh_interval: Optional[int] = None
    rate_limiting: Optional[RateLimiting] = None


class QueryDefinition(CamelModel):
    id: str
    method: Literal["GET", "POST", "PUT", "PATCH", "DELETE"] = "GET"
    path: str
    description: str


class RegisteredInstance(NamedTuple):
    plugin_name: str
    instance: PluginInstance


@dataclass
class QueryValidation:
    """Advisory lint result. Never blocks execution."""

    is_valid: bool = True
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "warnings": list(self.warnings),
            "suggestions": list(self.suggestions),
        }


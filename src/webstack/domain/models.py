from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from webstack.domain.errors import ValidationError

HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]

SUPPORTED_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS")

# every registered route is served under this namespace
API_PREFIX = "/api"

_MISSING_MESSAGES = {
    "path": "Resource path is required",
    "source_path": "Lambda source path is required",
}


def _first_error_message(exc: pydantic.ValidationError) -> str:
    err = exc.errors()[0]
    loc = err.get("loc") or ("",)
    field_name = str(loc[0])
    if err.get("type") == "missing" or (err.get("input") is None and field_name in _MISSING_MESSAGES):
        return _MISSING_MESSAGES.get(field_name, f"{field_name} is required")
    msg = str(err.get("msg", "invalid value"))
    # pydantic prefixes messages raised from validators
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return msg


class EndpointSpec(BaseModel):
    """Declarative description of one endpoint, as supplied by a caller."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    method: HttpMethod = "GET"
    source_path: str
    requires_auth: bool = False
    group: Optional[str] = None
    environment: dict[str, str] = Field(default_factory=dict)
    enable_dlq: bool = False
    enable_health_alarms: bool = False

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        if not value:
            raise ValueError("Resource path is required")
        if not value.startswith("/"):
            raise ValueError('Resource path must start with "/"')
        return value

    @field_validator("method", mode="before")
    @classmethod
    def _check_method(cls, value: Any) -> Any:
        if value is None:
            return "GET"
        method = str(value).strip().upper()
        if method not in SUPPORTED_METHODS:
            raise ValueError(
                "Invalid HTTP method. Supported methods: " + ", ".join(SUPPORTED_METHODS)
            )
        return method

    @field_validator("source_path")
    @classmethod
    def _check_source_path(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Lambda source path is required")
        return value

    @field_validator("group")
    @classmethod
    def _blank_group_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _group_requires_auth(self) -> "EndpointSpec":
        if self.group and not self.requires_auth:
            raise ValueError("group can only be specified when requires_auth is true")
        return self

    @classmethod
    def parse(cls, **fields: Any) -> "EndpointSpec":
        """Validate ``fields``; raises ``ValidationError`` naming the first broken rule."""
        try:
            return cls(**fields)
        except pydantic.ValidationError as exc:
            raise ValidationError(_first_error_message(exc)) from exc


class ConstructProps(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    domain_name: Optional[str] = None
    certificate_arn: Optional[str] = None
    bucket_name: Optional[str] = None
    user_pool_name: Optional[str] = None
    api_name: Optional[str] = None
    enable_logging: bool = True
    lambda_source_path: Optional[str] = None
    error_pages_path: Optional[str] = None

    @model_validator(mode="after")
    def _domain_requires_certificate(self) -> "ConstructProps":
        if self.domain_name and not self.certificate_arn:
            raise ValueError("certificate_arn is required when domain_name is provided")
        return self

    @classmethod
    def parse(cls, **fields: Any) -> "ConstructProps":
        try:
            return cls(**fields)
        except pydantic.ValidationError as exc:
            raise ValidationError(_first_error_message(exc)) from exc


@dataclass(frozen=True)
class ResourceConfig:
    """
    Derived, canonical form of an EndpointSpec.

    Addressed by ``key`` = (method, canonical path); the path always carries
    the API_PREFIX namespace.
    """

    path: str
    method: str
    requires_auth: bool
    source_path: str
    group: Optional[str] = None
    environment: dict[str, str] = field(default_factory=dict)
    enable_dlq: bool = False
    enable_health_alarms: bool = False

    @property
    def key(self) -> tuple[str, str]:
        return (self.method, self.path)

    @classmethod
    def from_endpoint(cls, spec: EndpointSpec) -> "ResourceConfig":
        return cls(
            path=f"{API_PREFIX}{spec.path}",
            method=spec.method,
            requires_auth=spec.requires_auth,
            source_path=spec.source_path,
            group=spec.group,
            environment=dict(spec.environment),
            enable_dlq=spec.enable_dlq,
            enable_health_alarms=spec.enable_health_alarms,
        )

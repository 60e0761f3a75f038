from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ScopeGrant(BaseModel):
    scope: str = Field(min_length=1)
    action: str = Field(default="*", pattern="^(\\*|create|read|edit|delete)$")
    level: str = Field(default="all", pattern="^(all|team|own|no)$")

    def as_grant_string(self) -> str:
        return f"{self.scope}.{self.action}:{self.level}"


class ForbiddenField(BaseModel):
    scope: str = Field(min_length=1)
    field: str = Field(min_length=1)
    action: str = Field(default="read", pattern="^(read|edit)$")


class RoleDefinition(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    is_system: bool = False
    grants: list[ScopeGrant] = Field(default_factory=list)
    forbidden_fields: list[ForbiddenField] = Field(default_factory=list)


class RoleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    is_system: bool
    created_at: datetime


class PermissionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    resource: str
    action: str
    field: str | None
    scope_type: str | None
    scope_value: str | None
    effect: str
    description: str | None
    created_at: datetime

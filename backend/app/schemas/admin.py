from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class AdminCreate(BaseModel):
    id: str = Field(..., min_length=1, max_length=128)
    email: str = Field(..., min_length=3, max_length=255)
    display_name: str = Field(..., min_length=1, max_length=255)
    role_id: str = Field(..., min_length=1, max_length=64)
    permissions: list[str] = Field(default_factory=list)


class AdminStatusUpdate(BaseModel):
    status: Literal["active", "suspended", "disabled"]


class AdminRoleUpdate(BaseModel):
    role_id: str = Field(..., min_length=1, max_length=64)


class AdminResponse(BaseModel):
    id: str
    email: str | None
    display_name: str | None
    role_id: str | None
    access_level: str | None
    status: str
    permissions: list[str] | None
    manager_id: str | None
    created_sub_users_count: int | None
    max_sub_users_allowed: int | None
    last_login_at: datetime | None
    login_count: int

    class Config:
        from_attributes = True

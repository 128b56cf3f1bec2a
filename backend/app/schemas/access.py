from typing import Literal

from pydantic import BaseModel, Field


class AccessCheckRequest(BaseModel):
    """Page-level requirement; at most one of level / permission is set."""

    max_level: int | None = Field(None, ge=0)
    resource: str | None = None
    action: str | None = None


class AccessDecisionResponse(BaseModel):
    granted: bool
    kind: Literal["unauthenticated", "account_inactive", "insufficient_permission"] | None = None
    message: str | None = None


class AccessProfileResponse(BaseModel):
    id: str
    status: str
    role_id: str | None
    role_name: str | None
    role_level: int | None
    permissions: list[str]
    can_manage_users: bool

from datetime import datetime

from pydantic import BaseModel, Field, ValidationInfo, field_validator


class RoleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z][a-z0-9_]*$")
    display_name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class RoleCreate(RoleBase):
    level: int = Field(..., ge=1)
    permissions: list[str] = Field(default_factory=list)
    can_manage_users: bool = False
    max_subordinates: int | None = Field(None, ge=0)


class RoleUpdate(BaseModel):
    display_name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    level: int | None = Field(None, ge=1)
    permissions: list[str] | None = None
    can_manage_users: bool | None = None
    max_subordinates: int | None = Field(None, ge=0)
    is_active: bool | None = None

    # Omitted fields keep their value; only description and
    # max_subordinates may be cleared with an explicit null.
    @field_validator("display_name", "level", "permissions", "can_manage_users", "is_active")
    @classmethod
    def reject_null(cls, value, info: ValidationInfo):
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value


class RoleResponse(RoleBase):
    id: str
    level: int
    permissions: list[str]
    is_system_role: bool
    can_manage_users: bool
    max_subordinates: int | None
    is_active: bool
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class RoleList(BaseModel):
    items: list[RoleResponse]
    total: int

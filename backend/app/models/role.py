import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, validates

from ..auth.rbac_contract import validate_permission_list
from .base import Base


def _new_role_id() -> str:
    return uuid.uuid4().hex


class Role(Base):
    __tablename__ = "roles"
    __table_args__ = (
        CheckConstraint("level >= 0", name="ck_roles_level_non_negative"),
        CheckConstraint(
            "max_subordinates IS NULL OR max_subordinates >= 0",
            name="ck_roles_max_subordinates_non_negative",
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_role_id)
    name: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False, index=True
    )
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    level: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    permissions: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_system_role: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    can_manage_users: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    max_subordinates: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="true"
    )
    created_by: Mapped[str] = mapped_column(String(128), nullable=False, default="system")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    @validates("permissions")
    def validate_permissions(self, key: str, value: list[str] | None) -> list[str]:
        """Reject permission strings outside the vocabulary before they are stored."""
        return validate_permission_list(value or [])

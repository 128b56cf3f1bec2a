from datetime import datetime

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, validates

from ..auth.rbac_contract import WILDCARD, AdminStatus, validate_permission_list
from .base import Base


class Admin(Base):
    """Admin account document, keyed by the identity provider's principal id."""

    __tablename__ = "admins"
    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'suspended', 'disabled')",
            name="ck_admins_valid_status",
        ),
        CheckConstraint(
            "max_sub_users_allowed IS NULL OR created_sub_users_count IS NULL "
            "OR created_sub_users_count <= max_sub_users_allowed",
            name="ck_admins_sub_users_within_limit",
        ),
    )

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255), index=True)
    display_name: Mapped[str | None] = mapped_column(String(255))
    # Weak reference: deleting a role that is still referenced is refused.
    role_id: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("roles.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    access_level: Mapped[str | None] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AdminStatus.ACTIVE.value, index=True
    )
    permissions: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    manager_id: Mapped[str | None] = mapped_column(
        String(128),
        ForeignKey("admins.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    # NULL marks legacy documents that predate the hierarchy fields.
    created_sub_users_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_sub_users_allowed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    login_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    @validates("status")
    def validate_status(self, key: str, value: str) -> str:
        allowed = {status.value for status in AdminStatus}
        if value not in allowed:
            raise ValueError(
                f"Invalid status '{value}'. "
                f"Must be one of: {', '.join(sorted(allowed))}"
            )
        return value

    @validates("permissions")
    def validate_permissions(self, key: str, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        if WILDCARD in value:
            raise ValueError("Direct grants cannot contain the wildcard permission")
        return validate_permission_list(value)

from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import ConflictError
from ..models.admin import Admin
from .errors import store_errors

ADMIN_MUTABLE_FIELDS = frozenset({
    "email",
    "display_name",
    "role_id",
    "access_level",
    "status",
    "permissions",
    "manager_id",
    "created_sub_users_count",
    "max_sub_users_allowed",
})


class AdminRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, admin_id: str) -> Admin | None:
        with store_errors("admins.get_by_id"):
            return await self.session.get(Admin, admin_id)

    async def list_all(self) -> list[Admin]:
        with store_errors("admins.list_all"):
            result = await self.session.execute(select(Admin).order_by(Admin.id))
            return list(result.scalars().all())

    async def create(self, *, admin_id: str, **fields: Any) -> Admin:
        unknown = set(fields) - ADMIN_MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown admin fields: {', '.join(sorted(unknown))}")

        admin = Admin(id=admin_id, **fields)
        self.session.add(admin)
        with store_errors("admins.create"):
            try:
                await self.session.commit()
            except IntegrityError as exc:
                await self.session.rollback()
                raise ConflictError(
                    f"Admin account '{admin_id}' already exists",
                    details={"admin_id": admin_id},
                ) from exc
            await self.session.refresh(admin)
        return admin

    async def update(self, admin_id: str, patch: dict[str, Any]) -> Admin | None:
        unknown = set(patch) - ADMIN_MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Admin fields cannot be updated: {', '.join(sorted(unknown))}")

        admin = await self.get_by_id(admin_id)
        if admin is None:
            return None
        for field, value in patch.items():
            setattr(admin, field, value)
        with store_errors("admins.update"):
            try:
                await self.session.commit()
            except IntegrityError as exc:
                await self.session.rollback()
                raise ConflictError(
                    f"Admin account '{admin_id}' update violates a constraint",
                    details={"admin_id": admin_id, "fields": sorted(patch)},
                ) from exc
            await self.session.refresh(admin)
        return admin

    async def count_with_role(self, role_id: str) -> int:
        with store_errors("admins.count_with_role"):
            result = await self.session.execute(
                select(func.count()).select_from(Admin).where(Admin.role_id == role_id)
            )
            return int(result.scalar_one())

    async def reserve_sub_user_slot(
        self, admin_id: str, default_limit: int | None = None
    ) -> bool:
        current = func.coalesce(Admin.created_sub_users_count, 0)
        if default_limit is None:
            within_limit = or_(
                Admin.max_sub_users_allowed.is_(None),
                current < Admin.max_sub_users_allowed,
            )
        else:
            within_limit = current < func.coalesce(Admin.max_sub_users_allowed, default_limit)
        statement = (
            update(Admin)
            .where(Admin.id == admin_id)
            .where(within_limit)
            .values(created_sub_users_count=current + 1)
            .execution_options(synchronize_session=False)
        )
        with store_errors("admins.reserve_sub_user_slot"):
            result = await self.session.execute(statement)
            await self.session.commit()
        return result.rowcount == 1

    async def release_sub_user_slot(self, admin_id: str) -> None:
        statement = (
            update(Admin)
            .where(Admin.id == admin_id)
            .where(Admin.created_sub_users_count > 0)
            .values(created_sub_users_count=Admin.created_sub_users_count - 1)
            .execution_options(synchronize_session=False)
        )
        with store_errors("admins.release_sub_user_slot"):
            await self.session.execute(statement)
            await self.session.commit()

    async def record_login(self, admin_id: str, at: datetime) -> Admin | None:
        statement = (
            update(Admin)
            .where(Admin.id == admin_id)
            .values(last_login_at=at, login_count=Admin.login_count + 1)
            .execution_options(synchronize_session=False)
        )
        with store_errors("admins.record_login"):
            result = await self.session.execute(statement)
            await self.session.commit()
        if result.rowcount != 1:
            return None
        admin = await self.get_by_id(admin_id)
        if admin is not None:
            with store_errors("admins.refresh"):
                await self.session.refresh(admin)
        return admin

from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import DuplicateRoleNameError
from ..models.role import Role
from .errors import store_errors

ROLE_MUTABLE_FIELDS = frozenset({
    "display_name",
    "description",
    "level",
    "permissions",
    "can_manage_users",
    "max_subordinates",
    "is_active",
})


class RoleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, role_id: str) -> Role | None:
        with store_errors("roles.get_by_id"):
            return await self.session.get(Role, role_id)

    async def get_by_name(self, name: str) -> Role | None:
        with store_errors("roles.get_by_name"):
            result = await self.session.execute(
                select(Role).where(Role.name == name)
            )
            return result.scalar_one_or_none()

    async def list_all(self, *, include_inactive: bool = True) -> list[Role]:
        query = select(Role).order_by(Role.level, Role.name)
        if not include_inactive:
            query = query.where(Role.is_active)
        with store_errors("roles.list_all"):
            result = await self.session.execute(query)
            return list(result.scalars().all())

    async def create(
        self,
        *,
        name: str,
        display_name: str,
        level: int,
        permissions: list[str],
        description: str | None = None,
        is_system_role: bool = False,
        can_manage_users: bool = False,
        max_subordinates: int | None = None,
        created_by: str = "system",
    ) -> Role:
        role = Role(
            name=name,
            display_name=display_name,
            description=description,
            level=level,
            permissions=permissions,
            is_system_role=is_system_role,
            can_manage_users=can_manage_users,
            max_subordinates=max_subordinates,
            created_by=created_by,
        )
        self.session.add(role)
        with store_errors("roles.create"):
            try:
                # Each role is its own commit; the unique name index makes
                # this a create-if-absent write.
                await self.session.commit()
            except IntegrityError as exc:
                await self.session.rollback()
                raise DuplicateRoleNameError(
                    f"A role named '{name}' already exists",
                    details={"name": name},
                ) from exc
            await self.session.refresh(role)
        return role

    async def update(self, role_id: str, patch: dict[str, Any]) -> Role | None:
        unknown = set(patch) - ROLE_MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Role fields cannot be updated: {', '.join(sorted(unknown))}")

        role = await self.get_by_id(role_id)
        if role is None:
            return None
        for field, value in patch.items():
            setattr(role, field, value)
        with store_errors("roles.update"):
            await self.session.commit()
            await self.session.refresh(role)
        return role

    async def delete(self, role_id: str) -> bool:
        role = await self.get_by_id(role_id)
        if role is None:
            return False
        with store_errors("roles.delete"):
            await self.session.delete(role)
            await self.session.commit()
        return True

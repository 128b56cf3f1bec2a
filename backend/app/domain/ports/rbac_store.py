from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol


class RoleData(Protocol):
    id: str
    name: str
    display_name: str
    description: str | None
    level: int
    permissions: list[str]
    is_system_role: bool
    can_manage_users: bool
    max_subordinates: int | None
    is_active: bool


class AdminData(Protocol):
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


class RoleStore(Protocol):
    async def get_by_id(self, role_id: str) -> RoleData | None:
        ...

    async def get_by_name(self, name: str) -> RoleData | None:
        ...

    async def list_all(self, *, include_inactive: bool = True) -> list[RoleData]:
        ...

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
    ) -> RoleData:
        """Create-if-absent; raises ``DuplicateRoleNameError`` on a name clash."""
        ...

    async def update(self, role_id: str, patch: dict[str, Any]) -> RoleData | None:
        ...

    async def delete(self, role_id: str) -> bool:
        ...


class AdminStore(Protocol):
    async def get_by_id(self, admin_id: str) -> AdminData | None:
        ...

    async def list_all(self) -> list[AdminData]:
        ...

    async def create(self, *, admin_id: str, **fields: Any) -> AdminData:
        """Create the admin document; raises ``ConflictError`` if the id exists."""
        ...

    async def update(self, admin_id: str, patch: dict[str, Any]) -> AdminData | None:
        """Raises ``ConflictError`` when the patch violates a table constraint."""
        ...

    async def count_with_role(self, role_id: str) -> int:
        ...

    async def reserve_sub_user_slot(
        self, admin_id: str, default_limit: int | None = None
    ) -> bool:
        """Conditionally increment ``created_sub_users_count``.

        Returns False when the account is at its ``max_sub_users_allowed``,
        or at ``default_limit`` when the account has no limit of its own.
        """
        ...

    async def release_sub_user_slot(self, admin_id: str) -> None:
        ...

    async def record_login(self, admin_id: str, at: datetime) -> AdminData | None:
        ...

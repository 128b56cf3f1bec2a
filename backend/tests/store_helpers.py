"""In-memory role and admin stores implementing the store ports for tests."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from app.auth.rbac_contract import SYSTEM_ROLE_CATALOG
from app.crud.admin import ADMIN_MUTABLE_FIELDS
from app.crud.role import ROLE_MUTABLE_FIELDS
from app.errors import ConflictError, DuplicateRoleNameError, StoreUnavailableError


@dataclass
class FakeRole:
    name: str
    display_name: str
    level: int
    permissions: list[str]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    description: str | None = None
    is_system_role: bool = False
    can_manage_users: bool = False
    max_subordinates: int | None = None
    is_active: bool = True
    created_by: str = "system"
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class FakeAdmin:
    id: str
    email: str | None = None
    display_name: str | None = None
    role_id: str | None = None
    access_level: str | None = None
    status: str = "active"
    permissions: list[str] | None = None
    manager_id: str | None = None
    created_sub_users_count: int | None = None
    max_sub_users_allowed: int | None = None
    last_login_at: datetime | None = None
    login_count: int = 0


class InMemoryRoleStore:
    def __init__(self) -> None:
        self.roles: dict[str, FakeRole] = {}
        self.create_calls: list[str] = []
        # Names another writer "creates" between our read and our write.
        self.race_names: set[str] = set()
        # 1-based create() call that fails as if the store went away.
        self.unavailable_on_create: int | None = None

    async def get_by_id(self, role_id: str) -> FakeRole | None:
        return self.roles.get(role_id)

    async def get_by_name(self, name: str) -> FakeRole | None:
        return next((r for r in self.roles.values() if r.name == name), None)

    async def list_all(self, *, include_inactive: bool = True) -> list[FakeRole]:
        roles = sorted(self.roles.values(), key=lambda r: (r.level, r.name))
        if not include_inactive:
            roles = [r for r in roles if r.is_active]
        return roles

    async def create(self, *, created_by: str = "system", **fields: Any) -> FakeRole:
        name = fields["name"]
        self.create_calls.append(name)
        if len(self.create_calls) == self.unavailable_on_create:
            raise StoreUnavailableError(details={"operation": "roles.create"})
        if name in self.race_names:
            self.race_names.discard(name)
            self._insert(FakeRole(**{**fields, "created_by": "other-writer"}))
        if await self.get_by_name(name) is not None:
            raise DuplicateRoleNameError(f"A role named '{name}' already exists")
        return self._insert(FakeRole(**fields, created_by=created_by))

    async def update(self, role_id: str, patch: dict[str, Any]) -> FakeRole | None:
        unknown = set(patch) - ROLE_MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Role fields cannot be updated: {', '.join(sorted(unknown))}")
        role = self.roles.get(role_id)
        if role is None:
            return None
        self.roles[role_id] = replace(role, **patch)
        return self.roles[role_id]

    async def delete(self, role_id: str) -> bool:
        return self.roles.pop(role_id, None) is not None

    def _insert(self, role: FakeRole) -> FakeRole:
        self.roles[role.id] = role
        return role

    def add(self, **fields: Any) -> FakeRole:
        return self._insert(FakeRole(**fields))

    def add_catalog(self) -> dict[str, FakeRole]:
        """Seed the system catalog directly; returns roles by name."""
        created = {}
        for spec in SYSTEM_ROLE_CATALOG:
            kwargs = spec.as_create_kwargs()
            created[spec.name] = self.add(**kwargs)
        return created


class InMemoryAdminStore:
    def __init__(self) -> None:
        self.admins: dict[str, FakeAdmin] = {}
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.fail_create: Exception | None = None
        # admin id -> error raised by update()
        self.fail_update: dict[str, Exception] = {}

    async def get_by_id(self, admin_id: str) -> FakeAdmin | None:
        return self.admins.get(admin_id)

    async def list_all(self) -> list[FakeAdmin]:
        return [self.admins[key] for key in sorted(self.admins)]

    async def create(self, *, admin_id: str, **fields: Any) -> FakeAdmin:
        if self.fail_create is not None:
            raise self.fail_create
        unknown = set(fields) - ADMIN_MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown admin fields: {', '.join(sorted(unknown))}")
        if admin_id in self.admins:
            raise ConflictError(f"Admin account '{admin_id}' already exists")
        self.admins[admin_id] = FakeAdmin(id=admin_id, **fields)
        return self.admins[admin_id]

    async def update(self, admin_id: str, patch: dict[str, Any]) -> FakeAdmin | None:
        unknown = set(patch) - ADMIN_MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Admin fields cannot be updated: {', '.join(sorted(unknown))}")
        if admin_id in self.fail_update:
            raise self.fail_update[admin_id]
        admin = self.admins.get(admin_id)
        if admin is None:
            return None
        updated = replace(admin, **patch)
        # Same rule as ck_admins_sub_users_within_limit.
        if (
            updated.max_sub_users_allowed is not None
            and (updated.created_sub_users_count or 0) > updated.max_sub_users_allowed
        ):
            raise ConflictError(f"Admin account '{admin_id}' update violates a constraint")
        self.updates.append((admin_id, dict(patch)))
        self.admins[admin_id] = updated
        return updated

    async def count_with_role(self, role_id: str) -> int:
        return sum(1 for a in self.admins.values() if a.role_id == role_id)

    async def reserve_sub_user_slot(
        self, admin_id: str, default_limit: int | None = None
    ) -> bool:
        admin = self.admins.get(admin_id)
        if admin is None:
            return False
        current = admin.created_sub_users_count or 0
        limit = admin.max_sub_users_allowed
        if limit is None:
            limit = default_limit
        if limit is not None and current >= limit:
            return False
        admin.created_sub_users_count = current + 1
        return True

    async def release_sub_user_slot(self, admin_id: str) -> None:
        admin = self.admins.get(admin_id)
        if admin is not None and (admin.created_sub_users_count or 0) > 0:
            admin.created_sub_users_count -= 1

    async def record_login(self, admin_id: str, at: datetime) -> FakeAdmin | None:
        admin = self.admins.get(admin_id)
        if admin is None:
            return None
        admin.last_login_at = at
        admin.login_count += 1
        return admin

    def add(self, admin_id: str, **fields: Any) -> FakeAdmin:
        self.admins[admin_id] = FakeAdmin(id=admin_id, **fields)
        return self.admins[admin_id]

import logging
from dataclasses import dataclass, field
from typing import Any

from ...admin.services.audit_service import AuditService
from ...auth.gate import NO_ROLE_MESSAGE, RequirePermission
from ...auth.principal import Principal
from ...auth.rbac_contract import (
    SYSTEM_ROLES_BY_NAME,
    WILDCARD,
    Action,
    Resource,
    validate_permission_list,
)
from ...domain.ports.rbac_store import AdminStore, RoleData, RoleStore
from ...errors import (
    DuplicateRoleNameError,
    PermissionError,
    RoleInUseError,
    RoleNotFoundError,
    SystemRoleProtectedError,
    ValidationError,
)
from .permission_service import AccessContext, PermissionService

logger = logging.getLogger("quicklink.roles")

ROLE_PATCH_FIELDS = frozenset({
    "display_name",
    "description",
    "level",
    "permissions",
    "can_manage_users",
    "max_subordinates",
    "is_active",
})
NULLABLE_ROLE_FIELDS = frozenset({"description", "max_subordinates"})


@dataclass
class PurgeResult:
    deleted: list[str] = field(default_factory=list)
    kept_in_use: list[str] = field(default_factory=list)


def _actor_level(context: AccessContext) -> int:
    if context.role is None:
        raise PermissionError(NO_ROLE_MESSAGE)
    return context.role.level


def _custom_permissions(permissions: list[str]) -> list[str]:
    if WILDCARD in permissions:
        raise ValidationError("Custom roles cannot hold the wildcard permission")
    try:
        return validate_permission_list(permissions)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def _subordinate_cap(can_manage_users: bool, max_subordinates: int | None) -> int | None:
    if not can_manage_users:
        return 0
    if max_subordinates is not None and max_subordinates < 0:
        raise ValidationError("max_subordinates must be greater than or equal to 0")
    return max_subordinates


class RoleService:
    """Custom role administration.

    System roles are immutable and can never be deleted. Custom roles are
    always strictly less privileged than the role of the admin managing them.
    """

    def __init__(
        self,
        roles: RoleStore,
        admins: AdminStore,
        permissions: PermissionService,
        audit: AuditService | None = None,
    ):
        self.roles = roles
        self.admins = admins
        self.permissions = permissions
        self.audit = audit or AuditService()

    async def list_roles(self, principal: Principal) -> list[RoleData]:
        await self.permissions.require(
            principal, RequirePermission(Resource.ROLE_MANAGEMENT, Action.READ)
        )
        return await self.roles.list_all()

    async def get_role(self, role_id: str) -> RoleData:
        role = await self.roles.get_by_id(role_id)
        if role is None:
            raise RoleNotFoundError(f"Role '{role_id}' was not found")
        return role

    async def create_role(
        self,
        principal: Principal,
        *,
        name: str,
        display_name: str,
        level: int,
        permissions: list[str],
        description: str | None = None,
        can_manage_users: bool = False,
        max_subordinates: int | None = None,
    ) -> RoleData:
        context = await self.permissions.require(
            principal, RequirePermission(Resource.ROLE_MANAGEMENT, Action.CREATE)
        )
        actor_level = _actor_level(context)
        if level <= actor_level:
            raise PermissionError(
                f"Custom roles must be less privileged than your own role (level greater than {actor_level})"
            )
        if name in SYSTEM_ROLES_BY_NAME:
            raise DuplicateRoleNameError(
                f"'{name}' is reserved for a system role", details={"name": name}
            )

        role = await self.roles.create(
            name=name,
            display_name=display_name,
            description=description,
            level=level,
            permissions=_custom_permissions(permissions),
            is_system_role=False,
            can_manage_users=can_manage_users,
            max_subordinates=_subordinate_cap(can_manage_users, max_subordinates),
            created_by=context.account.id,
        )
        await self.audit.log_admin_action(
            actor_id=context.account.id,
            action="roles.create",
            target_type="role",
            target_id=role.id,
            payload={"name": role.name, "level": role.level, "permissions": list(role.permissions)},
        )
        return role

    async def update_role(
        self, principal: Principal, role_id: str, patch: dict[str, Any]
    ) -> RoleData:
        context = await self.permissions.require(
            principal, RequirePermission(Resource.ROLE_MANAGEMENT, Action.UPDATE)
        )
        role = await self.get_role(role_id)
        if role.is_system_role:
            raise SystemRoleProtectedError(f"System role '{role.name}' cannot be modified")

        unknown = set(patch) - ROLE_PATCH_FIELDS
        if unknown:
            raise ValidationError(f"Role fields cannot be updated: {', '.join(sorted(unknown))}")
        nulls = {key for key, value in patch.items() if value is None} - NULLABLE_ROLE_FIELDS
        if nulls:
            raise ValidationError(
                f"Role fields cannot be null: {', '.join(sorted(nulls))}",
                details={"fields": sorted(nulls)},
            )

        actor_level = _actor_level(context)
        if role.level <= actor_level:
            raise PermissionError("You can only modify roles less privileged than your own")
        if "level" in patch and patch["level"] <= actor_level:
            raise PermissionError(
                f"Custom roles must be less privileged than your own role (level greater than {actor_level})"
            )

        changes = dict(patch)
        if "permissions" in changes:
            changes["permissions"] = _custom_permissions(changes["permissions"])
        if "can_manage_users" in changes or "max_subordinates" in changes:
            changes["max_subordinates"] = _subordinate_cap(
                changes.get("can_manage_users", role.can_manage_users),
                changes.get("max_subordinates", role.max_subordinates),
            )

        updated = await self.roles.update(role_id, changes)
        if updated is None:
            raise RoleNotFoundError(f"Role '{role_id}' was not found")
        await self.audit.log_admin_action(
            actor_id=context.account.id,
            action="roles.update",
            target_type="role",
            target_id=role_id,
            payload={"changes": changes},
        )
        return updated

    async def delete_role(self, principal: Principal, role_id: str) -> None:
        context = await self.permissions.require(
            principal, RequirePermission(Resource.ROLE_MANAGEMENT, Action.DELETE)
        )
        role = await self.get_role(role_id)
        if role.is_system_role:
            raise SystemRoleProtectedError(f"System role '{role.name}' cannot be deleted")
        if role.level <= _actor_level(context):
            raise PermissionError("You can only delete roles less privileged than your own")

        assigned = await self.admins.count_with_role(role_id)
        if assigned:
            raise RoleInUseError(
                f"Role '{role.name}' is assigned to {assigned} admin account(s)",
                details={"assigned": assigned},
            )

        await self.roles.delete(role_id)
        await self.audit.log_admin_action(
            actor_id=context.account.id,
            action="roles.delete",
            target_type="role",
            target_id=role_id,
            payload={"name": role.name},
        )

    async def purge_custom_roles(self, *, confirm: bool) -> PurgeResult:
        """Delete every unreferenced custom role. Operator-only and destructive."""
        if not confirm:
            raise ValidationError(
                "Purging custom roles is destructive and requires explicit confirmation"
            )

        result = PurgeResult()
        for role in await self.roles.list_all():
            if role.is_system_role:
                continue
            if await self.admins.count_with_role(role.id):
                result.kept_in_use.append(role.name)
                continue
            await self.roles.delete(role.id)
            result.deleted.append(role.name)
            logger.warning("custom_role_purged name=%s id=%s", role.name, role.id)

        await self.audit.log_admin_action(
            actor_id="system",
            action="roles.purge_custom",
            target_type="role",
            target_id="*",
            payload={"deleted": result.deleted, "kept_in_use": result.kept_in_use},
        )
        return result

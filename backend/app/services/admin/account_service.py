import logging
from datetime import datetime, timezone

from ...admin.services.audit_service import AuditService
from ...auth import gate
from ...auth.gate import RequirePermission
from ...auth.principal import Principal
from ...auth.rbac_contract import WILDCARD, Action, AdminStatus, Permission, Resource
from ...auth.resolver import effective_permissions, role_has_wildcard
from ...domain.ports.rbac_store import AdminData, AdminStore, RoleData, RoleStore
from ...errors import (
    AccountInactiveError,
    AuthError,
    NotFoundError,
    PermissionError,
    RoleNotFoundError,
    SubordinateLimitError,
    ValidationError,
)
from .permission_service import AccessContext, PermissionService

logger = logging.getLogger("quicklink.accounts")


def subordinate_limit_for(role: RoleData) -> int | None:
    """Limit mirrored onto an account holding ``role``; None is unlimited."""
    if role_has_wildcard(role):
        return role.max_subordinates
    if not role.can_manage_users:
        return 0
    return role.max_subordinates


def _manager_role(context: AccessContext) -> RoleData:
    if context.role is None:
        raise PermissionError(gate.NO_ROLE_MESSAGE)
    return context.role


class AccountService:
    """Admin account administration: subordinates, status and logins."""

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

    async def create_subordinate(
        self,
        principal: Principal,
        *,
        admin_id: str,
        email: str,
        display_name: str,
        role_id: str,
        permissions: list[str] | None = None,
    ) -> AdminData:
        context = await self.permissions.require(
            principal, RequirePermission(Resource.USER_MANAGEMENT, Action.CREATE)
        )
        manager = context.account
        manager_role = _manager_role(context)
        if not (role_has_wildcard(manager_role) or manager_role.can_manage_users):
            raise PermissionError("Your role is not allowed to create admin accounts")

        role = await self.roles.get_by_id(role_id)
        if role is None:
            raise RoleNotFoundError(f"Role '{role_id}' was not found")
        if not role.is_active:
            raise ValidationError(f"Role '{role.name}' is inactive and cannot be assigned")
        if role.level <= manager_role.level:
            raise PermissionError("You can only assign roles less privileged than your own")

        grants = self._delegable_grants(context, permissions or [])

        # Accounts without a mirrored limit fall back to their role's cap.
        role_limit = subordinate_limit_for(manager_role)
        if not await self.admins.reserve_sub_user_slot(manager.id, role_limit):
            limit = manager.max_sub_users_allowed
            if limit is None:
                limit = role_limit
            raise SubordinateLimitError(
                f"You have reached your limit of {limit} admin accounts",
                details={"max_sub_users_allowed": limit},
            )

        try:
            account = await self.admins.create(
                admin_id=admin_id,
                email=email,
                display_name=display_name,
                role_id=role.id,
                access_level=role.name,
                status=AdminStatus.ACTIVE.value,
                permissions=grants,
                manager_id=manager.id,
                created_sub_users_count=0,
                max_sub_users_allowed=subordinate_limit_for(role),
            )
        except Exception:
            await self.admins.release_sub_user_slot(manager.id)
            raise

        await self.audit.log_admin_action(
            actor_id=manager.id,
            action="admins.create",
            target_type="admin",
            target_id=account.id,
            payload={"role": role.name, "permissions": grants},
        )
        return account

    def _delegable_grants(self, context: AccessContext, requested: list[str]) -> list[str]:
        """Direct grants a manager may hand out: only ones they hold themselves."""
        held = effective_permissions(context.account, context.role)
        grants: set[str] = set()
        for value in requested:
            if value == WILDCARD:
                raise ValidationError("Direct grants cannot contain the wildcard permission")
            try:
                permission = Permission.parse(value)
            except ValueError as exc:
                raise ValidationError(str(exc)) from exc
            if not held.allows(permission):
                raise PermissionError(f"You cannot grant `{permission.name}` without holding it")
            grants.add(permission.name)
        return sorted(grants)

    async def set_status(
        self, principal: Principal, admin_id: str, status: str
    ) -> AdminData:
        context = await self.permissions.require(
            principal, RequirePermission(Resource.USER_MANAGEMENT, Action.UPDATE)
        )
        try:
            new_status = AdminStatus(status)
        except ValueError as exc:
            raise ValidationError(f"Invalid status '{status}'") from exc
        if admin_id == context.account.id:
            raise PermissionError("You cannot change the status of your own account")

        target = await self.admins.get_by_id(admin_id)
        if target is None:
            raise NotFoundError(f"Admin account '{admin_id}' was not found")

        actor_role = _manager_role(context)
        if not role_has_wildcard(actor_role):
            target_role = await self.permissions.resolve_role(target)
            if target_role is not None and target_role.level <= actor_role.level:
                raise PermissionError(
                    "You can only manage accounts less privileged than your own"
                )

        previous = target.status
        updated = await self.admins.update(admin_id, {"status": new_status.value})
        if updated is None:
            raise NotFoundError(f"Admin account '{admin_id}' was not found")
        await self.audit.log_admin_action(
            actor_id=context.account.id,
            action="admins.set_status",
            target_type="admin",
            target_id=admin_id,
            payload={"from": previous, "to": new_status.value},
        )
        return updated

    async def assign_role(
        self, principal: Principal, admin_id: str, role_id: str
    ) -> AdminData:
        """Move an existing account to another role.

        ``access_level`` follows the new role and the account's subordinate
        limit is re-mirrored from it.
        """
        context = await self.permissions.require(
            principal, RequirePermission(Resource.USER_MANAGEMENT, Action.ASSIGN_ROLES)
        )
        if admin_id == context.account.id:
            raise PermissionError("You cannot change the role of your own account")

        target = await self.admins.get_by_id(admin_id)
        if target is None:
            raise NotFoundError(f"Admin account '{admin_id}' was not found")

        role = await self.roles.get_by_id(role_id)
        if role is None:
            raise RoleNotFoundError(f"Role '{role_id}' was not found")
        if not role.is_active:
            raise ValidationError(f"Role '{role.name}' is inactive and cannot be assigned")

        actor_role = _manager_role(context)
        if role.level <= actor_role.level:
            raise PermissionError("You can only assign roles less privileged than your own")
        current_role = await self.permissions.resolve_role(target)
        if not role_has_wildcard(actor_role):
            if current_role is not None and current_role.level <= actor_role.level:
                raise PermissionError(
                    "You can only manage accounts less privileged than your own"
                )

        limit = subordinate_limit_for(role)
        created = target.created_sub_users_count or 0
        if limit is not None and created > limit:
            raise ValidationError(
                f"Account has created {created} admin accounts, above the "
                f"'{role.name}' limit of {limit}",
                details={"created_sub_users_count": created, "max_sub_users_allowed": limit},
            )

        updated = await self.admins.update(
            admin_id,
            {"role_id": role.id, "access_level": role.name, "max_sub_users_allowed": limit},
        )
        if updated is None:
            raise NotFoundError(f"Admin account '{admin_id}' was not found")
        await self.audit.log_admin_action(
            actor_id=context.account.id,
            action="admins.assign_role",
            target_type="admin",
            target_id=admin_id,
            payload={
                "from": current_role.name if current_role is not None else None,
                "to": role.name,
            },
        )
        return updated

    async def record_login(
        self, principal: Principal, *, at: datetime | None = None
    ) -> AdminData:
        """Bookkeeping at sign-in: last login timestamp and login count."""
        if not principal.is_authenticated or principal.id is None:
            raise AuthError(principal.reason or gate.NOT_AUTHENTICATED_MESSAGE)
        account = await self.admins.get_by_id(principal.id)
        if account is None:
            raise AuthError(gate.ACCOUNT_NOT_FOUND_MESSAGE)
        if account.status != AdminStatus.ACTIVE.value:
            raise AccountInactiveError(gate.inactive_message(account.status))

        updated = await self.admins.record_login(
            account.id, at or datetime.now(timezone.utc)
        )
        if updated is None:
            raise AuthError(gate.ACCOUNT_NOT_FOUND_MESSAGE)
        logger.info("admin_login admin_id=%s count=%s", updated.id, updated.login_count)
        return updated

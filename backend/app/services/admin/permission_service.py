import logging
from dataclasses import dataclass

from ...admin.services.audit_service import AuditService
from ...auth import gate
from ...auth.gate import AUTHENTICATED, Requirement, RequireLevel, RequirePermission
from ...auth.principal import Principal
from ...auth.rbac_contract import Action, Resource, role_name_for_access_level
from ...auth.resolver import AccessDecision, DenialKind, EffectivePermissions, effective_permissions
from ...domain.ports.rbac_store import AdminData, AdminStore, RoleData, RoleStore
from ...errors import AccountInactiveError, AppError, AuthError, PermissionError

logger = logging.getLogger("quicklink.rbac")


@dataclass(frozen=True, slots=True)
class AccessContext:
    """Point-in-time snapshot of a granted principal."""

    principal: Principal
    account: AdminData
    role: RoleData | None


def describe_requirement(requirement: Requirement) -> str:
    if isinstance(requirement, RequirePermission):
        return requirement.permission.name
    if isinstance(requirement, RequireLevel):
        return f"level<={requirement.max_level}"
    return "authenticated"


def decision_error(decision: AccessDecision) -> AppError:
    """Map a denial onto the matching ``AppError``, keeping its message."""
    if decision.kind == DenialKind.UNAUTHENTICATED:
        return AuthError(decision.message)
    if decision.kind == DenialKind.ACCOUNT_INACTIVE:
        return AccountInactiveError(decision.message)
    return PermissionError(decision.message)


class PermissionService:
    """Runtime entry point for authorization decisions.

    Every call takes the principal explicitly and reads its own snapshot of
    the account and role, so concurrent checks never share state.
    """

    def __init__(
        self,
        roles: RoleStore,
        admins: AdminStore,
        audit: AuditService | None = None,
    ):
        self.roles = roles
        self.admins = admins
        self.audit = audit or AuditService()

    async def resolve_role(self, account: AdminData | None) -> RoleData | None:
        """Effective role: the referenced role, or the legacy access-level role
        for accounts the migrator has not reached yet."""
        if account is None:
            return None
        if account.role_id:
            return await self.roles.get_by_id(account.role_id)
        role_name = role_name_for_access_level(account.access_level)
        if role_name is None:
            return None
        return await self.roles.get_by_name(role_name)

    async def snapshot(
        self, principal: Principal
    ) -> tuple[AdminData | None, RoleData | None]:
        if not principal.is_authenticated or principal.id is None:
            return None, None
        account = await self.admins.get_by_id(principal.id)
        role = await self.resolve_role(account)
        return account, role

    async def check_access(
        self, principal: Principal, requirement: Requirement = AUTHENTICATED
    ) -> AccessDecision:
        account, role = await self.snapshot(principal)
        decision = gate.check_access(principal, account, role, requirement)
        if not decision:
            logger.info(
                "access_denied principal=%s requirement=%s kind=%s",
                principal.id or "anonymous",
                describe_requirement(requirement),
                decision.kind.value if decision.kind else "n/a",
            )
        return decision

    async def authorize(
        self, principal: Principal, resource: Resource | str, action: Action | str
    ) -> AccessDecision:
        """Fine-grained check for ``(resource, action)``.

        Goes through the gate, so unauthenticated and inactive principals are
        denied before the permission set is consulted.
        """
        return await self.check_access(principal, RequirePermission(resource, action))  # type: ignore[arg-type]

    async def effective_permissions(self, principal: Principal) -> EffectivePermissions:
        account, role = await self.snapshot(principal)
        if not gate.check_access(principal, account, role, AUTHENTICATED):
            return EffectivePermissions(wildcard=False, permissions=frozenset())
        return effective_permissions(account, role)

    async def require(
        self,
        principal: Principal,
        requirement: Requirement = AUTHENTICATED,
        *,
        request_method: str | None = None,
        request_path: str | None = None,
    ) -> AccessContext:
        """Enforce ``requirement`` or raise the matching ``AppError``.

        Denials are written to the audit trail before raising.
        """
        account, role = await self.snapshot(principal)
        decision = gate.check_access(principal, account, role, requirement)
        if not decision:
            await self.audit.log_access_denied(
                actor_id=principal.id,
                requirement=describe_requirement(requirement),
                kind=decision.kind.value if decision.kind else "unknown",
                message=decision.message or "",
                request_method=request_method,
                request_path=request_path,
            )
            raise decision_error(decision)
        if account is None:
            raise AuthError(gate.ACCOUNT_NOT_FOUND_MESSAGE)
        return AccessContext(principal=principal, account=account, role=role)

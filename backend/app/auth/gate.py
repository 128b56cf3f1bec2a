"""
Access gate: composes authentication, account status and permission
resolution into a single decision with a message fit for direct display.

Evaluation order (first failure short-circuits):
    a) the principal is authenticated and has an admin account
    b) the account status is ``active``
    c) the requirement (none, maximum role level, or a permission)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from app.auth.principal import Principal
from app.auth.rbac_contract import Action, AdminStatus, Permission, Resource
from app.auth.resolver import (
    AccessDecision,
    DenialKind,
    authorize,
    role_is_effective,
)
from app.domain.ports.rbac_store import AdminData, RoleData

NOT_AUTHENTICATED_MESSAGE = "You are not signed in. Please sign in to continue."
ACCOUNT_NOT_FOUND_MESSAGE = "Admin account not found. Please contact support."
NO_ROLE_MESSAGE = "No role is assigned to your account. Please contact an administrator."


@dataclass(frozen=True, slots=True)
class AuthenticatedOnly:
    pass


@dataclass(frozen=True, slots=True)
class RequireLevel:
    max_level: int


@dataclass(frozen=True, slots=True)
class RequirePermission:
    resource: Resource
    action: Action

    def __post_init__(self) -> None:
        permission = Permission(self.resource, self.action)
        object.__setattr__(self, "resource", permission.resource)
        object.__setattr__(self, "action", permission.action)

    @property
    def permission(self) -> Permission:
        return Permission(self.resource, self.action)


Requirement = Union[AuthenticatedOnly, RequireLevel, RequirePermission]

AUTHENTICATED = AuthenticatedOnly()
REQUIRE_SUPER_ADMIN = RequireLevel(0)
REQUIRE_SYSTEM_ADMIN = RequireLevel(10)


def inactive_message(status: str) -> str:
    return f"Your account is currently {status}. Please contact support for assistance."


def level_message(max_level: int) -> str:
    if max_level == 0:
        return "This section requires Super Admin privileges."
    return f"This section requires role level {max_level} or higher privileges."


def check_access(
    principal: Principal,
    account: AdminData | None,
    role: RoleData | None,
    requirement: Requirement = AUTHENTICATED,
) -> AccessDecision:
    if not principal.is_authenticated:
        return AccessDecision.deny(
            DenialKind.UNAUTHENTICATED, principal.reason or NOT_AUTHENTICATED_MESSAGE
        )
    if account is None:
        return AccessDecision.deny(DenialKind.UNAUTHENTICATED, ACCOUNT_NOT_FOUND_MESSAGE)

    if account.status != AdminStatus.ACTIVE.value:
        return AccessDecision.deny(
            DenialKind.ACCOUNT_INACTIVE, inactive_message(str(account.status))
        )

    if isinstance(requirement, AuthenticatedOnly):
        return AccessDecision.allow()

    if isinstance(requirement, RequireLevel):
        if not role_is_effective(role):
            return AccessDecision.deny(DenialKind.INSUFFICIENT_PERMISSION, NO_ROLE_MESSAGE)
        if role.level > requirement.max_level:  # type: ignore[union-attr]
            return AccessDecision.deny(
                DenialKind.INSUFFICIENT_PERMISSION, level_message(requirement.max_level)
            )
        return AccessDecision.allow()

    if isinstance(requirement, RequirePermission):
        return authorize(account, role, requirement.resource, requirement.action)

    raise TypeError(f"Unsupported access requirement: {requirement!r}")

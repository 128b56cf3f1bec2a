"""
Permission resolution.

Pure functions over a point-in-time snapshot of an admin account and its
effective role. Resolution order, first match wins:

1. the role holds the wildcard (level 0 always does);
2. the role's permission set contains the exact pair;
3. one of the account's direct grants matches;
4. otherwise denied.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from app.auth.rbac_contract import (
    SUPER_ADMIN_LEVEL,
    WILDCARD,
    Action,
    Permission,
    Resource,
)
from app.domain.ports.rbac_store import AdminData, RoleData

logger = logging.getLogger("quicklink.rbac")


class DenialKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    ACCOUNT_INACTIVE = "account_inactive"
    INSUFFICIENT_PERMISSION = "insufficient_permission"


@dataclass(frozen=True, slots=True)
class AccessDecision:
    granted: bool
    kind: DenialKind | None = None
    message: str | None = None

    def __bool__(self) -> bool:
        return self.granted

    @classmethod
    def allow(cls) -> "AccessDecision":
        return cls(granted=True)

    @classmethod
    def deny(cls, kind: DenialKind, message: str) -> "AccessDecision":
        return cls(granted=False, kind=kind, message=message)


@dataclass(frozen=True, slots=True)
class EffectivePermissions:
    wildcard: bool
    permissions: frozenset[Permission]

    def allows(self, permission: Permission) -> bool:
        return self.wildcard or permission in self.permissions

    def names(self) -> list[str]:
        if self.wildcard:
            return [WILDCARD]
        return sorted(p.name for p in self.permissions)


def parse_grants(raw: Iterable[str] | None, *, source: str) -> frozenset[Permission]:
    """Parse stored permission strings, skipping (and logging) unknown entries.

    The wildcard is not a pair and is skipped here; see ``role_has_wildcard``.
    """
    grants: set[Permission] = set()
    for value in raw or ():
        if value == WILDCARD:
            continue
        try:
            grants.add(Permission.parse(value))
        except ValueError as exc:
            logger.warning("rbac_unknown_permission source=%s value=%r error=%s", source, value, exc)
    return frozenset(grants)


def role_is_effective(role: RoleData | None) -> bool:
    if role is None:
        return False
    return role.level == SUPER_ADMIN_LEVEL or bool(role.is_active)


def role_has_wildcard(role: RoleData | None) -> bool:
    """Level 0 is all-powerful regardless of the stored permission set."""
    if role is None:
        return False
    if role.level == SUPER_ADMIN_LEVEL:
        return True
    return bool(role.is_active) and WILDCARD in (role.permissions or ())


def effective_permissions(
    account: AdminData | None, role: RoleData | None
) -> EffectivePermissions:
    if role_has_wildcard(role):
        return EffectivePermissions(wildcard=True, permissions=frozenset())

    permissions: set[Permission] = set()
    if role is not None and role_is_effective(role):
        permissions |= parse_grants(role.permissions, source=f"role:{role.name}")
    if account is not None:
        permissions |= parse_grants(account.permissions, source=f"admin:{account.id}")
    return EffectivePermissions(wildcard=False, permissions=frozenset(permissions))


def missing_permission_message(permission: Permission) -> str:
    return f"Missing permission `{permission.name}`"


def authorize(
    account: AdminData | None,
    role: RoleData | None,
    resource: Resource | str,
    action: Action | str,
) -> AccessDecision:
    """Decide whether ``account`` (holding ``role``) may perform the action.

    Raises:
        ValueError: If ``(resource, action)`` is not in the vocabulary
    """
    permission = Permission(resource, action)  # type: ignore[arg-type]

    if role_has_wildcard(role):
        return AccessDecision.allow()

    if role is not None and role_is_effective(role):
        if permission in parse_grants(role.permissions, source=f"role:{role.name}"):
            return AccessDecision.allow()

    if account is not None:
        if permission in parse_grants(account.permissions, source=f"admin:{account.id}"):
            return AccessDecision.allow()

    return AccessDecision.deny(
        DenialKind.INSUFFICIENT_PERMISSION, missing_permission_message(permission)
    )

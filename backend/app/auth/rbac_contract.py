"""
RBAC contract for the QuickLink Pay admin back end.

Defines the closed permission vocabulary, the catalog of system roles and the
legacy access-level mapping. Everything here is validated when the module is
imported; a malformed catalog stops the process instead of silently denying
(or granting) access at request time.

Permissions are tagged ``(Resource, Action)`` pairs. Their wire form is
``"resource.action"``; the wildcard wire form is ``"*"``.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final


class Resource(str, Enum):
    SYSTEM_CONFIG = "systemConfig"
    API_MANAGEMENT = "apiManagement"
    PRICING = "pricing"
    MERCHANT_MANAGEMENT = "merchantManagement"
    ANALYTICS = "analytics"
    SYSTEM_HEALTH = "systemHealth"
    COMPLIANCE = "compliance"
    AUDIT_LOGS = "auditLogs"
    USER_MANAGEMENT = "userManagement"
    ROLE_MANAGEMENT = "roleManagement"
    TEMPLATES = "templates"
    SUPPORT_TICKETS = "supportTickets"
    AI_PROMPTS = "aiPrompts"
    PAYOUTS = "payouts"


class Action(str, Enum):
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    SUSPEND = "suspend"
    TERMINATE = "terminate"
    EXPORT = "export"
    CREATE = "create"
    UPDATE = "update"
    ASSIGN_ROLES = "assignRoles"


class AdminStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DISABLED = "disabled"


WILDCARD: Final[str] = "*"
SUPER_ADMIN_LEVEL: Final[int] = 0

_CRUD: Final[frozenset[Action]] = frozenset(
    {Action.READ, Action.CREATE, Action.UPDATE, Action.DELETE}
)
_READ_WRITE_DELETE: Final[frozenset[Action]] = frozenset(
    {Action.READ, Action.WRITE, Action.DELETE}
)

# Actions each resource understands. Anything outside this table is a typo.
RESOURCE_ACTIONS: Final[dict[Resource, frozenset[Action]]] = {
    Resource.SYSTEM_CONFIG: _READ_WRITE_DELETE,
    Resource.API_MANAGEMENT: _READ_WRITE_DELETE,
    Resource.PRICING: _READ_WRITE_DELETE,
    Resource.MERCHANT_MANAGEMENT: _READ_WRITE_DELETE | {Action.SUSPEND, Action.TERMINATE},
    Resource.ANALYTICS: frozenset({Action.READ, Action.WRITE, Action.EXPORT}),
    Resource.SYSTEM_HEALTH: frozenset({Action.READ, Action.WRITE}),
    Resource.COMPLIANCE: _READ_WRITE_DELETE | {Action.EXPORT},
    Resource.AUDIT_LOGS: frozenset({Action.READ, Action.EXPORT}),
    Resource.USER_MANAGEMENT: _CRUD | {Action.ASSIGN_ROLES},
    Resource.ROLE_MANAGEMENT: _CRUD,
    Resource.TEMPLATES: _CRUD,
    Resource.SUPPORT_TICKETS: _CRUD,
    Resource.AI_PROMPTS: _CRUD,
    Resource.PAYOUTS: _READ_WRITE_DELETE,
}


@dataclass(frozen=True, slots=True)
class Permission:
    """A single ``(resource, action)`` grant.

    Accepts enum members or their string values; anything outside the
    vocabulary raises ``ValueError`` at construction.
    """

    resource: Resource
    action: Action

    def __post_init__(self) -> None:
        try:
            resource = Resource(self.resource)
        except ValueError:
            raise ValueError(
                f"Invalid resource '{self.resource}'. "
                f"Must be one of: {', '.join(sorted(r.value for r in Resource))}"
            ) from None
        try:
            action = Action(self.action)
        except ValueError:
            raise ValueError(
                f"Invalid action '{self.action}'. "
                f"Must be one of: {', '.join(sorted(a.value for a in Action))}"
            ) from None
        if action not in RESOURCE_ACTIONS[resource]:
            raise ValueError(
                f"Action '{action.value}' is not defined for resource '{resource.value}'"
            )
        object.__setattr__(self, "resource", resource)
        object.__setattr__(self, "action", action)

    @property
    def name(self) -> str:
        return f"{self.resource.value}.{self.action.value}"

    def __str__(self) -> str:
        return self.name

    @classmethod
    def parse(cls, value: str) -> "Permission":
        """Parse the ``"resource.action"`` wire form."""
        if not isinstance(value, str) or value.count(".") != 1:
            raise ValueError(
                f"Invalid permission '{value}'. Expected the form 'resource.action'"
            )
        resource, action = value.split(".")
        return cls(resource, action)  # type: ignore[arg-type]


ALL_PERMISSIONS: Final[frozenset[str]] = frozenset(
    f"{resource.value}.{action.value}"
    for resource, actions in RESOURCE_ACTIONS.items()
    for action in actions
)


def validate_permission(permission: str) -> None:
    """Validate a stored permission string; the wildcard is allowed.

    Raises:
        ValueError: If the permission is neither the wildcard nor a
            vocabulary pair
    """
    if permission == WILDCARD:
        return
    Permission.parse(permission)


def validate_permission_list(permissions: list[str] | tuple[str, ...] | frozenset[str]) -> list[str]:
    """Validate and normalise a list of permission strings (sorted, unique)."""
    for permission in permissions:
        validate_permission(permission)
    return sorted(set(permissions))


# ============================================================================
# SYSTEM ROLE CATALOG
# ============================================================================

@dataclass(frozen=True, slots=True)
class SystemRoleSpec:
    name: str
    display_name: str
    description: str
    level: int
    permissions: frozenset[str]
    can_manage_users: bool
    max_subordinates: int | None

    def as_create_kwargs(self) -> dict[str, object]:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "level": self.level,
            "permissions": sorted(self.permissions),
            "is_system_role": True,
            "can_manage_users": self.can_manage_users,
            "max_subordinates": self.max_subordinates,
        }


SYSTEM_ROLE_CATALOG: Final[tuple[SystemRoleSpec, ...]] = (
    SystemRoleSpec(
        name="super_admin",
        display_name="Super Admin",
        description=(
            "Full system access with all permissions. Can manage all users, "
            "roles, and system configuration."
        ),
        level=SUPER_ADMIN_LEVEL,
        permissions=frozenset({WILDCARD}),
        can_manage_users=True,
        max_subordinates=None,
    ),
    SystemRoleSpec(
        name="system_admin",
        display_name="System Administrator",
        description=(
            "System configuration and technical operations. Can manage system "
            "settings, API integrations, and platform health."
        ),
        level=10,
        permissions=frozenset({
            "systemConfig.read", "systemConfig.write",
            "apiManagement.read", "apiManagement.write",
            "pricing.read",
            "merchantManagement.read",
            "analytics.read", "analytics.export",
            "systemHealth.read", "systemHealth.write",
            "compliance.read",
            "auditLogs.read",
            "roleManagement.read",
        }),
        can_manage_users=False,
        max_subordinates=0,
    ),
    SystemRoleSpec(
        name="ops_admin",
        display_name="Operations Administrator",
        description=(
            "Day-to-day operations management. Can manage merchants, handle "
            "support tickets, and process payouts."
        ),
        level=20,
        permissions=frozenset({
            "systemConfig.read",
            "pricing.read",
            "merchantManagement.read", "merchantManagement.write",
            "merchantManagement.suspend",
            "analytics.read", "analytics.export",
            "systemHealth.read",
            "compliance.read",
            "auditLogs.read",
            "userManagement.read", "userManagement.create", "userManagement.update",
            "roleManagement.read",
        }),
        can_manage_users=True,
        max_subordinates=20,
    ),
    SystemRoleSpec(
        name="finance_admin",
        display_name="Finance Administrator",
        description=(
            "Financial operations and billing management. Can manage pricing, "
            "process payouts, and view financial reports."
        ),
        level=30,
        permissions=frozenset({
            "pricing.read", "pricing.write",
            "merchantManagement.read",
            "analytics.read", "analytics.export",
            "compliance.read", "compliance.export",
            "auditLogs.read",
            "userManagement.read", "userManagement.create", "userManagement.update",
            "roleManagement.read",
        }),
        can_manage_users=True,
        max_subordinates=10,
    ),
    SystemRoleSpec(
        name="support_admin",
        display_name="Support Administrator",
        description=(
            "Customer support operations. Can handle merchant tickets, view "
            "basic information, and assist merchants."
        ),
        level=40,
        permissions=frozenset({
            "pricing.read",
            "merchantManagement.read",
            "analytics.read",
            "userManagement.read", "userManagement.create", "userManagement.update",
            "roleManagement.read",
        }),
        can_manage_users=True,
        max_subordinates=50,
    ),
    SystemRoleSpec(
        name="audit_admin",
        display_name="Audit Administrator",
        description=(
            "Compliance and audit operations. Can view audit logs, compliance "
            "reports, and analytics."
        ),
        level=50,
        permissions=frozenset({
            "systemConfig.read",
            "pricing.read",
            "merchantManagement.read",
            "analytics.read", "analytics.export",
            "systemHealth.read",
            "compliance.read", "compliance.write", "compliance.export",
            "auditLogs.read", "auditLogs.export",
            "roleManagement.read",
        }),
        can_manage_users=False,
        max_subordinates=0,
    ),
    SystemRoleSpec(
        name="merchant_support_lead",
        display_name="Merchant Support Lead",
        description=(
            "Lead support agent with team management. Can manage support "
            "agents and escalated tickets."
        ),
        level=60,
        permissions=frozenset({
            "pricing.read",
            "merchantManagement.read",
            "analytics.read",
            "userManagement.read", "userManagement.create", "userManagement.update",
            "roleManagement.read",
        }),
        can_manage_users=True,
        max_subordinates=30,
    ),
    SystemRoleSpec(
        name="merchant_support_agent",
        display_name="Merchant Support Agent",
        description=(
            "Basic support operations. Can view merchant information and "
            "handle basic support tickets."
        ),
        level=70,
        permissions=frozenset({
            "pricing.read",
            "merchantManagement.read",
        }),
        can_manage_users=False,
        max_subordinates=0,
    ),
    SystemRoleSpec(
        name="viewer",
        display_name="Read-Only Viewer",
        description=(
            "Read-only access to basic analytics and merchant information. "
            "No modification permissions."
        ),
        level=90,
        permissions=frozenset({
            "pricing.read",
            "merchantManagement.read",
            "analytics.read",
        }),
        can_manage_users=False,
        max_subordinates=0,
    ),
)

SYSTEM_ROLES_BY_NAME: Final[dict[str, SystemRoleSpec]] = {
    spec.name: spec for spec in SYSTEM_ROLE_CATALOG
}

SYSTEM_ROLE_LEVELS: Final[frozenset[int]] = frozenset({0, 10, 20, 30, 40, 50, 60, 70, 90})

SUPER_ADMIN_ROLE: Final[str] = "super_admin"
SYSTEM_ADMIN_ROLE: Final[str] = "system_admin"

# Legacy ``accessLevel`` labels -> catalog role names, used by the migrator
# and as the effective-role fallback for accounts not yet migrated.
ACCESS_LEVEL_ROLE_NAMES: Final[dict[str, str]] = {
    "super_admin": "super_admin",
    "system_admin": "system_admin",
    "ops_admin": "ops_admin",
    "finance_admin": "finance_admin",
    "support_admin": "support_admin",
    "audit_admin": "audit_admin",
    "merchant_support_lead": "merchant_support_lead",
    "merchant_support_agent": "merchant_support_agent",
    "viewer": "viewer",
}


def role_name_for_access_level(access_level: str | None) -> str | None:
    if not access_level:
        return None
    return ACCESS_LEVEL_ROLE_NAMES.get(access_level)


def _validate_contract() -> None:
    """Validate the whole catalog at import time."""
    errors = []

    names = [spec.name for spec in SYSTEM_ROLE_CATALOG]
    if len(names) != 9:
        errors.append(f"System role catalog must hold exactly 9 roles, found {len(names)}")
    if len(set(names)) != len(names):
        errors.append("System role names must be unique")

    levels = {spec.level for spec in SYSTEM_ROLE_CATALOG}
    if levels != SYSTEM_ROLE_LEVELS:
        errors.append(f"System role levels {sorted(levels)} do not match {sorted(SYSTEM_ROLE_LEVELS)}")

    for spec in SYSTEM_ROLE_CATALOG:
        for permission in spec.permissions:
            try:
                validate_permission(permission)
            except ValueError as e:
                errors.append(f"Role '{spec.name}' has invalid permission: {e}")
        if spec.level == SUPER_ADMIN_LEVEL and WILDCARD not in spec.permissions:
            errors.append(f"Role '{spec.name}' is level 0 but does not hold the wildcard")
        if spec.level != SUPER_ADMIN_LEVEL and WILDCARD in spec.permissions:
            errors.append(f"Role '{spec.name}' holds the wildcard but is not level 0")
        if not spec.can_manage_users and spec.max_subordinates != 0:
            errors.append(f"Role '{spec.name}' cannot manage users but allows subordinates")

    for access_level, role_name in ACCESS_LEVEL_ROLE_NAMES.items():
        if role_name not in SYSTEM_ROLES_BY_NAME:
            errors.append(f"Access level '{access_level}' maps to unknown role '{role_name}'")

    if errors:
        raise RuntimeError(
            "RBAC contract validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )


_validate_contract()

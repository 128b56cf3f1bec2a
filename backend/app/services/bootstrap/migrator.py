"""
Backfill of ``role_id`` for admin accounts that only carry the legacy
``access_level`` label.

Accounts that already reference a role are never modified, so the
procedure can be re-run at any time. Per-account failures are reported in
the result; only ``StoreUnavailableError`` aborts the run.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ...admin.services.audit_service import AuditService
from ...auth.rbac_contract import role_name_for_access_level
from ...domain.ports.rbac_store import AdminData, AdminStore, RoleData, RoleStore
from ...errors import ConflictError

logger = logging.getLogger("quicklink.bootstrap")


@dataclass
class MigrationResult:
    migrated: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    # admin id -> reason, for the operator report
    error_reasons: dict[str, str] = field(default_factory=dict)

    def fail(self, admin_id: str, reason: str) -> None:
        self.errors.append(admin_id)
        self.error_reasons[admin_id] = reason
        logger.warning("admin_migration_error admin_id=%s reason=%s", admin_id, reason)


@dataclass
class MigrationVerification:
    total: int = 0
    migrated: int = 0
    unmigrated: list[str] = field(default_factory=list)


def _subordinate_limit(role: RoleData) -> int | None:
    if not role.can_manage_users:
        return 0
    return role.max_subordinates


def migration_patch(account: AdminData, role: RoleData) -> dict[str, Any]:
    patch: dict[str, Any] = {"role_id": role.id, "access_level": role.name}
    if account.created_sub_users_count is None:
        patch["created_sub_users_count"] = 0
    if account.max_sub_users_allowed is None:
        limit = _subordinate_limit(role)
        if limit is not None:
            patch["max_sub_users_allowed"] = limit
    return patch


async def migrate_admins(
    roles: RoleStore,
    admins: AdminStore,
    *,
    audit: AuditService | None = None,
) -> MigrationResult:
    audit = audit or AuditService()
    result = MigrationResult()
    role_cache: dict[str, RoleData | None] = {}

    for account in await admins.list_all():
        if account.role_id:
            result.skipped += 1
            continue

        role_name = role_name_for_access_level(account.access_level)
        if role_name is None:
            result.fail(account.id, f"unmapped access level {account.access_level!r}")
            continue

        if role_name not in role_cache:
            role_cache[role_name] = await roles.get_by_name(role_name)
        role = role_cache[role_name]
        if role is None:
            result.fail(account.id, f"role {role_name!r} not found")
            continue

        limit = _subordinate_limit(role)
        created = account.created_sub_users_count or 0
        if account.max_sub_users_allowed is None and limit is not None and created > limit:
            result.fail(
                account.id,
                f"created {created} sub-users, above the {role.name} limit of {limit}",
            )
            continue

        try:
            await admins.update(account.id, migration_patch(account, role))
        except (ConflictError, ValueError) as exc:
            result.fail(account.id, str(exc))
            continue
        result.migrated += 1
        logger.info("admin_migrated admin_id=%s role=%s", account.id, role.name)

    await audit.log_admin_action(
        actor_id="system",
        action="admins.migrate_roles",
        target_type="admin",
        target_id="*",
        payload={
            "migrated": result.migrated,
            "skipped": result.skipped,
            "errors": result.error_reasons,
        },
    )
    return result


async def verify_migration(admins: AdminStore) -> MigrationVerification:
    verification = MigrationVerification()
    for account in await admins.list_all():
        verification.total += 1
        if account.role_id:
            verification.migrated += 1
        else:
            verification.unmigrated.append(account.id)
    return verification

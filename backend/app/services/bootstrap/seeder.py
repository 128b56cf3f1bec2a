"""
Idempotent seeding of the system role catalog.

Each catalog role is written independently through the store's
create-if-absent write, so a partially failed run can simply be repeated.
Custom roles are never read or written here.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ...admin.services.audit_service import AuditService
from ...auth.rbac_contract import SYSTEM_ROLE_CATALOG, SystemRoleSpec
from ...domain.ports.rbac_store import RoleStore
from ...errors import DuplicateRoleNameError

logger = logging.getLogger("quicklink.bootstrap")


@dataclass
class SeedResult:
    created: int = 0
    skipped: int = 0
    created_names: list[str] = field(default_factory=list)
    skipped_names: list[str] = field(default_factory=list)


@dataclass
class RoleVerification:
    present: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    # name -> (expected level, stored level)
    unexpected_levels: dict[str, tuple[int, int]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.missing and not self.unexpected_levels


async def seed_roles(
    roles: RoleStore,
    *,
    catalog: tuple[SystemRoleSpec, ...] = SYSTEM_ROLE_CATALOG,
    audit: AuditService | None = None,
) -> SeedResult:
    """Create every catalog role that does not exist yet."""
    audit = audit or AuditService()
    result = SeedResult()

    for spec in catalog:
        if await roles.get_by_name(spec.name) is not None:
            result.skipped += 1
            result.skipped_names.append(spec.name)
            logger.info("role_seed_skipped name=%s reason=exists", spec.name)
            continue

        try:
            role = await roles.create(**spec.as_create_kwargs(), created_by="system")
        except DuplicateRoleNameError:
            # Another writer created it between the read and the write.
            result.skipped += 1
            result.skipped_names.append(spec.name)
            logger.info("role_seed_skipped name=%s reason=concurrent_create", spec.name)
            continue

        result.created += 1
        result.created_names.append(spec.name)
        logger.info("role_seed_created name=%s level=%s id=%s", spec.name, spec.level, role.id)

    await audit.log_admin_action(
        actor_id="system",
        action="roles.seed",
        target_type="role",
        target_id="*",
        payload={"created": result.created_names, "skipped": result.skipped_names},
    )
    return result


async def verify_roles(
    roles: RoleStore,
    *,
    catalog: tuple[SystemRoleSpec, ...] = SYSTEM_ROLE_CATALOG,
) -> RoleVerification:
    verification = RoleVerification()
    for spec in catalog:
        role = await roles.get_by_name(spec.name)
        if role is None:
            verification.missing.append(spec.name)
            continue
        verification.present.append(spec.name)
        if role.level != spec.level:
            verification.unexpected_levels[spec.name] = (spec.level, role.level)

    if not verification.ok:
        logger.warning(
            "role_verification_failed missing=%s unexpected_levels=%s",
            verification.missing,
            verification.unexpected_levels,
        )
    return verification

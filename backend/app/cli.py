"""QuickLink Pay admin operator CLI (quicklink-admin)."""
from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, TypeVar

import typer

from .auth.rbac_contract import SYSTEM_ROLE_CATALOG
from .domain.ports.rbac_store import AdminStore, RoleStore
from .errors import StoreUnavailableError, ValidationError
from .services.bootstrap.migrator import migrate_admins, verify_migration
from .services.bootstrap.seeder import seed_roles, verify_roles

T = TypeVar("T")

app = typer.Typer(name="quicklink-admin", help="QuickLink Pay admin RBAC operator commands")


@asynccontextmanager
async def open_stores() -> AsyncIterator[tuple[RoleStore, AdminStore]]:
    from .crud.admin import AdminRepository
    from .crud.role import RoleRepository
    from .database import AsyncSessionLocal

    async with AsyncSessionLocal() as session:
        yield RoleRepository(session), AdminRepository(session)


def _run(coro: Awaitable[T]) -> T:
    try:
        return asyncio.run(coro)  # type: ignore[arg-type]
    except StoreUnavailableError as exc:
        typer.echo(f"Store unavailable: {exc.message}", err=True)
        raise typer.Exit(code=2) from exc


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command("init-db")
def init_db(
    revision: str = typer.Option("head", "--revision", help="Alembic revision to upgrade to"),
):
    """Run the Alembic migrations for the roles and admins tables."""
    from .database import upgrade_schema

    try:
        upgrade_schema(revision)
    except StoreUnavailableError as exc:
        typer.echo(f"Store unavailable: {exc.message}", err=True)
        raise typer.Exit(code=2) from exc
    typer.echo(f"Schema at {revision}")


@app.command("seed-roles")
def seed_roles_command():
    """Create the 9 system roles; existing roles are left untouched."""

    async def run():
        async with open_stores() as (roles, _):
            return await seed_roles(roles)

    result = _run(run())
    for name in result.created_names:
        typer.echo(f"created  {name}")
    for name in result.skipped_names:
        typer.echo(f"skipped  {name}")
    typer.echo(f"Created {result.created}, skipped {result.skipped}")


@app.command("verify-roles")
def verify_roles_command():
    """Check that every system role exists with its catalog level."""

    async def run():
        async with open_stores() as (roles, _):
            return await verify_roles(roles)

    verification = _run(run())
    typer.echo(f"Present: {len(verification.present)}/{len(SYSTEM_ROLE_CATALOG)}")
    for name in verification.missing:
        typer.echo(f"missing  {name}")
    for name, (expected, stored) in verification.unexpected_levels.items():
        typer.echo(f"level    {name}: expected {expected}, found {stored}")
    if not verification.ok:
        raise typer.Exit(code=1)


@app.command("migrate-admins")
def migrate_admins_command():
    """Backfill role_id from the legacy access level on every admin account."""

    async def run():
        async with open_stores() as (roles, admins):
            return await migrate_admins(roles, admins)

    result = _run(run())
    typer.echo(f"Migrated {result.migrated}, skipped {result.skipped}, errors {len(result.errors)}")
    for admin_id in result.errors:
        typer.echo(f"error    {admin_id}: {result.error_reasons[admin_id]}")
    if result.errors:
        raise typer.Exit(code=1)


@app.command("verify-migration")
def verify_migration_command():
    """Report admin accounts that still lack a role_id."""

    async def run():
        async with open_stores() as (_, admins):
            return await verify_migration(admins)

    verification = _run(run())
    typer.echo(f"Migrated {verification.migrated}/{verification.total}")
    for admin_id in verification.unmigrated:
        typer.echo(f"unmigrated  {admin_id}")
    if verification.unmigrated:
        raise typer.Exit(code=1)


@app.command("purge-custom-roles")
def purge_custom_roles_command(
    confirm: bool = typer.Option(False, "--confirm", help="Required: actually delete"),
):
    """Delete every custom role no admin account references (DANGER)."""
    from .services.admin.permission_service import PermissionService
    from .services.admin.role_service import RoleService

    async def run():
        async with open_stores() as (roles, admins):
            service = RoleService(roles, admins, PermissionService(roles, admins))
            return await service.purge_custom_roles(confirm=confirm)

    try:
        result = _run(run())
    except ValidationError as exc:
        typer.echo(f"{exc.message}. Re-run with --confirm.", err=True)
        raise typer.Exit(code=1) from exc

    for name in result.deleted:
        typer.echo(f"deleted  {name}")
    for name in result.kept_in_use:
        typer.echo(f"kept     {name} (in use)")
    typer.echo(f"Deleted {len(result.deleted)}, kept {len(result.kept_in_use)}")


def role_matrix() -> dict[str, Any]:
    return {
        spec.name: {
            "level": spec.level,
            "permissions": sorted(spec.permissions),
            "can_manage_users": spec.can_manage_users,
            "max_subordinates": spec.max_subordinates,
        }
        for spec in SYSTEM_ROLE_CATALOG
    }


@app.command("export-matrix")
def export_matrix(
    output: Path | None = typer.Option(None, "--output", "-o", help="Write to a file instead of stdout"),
):
    """Emit the system role -> permission matrix as JSON."""
    document = json.dumps(role_matrix(), indent=2, sort_keys=True)
    if output is None:
        typer.echo(document)
        return
    output.write_text(document + "\n", encoding="utf-8")
    typer.echo(f"Wrote {output}")


if __name__ == "__main__":
    app()

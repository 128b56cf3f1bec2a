import json
from contextlib import asynccontextmanager

import pytest
from typer.testing import CliRunner

from app import cli
from app.errors import StoreUnavailableError

runner = CliRunner()


@pytest.fixture
def stores(monkeypatch, role_store, admin_store):
    @asynccontextmanager
    async def fake_open_stores():
        yield role_store, admin_store

    monkeypatch.setattr(cli, "open_stores", fake_open_stores)
    return role_store, admin_store


def test_seed_roles_twice(stores) -> None:
    first = runner.invoke(cli.app, ["seed-roles"])
    second = runner.invoke(cli.app, ["seed-roles"])

    assert first.exit_code == 0
    assert "Created 9, skipped 0" in first.output
    assert second.exit_code == 0
    assert "Created 0, skipped 9" in second.output


def test_verify_roles_exit_code(stores) -> None:
    missing = runner.invoke(cli.app, ["verify-roles"])
    assert missing.exit_code == 1
    assert "missing  super_admin" in missing.output

    runner.invoke(cli.app, ["seed-roles"])
    ok = runner.invoke(cli.app, ["verify-roles"])
    assert ok.exit_code == 0
    assert "Present: 9/9" in ok.output


def test_migrate_and_verify(stores) -> None:
    role_store, admin_store = stores
    role_store.add_catalog()
    admin_store.add("a1", access_level="system_admin")
    admin_store.add("a2", access_level="nobody")

    migrated = runner.invoke(cli.app, ["migrate-admins"])
    assert migrated.exit_code == 1
    assert "Migrated 1, skipped 0, errors 1" in migrated.output
    assert "a2: unmapped access level 'nobody'" in migrated.output

    verified = runner.invoke(cli.app, ["verify-migration"])
    assert verified.exit_code == 1
    assert "Migrated 1/2" in verified.output
    assert "unmigrated  a2" in verified.output


def test_purge_requires_confirm(stores) -> None:
    role_store, admin_store = stores
    role_store.add_catalog()
    role_store.add(name="night_shift", display_name="Night", level=75, permissions=[])

    refused = runner.invoke(cli.app, ["purge-custom-roles"])
    assert refused.exit_code == 1
    assert len(role_store.roles) == 10

    purged = runner.invoke(cli.app, ["purge-custom-roles", "--confirm"])
    assert purged.exit_code == 0
    assert "deleted  night_shift" in purged.output
    assert len(role_store.roles) == 9


def test_store_unavailable_exit_code(monkeypatch) -> None:
    @asynccontextmanager
    async def broken_open_stores():
        raise StoreUnavailableError(details={"operation": "connect"})
        yield  # pragma: no cover

    monkeypatch.setattr(cli, "open_stores", broken_open_stores)

    result = runner.invoke(cli.app, ["seed-roles"])

    assert result.exit_code == 2


def test_export_matrix(tmp_path) -> None:
    result = runner.invoke(cli.app, ["export-matrix"])
    assert result.exit_code == 0
    matrix = json.loads(result.output)
    assert matrix["super_admin"]["permissions"] == ["*"]
    assert matrix["viewer"]["level"] == 90

    target = tmp_path / "matrix.json"
    written = runner.invoke(cli.app, ["export-matrix", "--output", str(target)])
    assert written.exit_code == 0
    assert json.loads(target.read_text())["ops_admin"]["max_subordinates"] == 20

"""
Repository behaviour against a mocked AsyncSession: create-if-absent,
conditional counter writes and store error translation.
"""
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.crud.admin import AdminRepository
from app.crud.role import RoleRepository
from app.errors import ConflictError, DuplicateRoleNameError, StoreUnavailableError
from app.models import Admin, Role
from app.services.bootstrap.migrator import migrate_admins


def make_session() -> MagicMock:
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.refresh = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.delete = AsyncMock()
    return session


def integrity_error() -> IntegrityError:
    return IntegrityError("INSERT", {}, Exception("duplicate key"))


def result_with_rowcount(rowcount: int) -> MagicMock:
    result = MagicMock()
    result.rowcount = rowcount
    return result


class TestRoleRepository:
    @pytest.mark.anyio
    async def test_create_commits_and_refreshes(self):
        session = make_session()
        repo = RoleRepository(session)

        role = await repo.create(
            name="night_shift",
            display_name="Night Shift",
            level=75,
            permissions=["pricing.read", "analytics.read"],
        )

        assert isinstance(role, Role)
        assert role.permissions == ["analytics.read", "pricing.read"]
        session.add.assert_called_once_with(role)
        session.commit.assert_awaited_once()
        session.refresh.assert_awaited_once_with(role)

    @pytest.mark.anyio
    async def test_duplicate_name_rolls_back(self):
        session = make_session()
        session.commit.side_effect = integrity_error()
        repo = RoleRepository(session)

        with pytest.raises(DuplicateRoleNameError) as exc_info:
            await repo.create(name="viewer", display_name="Viewer", level=90, permissions=[])

        assert exc_info.value.details == {"name": "viewer"}
        session.rollback.assert_awaited_once()
        session.refresh.assert_not_awaited()

    def test_model_rejects_unknown_permissions(self):
        with pytest.raises(ValueError):
            Role(name="x", display_name="X", level=95, permissions=["pricing.approve"])

    @pytest.mark.anyio
    async def test_update_rejects_immutable_fields(self):
        repo = RoleRepository(make_session())
        with pytest.raises(ValueError, match="name"):
            await repo.update("role-1", {"name": "renamed"})

    @pytest.mark.anyio
    async def test_update_missing_role_returns_none(self):
        session = make_session()
        session.get.return_value = None

        assert await RoleRepository(session).update("role-1", {"display_name": "X"}) is None
        session.commit.assert_not_awaited()

    @pytest.mark.anyio
    async def test_operational_error_becomes_store_unavailable(self):
        session = make_session()
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))

        with pytest.raises(StoreUnavailableError) as exc_info:
            await RoleRepository(session).get_by_name("viewer")

        assert exc_info.value.status_code == 503
        assert exc_info.value.details == {"operation": "roles.get_by_name"}


class TestAdminRepository:
    @pytest.mark.anyio
    async def test_create_conflict(self):
        session = make_session()
        session.commit.side_effect = integrity_error()

        with pytest.raises(ConflictError):
            await AdminRepository(session).create(admin_id="a1", status="active")
        session.rollback.assert_awaited_once()

    @pytest.mark.anyio
    async def test_create_rejects_unknown_fields(self):
        with pytest.raises(ValueError, match="login_count"):
            await AdminRepository(make_session()).create(admin_id="a1", login_count=5)

    def test_model_rejects_wildcard_grant_and_bad_status(self):
        with pytest.raises(ValueError, match="wildcard"):
            Admin(id="a1", permissions=["*"])
        with pytest.raises(ValueError, match="Invalid status"):
            Admin(id="a1", status="deleted")

    @pytest.mark.anyio
    async def test_reserve_slot_reports_conditional_write(self):
        session = make_session()
        session.execute.return_value = result_with_rowcount(1)
        repo = AdminRepository(session)

        assert await repo.reserve_sub_user_slot("lead") is True

        session.execute.return_value = result_with_rowcount(0)
        assert await repo.reserve_sub_user_slot("lead") is False
        assert session.commit.await_count == 2

    @pytest.mark.anyio
    async def test_reserve_slot_statement_is_conditional(self):
        session = make_session()
        session.execute.return_value = result_with_rowcount(1)

        await AdminRepository(session).reserve_sub_user_slot("lead")

        statement = session.execute.await_args.args[0]
        sql = str(statement.compile(compile_kwargs={"literal_binds": True}))
        assert "max_sub_users_allowed IS NULL" in sql
        assert "coalesce(admins.created_sub_users_count" in sql
        assert "< admins.max_sub_users_allowed" in sql

    @pytest.mark.anyio
    async def test_record_login_missing_account(self):
        session = make_session()
        session.execute.return_value = result_with_rowcount(0)

        result = await AdminRepository(session).record_login("ghost", datetime.now(timezone.utc))

        assert result is None
        session.get.assert_not_awaited()

    @pytest.mark.anyio
    async def test_count_with_role(self):
        session = make_session()
        result = MagicMock()
        result.scalar_one.return_value = 3
        session.execute.return_value = result

        assert await AdminRepository(session).count_with_role("role-1") == 3

    @pytest.mark.anyio
    async def test_update_constraint_violation_becomes_conflict(self):
        session = make_session()
        session.get.return_value = Admin(id="ops", status="active", created_sub_users_count=25)
        session.commit.side_effect = integrity_error()

        with pytest.raises(ConflictError) as exc_info:
            await AdminRepository(session).update("ops", {"max_sub_users_allowed": 20})

        assert exc_info.value.details == {"admin_id": "ops", "fields": ["max_sub_users_allowed"]}
        session.rollback.assert_awaited_once()
        session.refresh.assert_not_awaited()

    @pytest.mark.anyio
    async def test_migration_continues_past_rejected_write(self, role_store):
        catalog = role_store.add_catalog()
        first = Admin(id="a_legacy", status="active", access_level="finance_admin")
        second = Admin(id="b_legacy", status="active", access_level="viewer")
        accounts = {admin.id: admin for admin in (first, second)}

        session = make_session()
        listing = MagicMock()
        listing.scalars.return_value.all.return_value = [first, second]
        session.execute.return_value = listing
        session.get.side_effect = lambda model, admin_id: accounts.get(admin_id)
        session.commit.side_effect = [integrity_error(), None]

        result = await migrate_admins(role_store, AdminRepository(session))

        assert result.errors == ["a_legacy"]
        assert result.migrated == 1
        assert second.role_id == catalog["viewer"].id
        assert second.access_level == "viewer"

    @pytest.mark.anyio
    async def test_reserve_slot_falls_back_to_role_cap(self):
        session = make_session()
        session.execute.return_value = result_with_rowcount(1)

        await AdminRepository(session).reserve_sub_user_slot("legacy_ops", 20)

        statement = session.execute.await_args.args[0]
        sql = str(statement.compile(compile_kwargs={"literal_binds": True}))
        assert "coalesce(admins.max_sub_users_allowed, 20)" in sql
        assert "IS NULL" not in sql

"""
Tests for AuditService: JSON audit lines and fire-and-forget failure handling.
"""
import json
import logging
from unittest.mock import patch

import pytest

from app.admin.services.audit_service import AuditService


@pytest.fixture
def audit_service():
    return AuditService()


class TestAuditService:
    @pytest.mark.anyio
    async def test_admin_action_is_logged_as_json(self, audit_service, caplog):
        with caplog.at_level(logging.INFO, logger="quicklink.audit"):
            await audit_service.log_admin_action(
                actor_id="root",
                action="roles.delete",
                target_type="role",
                target_id="role-1",
                payload={"name": "night_shift"},
            )

        record = next(r for r in caplog.records if r.name == "quicklink.audit")
        entry = json.loads(record.getMessage().removeprefix("AUDIT: "))
        assert entry["actor_id"] == "root"
        assert entry["action"] == "roles.delete"
        assert entry["target_id"] == "role-1"
        assert entry["payload"] == {"name": "night_shift"}
        assert record.audit_entry["target_type"] == "role"

    @pytest.mark.anyio
    async def test_access_denied_entry(self, audit_service, caplog):
        with caplog.at_level(logging.INFO, logger="quicklink.audit"):
            await audit_service.log_access_denied(
                actor_id=None,
                requirement="pricing.write",
                kind="unauthenticated",
                message="You are not signed in. Please sign in to continue.",
                request_method="GET",
                request_path="/access/me",
            )

        entry = next(r for r in caplog.records if r.name == "quicklink.audit").audit_entry
        assert entry["action"] == "access_denied"
        assert entry["actor_id"] is None
        assert entry["payload"]["request_path"] == "/access/me"

    @pytest.mark.anyio
    async def test_logging_failure_does_not_propagate(self, audit_service, caplog):
        with patch("app.admin.services.audit_service.json.dumps", side_effect=TypeError("boom")):
            with caplog.at_level(logging.ERROR, logger="quicklink.audit"):
                await audit_service.log_admin_action(
                    actor_id="root",
                    action="roles.create",
                    target_type="role",
                    target_id="role-1",
                )

        assert any("Audit logging failed" in r.getMessage() for r in caplog.records)

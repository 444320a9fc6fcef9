"""
Tests for SetupService and AccountBindingService
"""

import pytest

from app.models.setup import OrganizationMode, SetupStep
from app.services.account_binding import AccountBindingService
from app.services.setup_service import SetupService

CONNECTIONS = [
    {"id": "conn-1", "name": "Ad Account - Loja XYZ Ads", "config": {"accountId": "act_1"}},
    {"id": "conn-2", "name": "padaria do joão", "config": {"accountId": "act_2"}},
]


@pytest.fixture
def service(fake_supabase):
    return SetupService(fake_supabase)


def with_state(db, workspace=True, connection=True, clients=True, bindings=True, metrics=True):
    db.on("workspace_members", "select", [{"workspace_id": "ws-1"}] if workspace else [])
    db.on("data_connections", "select", CONNECTIONS if connection else [])
    db.on("clients", "select", [{"id": "client-1"}] if clients else [])
    db.on("client_meta_ad_accounts", "select", [{"meta_ad_account_id": "act_1"}] if bindings else [])
    db.on("ad_metrics", "select", [{"id": "m-1"}] if metrics else [])
    return db


class TestSetupProgress:
    """Tests for derived onboarding progress."""

    @pytest.mark.parametrize("state,progress,step", [
        ({"workspace": False}, 0, SetupStep.CONNECTION.value),
        ({"connection": False}, 20, SetupStep.CONNECTION.value),
        ({"clients": False}, 50, SetupStep.CLIENTS.value),
        ({"bindings": False}, 75, SetupStep.BINDINGS.value),
        ({"metrics": False}, 95, SetupStep.SYNC.value),
        ({}, 100, "complete"),
    ])
    def test_stops_at_first_missing_piece(self, service, fake_supabase, state, progress, step):
        with_state(fake_supabase, **state)

        status = service.get_setup_progress("user-1")

        assert status.progress == progress
        assert status.current_step == step
        assert status.needs_setup is (progress != 100)

    def test_complete_setup_is_persisted(self, service, fake_supabase):
        with_state(fake_supabase)

        service.get_setup_progress("user-1")

        row = fake_supabase.payloads("setup_progress", "insert")[0]
        assert row["setup_completed"] is True
        assert row["steps_completed"] == ["connection", "clients", "bindings", "sync"]

    def test_metrics_checked_across_connection_ids(self, service, fake_supabase):
        with_state(fake_supabase)

        service.get_setup_progress("user-1")

        query = fake_supabase.calls("ad_metrics", "select")[0]
        assert query.filter_value("connection_id", "in_") == ["conn-1", "conn-2"]

    def test_database_error_returns_default_status(self, service, fake_supabase):
        fake_supabase.on("workspace_members", "select", Exception("timeout"))

        status = service.get_setup_progress("user-1")

        assert status.progress == 0
        assert status.needs_setup is True


class TestNeedsSetup:
    """Tests for the setup gate."""

    def test_completed_flag_wins(self, service, fake_supabase):
        fake_supabase.on("setup_progress", "select", [{"id": "p-1", "setup_completed": True}])

        assert service.check_if_needs_setup("user-1") is False

    def test_existing_connection_skips_setup(self, service, fake_supabase):
        with_state(fake_supabase)

        assert service.check_if_needs_setup("user-1") is False

    def test_new_user_needs_setup(self, service, fake_supabase):
        with_state(fake_supabase, workspace=False)

        assert service.check_if_needs_setup("user-1") is True


class TestSetupSteps:
    """Tests for persisted step completion."""

    def test_appends_step_once(self, service, fake_supabase):
        fake_supabase.on("setup_progress", "select", [{"id": "p-1", "steps_completed": ["connection"]}])

        service.complete_setup_step("user-1", "ws-1", SetupStep.CONNECTION)
        service.complete_setup_step("user-1", "ws-1", SetupStep.CLIENTS)

        updates = fake_supabase.payloads("setup_progress", "update")
        assert updates[0]["steps_completed"] == ["connection"]
        assert updates[1]["steps_completed"] == ["connection", "clients"]

    def test_auto_configure_creates_workspace(self, service, fake_supabase):
        result = service.auto_configure_for_new_user("user-1", "maria@example.com")

        assert result["success"] is True
        assert result["workspace_id"] == "workspaces-1"
        assert fake_supabase.payloads("workspaces", "insert")[0]["name"] == "maria's Workspace"
        assert fake_supabase.payloads("workspace_members", "insert")[0]["role"] == "owner"

    def test_auto_configure_reuses_workspace(self, service, fake_supabase):
        fake_supabase.on("workspace_members", "select", [{"workspace_id": "ws-9"}])

        result = service.auto_configure_for_new_user("user-1", "maria@example.com")

        assert result["workspace_id"] == "ws-9"
        assert fake_supabase.calls("workspaces", "insert") == []


class TestOrganizeClients:
    """Tests for client creation modes."""

    def test_per_account_creates_one_client_each(self, service, fake_supabase):
        with_state(fake_supabase, clients=False, bindings=False)

        response = service.organize_clients("user-1", "ws-1", OrganizationMode.PER_ACCOUNT)

        names = [row["name"] for row in fake_supabase.payloads("clients", "insert")]
        assert names == ["Loja XYZ", "Padaria do João"]
        assert response.binding.bound_count == 2

        steps = [row["steps_completed"] for row in fake_supabase.payloads("setup_progress", "insert")]
        assert ["clients"] in steps and ["bindings"] in steps

    def test_single_client_groups_all_accounts(self, service, fake_supabase):
        with_state(fake_supabase, clients=False, bindings=False)
        fake_supabase.on("workspaces", "select", [{"name": "Acme Workspace"}])

        response = service.organize_clients("user-1", "ws-1", OrganizationMode.SINGLE_CLIENT)

        assert [row["name"] for row in fake_supabase.payloads("clients", "insert")] == ["Acme"]
        bound = [row["meta_ad_account_id"] for row in fake_supabase.payloads("client_meta_ad_accounts", "insert")]
        assert bound == ["act_1", "act_2"]
        assert len(response.clients) == 1


class TestAccountBinding:
    """Tests for AccountBindingService."""

    def test_unbound_accounts_exclude_bound(self, fake_supabase):
        with_state(fake_supabase)

        unbound = AccountBindingService(fake_supabase).get_unbound_accounts("ws-1")

        assert unbound == [{"id": "act_2", "name": "padaria do joão"}]

    def test_auto_bind_requires_single_client(self, fake_supabase):
        with_state(fake_supabase, bindings=False)
        fake_supabase.on("clients", "select", [{"id": "a"}, {"id": "b"}])

        result = AccountBindingService(fake_supabase).auto_bind_if_possible("ws-1")

        assert result.success is False
        assert "manual" in result.error

    def test_auto_bind_with_one_client(self, fake_supabase):
        with_state(fake_supabase, bindings=False)

        result = AccountBindingService(fake_supabase).auto_bind_if_possible("ws-1")

        assert result.success is True
        assert result.bound_count == 2

    def test_failed_binding_lowers_count(self, fake_supabase):
        with_state(fake_supabase, bindings=False)
        fake_supabase.on("client_meta_ad_accounts", "insert", Exception("duplicate key"))

        result = AccountBindingService(fake_supabase).auto_bind_if_possible("ws-1")

        assert result.success is True
        assert result.bound_count == 0

    def test_binding_stats(self, fake_supabase):
        with_state(fake_supabase)

        stats = AccountBindingService(fake_supabase).get_binding_stats("ws-1")

        assert stats == {"total_accounts": 2, "bound_accounts": 1, "unbound_accounts": 1, "total_clients": 1}

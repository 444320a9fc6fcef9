"""
Setup Service
Linear onboarding: connect -> organize clients -> bind accounts -> first sync

State is derived from what exists in the database; setup_progress only
records completed steps and the final completion flag.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from supabase import Client

from app.core.logging import logger, log_error
from app.models.setup import (
    AccountBinding,
    CreateClientsResponse,
    OrganizationMode,
    SetupStatus,
    SetupStep,
)
from app.services.account_binding import AccountBindingService
from app.services.client_names import ClientNameService

ALL_STEPS = [step.value for step in SetupStep]


class SetupService:
    """Onboarding state and auto-configuration for new users"""

    def __init__(self, supabase: Client):
        """
        Args:
            supabase: Supabase admin client
        """
        self.supabase = supabase
        self.binding = AccountBindingService(supabase)
        self.names = ClientNameService(supabase)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _get_workspace_id(self, user_id: str) -> Optional[str]:
        result = self.supabase.table("workspace_members")\
            .select("workspace_id")\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        rows = result.data or []
        return rows[0]["workspace_id"] if rows else None

    def _connection_ids(self, workspace_id: str) -> List[str]:
        result = self.supabase.table("data_connections")\
            .select("id")\
            .eq("workspace_id", workspace_id)\
            .eq("platform", "meta")\
            .execute()
        return [row["id"] for row in result.data or []]

    def _has_rows(self, table: str, workspace_id: str) -> bool:
        result = self.supabase.table(table)\
            .select("id")\
            .eq("workspace_id", workspace_id)\
            .limit(1)\
            .execute()
        return bool(result.data)

    def _has_metrics(self, connection_ids: List[str]) -> bool:
        result = self.supabase.table("ad_metrics")\
            .select("id")\
            .in_("connection_id", connection_ids)\
            .limit(1)\
            .execute()
        return bool(result.data)

    def _get_progress_row(self, user_id: str, workspace_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        query = self.supabase.table("setup_progress").select("*").eq("user_id", user_id)
        if workspace_id:
            query = query.eq("workspace_id", workspace_id)
        result = query.limit(1).execute()
        rows = result.data or []
        return rows[0] if rows else None

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def check_if_needs_setup(self, user_id: str) -> bool:
        """True unless setup was completed or a Meta connection already exists"""
        try:
            progress = self._get_progress_row(user_id)
            if progress and progress.get("setup_completed"):
                return False

            workspace_id = self._get_workspace_id(user_id)
            if not workspace_id:
                return True

            return not self._connection_ids(workspace_id)

        except Exception as e:
            log_error(e, context="[SETUP] check_if_needs_setup failed", user_id=user_id)
            return True

    def get_setup_progress(self, user_id: str) -> SetupStatus:
        """
        Walk the onboarding checks in order and stop at the first missing piece.

        Progress values: 0 no workspace, 20 no connection, 50 no clients,
        75 no bindings, 95 no synced metrics, 100 complete.
        """
        status = SetupStatus()

        try:
            workspace_id = self._get_workspace_id(user_id)
            if not workspace_id:
                status.current_step = SetupStep.CONNECTION.value
                return status

            status.has_workspace = True
            status.workspace_id = workspace_id
            status.progress = 20

            connection_ids = self._connection_ids(workspace_id)
            if not connection_ids:
                status.current_step = SetupStep.CONNECTION.value
                return status

            status.has_connection = True
            status.progress = 40

            status.has_accounts = self._has_rows("client_meta_ad_accounts", workspace_id)
            status.has_clients = self._has_rows("clients", workspace_id)

            if not status.has_clients:
                status.current_step = SetupStep.CLIENTS.value
                status.progress = 50
                return status

            status.progress = 70

            if not status.has_accounts:
                status.current_step = SetupStep.BINDINGS.value
                status.progress = 75
                return status

            status.has_bindings = True
            status.progress = 90

            if not self._has_metrics(connection_ids):
                status.current_step = SetupStep.SYNC.value
                status.progress = 95
                return status

            status.needs_setup = False
            status.current_step = "complete"
            status.progress = 100

            self.mark_setup_as_complete(user_id, workspace_id)
            return status

        except Exception as e:
            log_error(e, context="[SETUP] get_setup_progress failed", user_id=user_id)
            return SetupStatus()

    def resume_setup(self, user_id: str) -> Optional[str]:
        return self.get_setup_progress(user_id).current_step

    # ------------------------------------------------------------------
    # Persisted progress
    # ------------------------------------------------------------------

    def complete_setup_step(self, user_id: str, workspace_id: str, step: SetupStep) -> None:
        existing = self._get_progress_row(user_id, workspace_id)
        step_value = SetupStep(step).value

        if existing:
            steps = list(existing.get("steps_completed") or [])
            if step_value not in steps:
                steps.append(step_value)

            self.supabase.table("setup_progress")\
                .update({"steps_completed": steps})\
                .eq("id", existing["id"])\
                .execute()
        else:
            self.supabase.table("setup_progress").insert({
                "user_id": user_id,
                "workspace_id": workspace_id,
                "steps_completed": [step_value],
            }).execute()

        logger.info(f"[SETUP] Step '{step_value}' completed for user {user_id}")

    def mark_setup_as_complete(self, user_id: str, workspace_id: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        existing = self._get_progress_row(user_id, workspace_id)

        if existing:
            self.supabase.table("setup_progress")\
                .update({"setup_completed": True, "completed_at": now})\
                .eq("id", existing["id"])\
                .execute()
        else:
            self.supabase.table("setup_progress").insert({
                "user_id": user_id,
                "workspace_id": workspace_id,
                "steps_completed": ALL_STEPS,
                "setup_completed": True,
                "completed_at": now,
            }).execute()

        logger.info(f"[SETUP] Setup complete for user {user_id}")

    # ------------------------------------------------------------------
    # Workspace and clients
    # ------------------------------------------------------------------

    def create_workspace_for_user(self, user_id: str, email: str) -> str:
        """Existing workspace id, or a new "<local part>'s Workspace" owned by the user"""
        existing = self._get_workspace_id(user_id)
        if existing:
            return existing

        workspace = self.supabase.table("workspaces").insert({
            "name": f"{email.split('@')[0]}'s Workspace",
            "owner_id": user_id,
        }).execute()
        workspace_id = workspace.data[0]["id"]

        self.supabase.table("workspace_members").insert({
            "workspace_id": workspace_id,
            "user_id": user_id,
            "role": "owner",
        }).execute()

        logger.info(f"[SETUP] Created workspace {workspace_id} for user {user_id}")
        return workspace_id

    def auto_configure_for_new_user(self, user_id: str, email: str) -> Dict[str, Any]:
        try:
            workspace_id = self.create_workspace_for_user(user_id, email)
            self.complete_setup_step(user_id, workspace_id, SetupStep.CONNECTION)
            return {"success": True, "workspace_id": workspace_id, "error": None}
        except Exception as e:
            log_error(e, context="[SETUP] Auto-configure failed", user_id=user_id)
            return {"success": False, "workspace_id": None, "error": str(e)}

    def _insert_client(self, workspace_id: str, user_id: str, name: str) -> Dict[str, Any]:
        result = self.supabase.table("clients").insert({
            "workspace_id": workspace_id,
            "user_id": user_id,
            "name": name,
        }).execute()
        return result.data[0]

    def create_client_for_each_account(self, user_id: str, workspace_id: str) -> CreateClientsResponse:
        """per_account mode: one client per connected ad account, bound 1:1"""
        accounts = self.binding.get_unbound_accounts(workspace_id)
        clients = []
        bindings = []

        for account in accounts:
            name = self.names.generate_unique_client_name(account["name"], workspace_id)
            client = self._insert_client(workspace_id, user_id, name)
            clients.append(client)
            bindings.append(AccountBinding(client_id=client["id"], account_ids=[account["id"]]))

        result = self.binding.bind_accounts_to_clients(bindings, workspace_id)
        return CreateClientsResponse(success=True, clients=clients, binding=result)

    def create_single_client_for_accounts(
        self,
        user_id: str,
        workspace_id: str,
        email: Optional[str] = None,
    ) -> CreateClientsResponse:
        """single_client mode: one client grouping every connected ad account"""
        accounts = self.binding.get_unbound_accounts(workspace_id)
        name = self.names.generate_grouped_client_name(workspace_id, email)
        client = self._insert_client(workspace_id, user_id, name)

        result = self.binding.bind_accounts_to_clients(
            [AccountBinding(client_id=client["id"], account_ids=[a["id"] for a in accounts])],
            workspace_id,
        )
        return CreateClientsResponse(success=True, clients=[client], binding=result)

    def organize_clients(
        self,
        user_id: str,
        workspace_id: str,
        mode: OrganizationMode,
        email: Optional[str] = None,
    ) -> CreateClientsResponse:
        if OrganizationMode(mode) == OrganizationMode.PER_ACCOUNT:
            response = self.create_client_for_each_account(user_id, workspace_id)
        else:
            response = self.create_single_client_for_accounts(user_id, workspace_id, email)

        self.complete_setup_step(user_id, workspace_id, SetupStep.CLIENTS)
        self.complete_setup_step(user_id, workspace_id, SetupStep.BINDINGS)
        return response


# Global setup service instance
_setup_service: Optional[SetupService] = None


def get_setup_service(supabase: Client) -> SetupService:
    """Get or create global setup service instance"""
    global _setup_service

    if _setup_service is None or _setup_service.supabase is not supabase:
        _setup_service = SetupService(supabase)

    return _setup_service

"""
Account binding
Links Meta ad accounts (from data_connections) to client records
through client_meta_ad_accounts
"""

from typing import Any, Dict, List

from supabase import Client

from app.core.logging import logger, log_error
from app.models.setup import AccountBinding, BindingResult


class AccountBindingService:
    """Bind ad accounts to clients within one workspace"""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_workspace_accounts(self, workspace_id: str) -> List[Dict[str, str]]:
        """Meta ad accounts connected to the workspace, as {"id", "name"}"""
        result = self.supabase.table("data_connections")\
            .select("id, name, config")\
            .eq("workspace_id", workspace_id)\
            .eq("platform", "meta")\
            .execute()

        accounts = []
        for row in result.data or []:
            account_id = (row.get("config") or {}).get("accountId")
            if account_id:
                accounts.append({"id": account_id, "name": row.get("name") or account_id})
        return accounts

    def get_unbound_accounts(self, workspace_id: str) -> List[Dict[str, str]]:
        accounts = self.get_workspace_accounts(workspace_id)
        if not accounts:
            return []

        bound = self.supabase.table("client_meta_ad_accounts")\
            .select("meta_ad_account_id")\
            .eq("workspace_id", workspace_id)\
            .execute()

        bound_ids = {row["meta_ad_account_id"] for row in bound.data or []}
        return [account for account in accounts if account["id"] not in bound_ids]

    def get_clients(self, workspace_id: str) -> List[Dict[str, Any]]:
        result = self.supabase.table("clients")\
            .select("id, name, workspace_id")\
            .eq("workspace_id", workspace_id)\
            .order("name")\
            .execute()
        return result.data or []

    def bind_account_to_client(self, client_id: str, account_id: str, workspace_id: str) -> bool:
        try:
            self.supabase.table("client_meta_ad_accounts").insert({
                "client_id": client_id,
                "meta_ad_account_id": account_id,
                "workspace_id": workspace_id,
            }).execute()
            return True
        except Exception as e:
            logger.warning(f"[SETUP] Failed to bind {account_id} to client {client_id}: {e}")
            return False

    def bind_accounts_to_clients(self, bindings: List[AccountBinding], workspace_id: str) -> BindingResult:
        """Insert every binding; individual failures only lower bound_count"""
        bound_count = 0
        for binding in bindings:
            for account_id in binding.account_ids:
                if self.bind_account_to_client(binding.client_id, account_id, workspace_id):
                    bound_count += 1

        logger.info(f"[SETUP] Bound {bound_count} account(s) in workspace {workspace_id}")
        return BindingResult(success=True, bound_count=bound_count)

    def auto_bind_if_possible(self, workspace_id: str) -> BindingResult:
        """
        Bind all unbound accounts when the workspace has exactly one client.
        With several clients the user must choose.
        """
        try:
            clients = self.get_clients(workspace_id)
            unbound = self.get_unbound_accounts(workspace_id)

            if not unbound:
                return BindingResult(success=True, bound_count=0)

            if not clients:
                return BindingResult(success=False, error="No clients available")

            if len(clients) == 1:
                return self.bind_accounts_to_clients(
                    [AccountBinding(client_id=clients[0]["id"], account_ids=[a["id"] for a in unbound])],
                    workspace_id,
                )

            return BindingResult(success=False, error="Multiple clients available - manual binding required")

        except Exception as e:
            log_error(e, context="[SETUP] Auto-bind failed", workspace_id=workspace_id)
            return BindingResult(success=False, error=str(e))

    def get_binding_stats(self, workspace_id: str) -> Dict[str, int]:
        total_accounts = len(self.get_workspace_accounts(workspace_id))

        bound = self.supabase.table("client_meta_ad_accounts")\
            .select("meta_ad_account_id")\
            .eq("workspace_id", workspace_id)\
            .execute()
        bound_count = len(bound.data or [])

        return {
            "total_accounts": total_accounts,
            "bound_accounts": bound_count,
            "unbound_accounts": total_accounts - bound_count,
            "total_clients": len(self.get_clients(workspace_id)),
        }

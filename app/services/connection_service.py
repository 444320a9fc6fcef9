"""
Connection Service
OAuth handshakes for Meta and Google Ads, connection listing and disconnect

OAuth state nonces live in the oauth_states table for 10 minutes.
"""

import secrets
from typing import Any, Dict, List, Optional
from datetime import datetime, timedelta, timezone

from supabase import Client

from app.connectors.google_ads_client import GoogleAdsClient
from app.connectors.meta_graph_client import MetaGraphClient, get_meta_graph_client
from app.core.config import settings
from app.core.logging import logger
from app.services.token_manager import TokenManager
from app.utils.errors import AdsOpsError, NoAccountsFoundError

STATE_TTL = timedelta(minutes=10)

# Child tables cleared on disconnect, leaf first
CONNECTION_CHILD_TABLES = ("ad_metrics", "ads", "ad_sets", "campaigns")


class InvalidOAuthState(AdsOpsError):
    code = "integration/oauth-error"


class ConnectionService:
    """Creates and removes ad platform connections"""

    def __init__(
        self,
        supabase: Client,
        graph_client: Optional[MetaGraphClient] = None,
        google_client: Optional[GoogleAdsClient] = None,
    ):
        self.supabase = supabase
        self.graph = graph_client or get_meta_graph_client()
        self.google = google_client or GoogleAdsClient(
            settings.GOOGLE_ADS_DEVELOPER_TOKEN, settings.GOOGLE_ADS_LOGIN_CUSTOMER_ID
        )

    # ------------------------------------------------------------------
    # OAuth state
    # ------------------------------------------------------------------

    def create_state(self, platform: str, user_id: str, workspace_id: str) -> str:
        state = secrets.token_urlsafe(32)
        self.supabase.table("oauth_states").insert({
            "state": state,
            "platform": platform,
            "user_id": user_id,
            "workspace_id": workspace_id,
            "expires_at": (datetime.now(timezone.utc) + STATE_TTL).isoformat(),
        }).execute()
        return state

    def consume_state(self, platform: str, state: str) -> Dict[str, Any]:
        """
        Validate and delete a state nonce.

        Raises:
            InvalidOAuthState: unknown, reused or expired state
        """
        result = self.supabase.table("oauth_states")\
            .select("*")\
            .eq("state", state)\
            .eq("platform", platform)\
            .limit(1)\
            .execute()

        rows = result.data or []
        if not rows:
            raise InvalidOAuthState("Invalid OAuth state")

        row = rows[0]
        self.supabase.table("oauth_states").delete().eq("state", state).execute()

        expires_at = datetime.fromisoformat(row["expires_at"].replace("Z", "+00:00"))
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at < datetime.now(timezone.utc):
            raise InvalidOAuthState("OAuth state expired")

        return row

    def meta_authorization_url(self, user_id: str, workspace_id: str) -> Dict[str, str]:
        state = self.create_state("meta", user_id, workspace_id)
        return {"authorization_url": self.graph.authorization_url(state), "state": state}

    def google_authorization_url(self, user_id: str, workspace_id: str) -> Dict[str, str]:
        state = self.create_state("google", user_id, workspace_id)
        return {"authorization_url": self.google.authorization_url(state), "state": state}

    # ------------------------------------------------------------------
    # Meta
    # ------------------------------------------------------------------

    def complete_meta_oauth(self, code: str, state: str) -> List[Dict[str, Any]]:
        """
        Finish the Meta OAuth flow and create one data connection per ad account.

        Returns:
            The created or updated data_connections rows

        Raises:
            NoAccountsFoundError: the user has no ad accounts
        """
        context = self.consume_state("meta", state)
        user_id, workspace_id = context["user_id"], context["workspace_id"]

        short_lived = self.graph.exchange_code(code)
        long_lived = self.graph.exchange_long_lived_token(short_lived["access_token"])
        access_token = long_lived["access_token"]
        expires_in = long_lived.get("expires_in")

        accounts = self.graph.list_ad_accounts(access_token)
        if not accounts:
            logger.warning(f"[META_ADS] No ad accounts found for user {user_id}")
            raise NoAccountsFoundError()

        tokens = TokenManager(self.supabase, "meta")
        connections = []

        for account in accounts:
            connection = self._upsert_meta_connection(user_id, workspace_id, account)
            tokens.save_token(connection["id"], user_id, access_token, account["id"], expires_in)
            connections.append(connection)

        logger.info(f"[META_ADS] Connected {len(connections)} ad account(s) for workspace {workspace_id}")
        return connections

    def _upsert_meta_connection(self, user_id: str, workspace_id: str, account: Dict[str, Any]) -> Dict[str, Any]:
        data = {
            "user_id": user_id,
            "workspace_id": workspace_id,
            "platform": "meta",
            "name": account.get("name") or account["id"],
            "status": "connected",
            "config": {
                "accountId": account["id"],
                "currency": account.get("currency"),
                "timezone": account.get("timezone_name"),
            },
        }

        existing = self.supabase.table("data_connections")\
            .select("id")\
            .eq("workspace_id", workspace_id)\
            .eq("platform", "meta")\
            .eq("config->>accountId", account["id"])\
            .limit(1)\
            .execute()

        if existing.data:
            result = self.supabase.table("data_connections")\
                .update(data)\
                .eq("id", existing.data[0]["id"])\
                .execute()
        else:
            result = self.supabase.table("data_connections").insert(data).execute()

        return result.data[0]

    # ------------------------------------------------------------------
    # Google
    # ------------------------------------------------------------------

    def complete_google_oauth(self, code: str, state: str) -> List[Dict[str, Any]]:
        """
        Finish the Google OAuth flow and register accessible customers.

        Returns:
            google_ad_accounts rows

        Raises:
            NoAccountsFoundError: the user can access no Google Ads customer
        """
        context = self.consume_state("google", state)
        user_id, workspace_id = context["user_id"], context["workspace_id"]

        tokens_response = self.google.exchange_code(code)
        access_token = tokens_response["access_token"]

        customer_ids = self.google.list_accessible_customers(access_token)
        if not customer_ids:
            logger.warning(f"[GOOGLE_ADS] No customers found for user {user_id}")
            raise NoAccountsFoundError()

        connection = self.supabase.table("google_connections").upsert({
            "workspace_id": workspace_id,
            "user_id": user_id,
            "developer_token": self.google.developer_token,
            "login_customer_id": self.google.login_customer_id,
            "status": "connected",
        }, on_conflict="workspace_id").execute().data[0]

        TokenManager(self.supabase, "google").save_token(
            connection["id"],
            user_id,
            access_token,
            None,
            tokens_response.get("expires_in"),
            tokens_response.get("refresh_token"),
            tokens_response.get("scope"),
        )

        accounts = []
        for customer_id in customer_ids:
            customer = self.google.get_customer(access_token, customer_id)
            result = self.supabase.table("google_ad_accounts").upsert({
                "workspace_id": workspace_id,
                "connection_id": connection["id"],
                "customer_id": customer["customer_id"],
                "name": customer["name"],
                "currency_code": customer["currency_code"],
                "timezone": customer["timezone"],
                "is_manager": customer["is_manager"],
                "is_selected": not customer["is_manager"],
            }, on_conflict="workspace_id,customer_id").execute()
            accounts.extend(result.data or [])

        logger.info(f"[GOOGLE_ADS] Registered {len(accounts)} customer(s) for workspace {workspace_id}")
        return accounts

    # ------------------------------------------------------------------
    # Listing and disconnect
    # ------------------------------------------------------------------

    def list_connections(self, workspace_id: str) -> List[Dict[str, Any]]:
        result = self.supabase.table("data_connections")\
            .select("id, name, platform, status, last_sync, config, created_at")\
            .eq("workspace_id", workspace_id)\
            .order("created_at")\
            .execute()
        return result.data or []

    def disconnect(self, connection_id: str) -> None:
        """Delete the connection, its token and every entity synced through it"""
        TokenManager(self.supabase, "meta").delete_token(connection_id)

        for table in CONNECTION_CHILD_TABLES:
            self.supabase.table(table).delete().eq("connection_id", connection_id).execute()

        self.supabase.table("data_connections").delete().eq("id", connection_id).execute()
        logger.info(f"[CONNECTIONS] Connection {connection_id} disconnected and data removed")

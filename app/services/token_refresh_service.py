"""
Token Refresh Service
Tracks Meta long-lived token expiry and renews it before it lapses

Meta long-lived tokens last ~60 days and are renewed by exchanging the
current token (fb_exchange_token). Error code 190 means the token is dead
and the user has to reconnect.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime, timedelta, timezone

from supabase import Client

from app.connectors.meta_graph_client import MetaGraphClient, get_meta_graph_client
from app.core.logging import logger, log_error
from app.models.integration import TokenStatusInfo
from app.services.token_manager import TokenManager
from app.utils.errors import MetaApiError

EXPIRY_WARNING_DAYS = 7
ASSUMED_TOKEN_LIFETIME = timedelta(days=60)
DEFAULT_EXPIRES_IN = 5183944  # ~60 days, Meta's default
PERMANENT_ERROR_CODES = (190,)


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def classify_expiry(expires_at: Optional[datetime], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Returns:
        {"status": valid|expiring_soon|expired|unknown, "days_remaining": Optional[int]}
    """
    if expires_at is None:
        return {"status": "unknown", "days_remaining": None}

    now = now or datetime.now(timezone.utc)
    remaining = expires_at - now
    days_remaining = remaining.days  # floors, like whole days left

    if remaining.total_seconds() <= 0:
        status = "expired"
    elif days_remaining <= EXPIRY_WARNING_DAYS:
        status = "expiring_soon"
    else:
        status = "valid"

    return {"status": status, "days_remaining": days_remaining}


class TokenRefreshService:
    """
    Meta token expiry status and renewal for a workspace.

    One consent stores the same long-lived token on every ad-account
    connection it created, so a renewal is written to each of them.
    """

    def __init__(self, supabase: Client, graph_client: Optional[MetaGraphClient] = None):
        self.supabase = supabase
        self.graph = graph_client or get_meta_graph_client()
        self.tokens = TokenManager(supabase, "meta")

    def _get_connections(self, workspace_id: str) -> List[Dict[str, Any]]:
        result = self.supabase.table("data_connections")\
            .select("id, status, updated_at")\
            .eq("workspace_id", workspace_id)\
            .eq("platform", "meta")\
            .order("created_at")\
            .execute()
        return result.data or []

    def _get_connection(self, workspace_id: str) -> Optional[Dict[str, Any]]:
        connections = self._get_connections(workspace_id)
        return connections[0] if connections else None

    def _get_expires_at(self, connection_id: str) -> Optional[str]:
        result = self.supabase.table("oauth_tokens")\
            .select("expires_at")\
            .eq("connection_id", connection_id)\
            .limit(1)\
            .execute()
        rows = result.data or []
        return rows[0].get("expires_at") if rows else None

    def get_token_expiry_status(self, workspace_id: str) -> TokenStatusInfo:
        """
        Expiry status of the workspace's Meta token.

        Falls back to updated_at + 60 days when the expiry is unknown.
        """
        try:
            connection = self._get_connection(workspace_id)
            if not connection:
                return TokenStatusInfo()

            expires_at = _parse_ts(self._get_expires_at(connection["id"]))
            if expires_at is None:
                updated_at = _parse_ts(connection.get("updated_at"))
                expires_at = updated_at + ASSUMED_TOKEN_LIFETIME if updated_at else None

            info = classify_expiry(expires_at)
            return TokenStatusInfo(
                status=info["status"],
                days_remaining=info["days_remaining"],
                expires_at=expires_at.isoformat() if expires_at else None,
                connection_id=connection["id"],
            )

        except Exception as e:
            log_error(e, context="[TOKEN_REFRESH] Failed to read token status", workspace_id=workspace_id)
            return TokenStatusInfo()

    def refresh_meta_token(self, workspace_id: str) -> Dict[str, Any]:
        """
        Exchange the current long-lived token for a fresh one and store it on
        every connection of the workspace that holds the same token.

        Returns:
            {"success", "expires_at", "error", "requires_reconnect", "connections_updated"}
        """
        connections = self._get_connections(workspace_id)
        if not connections:
            return {"success": False, "error": "Conexao Meta nao encontrada", "requires_reconnect": True}

        tokens = {}
        for connection in connections:
            token = self.tokens.get_token(connection["id"])
            if token:
                tokens[connection["id"]] = token

        if not tokens:
            return {"success": False, "error": "Token nao encontrado", "requires_reconnect": True}

        current = tokens.get(connections[0]["id"]) or next(iter(tokens.values()))
        sharing = [cid for cid, token in tokens.items() if token["access_token"] == current["access_token"]]

        try:
            refreshed = self.graph.exchange_long_lived_token(current["access_token"])
        except MetaApiError as e:
            permanent = e.error_code in PERMANENT_ERROR_CODES
            if permanent:
                self.supabase.table("data_connections")\
                    .update({"status": "error"})\
                    .in_("id", sharing)\
                    .execute()
            logger.warning(f"[TOKEN_REFRESH] Meta refresh failed for {workspace_id}: {e}")
            return {"success": False, "error": str(e), "requires_reconnect": permanent}

        expires_in = refreshed.get("expires_in") or DEFAULT_EXPIRES_IN
        for connection_id in sharing:
            token = tokens[connection_id]
            self.tokens.save_token(
                connection_id,
                token["user_id"],
                refreshed["access_token"],
                token.get("account_id"),
                expires_in,
                scope=token.get("scope"),
            )

        expires_at = (datetime.now(timezone.utc) + timedelta(seconds=expires_in)).isoformat()
        logger.info(
            f"[TOKEN_REFRESH] Meta token renewed for {len(sharing)} connection(s) "
            f"in workspace {workspace_id}, expires {expires_at}"
        )
        return {
            "success": True,
            "expires_at": expires_at,
            "error": None,
            "requires_reconnect": False,
            "connections_updated": len(sharing),
        }

    def check_and_auto_refresh(self, workspace_id: str) -> Dict[str, Any]:
        """Refresh when the token is expiring soon or expired; unknown counts as valid"""
        status = self.get_token_expiry_status(workspace_id)

        if status.status in ("valid", "unknown"):
            return {
                "token_valid": True,
                "was_refreshed": False,
                "requires_reconnect": False,
                "status": status.status,
                "days_remaining": status.days_remaining,
            }

        result = self.refresh_meta_token(workspace_id)
        return {
            "token_valid": result["success"],
            "was_refreshed": result["success"],
            "requires_reconnect": result.get("requires_reconnect", False),
            "status": "valid" if result["success"] else status.status,
            "days_remaining": status.days_remaining,
        }

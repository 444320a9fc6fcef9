"""
Token Manager
Encrypted OAuth token storage in the oauth_tokens table (one row per connection)
"""

from typing import Any, Callable, Dict, Optional
from datetime import datetime, timedelta, timezone

from supabase import Client

from app.core.logging import logger, log_error
from app.utils import crypto

REFRESH_WINDOW = timedelta(hours=1)


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class TokenManager:
    """
    Stores and reads OAuth tokens for one platform.

    Tokens are Fernet-encrypted at rest; callers only ever see plaintext.
    """

    def __init__(self, supabase: Client, platform: str):
        """
        Args:
            supabase: Supabase admin client
            platform: "meta" or "google"
        """
        self.supabase = supabase
        self.platform = platform

    def save_token(
        self,
        connection_id: str,
        user_id: str,
        access_token: str,
        account_id: Optional[str],
        expires_in: Optional[int],
        refresh_token: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> None:
        """
        Upsert the token row for a connection.

        Args:
            connection_id: data_connections id
            user_id: Owner user id
            access_token: Plaintext access token
            account_id: Platform account id
            expires_in: Seconds until expiry (None for non-expiring tokens)
            refresh_token: Plaintext refresh token, if the platform issues one
            scope: Granted scopes
        """
        now = datetime.now(timezone.utc)
        expires_at = (now + timedelta(seconds=expires_in)).isoformat() if expires_in else None

        self.supabase.table("oauth_tokens").upsert({
            "connection_id": connection_id,
            "user_id": user_id,
            "platform": self.platform,
            "access_token": crypto.encrypt(access_token),
            "refresh_token": crypto.encrypt(refresh_token) if refresh_token else None,
            "token_type": "Bearer",
            "expires_at": expires_at,
            "scope": scope,
            "account_id": account_id,
            "last_refreshed_at": now.isoformat(),
            "refresh_attempts": 0,
        }, on_conflict="connection_id").execute()

        logger.info(
            f"[TOKENS] Token saved for {self.platform}",
            extra={"connection_id": connection_id, "account_id": account_id},
        )

    def get_token(self, connection_id: str) -> Optional[Dict[str, Any]]:
        """
        Read and decrypt the token row.

        Returns:
            Row dict with plaintext access_token/refresh_token, or None
        """
        result = self.supabase.table("oauth_tokens")\
            .select("*")\
            .eq("connection_id", connection_id)\
            .eq("platform", self.platform)\
            .maybe_single()\
            .execute()

        row = result.data if result else None
        if not row:
            return None

        token = dict(row)
        token["access_token"] = crypto.decrypt(row["access_token"])
        token["refresh_token"] = crypto.decrypt(row["refresh_token"]) if row.get("refresh_token") else None
        return token

    def is_token_valid(self, connection_id: str) -> bool:
        token = self.get_token(connection_id)
        if not token:
            return False

        expires_at = _parse_ts(token.get("expires_at"))
        return expires_at is None or expires_at > datetime.now(timezone.utc)

    def needs_refresh(self, connection_id: str) -> bool:
        """True when the token is missing or expires within the next hour"""
        token = self.get_token(connection_id)
        if not token:
            return True

        expires_at = _parse_ts(token.get("expires_at"))
        if expires_at is None:
            return False
        return expires_at < datetime.now(timezone.utc) + REFRESH_WINDOW

    def update_refresh_attempts(self, connection_id: str, attempts: int) -> None:
        self.supabase.table("oauth_tokens").update({
            "refresh_attempts": attempts,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }).eq("connection_id", connection_id).execute()

    def refresh_token(
        self,
        connection_id: str,
        refresh_fn: Callable[[str], Dict[str, Any]],
    ) -> Dict[str, Any]:
        """
        Refresh the access token using `refresh_fn`.

        Args:
            connection_id: data_connections id
            refresh_fn: Called with the plaintext refresh token; returns a dict
                with access_token, expires_in and optionally refresh_token

        Returns:
            {"success": bool, "error": Optional[str]}
        """
        token = self.get_token(connection_id)
        if not token or not token.get("refresh_token"):
            return {"success": False, "error": "No refresh token available"}

        attempts = token.get("refresh_attempts") or 0
        logger.info(f"[TOKENS] Refreshing {self.platform} token", extra={"connection_id": connection_id})

        try:
            result = refresh_fn(token["refresh_token"])
        except Exception as e:
            log_error(e, context=f"[TOKENS] {self.platform} refresh failed", connection_id=connection_id)
            self.update_refresh_attempts(connection_id, attempts + 1)
            return {"success": False, "error": str(e)}

        self.save_token(
            connection_id,
            token["user_id"],
            result["access_token"],
            token.get("account_id"),
            result.get("expires_in"),
            result.get("refresh_token") or token["refresh_token"],
            token.get("scope"),
        )
        return {"success": True, "error": None}

    def delete_token(self, connection_id: str) -> None:
        self.supabase.table("oauth_tokens").delete().eq("connection_id", connection_id).execute()
        logger.info(f"[TOKENS] Token deleted for {self.platform}", extra={"connection_id": connection_id})

"""
Meta Sync Service
Pulls campaigns, ad sets, ads and daily insights for one Meta connection
and upserts them into Supabase.

Flow per connection:
- Mark connection 'syncing', resolve and validate the access token
- For each campaign: save it, then its ad sets and their ads, then days_back days of
  daily insights at campaign level
- Mark connection 'connected' on success, 'error' on any failure (re-raised)
"""

import time
from typing import Any, Callable, Dict, Optional
from datetime import datetime, timedelta, timezone

from supabase import Client

from app.connectors.meta_graph_client import MetaGraphClient, get_meta_graph_client
from app.core.config import settings
from app.core.logging import logger, log_sync_progress, mask_token
from app.models.sync import MetaSyncResult, SyncProgress
from app.services.meta_metrics import extract_metrics
from app.utils import crypto
from app.utils.errors import SyncError, TokenDecryptionError

ProgressCallback = Callable[[SyncProgress], None]


def _budget(value: Any) -> Optional[float]:
    """Meta returns budgets as strings in the account currency's minor unit"""
    return float(value) / 100 if value else None


class MetaSyncService:
    """
    Synchronizes one Meta data connection.

    Failure policy is fail-fast: the first fetch or write error aborts the
    run. Rows written before the error are kept.
    """

    def __init__(
        self,
        supabase: Client,
        graph_client: Optional[MetaGraphClient] = None,
        access_token: Optional[str] = None,
        days_back: Optional[int] = None,
    ):
        """
        Initialize Meta sync service.

        Args:
            supabase: Supabase admin client
            graph_client: Graph API client (defaults to the global one)
            access_token: Explicit token; otherwise read from oauth_tokens
            days_back: Insight window length (defaults to settings.META_SYNC_DAYS_BACK)
        """
        self.supabase = supabase
        self.graph = graph_client or get_meta_graph_client()
        self.access_token = access_token
        self.days_back = days_back or settings.META_SYNC_DAYS_BACK

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def sync_connection(
        self,
        connection_id: str,
        on_progress: Optional[ProgressCallback] = None,
        days_back: Optional[int] = None,
    ) -> MetaSyncResult:
        """
        Run a full sync for a data connection.

        Args:
            connection_id: data_connections id
            on_progress: Optional progress callback
            days_back: Insight window for this run (defaults to the service setting)

        Returns:
            MetaSyncResult with per-entity counts

        Raises:
            Any fetch/write error, after the connection is marked 'error'
        """
        start_time = time.time()
        today = datetime.now(timezone.utc).date()
        date_start = (today - timedelta(days=days_back or self.days_back)).isoformat()
        date_end = today.isoformat()

        counts = {"campaigns": 0, "ad_sets": 0, "ads": 0, "metrics": 0}
        job_id: Optional[str] = None

        def report(phase: str, percentage: int, processed: int = 0, total: int = 0, message: str = "") -> None:
            log_sync_progress("meta", phase, percentage, connection_id=connection_id)
            if on_progress:
                on_progress(SyncProgress(
                    phase=phase,
                    percentage=percentage,
                    items_processed=processed,
                    items_total=total,
                    message=message,
                ))

        logger.info(f"[META_SYNC] Starting sync for connection {connection_id}")

        try:
            self._set_status(connection_id, "syncing")

            connection = self._load_connection(connection_id)
            report("Validando token", 5)

            access_token = self._resolve_access_token(connection_id)
            self._validate_token(access_token)

            account_id = (connection.get("config") or {}).get("accountId")
            if not account_id:
                raise SyncError("Connection has no accountId in config")

            job_id = self._create_job(connection, date_start, date_end)

            report("Buscando campanhas", 10)
            campaigns = self.graph.get_campaigns(access_token, account_id)
            total = len(campaigns)
            logger.info(f"[META_SYNC] {total} campaigns found for {account_id}")

            for index, campaign in enumerate(campaigns, start=1):
                self._save_campaign(connection, campaign)
                counts["campaigns"] += 1

                for ad_set in self.graph.get_ad_sets(access_token, campaign["id"]):
                    self._save_ad_set(connection, campaign["id"], ad_set)
                    counts["ad_sets"] += 1

                    for ad in self.graph.get_ads(access_token, ad_set["id"]):
                        self._save_ad(connection, campaign["id"], ad_set["id"], ad)
                        counts["ads"] += 1

                for insight in self.graph.get_insights(access_token, campaign["id"], date_start, date_end):
                    self._save_metrics(connection, campaign["id"], insight)
                    counts["metrics"] += 1

                report(
                    "Sincronizando campanhas",
                    10 + int(85 * index / total),
                    index,
                    total,
                    campaign.get("name", campaign["id"]),
                )

            self.supabase.table("data_connections").update({
                "status": "connected",
                "last_sync": datetime.now(timezone.utc).isoformat(),
            }).eq("id", connection_id).execute()

            duration_ms = int((time.time() - start_time) * 1000)
            self._finish_job(job_id, "completed", counts, duration_ms)
            report("Sincronização concluída", 100, total, total)

            logger.info(
                f"[META_SYNC] Sync completed for {connection_id}: "
                f"{counts['campaigns']} campaigns, {counts['ad_sets']} ad sets, "
                f"{counts['ads']} ads, {counts['metrics']} metrics in {duration_ms}ms"
            )

            return MetaSyncResult(
                success=True,
                connection_id=connection_id,
                job_id=job_id,
                campaigns_synced=counts["campaigns"],
                ad_sets_synced=counts["ad_sets"],
                ads_synced=counts["ads"],
                metrics_synced=counts["metrics"],
                date_range_start=date_start,
                date_range_end=date_end,
                duration_ms=duration_ms,
            )

        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.error(f"[META_SYNC] Sync failed for {connection_id}: {e}", exc_info=True)

            self._set_status(connection_id, "error")
            if job_id:
                self._finish_job(job_id, "failed", counts, duration_ms, str(e))
            raise

    # ------------------------------------------------------------------
    # Connection and token
    # ------------------------------------------------------------------

    def _set_status(self, connection_id: str, status: str) -> None:
        self.supabase.table("data_connections").update({"status": status}).eq("id", connection_id).execute()

    def _load_connection(self, connection_id: str) -> Dict[str, Any]:
        result = self.supabase.table("data_connections")\
            .select("*")\
            .eq("id", connection_id)\
            .maybe_single()\
            .execute()

        if not result or not result.data:
            raise SyncError("Connection not found")
        return result.data

    def _resolve_access_token(self, connection_id: str) -> str:
        """
        Explicit token first, then oauth_tokens. Stored tokens that do not
        look like Meta tokens are treated as encrypted.
        """
        if self.access_token:
            return self.access_token.strip()

        result = self.supabase.table("oauth_tokens")\
            .select("access_token")\
            .eq("connection_id", connection_id)\
            .maybe_single()\
            .execute()

        stored = result.data.get("access_token") if result and result.data else None
        if not stored:
            raise SyncError("Access token not found for connection")

        if crypto.looks_like_meta_token(stored):
            return stored.strip()

        try:
            token = crypto.decrypt(stored).strip()
        except TokenDecryptionError as e:
            raise SyncError(f"Falha ao descriptografar token: {e}") from e

        logger.debug(f"[META_SYNC] Using decrypted token {mask_token(token)}")
        return token

    def _validate_token(self, access_token: str) -> None:
        try:
            self.graph.get_me(access_token)
        except Exception as e:
            raise SyncError(f"Token validation failed: {e}") from e

    # ------------------------------------------------------------------
    # Job tracking
    # ------------------------------------------------------------------

    def _create_job(self, connection: Dict[str, Any], date_start: str, date_end: str) -> Optional[str]:
        result = self.supabase.table("sync_jobs").insert({
            "connection_id": connection["id"],
            "user_id": connection.get("user_id"),
            "workspace_id": connection.get("workspace_id"),
            "platform": "meta",
            "status": "running",
            "date_range_start": date_start,
            "date_range_end": date_end,
            "started_at": datetime.now(timezone.utc).isoformat(),
        }).execute()

        return result.data[0]["id"] if result.data else None

    def _finish_job(
        self,
        job_id: Optional[str],
        status: str,
        counts: Dict[str, int],
        duration_ms: int,
        error_message: Optional[str] = None,
    ) -> None:
        if not job_id:
            return

        self.supabase.table("sync_jobs").update({
            "status": status,
            "campaigns_synced": counts["campaigns"],
            "ad_sets_synced": counts["ad_sets"],
            "ads_synced": counts["ads"],
            "metrics_synced": counts["metrics"],
            "error_message": error_message,
            "completed_at": datetime.now(timezone.utc).isoformat(),
            "duration_ms": duration_ms,
        }).eq("id", job_id).execute()

    # ------------------------------------------------------------------
    # Entity writes
    # ------------------------------------------------------------------

    def _save_campaign(self, connection: Dict[str, Any], campaign: Dict[str, Any]) -> None:
        self.supabase.table("campaigns").upsert({
            "id": campaign["id"],
            "connection_id": connection["id"],
            "user_id": connection.get("user_id"),
            "platform": "Meta",
            "name": campaign.get("name"),
            "status": campaign.get("status"),
            "objective": campaign.get("objective"),
            "created_date": campaign.get("created_time"),
            "start_date": campaign.get("start_time"),
            "end_date": campaign.get("stop_time"),
            "daily_budget": _budget(campaign.get("daily_budget")),
            "lifetime_budget": _budget(campaign.get("lifetime_budget")),
            "budget_remaining": _budget(campaign.get("budget_remaining")),
        }, on_conflict="id").execute()

    def _save_ad_set(self, connection: Dict[str, Any], campaign_id: str, ad_set: Dict[str, Any]) -> None:
        self.supabase.table("ad_sets").upsert({
            "id": ad_set["id"],
            "campaign_id": campaign_id,
            "connection_id": connection["id"],
            "user_id": connection.get("user_id"),
            "name": ad_set.get("name"),
            "status": ad_set.get("status"),
            "daily_budget": _budget(ad_set.get("daily_budget")),
            "lifetime_budget": _budget(ad_set.get("lifetime_budget")),
            "targeting": ad_set.get("targeting") or {},
            "optimization_goal": ad_set.get("optimization_goal"),
        }, on_conflict="id").execute()

    def _save_ad(self, connection: Dict[str, Any], campaign_id: str, ad_set_id: str, ad: Dict[str, Any]) -> None:
        creative = ad.get("creative") or {}
        self.supabase.table("ads").upsert({
            "id": ad["id"],
            "ad_set_id": ad_set_id,
            "campaign_id": campaign_id,
            "connection_id": connection["id"],
            "user_id": connection.get("user_id"),
            "name": ad.get("name"),
            "status": ad.get("status"),
            "ad_type": creative.get("object_type") or "other",
            "headline": creative.get("title"),
            "description": creative.get("body"),
            "thumbnail_url": creative.get("image_url"),
        }, on_conflict="id").execute()

    def _save_metrics(self, connection: Dict[str, Any], campaign_id: str, insight: Dict[str, Any]) -> None:
        """
        Campaign-level daily row. Uniqueness is (campaign_id, date) with null
        ad_set_id/ad_id, which a partial index enforces, so this looks the
        row up instead of relying on on_conflict.
        """
        metrics = extract_metrics(insight)
        data = {
            "impressions": metrics["impressions"],
            "clicks": metrics["clicks"],
            "spend": metrics["spend"],
            "reach": metrics["reach"],
            "frequency": metrics["frequency"],
            "ctr": metrics["ctr"],
            "cpc": metrics["cpc"],
            "cpm": metrics["cpm"],
            "conversions": metrics["conversions"],
            "conversion_value": metrics["conversion_value"],
            "roas": metrics["roas"],
            "cost_per_result": metrics["cost_per_result"],
            "video_views": metrics["video_views"],
            "actions_raw": metrics["actions_raw"],
            "action_values_raw": metrics["action_values_raw"],
        }

        existing = self.supabase.table("ad_metrics")\
            .select("id")\
            .eq("campaign_id", campaign_id)\
            .eq("date", insight["date_start"])\
            .is_("ad_set_id", "null")\
            .is_("ad_id", "null")\
            .maybe_single()\
            .execute()

        if existing and existing.data:
            self.supabase.table("ad_metrics").update(data).eq("id", existing.data["id"]).execute()
        else:
            self.supabase.table("ad_metrics").insert({
                "connection_id": connection["id"],
                "user_id": connection.get("user_id"),
                "campaign_id": campaign_id,
                "date": insight["date_start"],
                **data,
            }).execute()

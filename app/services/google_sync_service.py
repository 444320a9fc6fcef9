"""
Google Sync Service
Synchronizes Google Ads accounts of a workspace into google_insights_daily

Accounts are processed one at a time. A failing account is recorded in the
result's error list and the run moves on to the next one.
"""

import time
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime, timedelta, timezone

from supabase import Client

from app.connectors.google_ads_client import GoogleAdsClient
from app.core.config import settings
from app.core.logging import logger, log_sync_progress
from app.models.sync import GoogleSyncResult, SyncProgress
from app.services.rate_limiter import DailyRequestCounter
from app.services.token_manager import TokenManager
from app.utils.retry import with_retry

DAILY_REQUEST_LIMIT = settings.GOOGLE_DAILY_REQUEST_LIMIT
REQUEST_DELAY_MS = settings.SYNC_REQUEST_DELAY_MS
MAX_RETRIES = settings.SYNC_MAX_RETRIES
RETRY_DELAY_MS = settings.SYNC_RETRY_DELAY_MS
INSIGHTS_BATCH_SIZE = 100
INSIGHTS_CONFLICT_KEY = "workspace_id,customer_id,campaign_id,ad_group_id,date"

ProgressCallback = Callable[[SyncProgress], None]


def compute_derived_metrics(impressions: float, clicks: float, cost: float, conversion_value: float) -> Dict[str, float]:
    """ctr/cpc/cpm/roas with zero-denominator guards"""
    return {
        "ctr": clicks / impressions * 100 if impressions > 0 else 0.0,
        "cpc": cost / clicks if clicks > 0 else 0.0,
        "cpm": cost / impressions * 1000 if impressions > 0 else 0.0,
        "roas": conversion_value / cost if cost > 0 else 0.0,
    }


class GoogleSyncService:
    """
    Google Ads sync for one workspace and one developer token.

    Every fetch is counted against the daily request limit and followed by a
    fixed delay. There is no adaptive throttling.
    """

    def __init__(
        self,
        supabase: Client,
        workspace_id: str,
        developer_token: str,
        access_token: str,
        login_customer_id: Optional[str] = None,
        client: Optional[GoogleAdsClient] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize Google sync service.

        Args:
            supabase: Supabase admin client
            workspace_id: Workspace owning the accounts
            developer_token: Google Ads developer token
            access_token: OAuth access token for the connected Google user
            login_customer_id: Manager (MCC) customer id, if any
            client: Google Ads REST client (built from the token if omitted)
            sleep: Sleep function (injectable for tests)
        """
        self.supabase = supabase
        self.workspace_id = workspace_id
        self.developer_token = developer_token
        self.access_token = access_token
        self.login_customer_id = login_customer_id
        self.client = client or GoogleAdsClient(developer_token, login_customer_id)
        self.counter = DailyRequestCounter(DAILY_REQUEST_LIMIT)
        self._sleep = sleep

    @property
    def request_count(self) -> int:
        return self.counter.count

    # ------------------------------------------------------------------
    # Multi-account sync
    # ------------------------------------------------------------------

    def sync_accounts(
        self,
        accounts: List[Dict[str, Any]],
        date_from: str,
        date_to: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> GoogleSyncResult:
        """
        Sync every selected account in `accounts`.

        Args:
            accounts: google_ad_accounts rows
            date_from: YYYY-MM-DD
            date_to: YYYY-MM-DD
            on_progress: Optional progress callback

        Returns:
            GoogleSyncResult; success is True only if no account failed
        """
        start_time = time.time()
        errors: List[str] = []
        totals = {"campaigns": 0, "ad_groups": 0, "ads": 0, "metrics": 0}
        accounts_synced = 0

        def elapsed_ms() -> int:
            return int((time.time() - start_time) * 1000)

        selected = [account for account in accounts if account.get("is_selected")]

        if not selected:
            return GoogleSyncResult(
                success=False,
                date_range_start=date_from,
                date_range_end=date_to,
                errors=["Nenhuma conta selecionada para sincronizacao"],
                duration_ms=elapsed_ms(),
            )

        job_id = self._create_sync_job(date_from, date_to, len(selected))
        count = len(selected)

        logger.info(f"[GOOGLE_SYNC] Syncing {count} account(s) for workspace {self.workspace_id}")

        try:
            for i, account in enumerate(selected):
                name = account.get("name") or account.get("customer_id")

                self._emit(on_progress, SyncProgress(
                    phase=f"Sincronizando conta {i + 1} de {count}",
                    percentage=round((i + 1) / count * 100),
                    items_processed=i,
                    items_total=count,
                    message=f"Processando: {name}",
                ))

                def account_progress(sub: SyncProgress, i: int = i, name: str = name) -> None:
                    self._emit(on_progress, SyncProgress(
                        phase=sub.phase,
                        percentage=min(100, round(i / count * 100 + sub.percentage / count)),
                        items_processed=sub.items_processed,
                        items_total=sub.items_total,
                        message=f"{name}: {sub.message}",
                    ))

                try:
                    result = self.sync_single_account(account, date_from, date_to, job_id, account_progress)

                    for key in totals:
                        totals[key] += result[key]
                    accounts_synced += 1

                    self.supabase.table("google_ad_accounts")\
                        .update({"last_sync_at": datetime.now(timezone.utc).isoformat()})\
                        .eq("id", account["id"])\
                        .execute()

                except Exception as account_error:
                    errors.append(f"{name}: {account_error}")
                    logger.error(f"[GOOGLE_SYNC] Account {name} failed: {account_error}", exc_info=True)

                self._delay(REQUEST_DELAY_MS)

            self._update_sync_job(job_id, {
                "status": "completed",
                "progress": 100,
                "completed_at": datetime.now(timezone.utc).isoformat(),
                "campaigns_synced": totals["campaigns"],
                "ad_groups_synced": totals["ad_groups"],
                "ads_synced": totals["ads"],
                "metrics_synced": totals["metrics"],
                "error_message": "; ".join(errors) if errors else None,
            })

            self._emit(on_progress, SyncProgress(
                phase="Sincronizacao concluida",
                percentage=100,
                items_processed=count,
                items_total=count,
                message=f"{accounts_synced} conta(s) sincronizada(s)",
            ))

            return GoogleSyncResult(
                success=not errors,
                job_id=job_id,
                accounts_synced=accounts_synced,
                campaigns_synced=totals["campaigns"],
                ad_groups_synced=totals["ad_groups"],
                ads_synced=totals["ads"],
                metrics_synced=totals["metrics"],
                date_range_start=date_from,
                date_range_end=date_to,
                errors=errors,
                duration_ms=elapsed_ms(),
            )

        except Exception as e:
            logger.error(f"[GOOGLE_SYNC] Sync failed for workspace {self.workspace_id}: {e}", exc_info=True)

            self._update_sync_job(job_id, {
                "status": "failed",
                "completed_at": datetime.now(timezone.utc).isoformat(),
                "error_message": str(e),
            })

            return GoogleSyncResult(
                success=False,
                job_id=job_id,
                accounts_synced=accounts_synced,
                campaigns_synced=totals["campaigns"],
                ad_groups_synced=totals["ad_groups"],
                ads_synced=totals["ads"],
                metrics_synced=totals["metrics"],
                date_range_start=date_from,
                date_range_end=date_to,
                errors=[*errors, str(e)],
                duration_ms=elapsed_ms(),
            )

    def sync_single_account(
        self,
        account: Dict[str, Any],
        date_from: str,
        date_to: str,
        job_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Dict[str, int]:
        """
        Fetch entities and metrics for one customer and save the metrics.

        Returns:
            Counts keyed campaigns/ad_groups/ads/metrics
        """
        customer_id = account["customer_id"]

        self._emit(on_progress, SyncProgress(
            phase="Buscando campanhas", percentage=10, message="Carregando campanhas...",
        ))
        campaigns = self._fetch(lambda: self.client.get_campaigns(self.access_token, customer_id))

        self._emit(on_progress, SyncProgress(
            phase="Buscando grupos de anuncios", percentage=30,
            items_processed=len(campaigns), items_total=len(campaigns),
            message=f"{len(campaigns)} campanhas encontradas",
        ))
        ad_groups = self._fetch(lambda: self.client.get_ad_groups(self.access_token, customer_id))

        self._emit(on_progress, SyncProgress(
            phase="Buscando anuncios", percentage=50,
            items_processed=len(ad_groups), items_total=len(ad_groups),
            message=f"{len(ad_groups)} grupos encontrados",
        ))
        ads = self._fetch(lambda: self.client.get_ads(self.access_token, customer_id))

        self._emit(on_progress, SyncProgress(
            phase="Buscando metricas", percentage=70,
            items_processed=len(ads), items_total=len(ads),
            message=f"{len(ads)} anuncios encontrados",
        ))
        insights = self._fetch(
            lambda: self.client.get_daily_metrics(self.access_token, customer_id, date_from, date_to)
        )

        self._emit(on_progress, SyncProgress(
            phase="Salvando metricas", percentage=90,
            items_processed=len(insights), items_total=len(insights),
            message=f"Salvando {len(insights)} registros...",
        ))
        self.save_insights(account, insights)

        self._increment_job_progress(job_id)

        self._emit(on_progress, SyncProgress(
            phase="Conta sincronizada", percentage=100,
            items_processed=len(insights), items_total=len(insights),
            message="Concluido",
        ))

        return {
            "campaigns": len(campaigns),
            "ad_groups": len(ad_groups),
            "ads": len(ads),
            "metrics": len(insights),
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save_insights(self, account: Dict[str, Any], insights: List[Dict[str, Any]]) -> None:
        """
        Upsert insights in batches of 100.

        Raises:
            Exception: 'Erro ao salvar metricas: ...' on a write failure
        """
        for start in range(0, len(insights), INSIGHTS_BATCH_SIZE):
            batch = insights[start:start + INSIGHTS_BATCH_SIZE]

            records = []
            for insight in batch:
                records.append({
                    "workspace_id": self.workspace_id,
                    "account_id": account["id"],
                    "customer_id": account["customer_id"],
                    "campaign_id": insight["campaignId"],
                    "campaign_name": insight.get("campaignName"),
                    "ad_group_id": insight.get("adGroupId"),
                    "ad_group_name": insight.get("adGroupName"),
                    "date": insight["date"],
                    "impressions": insight["impressions"],
                    "clicks": insight["clicks"],
                    "cost": insight["cost"],
                    "conversions": insight["conversions"],
                    "conversion_value": insight["conversionValue"],
                    **compute_derived_metrics(
                        insight["impressions"], insight["clicks"], insight["cost"], insight["conversionValue"]
                    ),
                })

            try:
                self.supabase.table("google_insights_daily")\
                    .upsert(records, on_conflict=INSIGHTS_CONFLICT_KEY)\
                    .execute()
            except Exception as e:
                logger.error(f"[GOOGLE_SYNC] Failed to save insights: {e}")
                raise Exception(f"Erro ao salvar metricas: {e}") from e

            if start + INSIGHTS_BATCH_SIZE < len(insights):
                self._delay(100)

    def _create_sync_job(self, date_from: str, date_to: str, accounts_count: int) -> str:
        result = self.supabase.table("google_sync_jobs").insert({
            "workspace_id": self.workspace_id,
            "status": "running",
            "started_at": datetime.now(timezone.utc).isoformat(),
            "progress": 0,
            "current_phase": "Iniciando sincronizacao",
            "items_processed": 0,
            "items_total": accounts_count,
            "sync_type": "full",
            "date_range_start": date_from,
            "date_range_end": date_to,
        }).execute()

        if not result.data:
            raise Exception("Erro ao criar job de sincronizacao")

        return result.data[0]["id"]

    def _update_sync_job(self, job_id: str, updates: Dict[str, Any]) -> None:
        try:
            self.supabase.table("google_sync_jobs").update(updates).eq("id", job_id).execute()
        except Exception as e:
            logger.error(f"[GOOGLE_SYNC] Failed to update job {job_id}: {e}")

    def _increment_job_progress(self, job_id: str) -> None:
        current = self.supabase.table("google_sync_jobs")\
            .select("items_processed")\
            .eq("id", job_id)\
            .maybe_single()\
            .execute()

        row = current.data if current and current.data else {}
        processed = row.get("items_processed") or 0
        self._update_sync_job(job_id, {"items_processed": processed + 1})

    # ------------------------------------------------------------------
    # Request accounting
    # ------------------------------------------------------------------

    def check_rate_limit(self) -> None:
        """
        Count a request and pause before it.

        Raises:
            RateLimitExceeded: once the daily limit is reached
        """
        self.counter.increment()
        self._delay(REQUEST_DELAY_MS)

    def _fetch(self, fn: Callable[[], List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        self.check_rate_limit()
        return fn()

    def with_retry(self, fn: Callable[[], Any], operation: str) -> Any:
        return with_retry(fn, operation, max_retries=MAX_RETRIES, delay_ms=RETRY_DELAY_MS, sleep=self._sleep)

    def _delay(self, ms: int) -> None:
        self._sleep(ms / 1000)

    @staticmethod
    def _emit(on_progress: Optional[ProgressCallback], progress: SyncProgress) -> None:
        log_sync_progress("google", progress.phase, progress.percentage)
        if on_progress:
            on_progress(progress)


def _get_google_connection(supabase: Client, workspace_id: str) -> Optional[Dict[str, Any]]:
    result = supabase.table("google_connections")\
        .select("*")\
        .eq("workspace_id", workspace_id)\
        .maybe_single()\
        .execute()
    return result.data if result else None


def create_google_sync_service(supabase: Client, workspace_id: str) -> Optional[GoogleSyncService]:
    """
    Build a sync service from the workspace's google_connections row.

    Refreshes the OAuth access token (with retry) before returning.

    Returns:
        GoogleSyncService, or None when the workspace has no connection
    """
    connection = _get_google_connection(supabase, workspace_id)
    if not connection:
        return None

    developer_token = connection.get("developer_token") or settings.GOOGLE_ADS_DEVELOPER_TOKEN
    client = GoogleAdsClient(developer_token, connection.get("login_customer_id"))

    token_manager = TokenManager(supabase, "google")
    token = token_manager.get_token(connection["id"])
    if not token:
        return None

    access_token = token["access_token"]
    if token_manager.needs_refresh(connection["id"]) and token.get("refresh_token"):
        refreshed = with_retry(
            lambda: client.refresh_access_token(token["refresh_token"]),
            "refresh Google access token",
            max_retries=MAX_RETRIES,
            delay_ms=RETRY_DELAY_MS,
        )
        token_manager.save_token(
            connection["id"],
            token["user_id"],
            refreshed["access_token"],
            token.get("account_id"),
            refreshed.get("expires_in"),
            token["refresh_token"],
            token.get("scope"),
        )
        access_token = refreshed["access_token"]

    return GoogleSyncService(
        supabase,
        workspace_id,
        developer_token,
        access_token,
        connection.get("login_customer_id"),
        client=client,
    )


def _failed_result(message: str) -> GoogleSyncResult:
    return GoogleSyncResult(success=False, errors=[message])


def run_sync(
    supabase: Client,
    workspace_id: str,
    date_from: str,
    date_to: str,
    account_ids: Optional[List[str]] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> GoogleSyncResult:
    """Sync the workspace's selected accounts over an explicit date range"""
    service = create_google_sync_service(supabase, workspace_id)
    if not service:
        return _failed_result("Servico de sincronizacao nao disponivel")

    accounts = supabase.table("google_ad_accounts")\
        .select("*")\
        .eq("workspace_id", workspace_id)\
        .eq("is_selected", True)\
        .execute()

    rows = accounts.data or []
    if not rows:
        return _failed_result("Nenhuma conta selecionada")

    if account_ids:
        rows = [row for row in rows if row["id"] in account_ids]

    return service.sync_accounts(rows, date_from, date_to, on_progress)


def run_quick_sync(
    supabase: Client,
    workspace_id: str,
    account_ids: Optional[List[str]] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> GoogleSyncResult:
    """Sync the last GOOGLE_QUICK_SYNC_DAYS days (7 by default)"""
    today = datetime.now(timezone.utc).date()
    date_from = (today - timedelta(days=settings.GOOGLE_QUICK_SYNC_DAYS)).isoformat()
    return run_sync(supabase, workspace_id, date_from, today.isoformat(), account_ids, on_progress)

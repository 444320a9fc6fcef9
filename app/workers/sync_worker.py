"""
Sync Worker
Background worker for scheduled ads data synchronization

Responsibilities:
- Periodic Meta sync of every connected data connection
- Google Ads quick sync for workspaces with selected accounts
- Consecutive failure tracking per connection / workspace
"""

import asyncio
from typing import Dict, Any, Optional, List
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.logging import logger
from app.db import get_supabase_admin_client
from app.services.google_sync_service import run_quick_sync
from app.services.meta_sync_service import MetaSyncService

FAILURE_ALERT_THRESHOLD = 3


class SyncWorker:
    """
    Scheduled sync for all connected ad accounts.

    Syncs run one after another; a failing connection never stops the others.
    """

    def __init__(self, sync_interval_hours: int = 6, enabled: bool = True, supabase=None):
        self.enabled = enabled
        self.sync_interval_hours = sync_interval_hours

        self.scheduler = AsyncIOScheduler()
        self.supabase = supabase or get_supabase_admin_client()

        self._is_running = False
        self._sync_failures: Dict[str, int] = {}  # consecutive failures per connection / workspace

    def start(self):
        """Start the worker and schedule the sync job"""
        if not self.enabled:
            logger.info("Sync worker is disabled, not starting")
            return

        if self._is_running:
            logger.warning("Sync worker is already running")
            return

        try:
            self.scheduler.add_job(
                self.run_cycle,
                trigger=IntervalTrigger(hours=self.sync_interval_hours),
                id="ads_periodic_sync",
                name="Ads Periodic Sync",
                replace_existing=True,
                max_instances=1,
                coalesce=True
            )
            logger.info(f"Scheduled ads sync every {self.sync_interval_hours} hour(s)")

            self.scheduler.start()
            self._is_running = True
            logger.info("Sync worker started")

        except Exception as e:
            logger.error(f"Failed to start sync worker: {e}", exc_info=True)
            raise

    def stop(self):
        """Stop the worker"""
        if not self._is_running:
            logger.warning("Sync worker is not running")
            return

        try:
            self.scheduler.shutdown(wait=False)
            self._is_running = False
            logger.info("Sync worker stopped")
        except Exception as e:
            logger.error(f"Error stopping sync worker: {e}", exc_info=True)

    async def run_cycle(self) -> Dict[str, int]:
        """One scheduled pass: Meta connections first, then Google workspaces"""
        meta = await self._sync_meta_connections()
        google = await self._sync_google_workspaces()
        logger.info(
            f"Sync cycle completed: {meta['synced']} Meta connection(s), "
            f"{google['synced']} Google workspace(s), {meta['errors'] + google['errors']} error(s)"
        )
        return {
            "meta_synced": meta["synced"],
            "google_synced": google["synced"],
            "errors": meta["errors"] + google["errors"],
        }

    async def _sync_meta_connections(self) -> Dict[str, int]:
        result = self.supabase.table("data_connections")\
            .select("id, workspace_id, name")\
            .eq("platform", "meta")\
            .eq("status", "connected")\
            .execute()

        connections = result.data or []
        synced = errors = 0

        for connection in connections:
            connection_id = connection["id"]
            try:
                sync_result = await asyncio.to_thread(
                    MetaSyncService(self.supabase).sync_connection, connection_id
                )
                self._record_success(connection_id)
                synced += 1
                logger.info(
                    f"[META_SYNC] {connection.get('name')}: {sync_result.campaigns_synced} campaigns, "
                    f"{sync_result.metrics_synced} metric rows"
                )
            except Exception as e:
                errors += 1
                self._record_failure(connection_id, e)

        return {"synced": synced, "errors": errors}

    async def _sync_google_workspaces(self) -> Dict[str, int]:
        result = self.supabase.table("google_ad_accounts")\
            .select("workspace_id")\
            .eq("is_selected", True)\
            .execute()

        workspace_ids: List[str] = sorted({row["workspace_id"] for row in result.data or []})
        synced = errors = 0

        for workspace_id in workspace_ids:
            try:
                sync_result = await asyncio.to_thread(run_quick_sync, self.supabase, workspace_id)
                if not sync_result.success:
                    raise RuntimeError("; ".join(sync_result.errors) or "Google sync failed")
                self._record_success(workspace_id)
                synced += 1
            except Exception as e:
                errors += 1
                self._record_failure(workspace_id, e)

        return {"synced": synced, "errors": errors}

    def _record_success(self, key: str) -> None:
        self._sync_failures.pop(key, None)

    def _record_failure(self, key: str, error: Exception) -> None:
        self._sync_failures[key] = self._sync_failures.get(key, 0) + 1
        count = self._sync_failures[key]

        logger.error(f"Error syncing {key} (failure #{count}): {error}", exc_info=True)
        if count >= FAILURE_ALERT_THRESHOLD:
            logger.warning(f"Sync for {key} failed {count} times consecutively")

    def get_status(self) -> Dict[str, Any]:
        """Get worker status and health information"""
        return {
            'is_running': self._is_running,
            'enabled': self.enabled,
            'sync_interval_hours': self.sync_interval_hours,
            'consecutive_failures': dict(self._sync_failures),
            'jobs': [
                {
                    'id': job.id,
                    'name': job.name,
                    'next_run_time': job.next_run_time.isoformat() if job.next_run_time else None
                }
                for job in (self.scheduler.get_jobs() if self._is_running else [])
            ]
        }


# Global worker instance
_sync_worker: Optional[SyncWorker] = None


def get_sync_worker(sync_interval_hours: int = 6, enabled: bool = True) -> SyncWorker:
    """Get or create the singleton sync worker"""
    global _sync_worker

    if _sync_worker is None:
        _sync_worker = SyncWorker(sync_interval_hours=sync_interval_hours, enabled=enabled)

    return _sync_worker


def start_sync_worker(**kwargs) -> SyncWorker:
    """Start the sync worker"""
    worker = get_sync_worker(**kwargs)
    worker.start()
    return worker


def stop_sync_worker():
    """Stop the sync worker"""
    global _sync_worker

    if _sync_worker:
        _sync_worker.stop()
        _sync_worker = None

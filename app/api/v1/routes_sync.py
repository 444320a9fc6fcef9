"""
Sync API Routes
Manual triggers for Meta and Google Ads synchronization

Syncs are blocking (HTTP calls, rate-limit sleeps) and run in a worker
thread so the event loop and the scheduler stay responsive.
"""

import asyncio

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from app.core.logging import logger, log_error
from app.db import get_supabase_admin_client
from app.models.sync import GoogleSyncRequest, GoogleSyncResult, MetaSyncResult
from app.services.google_sync_service import run_quick_sync, run_sync
from app.services.meta_sync_service import MetaSyncService
from app.utils.errors import user_message

router = APIRouter(prefix="/sync", tags=["Sync"])

JOB_TABLES = (("sync_jobs", "meta"), ("google_sync_jobs", "google"))


@router.post("/meta/{connection_id}", response_model=MetaSyncResult)
async def sync_meta_connection(
    connection_id: str,
    supabase: Client = Depends(get_supabase_admin_client),
):
    """
    Run a full Meta sync for one connection.

    Returns:
        MetaSyncResult, or 502 with a readable error when the sync fails
    """
    try:
        logger.info(f"[META_SYNC] Manual sync requested for {connection_id}")
        service = MetaSyncService(supabase)
        return await asyncio.to_thread(service.sync_connection, connection_id)

    except Exception as e:
        log_error(e, context="[META_SYNC] Manual sync failed", connection_id=connection_id)
        raise HTTPException(status_code=502, detail=f"{user_message(e)} ({e})")


@router.post("/google", response_model=GoogleSyncResult)
async def sync_google(
    request: GoogleSyncRequest,
    supabase: Client = Depends(get_supabase_admin_client),
):
    """
    Sync the workspace's selected Google Ads accounts.

    Without a date range the quick sync window is used.
    """
    try:
        if request.date_from:
            date_to = request.date_to or request.date_from
            return await asyncio.to_thread(
                run_sync, supabase, request.workspace_id, request.date_from, date_to, request.account_ids
            )

        return await asyncio.to_thread(run_quick_sync, supabase, request.workspace_id, request.account_ids)

    except Exception as e:
        log_error(e, context="[GOOGLE_SYNC] Manual sync failed", workspace_id=request.workspace_id)
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/jobs/{job_id}")
async def get_sync_job(
    job_id: str,
    supabase: Client = Depends(get_supabase_admin_client),
):
    """Sync job row (status, progress, error) from the Meta or Google job table"""
    try:
        for table, platform in JOB_TABLES:
            result = supabase.table(table)\
                .select("*")\
                .eq("id", job_id)\
                .maybe_single()\
                .execute()

            if result and result.data:
                return {**result.data, "platform": platform}

        raise HTTPException(status_code=404, detail="Sync job not found")

    except HTTPException:
        raise
    except Exception as e:
        log_error(e, context="Get sync job")
        raise HTTPException(status_code=500, detail=str(e))

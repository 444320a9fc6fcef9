"""
Dashboard API Routes

Requests carrying a bearer token are answered through a user-scoped client so
RLS applies; an X-Refresh-Token header lets that client refresh its session
after an RLS failure. Without a bearer token the service-role client is used.
"""

from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from supabase import Client

from app.core.config import settings
from app.core.logging import log_error
from app.db import get_supabase_admin_client, get_supabase_client
from app.services.dashboard_service import DashboardService

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


def _default_range(date_from: Optional[str], date_to: Optional[str]):
    end = date_to or date.today().isoformat()
    start = date_from or (date.fromisoformat(end) - timedelta(days=settings.META_SYNC_DAYS_BACK)).isoformat()
    return start, end


def _reader(supabase: Client, authorization: Optional[str], refresh_token: Optional[str] = None) -> Client:
    if authorization and authorization.lower().startswith("bearer "):
        return get_supabase_client(authorization[7:], refresh_token)
    return supabase


@router.get("/summary")
async def get_summary(
    connection_id: Optional[str] = Query(None, description="Data connection ID"),
    workspace_id: Optional[str] = Query(None, description="Workspace ID"),
    date_from: Optional[str] = Query(None, description="YYYY-MM-DD"),
    date_to: Optional[str] = Query(None, description="YYYY-MM-DD"),
    authorization: Optional[str] = Header(None),
    refresh_token: Optional[str] = Header(None, alias="X-Refresh-Token"),
    supabase: Client = Depends(get_supabase_admin_client),
):
    """Meta totals, ratios, daily series and campaign breakdown"""
    try:
        start, end = _default_range(date_from, date_to)
        service = DashboardService(_reader(supabase, authorization, refresh_token))
        summary = service.get_meta_summary(start, end, connection_id, workspace_id)
        return {"date_from": start, "date_to": end, **summary}

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        log_error(e, context="Dashboard summary")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/google/summary")
async def get_google_summary(
    workspace_id: str = Query(..., description="Workspace ID"),
    date_from: Optional[str] = Query(None, description="YYYY-MM-DD"),
    date_to: Optional[str] = Query(None, description="YYYY-MM-DD"),
    authorization: Optional[str] = Header(None),
    refresh_token: Optional[str] = Header(None, alias="X-Refresh-Token"),
    supabase: Client = Depends(get_supabase_admin_client),
):
    """Google Ads totals over campaign-level daily insights"""
    try:
        start, end = _default_range(date_from, date_to)
        service = DashboardService(_reader(supabase, authorization, refresh_token))
        summary = service.get_google_summary(workspace_id, start, end)
        return {"date_from": start, "date_to": end, **summary}

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        log_error(e, context="Google dashboard summary")
        raise HTTPException(status_code=500, detail=str(e))

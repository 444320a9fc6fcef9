"""Sync models"""

from pydantic import BaseModel, Field
from typing import List, Optional


class SyncProgress(BaseModel):
    """Progress event emitted during a sync run"""
    phase: str
    percentage: int = Field(0, ge=0, le=100)
    items_processed: int = 0
    items_total: int = 0
    message: str = ""


class MetaSyncResult(BaseModel):
    """Outcome of a Meta connection sync"""
    success: bool
    connection_id: str
    job_id: Optional[str] = None
    campaigns_synced: int = 0
    ad_sets_synced: int = 0
    ads_synced: int = 0
    metrics_synced: int = 0
    date_range_start: str
    date_range_end: str
    duration_ms: int = 0


class GoogleSyncResult(BaseModel):
    """Outcome of a Google Ads multi-account sync"""
    success: bool
    job_id: Optional[str] = None
    accounts_synced: int = 0
    campaigns_synced: int = 0
    ad_groups_synced: int = 0
    ads_synced: int = 0
    metrics_synced: int = 0
    date_range_start: str = ""
    date_range_end: str = ""
    errors: List[str] = Field(default_factory=list)
    duration_ms: int = 0


class GoogleSyncRequest(BaseModel):
    """Request body for a Google Ads sync"""
    workspace_id: str = Field(..., description="Workspace ID")
    account_ids: Optional[List[str]] = Field(None, description="Restrict to these google_ad_accounts ids")
    date_from: Optional[str] = Field(None, description="YYYY-MM-DD; defaults to the quick-sync window")
    date_to: Optional[str] = Field(None, description="YYYY-MM-DD; defaults to today")

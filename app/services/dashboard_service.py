"""
Dashboard Service
Aggregates stored daily metrics into summary, time series and per-campaign
breakdowns. Aggregation happens in Python; derived ratios are recomputed
from summed totals rather than averaged.
"""

from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

from supabase import Client

from app.core.logging import logger
from app.db.session import retry_with_session_refresh

SUM_FIELDS = ("impressions", "clicks", "spend", "conversions", "conversion_value", "reach")


def _num(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def derive_ratios(totals: Dict[str, float]) -> Dict[str, float]:
    impressions = totals.get("impressions", 0)
    clicks = totals.get("clicks", 0)
    spend = totals.get("spend", 0)
    conversions = totals.get("conversions", 0)
    conversion_value = totals.get("conversion_value", 0)

    return {
        "ctr": clicks / impressions * 100 if impressions > 0 else 0.0,
        "cpc": spend / clicks if clicks > 0 else 0.0,
        "cpm": spend / impressions * 1000 if impressions > 0 else 0.0,
        "roas": conversion_value / spend if spend > 0 else 0.0,
        "cost_per_result": spend / conversions if conversions > 0 else 0.0,
    }


def aggregate_rows(rows: Iterable[Dict[str, Any]], spend_field: str = "spend") -> Dict[str, Any]:
    """
    Sum metric rows and derive ratios.

    Args:
        rows: Metric rows
        spend_field: Column holding spend ("cost" for Google rows)

    Returns:
        Summary dict with totals, ratios, a per-day series and a per-campaign list
    """
    totals = {field: 0.0 for field in SUM_FIELDS}
    by_day: Dict[str, Dict[str, float]] = OrderedDict()
    by_campaign: Dict[str, Dict[str, Any]] = {}

    for row in sorted(rows, key=lambda r: r.get("date") or ""):
        values = {field: _num(row.get(spend_field if field == "spend" else field)) for field in SUM_FIELDS}

        for field, value in values.items():
            totals[field] += value

        day = by_day.setdefault(row.get("date"), {field: 0.0 for field in SUM_FIELDS})
        for field, value in values.items():
            day[field] += value

        campaign_id = row.get("campaign_id")
        campaign = by_campaign.setdefault(campaign_id, {
            "campaign_id": campaign_id,
            "campaign_name": row.get("campaign_name"),
            **{field: 0.0 for field in SUM_FIELDS},
        })
        for field, value in values.items():
            campaign[field] += value

    return {
        **totals,
        **derive_ratios(totals),
        "days": [{"date": date, **values, **derive_ratios(values)} for date, values in by_day.items()],
        "campaigns": sorted(
            ({**c, **derive_ratios(c)} for c in by_campaign.values()),
            key=lambda c: c["spend"],
            reverse=True,
        ),
    }


class DashboardService:
    """Read-side aggregation over ad_metrics and google_insights_daily"""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _workspace_connection_ids(self, workspace_id: str) -> List[str]:
        result = retry_with_session_refresh(
            self.supabase,
            lambda: self.supabase.table("data_connections")
            .select("id")
            .eq("workspace_id", workspace_id)
            .execute(),
        )
        return [row["id"] for row in result.data or []]

    def get_meta_summary(
        self,
        date_from: str,
        date_to: str,
        connection_id: Optional[str] = None,
        workspace_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Campaign-level Meta metrics for a connection or a whole workspace.

        Raises:
            ValueError: when neither connection_id nor workspace_id is given
        """
        if connection_id:
            connection_ids = [connection_id]
        elif workspace_id:
            connection_ids = self._workspace_connection_ids(workspace_id)
        else:
            raise ValueError("connection_id or workspace_id is required")

        if not connection_ids:
            return aggregate_rows([])

        result = retry_with_session_refresh(
            self.supabase,
            lambda: self.supabase.table("ad_metrics")
            .select("*, campaigns(name)")
            .in_("connection_id", connection_ids)
            .gte("date", date_from)
            .lte("date", date_to)
            .is_("ad_set_id", "null")
            .execute(),
        )

        rows = []
        for row in result.data or []:
            campaign = row.get("campaigns") or {}
            rows.append({**row, "campaign_name": campaign.get("name")})

        logger.debug(f"[DASHBOARD] Aggregating {len(rows)} Meta metric rows")
        return aggregate_rows(rows)

    def get_google_summary(self, workspace_id: str, date_from: str, date_to: str) -> Dict[str, Any]:
        """Campaign-level Google metrics (ad-group rows excluded to avoid double counting)"""
        result = retry_with_session_refresh(
            self.supabase,
            lambda: self.supabase.table("google_insights_daily")
            .select("*")
            .eq("workspace_id", workspace_id)
            .gte("date", date_from)
            .lte("date", date_to)
            .is_("ad_group_id", "null")
            .execute(),
        )

        rows = result.data or []
        logger.debug(f"[DASHBOARD] Aggregating {len(rows)} Google metric rows")
        return aggregate_rows(rows, spend_field="cost")

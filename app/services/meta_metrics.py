"""
Meta insight metric extraction

Turns a raw Graph API insight row (strings, action lists) into the numeric
columns stored in ad_metrics. Rate metrics (ctr, cpc, cpm) are taken as
reported by Meta and never recalculated.
"""

from typing import Any, Dict, List, Optional

from app.core.logging import logger

# Checked in priority order; first present type wins
CONVERSION_ACTION_TYPES = [
    "offsite_conversion.fb_pixel_purchase",
    "purchase",
    "omni_purchase",
    "app_custom_event.fb_mobile_purchase",
]

VIDEO_VIEW_ACTION_TYPES = ["video_view"]


def _to_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _to_int(value: Any) -> int:
    return int(_to_float(value))


def extract_action_value(actions: Optional[List[Dict[str, Any]]], action_types: List[str]) -> float:
    """
    Value of the first action type (in priority order) present in `actions`.

    Args:
        actions: Graph API `actions` or `action_values` list
        action_types: Types to look for, highest priority first

    Returns:
        Parsed value, or 0 when none of the types is present
    """
    if not actions:
        return 0.0

    for action_type in action_types:
        for action in actions:
            if action.get("action_type") == action_type and action.get("value"):
                return _to_float(action["value"])

    return 0.0


def extract_metrics(insight: Dict[str, Any]) -> Dict[str, Any]:
    """
    Extract stored metrics from one daily insight row.

    Args:
        insight: Raw insight dict from the Graph API

    Returns:
        Dict of numeric metrics plus the raw action lists
    """
    actions = insight.get("actions") or []
    action_values = insight.get("action_values") or []

    conversions = extract_action_value(actions, CONVERSION_ACTION_TYPES)
    conversion_value = extract_action_value(action_values, CONVERSION_ACTION_TYPES)
    video_views = extract_action_value(actions, VIDEO_VIEW_ACTION_TYPES)

    spend = _to_float(insight.get("spend"))

    metrics = {
        "impressions": _to_int(insight.get("impressions")),
        "clicks": _to_int(insight.get("clicks")),
        "spend": spend,
        "reach": _to_int(insight.get("reach")),
        "frequency": _to_float(insight.get("frequency")),
        "ctr": _to_float(insight.get("ctr")),
        "cpc": _to_float(insight.get("cpc")),
        "cpm": _to_float(insight.get("cpm")),
        "conversions": conversions,
        "conversion_value": conversion_value,
        "roas": conversion_value / spend if conversion_value > 0 and spend > 0 else 0.0,
        "cost_per_result": spend / conversions if conversions > 0 else 0.0,
        "video_views": _to_int(video_views),
        "actions_raw": actions or None,
        "action_values_raw": action_values or None,
    }

    logger.debug(
        "[META_ADS] Extracted insight metrics",
        extra={"date": insight.get("date_start"), "spend": spend, "conversions": conversions},
    )

    return metrics


def validate_metrics(metrics: Dict[str, Any]) -> List[str]:
    """Consistency warnings for extracted metrics (empty list when clean)"""
    warnings = []

    if metrics["clicks"] > metrics["impressions"]:
        warnings.append("Número de cliques maior que impressões - dados inconsistentes")

    if metrics["spend"] > 0 and metrics["impressions"] == 0:
        warnings.append("Há gasto mas sem impressões - possível erro de sincronização")

    if metrics["conversions"] > 0 and metrics["conversion_value"] == 0:
        warnings.append("Há conversões mas sem valor - verifique se pixel está configurado corretamente")

    if metrics["ctr"] > 100:
        warnings.append("CTR maior que 100% - dados inconsistentes da API")

    return warnings

"""Connectors module - Ads platform API clients"""

from .meta_graph_client import MetaGraphClient, get_meta_graph_client
from .google_ads_client import GoogleAdsClient

__all__ = [
    "MetaGraphClient",
    "get_meta_graph_client",
    "GoogleAdsClient",
]

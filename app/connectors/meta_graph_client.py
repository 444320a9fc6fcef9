"""
Meta Graph API Client
Thin REST wrapper around the Meta Marketing API (Facebook/Instagram Ads)

API Documentation:
https://developers.facebook.com/docs/marketing-apis
"""

import json
import time
import urllib.parse
from typing import Any, Dict, List, Optional

import requests

from app.core.config import settings
from app.core.logging import logger, log_service_call
from app.services.rate_limiter import get_rate_limiter
from app.utils.errors import MetaApiError


CAMPAIGN_FIELDS = (
    "id,name,status,objective,created_time,start_time,stop_time,"
    "daily_budget,lifetime_budget,budget_remaining"
)
AD_SET_FIELDS = "id,name,status,daily_budget,lifetime_budget,targeting,optimization_goal"
AD_FIELDS = "id,name,status,creative{title,body,image_url,object_type}"
INSIGHT_FIELDS = "impressions,clicks,spend,reach,ctr,cpc,cpm,frequency,actions,action_values"
AD_ACCOUNT_FIELDS = "id,name,account_id,account_status,currency,timezone_name"

OAUTH_SCOPES = ["ads_read", "ads_management", "business_management", "read_insights"]


class MetaGraphClient:
    """
    Meta Graph API client.

    Every call goes through the shared `meta_ads` rate limiter and raises
    MetaApiError when the response carries an `error` object.
    """

    def __init__(
        self,
        api_version: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize Graph API client.

        Args:
            api_version: Graph API version (defaults to settings.META_API_VERSION)
            timeout: Request timeout in seconds
            session: Optional requests session (tests pass a mock)
        """
        self.api_version = api_version or settings.META_API_VERSION
        self.base_url = f"https://graph.facebook.com/{self.api_version}"
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.http = session or requests.Session()
        self.rate_limiter = get_rate_limiter("meta_ads")

    # ------------------------------------------------------------------
    # Low-level request helpers
    # ------------------------------------------------------------------

    def _request(self, method: str, path_or_url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = path_or_url if path_or_url.startswith("http") else f"{self.base_url}/{path_or_url.lstrip('/')}"

        log_service_call("META_GRAPH", method, path=path_or_url.split("?")[0])
        self.rate_limiter.wait(path_or_url.split("?")[0])
        response = self.http.request(method, url, params=params, timeout=self.timeout)
        self._update_rate_limit(response)

        try:
            data = response.json()
        except ValueError:
            raise MetaApiError(f"Invalid JSON response (HTTP {response.status_code})")

        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            raise MetaApiError(
                error.get("message", "Unknown error"),
                error.get("code"),
                error.get("type"),
                error.get("error_subcode"),
            )

        return data

    def _update_rate_limit(self, response: requests.Response) -> None:
        """Feed Meta's x-app-usage header (percent of quota used) into the limiter"""
        headers = getattr(response, "headers", None) or {}
        usage = headers.get("x-app-usage") if hasattr(headers, "get") else None
        if not usage:
            return

        try:
            call_count = json.loads(usage).get("call_count", 0)
        except (ValueError, AttributeError):
            return

        limit = self.rate_limiter.max_requests
        remaining = int(limit * (100 - call_count) / 100)
        self.rate_limiter.update_from_headers(limit, remaining, time.time() + 3600)

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request("GET", path, params)

    def _get_all(self, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Fetch a list endpoint, following paging.next until exhausted"""
        items: List[Dict[str, Any]] = []
        page = self._get(path, params)

        while True:
            items.extend(page.get("data", []))
            next_url = (page.get("paging") or {}).get("next")
            if not next_url:
                break
            page = self._get(next_url)

        return items

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    def authorization_url(self, state: str, redirect_uri: Optional[str] = None) -> str:
        """
        Build the Facebook OAuth dialog URL.

        Args:
            state: CSRF nonce echoed back on callback
            redirect_uri: Callback URL (defaults to settings.META_ADS_REDIRECT_URI)

        Returns:
            Authorization URL
        """
        params = {
            "client_id": settings.META_ADS_APP_ID,
            "redirect_uri": redirect_uri or settings.META_ADS_REDIRECT_URI,
            "state": state,
            "scope": ",".join(OAUTH_SCOPES),
            "response_type": "code",
        }
        return f"https://www.facebook.com/{self.api_version}/dialog/oauth?" + urllib.parse.urlencode(params)

    def exchange_code(self, code: str, redirect_uri: Optional[str] = None) -> Dict[str, Any]:
        """Exchange an authorization code for a short-lived user token"""
        return self._get("oauth/access_token", {
            "client_id": settings.META_ADS_APP_ID,
            "client_secret": settings.META_ADS_APP_SECRET,
            "redirect_uri": redirect_uri or settings.META_ADS_REDIRECT_URI,
            "code": code,
        })

    def exchange_long_lived_token(self, access_token: str) -> Dict[str, Any]:
        """
        Exchange a token for a long-lived (~60 day) token.

        Returns:
            Dict with access_token, token_type and expires_in
        """
        return self._get("oauth/access_token", {
            "grant_type": "fb_exchange_token",
            "client_id": settings.META_ADS_APP_ID,
            "client_secret": settings.META_ADS_APP_SECRET,
            "fb_exchange_token": access_token,
        })

    # ------------------------------------------------------------------
    # Marketing API reads
    # ------------------------------------------------------------------

    def get_me(self, access_token: str) -> Dict[str, Any]:
        return self._get("me", {"access_token": access_token})

    def list_ad_accounts(self, access_token: str) -> List[Dict[str, Any]]:
        return self._get_all("me/adaccounts", {"fields": AD_ACCOUNT_FIELDS, "access_token": access_token})

    def get_campaigns(self, access_token: str, account_id: str) -> List[Dict[str, Any]]:
        return self._get_all(f"{account_id}/campaigns", {"fields": CAMPAIGN_FIELDS, "access_token": access_token})

    def get_ad_sets(self, access_token: str, campaign_id: str) -> List[Dict[str, Any]]:
        return self._get_all(f"{campaign_id}/adsets", {"fields": AD_SET_FIELDS, "access_token": access_token})

    def get_ads(self, access_token: str, ad_set_id: str) -> List[Dict[str, Any]]:
        return self._get_all(f"{ad_set_id}/ads", {"fields": AD_FIELDS, "access_token": access_token})

    def get_insights(
        self,
        access_token: str,
        object_id: str,
        date_start: str,
        date_end: str,
    ) -> List[Dict[str, Any]]:
        """
        Daily insights for a campaign, ad set or ad.

        Args:
            access_token: User or system-user token
            object_id: Graph object id
            date_start: YYYY-MM-DD (inclusive)
            date_end: YYYY-MM-DD (inclusive)

        Returns:
            One dict per day with raw string metrics and action lists
        """
        return self._get_all(f"{object_id}/insights", {
            "fields": INSIGHT_FIELDS,
            "time_range": json.dumps({"since": date_start, "until": date_end}),
            "time_increment": 1,
            "access_token": access_token,
        })


# Global client instance
_meta_graph_client: Optional[MetaGraphClient] = None


def get_meta_graph_client() -> MetaGraphClient:
    """Get or create global Graph API client"""
    global _meta_graph_client

    if _meta_graph_client is None:
        _meta_graph_client = MetaGraphClient()
        logger.info(f"[META_ADS] Graph client initialized ({_meta_graph_client.api_version})")

    return _meta_graph_client

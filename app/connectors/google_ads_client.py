"""
Google Ads REST Client
GAQL queries against googleads.googleapis.com plus Google OAuth token calls

API Documentation:
https://developers.google.com/google-ads/api/rest/overview
"""

import urllib.parse
from typing import Any, Dict, List, Optional

import requests

from app.core.config import settings
from app.core.logging import logger, log_service_call
from app.utils.errors import GoogleAdsApiError


OAUTH_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"
OAUTH_SCOPE = "https://www.googleapis.com/auth/adwords"

CAMPAIGNS_QUERY = """
    SELECT campaign.id, campaign.name, campaign.status, campaign_budget.amount_micros
    FROM campaign
    WHERE campaign.status != 'REMOVED'
"""

AD_GROUPS_QUERY = """
    SELECT ad_group.id, ad_group.name, ad_group.status, campaign.id
    FROM ad_group
    WHERE ad_group.status != 'REMOVED'
"""

ADS_QUERY = """
    SELECT ad_group_ad.ad.id, ad_group_ad.ad.name, ad_group_ad.status, ad_group.id, campaign.id
    FROM ad_group_ad
    WHERE ad_group_ad.status != 'REMOVED'
"""

CAMPAIGN_METRICS_QUERY = """
    SELECT segments.date, campaign.id, campaign.name,
      metrics.impressions, metrics.clicks, metrics.cost_micros,
      metrics.conversions, metrics.conversions_value
    FROM campaign
    WHERE segments.date BETWEEN '{date_from}' AND '{date_to}'
      AND campaign.status != 'REMOVED'
"""

AD_GROUP_METRICS_QUERY = """
    SELECT segments.date, campaign.id, campaign.name, ad_group.id, ad_group.name,
      metrics.impressions, metrics.clicks, metrics.cost_micros,
      metrics.conversions, metrics.conversions_value
    FROM ad_group
    WHERE segments.date BETWEEN '{date_from}' AND '{date_to}'
      AND campaign.status != 'REMOVED'
      AND ad_group.status != 'REMOVED'
"""


def micros_to_decimal(micros: Any) -> float:
    """Google Ads reports money in micros (1,000,000 = 1 currency unit)"""
    return float(micros or 0) / 1_000_000


def clean_customer_id(customer_id: str) -> str:
    return str(customer_id).replace("-", "")


class GoogleAdsClient:
    """
    Google Ads REST client for one developer token.

    Request accounting is left to the caller (GoogleSyncService counts
    every fetch against the daily limit).
    """

    def __init__(
        self,
        developer_token: Optional[str] = None,
        login_customer_id: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        self.developer_token = developer_token or settings.GOOGLE_ADS_DEVELOPER_TOKEN
        self.login_customer_id = clean_customer_id(login_customer_id) if login_customer_id else None
        self.api_version = api_version or settings.GOOGLE_ADS_API_VERSION
        self.base_url = f"https://googleads.googleapis.com/{self.api_version}"
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.http = session or requests.Session()

    def _headers(self, access_token: str, customer_id: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "developer-token": self.developer_token,
            "Content-Type": "application/json",
        }
        if self.login_customer_id and self.login_customer_id != customer_id:
            headers["login-customer-id"] = self.login_customer_id
        return headers

    def _check(self, response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            error = data.get("error", {}) if isinstance(data, dict) else {}
            message = error.get("message") or f"HTTP {response.status_code}"
            details = error.get("details") or []
            if details and details[0].get("errors"):
                message = "; ".join(e.get("message", "") for e in details[0]["errors"])
            raise GoogleAdsApiError(message, response.status_code)

        return data

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    def authorization_url(self, state: str, redirect_uri: Optional[str] = None) -> str:
        params = {
            "client_id": settings.GOOGLE_ADS_CLIENT_ID,
            "redirect_uri": redirect_uri or settings.GOOGLE_ADS_REDIRECT_URI,
            "response_type": "code",
            "scope": OAUTH_SCOPE,
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{OAUTH_AUTHORIZE_URL}?" + urllib.parse.urlencode(params)

    def exchange_code(self, code: str, redirect_uri: Optional[str] = None) -> Dict[str, Any]:
        """
        Exchange an authorization code for tokens.

        Returns:
            Dict with access_token, refresh_token, expires_in, scope
        """
        response = self.http.post(OAUTH_TOKEN_URL, data={
            "code": code,
            "client_id": settings.GOOGLE_ADS_CLIENT_ID,
            "client_secret": settings.GOOGLE_ADS_CLIENT_SECRET,
            "redirect_uri": redirect_uri or settings.GOOGLE_ADS_REDIRECT_URI,
            "grant_type": "authorization_code",
        }, timeout=self.timeout)
        return self._check(response)

    def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        response = self.http.post(OAUTH_TOKEN_URL, data={
            "client_id": settings.GOOGLE_ADS_CLIENT_ID,
            "client_secret": settings.GOOGLE_ADS_CLIENT_SECRET,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }, timeout=self.timeout)
        return self._check(response)

    # ------------------------------------------------------------------
    # Google Ads API
    # ------------------------------------------------------------------

    def list_accessible_customers(self, access_token: str) -> List[str]:
        """Customer ids the OAuth user can access directly"""
        response = self.http.get(
            f"{self.base_url}/customers:listAccessibleCustomers",
            headers=self._headers(access_token),
            timeout=self.timeout,
        )
        data = self._check(response)
        return [name.split("/")[-1] for name in data.get("resourceNames", [])]

    def search(self, access_token: str, customer_id: str, query: str) -> List[Dict[str, Any]]:
        """
        Run a GAQL query, following nextPageToken.

        Returns:
            Raw result rows (camelCase JSON)
        """
        customer_id = clean_customer_id(customer_id)
        url = f"{self.base_url}/customers/{customer_id}/googleAds:search"
        body: Dict[str, Any] = {"query": " ".join(query.split())}
        rows: List[Dict[str, Any]] = []
        log_service_call("GOOGLE_ADS", "search", customer_id=customer_id)

        while True:
            response = self.http.post(
                url, json=body, headers=self._headers(access_token, customer_id), timeout=self.timeout
            )
            data = self._check(response)
            rows.extend(data.get("results", []))

            page_token = data.get("nextPageToken")
            if not page_token:
                break
            body["pageToken"] = page_token

        return rows

    def get_customer(self, access_token: str, customer_id: str) -> Dict[str, Any]:
        rows = self.search(access_token, customer_id, """
            SELECT customer.id, customer.descriptive_name, customer.currency_code,
              customer.time_zone, customer.manager
            FROM customer
            LIMIT 1
        """)
        customer = rows[0].get("customer", {}) if rows else {}
        return {
            "customer_id": str(customer.get("id", clean_customer_id(customer_id))),
            "name": customer.get("descriptiveName") or f"Conta {customer_id}",
            "currency_code": customer.get("currencyCode", "BRL"),
            "timezone": customer.get("timeZone", "America/Sao_Paulo"),
            "is_manager": bool(customer.get("manager", False)),
        }

    def get_campaigns(self, access_token: str, customer_id: str) -> List[Dict[str, Any]]:
        rows = self.search(access_token, customer_id, CAMPAIGNS_QUERY)
        return [
            {
                "id": str(row["campaign"]["id"]),
                "name": row["campaign"].get("name", ""),
                "status": row["campaign"].get("status", ""),
                "budget": micros_to_decimal((row.get("campaignBudget") or {}).get("amountMicros")),
            }
            for row in rows
        ]

    def get_ad_groups(self, access_token: str, customer_id: str) -> List[Dict[str, Any]]:
        rows = self.search(access_token, customer_id, AD_GROUPS_QUERY)
        return [
            {
                "id": str(row["adGroup"]["id"]),
                "campaignId": str(row["campaign"]["id"]),
                "name": row["adGroup"].get("name", ""),
                "status": row["adGroup"].get("status", ""),
            }
            for row in rows
        ]

    def get_ads(self, access_token: str, customer_id: str) -> List[Dict[str, Any]]:
        rows = self.search(access_token, customer_id, ADS_QUERY)
        return [
            {
                "id": str(row["adGroupAd"]["ad"]["id"]),
                "adGroupId": str(row["adGroup"]["id"]),
                "campaignId": str(row["campaign"]["id"]),
                "status": row["adGroupAd"].get("status", ""),
            }
            for row in rows
        ]

    def get_daily_metrics(
        self,
        access_token: str,
        customer_id: str,
        date_from: str,
        date_to: str,
    ) -> List[Dict[str, Any]]:
        """
        Daily metrics at campaign level and ad-group level.

        Campaign rows carry adGroupId None. Cost is converted from micros.
        """
        metrics: List[Dict[str, Any]] = []

        for query, with_ad_group in (
            (CAMPAIGN_METRICS_QUERY, False),
            (AD_GROUP_METRICS_QUERY, True),
        ):
            rows = self.search(access_token, customer_id, query.format(date_from=date_from, date_to=date_to))
            for row in rows:
                ad_group = row.get("adGroup") or {}
                data = row.get("metrics") or {}
                metrics.append({
                    "date": row["segments"]["date"],
                    "campaignId": str(row["campaign"]["id"]),
                    "campaignName": row["campaign"].get("name", ""),
                    "adGroupId": str(ad_group["id"]) if with_ad_group else None,
                    "adGroupName": ad_group.get("name") if with_ad_group else None,
                    "impressions": int(data.get("impressions", 0)),
                    "clicks": int(data.get("clicks", 0)),
                    "cost": micros_to_decimal(data.get("costMicros")),
                    "conversions": float(data.get("conversions", 0)),
                    "conversionValue": float(data.get("conversionsValue", 0)),
                })

        logger.debug(f"[GOOGLE_ADS] {len(metrics)} metric rows for {customer_id} ({date_from}..{date_to})")
        return metrics

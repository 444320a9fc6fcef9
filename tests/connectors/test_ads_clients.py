"""
Tests for the Meta Graph and Google Ads REST clients
"""

import json
import pytest
from unittest.mock import Mock, patch

from app.connectors.google_ads_client import GoogleAdsClient, clean_customer_id, micros_to_decimal
from app.connectors.meta_graph_client import MetaGraphClient
from app.utils.errors import GoogleAdsApiError, MetaApiError


def response(payload, status=200, headers=None):
    resp = Mock()
    resp.status_code = status
    resp.json.return_value = payload
    resp.headers = headers or {}
    return resp


class TestMetaGraphClient:
    """Tests for Graph API requests."""

    @pytest.fixture
    def http(self):
        return Mock()

    @pytest.fixture
    def client(self, http):
        client = MetaGraphClient(api_version="v19.0", session=http)
        client.rate_limiter = Mock()
        return client

    def test_follows_paging_next(self, client, http):
        http.request.side_effect = [
            response({"data": [{"id": "c1"}], "paging": {"next": "https://graph.facebook.com/v19.0/next-page"}}),
            response({"data": [{"id": "c2"}]}),
        ]

        campaigns = client.get_campaigns("EAAtoken", "act_1")

        assert [c["id"] for c in campaigns] == ["c1", "c2"]
        assert http.request.call_args_list[1][0][1] == "https://graph.facebook.com/v19.0/next-page"
        assert client.rate_limiter.wait.call_count == 2

    def test_error_payload_raises(self, client, http):
        http.request.return_value = response(
            {"error": {"message": "Invalid OAuth access token.", "type": "OAuthException", "code": 190}},
            status=400,
        )

        with pytest.raises(MetaApiError) as exc_info:
            client.get_me("EAAbad")

        assert exc_info.value.error_code == 190
        assert "Code: 190" in str(exc_info.value)

    def test_insights_request_daily_breakdown(self, client, http):
        http.request.return_value = response({"data": []})

        client.get_insights("EAAtoken", "c1", "2024-05-01", "2024-05-31")

        params = http.request.call_args[1]["params"]
        assert params["time_increment"] == 1
        assert json.loads(params["time_range"]) == {"since": "2024-05-01", "until": "2024-05-31"}

    def test_usage_header_updates_limiter(self, client, http):
        client.rate_limiter.max_requests = 200
        http.request.return_value = response({"id": "1"}, headers={"x-app-usage": '{"call_count": 75}'})

        client.get_me("EAAtoken")

        limit, remaining, _ = client.rate_limiter.update_from_headers.call_args[0]
        assert (limit, remaining) == (200, 50)

    def test_requests_are_logged_without_query_string(self, client, http):
        http.request.return_value = response({"data": []})

        with patch("app.connectors.meta_graph_client.log_service_call") as log_call:
            client._request("GET", "https://graph.facebook.com/v19.0/next-page?access_token=EAAsecret")

        log_call.assert_called_once_with("META_GRAPH", "GET", path="https://graph.facebook.com/v19.0/next-page")

    def test_authorization_url_carries_state(self, client):
        assert "state=abc" in client.authorization_url("abc")


class TestGoogleAdsClient:
    """Tests for Google Ads REST requests."""

    @pytest.fixture
    def http(self):
        return Mock()

    @pytest.fixture
    def client(self, http):
        return GoogleAdsClient("dev-token", "123-456-7890", api_version="v17", session=http)

    def test_search_follows_page_token(self, client, http):
        http.post.side_effect = [
            response({"results": [{"campaign": {"id": "1"}}], "nextPageToken": "p2"}),
            response({"results": [{"campaign": {"id": "2"}}]}),
        ]

        rows = client.search("ya29", "111-222-3333", "SELECT campaign.id FROM campaign")

        assert len(rows) == 2
        assert http.post.call_args_list[1][1]["json"]["pageToken"] == "p2"
        assert "/customers/1112223333/googleAds:search" in http.post.call_args_list[0][0][0]

    def test_search_is_logged_once_per_query(self, client, http):
        http.post.side_effect = [
            response({"results": [], "nextPageToken": "p2"}),
            response({"results": []}),
        ]

        with patch("app.connectors.google_ads_client.log_service_call") as log_call:
            client.search("ya29", "111-222-3333", "SELECT campaign.id FROM campaign")

        log_call.assert_called_once_with("GOOGLE_ADS", "search", customer_id="1112223333")

    def test_login_customer_header_for_client_accounts(self, client):
        assert client._headers("ya29", "1112223333")["login-customer-id"] == "1234567890"
        assert "login-customer-id" not in client._headers("ya29", "1234567890")

    def test_error_response_raises(self, client, http):
        http.post.return_value = response(
            {"error": {"message": "Request had invalid authentication credentials.", "status": "UNAUTHENTICATED"}},
            status=401,
        )

        with pytest.raises(GoogleAdsApiError) as exc_info:
            client.search("ya29", "111", "SELECT customer.id FROM customer")

        assert exc_info.value.status == 401

    def test_daily_metrics_convert_micros(self, client, http):
        campaign_row = {
            "campaign": {"id": "1", "name": "Search"},
            "segments": {"date": "2024-05-01"},
            "metrics": {"impressions": "100", "clicks": "5", "costMicros": "2500000",
                        "conversions": 1.0, "conversionsValue": 30.0},
        }
        ad_group_row = {**campaign_row, "adGroup": {"id": "9", "name": "Grupo"}}
        http.post.side_effect = [response({"results": [campaign_row]}), response({"results": [ad_group_row]})]

        metrics = client.get_daily_metrics("ya29", "111", "2024-05-01", "2024-05-07")

        assert metrics[0]["cost"] == 2.5
        assert metrics[0]["adGroupId"] is None
        assert metrics[1]["adGroupId"] == "9"
        assert metrics[1]["impressions"] == 100

    def test_list_accessible_customers(self, client, http):
        http.get.return_value = response({"resourceNames": ["customers/111", "customers/222"]})

        assert client.list_accessible_customers("ya29") == ["111", "222"]


def test_helpers():
    assert micros_to_decimal("1500000") == 1.5
    assert micros_to_decimal(None) == 0.0
    assert clean_customer_id("123-456-7890") == "1234567890"

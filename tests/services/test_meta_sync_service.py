"""
Tests for MetaSyncService
"""

import pytest
from datetime import date
from unittest.mock import Mock

from app.services.meta_sync_service import MetaSyncService
from app.utils import crypto
from app.utils.errors import MetaApiError, SyncError

CONNECTION = {
    "id": "conn-1",
    "user_id": "user-1",
    "workspace_id": "ws-1",
    "platform": "meta",
    "config": {"accountId": "act_123"},
}


@pytest.fixture
def graph_client():
    """Graph client returning three campaigns and nothing below them."""
    graph = Mock()
    graph.get_me.return_value = {"id": "1", "name": "Tester"}
    graph.get_campaigns.return_value = [
        {"id": f"c{i}", "name": f"Campanha {i}", "status": "ACTIVE", "daily_budget": "5000"}
        for i in range(1, 4)
    ]
    graph.get_ad_sets.return_value = []
    graph.get_ads.return_value = []
    graph.get_insights.return_value = []
    return graph


@pytest.fixture
def supabase(fake_supabase):
    fake_supabase.on("data_connections", "select", [CONNECTION])
    fake_supabase.on("sync_jobs", "insert", [{"id": "job-1"}])
    return fake_supabase


def statuses(supabase):
    return [p["status"] for p in supabase.payloads("data_connections", "update") if "status" in p]


class TestSyncConnection:
    """Tests for a full connection sync."""

    def test_upserts_one_row_per_campaign(self, supabase, graph_client):
        """N campaigns from the API yield N campaign upserts."""
        service = MetaSyncService(supabase, graph_client=graph_client, access_token="EAAtoken")

        result = service.sync_connection("conn-1")

        campaign_rows = supabase.payloads("campaigns", "upsert")
        assert len(campaign_rows) == 3
        assert [row["id"] for row in campaign_rows] == ["c1", "c2", "c3"]
        assert all(q.options.get("on_conflict") == "id" for q in supabase.calls("campaigns", "upsert"))
        assert campaign_rows[0]["daily_budget"] == 50.0
        assert result.success is True
        assert result.campaigns_synced == 3
        assert result.job_id == "job-1"

    def test_days_back_per_run(self, supabase, graph_client):
        service = MetaSyncService(supabase, graph_client=graph_client, access_token="EAAtoken", days_back=30)

        result = service.sync_connection("conn-1", days_back=7)

        since = date.fromisoformat(result.date_range_start)
        until = date.fromisoformat(result.date_range_end)
        assert (until - since).days == 7
        assert graph_client.get_insights.call_args[0][2] == result.date_range_start

    def test_marks_connection_syncing_then_connected(self, supabase, graph_client):
        service = MetaSyncService(supabase, graph_client=graph_client, access_token="EAAtoken")

        service.sync_connection("conn-1")

        assert statuses(supabase) == ["syncing", "connected"]
        job_update = supabase.payloads("sync_jobs", "update")[-1]
        assert job_update["status"] == "completed"
        assert job_update["campaigns_synced"] == 3

    def test_fetch_failure_sets_error_status(self, supabase, graph_client):
        """A failing API call flips the connection to error and re-raises."""
        graph_client.get_campaigns.side_effect = MetaApiError("boom", 1, "OAuthException")
        service = MetaSyncService(supabase, graph_client=graph_client, access_token="EAAtoken")

        with pytest.raises(MetaApiError):
            service.sync_connection("conn-1")

        assert statuses(supabase)[-1] == "error"
        job_update = supabase.payloads("sync_jobs", "update")[-1]
        assert job_update["status"] == "failed"
        assert "boom" in job_update["error_message"]

    def test_invalid_token_fails_before_job_creation(self, supabase, graph_client):
        graph_client.get_me.side_effect = MetaApiError("Invalid OAuth access token", 190)
        service = MetaSyncService(supabase, graph_client=graph_client, access_token="EAAtoken")

        with pytest.raises(SyncError):
            service.sync_connection("conn-1")

        assert supabase.calls("sync_jobs", "insert") == []
        assert statuses(supabase)[-1] == "error"

    def test_missing_account_id_raises(self, fake_supabase, graph_client):
        fake_supabase.on("data_connections", "select", [{**CONNECTION, "config": {}}])
        service = MetaSyncService(fake_supabase, graph_client=graph_client, access_token="EAAtoken")

        with pytest.raises(SyncError):
            service.sync_connection("conn-1")

    def test_saves_ad_sets_ads_and_insights(self, supabase, graph_client):
        graph_client.get_campaigns.return_value = [{"id": "c1", "name": "Campanha"}]
        graph_client.get_ad_sets.return_value = [{"id": "as1", "name": "Conjunto"}]
        graph_client.get_ads.return_value = [{"id": "ad1", "name": "Anuncio", "creative": {"title": "Oferta"}}]
        graph_client.get_insights.return_value = [
            {"date_start": "2024-05-01", "impressions": "1000", "clicks": "20", "spend": "10.5"},
        ]
        service = MetaSyncService(supabase, graph_client=graph_client, access_token="EAAtoken")

        result = service.sync_connection("conn-1")

        assert result.ad_sets_synced == 1
        assert result.ads_synced == 1
        assert result.metrics_synced == 1
        assert supabase.payloads("ads", "upsert")[0]["headline"] == "Oferta"

        metric = supabase.payloads("ad_metrics", "insert")[0]
        assert metric["campaign_id"] == "c1"
        assert metric["date"] == "2024-05-01"
        assert metric["impressions"] == 1000
        assert metric["spend"] == 10.5

    def test_existing_metric_row_is_updated(self, supabase, graph_client):
        graph_client.get_campaigns.return_value = [{"id": "c1", "name": "Campanha"}]
        graph_client.get_insights.return_value = [{"date_start": "2024-05-01", "spend": "3"}]
        supabase.on("ad_metrics", "select", [{"id": "m-1"}])
        service = MetaSyncService(supabase, graph_client=graph_client, access_token="EAAtoken")

        service.sync_connection("conn-1")

        assert supabase.calls("ad_metrics", "insert") == []
        update = supabase.calls("ad_metrics", "update")[0]
        assert update.filter_value("id") == "m-1"


class TestTokenResolution:
    """Tests for reading the stored access token."""

    def test_decrypts_stored_token(self, supabase, graph_client):
        supabase.on("oauth_tokens", "select", [{"access_token": crypto.encrypt("EAAsecret")}])
        service = MetaSyncService(supabase, graph_client=graph_client)

        service.sync_connection("conn-1")

        graph_client.get_me.assert_called_once_with("EAAsecret")

    def test_plain_meta_token_is_used_as_is(self, supabase, graph_client):
        supabase.on("oauth_tokens", "select", [{"access_token": "EAAplain "}])
        service = MetaSyncService(supabase, graph_client=graph_client)

        service.sync_connection("conn-1")

        graph_client.get_me.assert_called_once_with("EAAplain")

    def test_undecryptable_token_raises_sync_error(self, supabase, graph_client):
        supabase.on("oauth_tokens", "select", [{"access_token": "garbage"}])
        service = MetaSyncService(supabase, graph_client=graph_client)

        with pytest.raises(SyncError):
            service.sync_connection("conn-1")

"""
Tests for TokenManager and TokenRefreshService
"""

import pytest
from unittest.mock import Mock
from datetime import datetime, timedelta, timezone

from app.services.token_manager import TokenManager
from app.services.token_refresh_service import TokenRefreshService, classify_expiry
from app.utils import crypto
from app.utils.errors import MetaApiError

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def stored_token(expires_in_seconds=None, refresh_token=None, **extra):
    now = datetime.now(timezone.utc)
    return {
        "connection_id": "conn-1",
        "user_id": "user-1",
        "access_token": crypto.encrypt("EAAaccess"),
        "refresh_token": crypto.encrypt(refresh_token) if refresh_token else None,
        "expires_at": (now + timedelta(seconds=expires_in_seconds)).isoformat() if expires_in_seconds else None,
        "account_id": "act_1",
        "refresh_attempts": 0,
        **extra,
    }


class TestTokenManager:
    """Tests for encrypted token storage."""

    def test_save_encrypts(self, fake_supabase):
        TokenManager(fake_supabase, "meta").save_token("conn-1", "user-1", "EAAaccess", "act_1", 3600)

        query = fake_supabase.calls("oauth_tokens", "upsert")[0]
        assert query.options["on_conflict"] == "connection_id"
        assert query.payload["access_token"] != "EAAaccess"
        assert crypto.decrypt(query.payload["access_token"]) == "EAAaccess"
        assert query.payload["refresh_token"] is None

    def test_get_decrypts(self, fake_supabase):
        fake_supabase.on("oauth_tokens", "select", [stored_token(refresh_token="r-1")])

        token = TokenManager(fake_supabase, "google").get_token("conn-1")

        assert token["access_token"] == "EAAaccess"
        assert token["refresh_token"] == "r-1"

    def test_missing_token(self, fake_supabase):
        manager = TokenManager(fake_supabase, "meta")

        assert manager.get_token("conn-1") is None
        assert manager.is_token_valid("conn-1") is False
        assert manager.needs_refresh("conn-1") is True

    def test_needs_refresh_within_an_hour(self, fake_supabase):
        fake_supabase.on("oauth_tokens", "select", [stored_token(expires_in_seconds=1800)])

        assert TokenManager(fake_supabase, "meta").needs_refresh("conn-1") is True

    def test_non_expiring_token_is_valid(self, fake_supabase):
        fake_supabase.on("oauth_tokens", "select", [stored_token()])
        manager = TokenManager(fake_supabase, "meta")

        assert manager.is_token_valid("conn-1") is True
        assert manager.needs_refresh("conn-1") is False

    def test_refresh_success_keeps_refresh_token(self, fake_supabase):
        fake_supabase.on("oauth_tokens", "select", [stored_token(60, refresh_token="r-1")])

        result = TokenManager(fake_supabase, "google").refresh_token(
            "conn-1", lambda refresh: {"access_token": "new", "expires_in": 3600}
        )

        assert result == {"success": True, "error": None}
        saved = fake_supabase.payloads("oauth_tokens", "upsert")[0]
        assert crypto.decrypt(saved["access_token"]) == "new"
        assert crypto.decrypt(saved["refresh_token"]) == "r-1"

    def test_refresh_failure_counts_attempt(self, fake_supabase):
        fake_supabase.on("oauth_tokens", "select", [stored_token(60, refresh_token="r-1", refresh_attempts=2)])

        result = TokenManager(fake_supabase, "google").refresh_token(
            "conn-1", Mock(side_effect=Exception("invalid_grant"))
        )

        assert result["success"] is False
        assert fake_supabase.payloads("oauth_tokens", "update")[0]["refresh_attempts"] == 3

    def test_refresh_without_refresh_token(self, fake_supabase):
        fake_supabase.on("oauth_tokens", "select", [stored_token(60)])

        result = TokenManager(fake_supabase, "meta").refresh_token("conn-1", Mock())

        assert result == {"success": False, "error": "No refresh token available"}


class TestClassifyExpiry:
    """Tests for expiry classification."""

    def test_valid(self):
        assert classify_expiry(NOW + timedelta(days=30), NOW) == {"status": "valid", "days_remaining": 30}

    def test_expiring_soon(self):
        assert classify_expiry(NOW + timedelta(days=5), NOW)["status"] == "expiring_soon"

    def test_expired(self):
        assert classify_expiry(NOW - timedelta(hours=1), NOW)["status"] == "expired"

    def test_unknown(self):
        assert classify_expiry(None) == {"status": "unknown", "days_remaining": None}


class TestTokenRefreshService:
    """Tests for Meta long-lived token renewal."""

    @pytest.fixture
    def graph(self):
        graph = Mock()
        graph.exchange_long_lived_token.return_value = {"access_token": "EAAnew", "expires_in": 5184000}
        return graph

    @pytest.fixture
    def supabase(self, fake_supabase):
        fake_supabase.on("data_connections", "select", [{"id": "conn-1", "status": "connected"}])
        fake_supabase.on("oauth_tokens", "select", [stored_token(3 * 86400)])
        return fake_supabase

    def test_status_from_stored_expiry(self, supabase, graph):
        status = TokenRefreshService(supabase, graph).get_token_expiry_status("ws-1")

        assert status.status == "expiring_soon"
        assert status.connection_id == "conn-1"

    def test_status_without_connection(self, fake_supabase, graph):
        status = TokenRefreshService(fake_supabase, graph).get_token_expiry_status("ws-1")

        assert status.status == "unknown"

    def test_refresh_saves_new_token(self, supabase, graph):
        result = TokenRefreshService(supabase, graph).refresh_meta_token("ws-1")

        assert result["success"] is True
        graph.exchange_long_lived_token.assert_called_once_with("EAAaccess")
        saved = supabase.payloads("oauth_tokens", "upsert")[0]
        assert crypto.decrypt(saved["access_token"]) == "EAAnew"

    def test_invalid_token_requires_reconnect(self, supabase, graph):
        graph.exchange_long_lived_token.side_effect = MetaApiError("Session has expired", 190)

        result = TokenRefreshService(supabase, graph).refresh_meta_token("ws-1")

        assert result["success"] is False
        assert result["requires_reconnect"] is True
        assert supabase.payloads("data_connections", "update") == [{"status": "error"}]

    def test_auto_refresh_when_expiring(self, supabase, graph):
        result = TokenRefreshService(supabase, graph).check_and_auto_refresh("ws-1")

        assert result["was_refreshed"] is True
        assert result["token_valid"] is True

    def test_auto_refresh_skips_valid_token(self, supabase, graph):
        supabase.on("oauth_tokens", "select", [stored_token(30 * 86400)])

        result = TokenRefreshService(supabase, graph).check_and_auto_refresh("ws-1")

        assert result["was_refreshed"] is False
        graph.exchange_long_lived_token.assert_not_called()

    def test_refresh_updates_every_connection_sharing_the_token(self, fake_supabase, graph):
        fake_supabase.on("data_connections", "select", [
            {"id": "conn-1", "status": "connected"},
            {"id": "conn-2", "status": "connected"},
            {"id": "conn-3", "status": "connected"},
        ])
        other_consent = {"conn-3": crypto.encrypt("EAAother")}

        def token_for(query):
            connection_id = query.filter_value("connection_id")
            row = stored_token(3 * 86400, connection_id=connection_id, account_id=f"act_{connection_id[-1]}")
            if connection_id in other_consent:
                row["access_token"] = other_consent[connection_id]
            return [row]

        fake_supabase.on("oauth_tokens", "select", token_for)

        result = TokenRefreshService(fake_supabase, graph).refresh_meta_token("ws-1")

        saved = fake_supabase.payloads("oauth_tokens", "upsert")
        assert result["connections_updated"] == 2
        assert [row["connection_id"] for row in saved] == ["conn-1", "conn-2"]
        assert [row["account_id"] for row in saved] == ["act_1", "act_2"]
        assert all(crypto.decrypt(row["access_token"]) == "EAAnew" for row in saved)
        assert fake_supabase.calls("data_connections", "select")[0].filters[-1][0] == "order"

    def test_dead_token_marks_every_sharing_connection(self, fake_supabase, graph):
        fake_supabase.on("data_connections", "select", [{"id": "conn-1"}, {"id": "conn-2"}])
        fake_supabase.on("oauth_tokens", "select", [stored_token(3 * 86400)])
        graph.exchange_long_lived_token.side_effect = MetaApiError("Session has expired", 190)

        TokenRefreshService(fake_supabase, graph).refresh_meta_token("ws-1")

        update = fake_supabase.calls("data_connections", "update")[0]
        assert update.filter_value("id", "in_") == ["conn-1", "conn-2"]

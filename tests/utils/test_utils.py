"""
Unit tests for error helpers, retry and token encryption
"""

import pytest
from unittest.mock import Mock

from app.utils import crypto
from app.utils.errors import (
    GoogleAdsApiError,
    MetaApiError,
    NoAccountsFoundError,
    TokenDecryptionError,
    RateLimitExceeded,
    is_rls_error,
    user_message,
)
from app.utils.retry import with_retry


class TestIsRlsError:
    """Tests for RLS error detection."""

    def test_codes(self):
        assert is_rls_error({"code": "PGRST116", "message": ""})
        assert is_rls_error({"code": "42501"})

    def test_messages(self):
        assert is_rls_error({"message": "Permission denied for table campaigns"})
        assert is_rls_error(Exception("new row violates row-level security policy"))

    def test_unrelated(self):
        assert not is_rls_error(None)
        assert not is_rls_error({"code": "23505", "message": "duplicate key"})


class TestUserMessage:
    """Tests for Portuguese user-facing messages."""

    def test_no_accounts(self):
        assert user_message(NoAccountsFoundError()) == "Nenhuma conta de anúncios encontrada"

    def test_expired_meta_token(self):
        assert "expirou" in user_message(MetaApiError("Session has expired", 190))

    def test_google_unauthorized(self):
        assert "expirou" in user_message(GoogleAdsApiError("UNAUTHENTICATED", 401))

    def test_rate_limited(self):
        assert user_message(RateLimitExceeded("x")).startswith("Limite de requisições")

    def test_unknown(self):
        assert user_message(ValueError("x")) == "Erro interno da aplicação."

    def test_meta_error_string(self):
        error = MetaApiError("Invalid parameter", 100, "OAuthException")
        assert str(error) == "Meta API Error: Invalid parameter (Code: 100, Type: OAuthException)"


class TestWithRetry:
    """Tests for linear-backoff retry."""

    def test_retries_then_succeeds(self, no_sleep):
        fn = Mock(side_effect=[Exception("a"), Exception("b"), "ok"])

        assert with_retry(fn, "op", max_retries=3, delay_ms=100, sleep=no_sleep) == "ok"
        assert [c[0][0] for c in no_sleep.call_args_list] == [0.1, 0.2]

    def test_raises_last_error(self, no_sleep):
        fn = Mock(side_effect=[Exception("a"), Exception("last")])

        with pytest.raises(Exception, match="last"):
            with_retry(fn, "op", max_retries=2, delay_ms=10, sleep=no_sleep)

        assert fn.call_count == 2


class TestCrypto:
    """Tests for Fernet token encryption."""

    def test_encrypted_value_differs(self):
        token = crypto.encrypt("EAAsecret")

        assert token != "EAAsecret"
        assert not crypto.looks_like_meta_token(token)
        assert crypto.decrypt(token) == "EAAsecret"

    def test_invalid_ciphertext(self):
        with pytest.raises(TokenDecryptionError):
            crypto.decrypt("not-a-token")

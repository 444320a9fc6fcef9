"""
Tests for session refresh on RLS errors
"""

import pytest
from unittest.mock import Mock

from app.db.session import force_session_refresh, retry_with_session_refresh


class RlsError(Exception):
    def __init__(self, message="new row violates row-level security policy", code="42501"):
        super().__init__(message)
        self.message = message
        self.code = code


@pytest.fixture
def client():
    client = Mock()
    client.auth.refresh_session.return_value = Mock(session=Mock())
    return client


def test_success_does_not_refresh(client, no_sleep):
    assert retry_with_session_refresh(client, lambda: "rows", sleep=no_sleep) == "rows"
    client.auth.refresh_session.assert_not_called()


def test_rls_error_refreshes_once_and_retries(client, no_sleep):
    operation = Mock(side_effect=[RlsError(), "rows"])

    assert retry_with_session_refresh(client, operation, sleep=no_sleep) == "rows"
    assert client.auth.refresh_session.call_count == 1
    no_sleep.assert_called_once_with(0.5)


def test_persistent_rls_error_refreshes_exactly_once(client, no_sleep):
    """An expired session is refreshed once, then the second failure propagates."""
    operation = Mock(side_effect=RlsError(code="PGRST116", message="JWT expired"))

    with pytest.raises(RlsError):
        retry_with_session_refresh(client, operation, sleep=no_sleep)

    assert client.auth.refresh_session.call_count == 1
    assert operation.call_count == 2


def test_other_errors_are_not_retried(client, no_sleep):
    operation = Mock(side_effect=ValueError("bad input"))

    with pytest.raises(ValueError):
        retry_with_session_refresh(client, operation, sleep=no_sleep)

    client.auth.refresh_session.assert_not_called()


def test_failed_refresh_raises_original_error(client, no_sleep):
    client.auth.refresh_session.side_effect = Exception("refresh token revoked")
    operation = Mock(side_effect=RlsError())

    with pytest.raises(RlsError):
        retry_with_session_refresh(client, operation, sleep=no_sleep)

    assert operation.call_count == 1


def test_force_session_refresh_without_session(client):
    client.auth.refresh_session.return_value = Mock(session=None)

    assert force_session_refresh(client) is False

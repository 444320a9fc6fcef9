"""
Session refresh for RLS failures

When row-level security policies change, a JWT issued before the change lacks
the new claims. Refreshing the session and retrying once usually clears it.
"""

import time
from typing import Callable, TypeVar

from supabase import Client

from app.core.logging import logger
from app.utils.errors import is_rls_error

T = TypeVar("T")

SESSION_PROPAGATION_DELAY = 0.5


def force_session_refresh(client: Client) -> bool:
    """
    Ask Supabase Auth for a fresh JWT.

    Returns:
        True if a new session was issued
    """
    try:
        logger.info("[SESSION] Refreshing Supabase session")
        response = client.auth.refresh_session()

        if response and getattr(response, "session", None):
            logger.info("[SESSION] Session refreshed")
            return True

        logger.warning("[SESSION] Refresh returned no session")
        return False

    except Exception as e:
        logger.error(f"[SESSION] Failed to refresh session: {e}")
        return False


def retry_with_session_refresh(
    client: Client,
    operation: Callable[[], T],
    max_retries: int = 1,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run `operation`, refreshing the session and retrying on RLS errors.

    Args:
        client: Supabase client whose session is refreshed
        operation: Zero-argument callable performing the query
        max_retries: How many refresh-and-retry rounds are allowed
        sleep: Sleep function (injectable for tests)

    Returns:
        The operation result

    Raises:
        The original error when it is not RLS related, the refresh fails,
        or retries are exhausted.
    """
    try:
        return operation()
    except Exception as e:
        if not is_rls_error(e) or max_retries <= 0:
            raise

        logger.info("[SESSION] RLS error detected, retrying after session refresh")
        if not force_session_refresh(client):
            raise

        sleep(SESSION_PROPAGATION_DELAY)
        return retry_with_session_refresh(client, operation, max_retries - 1, sleep)

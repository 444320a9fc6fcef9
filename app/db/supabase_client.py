"""
Supabase Client Factory
Service-role client for sync and token storage, and user-scoped clients for
dashboard reads that must go through row-level security
"""

from typing import Optional

from supabase import create_client, Client, ClientOptions
from functools import lru_cache
from app.core.config import settings
from app.core.logging import logger


def get_supabase_client(access_token: str, refresh_token: Optional[str] = None) -> Client:
    """
    Build a client that queries as the signed-in user.

    The anon key plus the user's JWT makes PostgREST apply RLS policies.
    With a refresh token the client holds a full auth session, so
    `auth.refresh_session()` can issue a new JWT after an RLS failure.
    Without one the JWT is only attached to PostgREST and cannot be refreshed.
    Not cached: one client per request token.

    Args:
        access_token: Supabase Auth JWT from the request
        refresh_token: Supabase Auth refresh token, if the caller sent one

    Returns:
        Client: user-scoped Supabase client
    """
    if not settings.SUPABASE_KEY:
        raise RuntimeError("SUPABASE_KEY is required for user-scoped queries")

    client = create_client(
        supabase_url=settings.SUPABASE_URL,
        supabase_key=settings.SUPABASE_KEY,
        options=ClientOptions(auto_refresh_token=False, persist_session=False),
    )

    if refresh_token:
        client.auth.set_session(access_token, refresh_token)
    else:
        client.postgrest.auth(access_token)
    return client


@lru_cache()
def get_supabase_admin_client() -> Client:
    """
    Get or create Supabase admin client with service role key.
    Bypasses RLS; used by sync jobs, OAuth callbacks and token storage.

    Returns:
        Client: Supabase admin client instance
    """
    try:
        logger.info("Initializing Supabase admin client")

        client = create_client(
            supabase_url=settings.SUPABASE_URL,
            supabase_key=settings.SUPABASE_SERVICE_ROLE_KEY
        )

        logger.info("Supabase admin client initialized successfully")
        return client

    except Exception as e:
        logger.error(f"Failed to initialize Supabase admin client: {e}")
        raise

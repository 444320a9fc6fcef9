"""Database module exports"""

from .supabase_client import (
    get_supabase_client,
    get_supabase_admin_client,
)
from .session import retry_with_session_refresh

__all__ = [
    "get_supabase_client",
    "get_supabase_admin_client",
    "retry_with_session_refresh",
]

"""Utilities module"""

from .errors import (
    AdsOpsError,
    GoogleAdsApiError,
    MetaApiError,
    NoAccountsFoundError,
    RateLimitExceeded,
    SyncError,
    TokenDecryptionError,
    is_rls_error,
    user_message,
)
from .retry import with_retry

__all__ = [
    "AdsOpsError",
    "GoogleAdsApiError",
    "MetaApiError",
    "NoAccountsFoundError",
    "RateLimitExceeded",
    "SyncError",
    "TokenDecryptionError",
    "is_rls_error",
    "user_message",
    "with_retry",
]

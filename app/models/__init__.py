"""Models module - Pydantic data models"""

from .chat import QuickAction, FAQ, ChatResponse, ChatMessageRequest
from .integration import (
    AuthorizeResponse,
    OAuthCallbackRequest,
    OAuthCallbackResponse,
    TokenRefreshRequest,
    TokenStatusInfo,
)
from .setup import (
    SetupStep,
    OrganizationMode,
    SetupStatus,
    AccountBinding,
    BindingResult,
    CompleteStepRequest,
    AutoConfigureRequest,
    CreateClientsRequest,
    CreateClientsResponse,
)
from .sync import SyncProgress, MetaSyncResult, GoogleSyncResult, GoogleSyncRequest

__all__ = [
    # Chat models
    "QuickAction",
    "FAQ",
    "ChatResponse",
    "ChatMessageRequest",
    # Integration models
    "AuthorizeResponse",
    "OAuthCallbackRequest",
    "OAuthCallbackResponse",
    "TokenRefreshRequest",
    "TokenStatusInfo",
    # Setup models
    "SetupStep",
    "OrganizationMode",
    "SetupStatus",
    "AccountBinding",
    "BindingResult",
    "CompleteStepRequest",
    "AutoConfigureRequest",
    "CreateClientsRequest",
    "CreateClientsResponse",
    # Sync models
    "SyncProgress",
    "MetaSyncResult",
    "GoogleSyncResult",
    "GoogleSyncRequest",
]

"""Integration models"""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List


class AuthorizeResponse(BaseModel):
    """Consent URL plus the state nonce stored server-side"""
    authorization_url: str
    state: str


class OAuthCallbackRequest(BaseModel):
    """OAuth callback payload forwarded by the frontend"""
    code: str = Field(..., description="OAuth authorization code")
    state: str = Field(..., description="State nonce returned by /authorize")


class OAuthCallbackResponse(BaseModel):
    success: bool
    message: str
    connections: List[Dict[str, Any]] = Field(default_factory=list)


class TokenRefreshRequest(BaseModel):
    workspace_id: str = Field(..., description="Workspace ID")
    force: bool = Field(False, description="Refresh even when the token is still valid")


class TokenStatusInfo(BaseModel):
    """Meta token expiry status for a workspace"""
    status: str = Field("unknown", description="valid | expiring_soon | expired | unknown")
    days_remaining: Optional[int] = None
    expires_at: Optional[str] = None
    connection_id: Optional[str] = None
    needs_refresh: Optional[bool] = None

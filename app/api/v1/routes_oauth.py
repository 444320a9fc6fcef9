"""
OAuth Routes for Ads Platform Integration
Handles OAuth 2.0 flows for Meta Ads and Google Ads

Callbacks make blocking token and account-list requests and run in a worker
thread.
"""

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Query
from supabase import Client

from app.core.logging import logger, log_error
from app.db import get_supabase_admin_client
from app.models.integration import AuthorizeResponse, OAuthCallbackRequest, OAuthCallbackResponse
from app.services.connection_service import ConnectionService, InvalidOAuthState
from app.utils.errors import NoAccountsFoundError, user_message

router = APIRouter(prefix="/oauth", tags=["oauth"])


# ============================================================================
# META ADS OAUTH FLOW
# ============================================================================

@router.get("/meta/authorize", response_model=AuthorizeResponse)
async def meta_authorize(
    user_id: str = Query(..., description="User ID"),
    workspace_id: str = Query(..., description="Workspace ID"),
    supabase: Client = Depends(get_supabase_admin_client),
):
    """
    Step 1: Build the Facebook consent URL.

    Returns:
        authorization_url and the state nonce
    """
    try:
        result = ConnectionService(supabase).meta_authorization_url(user_id, workspace_id)
        logger.info(f"[META_ADS] OAuth started for workspace {workspace_id}")
        return result

    except Exception as e:
        log_error(e, context="[META_ADS] Failed to initiate OAuth")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/meta/callback", response_model=OAuthCallbackResponse)
async def meta_callback(
    request: OAuthCallbackRequest,
    supabase: Client = Depends(get_supabase_admin_client),
):
    """
    Step 2: Exchange the code and create one connection per ad account.

    Returns:
        Created connections
    """
    try:
        service = ConnectionService(supabase)
        connections = await asyncio.to_thread(service.complete_meta_oauth, request.code, request.state)
        return OAuthCallbackResponse(
            success=True,
            message=f"{len(connections)} conta(s) conectada(s)",
            connections=connections,
        )

    except NoAccountsFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidOAuthState as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        log_error(e, context="[META_ADS] OAuth callback failed")
        raise HTTPException(status_code=500, detail=user_message(e))


# ============================================================================
# GOOGLE ADS OAUTH FLOW
# ============================================================================

@router.get("/google/authorize", response_model=AuthorizeResponse)
async def google_authorize(
    user_id: str = Query(..., description="User ID"),
    workspace_id: str = Query(..., description="Workspace ID"),
    supabase: Client = Depends(get_supabase_admin_client),
):
    """Step 1: Build the Google consent URL (offline access)"""
    try:
        result = ConnectionService(supabase).google_authorization_url(user_id, workspace_id)
        logger.info(f"[GOOGLE_ADS] OAuth started for workspace {workspace_id}")
        return result

    except Exception as e:
        log_error(e, context="[GOOGLE_ADS] Failed to initiate OAuth")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/google/callback", response_model=OAuthCallbackResponse)
async def google_callback(
    request: OAuthCallbackRequest,
    supabase: Client = Depends(get_supabase_admin_client),
):
    """Step 2: Exchange the code and register accessible customers"""
    try:
        service = ConnectionService(supabase)
        accounts = await asyncio.to_thread(service.complete_google_oauth, request.code, request.state)
        return OAuthCallbackResponse(
            success=True,
            message=f"{len(accounts)} conta(s) Google Ads encontrada(s)",
            connections=accounts,
        )

    except NoAccountsFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidOAuthState as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        log_error(e, context="[GOOGLE_ADS] OAuth callback failed")
        raise HTTPException(status_code=500, detail=user_message(e))

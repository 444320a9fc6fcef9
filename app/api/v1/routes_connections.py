"""
Connection Management API Routes
"""

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Query
from supabase import Client

from app.core.logging import logger, log_error
from app.db import get_supabase_admin_client
from app.models.integration import TokenRefreshRequest, TokenStatusInfo
from app.services.connection_service import ConnectionService
from app.services.token_manager import TokenManager
from app.services.token_refresh_service import TokenRefreshService

router = APIRouter(prefix="/connections", tags=["Connections"])


@router.get("")
async def list_connections(
    workspace_id: str = Query(..., description="Workspace ID"),
    supabase: Client = Depends(get_supabase_admin_client),
):
    """List all ad platform connections for a workspace"""
    try:
        connections = ConnectionService(supabase).list_connections(workspace_id)
        return {"connections": connections}
    except Exception as e:
        log_error(e, context="List connections")
        raise HTTPException(status_code=500, detail=f"Failed to fetch connections: {str(e)}")


@router.delete("/{connection_id}")
async def delete_connection(
    connection_id: str,
    supabase: Client = Depends(get_supabase_admin_client),
):
    """Delete a connection together with its token and synced entities"""
    try:
        ConnectionService(supabase).disconnect(connection_id)
        return {"message": "Connection deleted successfully"}
    except Exception as e:
        log_error(e, context="Delete connection")
        raise HTTPException(status_code=500, detail=f"Failed to delete connection: {str(e)}")


@router.get("/{connection_id}/token-status", response_model=TokenStatusInfo)
async def get_token_status(
    connection_id: str,
    supabase: Client = Depends(get_supabase_admin_client),
):
    """
    Token expiry status for the workspace that owns a connection.

    Returns:
        status (valid|expiring_soon|expired|unknown), days_remaining, expires_at
    """
    try:
        result = supabase.table("data_connections")\
            .select("id, workspace_id")\
            .eq("id", connection_id)\
            .maybe_single()\
            .execute()

        if not result or not result.data:
            raise HTTPException(status_code=404, detail="Connection not found")

        status = TokenRefreshService(supabase).get_token_expiry_status(result.data["workspace_id"])
        status.needs_refresh = TokenManager(supabase, "meta").needs_refresh(connection_id)
        return status

    except HTTPException:
        raise
    except Exception as e:
        log_error(e, context="Token status")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/token/refresh")
async def refresh_token(
    request: TokenRefreshRequest,
    supabase: Client = Depends(get_supabase_admin_client),
):
    """Renew the workspace's Meta token when expiring (or always with force)"""
    try:
        service = TokenRefreshService(supabase)

        if request.force:
            result = await asyncio.to_thread(service.refresh_meta_token, request.workspace_id)
        else:
            result = await asyncio.to_thread(service.check_and_auto_refresh, request.workspace_id)

        logger.info(f"[TOKEN_REFRESH] Refresh requested for workspace {request.workspace_id}")
        return result

    except Exception as e:
        log_error(e, context="Token refresh")
        raise HTTPException(status_code=500, detail=str(e))

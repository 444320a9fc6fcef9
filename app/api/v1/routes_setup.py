"""
Setup Wizard API Routes
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from supabase import Client

from app.core.logging import log_error
from app.db import get_supabase_admin_client
from app.models.setup import (
    AutoConfigureRequest,
    CompleteStepRequest,
    CreateClientsRequest,
    CreateClientsResponse,
    SetupStatus,
)
from app.services.setup_service import get_setup_service

router = APIRouter(prefix="/setup", tags=["Setup"])


@router.get("/status/{user_id}", response_model=SetupStatus)
async def get_setup_status(
    user_id: str,
    supabase: Client = Depends(get_supabase_admin_client),
):
    """Derived onboarding state with progress percentage and current step"""
    return get_setup_service(supabase).get_setup_progress(user_id)


@router.post("/steps")
async def complete_step(
    request: CompleteStepRequest,
    supabase: Client = Depends(get_supabase_admin_client),
):
    try:
        get_setup_service(supabase).complete_setup_step(request.user_id, request.workspace_id, request.step)
        return {"success": True, "step": request.step.value}
    except Exception as e:
        log_error(e, context="Complete setup step", user_id=request.user_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/auto-configure")
async def auto_configure(
    request: AutoConfigureRequest,
    supabase: Client = Depends(get_supabase_admin_client),
):
    """Create the user's workspace when missing and mark the first step"""
    result = get_setup_service(supabase).auto_configure_for_new_user(request.user_id, request.email)
    if not result["success"]:
        raise HTTPException(status_code=500, detail=result["error"])
    return result


@router.post("/clients", response_model=CreateClientsResponse)
async def create_clients(
    request: CreateClientsRequest,
    supabase: Client = Depends(get_supabase_admin_client),
):
    """Create clients for the workspace's ad accounts (per_account or single_client)"""
    try:
        return get_setup_service(supabase).organize_clients(
            request.user_id, request.workspace_id, request.mode, request.email
        )
    except Exception as e:
        log_error(e, context="Create clients", workspace_id=request.workspace_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/complete")
async def complete_setup(
    user_id: str = Query(..., description="User ID"),
    workspace_id: str = Query(..., description="Workspace ID"),
    supabase: Client = Depends(get_supabase_admin_client),
):
    try:
        get_setup_service(supabase).mark_setup_as_complete(user_id, workspace_id)
        return {"success": True}
    except Exception as e:
        log_error(e, context="Complete setup", user_id=user_id)
        raise HTTPException(status_code=500, detail=str(e))

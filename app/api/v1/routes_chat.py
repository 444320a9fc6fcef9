"""
Support Chat API Routes
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from supabase import Client

from app.core.logging import logger, log_error
from app.db import get_supabase_admin_client
from app.models.chat import ChatMessageRequest, ChatResponse
from app.services.chat_service import get_chat_service

router = APIRouter(prefix="/chat", tags=["Chat"])


@router.post("/message", response_model=ChatResponse)
async def send_message(
    request: ChatMessageRequest,
    supabase: Client = Depends(get_supabase_admin_client),
):
    """
    Classify a support message and return the canned reply.

    The exchange is stored in chat_conversations; a storage failure does
    not fail the request.
    """
    try:
        chat = get_chat_service(supabase)
        response = chat.generate_response(request.message)
        response.related_faqs = chat.get_related_faqs(response.intent)

        chat.save_conversation(request.user_id, request.workspace_id, request.message, response)

        logger.info(f"[CHAT] intent={response.intent} sentiment={response.sentiment}")
        return response

    except Exception as e:
        log_error(e, context="Chat message")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/history/{user_id}")
async def get_history(
    user_id: str,
    limit: int = Query(50, ge=1, le=200),
    supabase: Client = Depends(get_supabase_admin_client),
):
    """Newest-first conversation history for a user"""
    history = get_chat_service(supabase).get_conversation_history(user_id, limit)
    return {"conversations": history, "count": len(history)}

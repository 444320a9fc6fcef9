"""Chat models"""

from pydantic import BaseModel, Field
from typing import List, Optional


class QuickAction(BaseModel):
    label: str
    action: str


class FAQ(BaseModel):
    id: str
    question: str


class ChatResponse(BaseModel):
    """Canned reply for a classified message"""
    message: str
    intent: str
    sentiment: str
    suggestions: List[str] = Field(default_factory=list)
    quick_actions: List[QuickAction] = Field(default_factory=list)
    related_faqs: List[FAQ] = Field(default_factory=list)


class ChatMessageRequest(BaseModel):
    """Incoming support chat message"""
    message: str = Field(..., min_length=1, description="User message")
    user_id: str = Field(..., description="User ID")
    workspace_id: Optional[str] = Field(None, description="Workspace ID")

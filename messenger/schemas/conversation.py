"""Conversation schemas."""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional

from messenger.schemas.message import MessageView


class CreateConversationRequest(BaseModel):
    """Open (or fetch) the conversation with another user."""
    other_user_id: str = Field(..., min_length=1, max_length=255)


class ConversationSummary(BaseModel):
    """Inbox entry for a conversation."""
    id: int
    participant_ids: List[str]
    last_message: Optional[MessageView] = None
    unread_count: int = 0
    updated_at: datetime


class MarkReadResponse(BaseModel):
    updated: int

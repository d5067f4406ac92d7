"""Message schemas shared by the HTTP API and live push."""
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional


class SendMessageRequest(BaseModel):
    """Body for sending a message. client_nonce makes retries safe."""
    body: str = Field(..., max_length=5000)
    client_nonce: Optional[str] = Field(None, max_length=100)


class MessageView(BaseModel):
    """Message as seen by clients."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int
    sender_id: str
    body: str
    client_nonce: Optional[str] = None
    created_at: datetime
    status: str


class MessageStatusView(BaseModel):
    """Per-recipient delivery state."""
    model_config = ConfigDict(from_attributes=True)

    message_id: int
    user_id: str
    status: str
    updated_at: datetime


class PushEvent(BaseModel):
    """Frame pushed to subscribed sessions."""
    event: str = "message.created"
    payload: MessageView

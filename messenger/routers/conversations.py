"""
Conversation API Router

Routes are plain `def` so they run in the worker pool; every request gets its
own database session.
"""

from fastapi import APIRouter, Depends, Query, Response, status
from typing import List, Optional

from messenger.config import DEFAULT_PAGE_SIZE
from messenger.middleware.auth import get_current_user, CurrentUser
from messenger.routers.dependencies import get_query_service
from messenger.schemas.conversation import (
    ConversationSummary,
    CreateConversationRequest,
    MarkReadResponse,
)
from messenger.schemas.message import MessageView, SendMessageRequest
from messenger.services.query_service import QueryService

import logging

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Conversations"])  # No prefix since main.py adds /api prefix


@router.post("/conversations", response_model=ConversationSummary)
def create_or_get_conversation(
    payload: CreateConversationRequest,
    response: Response,
    current_user: CurrentUser = Depends(get_current_user),
    service: QueryService = Depends(get_query_service),
):
    """
    Open the direct conversation with another user.

    Returns the existing conversation when the pair already has one
    (200) or the newly created one (201).
    """
    conversation, created = service.directory.get_or_create(current_user.user_id, payload.other_user_id)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return service.summarize(conversation, current_user.user_id)


@router.get("/conversations", response_model=List[ConversationSummary])
def list_conversations(
    current_user: CurrentUser = Depends(get_current_user),
    service: QueryService = Depends(get_query_service),
):
    """Inbox for the caller, most recently active first."""
    return service.get_conversations_for_user(current_user.user_id)


@router.get("/conversations/{conversation_id}/messages", response_model=List[MessageView])
def list_messages(
    conversation_id: int,
    page: int = Query(0, description="0 is the newest page; higher pages go further back"),
    size: int = Query(DEFAULT_PAGE_SIZE, description="Page size, clamped to the server maximum"),
    before: Optional[int] = Query(None, description="Only messages admitted before this message id"),
    current_user: CurrentUser = Depends(get_current_user),
    service: QueryService = Depends(get_query_service),
):
    """One page of messages, oldest first."""
    return service.get_message_page(conversation_id, current_user.user_id, page, size, before)


@router.post("/conversations/{conversation_id}/messages", response_model=MessageView)
def send_message(
    conversation_id: int,
    payload: SendMessageRequest,
    response: Response,
    current_user: CurrentUser = Depends(get_current_user),
    service: QueryService = Depends(get_query_service),
):
    """
    Send a message.

    Retrying with the same client_nonce returns the original message with
    200 instead of 201 and creates nothing.
    """
    message, created = service.ledger.append(
        conversation_id,
        current_user.user_id,
        payload.body,
        payload.client_nonce,
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return MessageView.model_validate(message)


@router.post("/conversations/{conversation_id}/read", response_model=MarkReadResponse)
def mark_conversation_read(
    conversation_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: QueryService = Depends(get_query_service),
):
    """Mark everything the caller received in the conversation as read."""
    service.directory.require_participant(conversation_id, current_user.user_id)
    updated = service.tracker.mark_conversation_read(conversation_id, current_user.user_id)
    return MarkReadResponse(updated=updated)

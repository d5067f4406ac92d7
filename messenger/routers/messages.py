"""Delivery status API Router"""

from fastapi import APIRouter, Depends
from typing import List

from messenger.middleware.auth import get_current_user, CurrentUser
from messenger.routers.dependencies import get_query_service
from messenger.schemas.message import MessageStatusView
from messenger.services.query_service import QueryService

router = APIRouter(tags=["Delivery status"])


@router.post("/messages/{message_id}/delivered", response_model=MessageStatusView)
def mark_delivered(
    message_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: QueryService = Depends(get_query_service),
):
    """Acknowledge delivery. A no-op once the message has been read."""
    return MessageStatusView.model_validate(service.tracker.mark_delivered(message_id, current_user.user_id))


@router.post("/messages/{message_id}/read", response_model=MessageStatusView)
def mark_read(
    message_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: QueryService = Depends(get_query_service),
):
    return MessageStatusView.model_validate(service.tracker.mark_read(message_id, current_user.user_id))


@router.get("/messages/{message_id}/statuses", response_model=List[MessageStatusView])
def list_statuses(
    message_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: QueryService = Depends(get_query_service),
):
    """Recipient statuses, visible to both participants."""
    return service.message_statuses(message_id, current_user.user_id)

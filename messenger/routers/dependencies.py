"""Shared route dependencies."""
from fastapi import Depends, Request
from sqlmodel import Session

from messenger.db.config import get_session
from messenger.services.query_service import QueryService


def get_query_service(request: Request, session: Session = Depends(get_session)) -> QueryService:
    """QueryService bound to this request's session and the app's fan-out hub."""
    return QueryService(session, request.app.state.hub)

"""JWT authentication for HTTP routes and WebSocket connections.

Identity is owned elsewhere; this module only turns a bearer token into the
opaque user id carried in its `sub` claim.
"""
from fastapi import HTTPException, status, Request
from jose import jwt, JWTError, ExpiredSignatureError
from pydantic import BaseModel
from typing import Optional
import logging

from messenger.config import AUTH_SECRET, AUTH_ALGORITHM

logger = logging.getLogger(__name__)


class CurrentUser(BaseModel):
    """User information extracted from JWT."""
    user_id: str
    email: Optional[str] = None


def decode_token(token: str) -> CurrentUser:
    """
    Validate a JWT and extract the user it was issued to.

    Raises:
        HTTPException: If token is invalid, expired or has no subject
    """
    try:
        payload = jwt.decode(token, AUTH_SECRET, algorithms=[AUTH_ALGORITHM])
    except ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user ID",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentUser(user_id=str(user_id), email=payload.get("email"))


def get_current_user(request: Request) -> CurrentUser:
    """Dependency resolving the caller from the Authorization header."""
    auth_header = request.headers.get("authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return decode_token(auth_header[7:])


def authenticate_websocket(token: Optional[str]) -> Optional[str]:
    """Return the user id for a WebSocket `token` query parameter, or None."""
    if not token:
        logger.warning("No token provided in WebSocket connection")
        return None
    try:
        return decode_token(token).user_id
    except HTTPException as e:
        logger.warning(f"WebSocket token verification failed: {e.detail}")
        return None

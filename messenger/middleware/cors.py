"""CORS configuration for browser clients."""
from fastapi.middleware.cors import CORSMiddleware
import logging

from messenger.config import ENVIRONMENT, FRONTEND_URL

logger = logging.getLogger(__name__)

# Base allowed origins for development
ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
]

if FRONTEND_URL and FRONTEND_URL not in ALLOWED_ORIGINS:
    ALLOWED_ORIGINS.append(FRONTEND_URL)


def add_cors_middleware(app):
    """Add CORS middleware to the FastAPI application."""
    if ENVIRONMENT == "production":
        origins = [FRONTEND_URL]
    else:
        origins = ALLOWED_ORIGINS
    logger.info(f"[CORS] Environment: {ENVIRONMENT}, allowed origins: {origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

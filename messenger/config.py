"""Runtime configuration for the messaging core."""
import os
from dotenv import load_dotenv

load_dotenv()

ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Falls back to a local SQLite file for development
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./messenger.db")

AUTH_SECRET = os.environ.get("AUTH_SECRET", "dev-secret-change-me")
AUTH_ALGORITHM = os.environ.get("AUTH_ALGORITHM", "HS256")

DEFAULT_PAGE_SIZE = int(os.environ.get("DEFAULT_PAGE_SIZE", "50"))
MAX_PAGE_SIZE = int(os.environ.get("MAX_PAGE_SIZE", "200"))

# Attempts at claiming the next sequence slot before giving up
APPEND_MAX_ATTEMPTS = int(os.environ.get("APPEND_MAX_ATTEMPTS", "5"))

# Per-socket backlog of undelivered push events
PUSH_QUEUE_SIZE = int(os.environ.get("PUSH_QUEUE_SIZE", "100"))

"""Main FastAPI application for the direct messaging backend."""
from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI
from sqlalchemy.engine import Engine

from messenger import __version__
from messenger.config import LOG_LEVEL
from messenger.db.config import build_engine
from messenger.db.init import init_db
from messenger.errors import register_exception_handlers
from messenger.middleware.cors import add_cors_middleware
from messenger.routers import conversations_router, messages_router, ws_router
from messenger.utils.metrics import metrics_collector
from messenger.ws.fanout_hub import FanoutHub

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


def create_app(engine: Optional[Engine] = None, hub: Optional[FanoutHub] = None) -> FastAPI:
    """Build the application around an explicit engine and fan-out hub."""
    engine = engine or build_engine()
    hub = hub or FanoutHub()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            init_db(engine)
        except Exception as e:
            logger.warning(f"[WARNING] Database initialization failed: {e.__class__.__name__}")
            logger.warning("[WARNING] Server will continue but database operations may fail.")
        logger.info("[SUCCESS] Application startup complete.")
        yield
        hub.close()
        engine.dispose()

    app = FastAPI(
        title="Direct Messaging API",
        description="Two-party conversations with idempotent sends, delivery tracking and live push",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.hub = hub

    add_cors_middleware(app)
    register_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": __version__, "sessions": hub.session_count()}

    @app.get("/metrics")
    async def metrics():
        return metrics_collector.get_metrics()

    app.include_router(conversations_router, prefix="/api")
    app.include_router(messages_router, prefix="/api")
    app.include_router(ws_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "messenger.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )

"""
Chat Sync - hosted persistence API.

Session/message CRUD and the realtime change feed used by the sync client.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatsync.core.config import get_settings
from chatsync.core.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    logger.info(f"Starting chat sync API in {settings.ENVIRONMENT} mode...")

    if settings.is_local:
        from chatsync.infrastructure.local.database import init_db

        await init_db()

    yield

    from chatsync.services.realtime_service import realtime_manager

    await realtime_manager.close_all()
    logger.info("Shutting down chat sync API...")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Chat Sync",
        description="Chat session persistence and realtime change feed",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from chatsync.api import chat_messages, chat_sessions, realtime

    app.include_router(chat_sessions.router, prefix="/api/chat-sessions", tags=["chat_sessions"])
    app.include_router(chat_messages.router, prefix="/api/chat-messages", tags=["chat_messages"])
    app.include_router(realtime.router, prefix="/api/realtime", tags=["realtime"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "version": "0.1.0",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "chatsync.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )

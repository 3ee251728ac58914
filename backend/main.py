"""
ChuksBot Backend - Main Application Entry Point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from chuksbot.core.config import settings
from chuksbot.core.logging import logger
from chuksbot.api.routes import webhook
from chuksbot.services.chat import get_chat_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} in {settings.APP_ENV} mode")
    chat_service = get_chat_service()
    await chat_service.start()
    yield
    # Shutdown
    logger.info("Shutting down...")
    await chat_service.stop()


app = FastAPI(
    title=settings.APP_NAME,
    description="WhatsApp Insurance Assistant",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(webhook.router, prefix="/webhook", tags=["Webhook"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "env": settings.APP_ENV,
    }

"""
FastAPI application entry point for the civicpulse API.

Configures logging and CORS, builds the pipeline collaborators once at
startup (record store and, when a credential is configured, the
text-generation client), registers the query router and exposes /health.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from civicpulse import __version__
from civicpulse.api import api_router
from civicpulse.core.config import get_settings
from civicpulse.core.data_store import JsonFileDataStore
from civicpulse.services.text_generation import GroqTextGenerationService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for FastAPI application startup and shutdown events.

    On startup:
        - Create the JSON file record store with its read-through cache
        - Create the text-generation client if GROQ_API_KEY is set

    On shutdown:
        - Drop cached records
    """
    logger.info("civicpulse API starting")
    app.state.data_store = JsonFileDataStore(
        settings.db_file,
        ttl_seconds=settings.record_cache_ttl_seconds,
    )
    if settings.text_generation_enabled:
        app.state.text_service = GroqTextGenerationService.from_settings(settings)
        logger.info(f"Text generation enabled (model={settings.groq_model})")
    else:
        app.state.text_service = None
        logger.info("Text generation disabled: GROQ_API_KEY not set; answers are handler drafts only")

    yield

    logger.info("civicpulse API shutting down")
    app.state.data_store.invalidate()


app = FastAPI(
    title="civicpulse API",
    version=__version__,
    description=(
        "Answers free-text questions about a civic-engagement survey dataset: "
        "intent classification, statistical profiling, domain handlers and an "
        "optional quality-gated model enhancement."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer probes.

    Returns:
        Dict with status 'healthy' and whether text generation is configured
    """
    return {
        "status": "healthy",
        "textGeneration": settings.text_generation_enabled,
    }


@app.get("/")
async def root():
    """
    Root endpoint providing API information.

    Returns:
        Dict with API name and version
    """
    return {
        "name": "civicpulse API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "civicpulse.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )

"""
Lead Enrichment API - Main Application.

FastAPI application with CORS enabled for frontend communication. The lead
pipeline (store, provider clients, stage handlers) is built at startup unless
one is passed to create_app.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from config.settings import load_settings
from services.pipeline import LeadPipeline, build_pipeline, build_store

logger = logging.getLogger(__name__)


def _build_default_pipeline() -> LeadPipeline:
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    store = build_store(settings)
    return build_pipeline(settings, store)


def create_app(pipeline: Optional[LeadPipeline] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "pipeline", None) is None:
            app.state.pipeline = _build_default_pipeline()
            logger.info("Lead pipeline initialised from environment")
        yield

    app = FastAPI(
        title="Lead Enrichment API",
        description="REST API for uploading homeowner leads and tracking skip-tracing and analysis",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.pipeline = pipeline

    # Configure CORS - Allow all origins for development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["Health"])
    def health_check():
        """
        Health check endpoint.

        Returns the API status and version.
        """
        return {
            "status": "healthy",
            "version": __version__,
            "service": "lead-enrichment-api"
        }

    @app.get("/", tags=["Root"])
    def root():
        """
        Root endpoint with API information.
        """
        return {
            "message": "Lead Enrichment API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health"
        }

    # Import and include routers
    from api.routers import leads, uploads, webhooks

    app.include_router(uploads.router, prefix="/api/v1", tags=["Uploads"])
    app.include_router(leads.router, prefix="/api/v1", tags=["Leads"])
    app.include_router(webhooks.router, prefix="/api/v1", tags=["Webhooks"])

    return app


app = create_app()

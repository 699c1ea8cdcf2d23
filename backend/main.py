"""
FastAPI Backend for the Onboarding Extraction Pipeline

This is the main entry point for the API server. It provides endpoints for:
- Uploading recordings and documents to start an extraction job
- Polling or streaming job progress
- Retrying failed jobs
- Listing the items a finished job materialized

Architecture Decision:
- The pipeline runner is created once per process and kept on app.state
- Jobs run as background asyncio tasks; the HTTP layer never waits on the model
"""

# Load .env BEFORE any application imports that read os.environ
from dotenv import load_dotenv
load_dotenv()

import os
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.api.routes import jobs, upload
from onboarding.config import configure_logging, get_settings
from onboarding.pipeline.runner import build_runner

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and wire the pipeline runner on startup."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)

    # Tests install their own runner before startup
    if getattr(app.state, "runner", None) is None:
        app.state.runner = build_runner(settings)
    logger.info("api_started", database=settings.database_url)

    yield

    await app.state.runner.shutdown()
    logger.info("api_stopped")


app = FastAPI(
    title="Onboarding Extraction API",
    description="API for extracting onboarding requirements from recordings and documents",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000", "*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =============================================================================
# API routes
# =============================================================================

app.include_router(upload.router, prefix="/api", tags=["Upload"])
app.include_router(jobs.router, prefix="/api", tags=["Jobs"])


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


@app.get("/")
async def root():
    return {
        "name": "Onboarding Extraction API",
        "docs": "/docs",
        "endpoints": {
            "start": "POST /api/upload/start",
            "progress": "GET /api/upload/{job_id}/progress",
            "status_stream": "GET /api/upload/{job_id}/status",
            "retry": "POST /api/upload/{job_id}/retry",
            "items": "GET /api/upload/{job_id}/items",
        },
    }


# =============================================================================
# Run with: python -m backend.main
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 8100))
    uvicorn.run(
        "backend.main:app",
        host="0.0.0.0",
        port=port,
        reload=False,
    )

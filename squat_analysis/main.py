"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from squat_analysis.config import get_settings
from squat_analysis.api import api_router
from squat_analysis.api.analyses import session_registry

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"Starting {settings.app_name}")
    yield
    await session_registry.release_all()
    logger.info(f"Shutting down {settings.app_name}")


app = FastAPI(
    title=settings.app_name,
    description="""
    Squat Form Analyzer API

    Turns a recorded squat video into timestamped coaching feedback.

    ## Checks

    - **Depth**: knee angle at the bottom of the squat
    - **Knee Position**: knees caving inward relative to the ankles
    - **Torso/Back Posture**: forward lean and unstable torso angle
    - **Heel Position**: heels lifting off the floor
    - **Ascent Rate**: hips rising ahead of the shoulders

    Every feedback item carries the frame that triggered it; fetch it with
    `GET /api/analyses/{id}/frame?timestamp=...`.
    """,
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix=settings.api_prefix)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": "1.0.0"
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "docs": "/docs",
        "health": "/health"
    }

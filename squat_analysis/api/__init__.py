"""API routes."""

from fastapi import APIRouter

from squat_analysis.api import analyses

api_router = APIRouter()

api_router.include_router(analyses.router, prefix="/analyses", tags=["Analyses"])

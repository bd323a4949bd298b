"""Pydantic schemas for API request/response models."""

from squat_analysis.schemas.feedback import (
    FeedbackItemResponse,
    AnalysisResponse,
)

__all__ = [
    "FeedbackItemResponse",
    "AnalysisResponse",
]

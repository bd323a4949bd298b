"""Feedback schemas."""

from typing import List, Optional

from pydantic import BaseModel

from squat_analysis.cv.feedback import FeedbackItem


class FeedbackItemResponse(BaseModel):
    """Schema for a single feedback item."""
    kind: str
    title: str
    message: str
    frame_index: Optional[int] = None
    timestamp: Optional[float] = None

    # Display-only coaching detail
    explanation: Optional[str] = None
    causes: Optional[str] = None
    suggestions: Optional[str] = None

    @classmethod
    def from_item(cls, item: FeedbackItem) -> "FeedbackItemResponse":
        detail = item.detail
        return cls(
            kind=item.kind.value,
            title=item.kind.title,
            message=item.message,
            frame_index=item.frame_index,
            timestamp=item.timestamp,
            explanation=detail.explanation if detail else None,
            causes=detail.causes if detail else None,
            suggestions=detail.suggestions if detail else None,
        )


class AnalysisResponse(BaseModel):
    """Schema for a completed analysis."""
    id: str
    video_filename: str
    status: str
    feedback: List[FeedbackItemResponse]

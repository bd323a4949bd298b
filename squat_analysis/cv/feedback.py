"""Coaching feedback produced by the rule evaluator."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class FeedbackKind(Enum):
    """Closed set of feedback categories."""
    DEPTH = "Depth"
    KNEE_VALGUS = "KneeValgus"
    TORSO_ANGLE = "TorsoAngle"
    HEEL_LIFT = "HeelLift"
    ASCENT_RATE = "AscentRate"
    DETECTION_QUALITY = "DetectionQuality"
    POSITIVE = "Positive"

    @property
    def title(self) -> str:
        """Human-readable heading for display."""
        return _TITLES[self]


_TITLES = {
    FeedbackKind.DEPTH: "Depth",
    FeedbackKind.KNEE_VALGUS: "Knee Position",
    FeedbackKind.TORSO_ANGLE: "Torso/Back Posture",
    FeedbackKind.HEEL_LIFT: "Heel Position",
    FeedbackKind.ASCENT_RATE: "Ascent Rate",
    FeedbackKind.DETECTION_QUALITY: "Detection Quality",
    FeedbackKind.POSITIVE: "Good Form",
}


@dataclass(frozen=True)
class Evidence:
    """The video frame that most directly supports a feedback item."""
    frame_index: int
    timestamp: float


@dataclass(frozen=True)
class ExplanationBundle:
    """Display-only coaching detail."""
    explanation: str
    causes: str
    suggestions: str


@dataclass(frozen=True)
class FeedbackItem:
    kind: FeedbackKind
    message: str
    evidence: Optional[Evidence] = None
    detail: Optional[ExplanationBundle] = None

    @property
    def frame_index(self) -> Optional[int]:
        return self.evidence.frame_index if self.evidence else None

    @property
    def timestamp(self) -> Optional[float]:
        return self.evidence.timestamp if self.evidence else None

    @property
    def is_issue(self) -> bool:
        """True for corrective feedback (not praise, not a data-quality note)."""
        return self.kind not in (FeedbackKind.POSITIVE, FeedbackKind.DETECTION_QUALITY)

    def with_detail(self, detail: ExplanationBundle) -> "FeedbackItem":
        return replace(self, detail=detail)

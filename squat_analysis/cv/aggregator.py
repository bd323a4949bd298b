"""
Feedback aggregation.

Turns a pose buffer into the ordered feedback list returned to callers:
1. Detection quality gate (may short-circuit with a single item)
2. Too-short / no-bottom guards (single explanatory item)
3. Form checks in fixed order: Depth, KneeValgus, TorsoAngle, HeelLift, AscentRate
4. Quality warning, if any, appended last
5. Overall positive item when no corrective feedback was produced

Never raises for poor data: the caller always gets a non-empty list.
"""

import logging
from typing import List, Optional, Sequence

from squat_analysis.config import Settings, get_settings
from squat_analysis.cv.feedback import FeedbackItem, FeedbackKind
from squat_analysis.cv.pose_buffer import TemporalPoseBuffer
from squat_analysis.cv.rules import SQUAT_CHECKS, DetectionQualityGate, SquatCheck, evidence_at
from squat_analysis.cv.timeline import FrameTimeline

logger = logging.getLogger(__name__)


TOO_SHORT_MESSAGE = "Video too short or too few poses detected for meaningful analysis."
NO_BOTTOM_MESSAGE = "Could not determine the bottom of the squat."
POSITIVE_MESSAGE = "Good overall squat form detected in video!"


class FeedbackAggregator:
    """Runs the quality gate and form checks and merges their output."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        checks: Sequence[SquatCheck] = SQUAT_CHECKS,
    ):
        self.settings = settings or get_settings()
        self.checks = checks
        self.quality_gate = DetectionQualityGate()

    def aggregate(self, buffer: TemporalPoseBuffer) -> List[FeedbackItem]:
        short_circuit, quality_item = self.quality_gate.evaluate(buffer, self.settings)
        if short_circuit:
            logger.info("No frame with a fully tracked leg, skipping form checks")
            return [quality_item]

        if not buffer.is_sufficient:
            logger.info(f"Only {len(buffer)} frames, skipping form checks")
            return [FeedbackItem(kind=FeedbackKind.DETECTION_QUALITY, message=TOO_SHORT_MESSAGE)]

        bottom = buffer.bottom_frame_index
        if bottom is None:
            return [FeedbackItem(kind=FeedbackKind.DETECTION_QUALITY, message=NO_BOTTOM_MESSAGE)]

        logger.info(
            f"Evaluating {len(buffer)} frames: bottom at frame {bottom}, "
            f"detection ratio {buffer.detection_ratio:.2f}"
        )

        feedback = []
        for check in self.checks:
            item = check.check(buffer, self.settings)
            if item is not None:
                feedback.append(item)

        if quality_item is not None:
            feedback.append(quality_item)

        if not any(item.is_issue for item in feedback):
            feedback.append(FeedbackItem(
                kind=FeedbackKind.POSITIVE,
                message=POSITIVE_MESSAGE,
                evidence=evidence_at(buffer, bottom),
            ))

        return feedback


def evaluate_all_rules(timeline: FrameTimeline, settings: Optional[Settings] = None) -> List[FeedbackItem]:
    """Pure timeline -> ordered feedback list."""
    settings = settings or get_settings()
    buffer = TemporalPoseBuffer(timeline, settings)
    return FeedbackAggregator(settings).aggregate(buffer)


def summarize_outcome(items: Sequence[FeedbackItem]) -> str:
    """One-line status for an analysis result."""
    if any(
        item.kind == FeedbackKind.DETECTION_QUALITY and item.message == DetectionQualityGate.CRITICAL_MESSAGE
        for item in items
    ):
        return "Video analysis failed: Could not detect poses reliably."
    if any(item.is_issue for item in items):
        return "Video analysis complete. Tap feedback for details."
    if any(item.kind == FeedbackKind.POSITIVE for item in items):
        return "Video analysis complete. Good form overall!"
    if items:
        return "Video analysis incomplete. Tap feedback for details."
    return "Video analysis finished, but no feedback generated."

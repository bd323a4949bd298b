"""
Rule-based squat form evaluation using biomechanical checks.

Each check is a pure function of the pose buffer and the thresholds in
Settings: no I/O, no state, at most one FeedbackItem per check.

CHECKS (run in this order):
- Depth: knee angle at the bottom frame
- KneeValgus: knees collapsing inside the ankles, preferring the ascent
- TorsoAngle: forward lean at the bottom, else torso/thigh angle instability
- HeelLift: ankles rising above their first detected height
- AscentRate: hips rising faster than shoulders out of the bottom

The detection quality gate runs before all of them (see DetectionQualityGate).
"""

from typing import Optional, Tuple

from squat_analysis.config import Settings
from squat_analysis.cv.feedback import Evidence, FeedbackItem, FeedbackKind
from squat_analysis.cv.keypoints import (
    JointId,
    angle_between_vectors,
    angle_with_vertical,
)
from squat_analysis.cv.pose_buffer import TemporalPoseBuffer


def evidence_at(buffer: TemporalPoseBuffer, index: int) -> Optional[Evidence]:
    """Anchor a feedback item to a frame of the buffer."""
    timestamp = buffer.timestamp_at(index)
    if timestamp is None:
        return None
    return Evidence(frame_index=index, timestamp=timestamp)


class SquatCheck:
    """Base class for squat form checks."""

    kind: FeedbackKind

    def check(self, buffer: TemporalPoseBuffer, settings: Settings) -> Optional[FeedbackItem]:
        """
        Perform the check.

        Args:
            buffer: Pose buffer for the whole video
            settings: Application settings with thresholds

        Returns:
            A FeedbackItem if the check found an issue, else None
        """
        raise NotImplementedError


class DepthCheck(SquatCheck):
    """Knee angle at the bottom must close below the depth threshold."""

    kind = FeedbackKind.DEPTH

    def check(self, buffer: TemporalPoseBuffer, settings: Settings) -> Optional[FeedbackItem]:
        bottom = buffer.bottom_frame_index
        if bottom is None:
            return None

        sample = buffer.sample(bottom)
        left = sample.knee_angle("left")
        right = sample.knee_angle("right")
        if left is not None and right is not None:
            knee_angle = (left + right) / 2.0
        else:
            knee_angle = left if left is not None else right

        if knee_angle is None:
            return None

        threshold = settings.max_knee_angle_at_bottom
        if knee_angle > threshold:
            return FeedbackItem(
                kind=self.kind,
                message=(
                    f"Squat Depth: Go deeper. Aim hip crease below knee "
                    f"(angle < ~{int(threshold)}°). Now: {int(knee_angle)}°."
                ),
                evidence=evidence_at(buffer, bottom),
            )
        # Good depth is reported by the aggregator's overall positive item
        return None


class KneeValgusCheck(SquatCheck):
    """Knee gap must stay close to the ankle gap."""

    kind = FeedbackKind.KNEE_VALGUS

    def check(self, buffer: TemporalPoseBuffer, settings: Settings) -> Optional[FeedbackItem]:
        bottom = buffer.bottom_frame_index

        if settings.skip_valgus_on_side_view and bottom is not None:
            if self._is_side_view(buffer.sample(bottom), settings):
                return None

        flagged = []
        for index, sample in enumerate(buffer.samples):
            l_knee, r_knee = sample[JointId.LEFT_KNEE], sample[JointId.RIGHT_KNEE]
            l_ankle, r_ankle = sample[JointId.LEFT_ANKLE], sample[JointId.RIGHT_ANKLE]
            if l_knee is None or r_knee is None or l_ankle is None or r_ankle is None:
                continue

            knee_gap = abs(l_knee.x - r_knee.x)
            ankle_gap = abs(l_ankle.x - r_ankle.x)
            if ankle_gap > settings.min_ankle_gap and knee_gap / ankle_gap < settings.knee_ankle_gap_ratio_threshold:
                flagged.append(index)

        if not flagged:
            return None

        # Caving on the way up matters most
        ascent_start = bottom + 1 if bottom is not None else 0
        on_ascent = [i for i in flagged if i >= ascent_start]
        frame_index = on_ascent[0] if on_ascent else flagged[-1]

        return FeedbackItem(
            kind=self.kind,
            message=(
                "Knee Position: Avoid letting knees cave inward ('valgus'), "
                "especially when standing up. Push knees out over your feet."
            ),
            evidence=evidence_at(buffer, frame_index),
        )

    @staticmethod
    def _is_side_view(sample, settings: Settings) -> bool:
        """Shoulders nearly overlapping horizontally means a profile view."""
        left, right = sample[JointId.LEFT_SHOULDER], sample[JointId.RIGHT_SHOULDER]
        if left is None or right is None:
            return False
        return abs(left.x - right.x) < settings.side_view_shoulder_separation


class TorsoAngleCheck(SquatCheck):
    """Excessive lean at the bottom, or an unstable torso/thigh angle."""

    kind = FeedbackKind.TORSO_ANGLE

    def check(self, buffer: TemporalPoseBuffer, settings: Settings) -> Optional[FeedbackItem]:
        lean = self._check_lean_at_bottom(buffer, settings)
        if lean is not None:
            return lean
        return self._check_angle_stability(buffer, settings)

    def _check_lean_at_bottom(self, buffer: TemporalPoseBuffer, settings: Settings) -> Optional[FeedbackItem]:
        bottom = buffer.bottom_frame_index
        if bottom is None:
            return None

        sample = buffer.sample(bottom)
        hip, shoulder = sample.hip_midpoint, sample.shoulder_midpoint
        if hip is None or shoulder is None:
            return None

        lean = angle_with_vertical(shoulder - hip)
        if lean > settings.max_torso_lean_degrees:
            return FeedbackItem(
                kind=self.kind,
                message=f"Torso Lean: Excessive forward lean ({int(lean)}°). Keep chest up.",
                evidence=evidence_at(buffer, bottom),
            )
        return None

    def _check_angle_stability(self, buffer: TemporalPoseBuffer, settings: Settings) -> Optional[FeedbackItem]:
        largest_change = 0.0
        largest_index = None
        previous = None  # (index, relative angle) of the previous frame

        for index, sample in enumerate(buffer.samples):
            relative = self._torso_thigh_angle(sample)
            if relative is None:
                previous = None
                continue
            if previous is not None and previous[0] == index - 1:
                change = abs(relative - previous[1])
                if change > largest_change:
                    largest_change = change
                    largest_index = index
            previous = (index, relative)

        if largest_index is None or largest_change <= settings.max_torso_angle_change_degrees:
            return None

        return FeedbackItem(
            kind=self.kind,
            message=(
                f"Torso Angle: Inconsistent torso angle during the squat "
                f"(changed {int(largest_change)}° between frames). Keep your back neutral and chest up."
            ),
            evidence=evidence_at(buffer, largest_index),
        )

    @staticmethod
    def _torso_thigh_angle(sample) -> Optional[float]:
        shoulder, hip, knee = sample.shoulder_midpoint, sample.hip_midpoint, sample.knee_midpoint
        if shoulder is None or hip is None or knee is None:
            return None
        return angle_between_vectors(shoulder - hip, hip - knee)


class HeelLiftCheck(SquatCheck):
    """Ankles must not rise above their first detected height."""

    kind = FeedbackKind.HEEL_LIFT

    def check(self, buffer: TemporalPoseBuffer, settings: Settings) -> Optional[FeedbackItem]:
        baseline = None
        max_lift = 0.0
        max_lift_index = None

        for index, sample in enumerate(buffer.samples):
            l_ankle, r_ankle = sample[JointId.LEFT_ANKLE], sample[JointId.RIGHT_ANKLE]
            if l_ankle is None or r_ankle is None:
                continue

            ankle_y = (l_ankle.y + r_ankle.y) / 2.0
            if baseline is None:
                baseline = ankle_y
                continue

            lift = ankle_y - baseline  # y increases upward
            if lift > settings.heel_lift_threshold and lift > max_lift:
                max_lift = lift
                max_lift_index = index

        if max_lift_index is None:
            return None

        return FeedbackItem(
            kind=self.kind,
            message="Heels: Heels lifted. Keep feet flat.",
            evidence=evidence_at(buffer, max_lift_index),
        )


class AscentRateCheck(SquatCheck):
    """Hips must not shoot up ahead of the shoulders out of the bottom."""

    kind = FeedbackKind.ASCENT_RATE

    def check(self, buffer: TemporalPoseBuffer, settings: Settings) -> Optional[FeedbackItem]:
        frame_duration = buffer.timeline.frame_duration
        bottom = buffer.bottom_frame_index
        if not frame_duration or frame_duration <= 0 or bottom is None:
            return None

        # Need at least two frames after the bottom
        if bottom + 2 > buffer.last_index:
            return None

        start = bottom + 1
        end = min(bottom + settings.ascent_window_frames, buffer.last_index)
        elapsed = (end - start) * frame_duration
        if elapsed <= 0:
            return None

        start_sample, end_sample = buffer.sample(start), buffer.sample(end)
        start_hip, end_hip = start_sample.hip_midpoint, end_sample.hip_midpoint
        start_shoulder, end_shoulder = start_sample.shoulder_midpoint, end_sample.shoulder_midpoint
        if any(p is None for p in (start_hip, end_hip, start_shoulder, end_shoulder)):
            return None

        hip_velocity = (end_hip.y - start_hip.y) / elapsed
        shoulder_velocity = (end_shoulder.y - start_shoulder.y) / elapsed

        if shoulder_velocity > 0 and hip_velocity > settings.hip_shoulder_velocity_ratio * shoulder_velocity:
            return FeedbackItem(
                kind=self.kind,
                message="Ascent: Hips rising faster than shoulders. Drive up with chest & hips together.",
                evidence=evidence_at(buffer, start),
            )
        return None


class DetectionQualityGate:
    """
    Global data-quality gate, evaluated before any form check.

    No fully tracked leg anywhere stops the analysis; a low but non-zero
    ratio only adds a warning.
    """

    CRITICAL_MESSAGE = (
        "Could not detect key leg joints consistently in the video. "
        "Ensure good lighting & visibility."
    )
    WARNING_MESSAGE = (
        "Detection Quality: Low confidence in some parts. "
        "Ensure good lighting & full body visibility."
    )

    def evaluate(
        self,
        buffer: TemporalPoseBuffer,
        settings: Settings,
    ) -> Tuple[bool, Optional[FeedbackItem]]:
        """
        Returns:
            Tuple of (short_circuit, feedback item or None)
        """
        ratio = buffer.detection_ratio
        if ratio == 0:
            return True, FeedbackItem(kind=FeedbackKind.DETECTION_QUALITY, message=self.CRITICAL_MESSAGE)
        if ratio < settings.min_detection_ratio:
            return False, FeedbackItem(kind=FeedbackKind.DETECTION_QUALITY, message=self.WARNING_MESSAGE)
        return False, None


# Fixed evaluation order; output order follows it
SQUAT_CHECKS: Tuple[SquatCheck, ...] = (
    DepthCheck(),
    KneeValgusCheck(),
    TorsoAngleCheck(),
    HeelLiftCheck(),
    AscentRateCheck(),
)

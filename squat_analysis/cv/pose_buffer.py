"""Temporal pose buffer: a timeline plus the summary views the rules share."""

from typing import Optional

from squat_analysis.config import Settings, get_settings
from squat_analysis.cv.keypoints import PoseSample
from squat_analysis.cv.timeline import FrameTimeline


class TemporalPoseBuffer:
    """
    Read-only views over one video's FrameTimeline, computed once.

    - detection_ratio: fraction of frames with a fully tracked leg
    - bottom_frame_index: frame with the lowest average hip height
    - is_sufficient: more than `min_frames_for_analysis` frames
    """

    def __init__(self, timeline: FrameTimeline, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.timeline = timeline
        self.detection_ratio = self._compute_detection_ratio(timeline)
        self.bottom_frame_index = self._find_bottom_frame(timeline)
        self.is_sufficient = len(timeline) > settings.min_frames_for_analysis

    def __len__(self) -> int:
        return len(self.timeline)

    @property
    def samples(self):
        return self.timeline.samples

    @property
    def last_index(self) -> int:
        return len(self.timeline) - 1

    def sample(self, index: int) -> Optional[PoseSample]:
        if 0 <= index < len(self.timeline):
            return self.timeline.samples[index]
        return None

    def timestamp_at(self, index: int) -> Optional[float]:
        return self.timeline.timestamp_at(index)

    @staticmethod
    def _compute_detection_ratio(timeline: FrameTimeline) -> float:
        if len(timeline) == 0:
            return 0.0
        tracked = sum(1 for sample in timeline.samples if sample.has_tracked_leg())
        return tracked / len(timeline)

    @staticmethod
    def _find_bottom_frame(timeline: FrameTimeline) -> Optional[int]:
        """First frame minimizing the average hip y."""
        bottom_index = None
        min_hip_y = None
        for index, sample in enumerate(timeline.samples):
            hip = sample.hip_midpoint
            if hip is None:
                continue
            if min_hip_y is None or hip.y < min_hip_y:
                min_hip_y = hip.y
                bottom_index = index
        return bottom_index

"""Per-video sequence of pose samples with their presentation timestamps."""

from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Tuple

from squat_analysis.cv.keypoints import PoseSample


@dataclass(frozen=True)
class FrameTimeline:
    """
    Ordered (PoseSample, timestamp) pairs, one per decoded frame.

    Timestamps are seconds from the start of the video. `frame_duration`
    is the nominal per-frame duration in seconds, None if the frame rate
    could not be determined.
    """
    samples: Tuple[PoseSample, ...]
    timestamps: Tuple[float, ...]
    frame_duration: Optional[float] = None

    def __post_init__(self):
        if len(self.samples) != len(self.timestamps):
            raise ValueError(
                f"Timeline length mismatch: {len(self.samples)} samples, "
                f"{len(self.timestamps)} timestamps"
            )

    @classmethod
    def from_sequences(
        cls,
        samples: Sequence[PoseSample],
        timestamps: Sequence[float],
        frame_duration: Optional[float] = None,
    ) -> "FrameTimeline":
        return cls(
            samples=tuple(samples),
            timestamps=tuple(float(t) for t in timestamps),
            frame_duration=frame_duration,
        )

    def __len__(self) -> int:
        return len(self.samples)

    def __iter__(self) -> Iterator[Tuple[PoseSample, float]]:
        return iter(zip(self.samples, self.timestamps))

    def timestamp_at(self, index: int) -> Optional[float]:
        """Timestamp of a frame, None when the index is out of range."""
        if 0 <= index < len(self.timestamps):
            return self.timestamps[index]
        return None

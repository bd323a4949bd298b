"""Synthetic squat geometry and fake collaborators for the test suite."""

import math
from typing import Dict, List, Optional, Sequence

import numpy as np

from squat_analysis.cv.errors import NoVideoTrack
from squat_analysis.cv.keypoints import JointId, Point, PoseSample, RawKeypoint
from squat_analysis.cv.timeline import FrameTimeline
from squat_analysis.cv.video_decoder import DecodedFrame, VideoTrack

FPS = 30.0

LEFT_ANKLE = Point(0.4, 0.1)
RIGHT_ANKLE = Point(0.6, 0.1)
SHIN = 0.2
THIGH = 0.2

# Knee angle per frame: descend to 70 degrees at frame 5, then rise
SQUAT_KNEE_ANGLES = [140, 126, 112, 98, 84, 70, 84, 98, 112, 126]


def _leg(ankle: Point, knee_angle: float, thigh_direction: float):
    """Knee and hip for a leg with the given interior knee angle and thigh direction (degrees)."""
    shin_direction = math.radians(thigh_direction - knee_angle)
    knee = Point(
        ankle.x - SHIN * math.cos(shin_direction),
        ankle.y - SHIN * math.sin(shin_direction),
    )
    phi = math.radians(thigh_direction)
    hip = Point(knee.x + THIGH * math.cos(phi), knee.y + THIGH * math.sin(phi))
    return knee, hip


def squat_frame(
    knee_angle: float,
    thigh_direction: Optional[float] = None,
    knee_inset: float = 0.0,
    ankle_lift: float = 0.0,
    torso_height: float = 0.3,
    torso_dx: float = 0.0,
) -> PoseSample:
    """
    Both legs side by side, torso vertical unless `torso_dx` tilts it.

    `knee_inset` moves both knees toward the midline, `ankle_lift` raises
    both ankles without moving the rest of the leg.
    """
    if thigh_direction is None:
        thigh_direction = knee_angle - 90.0

    l_knee, l_hip = _leg(LEFT_ANKLE, knee_angle, thigh_direction)
    r_knee, r_hip = _leg(RIGHT_ANKLE, knee_angle, thigh_direction)
    l_knee = Point(l_knee.x + knee_inset, l_knee.y)
    r_knee = Point(r_knee.x - knee_inset, r_knee.y)

    hip_mid = Point((l_hip.x + r_hip.x) / 2, (l_hip.y + r_hip.y) / 2)
    shoulder_y = hip_mid.y + torso_height
    shoulder_x = hip_mid.x + torso_dx

    points = [None] * len(JointId)
    points[JointId.ROOT] = hip_mid
    points[JointId.LEFT_HIP] = l_hip
    points[JointId.RIGHT_HIP] = r_hip
    points[JointId.LEFT_KNEE] = l_knee
    points[JointId.RIGHT_KNEE] = r_knee
    points[JointId.LEFT_ANKLE] = Point(LEFT_ANKLE.x, LEFT_ANKLE.y + ankle_lift)
    points[JointId.RIGHT_ANKLE] = Point(RIGHT_ANKLE.x, RIGHT_ANKLE.y + ankle_lift)
    points[JointId.LEFT_SHOULDER] = Point(shoulder_x - 0.05, shoulder_y)
    points[JointId.RIGHT_SHOULDER] = Point(shoulder_x + 0.05, shoulder_y)
    return PoseSample(points=tuple(points))


def hips_only_frame(hip_y: float = 0.5) -> PoseSample:
    """A frame where only the hips were detected (no tracked leg)."""
    points = [None] * len(JointId)
    points[JointId.LEFT_HIP] = Point(0.45, hip_y)
    points[JointId.RIGHT_HIP] = Point(0.55, hip_y)
    return PoseSample(points=tuple(points))


def squat_samples() -> List[PoseSample]:
    return [squat_frame(angle) for angle in SQUAT_KNEE_ANGLES]


def make_timeline(samples: Sequence[PoseSample], fps: Optional[float] = FPS) -> FrameTimeline:
    timestamps = [i / (fps or FPS) for i in range(len(samples))]
    return FrameTimeline.from_sequences(samples, timestamps, 1.0 / fps if fps else None)


def to_keypoints(sample: PoseSample, confidence: float = 0.9) -> Dict[JointId, RawKeypoint]:
    """Estimator output that reproduces `sample`."""
    return {
        joint: RawKeypoint(point.x, point.y, confidence)
        for joint, point in zip(JointId, sample.points)
        if point is not None
    }


def blank_image(value: int = 0) -> np.ndarray:
    return np.full((8, 8, 3), value, dtype=np.uint8)


class FakeDecoder:
    """
    In-memory VideoDecoder.

    `frames` is a list of images (None marks an undecodable frame). Set
    `fail_after` to raise from the frame stream after that many frames.
    """

    def __init__(
        self,
        frames: Sequence[Optional[np.ndarray]],
        fps: Optional[float] = FPS,
        fail_after: Optional[int] = None,
        error: Optional[Exception] = None,
        has_video: bool = True,
    ):
        self.frames = list(frames)
        self.fps = fps
        self.fail_after = fail_after
        self.error = error or RuntimeError("stream broke")
        self.has_video = has_video
        self.opened: List[VideoTrack] = []
        self.closed: List[VideoTrack] = []
        self.snapshots: List[float] = []
        self.max_open = 0

    @property
    def open_handles(self) -> int:
        return len(self.opened) - len(self.closed)

    async def open(self, source: str) -> VideoTrack:
        if not self.has_video:
            raise NoVideoTrack(source)
        track = VideoTrack(
            source=source,
            fps=self.fps or 0.0,
            frame_count=len(self.frames),
            width=8,
            height=8,
            handle=object(),
        )
        self.opened.append(track)
        self.max_open = max(self.max_open, self.open_handles)
        return track

    async def read_frames(self, track: VideoTrack):
        for number, image in enumerate(self.frames):
            if self.fail_after is not None and number >= self.fail_after:
                raise self.error
            timestamp = number / self.fps if self.fps else 0.0
            yield DecodedFrame(image=image, timestamp=timestamp, frame_number=number)

    async def frame_rate(self, track: VideoTrack) -> Optional[float]:
        return self.fps

    async def snapshot_at(self, track: VideoTrack, timestamp: float) -> Optional[np.ndarray]:
        if track.handle is None:
            return None
        self.snapshots.append(timestamp)
        if not self.frames:
            return None
        index = min(int(round(timestamp * (self.fps or FPS))), len(self.frames) - 1)
        return self.frames[index]

    async def close(self, track: VideoTrack) -> None:
        track.handle = None
        self.closed.append(track)


class FakeEstimator:
    """
    Replays keypoints frame by frame.

    A frame whose entry is an Exception raises it instead.
    """

    def __init__(self, outputs: Sequence):
        self.outputs = list(outputs)
        self.calls = 0

    async def estimate(self, frame: np.ndarray) -> Dict[JointId, RawKeypoint]:
        output = self.outputs[self.calls % len(self.outputs)]
        self.calls += 1
        if isinstance(output, Exception):
            raise output
        return output


def fake_video(samples: Sequence[PoseSample]):
    """Decoder/estimator pair that yields `samples` as the video's poses."""
    decoder = FakeDecoder([blank_image(i % 256) for i in range(len(samples))])
    estimator = FakeEstimator([to_keypoints(sample) for sample in samples])
    return decoder, estimator

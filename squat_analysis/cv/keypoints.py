"""
Keypoint vocabulary shared by every stage of the squat pipeline.

Nine landmarks are tracked per frame. Coordinates are normalized to [0, 1]
with y increasing UPWARD (0 = bottom of the frame), so a rising hip has a
growing y value. Estimators that report image coordinates (y downward) must
flip before producing a PoseSample.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Optional, Tuple

import numpy as np


class JointId(IntEnum):
    """Tracked landmarks. Index position is used as the slot offset in PoseSample."""
    ROOT = 0
    LEFT_HIP = 1
    RIGHT_HIP = 2
    LEFT_KNEE = 3
    RIGHT_KNEE = 4
    LEFT_ANKLE = 5
    RIGHT_ANKLE = 6
    LEFT_SHOULDER = 7
    RIGHT_SHOULDER = 8


NUM_JOINTS = len(JointId)


@dataclass(frozen=True)
class Point:
    """2D location in normalized coordinates."""
    x: float
    y: float

    def __sub__(self, other: "Point") -> "Point":
        return Point(self.x - other.x, self.y - other.y)


@dataclass(frozen=True)
class RawKeypoint:
    """Keypoint exactly as reported by the pose estimator."""
    x: float
    y: float
    confidence: float


@dataclass(frozen=True)
class PoseSample:
    """
    One frame's worth of joint positions.

    `points` always has NUM_JOINTS slots; a slot is None when the joint
    was not detected or its confidence was too low.
    """
    points: Tuple[Optional[Point], ...]

    def __post_init__(self):
        if len(self.points) != NUM_JOINTS:
            raise ValueError(
                f"PoseSample needs {NUM_JOINTS} slots, got {len(self.points)}"
            )

    @classmethod
    def empty(cls) -> "PoseSample":
        """Sample with no detected joints."""
        return cls(points=(None,) * NUM_JOINTS)

    @classmethod
    def from_keypoints(
        cls,
        keypoints: Dict[JointId, RawKeypoint],
        confidence_threshold: float,
    ) -> "PoseSample":
        """Keep only keypoints whose confidence is strictly above the threshold."""
        points = []
        for joint in JointId:
            kp = keypoints.get(joint)
            if kp is not None and kp.confidence > confidence_threshold:
                points.append(Point(float(kp.x), float(kp.y)))
            else:
                points.append(None)
        return cls(points=tuple(points))

    def __getitem__(self, joint: JointId) -> Optional[Point]:
        return self.points[joint]

    @property
    def is_empty(self) -> bool:
        return all(p is None for p in self.points)

    def has_tracked_leg(self) -> bool:
        """True if hip, knee and ankle are all present on at least one side."""
        left = all(self[j] is not None for j in (JointId.LEFT_HIP, JointId.LEFT_KNEE, JointId.LEFT_ANKLE))
        right = all(self[j] is not None for j in (JointId.RIGHT_HIP, JointId.RIGHT_KNEE, JointId.RIGHT_ANKLE))
        return left or right

    # Midpoints fall back to whichever side is present
    @property
    def hip_midpoint(self) -> Optional[Point]:
        return average_point(self[JointId.LEFT_HIP], self[JointId.RIGHT_HIP])

    @property
    def knee_midpoint(self) -> Optional[Point]:
        return average_point(self[JointId.LEFT_KNEE], self[JointId.RIGHT_KNEE])

    @property
    def shoulder_midpoint(self) -> Optional[Point]:
        return average_point(self[JointId.LEFT_SHOULDER], self[JointId.RIGHT_SHOULDER])

    def knee_angle(self, side: str = "left") -> Optional[float]:
        """
        Interior knee angle (ankle-knee-hip) in degrees.

        Returns 180 for a straight leg.
        """
        if side == "left":
            ankle, knee, hip = self[JointId.LEFT_ANKLE], self[JointId.LEFT_KNEE], self[JointId.LEFT_HIP]
        else:
            ankle, knee, hip = self[JointId.RIGHT_ANKLE], self[JointId.RIGHT_KNEE], self[JointId.RIGHT_HIP]
        return calculate_angle(ankle, knee, hip)


def average_point(p1: Optional[Point], p2: Optional[Point]) -> Optional[Point]:
    """Midpoint of two points, or whichever one is present."""
    if p1 is not None and p2 is not None:
        return Point((p1.x + p2.x) / 2.0, (p1.y + p2.y) / 2.0)
    return p1 if p1 is not None else p2


def angle_between_vectors(v1: Point, v2: Point) -> float:
    """
    Interior angle between two vectors in degrees (0-180).

    Uses the atan2 difference normalized to [0, 360) and folded.
    """
    diff = np.degrees(np.arctan2(v1.y, v1.x) - np.arctan2(v2.y, v2.x)) % 360.0
    return float(min(diff, 360.0 - diff))


def calculate_angle(
    point_a: Optional[Point],
    vertex: Optional[Point],
    point_c: Optional[Point],
) -> Optional[float]:
    """Calculate angle at vertex formed by points a, vertex, c."""
    if point_a is None or vertex is None or point_c is None:
        return None
    return angle_between_vectors(point_a - vertex, point_c - vertex)


def angle_with_vertical(vector: Point) -> float:
    """
    Angle of a vector from straight up, folded into [0, 180].

    A zero vector is treated as vertical.
    """
    if vector.x == 0 and vector.y == 0:
        return 0.0
    angle = np.degrees(np.arctan2(vector.x, vector.y)) % 360.0
    return float(min(angle, 360.0 - angle))

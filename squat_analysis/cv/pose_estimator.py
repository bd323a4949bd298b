"""Pose estimation collaborator contract."""

from typing import Dict, Protocol

import numpy as np

from squat_analysis.cv.keypoints import JointId, RawKeypoint


class PoseEstimator(Protocol):
    """
    Estimates body keypoints from a single decoded frame.

    Returns the keypoints it found keyed by joint; missing joints are simply
    absent. Coordinates must already be normalized with y increasing upward.
    Raises on estimation failure.
    """

    async def estimate(self, frame: np.ndarray) -> Dict[JointId, RawKeypoint]:
        ...

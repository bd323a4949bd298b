"""
Pose estimation using MediaPipe Pose Landmarker (Tasks API).

MediaPipe reports 33 landmarks in image coordinates (y downward). This
module maps the ones the squat rules need onto JointId, flips y so it
increases upward, and synthesizes the pelvis root from the two hips.
"""

import asyncio
import os
import logging
from typing import Dict, Optional

import cv2
import mediapipe as mp
import numpy as np
from mediapipe.tasks import python
from mediapipe.tasks.python import vision

from squat_analysis.cv.keypoints import JointId, RawKeypoint

logger = logging.getLogger(__name__)


# MediaPipe Pose landmark index for each tracked joint (root is synthesized)
MEDIAPIPE_LANDMARKS = {
    JointId.LEFT_SHOULDER: 11,
    JointId.RIGHT_SHOULDER: 12,
    JointId.LEFT_HIP: 23,
    JointId.RIGHT_HIP: 24,
    JointId.LEFT_KNEE: 25,
    JointId.RIGHT_KNEE: 26,
    JointId.LEFT_ANKLE: 27,
    JointId.RIGHT_ANKLE: 28,
}

MODEL_NAMES = {
    0: "pose_landmarker_lite.task",
    1: "pose_landmarker_full.task",
    2: "pose_landmarker_heavy.task",
}


def get_model_path(complexity: int = 1, explicit_path: Optional[str] = None) -> str:
    """
    Get the path to the pose landmarker model.

    Args:
        complexity: 0=lite (fastest), 1=full, 2=heavy (most accurate)
        explicit_path: Configured model path, used as-is when it exists
    """
    if explicit_path:
        if os.path.exists(explicit_path):
            return explicit_path
        raise FileNotFoundError(f"Pose landmarker model not found: {explicit_path}")

    model_name = MODEL_NAMES.get(complexity, MODEL_NAMES[1])
    base_dirs = [
        os.path.join(os.path.dirname(__file__), "..", "..", "models"),
        os.path.join(os.getcwd(), "models"),
    ]

    for base_dir in base_dirs:
        path = os.path.abspath(os.path.join(base_dir, model_name))
        if os.path.exists(path):
            return path

    # Fallback to any available model
    for base_dir in base_dirs:
        for name in MODEL_NAMES.values():
            path = os.path.abspath(os.path.join(base_dir, name))
            if os.path.exists(path):
                return path

    raise FileNotFoundError(
        "Pose landmarker model not found. "
        "Download from: https://storage.googleapis.com/mediapipe-models/pose_landmarker/"
    )


class MediaPipePoseEstimator:
    """PoseEstimator backed by MediaPipe in single-image mode."""

    def __init__(
        self,
        model_complexity: int = 1,
        model_path: Optional[str] = None,
        min_detection_confidence: float = 0.5,
    ):
        base_options = python.BaseOptions(
            model_asset_path=get_model_path(model_complexity, model_path)
        )
        options = vision.PoseLandmarkerOptions(
            base_options=base_options,
            running_mode=vision.RunningMode.IMAGE,
            min_pose_detection_confidence=min_detection_confidence,
            num_poses=1,  # Single athlete per video
        )
        self.landmarker = vision.PoseLandmarker.create_from_options(options)

    async def estimate(self, frame: np.ndarray) -> Dict[JointId, RawKeypoint]:
        return await asyncio.to_thread(self._estimate_sync, frame)

    def _estimate_sync(self, frame: np.ndarray) -> Dict[JointId, RawKeypoint]:
        # Convert BGR to RGB for MediaPipe
        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb_frame)

        result = self.landmarker.detect(mp_image)
        if not result.pose_landmarks:
            return {}

        landmarks = result.pose_landmarks[0]
        keypoints: Dict[JointId, RawKeypoint] = {}
        for joint, index in MEDIAPIPE_LANDMARKS.items():
            lm = landmarks[index]
            vis = lm.visibility if lm.visibility is not None else 0.0
            keypoints[joint] = RawKeypoint(x=lm.x, y=1.0 - lm.y, confidence=vis)

        left_hip = keypoints[JointId.LEFT_HIP]
        right_hip = keypoints[JointId.RIGHT_HIP]
        keypoints[JointId.ROOT] = RawKeypoint(
            x=(left_hip.x + right_hip.x) / 2,
            y=(left_hip.y + right_hip.y) / 2,
            confidence=min(left_hip.confidence, right_hip.confidence),
        )
        return keypoints

    def close(self):
        """Release resources."""
        self.landmarker.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

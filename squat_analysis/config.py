"""Application configuration."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Squat Form Analyzer"
    debug: bool = False
    api_prefix: str = "/api"

    # Storage
    upload_dir: str = "./uploads"
    max_video_size_mb: int = 500
    max_open_sessions: int = 8  # Oldest session is released beyond this

    # Pose Estimation
    keypoint_confidence_threshold: float = 0.1  # Keypoint kept only if confidence is above this
    pose_model_complexity: int = 1  # 0=lite, 1=full, 2=heavy
    pose_model_path: Optional[str] = None
    min_pose_detection_confidence: float = 0.5

    # Analysis gating
    min_frames_for_analysis: int = 5  # Videos with this many frames or fewer are rejected
    min_detection_ratio: float = 0.6  # Fraction of frames with a fully tracked leg

    # Squat Rule Thresholds (empirical, not validated biomechanics)
    max_knee_angle_at_bottom: float = 100.0  # Above this the squat is too shallow
    min_ankle_gap: float = 0.01  # Ankles closer than this can't be judged for valgus
    knee_ankle_gap_ratio_threshold: float = 0.9  # Knee gap below 90% of ankle gap = caving in
    max_torso_lean_degrees: float = 55.0  # Lean from vertical at the bottom
    max_torso_angle_change_degrees: float = 15.0  # Frame-to-frame torso/thigh angle change
    heel_lift_threshold: float = 0.02  # Normalized ankle rise over baseline
    hip_shoulder_velocity_ratio: float = 1.5  # Hips rising this much faster than shoulders
    ascent_window_frames: int = 3  # Frames after the bottom used for ascent velocity

    # Valgus side-view heuristic
    skip_valgus_on_side_view: bool = False
    side_view_shoulder_separation: float = 0.15  # Shoulders closer than this in x = side view

    class Config:
        env_file = ".env"
        env_prefix = "SQUAT_"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

"""
Squat form video analysis pipeline.

PIPELINE COMPONENTS:
1. FrameAcquirer: decode frames and estimate one pose per frame
2. TemporalPoseBuffer: detection ratio and bottom-of-squat frame
3. Squat checks: depth, knee valgus, torso angle, heel lift, ascent rate
4. FeedbackAggregator: quality gate, fixed ordering, positive fallback
5. FrameLookupService: evidence frames by timestamp
6. AnalysisSession: orchestration, cancellation and handle release

The MediaPipe-backed estimator lives in `squat_analysis.cv.mediapipe_estimator`
and is imported on demand so the pipeline can run against any PoseEstimator.

Usage:
    from squat_analysis.cv import AnalysisSession, OpenCVVideoDecoder

    async with AnalysisSession(OpenCVVideoDecoder(), estimator) as session:
        feedback = await session.analyze("squat.mp4")
        image = await session.fetch_frame(feedback[0].timestamp)
"""

from squat_analysis.cv.keypoints import (
    JointId, Point, RawKeypoint, PoseSample,
    average_point, angle_between_vectors, calculate_angle, angle_with_vertical,
)
from squat_analysis.cv.timeline import FrameTimeline
from squat_analysis.cv.errors import AnalysisError, NoVideoTrack, EmptyVideo, DecodeFailed
from squat_analysis.cv.video_decoder import VideoDecoder, VideoTrack, DecodedFrame, OpenCVVideoDecoder
from squat_analysis.cv.pose_estimator import PoseEstimator
from squat_analysis.cv.acquisition import FrameAcquirer
from squat_analysis.cv.pose_buffer import TemporalPoseBuffer
from squat_analysis.cv.feedback import FeedbackKind, FeedbackItem, Evidence, ExplanationBundle
from squat_analysis.cv.rules import (
    SquatCheck, DepthCheck, KneeValgusCheck, TorsoAngleCheck, HeelLiftCheck,
    AscentRateCheck, DetectionQualityGate, SQUAT_CHECKS,
)
from squat_analysis.cv.aggregator import FeedbackAggregator, evaluate_all_rules, summarize_outcome
from squat_analysis.cv.explanations import explain
from squat_analysis.cv.frame_lookup import FrameLookupService
from squat_analysis.cv.session import AnalysisSession

__all__ = [
    # Keypoint types
    "JointId",
    "Point",
    "RawKeypoint",
    "PoseSample",
    "average_point",
    "angle_between_vectors",
    "calculate_angle",
    "angle_with_vertical",
    "FrameTimeline",

    # Errors
    "AnalysisError",
    "NoVideoTrack",
    "EmptyVideo",
    "DecodeFailed",

    # Collaborators
    "VideoDecoder",
    "VideoTrack",
    "DecodedFrame",
    "OpenCVVideoDecoder",
    "PoseEstimator",

    # Acquisition & buffering
    "FrameAcquirer",
    "TemporalPoseBuffer",

    # Rules & feedback
    "FeedbackKind",
    "FeedbackItem",
    "Evidence",
    "ExplanationBundle",
    "SquatCheck",
    "DepthCheck",
    "KneeValgusCheck",
    "TorsoAngleCheck",
    "HeelLiftCheck",
    "AscentRateCheck",
    "DetectionQualityGate",
    "SQUAT_CHECKS",
    "FeedbackAggregator",
    "evaluate_all_rules",
    "summarize_outcome",
    "explain",

    # Session
    "FrameLookupService",
    "AnalysisSession",
]

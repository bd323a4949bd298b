"""
Frame/pose acquisition.

Drives the decode and pose collaborators to build a FrameTimeline:
1. Read frames strictly in presentation order
2. Estimate the pose of every frame once
3. Keep keypoints above the confidence threshold, None otherwise

A frame whose pose estimation fails is NOT dropped: an all-None sample is
recorded so the sample and timestamp sequences stay aligned.
"""

import logging
from contextlib import aclosing
from typing import Callable, List, Optional

from squat_analysis.config import Settings, get_settings
from squat_analysis.cv.errors import AnalysisError, DecodeFailed, EmptyVideo
from squat_analysis.cv.keypoints import PoseSample
from squat_analysis.cv.pose_estimator import PoseEstimator
from squat_analysis.cv.timeline import FrameTimeline
from squat_analysis.cv.video_decoder import DecodedFrame, VideoDecoder, VideoTrack

logger = logging.getLogger(__name__)


class FrameAcquirer:
    """Builds the pose timeline for one opened video track."""

    PROGRESS_LOG_INTERVAL = 10  # Frames between progress log lines

    def __init__(
        self,
        decoder: VideoDecoder,
        estimator: PoseEstimator,
        settings: Optional[Settings] = None,
        progress_callback: Optional[Callable[[float], None]] = None,
    ):
        self.decoder = decoder
        self.estimator = estimator
        self.settings = settings or get_settings()
        self.progress_callback = progress_callback

    async def acquire(self, track: VideoTrack) -> FrameTimeline:
        """
        Decode every frame of the track and estimate its pose.

        Raises:
            EmptyVideo: no frame could be read at all
            DecodeFailed: the decode stream failed after reading began
        """
        samples: List[PoseSample] = []
        timestamps: List[float] = []
        skipped = 0
        failed_estimations = 0

        try:
            async with aclosing(self.decoder.read_frames(track)) as frames:
                async for frame in frames:
                    if frame.image is None:
                        skipped += 1
                        logger.warning(f"Skipping undecodable frame {frame.frame_number}")
                        continue

                    sample = await self._estimate(frame)
                    if sample is None:
                        failed_estimations += 1
                        sample = PoseSample.empty()

                    samples.append(sample)
                    timestamps.append(frame.timestamp)

                    if len(samples) % self.PROGRESS_LOG_INTERVAL == 0:
                        logger.info(f"Processed {len(samples)} frames...")
                    if self.progress_callback and track.frame_count > 0:
                        self.progress_callback(min(1.0, (frame.frame_number + 1) / track.frame_count))
        except AnalysisError:
            raise
        except Exception as e:
            raise DecodeFailed(str(e)) from e

        if not samples:
            raise EmptyVideo(track.source)

        fps = await self.decoder.frame_rate(track)
        frame_duration = 1.0 / fps if fps else None

        logger.info(
            f"Acquired {len(samples)} frames ({skipped} undecodable skipped, "
            f"{failed_estimations} pose estimation failures)"
        )

        return FrameTimeline.from_sequences(samples, timestamps, frame_duration)

    async def _estimate(self, frame: DecodedFrame) -> Optional[PoseSample]:
        """Estimate one frame. Returns None if the estimator raised."""
        try:
            keypoints = await self.estimator.estimate(frame.image)
        except Exception as e:
            logger.warning(f"Pose estimation failed for frame {frame.frame_number}: {e}")
            return None
        return PoseSample.from_keypoints(keypoints, self.settings.keypoint_confidence_threshold)

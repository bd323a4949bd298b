"""
Squat analysis session.

One session analyzes one video at a time and keeps that video's decode
handle open for evidence frame lookups until release(). Starting a new
analysis cancels the one in flight and releases its handle; a cancelled
run never surfaces partial feedback.
"""

import asyncio
import logging
from typing import Callable, List, Optional

import numpy as np

from squat_analysis.config import Settings, get_settings
from squat_analysis.cv.acquisition import FrameAcquirer
from squat_analysis.cv.aggregator import evaluate_all_rules
from squat_analysis.cv.feedback import FeedbackItem
from squat_analysis.cv.frame_lookup import FrameLookupService
from squat_analysis.cv.pose_estimator import PoseEstimator
from squat_analysis.cv.video_decoder import VideoDecoder

logger = logging.getLogger(__name__)


class AnalysisSession:
    """Entry point for callers: analyze(), fetch_frame(), release()."""

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
        self._lookup: Optional[FrameLookupService] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def has_open_video(self) -> bool:
        return self._lookup is not None and self._lookup.is_open

    async def analyze(self, source: str) -> List[FeedbackItem]:
        """
        Analyze a squat video.

        Args:
            source: Video handle understood by the decoder (file path for OpenCV)

        Returns:
            Ordered feedback items

        Raises:
            NoVideoTrack, EmptyVideo, DecodeFailed
        """
        await self._release_lookup()

        logger.info(f"Starting squat analysis: {source}")
        track = await self.decoder.open(source)
        try:
            acquirer = FrameAcquirer(
                self.decoder,
                self.estimator,
                settings=self.settings,
                progress_callback=self.progress_callback,
            )
            timeline = await acquirer.acquire(track)
        except BaseException:
            # Failure or cancellation: nothing keeps the handle
            await self.decoder.close(track)
            raise

        self._lookup = FrameLookupService(self.decoder, track)

        feedback = evaluate_all_rules(timeline, self.settings)
        logger.info(
            f"Analysis complete: {len(feedback)} feedback items "
            f"({', '.join(item.kind.value for item in feedback)})"
        )
        return feedback

    def start(self, source: str) -> asyncio.Task:
        """Run analyze() as a task, cancelling any analysis still in flight."""
        previous = self._task
        if previous is not None and not previous.done():
            logger.info("New video selected, cancelling in-flight analysis")
            previous.cancel()
        self._task = asyncio.create_task(self._analyze_after(previous, source))
        return self._task

    async def _analyze_after(self, previous: Optional[asyncio.Task], source: str) -> List[FeedbackItem]:
        # The cancelled run closes its track before this one opens another
        if previous is not None:
            await asyncio.wait({previous})
        return await self.analyze(source)

    async def fetch_frame(self, timestamp: float) -> Optional[np.ndarray]:
        """Evidence image nearest to a feedback timestamp, None if unavailable."""
        if self._lookup is None:
            return None
        return await self._lookup.fetch_frame(timestamp)

    async def release(self) -> None:
        """Cancel any in-flight analysis and close the decode handle."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            await asyncio.wait({self._task})
        self._task = None
        await self._release_lookup()

    async def _release_lookup(self) -> None:
        if self._lookup is not None:
            lookup, self._lookup = self._lookup, None
            await lookup.release()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.release()

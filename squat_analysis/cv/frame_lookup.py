"""On-demand evidence frames for feedback items."""

import asyncio
import logging
from typing import Optional

import numpy as np

from squat_analysis.cv.video_decoder import VideoDecoder, VideoTrack

logger = logging.getLogger(__name__)


class FrameLookupService:
    """
    Materializes single frames of an analyzed video by timestamp.

    Owns the track's decode handle until release(); lookups after release
    return None.
    """

    def __init__(self, decoder: VideoDecoder, track: VideoTrack):
        self.decoder = decoder
        self.track: Optional[VideoTrack] = track
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self.track is not None

    async def fetch_frame(self, timestamp: float) -> Optional[np.ndarray]:
        """Image of the frame nearest to `timestamp`, or None if it can't be decoded."""
        async with self._lock:
            if self.track is None:
                return None
            try:
                return await self.decoder.snapshot_at(self.track, timestamp)
            except Exception as e:
                logger.warning(f"Error generating frame image at {timestamp:.3f}s: {e}")
                return None

    async def release(self) -> None:
        async with self._lock:
            if self.track is None:
                return
            track, self.track = self.track, None
            await self.decoder.close(track)
            logger.debug(f"Released decode handle for {track.source}")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.release()

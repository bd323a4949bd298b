"""
Video decode collaborator.

The pipeline only depends on the `VideoDecoder` protocol:
- open(): probe the file and return its first video track (NoVideoTrack if none)
- read_frames(): frames in presentation order; finite, restartable only by
  calling it again
- frame_rate(): nominal FPS, None if unknown
- snapshot_at(): single image nearest to a timestamp, for evidence display
- close(): release the track's decode handle

`OpenCVVideoDecoder` implements it on top of one cv2.VideoCapture per track,
used for the sequential read and then for snapshot seeks. Blocking OpenCV
calls run in a worker thread under the track lock, so close() waits for
any grab still running after a cancellation.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional, Protocol

import cv2
import numpy as np

from squat_analysis.cv.errors import DecodeFailed, NoVideoTrack

logger = logging.getLogger(__name__)


@dataclass
class VideoTrack:
    """An opened video track."""
    source: str
    fps: float
    frame_count: int
    width: int
    height: int

    # Decoder-owned handle (the cv2.VideoCapture for OpenCV)
    handle: Any = field(default=None, repr=False, compare=False)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def duration_seconds(self) -> float:
        return self.frame_count / self.fps if self.fps > 0 else 0.0


@dataclass
class DecodedFrame:
    """
    One decoded frame.

    `image` is None when this frame could not be decoded but the stream
    is still readable; consumers skip such frames.
    """
    image: Optional[np.ndarray]
    timestamp: float
    frame_number: int


class VideoDecoder(Protocol):
    async def open(self, source: str) -> VideoTrack:
        ...

    def read_frames(self, track: VideoTrack) -> AsyncIterator[DecodedFrame]:
        ...

    async def frame_rate(self, track: VideoTrack) -> Optional[float]:
        ...

    async def snapshot_at(self, track: VideoTrack, timestamp: float) -> Optional[np.ndarray]:
        ...

    async def close(self, track: VideoTrack) -> None:
        ...


class OpenCVVideoDecoder:
    """VideoDecoder backed by OpenCV."""

    async def open(self, source: str) -> VideoTrack:
        cap = await asyncio.to_thread(cv2.VideoCapture, source)
        if not cap.isOpened():
            cap.release()
            raise NoVideoTrack(source)

        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        if width <= 0 or height <= 0:
            cap.release()
            raise NoVideoTrack(source)

        track = VideoTrack(
            source=source,
            fps=float(cap.get(cv2.CAP_PROP_FPS) or 0.0),
            frame_count=int(cap.get(cv2.CAP_PROP_FRAME_COUNT)),
            width=width,
            height=height,
            handle=cap,
        )
        logger.info(
            f"Opened video {source}: {track.width}x{track.height}, "
            f"{track.fps:.1f}fps, {track.frame_count} frames"
        )
        return track

    async def read_frames(self, track: VideoTrack) -> AsyncIterator[DecodedFrame]:
        rewound = await asyncio.to_thread(self._rewind, track)
        if not rewound:
            raise DecodeFailed(f"Video is no longer open: {track.source}")

        frame_number = 0
        while True:
            try:
                grabbed, position_ms = await asyncio.to_thread(self._grab, track)
            except cv2.error as e:
                raise DecodeFailed(str(e)) from e
            if not grabbed:
                break

            if track.fps > 0:
                timestamp = frame_number / track.fps
            else:
                timestamp = position_ms / 1000.0

            try:
                ok, image = await asyncio.to_thread(self._retrieve, track)
            except cv2.error as e:
                logger.warning(f"Frame {frame_number} could not be decoded: {e}")
                ok, image = False, None

            yield DecodedFrame(
                image=image if ok else None,
                timestamp=timestamp,
                frame_number=frame_number,
            )
            frame_number += 1

    async def frame_rate(self, track: VideoTrack) -> Optional[float]:
        return track.fps if track.fps > 0 else None

    async def snapshot_at(self, track: VideoTrack, timestamp: float) -> Optional[np.ndarray]:
        if track.handle is None:
            return None
        return await asyncio.to_thread(self._read_nearest, track, timestamp)

    async def close(self, track: VideoTrack) -> None:
        await asyncio.to_thread(self._release, track)

    # Blocking helpers, run in a worker thread. Each holds the track lock
    # for the whole capture call.

    @staticmethod
    def _rewind(track: VideoTrack) -> bool:
        with track.lock:
            if track.handle is None:
                return False
            track.handle.set(cv2.CAP_PROP_POS_FRAMES, 0)
            return True

    @staticmethod
    def _grab(track: VideoTrack):
        with track.lock:
            cap = track.handle
            if cap is None:
                return False, 0.0
            grabbed = cap.grab()
            return grabbed, cap.get(cv2.CAP_PROP_POS_MSEC)

    @staticmethod
    def _retrieve(track: VideoTrack):
        with track.lock:
            if track.handle is None:
                return False, None
            return track.handle.retrieve()

    @staticmethod
    def _read_nearest(track: VideoTrack, timestamp: float) -> Optional[np.ndarray]:
        """Seek to the frame nearest the timestamp and decode it."""
        with track.lock:
            cap = track.handle
            if cap is None:
                return None
            if track.fps > 0:
                cap.set(cv2.CAP_PROP_POS_FRAMES, int(round(timestamp * track.fps)))
            else:
                cap.set(cv2.CAP_PROP_POS_MSEC, timestamp * 1000.0)
            ok, image = cap.read()
            return image if ok else None

    @staticmethod
    def _release(track: VideoTrack) -> None:
        with track.lock:
            if track.handle is not None:
                track.handle.release()
                track.handle = None

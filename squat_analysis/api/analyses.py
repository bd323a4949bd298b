"""Squat video analysis API endpoints."""

import logging
import os
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

import cv2
from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status

from squat_analysis.config import get_settings
from squat_analysis.cv.errors import AnalysisError
from squat_analysis.cv.aggregator import summarize_outcome
from squat_analysis.cv.explanations import explain
from squat_analysis.cv.session import AnalysisSession
from squat_analysis.cv.pose_estimator import PoseEstimator
from squat_analysis.cv.video_decoder import OpenCVVideoDecoder, VideoDecoder
from squat_analysis.schemas.feedback import AnalysisResponse, FeedbackItemResponse

logger = logging.getLogger(__name__)

router = APIRouter()
settings = get_settings()


ALLOWED_EXTENSIONS = {".mp4", ".mov", ".m4v", ".avi", ".mkv"}
MAX_FILE_SIZE = settings.max_video_size_mb * 1024 * 1024  # Convert to bytes


@dataclass
class RegisteredSession:
    session: AnalysisSession
    video_path: str


class SessionRegistry:
    """
    Analysis sessions kept open for evidence frame lookups.

    Bounded: registering beyond `max_sessions` releases the oldest session.
    Releasing a session also deletes its uploaded video.
    """

    def __init__(self, max_sessions: int):
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, RegisteredSession]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, analysis_id: str) -> bool:
        return analysis_id in self._sessions

    def get(self, analysis_id: str) -> Optional[AnalysisSession]:
        entry = self._sessions.get(analysis_id)
        return entry.session if entry else None

    async def add(self, analysis_id: str, session: AnalysisSession, video_path: str) -> None:
        self._sessions[analysis_id] = RegisteredSession(session, video_path)
        while len(self._sessions) > self.max_sessions:
            oldest_id = next(iter(self._sessions))
            logger.info(f"Session limit reached, releasing analysis {oldest_id}")
            await self.release(oldest_id)

    async def release(self, analysis_id: str) -> bool:
        entry = self._sessions.pop(analysis_id, None)
        if entry is None:
            return False
        await entry.session.release()
        if os.path.exists(entry.video_path):
            os.remove(entry.video_path)
        return True

    async def release_all(self) -> None:
        for analysis_id in list(self._sessions):
            await self.release(analysis_id)


session_registry = SessionRegistry(max_sessions=settings.max_open_sessions)


def get_session_registry() -> SessionRegistry:
    return session_registry


def get_decoder() -> VideoDecoder:
    return OpenCVVideoDecoder()


def get_pose_estimator() -> Iterator[PoseEstimator]:
    """MediaPipe pose estimator, closed once the request finishes."""
    from squat_analysis.cv.mediapipe_estimator import MediaPipePoseEstimator

    estimator = MediaPipePoseEstimator(
        model_complexity=settings.pose_model_complexity,
        model_path=settings.pose_model_path,
        min_detection_confidence=settings.min_pose_detection_confidence,
    )
    try:
        yield estimator
    finally:
        estimator.close()


def validate_video_file(filename: Optional[str], file_size: int) -> None:
    """Validate video file name, extension and size."""
    if not filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file has no name."
        )

    ext = Path(filename).suffix.lower()

    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid file type. Allowed: {sorted(ALLOWED_EXTENSIONS)}"
        )

    if file_size == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file is empty."
        )

    if file_size > MAX_FILE_SIZE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File too large. Maximum: {settings.max_video_size_mb}MB"
        )


async def _discard(session: AnalysisSession, file_path: Path) -> None:
    """Release a session that never made it into the registry and delete its upload."""
    await session.release()
    if file_path.exists():
        os.remove(file_path)


@router.post("", response_model=AnalysisResponse, status_code=status.HTTP_201_CREATED)
async def analyze_video(
    file: UploadFile = File(...),
    registry: SessionRegistry = Depends(get_session_registry),
    decoder: VideoDecoder = Depends(get_decoder),
    estimator: PoseEstimator = Depends(get_pose_estimator),
):
    """
    Upload a squat video and analyze its form.

    The returned feedback items carry timestamps that can be passed to the
    frame endpoint to view the evidence frame.
    """
    contents = await file.read()
    validate_video_file(file.filename, len(contents))

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)

    analysis_id = str(uuid.uuid4())
    file_path = upload_dir / f"{analysis_id}{Path(file.filename).suffix.lower()}"
    with open(file_path, "wb") as f:
        f.write(contents)

    session = AnalysisSession(decoder, estimator, settings=settings)
    try:
        feedback = await session.analyze(str(file_path))
    except AnalysisError as e:
        logger.warning(f"Analysis {analysis_id} failed: {e}")
        await _discard(session, file_path)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.user_message
        )
    except BaseException:
        logger.warning(f"Analysis {analysis_id} aborted, discarding upload")
        await _discard(session, file_path)
        raise

    await registry.add(analysis_id, session, str(file_path))

    items: List[FeedbackItemResponse] = [
        FeedbackItemResponse.from_item(explain(item)) for item in feedback
    ]
    return AnalysisResponse(
        id=analysis_id,
        video_filename=file.filename,
        status=summarize_outcome(feedback),
        feedback=items,
    )


@router.get("/{analysis_id}/frame")
async def get_evidence_frame(
    analysis_id: str,
    timestamp: float = Query(..., ge=0.0),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """JPEG of the video frame nearest to `timestamp`."""
    session = registry.get(analysis_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Analysis not found"
        )

    image = await session.fetch_frame(timestamp)
    if image is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No frame available at {timestamp:.3f}s"
        )

    ok, encoded = cv2.imencode(".jpg", image)
    if not ok:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to encode frame"
        )
    return Response(content=encoded.tobytes(), media_type="image/jpeg")


@router.delete("/{analysis_id}", status_code=status.HTTP_204_NO_CONTENT)
async def release_analysis(
    analysis_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Release the analysis session and delete its uploaded video."""
    if not await registry.release(analysis_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Analysis not found"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)

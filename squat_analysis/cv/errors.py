"""Errors surfaced by the analysis pipeline."""


class AnalysisError(Exception):
    """Analysis could not proceed. `user_message` is safe to show to the athlete."""

    user_message = "Video analysis failed."

    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__(f"{self.user_message} {detail}".strip())


class NoVideoTrack(AnalysisError):
    user_message = "No video track found in the selected file."


class EmptyVideo(AnalysisError):
    user_message = "Could not read any frames from the video."


class DecodeFailed(AnalysisError):
    user_message = "The video could not be decoded."

"""Exception hierarchy for the capture-and-analyze pipeline."""

from __future__ import annotations

from typing import Optional


class VisualQAError(Exception):
    """Base class for every error raised by the pipeline."""


class ServerUnavailable(VisualQAError):
    """The target server never answered the pre-flight check with a 2xx."""


class NoScreenshotsError(VisualQAError):
    """There are no screenshots to analyze."""


# ----------------------------------------------------------------------
# Capture errors: a single (page, viewport) capture is skipped
# ----------------------------------------------------------------------


class CaptureError(VisualQAError):
    """A single capture failed; the run continues with the next pair."""


class NavigationTimeout(CaptureError):
    pass


class ModalOpenFailure(CaptureError):
    pass


class CorruptScreenshot(CaptureError):
    pass


# ----------------------------------------------------------------------
# Caption errors
# ----------------------------------------------------------------------


class CaptionError(VisualQAError):
    """Base class for caption inference failures."""


class ModelInitError(CaptionError):
    """No candidate model could be loaded. Never retried."""


class ImageError(CaptionError):
    """The image itself is unusable. Never retried; the image is skipped."""


class ImageNotFound(ImageError):
    pass


class InvalidImage(ImageError):
    pass


class InferenceError(CaptionError):
    """Inference failed for a reason that may go away on its own.

    ``retry_after`` overrides the retry policy's fixed delay (seconds).
    """

    def __init__(
        self,
        message: str,
        retryable: bool = True,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.retryable = retryable
        self.retry_after = retry_after


class RateLimited(InferenceError):
    pass


class ModelLoading(InferenceError):
    pass


class ModelUnavailable(InferenceError):
    """The backend does not serve the current model (HTTP 404)."""

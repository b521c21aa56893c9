"""Exceptions raised while acquiring the camera or the pose model."""


class AcquisitionError(Exception):
    """Base exception for startup failures of the camera or the pose model."""

    def __init__(self, message: str, source: str = "N/A"):
        self.message = message
        self.source = source
        super().__init__(f"[{source}] {message}")


class CameraUnavailableError(AcquisitionError):
    """Raised when a frame source cannot be opened (missing device, no permission)."""
    pass


class ModelLoadError(AcquisitionError):
    """Raised when the pose model cannot be downloaded or initialized."""
    pass

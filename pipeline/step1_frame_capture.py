"""
Step 1: Frame Capture
Captures frames from webcam, video file or a single image.
"""

import cv2
import numpy as np
from abc import ABC, abstractmethod
from typing import Optional, Tuple, Generator

import config
from .exceptions import CameraUnavailableError


class FrameCapture(ABC):
    """Abstract base class for frame capture."""

    live = False  # True for sources timestamped with the host clock

    @abstractmethod
    def read(self) -> Tuple[bool, Optional[np.ndarray]]:
        """Read a single frame."""
        pass

    @abstractmethod
    def release(self) -> None:
        """Release resources."""
        pass

    @abstractmethod
    def is_opened(self) -> bool:
        """Check if capture is opened."""
        pass

    def position_ms(self) -> Optional[float]:
        """Timestamp of the last frame read, if the source has one."""
        return None

    def frames(self) -> Generator[np.ndarray, None, None]:
        """Generator that yields frames."""
        while self.is_opened():
            ret, frame = self.read()
            if not ret:
                break
            yield frame
        self.release()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


class WebcamCapture(FrameCapture):
    """Capture frames from webcam."""

    live = True

    def __init__(
        self,
        camera_id: int = config.CAMERA_ID,
        width: int = config.CAMERA_WIDTH,
        height: int = config.CAMERA_HEIGHT
    ):
        self.camera_id = camera_id
        self.width = width
        self.height = height
        self.cap = cv2.VideoCapture(camera_id)
        if not self.cap.isOpened():
            raise CameraUnavailableError(f"Cannot open camera {camera_id}", source="webcam")
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

    def read(self) -> Tuple[bool, Optional[np.ndarray]]:
        return self.cap.read()

    def release(self) -> None:
        if self.cap.isOpened():
            self.cap.release()

    def is_opened(self) -> bool:
        return self.cap.isOpened()

    def get_fps(self) -> float:
        """Camera-reported FPS."""
        return self.cap.get(cv2.CAP_PROP_FPS)


class VideoCapture(FrameCapture):
    """Capture frames from video file."""

    def __init__(self, video_path: str):
        self.video_path = video_path
        self.cap = cv2.VideoCapture(video_path)
        if not self.cap.isOpened():
            raise CameraUnavailableError(f"Cannot open video {video_path}", source="video")
        self.total_frames = int(self.cap.get(cv2.CAP_PROP_FRAME_COUNT))
        self.fps = self.cap.get(cv2.CAP_PROP_FPS) or 30.0
        self.width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.current_frame = 0

    def read(self) -> Tuple[bool, Optional[np.ndarray]]:
        ret, frame = self.cap.read()
        if ret:
            self.current_frame += 1
        return ret, frame

    def release(self) -> None:
        self.cap.release()

    def is_opened(self) -> bool:
        return self.cap.isOpened()

    def position_ms(self) -> Optional[float]:
        # Derived from the frame index; CAP_PROP_POS_MSEC is unreliable on some backends
        return max(self.current_frame - 1, 0) * 1000.0 / self.fps

    def seek(self, frame_number: int) -> None:
        """Seek to specific frame."""
        self.cap.set(cv2.CAP_PROP_POS_FRAMES, frame_number)
        self.current_frame = frame_number

    def get_progress(self) -> float:
        """Get progress as percentage."""
        if self.total_frames == 0:
            return 0.0
        return (self.current_frame / self.total_frames) * 100


class ImageCapture(FrameCapture):
    """Capture from a single image (for testing)."""

    def __init__(self, image_path: str):
        self.image_path = image_path
        self.image = cv2.imread(image_path)
        if self.image is None:
            raise CameraUnavailableError(f"Cannot read image {image_path}", source="image")
        self.read_count = 0

    def read(self) -> Tuple[bool, Optional[np.ndarray]]:
        if self.read_count == 0 and self.image is not None:
            self.read_count += 1
            return True, self.image.copy()
        return False, None

    def release(self) -> None:
        self.image = None

    def is_opened(self) -> bool:
        return self.image is not None and self.read_count == 0

    def position_ms(self) -> Optional[float]:
        return 0.0

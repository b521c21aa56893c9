"""
Step 2: Pose Estimation
Estimates body landmarks with the MediaPipe Pose Landmarker (Tasks API, VIDEO mode).
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

import cv2
import numpy as np

import config
from .exceptions import ModelLoadError

logger = logging.getLogger(__name__)


@dataclass
class Landmark:
    """Single pose landmark."""
    x: float  # Normalized [0, 1]
    y: float  # Normalized [0, 1]
    z: float = 0.0  # Depth, unused by scoring
    visibility: float = 0.0  # Confidence, unused by scoring


@dataclass
class PoseResult:
    """Landmarks of one detected person in one frame."""
    landmarks: List[Landmark]
    timestamp_ms: int = 0

    def to_numpy(self) -> np.ndarray:
        """Convert landmarks to numpy array (N, 4)."""
        return np.array([
            [lm.x, lm.y, lm.z, lm.visibility]
            for lm in self.landmarks
        ])


def ensure_model_file(path: str = config.POSE_MODEL_PATH, url: str = config.POSE_MODEL_URL) -> Path:
    """Download the .task model asset unless it is already on disk."""
    model_path = Path(path)
    if model_path.exists() and model_path.stat().st_size > 0:
        return model_path

    import gdown

    model_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Downloading pose model from %s", url)
    try:
        output = gdown.download(url, str(model_path), quiet=True)
    except Exception as e:
        raise ModelLoadError(f"Failed to download pose model: {e}", source="pose_model") from e
    if output is None or not model_path.exists():
        raise ModelLoadError(f"Failed to download pose model from {url}", source="pose_model")
    return model_path


class PoseEstimator:
    """Estimate pose landmarks using MediaPipe Pose Landmarker."""

    # BlazePose skeleton (33 landmarks)
    POSE_CONNECTIONS = [
        (0, 1), (1, 2), (2, 3), (3, 7),
        (0, 4), (4, 5), (5, 6), (6, 8),
        (9, 10),
        (11, 12),
        (11, 13), (13, 15), (15, 17), (15, 19), (15, 21), (17, 19),
        (12, 14), (14, 16), (16, 18), (16, 20), (16, 22), (18, 20),
        (11, 23), (12, 24), (23, 24),
        (23, 25), (24, 26), (25, 27), (26, 28),
        (27, 29), (28, 30), (29, 31), (30, 32), (27, 31), (28, 32),
    ]

    def __init__(
        self,
        model_path: str = config.POSE_MODEL_PATH,
        num_poses: int = config.NUM_POSES,
        min_pose_detection_confidence: float = config.MIN_POSE_DETECTION_CONFIDENCE,
        min_pose_presence_confidence: float = config.MIN_POSE_PRESENCE_CONFIDENCE,
        min_tracking_confidence: float = config.MIN_TRACKING_CONFIDENCE,
        landmarker=None
    ):
        """
        Initialize the Pose Landmarker.

        Args:
            model_path: Local path of the .task model (downloaded if missing)
            num_poses: Maximum number of poses per frame
            min_pose_detection_confidence: Detection threshold
            min_pose_presence_confidence: Presence threshold
            min_tracking_confidence: Tracking threshold
            landmarker: Pre-built landmarker exposing detect_for_video (skips model loading)
        """
        self.model_path = model_path
        self.num_poses = num_poses
        self.min_pose_detection_confidence = min_pose_detection_confidence
        self.min_pose_presence_confidence = min_pose_presence_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self._last_timestamp_ms = -1
        self._mp = None
        self.landmarker = landmarker
        if self.landmarker is None:
            self._init_landmarker()

    def _init_landmarker(self) -> None:
        """Load MediaPipe and build a VIDEO-mode Pose Landmarker."""
        try:
            import mediapipe as mp
            from mediapipe.tasks import python as mp_tasks
            from mediapipe.tasks.python import vision
        except ImportError as e:
            raise ModelLoadError("mediapipe not installed. Run: pip install mediapipe", source="pose_model") from e

        model_file = ensure_model_file(self.model_path)
        options = vision.PoseLandmarkerOptions(
            base_options=mp_tasks.BaseOptions(model_asset_path=str(model_file)),
            running_mode=vision.RunningMode.VIDEO,
            num_poses=self.num_poses,
            min_pose_detection_confidence=self.min_pose_detection_confidence,
            min_pose_presence_confidence=self.min_pose_presence_confidence,
            min_tracking_confidence=self.min_tracking_confidence,
            output_segmentation_masks=False,
        )
        try:
            self.landmarker = vision.PoseLandmarker.create_from_options(options)
        except Exception as e:
            raise ModelLoadError(f"Failed to initialize Pose Landmarker: {e}", source="pose_model") from e
        self._mp = mp
        logger.info("Pose Landmarker ready (%s, num_poses=%d)", model_file, self.num_poses)

    def _next_timestamp(self, timestamp_ms: float) -> int:
        # VIDEO mode rejects timestamps that do not increase
        ts = int(timestamp_ms)
        if ts <= self._last_timestamp_ms:
            ts = self._last_timestamp_ms + 1
        self._last_timestamp_ms = ts
        return ts

    def _to_image(self, frame: np.ndarray):
        rgb = np.ascontiguousarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        if self._mp is None:
            return rgb
        return self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=rgb)

    def detect(self, frame: np.ndarray, timestamp_ms: float) -> List[PoseResult]:
        """
        Detect poses in a BGR frame.

        Args:
            frame: Input image (BGR format)
            timestamp_ms: Monotonic frame timestamp in milliseconds

        Returns:
            List of PoseResult, empty if nobody was detected
        """
        ts = self._next_timestamp(timestamp_ms)
        result = self.landmarker.detect_for_video(self._to_image(frame), ts)
        return self.to_pose_results(result, ts)

    @staticmethod
    def to_pose_results(result, timestamp_ms: int = 0) -> List[PoseResult]:
        """Convert a PoseLandmarkerResult into PoseResult objects."""
        poses = []
        for pose_landmarks in getattr(result, 'pose_landmarks', None) or []:
            landmarks = [
                Landmark(
                    x=float(lm.x),
                    y=float(lm.y),
                    z=float(getattr(lm, 'z', 0.0) or 0.0),
                    visibility=float(getattr(lm, 'visibility', 0.0) or 0.0)
                )
                for lm in pose_landmarks
            ]
            poses.append(PoseResult(landmarks=landmarks, timestamp_ms=timestamp_ms))
        return poses

    @classmethod
    def draw_pose(cls, image: np.ndarray, landmarks: Optional[Sequence[Landmark]]) -> np.ndarray:
        """Draw skeleton connectors and landmark dots on a copy of the image."""
        annotated = image.copy()
        if not landmarks:
            return annotated

        h, w = image.shape[:2]

        def to_px(lm):
            if lm is None or not (np.isfinite(lm.x) and np.isfinite(lm.y)):
                return None
            return int(lm.x * w), int(lm.y * h)

        points = [to_px(lm) for lm in landmarks]

        for i, j in cls.POSE_CONNECTIONS:
            if i < len(points) and j < len(points) and points[i] and points[j]:
                cv2.line(annotated, points[i], points[j],
                         config.COLOR_CONNECTOR, config.CONNECTOR_THICKNESS)

        for pt in points:
            if pt:
                cv2.circle(annotated, pt, config.LANDMARK_RADIUS, config.COLOR_LANDMARK, -1)

        return annotated

    def close(self) -> None:
        """Release resources."""
        if self.landmarker is not None and hasattr(self.landmarker, 'close'):
            self.landmarker.close()
        self.landmarker = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

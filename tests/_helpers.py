"""Test doubles: synthetic poses, a fake pose model and a fake camera."""

import threading
import time
from typing import Dict, List, Optional, Tuple

import numpy as np

from pipeline.step1_frame_capture import FrameCapture
from pipeline.step2_pose_estimation import Landmark, PoseResult


# Sample pose: stability 100, coordination -30, hip extension 100
SAMPLE_POINTS = {
    11: (0.4, 0.3), 12: (0.6, 0.3),
    15: (0.2, 0.4), 16: (0.8, 0.4),
    23: (0.45, 0.5), 24: (0.55, 0.5),
    27: (0.45, 0.9), 28: (0.55, 0.9),
}


def make_pose(points: Optional[Dict[int, Tuple[float, float]]] = None) -> List[Landmark]:
    """33 landmarks at the frame center, overridden by `points`."""
    landmarks = [Landmark(0.5, 0.5, 0.0, 0.9) for _ in range(33)]
    for idx, (x, y) in (points or SAMPLE_POINTS).items():
        landmarks[idx] = Landmark(x, y, 0.0, 0.9)
    return landmarks


class FakeEstimator:
    """Returns a scripted list of poses per call; records timestamps."""

    def __init__(self, script=None, block: Optional[threading.Event] = None):
        self.script = list(script or [])
        self.block = block
        self.calls: List[float] = []
        self.closed = False
        self.started = threading.Event()

    def detect(self, frame, timestamp_ms):
        self.calls.append(timestamp_ms)
        self.started.set()
        if self.block is not None:
            self.block.wait(timeout=2.0)
        if not self.script:
            return []
        landmarks = self.script.pop(0)
        if landmarks is None:
            return []
        return [PoseResult(landmarks=landmarks, timestamp_ms=int(timestamp_ms))]

    def close(self):
        self.closed = True


class FakeCapture(FrameCapture):
    """Yields `n_frames` blank frames."""

    def __init__(self, n_frames: int = 3, live: bool = False, fps: float = 10.0):
        self.n_frames = n_frames
        self.live = live
        self.fps = fps
        self.count = 0
        self.released = False

    def read(self):
        if self.released or self.count >= self.n_frames:
            return False, None
        self.count += 1
        return True, np.zeros((48, 64, 3), dtype=np.uint8)

    def release(self):
        self.released = True

    def is_opened(self):
        return not self.released

    def position_ms(self):
        return (self.count - 1) * 1000.0 / self.fps


def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll `predicate` until it is true or `timeout` seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()

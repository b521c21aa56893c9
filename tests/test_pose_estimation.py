"""
Tests for the MediaPipe adapter, using a stand-in landmarker (no model download).
"""

from types import SimpleNamespace

import numpy as np
import pytest

from pipeline.step2_pose_estimation import Landmark, PoseEstimator, PoseResult, ensure_model_file
from tests._helpers import make_pose


class FakeLandmarker:
    def __init__(self, result):
        self.result = result
        self.timestamps = []
        self.images = []
        self.closed = False

    def detect_for_video(self, image, timestamp_ms):
        self.images.append(image)
        self.timestamps.append(timestamp_ms)
        return self.result

    def close(self):
        self.closed = True


def mp_result(n_poses=1):
    lm = SimpleNamespace(x=0.25, y=0.75, z=-0.1, visibility=None)
    return SimpleNamespace(pose_landmarks=[[lm] * 33 for _ in range(n_poses)])


class TestConversion:

    def test_to_pose_results(self):
        poses = PoseEstimator.to_pose_results(mp_result(), timestamp_ms=42)

        assert len(poses) == 1
        assert isinstance(poses[0], PoseResult)
        assert poses[0].timestamp_ms == 42
        assert len(poses[0].landmarks) == 33
        assert poses[0].landmarks[0] == Landmark(0.25, 0.75, -0.1, 0.0)
        assert poses[0].to_numpy().shape == (33, 4)

    def test_no_detection(self):
        assert PoseEstimator.to_pose_results(SimpleNamespace(pose_landmarks=[])) == []
        assert PoseEstimator.to_pose_results(SimpleNamespace()) == []


class TestDetect:

    @pytest.fixture
    def frame(self):
        frame = np.zeros((48, 64, 3), dtype=np.uint8)
        frame[..., 0] = 255  # blue in BGR
        return frame

    def test_detect_converts_frame_to_rgb(self, frame):
        landmarker = FakeLandmarker(mp_result())
        estimator = PoseEstimator(landmarker=landmarker)

        poses = estimator.detect(frame, 10.0)

        assert len(poses) == 1
        image = landmarker.images[0]
        assert image[0, 0, 2] == 255 and image[0, 0, 0] == 0

    def test_timestamps_strictly_increase(self, frame):
        landmarker = FakeLandmarker(mp_result(0))
        estimator = PoseEstimator(landmarker=landmarker)

        for ts in (5.0, 5.4, 3.0, 20.0):
            estimator.detect(frame, ts)

        assert landmarker.timestamps == [5, 6, 7, 20]

    def test_close(self):
        landmarker = FakeLandmarker(mp_result())
        with PoseEstimator(landmarker=landmarker):
            pass
        assert landmarker.closed


class TestDrawPose:

    def test_draws_skeleton(self, blank_frame):
        annotated = PoseEstimator.draw_pose(blank_frame, make_pose())
        assert annotated.any()
        assert not blank_frame.any()

    def test_no_landmarks_returns_copy(self, blank_frame):
        annotated = PoseEstimator.draw_pose(blank_frame, None)
        assert annotated is not blank_frame
        assert not annotated.any()

    def test_skips_missing_points(self, blank_frame):
        pose = make_pose()
        pose[11] = None
        pose[12] = Landmark(float('nan'), 0.5)
        annotated = PoseEstimator.draw_pose(blank_frame, pose)
        assert annotated.any()


def test_existing_model_file_is_not_downloaded(tmp_path):
    model = tmp_path / "pose_landmarker_lite.task"
    model.write_bytes(b"\x00task")
    assert ensure_model_file(str(model), url="http://invalid.example/model.task") == model

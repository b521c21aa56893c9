"""
Tests for the analysis session and the single-slot frame supervisor.

No camera or pose model is needed: both are replaced by fakes.
"""

import threading

import numpy as np
import pytest

import config
from pipeline.exceptions import CameraUnavailableError, ModelLoadError
from pipeline.step5_session import (
    AnalysisSession,
    FrameOutcome,
    FrameSupervisor,
    SessionStatus,
)
from tests._helpers import FakeCapture, FakeEstimator, make_pose, wait_until


EN_TIPS = config.TIPS["en"]
EN_STATUS = config.STATUS_MESSAGES["en"]


def incomplete_pose():
    pose = make_pose()
    pose[24] = None
    return pose


class SlowEstimator(FakeEstimator):
    """Blocks inside detect() and remembers whether close() ran meanwhile."""

    def __init__(self, release):
        super().__init__([make_pose()], block=release)
        self.closed_during_detect = False

    def detect(self, frame, timestamp_ms):
        poses = super().detect(frame, timestamp_ms)
        if self.closed:
            self.closed_during_detect = True
        return poses


def make_session(script=None, n_frames=3, background=False, **kwargs):
    capture = FakeCapture(n_frames=n_frames)
    estimator = FakeEstimator(script)
    session = AnalysisSession(
        capture_factory=lambda: capture,
        estimator_factory=lambda: estimator,
        language="en",
        background=background,
        **kwargs
    )
    return session, capture, estimator


# ============================================================================
# Lifecycle
# ============================================================================

class TestLifecycle:
    """start / stop and the status messages."""

    def test_initial_status(self):
        session, _, _ = make_session()
        assert session.status == SessionStatus.IDLE
        assert session.status_message == EN_STATUS["idle"]
        assert session.snapshot().percentages == {
            'stability': '--', 'coordination': '--', 'hip_extension': '--',
        }

    def test_start_transitions_to_analyzing(self):
        session, _, _ = make_session()
        assert session.start() is True
        assert session.status == SessionStatus.ANALYZING
        assert session.status_message == EN_STATUS["analyzing"]
        assert session.running
        session.stop()

    def test_start_is_disabled_while_running(self):
        calls = []

        def factory():
            calls.append(1)
            return FakeCapture()

        session = AnalysisSession(factory, lambda: FakeEstimator(), language="en", background=False)
        assert session.start()
        assert session.start() is False
        assert len(calls) == 1
        session.stop()

    def test_camera_failure_is_terminal_status(self):
        def broken_camera():
            raise CameraUnavailableError("Cannot open camera 0", source="webcam")

        estimator = FakeEstimator()
        session = AnalysisSession(broken_camera, lambda: estimator, language="en", background=False)

        assert session.start() is False
        assert session.status == SessionStatus.FAILED
        assert session.status_message == EN_STATUS["failed"]
        assert session.tick() is None

    def test_model_failure_is_terminal_status(self):
        def broken_model():
            raise ModelLoadError("download failed", source="pose_model")

        capture = FakeCapture()
        session = AnalysisSession(lambda: capture, broken_model, language="zh-TW", background=False)

        assert session.start() is False
        assert session.status == SessionStatus.FAILED
        assert session.status_message == config.STATUS_MESSAGES["zh-TW"]["failed"]
        assert capture.count == 0

    def test_unexpected_startup_error_is_caught(self):
        def broken_camera():
            raise OSError("device busy")

        session = AnalysisSession(broken_camera, lambda: FakeEstimator(), language="en", background=False)
        assert session.start() is False
        assert session.status == SessionStatus.FAILED

    def test_start_again_after_failure(self):
        attempts = []

        def flaky_camera():
            attempts.append(1)
            if len(attempts) == 1:
                raise CameraUnavailableError("no permission")
            return FakeCapture()

        session = AnalysisSession(flaky_camera, lambda: FakeEstimator(), language="en", background=False)
        assert session.start() is False
        assert session.start() is True
        assert session.status == SessionStatus.ANALYZING
        session.stop()

    def test_model_loaded_once(self):
        built = []

        def factory():
            built.append(1)
            return FakeEstimator()

        attempts = []

        def flaky_camera():
            attempts.append(1)
            if len(attempts) == 1:
                raise CameraUnavailableError("no permission")
            return FakeCapture()

        session = AnalysisSession(flaky_camera, factory, language="en", background=False)
        session.start()
        session.start()
        assert len(built) == 1
        session.stop()

    def test_stop_releases_resources(self):
        session, capture, estimator = make_session()
        session.start()
        session.stop()

        assert capture.released
        assert estimator.closed
        assert session.status == SessionStatus.STOPPED
        assert session.status_message == EN_STATUS["stopped"]
        assert session.tick() is None

    def test_stop_is_idempotent(self):
        session, _, _ = make_session()
        session.start()
        session.stop()
        session.stop()
        assert session.status == SessionStatus.STOPPED

    def test_cannot_restart_after_stop(self):
        session, _, _ = make_session()
        session.start()
        session.stop()
        assert session.start() is False

    def test_cannot_restart_after_failed_start_and_stop(self):
        attempts = []

        def flaky_camera():
            attempts.append(1)
            if len(attempts) == 1:
                raise CameraUnavailableError("no permission")
            return FakeCapture()

        session = AnalysisSession(flaky_camera, lambda: FakeEstimator(), language="en", background=False)
        assert session.start() is False
        session.stop()

        assert session.status == SessionStatus.FAILED
        assert session.start() is False
        assert len(attempts) == 1

    def test_model_closed_only_after_in_flight_pass(self):
        release = threading.Event()
        estimator = SlowEstimator(release)
        session = AnalysisSession(
            lambda: FakeCapture(n_frames=5), lambda: estimator,
            language="en", background=True
        )
        session.start()
        try:
            session.tick()
            assert estimator.started.wait(1.0)

            session.stop(timeout=0.05)
            assert session.status == SessionStatus.STOPPED
            assert not estimator.closed
        finally:
            release.set()

        assert wait_until(lambda: estimator.closed)
        assert not estimator.closed_during_detect
        assert session.estimator is None
        assert session.snapshot().frames_analyzed == 0

    def test_context_manager_stops(self):
        session, capture, _ = make_session()
        with session:
            session.start()
        assert capture.released

    def test_unknown_language(self):
        with pytest.raises(ValueError):
            AnalysisSession(FakeCapture, FakeEstimator, language="xx")


# ============================================================================
# Per-frame behaviour (synchronous)
# ============================================================================

class TestFrameLoop:
    """Render-state retention rules and timestamps."""

    def test_scored_frame(self):
        session, _, _ = make_session([make_pose()])
        session.start()

        frame = session.tick()
        state = session.snapshot()

        assert frame is not None
        assert state.last_outcome == FrameOutcome.SCORED
        assert state.percentages == {
            'stability': '100%', 'coordination': '0%', 'hip_extension': '100%',
        }
        assert state.tips == [EN_TIPS["coordination"]]
        assert state.landmarks is not None
        session.stop()

    def test_incomplete_pose_keeps_previous_state(self):
        first = make_pose()
        session, _, _ = make_session([first, incomplete_pose()])
        session.start()
        session.tick()
        before = session.snapshot()

        session.tick()
        after = session.snapshot()

        assert after.last_outcome == FrameOutcome.INCOMPLETE_POSE
        assert after.landmarks is first
        assert after.percentages == before.percentages
        assert after.tips == before.tips
        session.stop()

    def test_no_pose_clears_overlay_only(self):
        session, _, _ = make_session([make_pose(), None])
        session.start()
        session.tick()
        before = session.snapshot()

        session.tick()
        after = session.snapshot()

        assert after.last_outcome == FrameOutcome.NO_POSE
        assert after.landmarks is None
        assert after.percentages == before.percentages
        assert after.tips == before.tips
        session.stop()

    def test_incomplete_first_frame_leaves_defaults(self):
        session, _, _ = make_session([incomplete_pose()])
        session.start()
        session.tick()
        state = session.snapshot()

        assert state.scores is None
        assert state.tips == []
        assert state.percentages['stability'] == '--'
        session.stop()

    def test_analyze_is_independent_of_history(self):
        session, _, estimator = make_session()
        session.start()
        frame = np.zeros((4, 4, 3), dtype=np.uint8)

        estimator.script = [make_pose(), make_pose({23: (0.1, 0.5)}), make_pose()]
        first = session.analyze(frame, 0)
        session.analyze(frame, 1)
        third = session.analyze(frame, 2)

        assert first.scores == third.scores
        assert first.tips == third.tips
        session.stop()

    def test_source_exhausted(self):
        session, _, _ = make_session(n_frames=2)
        session.start()
        assert session.tick() is not None
        assert session.tick() is not None
        assert session.tick() is None
        session.stop()

    def test_video_timestamps_follow_capture_position(self):
        session, _, estimator = make_session(n_frames=3)
        session.start()
        while session.tick() is not None:
            pass
        assert estimator.calls == [0.0, 100.0, 200.0]
        session.stop()

    def test_live_timestamps_follow_clock(self):
        ticks = iter([10.0, 10.05, 10.1])
        capture = FakeCapture(n_frames=2, live=True)
        estimator = FakeEstimator()
        session = AnalysisSession(
            lambda: capture, lambda: estimator,
            language="en", background=False, clock=lambda: next(ticks)
        )
        session.start()
        session.tick()
        session.tick()

        assert estimator.calls == [pytest.approx(50.0), pytest.approx(100.0)]
        session.stop()

    def test_mirror_flips_frame(self):
        session, capture, _ = make_session(mirror=True)
        original = np.zeros((48, 64, 3), dtype=np.uint8)
        original[:, 0] = 255
        capture.read = lambda: (True, original.copy())
        session.start()

        frame = session.tick()
        assert frame[:, -1].max() == 255
        assert frame[:, 0].max() == 0
        session.stop()

    def test_snapshot_is_a_copy(self):
        session, _, _ = make_session([make_pose()])
        session.start()
        session.tick()

        snap = session.snapshot()
        snap.tips.append("extra")
        snap.percentages['stability'] = '1%'

        assert "extra" not in session.snapshot().tips
        assert session.snapshot().percentages['stability'] == '100%'
        session.stop()


# ============================================================================
# Background mode
# ============================================================================

class TestFrameSupervisor:
    """At most one pass in flight; late results after stop are dropped."""

    @pytest.fixture
    def frame(self):
        return np.zeros((4, 4, 3), dtype=np.uint8)

    def test_submit_before_start_is_refused(self, frame):
        sup = FrameSupervisor(lambda f, ts: ts, lambda r: None)
        assert sup.submit(frame, 0.0) is False

    def test_single_slot_drops_while_busy(self, frame):
        release = threading.Event()
        started = threading.Event()
        results = []

        def analyze(f, ts):
            started.set()
            release.wait(2.0)
            return ts

        sup = FrameSupervisor(analyze, results.append)
        sup.start()
        try:
            assert sup.submit(frame, 1.0)
            assert started.wait(1.0)
            assert sup.busy
            assert sup.submit(frame, 2.0) is False
            assert sup.dropped == 1

            release.set()
            assert wait_until(lambda: not sup.busy)
            assert results == [1.0]

            assert sup.submit(frame, 3.0)
            assert wait_until(lambda: len(results) == 2)
            assert results == [1.0, 3.0]
        finally:
            release.set()
            sup.stop()

    def test_stop_abandons_in_flight_pass(self, frame):
        release = threading.Event()
        started = threading.Event()
        results = []

        def analyze(f, ts):
            started.set()
            release.wait(2.0)
            return ts

        sup = FrameSupervisor(analyze, results.append)
        sup.start()
        sup.submit(frame, 1.0)
        assert started.wait(1.0)

        worker = sup.thread
        sup.stop(timeout=0.05)
        release.set()
        worker.join(2.0)

        assert results == []
        assert not sup.busy
        assert sup.submit(frame, 2.0) is False

    def test_cleanup_deferred_until_worker_exits(self, frame):
        release = threading.Event()
        started = threading.Event()
        cleaned = []
        cleaned_before_return = []

        def analyze(f, ts):
            started.set()
            release.wait(2.0)
            cleaned_before_return.append(bool(cleaned))
            return ts

        sup = FrameSupervisor(analyze, lambda r: None)
        sup.start()
        sup.submit(frame, 1.0)
        assert started.wait(1.0)

        assert sup.stop(timeout=0.05, on_exit=lambda: cleaned.append(1)) is False
        assert cleaned == []
        assert sup.thread is not None

        release.set()
        assert wait_until(lambda: cleaned == [1])
        assert cleaned_before_return == [False]
        assert sup.stop(on_exit=lambda: cleaned.append(2)) is True
        assert cleaned == [1, 2]

    def test_cleanup_runs_immediately_when_idle(self, frame):
        cleaned = []
        sup = FrameSupervisor(lambda f, ts: ts, lambda r: None)
        sup.start()
        assert sup.stop(on_exit=lambda: cleaned.append(1)) is True
        assert cleaned == [1]
        assert sup.thread is None

    def test_worker_error_is_reraised(self, frame):
        def analyze(f, ts):
            raise RuntimeError("landmarker crashed")

        sup = FrameSupervisor(analyze, lambda r: None)
        sup.start()
        try:
            sup.submit(frame, 0.0)
            assert wait_until(lambda: sup.error is not None)
            with pytest.raises(RuntimeError, match="landmarker crashed"):
                sup.raise_if_failed()
        finally:
            sup.stop()

    def test_session_background_mode(self):
        session, _, estimator = make_session([make_pose()] * 5, n_frames=5, background=True)
        assert session.start()
        try:
            assert session.tick() is not None
            assert wait_until(lambda: session.snapshot().frames_analyzed >= 1)
            state = session.snapshot()
            assert state.percentages['hip_extension'] == '100%'
            assert state.tips == [EN_TIPS["coordination"]]
        finally:
            session.stop()
        assert session.supervisor.running is False

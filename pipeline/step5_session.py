"""
Step 5: Analysis Session
Owns the frame source, the pose model and the per-frame loop state.

- AnalysisSession: start / tick / stop, plus the state the renderer draws
- FrameSupervisor: single-slot background worker, at most one pass in flight
"""

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from queue import Empty, Full, Queue
from typing import Callable, Dict, List, Optional

import cv2
import numpy as np

import config
from .step2_pose_estimation import Landmark, PoseEstimator
from .step3_pose_scorer import PoseScorer, ScoreSet
from .step4_advice import AdviceGenerator

logger = logging.getLogger(__name__)

EMPTY_PERCENT = "--"


class SessionStatus(Enum):
    """Lifecycle of a session."""
    IDLE = "idle"
    LOADING_MODEL = "loading_model"
    ANALYZING = "analyzing"
    FAILED = "failed"
    STOPPED = "stopped"


class FrameOutcome(Enum):
    """What happened to one frame."""
    SCORED = "scored"
    NO_POSE = "no_pose"
    INCOMPLETE_POSE = "incomplete_pose"


@dataclass
class FrameAnalysis:
    """Result of one analysis pass."""
    timestamp_ms: float
    outcome: FrameOutcome
    landmarks: Optional[List[Landmark]] = None
    scores: Optional[ScoreSet] = None
    tips: List[str] = field(default_factory=list)

    @property
    def is_scored(self) -> bool:
        return self.outcome == FrameOutcome.SCORED


@dataclass
class RenderState:
    """Everything the renderer needs for the current frame."""
    landmarks: Optional[List[Landmark]] = None
    scores: Optional[ScoreSet] = None
    percentages: Dict[str, str] = field(default_factory=lambda: {
        'stability': EMPTY_PERCENT,
        'coordination': EMPTY_PERCENT,
        'hip_extension': EMPTY_PERCENT,
    })
    tips: List[str] = field(default_factory=list)
    status: SessionStatus = SessionStatus.IDLE
    status_message: str = ""
    last_outcome: Optional[FrameOutcome] = None
    frames_analyzed: int = 0

    def apply(self, analysis: FrameAnalysis) -> None:
        """
        Fold one frame's analysis into the displayed state.

        SCORED replaces overlay, scores and tips. NO_POSE clears the overlay
        but keeps the last scores and tips. INCOMPLETE_POSE keeps everything.
        """
        self.last_outcome = analysis.outcome
        self.frames_analyzed += 1

        if analysis.outcome == FrameOutcome.SCORED:
            self.landmarks = analysis.landmarks
            self.scores = analysis.scores
            self.percentages = analysis.scores.as_percentages()
            self.tips = list(analysis.tips)
        elif analysis.outcome == FrameOutcome.NO_POSE:
            self.landmarks = None


class FrameSupervisor:
    """
    Single-slot background analyzer.

    submit() hands a frame to the worker only when no pass is in flight;
    otherwise the frame is dropped. Results of a pass that finishes after
    stop() are discarded.
    """

    def __init__(
        self,
        analyze_fn: Callable[[np.ndarray, float], FrameAnalysis],
        on_result: Callable[[FrameAnalysis], None]
    ):
        self.analyze_fn = analyze_fn
        self.on_result = on_result

        self._slot = Queue(maxsize=1)
        self._lock = threading.Lock()
        self._in_flight = False

        self.running = False
        self.thread = None
        self.error: Optional[BaseException] = None
        self._worker_exited = False
        self._on_exit: Optional[Callable[[], None]] = None

        # Stats
        self.submitted = 0
        self.dropped = 0
        self.completed = 0

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._in_flight

    def start(self):
        """Start background analysis thread."""
        if self.running or self.thread is not None:
            return
        self.error = None
        self.running = True
        self._worker_exited = False
        self._on_exit = None
        self.thread = threading.Thread(target=self._analysis_loop, name="frame-supervisor", daemon=True)
        self.thread.start()

    def stop(self, timeout: float = 1.0, on_exit: Optional[Callable[[], None]] = None) -> bool:
        """
        Stop the worker and abandon any pending frame.

        Args:
            timeout: Seconds to wait for the worker to finish its pass
            on_exit: Called once the worker is gone; by the worker itself
                     if it is still inside a pass when the wait times out

        Returns:
            True if the worker has exited, False if it is still running
        """
        self.running = False
        thread = self.thread
        if thread is not None:
            thread.join(timeout=timeout)

        with self._lock:
            exited = thread is None or self._worker_exited
            if not exited:
                self._on_exit = on_exit

        if not exited:
            logger.warning("Analysis pass still running after %.1fs, deferring cleanup", timeout)
            return False

        self.thread = None
        while True:
            try:
                self._slot.get_nowait()
            except Empty:
                break
        with self._lock:
            self._in_flight = False
        if on_exit is not None:
            on_exit()
        return True

    def submit(self, frame: np.ndarray, timestamp_ms: float) -> bool:
        """
        Offer a frame for analysis (non-blocking).

        Returns:
            True if the frame was accepted, False if it was dropped
        """
        with self._lock:
            if not self.running or self._in_flight:
                self.dropped += 1
                return False
            self._in_flight = True
        try:
            self._slot.put_nowait((frame, timestamp_ms))
        except Full:
            with self._lock:
                self._in_flight = False
            self.dropped += 1
            return False
        self.submitted += 1
        return True

    def raise_if_failed(self) -> None:
        """Re-raise an exception captured in the worker thread."""
        if self.error is not None:
            raise self.error

    def _analysis_loop(self):
        """Main analysis loop running in background."""
        try:
            while self.running:
                try:
                    frame, timestamp_ms = self._slot.get(timeout=0.1)
                except Empty:
                    continue
                if not self.running:
                    break

                try:
                    analysis = self.analyze_fn(frame, timestamp_ms)
                    if self.running:
                        self.on_result(analysis)
                        self.completed += 1
                except Exception as e:
                    logger.exception("Frame analysis failed")
                    self.error = e
                    self.running = False
                finally:
                    with self._lock:
                        self._in_flight = False
        finally:
            # stop() and this block agree under the lock on who runs on_exit
            with self._lock:
                self._worker_exited = True
                on_exit, self._on_exit = self._on_exit, None
            if on_exit is not None:
                on_exit()


class AnalysisSession:
    """
    One coaching session: frame source + pose model + render state.

    The frame source and the estimator are built lazily by start(), so a
    failing camera or model download surfaces as the FAILED status instead
    of an exception.
    """

    def __init__(
        self,
        capture_factory: Callable,
        estimator_factory: Callable = PoseEstimator,
        scorer: Optional[PoseScorer] = None,
        advisor: Optional[AdviceGenerator] = None,
        language: str = config.LANGUAGE,
        background: bool = True,
        mirror: bool = config.MIRROR_VIEW,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            capture_factory: Returns an opened FrameCapture
            estimator_factory: Returns an object with detect(frame, timestamp_ms)
            scorer: PoseScorer (default instance if None)
            advisor: AdviceGenerator (built for `language` if None)
            language: Language of status messages and tips
            background: Analyze on a FrameSupervisor thread instead of inline
            mirror: Flip frames horizontally before analysis and display
            clock: Monotonic clock in seconds, used to timestamp live frames
        """
        if language not in config.STATUS_MESSAGES:
            raise ValueError(f"Unsupported language: {language!r}")

        self.capture_factory = capture_factory
        self.estimator_factory = estimator_factory
        self.scorer = scorer or PoseScorer()
        self.advisor = advisor or AdviceGenerator(language)
        self.language = language
        self.mirror = mirror
        self.clock = clock

        self.capture = None
        self.estimator = None
        self._cancelled = False
        self._closed = False
        self._t0 = None

        self._lock = threading.Lock()
        self._state = RenderState()
        self._set_status(SessionStatus.IDLE)

        self.supervisor = FrameSupervisor(self.analyze, self._apply) if background else None

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------
    @property
    def status(self) -> SessionStatus:
        return self._state.status

    @property
    def status_message(self) -> str:
        return self._state.status_message

    @property
    def running(self) -> bool:
        return self.status == SessionStatus.ANALYZING and not self._cancelled

    def _set_status(self, status: SessionStatus) -> None:
        with self._lock:
            self._state.status = status
            self._state.status_message = config.STATUS_MESSAGES[self.language][status.value]
        logger.debug("Session status -> %s", status.value)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> bool:
        """
        Load the model (first time only) and open the frame source.

        Returns:
            True if analysis started; False if already running/stopped or startup failed
        """
        if self._closed or self.status not in (SessionStatus.IDLE, SessionStatus.FAILED):
            return False

        try:
            if self.estimator is None:
                self._set_status(SessionStatus.LOADING_MODEL)
                self.estimator = self.estimator_factory()
            self.capture = self.capture_factory()
        except Exception:
            logger.exception("Unable to start camera or pose model")
            self._release_capture()
            self._set_status(SessionStatus.FAILED)
            return False

        self._cancelled = False
        self._t0 = self.clock()
        if self.supervisor is not None:
            self.supervisor.start()
        self._set_status(SessionStatus.ANALYZING)
        logger.info("Analysis started")
        return True

    def stop(self, timeout: float = 1.0) -> None:
        """
        Cancel the loop and release the frame source and the model.

        The model is closed only once no analysis pass is using it. A FAILED
        status is kept so its message stays visible, but the session cannot
        be started again either way.

        Args:
            timeout: Seconds to wait for an in-flight pass before handing
                     the model close over to the worker
        """
        self._cancelled = True
        self._closed = True
        self._release_capture()
        if self.supervisor is not None:
            self.supervisor.stop(timeout=timeout, on_exit=self._close_estimator)
        else:
            self._close_estimator()
        if self.status != SessionStatus.FAILED:
            self._set_status(SessionStatus.STOPPED)

    def _close_estimator(self) -> None:
        with self._lock:
            estimator, self.estimator = self.estimator, None
        if estimator is not None:
            close = getattr(estimator, 'close', None)
            if close is not None:
                close()

    def _release_capture(self) -> None:
        if self.capture is not None:
            self.capture.release()
            self.capture = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    # ------------------------------------------------------------------
    # Per-frame work
    # ------------------------------------------------------------------
    def analyze(self, frame: np.ndarray, timestamp_ms: float) -> FrameAnalysis:
        """One synchronous pass: detect, check, score, advise."""
        poses = self.estimator.detect(frame, timestamp_ms)
        if not poses:
            return FrameAnalysis(timestamp_ms=timestamp_ms, outcome=FrameOutcome.NO_POSE)

        landmarks = poses[0].landmarks
        scores = self.scorer.score(landmarks)
        if scores is None:
            logger.debug("Skipping frame at %.0f ms: required landmarks missing", timestamp_ms)
            return FrameAnalysis(
                timestamp_ms=timestamp_ms,
                outcome=FrameOutcome.INCOMPLETE_POSE,
                landmarks=landmarks
            )

        return FrameAnalysis(
            timestamp_ms=timestamp_ms,
            outcome=FrameOutcome.SCORED,
            landmarks=landmarks,
            scores=scores,
            tips=self.advisor.generate(scores)
        )

    def tick(self) -> Optional[np.ndarray]:
        """
        Run one loop iteration.

        Returns:
            The frame to display, or None when cancelled or the source is exhausted
        """
        if not self.running:
            return None
        if self.supervisor is not None:
            self.supervisor.raise_if_failed()

        ret, frame = self.capture.read()
        if not ret or frame is None:
            return None
        if self.mirror:
            frame = cv2.flip(frame, 1)

        timestamp_ms = self._timestamp_ms()
        if self.supervisor is not None:
            self.supervisor.submit(frame, timestamp_ms)
        else:
            self._apply(self.analyze(frame, timestamp_ms))
        return frame

    def _timestamp_ms(self) -> float:
        position = None
        if not getattr(self.capture, 'live', False):
            position = self.capture.position_ms()
        if position is None:
            position = (self.clock() - self._t0) * 1000.0
        return position

    def _apply(self, analysis: FrameAnalysis) -> None:
        with self._lock:
            self._state.apply(analysis)

    def snapshot(self) -> RenderState:
        """Copy of the render state, safe to read from the display thread."""
        with self._lock:
            return replace(
                self._state,
                percentages=dict(self._state.percentages),
                tips=list(self._state.tips)
            )

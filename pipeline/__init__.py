"""
Climbing Pose Coach Pipeline

5-Step Pipeline:
1. Frame Capture - Capture frames from webcam/video/image
2. Pose Estimation - 33 landmarks per frame with MediaPipe Pose Landmarker
3. Pose Scoring - Stability, coordination and hip extension heuristics
4. Advice - Coaching tips from the raw scores
5. Session - Start/stop lifecycle and the single-slot frame loop
"""

from .exceptions import AcquisitionError, CameraUnavailableError, ModelLoadError
from .step1_frame_capture import FrameCapture, VideoCapture, WebcamCapture, ImageCapture
from .step2_pose_estimation import Landmark, PoseResult, PoseEstimator
from .step3_pose_scorer import PoseScorer, ScoreSet, clamp_score, to_percent, has_required_landmarks
from .step4_advice import AdviceGenerator, generate_advice
from .step5_session import (
    AnalysisSession,
    FrameAnalysis,
    FrameOutcome,
    FrameSupervisor,
    RenderState,
    SessionStatus,
)

__all__ = [
    'AcquisitionError',
    'CameraUnavailableError',
    'ModelLoadError',
    'FrameCapture',
    'VideoCapture',
    'WebcamCapture',
    'ImageCapture',
    'Landmark',
    'PoseResult',
    'PoseEstimator',
    'PoseScorer',
    'ScoreSet',
    'clamp_score',
    'to_percent',
    'has_required_landmarks',
    'AdviceGenerator',
    'generate_advice',
    'AnalysisSession',
    'FrameAnalysis',
    'FrameOutcome',
    'FrameSupervisor',
    'RenderState',
    'SessionStatus',
]

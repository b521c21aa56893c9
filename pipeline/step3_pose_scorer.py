"""
Step 3: Pose Scorer
Derives three climbing heuristics from a single pose's landmarks.

Input:  33 normalized landmarks of one pose
Output: ScoreSet (stability, coordination, hip_extension), raw and unclamped
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

import config
from utils.landmark_math import is_finite_point, midpoint, planar_distance


@dataclass(frozen=True)
class ScoreSet:
    """Raw scores for one frame. Nominally 0-100 but unbounded before clamping."""
    stability: float
    coordination: float
    hip_extension: float

    def as_percentages(self) -> Dict[str, str]:
        """Clamped, rounded display strings."""
        return {
            'stability': to_percent(self.stability),
            'coordination': to_percent(self.coordination),
            'hip_extension': to_percent(self.hip_extension),
        }

    def as_dict(self) -> Dict[str, float]:
        return {
            'stability': self.stability,
            'coordination': self.coordination,
            'hip_extension': self.hip_extension,
        }


def clamp_score(value: float) -> int:
    """
    Round to the nearest integer, then clamp to [SCORE_MIN, SCORE_MAX].

    Halves round up (2.5 -> 3, -2.5 -> -2), not to even.
    """
    rounded = math.floor(value + 0.5)
    return max(config.SCORE_MIN, min(config.SCORE_MAX, rounded))


def to_percent(value: float) -> str:
    """Format a raw score for display, e.g. -30.0 -> '0%'."""
    return f"{clamp_score(value)}%"


def has_required_landmarks(landmarks: Optional[Sequence]) -> bool:
    """Check that every landmark the scorer reads is present and finite."""
    if landmarks is None:
        return False
    for idx in config.REQUIRED_LANDMARKS:
        if idx >= len(landmarks) or not is_finite_point(landmarks[idx]):
            return False
    return True


class PoseScorer:
    """
    Score a climbing pose from 2D landmarks.

    Stateless: every call depends only on the landmarks passed in.
    """

    def __init__(
        self,
        stability_gain: float = config.STABILITY_GAIN,
        coordination_gain: float = config.COORDINATION_GAIN,
        hip_extension_gain: float = config.HIP_EXTENSION_GAIN,
        hip_to_shoulder_target: float = config.HIP_TO_SHOULDER_TARGET
    ):
        self.stability_gain = stability_gain
        self.coordination_gain = coordination_gain
        self.hip_extension_gain = hip_extension_gain
        self.hip_to_shoulder_target = hip_to_shoulder_target

    def score(self, landmarks: Optional[Sequence]) -> Optional[ScoreSet]:
        """
        Compute the ScoreSet for one pose.

        Args:
            landmarks: Indexable sequence of landmarks (x, y normalized)

        Returns:
            ScoreSet with raw values, or None if a required landmark is missing
        """
        if not has_required_landmarks(landmarks):
            return None

        left_shoulder = landmarks[config.LEFT_SHOULDER]
        right_shoulder = landmarks[config.RIGHT_SHOULDER]
        left_wrist = landmarks[config.LEFT_WRIST]
        right_wrist = landmarks[config.RIGHT_WRIST]
        left_hip = landmarks[config.LEFT_HIP]
        right_hip = landmarks[config.RIGHT_HIP]
        left_ankle = landmarks[config.LEFT_ANKLE]
        right_ankle = landmarks[config.RIGHT_ANKLE]

        shoulder_center = midpoint(left_shoulder, right_shoulder)
        hip_center = midpoint(left_hip, right_hip)

        # Balance: hips over the feet
        feet_center_x = (left_ankle.x + right_ankle.x) / 2
        center_offset = abs(hip_center[0] - feet_center_x)
        stability = 100 - center_offset * self.stability_gain

        # Coordination: hand spread should match foot spread
        hand_spread = planar_distance(left_wrist, right_wrist)
        foot_spread = planar_distance(left_ankle, right_ankle)
        spread_diff = abs(hand_spread - foot_spread)
        coordination = 100 - spread_diff * self.coordination_gain

        # Hip extension: torso length against a fixed target
        hip_to_shoulder = abs(hip_center[1] - shoulder_center[1])
        hip_extension = 100 - abs(self.hip_to_shoulder_target - hip_to_shoulder) * self.hip_extension_gain

        return ScoreSet(
            stability=stability,
            coordination=coordination,
            hip_extension=hip_extension
        )


# Test module
if __name__ == "__main__":
    print("Testing PoseScorer...")

    from collections import namedtuple
    Landmark = namedtuple('Landmark', ['x', 'y'])

    pose = [Landmark(0.5, 0.5) for _ in range(config.N_LANDMARKS)]
    pose[11], pose[12] = Landmark(0.4, 0.3), Landmark(0.6, 0.3)
    pose[15], pose[16] = Landmark(0.2, 0.4), Landmark(0.8, 0.4)
    pose[23], pose[24] = Landmark(0.45, 0.5), Landmark(0.55, 0.5)
    pose[27], pose[28] = Landmark(0.45, 0.9), Landmark(0.55, 0.9)

    scores = PoseScorer().score(pose)
    print(f"Raw: {scores.as_dict()}")
    print(f"Display: {scores.as_percentages()}")

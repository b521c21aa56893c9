"""
Utils: Visualization
Drawing helpers for the coaching overlay: scores, tips, status and FPS.
"""

import cv2
import numpy as np
from typing import Dict, List, Optional, Tuple

import config


def _ascii(text: str) -> str:
    # Hershey fonts only cover ASCII
    return text.encode("ascii", "replace").decode("ascii")


def _wrap(text: str, max_chars: int) -> List[str]:
    """Greedy word wrap."""
    words = text.split()
    if not words:
        return [text]
    lines, current = [], words[0]
    for word in words[1:]:
        if len(current) + 1 + len(word) > max_chars:
            lines.append(current)
            current = word
        else:
            current = f"{current} {word}"
    lines.append(current)
    return lines


def score_color(percent_text: str) -> Tuple[int, int, int]:
    """Green at or above the advice threshold, orange below, white if unknown."""
    try:
        value = int(percent_text.rstrip('%'))
    except ValueError:
        return config.COLOR_WHITE
    return config.COLOR_GREEN if value >= config.ADVICE_THRESHOLD else config.COLOR_ORANGE


def draw_score_panel(
    frame: np.ndarray,
    percentages: Dict[str, str],
    language: str = config.LANGUAGE
) -> np.ndarray:
    """
    Draw the three percentages on a semi-transparent panel (top-left).

    Args:
        frame: Input frame (BGR)
        percentages: {'stability': '87%', 'coordination': ..., 'hip_extension': ...}
        language: Language of the labels
    """
    frame_copy = frame.copy()
    labels = config.SCORE_LABELS.get(language, config.SCORE_LABELS["en"])

    overlay = frame_copy.copy()
    cv2.rectangle(overlay, (0, 0), (300, 110), (20, 20, 20), -1)
    cv2.addWeighted(overlay, 0.6, frame_copy, 0.4, 0, frame_copy)

    y = 30
    for key in ('stability', 'coordination', 'hip_extension'):
        text = percentages.get(key, "--")
        cv2.putText(frame_copy, _ascii(f"{labels[key]}: {text}"), (10, y),
                    cv2.FONT_HERSHEY_SIMPLEX, config.FONT_SCALE, score_color(text), 2)
        y += 30

    return frame_copy


def draw_tips(frame: np.ndarray, tips: List[str], max_chars: int = 70) -> np.ndarray:
    """Draw the tip list, wrapped, at the bottom of the frame."""
    if not tips:
        return frame

    frame_copy = frame.copy()
    h, w = frame_copy.shape[:2]

    lines = []
    for tip in tips:
        wrapped = _wrap(_ascii(tip), max_chars)
        lines.append(f"- {wrapped[0]}")
        lines.extend(f"  {line}" for line in wrapped[1:])

    line_height = 22
    top = max(0, h - line_height * len(lines) - 15)

    overlay = frame_copy.copy()
    cv2.rectangle(overlay, (0, top), (w, h), config.COLOR_BLACK, -1)
    cv2.addWeighted(overlay, 0.6, frame_copy, 0.4, 0, frame_copy)

    y = top + line_height
    for line in lines:
        cv2.putText(frame_copy, line, (10, y),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.55, config.COLOR_WHITE, 1)
        y += line_height

    return frame_copy


def draw_status(
    frame: np.ndarray,
    message: str,
    color: Optional[Tuple[int, int, int]] = None
) -> np.ndarray:
    """Draw the session status line under the score panel."""
    frame_copy = frame.copy()
    cv2.putText(frame_copy, _ascii(message), (10, 135),
                cv2.FONT_HERSHEY_SIMPLEX, 0.55, color or config.COLOR_WHITE, 1)
    return frame_copy


def draw_fps(frame: np.ndarray, fps: float) -> np.ndarray:
    """Draw the FPS counter (top-right)."""
    frame_copy = frame.copy()
    h, w = frame_copy.shape[:2]

    cv2.putText(frame_copy, f"FPS: {fps:.0f}", (w - 100, 30),
                cv2.FONT_HERSHEY_SIMPLEX, 0.6, config.COLOR_WHITE, 1)

    return frame_copy


def render_frame(frame: np.ndarray, state, language: str = config.LANGUAGE,
                 fps: Optional[float] = None) -> np.ndarray:
    """
    Compose the full overlay for one displayed frame.

    Args:
        frame: Camera frame (BGR)
        state: RenderState snapshot of the session
        language: Language of the score labels
        fps: Display FPS, drawn when given
    """
    # Imported here to keep utils importable without the pipeline package
    from pipeline.step2_pose_estimation import PoseEstimator
    from pipeline.step5_session import FrameOutcome, SessionStatus

    annotated = PoseEstimator.draw_pose(frame, state.landmarks)
    annotated = draw_score_panel(annotated, state.percentages, language)

    if state.status == SessionStatus.FAILED:
        status_color = config.COLOR_RED
    elif state.last_outcome == FrameOutcome.SCORED:
        status_color = config.COLOR_GREEN
    else:
        status_color = config.COLOR_ORANGE
    annotated = draw_status(annotated, state.status_message, status_color)
    annotated = draw_tips(annotated, state.tips)

    if fps is not None:
        annotated = draw_fps(annotated, fps)
    return annotated

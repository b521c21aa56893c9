"""
Climbing Pose Coach - Real-time Climbing Form Feedback
=======================================================

5-Step Pipeline (MediaPipe Pose Landmarker):
1. Frame Capture - Get frames from webcam/video/image
2. Pose Estimation - 33 body landmarks per frame
3. Pose Scoring - Stability, coordination, hip extension
4. Advice - Coaching tips from the scores
5. Session - Single-slot analysis loop with start/stop lifecycle

Usage:
    python main.py                     # Webcam
    python main.py --video path.mp4    # Video file
    python main.py --image path.jpg    # Single image
    python main.py --lang zh-TW        # Traditional Chinese tips

Controls:
    Q / ESC - Quit
    S       - Save screenshot
"""

import argparse
import logging
import sys
import time
from collections import deque
from pathlib import Path
from typing import Optional

import cv2

import config
from pipeline import (
    AnalysisSession,
    ImageCapture,
    PoseEstimator,
    SessionStatus,
    VideoCapture,
    WebcamCapture,
)
from utils.logging_setup import setup_logging
from utils.visualization import render_frame

logger = logging.getLogger(__name__)


class ClimbingCoachApp:
    """Interactive window around an AnalysisSession."""

    def __init__(self, session: AnalysisSession, language: str = config.LANGUAGE):
        self.session = session
        self.language = language
        self.screenshot_count = 0

    def run(self) -> bool:
        """
        Start the session and run the display loop until quit or end of input.

        Returns:
            False if the session could not start
        """
        print("Initializing Climbing Pose Coach...")
        print(f"  {self.session.status_message}")

        if not self.session.start():
            print(f"  {self.session.status_message}")
            return False

        print(f"  {self.session.status_message}")
        print("Press Q or ESC to quit, S to save screenshot\n")

        fps_counter = deque(maxlen=30)
        prev_time = time.time()

        try:
            while True:
                frame = self.session.tick()
                if frame is None:
                    break

                curr_time = time.time()
                fps_counter.append(curr_time - prev_time)
                prev_time = curr_time
                fps = len(fps_counter) / max(sum(fps_counter), 1e-6)

                annotated = render_frame(frame, self.session.snapshot(), self.language, fps)
                cv2.imshow(config.WINDOW_NAME, annotated)

                key = cv2.waitKey(1) & 0xFF
                if key in (ord('q'), ord('Q'), 27):
                    break
                elif key in (ord('s'), ord('S')):
                    self.save_screenshot(annotated)
        finally:
            self.session.stop()
            cv2.destroyAllWindows()

        return True

    def save_screenshot(self, frame) -> Path:
        out_dir = Path(config.SCREENSHOT_DIR)
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / f"climb_{self.screenshot_count:04d}.jpg"
        cv2.imwrite(str(path), frame)
        self.screenshot_count += 1
        print(f"Screenshot saved: {path}")
        return path


def run_image(image_path: str, language: str, model_path: str = config.POSE_MODEL_PATH,
              output_path: str = "output_result.jpg") -> Optional[dict]:
    """Score a single image, print the result and save the annotated image."""
    session = AnalysisSession(
        capture_factory=lambda: ImageCapture(image_path),
        estimator_factory=lambda: PoseEstimator(model_path=model_path),
        language=language,
        background=False
    )
    if not session.start():
        print(session.status_message)
        return None

    try:
        frame = session.tick()
        state = session.snapshot()
    finally:
        session.stop()

    if frame is None:
        return None

    if state.scores is None:
        print("\nNo complete pose detected.")
    else:
        print("\nScores:")
        for key, text in state.percentages.items():
            print(f"  {config.SCORE_LABELS[language][key]}: {text}")
        print("Tips:")
        for tip in state.tips:
            print(f"  - {tip}")

    annotated = render_frame(frame, state, language)
    cv2.imwrite(output_path, annotated)
    print(f"\nSaved result to: {output_path}")
    return {
        'percentages': state.percentages,
        'tips': state.tips,
        'scores': state.scores.as_dict() if state.scores else None,
    }


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Climbing Pose Coach - Real-time climbing form feedback',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # Input source
    input_group = parser.add_mutually_exclusive_group()
    input_group.add_argument('--video', type=str, help='Path to video file')
    input_group.add_argument('--image', type=str, help='Path to image file')

    # Camera settings
    parser.add_argument('--camera', type=int, default=config.CAMERA_ID,
                        help='Camera ID for webcam mode')
    parser.add_argument('--mirror', action='store_true', default=config.MIRROR_VIEW,
                        help='Flip frames horizontally')

    # Pipeline settings
    parser.add_argument('--model', type=str, default=config.POSE_MODEL_PATH,
                        help='Path to pose_landmarker .task file (downloaded if missing)')
    parser.add_argument('--lang', type=str, choices=config.SUPPORTED_LANGUAGES,
                        default=config.LANGUAGE, help='Language of tips and status')
    parser.add_argument('--sync', action='store_true',
                        help='Analyze every frame inline instead of on the background worker')
    parser.add_argument('--log-level', type=str, default=config.LOG_LEVEL,
                        help='Logging level')

    return parser.parse_args()


def main():
    """Main entry point."""
    args = parse_args()
    setup_logging(args.log_level, config.LOG_FILE)

    if args.image:
        result = run_image(args.image, args.lang, args.model)
        sys.exit(0 if result is not None else 1)

    if args.video:
        capture_factory = lambda: VideoCapture(args.video)
    else:
        capture_factory = lambda: WebcamCapture(
            camera_id=args.camera,
            width=config.CAMERA_WIDTH,
            height=config.CAMERA_HEIGHT
        )

    session = AnalysisSession(
        capture_factory=capture_factory,
        estimator_factory=lambda: PoseEstimator(model_path=args.model),
        language=args.lang,
        background=not args.sync,
        mirror=args.mirror
    )
    app = ClimbingCoachApp(session, language=args.lang)

    try:
        ok = app.run()
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        ok = True
    except Exception:
        logger.exception("Analysis loop failed")
        ok = False
    finally:
        session.stop()

    if not ok or session.status == SessionStatus.FAILED:
        sys.exit(1)


if __name__ == '__main__':
    main()

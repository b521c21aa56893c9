"""
Demo: Climbing pose coaching on a recorded video.

Steps:
  1. Read the video frame by frame
  2. Detect the pose with MediaPipe Pose Landmarker (every frame, synchronous)
  3. Score stability / coordination / hip extension and build tips
  4. Write annotated output video + per-frame CSV + print a summary

Usage:
  python demo_video.py --file /path/to/climb.mp4
  python demo_video.py --file climb.mp4 --no-video     # CSV + summary only (faster)
  python demo_video.py --file climb.mp4 --lang zh-TW

Output:
  demo_output/<stem>_coached.mp4   -- annotated video
  demo_output/<stem>_scores.csv    -- raw scores per frame
"""

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional

import cv2
import pandas as pd
from tqdm import tqdm

import config
from pipeline import AnalysisSession, FrameOutcome, PoseEstimator, VideoCapture
from utils.logging_setup import setup_logging
from utils.visualization import render_frame


def analyze_video(
    video_path: str,
    out_dir: str = config.DEMO_OUTPUT_DIR,
    write_video: bool = True,
    language: str = config.LANGUAGE,
    estimator_factory=PoseEstimator
) -> Optional[pd.DataFrame]:
    """
    Analyze every frame of a video file.

    Returns:
        DataFrame with one row per frame, or None if the video/model failed to load
    """
    stem = Path(video_path).stem
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)

    session = AnalysisSession(
        capture_factory=lambda: VideoCapture(video_path),
        estimator_factory=estimator_factory,
        language=language,
        background=False
    )
    if not session.start():
        print(session.status_message)
        return None

    capture = session.capture
    writer = None
    rows: List[Dict] = []

    try:
        if write_video:
            video_out = out / f"{stem}_coached.mp4"
            fourcc = cv2.VideoWriter_fourcc(*"mp4v")
            writer = cv2.VideoWriter(str(video_out), fourcc, capture.fps,
                                     (capture.width, capture.height))

        total = capture.total_frames or None
        with tqdm(total=total, desc="Analyzing", unit="frame") as bar:
            while True:
                frame = session.tick()
                if frame is None:
                    break
                state = session.snapshot()
                scored = state.last_outcome == FrameOutcome.SCORED
                scores = state.scores.as_dict() if scored else {}
                rows.append({
                    'frame': capture.current_frame - 1,
                    'timestamp_ms': capture.position_ms(),
                    'outcome': state.last_outcome.value if state.last_outcome else None,
                    'stability': scores.get('stability'),
                    'coordination': scores.get('coordination'),
                    'hip_extension': scores.get('hip_extension'),
                    'tips': " | ".join(state.tips) if scored else "",
                })
                if writer is not None:
                    writer.write(render_frame(frame, state, language))
                bar.update(1)
        final_state = session.snapshot()
    finally:
        session.stop()
        if writer is not None:
            writer.release()

    df = pd.DataFrame(rows)
    csv_path = out / f"{stem}_scores.csv"
    df.to_csv(csv_path, index=False)

    print_summary(df, final_state.tips)
    print(f"\nCSV saved: {csv_path}")
    if write_video:
        print(f"Video saved: {out / f'{stem}_coached.mp4'}")
    return df


def summarize(df: pd.DataFrame) -> Dict[str, float]:
    """Mean raw scores over scored frames and the share of frames that were scored."""
    if df.empty:
        return {'frames': 0, 'scored_ratio': 0.0}
    scored = df[df['outcome'] == 'scored']
    summary = {
        'frames': int(len(df)),
        'scored_ratio': float(len(scored) / len(df)),
    }
    for key in ('stability', 'coordination', 'hip_extension'):
        summary[f'mean_{key}'] = float(scored[key].mean()) if len(scored) else float('nan')
    return summary


def print_summary(df: pd.DataFrame, final_tips: List[str]):
    summary = summarize(df)
    print("\n" + "=" * 50)
    print("Summary")
    print("=" * 50)
    print(f"  Frames:        {summary['frames']}")
    print(f"  Scored frames: {summary['scored_ratio']:.1%}")
    for key in ('stability', 'coordination', 'hip_extension'):
        if f'mean_{key}' in summary:
            print(f"  Mean {key:<14} {summary[f'mean_{key}']:.1f}")
    if final_tips:
        print("  Last tips:")
        for tip in final_tips:
            print(f"    - {tip}")


def main():
    ap = argparse.ArgumentParser(description="Climbing pose coaching on a video file")
    ap.add_argument("--file", required=True, help="Local video path")
    ap.add_argument("--out-dir", default=config.DEMO_OUTPUT_DIR, help="Output directory")
    ap.add_argument("--no-video", action="store_true", help="Skip writing the annotated video")
    ap.add_argument("--model", default=config.POSE_MODEL_PATH,
                    help="Path to pose_landmarker .task file (downloaded if missing)")
    ap.add_argument("--lang", choices=config.SUPPORTED_LANGUAGES, default=config.LANGUAGE)
    ap.add_argument("--log-level", default="WARNING")
    args = ap.parse_args()

    setup_logging(args.log_level, config.LOG_FILE)

    df = analyze_video(
        args.file,
        out_dir=args.out_dir,
        write_video=not args.no_video,
        language=args.lang,
        estimator_factory=lambda: PoseEstimator(model_path=args.model)
    )
    if df is None:
        sys.exit(1)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Command-line interface for the engagement monitor.
Replays recorded landmark streams through the pipeline.
"""

import argparse
import json
import sys
from typing import Any, Dict, Iterator, List, Optional

from .core.adaptive_thresholds import InMemoryCalibrationStore, JsonFileCalibrationStore
from .core.models import ComprehensiveAnalysisResult
from .core.pipeline import EngagementPipeline, PipelineListener
from .utils.config import Config


class ReplayClock:
    """Clock driven by recorded frame timestamps."""

    def __init__(self):
        self.now_ms = 0.0

    def __call__(self) -> float:
        return self.now_ms


class ConsoleListener(PipelineListener):
    """Prints status updates and errors."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.last_status: Optional[str] = None

    def on_status_update(self, text: str) -> None:
        if text == self.last_status:
            return
        self.last_status = text
        if self.verbose:
            print(text)
            print("-" * 60)

    def on_empty(self) -> None:
        if self.verbose:
            print("No face detected")

    def on_error(self, message: str) -> None:
        print(f"✗ Error: {message}", file=sys.stderr)


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Streaming engagement analysis from facial landmarks")
    subparsers = parser.add_subparsers(dest="command")

    replay = subparsers.add_parser("replay", help="Replay a JSON-lines landmark recording")
    replay.add_argument("file", type=str,
                        help="Recording with one JSON frame per line")
    replay.add_argument("--config", type=str, default="",
                        help="Configuration file (JSON)")
    replay.add_argument("--calibrate", type=int, default=0, metavar="N",
                        help="Calibrate on the first N frames before analysis")
    replay.add_argument("--calibration-file", type=str, default="",
                        help="Persist calibration to this JSON file")
    replay.add_argument("--stats", action="store_true",
                        help="Print performance statistics at the end")
    replay.add_argument("--verbose", "-v", action="store_true",
                        help="Print status text updates")

    return parser.parse_args(argv)


def read_frames(path: str) -> Iterator[Dict[str, Any]]:
    """Yield frame records from a JSON-lines file, skipping blank lines."""
    with open(path, 'r') as f:
        for line_number, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except ValueError as e:
                print(f"⚠ Skipping line {line_number}: {e}", file=sys.stderr)


def format_report(index: int, report: ComprehensiveAnalysisResult) -> str:
    attention = report.attention_result
    expression = report.expression_result
    return (f"Frame {index:5d} | Attention: {attention.state.name:<24} ({attention.confidence:.2f}) | "
            f"Expression: {expression.primary_expression.name:<12} ({expression.intensity:.2f}) | "
            f"Engagement: {report.overall_engagement:.2f}")


def run_replay(args) -> int:
    app_config = Config()
    if args.config:
        app_config.load_from_file(args.config)
    if not app_config.validate_config():
        return 1

    store = JsonFileCalibrationStore(args.calibration_file) if args.calibration_file else InMemoryCalibrationStore()
    clock = ReplayClock()
    listener = ConsoleListener(verbose=args.verbose)
    pipeline = EngagementPipeline(listener=listener, store=store, app_config=app_config, clock=clock)

    frame_interval = 1000.0 / app_config.governor.target_fps
    calibrating = args.calibrate > 0
    if calibrating:
        pipeline.start_calibration()
        print(f"Calibrating on the first {args.calibrate} frames...")

    try:
        frames = read_frames(args.file)
        for index, frame in enumerate(frames):
            timestamp = frame.get("timestamp")
            clock.now_ms = float(timestamp) if timestamp is not None else index * frame_interval

            if "brightness" in frame:
                pipeline.current_brightness = float(frame["brightness"])

            report = pipeline.process_landmarks(
                frame.get("landmarks") or [],
                transform=frame.get("transform"),
                blendshapes=frame.get("blendshapes"),
                timestamp=int(clock.now_ms),
            )

            if calibrating and index + 1 >= args.calibrate:
                calibrating = False
                if pipeline.finish_calibration():
                    print("✓ Calibration completed")
                else:
                    print(f"⚠ Calibration failed ({pipeline.calibration_progress():.0%} of samples collected)")

            if report is not None and not calibrating:
                print(format_report(index, report))
    except OSError as e:
        print(f"✗ Error: Could not read {args.file}: {e}", file=sys.stderr)
        return 1

    if args.stats:
        print("=" * 60)
        for key, value in pipeline.performance_stats().to_dict().items():
            print(f"{key}: {value}")
        print(pipeline.threshold_info())
        print("=" * 60)

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main function."""
    args = parse_arguments(argv)

    if args.command == "replay":
        return run_replay(args)

    print("Usage: engagement-monitor replay FILE [--calibrate N] [--config FILE] [--stats]")
    return 2


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
clipstab CLI - Clip Stabilization
Command-line interface for analyzing shaky clips and rendering stabilized video.
"""

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import cv2
import numpy as np
from tqdm import tqdm

from .config import Config
from .effect import StabilizerEffect
from .errors import ClipStabError
from .persistence.stabilization_store import StabilizationStore
from .processors.compensation import FrameCompensator, OpenCVWarper
from .processors.stabilization import ClipAnalyzer, read_video_frames
from .utils.logging import LogConfig, configure_logging, get_logger

logger = get_logger("cli")


class Colors:
    """ANSI color codes for terminal output."""
    HEADER = '\033[95m'
    OKBLUE = '\033[94m'
    OKCYAN = '\033[96m'
    OKGREEN = '\033[92m'
    WARNING = '\033[93m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'


def print_colored(message: str, color: str = Colors.OKBLUE):
    """Print colored message to console."""
    print(f"{color}{message}{Colors.ENDC}")


def validate_input(input_path: str) -> Path:
    """Validate that an input file exists."""
    path = Path(input_path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")
    return path


def _load_config(args) -> Config:
    """Build the effective configuration from --config and CLI overrides.

    Without --config the CLI logs at WARNING; explicit --log-* options
    override whatever the file or that default sets.
    """
    if getattr(args, 'config', None):
        config = Config.load(args.config)
    else:
        config = Config(logging=LogConfig(log_level='WARNING'))

    log_overrides = {
        name: getattr(args, name)
        for name in ('log_level', 'log_format', 'log_file')
        if getattr(args, name, None) is not None
    }
    if log_overrides:
        config.logging = replace(config.logging, **log_overrides)

    window = getattr(args, 'window', None)
    if window is not None:
        config.stabilization = replace(config.stabilization, smoothing_window=window)

    return config


def analyze_clip(args, config: Config) -> int:
    """Analyze a video and write its stabilization data."""
    input_path = validate_input(args.input)
    output_path = Path(args.output) if args.output else config.data_path_for(input_path)

    print_colored(f"\nAnalyzing: {input_path}", Colors.OKBLUE)
    analyzer = ClipAnalyzer(config.stabilization)

    with tqdm(total=100, desc="Tracking motion", unit="%") as pbar:
        def progress_callback(progress: float):
            pbar.n = int(progress * 100)
            pbar.refresh()

        result = analyzer.process_video(input_path, progress_callback=progress_callback)

    logger.info(
        "Analysis complete",
        frames=result.frames_processed,
        gaps=result.estimation_gaps,
        window=result.smoothing_window,
    )

    if not StabilizationStore().save(result.record, output_path):
        print_colored(f"Error: could not write {output_path}", Colors.FAIL)
        return 1

    print_colored(f"Stabilization data saved to {output_path}", Colors.OKGREEN)
    return 0


def apply_stabilization(args, config: Config) -> int:
    """Render a stabilized copy of a video from saved data."""
    input_path = validate_input(args.input)
    data_path = validate_input(args.data)

    stab = config.stabilization
    compensator = FrameCompensator(
        warper=OpenCVWarper(border_mode=stab.border_mode, interpolation=stab.interpolation),
        zoom=stab.zoom,
    )
    effect = StabilizerEffect(compensator=compensator)
    if not effect.load_stabilized_data(data_path):
        print_colored(f"Error: could not load {data_path}", Colors.FAIL)
        return 1

    cap = cv2.VideoCapture(str(input_path))
    writer = None
    try:
        if not cap.isOpened():
            print_colored(f"Error: failed to open video {input_path}", Colors.FAIL)
            return 1

        fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        total = int(cap.get(cv2.CAP_PROP_FRAME_COUNT)) or None

        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fourcc = cv2.VideoWriter_fourcc(*args.codec)
        writer = cv2.VideoWriter(str(output_path), fourcc, fps, (width, height))
        if not writer.isOpened():
            print_colored(f"Error: failed to open output {output_path}", Colors.FAIL)
            return 1

        print_colored(f"\nStabilizing: {input_path}", Colors.OKBLUE)
        frames = read_video_frames(cap)
        for frame_number, frame in enumerate(tqdm(frames, total=total, desc="Rendering")):
            writer.write(effect.get_frame(frame, frame_number))
    finally:
        cap.release()
        if writer is not None:
            writer.release()

    print_colored(f"Stabilized video saved to {output_path}", Colors.OKGREEN)
    return 0


def show_data_info(args, config: Config) -> int:
    """Display a summary of a stabilization data file."""
    data_path = validate_input(args.data)
    store = StabilizationStore()
    if not store.load(data_path):
        print_colored(f"Error: could not load {data_path}", Colors.FAIL)
        return 1

    record = store.record
    corrections = list(record.corrections.values())

    print_colored(f"\nStabilization data: {data_path}", Colors.HEADER)
    print(f"  Frames:        {len(record)}")
    print(f"  Last updated:  {record.last_updated.isoformat()}")
    print(f"  Contiguous:    {'Yes' if record.is_consistent() else 'No'}")

    if corrections:
        dx = np.array([c.dx for c in corrections])
        dy = np.array([c.dy for c in corrections])
        da = np.degrees([c.da for c in corrections])
        print_colored("\n  Corrections:", Colors.OKCYAN)
        print(f"    dx  mean {dx.mean():8.3f}  max |{np.abs(dx).max():.3f}| px")
        print(f"    dy  mean {dy.mean():8.3f}  max |{np.abs(dy).max():.3f}| px")
        print(f"    da  mean {da.mean():8.3f}  max |{np.abs(da).max():.3f}| deg")

    print()
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog='clipstab',
        description='clipstab - analyze and stabilize shaky video clips',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze a clip (writes shaky.stab next to the video)
  clipstab analyze shaky.mp4

  # Analyze with a stronger smoothing window
  clipstab analyze shaky.mp4 --window 60 -o shaky.stab

  # Render the stabilized clip
  clipstab apply shaky.mp4 shaky.stab -o stable.mp4

  # Inspect saved stabilization data
  clipstab info shaky.stab
        """
    )
    parser.add_argument('--log-level',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Logging level (default: WARNING, or the config file setting)')
    parser.add_argument('--log-format', choices=['text', 'json'],
                        help='Log output format')
    parser.add_argument('--log-file', type=str, help='Also write logs to this file')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    analyze_parser = subparsers.add_parser('analyze', help='Analyze clip motion and save stabilization data')
    analyze_parser.add_argument('input', type=str, help='Input video')
    analyze_parser.add_argument('-o', '--output', type=str, help='Output data file (default: <input>.stab)')
    analyze_parser.add_argument('--window', type=int, help='Smoothing window in frames (default: 30)')
    analyze_parser.add_argument('--config', type=str, help='YAML configuration file')
    analyze_parser.set_defaults(func=analyze_clip)

    apply_parser = subparsers.add_parser('apply', help='Render a stabilized video from saved data')
    apply_parser.add_argument('input', type=str, help='Input video')
    apply_parser.add_argument('data', type=str, help='Stabilization data file')
    apply_parser.add_argument('-o', '--output', type=str, required=True, help='Output video')
    apply_parser.add_argument('--codec', type=str, default='mp4v', help='FourCC codec (default: mp4v)')
    apply_parser.add_argument('--config', type=str, help='YAML configuration file')
    apply_parser.set_defaults(func=apply_stabilization)

    info_parser = subparsers.add_parser('info', help='Show a summary of a stabilization data file')
    info_parser.add_argument('data', type=str, help='Stabilization data file')
    info_parser.add_argument('--config', type=str, help='YAML configuration file')
    info_parser.set_defaults(func=show_data_info)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        config = _load_config(args)
        configure_logging(config.logging)
        return args.func(args, config)
    except KeyboardInterrupt:
        print_colored("\n\nOperation cancelled by user", Colors.WARNING)
        return 1
    except (ClipStabError, FileNotFoundError) as e:
        print_colored(f"\nError: {str(e)}", Colors.FAIL)
        return 1


if __name__ == '__main__':
    sys.exit(main())

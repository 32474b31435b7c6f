"""Clip analysis for stabilization.

Runs the full analysis pass over a clip and produces the data needed to
stabilize it at render time:

- Motion tracking between consecutive frames
- Accumulation into a camera trajectory
- Centered moving-average smoothing
- Per-frame corrective transforms

Example:
    >>> config = StabilizationConfig(smoothing_window=30)
    >>> analyzer = ClipAnalyzer(config)
    >>> result = analyzer.process_video(Path("shaky_video.mp4"))
    >>> StabilizationStore().save(result.record, Path("shaky_video.stab"))

    >>> # Or from decoded frames
    >>> result = analyzer.process_frames(frames)
"""

import logging
import time
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

import cv2
import numpy as np

from ..core.types import RelativeTransform, StabilizationRecord, Trajectory
from ..errors import (
    AnalysisCancelledError,
    AnalysisError,
    ConfigurationError,
    InsufficientFramesError,
    create_error_context,
)
from .compensation import BORDER_MODES, DEFAULT_ZOOM, INTERPOLATIONS
from .motion import EstimationState, MotionEstimator, OpticalFlowMotionEstimator, track_frame
from .trajectory import (
    DEFAULT_SMOOTHING_WINDOW,
    CorrectionGenerator,
    TrajectorySmoother,
    accumulate,
    validate_window,
)

logger = logging.getLogger(__name__)


@dataclass
class StabilizationConfig:
    """Configuration for clip stabilization.

    Attributes:
        smoothing_window: Half-width of the moving average in frames.
            0 disables smoothing.
        zoom: Scale applied after correction to hide exposed borders.
        max_corners: Maximum number of tracked features per frame.
        quality_level: Minimum accepted corner quality (0-1).
        min_distance: Minimum distance between tracked features.
        border_mode: Border handling ('constant', 'replicate', 'reflect', 'wrap').
        interpolation: Warp interpolation ('nearest', 'linear', 'cubic', 'area').
    """
    smoothing_window: int = DEFAULT_SMOOTHING_WINDOW
    zoom: float = DEFAULT_ZOOM
    max_corners: int = 200
    quality_level: float = 0.01
    min_distance: int = 30
    border_mode: str = "constant"
    interpolation: str = "linear"

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        self.smoothing_window = validate_window(self.smoothing_window)
        if self.zoom <= 0:
            raise ConfigurationError("zoom must be positive")
        if self.max_corners < 1:
            raise ConfigurationError("max_corners must be at least 1")
        if not 0.0 < self.quality_level <= 1.0:
            raise ConfigurationError("quality_level must be in (0.0, 1.0]")
        if self.min_distance < 0:
            raise ConfigurationError("min_distance must be non-negative")

        self.border_mode = self.border_mode.lower()
        self.interpolation = self.interpolation.lower()
        if self.border_mode not in BORDER_MODES:
            raise ConfigurationError(
                f"Invalid border_mode '{self.border_mode}'. "
                f"Must be one of: {sorted(BORDER_MODES)}"
            )
        if self.interpolation not in INTERPOLATIONS:
            raise ConfigurationError(
                f"Invalid interpolation '{self.interpolation}'. "
                f"Must be one of: {sorted(INTERPOLATIONS)}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StabilizationConfig":
        """Create config from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def create_estimator(self) -> OpticalFlowMotionEstimator:
        """Build the default motion estimator for these settings."""
        return OpticalFlowMotionEstimator(
            max_corners=self.max_corners,
            quality_level=self.quality_level,
            min_distance=self.min_distance,
        )


@dataclass
class StabilizationResult:
    """Results from a clip analysis run.

    Attributes:
        record: Smoothed trajectory and corrections ready to persist.
        relative_transforms: Frame-to-frame motion, frame 0 included.
        trajectory: Raw accumulated camera trajectory.
        frames_processed: Number of frames analyzed.
        estimation_gaps: Frame pairs where the last transform was reused.
        smoothing_window: Window used for smoothing.
        duration_seconds: Wall-clock time of the run.
    """
    record: StabilizationRecord
    relative_transforms: List[RelativeTransform] = field(default_factory=list)
    trajectory: List[Trajectory] = field(default_factory=list)
    frames_processed: int = 0
    estimation_gaps: int = 0
    smoothing_window: int = DEFAULT_SMOOTHING_WINDOW
    duration_seconds: float = 0.0


def to_gray(frame: np.ndarray) -> np.ndarray:
    """Convert a BGR, BGRA or grayscale frame to grayscale."""
    if frame.ndim == 2:
        return frame
    channels = frame.shape[2]
    if channels == 1:
        return frame[:, :, 0]
    if channels == 4:
        return cv2.cvtColor(frame, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)


class ClipAnalyzer:
    """Computes stabilization data for a whole clip.

    Frames must be fed in order: each frame's motion is estimated against
    the previous one. Smoothing and correction only run after the last
    frame has been tracked. Separate analyzers share no state, so
    different clips can be analyzed concurrently.

    Attributes:
        config: StabilizationConfig with analysis settings.
        estimator: Motion estimator used for consecutive frame pairs.
    """

    def __init__(
        self,
        config: Optional[StabilizationConfig] = None,
        estimator: Optional[MotionEstimator] = None,
    ) -> None:
        """Initialize the analyzer.

        Args:
            config: Analysis settings (defaults if omitted).
            estimator: Motion estimator; an optical-flow estimator built
                from ``config`` if omitted.
        """
        self.config = config or StabilizationConfig()
        self.estimator = estimator or self.config.create_estimator()
        self.smoother = TrajectorySmoother(self.config.smoothing_window)
        self.generator = CorrectionGenerator()

    def compute(self, relative_transforms: Sequence[RelativeTransform]) -> StabilizationRecord:
        """Run accumulation, smoothing and correction on tracked motion.

        Args:
            relative_transforms: One transform per frame, frame 0 first.

        Returns:
            StabilizationRecord stamped with the current time.
        """
        trajectory = accumulate(relative_transforms)
        smoothed = self.smoother.smooth(trajectory)
        corrections = self.generator.generate(relative_transforms, smoothed)

        return StabilizationRecord(
            trajectory=smoothed,
            corrections=corrections,
            last_updated=datetime.now(timezone.utc).replace(microsecond=0),
        )

    def track_frames(
        self,
        frames: Iterable[np.ndarray],
        total_frames: Optional[int] = None,
        progress_callback: Optional[Callable[[float], None]] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> EstimationState:
        """Estimate motion for every consecutive frame pair.

        Args:
            frames: Colour or grayscale frames in clip order.
            total_frames: Expected frame count, used for progress.
            progress_callback: Optional callback receiving 0.0-1.0.
            should_cancel: Optional callable checked before each frame.

        Returns:
            EstimationState holding the tracked transforms.

        Raises:
            AnalysisCancelledError: If ``should_cancel`` returned True.
        """
        state = EstimationState()

        for frame in frames:
            if should_cancel is not None and should_cancel():
                raise AnalysisCancelledError(
                    f"Analysis cancelled after {state.frames_seen} frames",
                    create_error_context("analyze", "track", frame_number=state.frames_seen),
                )

            track_frame(state, to_gray(frame), self.estimator)

            if progress_callback and total_frames:
                progress_callback(min(1.0, state.frames_seen / total_frames))

        if progress_callback:
            progress_callback(1.0)

        return state

    def process_frames(
        self,
        frames: Iterable[np.ndarray],
        total_frames: Optional[int] = None,
        progress_callback: Optional[Callable[[float], None]] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> StabilizationResult:
        """Analyze a clip given as a sequence of frames.

        Raises:
            InsufficientFramesError: If ``frames`` is empty.
            AnalysisCancelledError: If cancelled before completion.
        """
        start_time = time.time()

        state = self.track_frames(frames, total_frames, progress_callback, should_cancel)
        if state.frames_seen == 0:
            raise InsufficientFramesError(
                "No frames to analyze",
                create_error_context("analyze", "track"),
            )

        # Frame 0 has no predecessor and, by convention, no motion
        relative_transforms = [RelativeTransform()] + state.transforms
        record = self.compute(relative_transforms)

        if state.gaps:
            logger.warning(
                f"Motion estimation failed for {state.gaps} of "
                f"{len(state.transforms)} frame pairs; reused previous transforms"
            )

        duration = time.time() - start_time
        logger.info(
            f"Analyzed {state.frames_seen} frames in {duration:.1f}s "
            f"(window={self.config.smoothing_window})"
        )

        return StabilizationResult(
            record=record,
            relative_transforms=relative_transforms,
            trajectory=accumulate(relative_transforms),
            frames_processed=state.frames_seen,
            estimation_gaps=state.gaps,
            smoothing_window=self.config.smoothing_window,
            duration_seconds=duration,
        )

    def process_video(
        self,
        video_path: Union[str, Path],
        progress_callback: Optional[Callable[[float], None]] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> StabilizationResult:
        """Analyze a video file.

        Args:
            video_path: Path to a video readable by OpenCV.
            progress_callback: Optional callback receiving 0.0-1.0.
            should_cancel: Optional callable checked before each frame.

        Raises:
            FileNotFoundError: If the video does not exist.
            AnalysisError: If the video cannot be opened.
        """
        video_path = Path(video_path)
        if not video_path.exists():
            raise FileNotFoundError(f"Video not found: {video_path}")

        cap = cv2.VideoCapture(str(video_path))
        try:
            if not cap.isOpened():
                raise AnalysisError(
                    f"Failed to open video: {video_path}",
                    create_error_context("analyze", "open", input_file=video_path),
                )

            total_frames = int(cap.get(cv2.CAP_PROP_FRAME_COUNT)) or None
            logger.info(f"Analyzing motion in {video_path}")

            return self.process_frames(
                read_video_frames(cap),
                total_frames=total_frames,
                progress_callback=progress_callback,
                should_cancel=should_cancel,
            )
        finally:
            cap.release()


def read_video_frames(cap: "cv2.VideoCapture") -> Iterable[np.ndarray]:
    """Yield frames from an open capture until it is exhausted."""
    while True:
        ret, frame = cap.read()
        if not ret:
            break
        yield frame


# Convenience functions

def analyze_clip(
    video_path: Union[str, Path],
    smoothing_window: int = DEFAULT_SMOOTHING_WINDOW,
) -> StabilizationResult:
    """Analyze a video file with default settings.

    Args:
        video_path: Path to input video.
        smoothing_window: Half-width of the moving average in frames.

    Returns:
        StabilizationResult with the computed record.
    """
    config = StabilizationConfig(smoothing_window=smoothing_window)
    return ClipAnalyzer(config).process_video(video_path)

"""Processors module for clip stabilization.

- motion: Frame-to-frame motion estimation (optical flow)
- trajectory: Trajectory accumulation, smoothing and corrections
- compensation: Render-time frame warping
- stabilization: Whole-clip analysis pipeline
"""

from .motion import EstimationState, MotionEstimator, OpticalFlowMotionEstimator, track_frame
from .trajectory import (
    DEFAULT_SMOOTHING_WINDOW,
    CorrectionGenerator,
    TrajectorySmoother,
    accumulate,
)
from .compensation import (
    DEFAULT_ZOOM,
    FrameCompensator,
    OpenCVWarper,
    Warper,
    build_correction_matrix,
    build_zoom_matrix,
)
from .stabilization import (
    ClipAnalyzer,
    StabilizationConfig,
    StabilizationResult,
    analyze_clip,
)

__all__ = [
    "EstimationState",
    "MotionEstimator",
    "OpticalFlowMotionEstimator",
    "track_frame",
    "DEFAULT_SMOOTHING_WINDOW",
    "CorrectionGenerator",
    "TrajectorySmoother",
    "accumulate",
    "DEFAULT_ZOOM",
    "FrameCompensator",
    "OpenCVWarper",
    "Warper",
    "build_correction_matrix",
    "build_zoom_matrix",
    "ClipAnalyzer",
    "StabilizationConfig",
    "StabilizationResult",
    "analyze_clip",
]

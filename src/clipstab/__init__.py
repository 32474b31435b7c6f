"""clipstab - Clip stabilization using optical flow trajectory smoothing."""
__version__ = "0.1.0"

from .config import Config
from .effect import EffectInfo, StabilizerEffect

# Data types
from .core.types import (
    CorrectiveTransform,
    FrameStabilization,
    RelativeTransform,
    StabilizationRecord,
    Trajectory,
)

# Analysis and rendering
from .processors.stabilization import (
    ClipAnalyzer,
    StabilizationConfig,
    StabilizationResult,
    analyze_clip,
)
from .processors.trajectory import CorrectionGenerator, TrajectorySmoother, accumulate
from .processors.motion import MotionEstimator, OpticalFlowMotionEstimator
from .processors.compensation import FrameCompensator, OpenCVWarper

# Persistence
from .persistence.stabilization_store import StabilizationStore

# Errors
from .errors import (
    ClipStabError,
    ConfigurationError,
    InvalidJSONError,
    StoreError,
    StoreWriteError,
    StoreReadError,
    MalformedRecordError,
    LookupContractError,
    MissingFrameDataError,
    AnalysisError,
    AnalysisCancelledError,
    InsufficientFramesError,
    ErrorContext,
    create_error_context,
)

# Structured logging
from .utils.logging import LogConfig, configure_logging, get_logger, set_level

__all__ = [
    "__version__",
    "Config",
    "EffectInfo",
    "StabilizerEffect",
    # Data types
    "CorrectiveTransform",
    "FrameStabilization",
    "RelativeTransform",
    "StabilizationRecord",
    "Trajectory",
    # Analysis and rendering
    "ClipAnalyzer",
    "StabilizationConfig",
    "StabilizationResult",
    "analyze_clip",
    "CorrectionGenerator",
    "TrajectorySmoother",
    "accumulate",
    "MotionEstimator",
    "OpticalFlowMotionEstimator",
    "FrameCompensator",
    "OpenCVWarper",
    # Persistence
    "StabilizationStore",
    # Errors
    "ClipStabError",
    "ConfigurationError",
    "InvalidJSONError",
    "StoreError",
    "StoreWriteError",
    "StoreReadError",
    "MalformedRecordError",
    "LookupContractError",
    "MissingFrameDataError",
    "AnalysisError",
    "AnalysisCancelledError",
    "InsufficientFramesError",
    "ErrorContext",
    "create_error_context",
    # Logging
    "LogConfig",
    "configure_logging",
    "get_logger",
    "set_level",
]

"""Core data types shared by the analysis and rendering stages."""

from .types import (
    CorrectiveTransform,
    FrameStabilization,
    RelativeTransform,
    StabilizationRecord,
    Trajectory,
)

__all__ = [
    "CorrectiveTransform",
    "FrameStabilization",
    "RelativeTransform",
    "StabilizationRecord",
    "Trajectory",
]

"""Core data types for clip stabilization.

Defines the per-frame motion values passed between the analysis stages
and the aggregate record persisted for later rendering.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterator, List

import numpy as np

from ..errors import LookupContractError


@dataclass(frozen=True)
class RelativeTransform:
    """Rigid motion mapping one frame onto the next.

    Attributes:
        dx: Horizontal translation in pixels.
        dy: Vertical translation in pixels.
        da: Rotation angle in radians.
    """
    dx: float = 0.0
    dy: float = 0.0
    da: float = 0.0

    def __add__(self, other: "RelativeTransform") -> "RelativeTransform":
        return type(self)(self.dx + other.dx, self.dy + other.dy, self.da + other.da)

    @classmethod
    def from_matrix(cls, matrix: np.ndarray) -> "RelativeTransform":
        """Decompose a 2x3 rigid matrix into translation and angle."""
        return cls(
            dx=float(matrix[0, 2]),
            dy=float(matrix[1, 2]),
            da=float(np.arctan2(matrix[1, 0], matrix[0, 0])),
        )

    def to_matrix(self) -> np.ndarray:
        """Build the 2x3 affine matrix for this transform.

        Returns:
            2x3 float64 array: rotation by ``da`` with ``(dx, dy)`` in the
            last column.
        """
        cos_a = np.cos(self.da)
        sin_a = np.sin(self.da)

        return np.array([
            [cos_a, -sin_a, self.dx],
            [sin_a, cos_a, self.dy]
        ], dtype=np.float64)


@dataclass(frozen=True)
class CorrectiveTransform(RelativeTransform):
    """Adjustment applied at a frame so it follows the smoothed trajectory."""
    pass


@dataclass(frozen=True)
class Trajectory:
    """Absolute camera pose at a frame.

    Attributes:
        x: Accumulated horizontal position.
        y: Accumulated vertical position.
        a: Accumulated rotation in radians.
    """
    x: float = 0.0
    y: float = 0.0
    a: float = 0.0

    def __sub__(self, other: "Trajectory") -> "Trajectory":
        return Trajectory(self.x - other.x, self.y - other.y, self.a - other.a)


@dataclass(frozen=True)
class FrameStabilization:
    """Stored stabilization data for one frame."""
    frame_index: int
    trajectory: Trajectory
    correction: CorrectiveTransform


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


@dataclass
class StabilizationRecord:
    """Persisted result of one analysis run.

    Holds the smoothed trajectory and the corrective transforms keyed by
    frame index, plus the time the record was produced.

    Attributes:
        trajectory: Smoothed trajectory per frame index.
        corrections: Corrective transform per frame index.
        last_updated: UTC timestamp of the analysis run.
    """
    trajectory: Dict[int, Trajectory] = field(default_factory=dict)
    corrections: Dict[int, CorrectiveTransform] = field(default_factory=dict)
    last_updated: datetime = field(default_factory=_utc_now)

    @classmethod
    def from_frames(
        cls,
        frames: List[FrameStabilization],
        last_updated: datetime,
    ) -> "StabilizationRecord":
        """Build a record from per-frame entries."""
        record = cls(last_updated=last_updated)
        for frame in frames:
            record.trajectory[frame.frame_index] = frame.trajectory
            record.corrections[frame.frame_index] = frame.correction
        return record

    def __len__(self) -> int:
        return len(self.corrections)

    def __contains__(self, frame_index: object) -> bool:
        return frame_index in self.corrections

    def frame_indices(self) -> List[int]:
        """Frame indices in ascending order."""
        return sorted(self.corrections)

    def frames(self) -> Iterator[FrameStabilization]:
        """Iterate over per-frame entries ordered by frame index.

        Raises:
            LookupContractError: If the trajectory table lacks an entry
                for a frame that has a correction.
        """
        for index in self.frame_indices():
            if index not in self.trajectory:
                raise LookupContractError(index, table="trajectory")
            yield FrameStabilization(index, self.trajectory[index], self.corrections[index])

    def correction_for(self, frame_index: int) -> CorrectiveTransform:
        """Return the stored correction for a frame.

        Raises:
            LookupContractError: If the frame was never analyzed.
        """
        try:
            return self.corrections[frame_index]
        except KeyError:
            raise LookupContractError(frame_index, table="corrections") from None

    def is_consistent(self) -> bool:
        """True when both tables share a key set contiguous from 0."""
        keys = set(self.corrections)
        return keys == set(self.trajectory) and keys == set(range(len(keys)))

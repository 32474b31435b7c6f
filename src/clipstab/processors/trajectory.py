"""Trajectory math for clip stabilization.

The analysis pass reduces a clip to one rigid relative transform per
frame. This module turns that sequence into stabilization data:

  1) accumulate the relative transforms into a camera trajectory
  2) smooth the trajectory with a centered moving average
  3) derive, per frame, the relative transform that lands the raw
     trajectory on the smoothed one

All functions are pure; none of them touch images.

Example:
    >>> transforms = [RelativeTransform(), RelativeTransform(dx=2.0)]
    >>> trajectory = accumulate(transforms)
    >>> smoothed = TrajectorySmoother(window=1).smooth(trajectory)
    >>> corrections = CorrectionGenerator().generate(transforms, smoothed)
"""

from typing import Dict, List, Mapping, Sequence

import numpy as np

from ..core.types import CorrectiveTransform, RelativeTransform, Trajectory
from ..errors import ConfigurationError, LookupContractError

DEFAULT_SMOOTHING_WINDOW = 30


def accumulate(relative_transforms: Sequence[RelativeTransform]) -> List[Trajectory]:
    """Integrate relative transforms into an absolute camera trajectory.

    Args:
        relative_transforms: Frame-to-frame transforms in frame order.

    Returns:
        One Trajectory per input transform, in the same order.
    """
    x = 0.0
    y = 0.0
    a = 0.0

    trajectory: List[Trajectory] = []
    for transform in relative_transforms:
        x += transform.dx
        y += transform.dy
        a += transform.da
        trajectory.append(Trajectory(x, y, a))

    return trajectory


def validate_window(window: int) -> int:
    """Check a smoothing window and return it as an int.

    Raises:
        ConfigurationError: If the window is not a non-negative integer.
    """
    if isinstance(window, bool) or not isinstance(window, (int, np.integer)):
        raise ConfigurationError(f"smoothing window must be an integer, got {window!r}")
    if window < 0:
        raise ConfigurationError(f"smoothing window must be non-negative, got {window}")
    return int(window)


class TrajectorySmoother:
    """Centered moving average over a camera trajectory.

    For frame ``i`` the smoothed pose is the mean of every sample in
    ``[i - window, i + window]`` that exists. Near the ends of the clip
    fewer samples are in range and the divisor shrinks with them; the
    sequence is neither padded nor reflected.

    Attributes:
        window: Half-width of the averaging range in frames. 0 returns
            the trajectory unchanged.
    """

    def __init__(self, window: int = DEFAULT_SMOOTHING_WINDOW) -> None:
        self.window = validate_window(window)

    def smooth(self, trajectory: Sequence[Trajectory]) -> Dict[int, Trajectory]:
        """Smooth a trajectory.

        Args:
            trajectory: Camera poses in frame order.

        Returns:
            Mapping of frame index to smoothed pose.
        """
        n_frames = len(trajectory)
        if n_frames == 0:
            return {}

        poses = np.array([(t.x, t.y, t.a) for t in trajectory], dtype=np.float64)

        smoothed: Dict[int, Trajectory] = {}
        for i in range(n_frames):
            start = max(0, i - self.window)
            end = min(n_frames, i + self.window + 1)
            count = end - start

            mean = poses[start:end].sum(axis=0) / count
            smoothed[i] = Trajectory(float(mean[0]), float(mean[1]), float(mean[2]))

        return smoothed


class CorrectionGenerator:
    """Derive per-frame corrective transforms from a smoothed trajectory.

    Walks the same running sum as :func:`accumulate` and, at frame ``i``,
    adds the gap between the smoothed pose and the raw pose to that
    frame's relative transform:

        correction[i] = relative[i] + (smoothed[i] - raw[i])

    The result is still frame-to-frame motion, which is what the frame
    compensator applies at render time.
    """

    def generate(
        self,
        relative_transforms: Sequence[RelativeTransform],
        smoothed: Mapping[int, Trajectory],
    ) -> Dict[int, CorrectiveTransform]:
        """Compute the corrective transform for every frame.

        Args:
            relative_transforms: Frame-to-frame transforms in frame order.
            smoothed: Smoothed pose per frame index.

        Returns:
            Mapping of frame index to corrective transform.

        Raises:
            LookupContractError: If ``smoothed`` lacks an entry for any frame.
        """
        x = 0.0
        y = 0.0
        a = 0.0

        corrections: Dict[int, CorrectiveTransform] = {}
        for i, transform in enumerate(relative_transforms):
            x += transform.dx
            y += transform.dy
            a += transform.da

            if i not in smoothed:
                raise LookupContractError(i, table="smoothed trajectory")
            target = smoothed[i]

            corrections[i] = CorrectiveTransform(
                dx=transform.dx + (target.x - x),
                dy=transform.dy + (target.y - y),
                da=transform.da + (target.a - a),
            )

        return corrections

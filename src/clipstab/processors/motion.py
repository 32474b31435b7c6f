"""Frame-to-frame camera motion estimation.

The trajectory math only needs one rigid transform per consecutive frame
pair. Anything that can produce those implements :class:`MotionEstimator`;
:class:`OpticalFlowMotionEstimator` is the OpenCV implementation
(Shi-Tomasi corners tracked with pyramidal Lucas-Kanade flow, then a
RANSAC rigid fit).

Estimators signal an unreliable pair by returning ``None``. The caller
keeps an :class:`EstimationState` per clip and :func:`track_frame` reuses
the last good transform for such pairs, so the trajectory never has a
gap.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, runtime_checkable

import cv2
import numpy as np

from ..core.types import RelativeTransform

logger = logging.getLogger(__name__)


@runtime_checkable
class MotionEstimator(Protocol):
    """Estimates rigid motion between two consecutive grayscale frames."""

    def estimate(
        self,
        previous_gray: np.ndarray,
        current_gray: np.ndarray,
    ) -> Optional[RelativeTransform]:
        """Return the transform mapping ``previous_gray`` onto
        ``current_gray``, or None if no reliable transform exists."""
        ...


class OpticalFlowMotionEstimator:
    """Optical-flow based rigid motion estimator.

    Attributes:
        feature_params: Parameters for ``cv2.goodFeaturesToTrack``.
        lk_params: Parameters for ``cv2.calcOpticalFlowPyrLK``.
        ransac_threshold: Reprojection threshold for the rigid fit.
        min_points: Minimum tracked points required for a fit.
    """

    def __init__(
        self,
        max_corners: int = 200,
        quality_level: float = 0.01,
        min_distance: int = 30,
        block_size: int = 3,
        ransac_threshold: float = 3.0,
        min_points: int = 3,
    ) -> None:
        """Initialize the estimator.

        Args:
            max_corners: Maximum number of corners for feature detection.
            quality_level: Quality level for corner detection.
            min_distance: Minimum distance between corners.
            block_size: Block size for corner detection.
            ransac_threshold: RANSAC reprojection threshold in pixels.
            min_points: Minimum number of tracked points for a fit.
        """
        self.feature_params = {
            "maxCorners": max_corners,
            "qualityLevel": quality_level,
            "minDistance": min_distance,
            "blockSize": block_size,
        }

        self.lk_params = {
            "winSize": (15, 15),
            "maxLevel": 2,
            "criteria": (cv2.TERM_CRITERIA_EPS | cv2.TERM_CRITERIA_COUNT, 10, 0.03),
        }

        self.ransac_threshold = ransac_threshold
        self.min_points = max(2, min_points)

    def estimate(
        self,
        previous_gray: np.ndarray,
        current_gray: np.ndarray,
    ) -> Optional[RelativeTransform]:
        """Estimate the rigid transform between two grayscale frames.

        Args:
            previous_gray: Previous frame (grayscale).
            current_gray: Current frame (grayscale).

        Returns:
            RelativeTransform, or None when too few features could be
            tracked or the fit failed.
        """
        prev_pts = cv2.goodFeaturesToTrack(previous_gray, **self.feature_params)
        if prev_pts is None or len(prev_pts) < self.min_points:
            return None

        curr_pts, status, _ = cv2.calcOpticalFlowPyrLK(
            previous_gray, current_gray, prev_pts, None, **self.lk_params
        )
        if curr_pts is None or status is None:
            return None

        # Remove untracked features
        valid_idx = status.flatten() == 1
        if np.sum(valid_idx) < self.min_points:
            return None

        prev_good = prev_pts[valid_idx]
        curr_good = curr_pts[valid_idx]

        # Translation + rotation only; the uniform scale term is dropped
        try:
            transform, _inliers = cv2.estimateAffinePartial2D(
                prev_good, curr_good,
                method=cv2.RANSAC,
                ransacReprojThreshold=self.ransac_threshold,
            )
        except cv2.error as e:
            logger.debug(f"Transform estimation failed: {e}")
            return None

        if transform is None or not np.isfinite(transform).all():
            return None

        return RelativeTransform.from_matrix(transform)


@dataclass
class EstimationState:
    """Mutable per-clip state of the motion tracking pass.

    Attributes:
        previous_gray: Last grayscale frame seen, None before the first.
        last_transform: Last transform successfully estimated.
        transforms: Relative transform per frame pair, in order.
        gaps: Number of pairs where the last transform was reused.
        frames_seen: Number of frames passed to :func:`track_frame`.
    """
    previous_gray: Optional[np.ndarray] = None
    last_transform: RelativeTransform = RelativeTransform()
    transforms: List[RelativeTransform] = field(default_factory=list)
    gaps: int = 0
    frames_seen: int = 0


def track_frame(
    state: EstimationState,
    gray: np.ndarray,
    estimator: MotionEstimator,
) -> Optional[RelativeTransform]:
    """Feed the next grayscale frame of a clip to the estimator.

    The first frame only seeds ``state``. For every later frame the
    transform from the previous frame is estimated and appended to
    ``state.transforms``; if the estimator returns None the last good
    transform is reused (a zero transform if none exists yet).

    Args:
        state: Tracking state for the clip being analyzed.
        gray: Current frame, grayscale.
        estimator: Motion estimator to use.

    Returns:
        The transform recorded for this frame, or None for the first
        frame.
    """
    frame_number = state.frames_seen
    state.frames_seen += 1

    if state.previous_gray is None:
        state.previous_gray = gray
        return None

    transform = estimator.estimate(state.previous_gray, gray)
    if transform is None:
        transform = state.last_transform
        state.gaps += 1
        logger.debug(f"Frame {frame_number}: no reliable motion, reusing last transform")

    state.last_transform = transform
    state.transforms.append(transform)
    state.previous_gray = gray

    return transform

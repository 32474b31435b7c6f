"""Render-time frame compensation.

Turns a stored corrective transform into a 2x3 affine matrix, warps the
frame with it, then zooms in slightly around the image center so the
empty borders exposed by the first warp are pushed out of view.

Warping itself goes through the :class:`Warper` capability so the matrix
math can be exercised without OpenCV; :class:`OpenCVWarper` is the
default implementation.
"""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, Tuple, runtime_checkable

import cv2
import numpy as np

from ..core.types import CorrectiveTransform
from ..errors import ConfigurationError, MissingFrameDataError, create_error_context

logger = logging.getLogger(__name__)

DEFAULT_ZOOM = 1.04

BORDER_MODES = {
    "constant": cv2.BORDER_CONSTANT,
    "replicate": cv2.BORDER_REPLICATE,
    "reflect": cv2.BORDER_REFLECT_101,
    "wrap": cv2.BORDER_WRAP,
}

INTERPOLATIONS = {
    "nearest": cv2.INTER_NEAREST,
    "linear": cv2.INTER_LINEAR,
    "cubic": cv2.INTER_CUBIC,
    "area": cv2.INTER_AREA,
}


@runtime_checkable
class Warper(Protocol):
    """Applies a 2x3 affine matrix to an image buffer."""

    def warp_affine(
        self,
        image: np.ndarray,
        matrix: np.ndarray,
        output_size: Tuple[int, int],
    ) -> np.ndarray:
        """Warp ``image`` by ``matrix`` into an image of
        ``output_size`` (width, height)."""
        ...


@dataclass(frozen=True)
class OpenCVWarper:
    """Warper backed by ``cv2.warpAffine``.

    Attributes:
        border_mode: How exposed pixels are filled ('constant',
            'replicate', 'reflect', 'wrap').
        interpolation: Resampling method ('nearest', 'linear', 'cubic',
            'area').
        border_value: Fill value used with the 'constant' border mode.
    """
    border_mode: str = "constant"
    interpolation: str = "linear"
    border_value: Tuple[int, int, int] = (0, 0, 0)

    def __post_init__(self) -> None:
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

    def warp_affine(
        self,
        image: np.ndarray,
        matrix: np.ndarray,
        output_size: Tuple[int, int],
    ) -> np.ndarray:
        return cv2.warpAffine(
            image,
            matrix.astype(np.float64, copy=False),
            output_size,
            flags=INTERPOLATIONS[self.interpolation],
            borderMode=BORDER_MODES[self.border_mode],
            borderValue=self.border_value,
        )


def build_correction_matrix(correction: CorrectiveTransform) -> np.ndarray:
    """Build the 2x3 affine matrix for a corrective transform.

        [ cos(da)  -sin(da)  dx ]
        [ sin(da)   cos(da)  dy ]
    """
    return correction.to_matrix()


def build_zoom_matrix(width: int, height: int, zoom: float = DEFAULT_ZOOM) -> np.ndarray:
    """Build a 2x3 matrix scaling by ``zoom`` about the image center.

    Equivalent to ``cv2.getRotationMatrix2D(center, 0, zoom)`` with the
    center at integer half width and height.
    """
    cx = float(width // 2)
    cy = float(height // 2)

    return np.array([
        [zoom, 0.0, (1.0 - zoom) * cx],
        [0.0, zoom, (1.0 - zoom) * cy]
    ], dtype=np.float64)


class FrameCompensator:
    """Applies stored corrective transforms to frames.

    The compensator holds no per-frame state; once its correction table
    is loaded it may be called concurrently for different frames as
    long as the table is not modified.

    Attributes:
        warper: Warp implementation.
        zoom: Scale factor applied after the correction warp.

    Example:
        >>> compensator = FrameCompensator()
        >>> stable = compensator.compensate(frame, 12, store.corrections)
    """

    def __init__(
        self,
        warper: Optional[Warper] = None,
        zoom: float = DEFAULT_ZOOM,
    ) -> None:
        if zoom <= 0:
            raise ConfigurationError(f"zoom must be positive, got {zoom}")
        self.warper = warper or OpenCVWarper()
        self.zoom = zoom

    def compensate(
        self,
        image: np.ndarray,
        frame_index: int,
        correction_table: Mapping[int, CorrectiveTransform],
    ) -> np.ndarray:
        """Stabilize one frame.

        Args:
            image: Frame buffer (H x W or H x W x C).
            frame_index: Frame number of ``image``.
            correction_table: Corrective transform per frame index.

        Returns:
            Corrected frame with the same dimensions as ``image``.

        Raises:
            MissingFrameDataError: If ``frame_index`` has no correction.
        """
        if frame_index not in correction_table:
            raise MissingFrameDataError(
                frame_index,
                table="corrections",
                context=create_error_context(
                    "render", "compensate", frame_number=frame_index,
                    available_frames=len(correction_table),
                ),
            )
        correction = correction_table[frame_index]

        return self.apply(image, correction)

    def apply(self, image: np.ndarray, correction: CorrectiveTransform) -> np.ndarray:
        """Warp ``image`` by ``correction`` and apply the border zoom."""
        height, width = image.shape[:2]
        size = (width, height)

        stabilized = self.warper.warp_affine(image, build_correction_matrix(correction), size)

        # Scale up the image to hide the exposed borders
        return self.warper.warp_affine(stabilized, build_zoom_matrix(width, height, self.zoom), size)

"""Shared pytest fixtures for clipstab tests."""
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import cv2
import numpy as np
import pytest

from clipstab.core.types import (
    CorrectiveTransform,
    RelativeTransform,
    StabilizationRecord,
    Trajectory,
)
from clipstab.utils.logging import ROOT_LOGGER


# ============================================================================
# Synthetic frames
# ============================================================================

def make_textured_frame(width: int = 160, height: int = 120, seed: int = 0) -> np.ndarray:
    """Create a BGR frame with enough texture for corner tracking."""
    rng = np.random.default_rng(seed)
    frame = np.zeros((height, width, 3), dtype=np.uint8)

    for _ in range(25):
        x, y = int(rng.integers(0, width - 20)), int(rng.integers(0, height - 20))
        w, h = int(rng.integers(6, 20)), int(rng.integers(6, 20))
        color = tuple(int(c) for c in rng.integers(60, 255, size=3))
        cv2.rectangle(frame, (x, y), (x + w, y + h), color, -1)

    return frame


def shift_frame(frame: np.ndarray, dx: float, dy: float) -> np.ndarray:
    """Translate a frame by (dx, dy) pixels."""
    height, width = frame.shape[:2]
    matrix = np.array([[1.0, 0.0, dx], [0.0, 1.0, dy]], dtype=np.float64)
    return cv2.warpAffine(frame, matrix, (width, height))


class FakeMotionEstimator:
    """Motion estimator replaying a fixed list of results.

    ``None`` entries simulate frame pairs where estimation failed.
    """

    def __init__(self, results: List[Optional[RelativeTransform]]) -> None:
        self.results = list(results)
        self.calls = 0

    def estimate(self, previous_gray, current_gray):
        result = self.results[self.calls]
        self.calls += 1
        return result


class RecordingWarper:
    """Warper that records the matrices it was given and returns the input."""

    def __init__(self) -> None:
        self.calls = []

    def warp_affine(self, image, matrix, output_size):
        self.calls.append((np.array(matrix, copy=True), output_size))
        return image


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def textured_frame() -> np.ndarray:
    """A 160x120 BGR frame with trackable corners."""
    return make_textured_frame()


@pytest.fixture
def shaky_frames() -> List[np.ndarray]:
    """Ten frames of the same scene with small horizontal jitter."""
    base = make_textured_frame()
    offsets = [0.0, 2.0, -1.0, 3.0, 0.0, 2.0, -2.0, 1.0, 0.0, 2.0]
    return [shift_frame(base, dx, 0.0) for dx in offsets]


@pytest.fixture
def sample_record() -> StabilizationRecord:
    """A five-frame record with distinct values per frame."""
    record = StabilizationRecord(
        last_updated=datetime(2024, 3, 1, 12, 30, 0, tzinfo=timezone.utc)
    )
    for i in range(5):
        record.trajectory[i] = Trajectory(x=i * 1.5, y=-i * 0.25, a=i * 0.01)
        record.corrections[i] = CorrectiveTransform(dx=0.5 * i, dy=-0.125 * i, da=0.002 * i)
    return record


@pytest.fixture
def stab_file(tmp_path, sample_record) -> Path:
    """A stabilization data file written from ``sample_record``."""
    from clipstab.persistence.stabilization_store import StabilizationStore

    path = tmp_path / "clip.stab"
    assert StabilizationStore().save(sample_record, path)
    return path


@pytest.fixture(autouse=True)
def reset_clipstab_logging():
    """Undo configure_logging() so caplog keeps seeing clipstab records."""
    yield
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True

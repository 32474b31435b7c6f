"""Tests for frame-to-frame motion estimation."""

import logging

import cv2
import numpy as np
import pytest

from clipstab.core.types import RelativeTransform
from clipstab.processors.motion import (
    EstimationState,
    MotionEstimator,
    OpticalFlowMotionEstimator,
    track_frame,
)

from conftest import FakeMotionEstimator, make_textured_frame, shift_frame


def _gray(frame):
    return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)


class TestOpticalFlowMotionEstimator:
    """Tests for OpticalFlowMotionEstimator."""

    def test_is_motion_estimator(self):
        """Test the estimator satisfies the MotionEstimator protocol."""
        assert isinstance(OpticalFlowMotionEstimator(), MotionEstimator)

    def test_parameters(self):
        """Test feature detection parameters are stored."""
        estimator = OpticalFlowMotionEstimator(max_corners=50, quality_level=0.05, min_distance=10)
        assert estimator.feature_params["maxCorners"] == 50
        assert estimator.feature_params["qualityLevel"] == 0.05
        assert estimator.feature_params["minDistance"] == 10

    def test_static_scene(self, textured_frame):
        """Test identical frames give a near-zero transform."""
        gray = _gray(textured_frame)
        transform = OpticalFlowMotionEstimator().estimate(gray, gray)

        assert transform is not None
        assert transform.dx == pytest.approx(0.0, abs=0.1)
        assert transform.dy == pytest.approx(0.0, abs=0.1)
        assert transform.da == pytest.approx(0.0, abs=0.01)

    def test_translation(self):
        """Test a pure shift is recovered."""
        base = make_textured_frame(width=200, height=160, seed=3)
        moved = shift_frame(base, 4.0, -3.0)

        transform = OpticalFlowMotionEstimator().estimate(_gray(base), _gray(moved))

        assert transform is not None
        assert transform.dx == pytest.approx(4.0, abs=0.5)
        assert transform.dy == pytest.approx(-3.0, abs=0.5)
        assert transform.da == pytest.approx(0.0, abs=0.02)

    def test_featureless_frame(self):
        """Test a flat frame yields no transform."""
        flat = np.full((120, 160), 90, dtype=np.uint8)
        assert OpticalFlowMotionEstimator().estimate(flat, flat) is None


class TestTrackFrame:
    """Tests for track_frame and EstimationState."""

    def test_initial_state(self):
        """Test a fresh state."""
        state = EstimationState()
        assert state.previous_gray is None
        assert state.last_transform == RelativeTransform()
        assert state.transforms == []
        assert state.gaps == 0
        assert state.frames_seen == 0

    def test_states_do_not_share_lists(self):
        """Test each state owns its transform list."""
        first, second = EstimationState(), EstimationState()
        first.transforms.append(RelativeTransform(1.0))
        assert second.transforms == []

    def test_first_frame_seeds(self):
        """Test the first frame only records the previous image."""
        estimator = FakeMotionEstimator([])
        state = EstimationState()
        frame = np.zeros((4, 4), dtype=np.uint8)

        assert track_frame(state, frame, estimator) is None
        assert state.previous_gray is frame
        assert state.frames_seen == 1
        assert state.transforms == []
        assert estimator.calls == 0

    def test_records_estimates(self):
        """Test estimates are appended in order."""
        results = [RelativeTransform(1.0, 0.0, 0.0), RelativeTransform(0.0, 2.0, 0.1)]
        estimator = FakeMotionEstimator(results)
        state = EstimationState()
        frames = [np.full((4, 4), i, dtype=np.uint8) for i in range(3)]

        for frame in frames:
            track_frame(state, frame, estimator)

        assert state.transforms == results
        assert state.last_transform == results[-1]
        assert state.previous_gray is frames[-1]
        assert state.frames_seen == 3
        assert state.gaps == 0

    def test_failure_reuses_last_transform(self, caplog):
        """Test a failed estimate repeats the last good transform."""
        good = RelativeTransform(1.5, -0.5, 0.02)
        estimator = FakeMotionEstimator([good, None, None, RelativeTransform(3.0)])
        state = EstimationState()

        with caplog.at_level(logging.DEBUG, logger="clipstab"):
            for i in range(5):
                track_frame(state, np.zeros((4, 4), dtype=np.uint8), estimator)

        assert state.transforms == [good, good, good, RelativeTransform(3.0)]
        assert state.gaps == 2
        assert "reusing last transform" in caplog.text

    def test_failure_before_any_success(self):
        """Test a failure on the first pair reuses the zero transform."""
        estimator = FakeMotionEstimator([None, RelativeTransform(2.0)])
        state = EstimationState()

        for _ in range(3):
            track_frame(state, np.zeros((4, 4), dtype=np.uint8), estimator)

        assert state.transforms == [RelativeTransform(), RelativeTransform(2.0)]
        assert state.gaps == 1

    def test_independent_states(self):
        """Test separate clips keep separate fallback transforms."""
        estimator_a = FakeMotionEstimator([RelativeTransform(5.0), None])
        estimator_b = FakeMotionEstimator([None])
        state_a, state_b = EstimationState(), EstimationState()
        frame = np.zeros((4, 4), dtype=np.uint8)

        for _ in range(3):
            track_frame(state_a, frame, estimator_a)
        for _ in range(2):
            track_frame(state_b, frame, estimator_b)

        assert state_a.transforms == [RelativeTransform(5.0), RelativeTransform(5.0)]
        assert state_b.transforms == [RelativeTransform()]


# Run tests if executed directly
if __name__ == "__main__":
    pytest.main([__file__, "-v"])

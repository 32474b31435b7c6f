"""Tests for trajectory accumulation, smoothing and corrections."""

import numpy as np
import pytest

from clipstab.core.types import CorrectiveTransform, RelativeTransform, Trajectory
from clipstab.errors import ConfigurationError, LookupContractError
from clipstab.processors.trajectory import (
    DEFAULT_SMOOTHING_WINDOW,
    CorrectionGenerator,
    TrajectorySmoother,
    accumulate,
    validate_window,
)


def _relative(*dxs):
    return [RelativeTransform(dx=dx) for dx in dxs]


class TestAccumulate:
    """Tests for accumulate()."""

    def test_empty(self):
        """Test accumulating no transforms."""
        assert accumulate([]) == []

    def test_running_sum(self):
        """Test each pose is the sum of transforms up to that frame."""
        transforms = [
            RelativeTransform(0.0, 0.0, 0.0),
            RelativeTransform(1.0, -2.0, 0.1),
            RelativeTransform(3.0, 0.5, -0.05),
        ]
        trajectory = accumulate(transforms)

        assert len(trajectory) == 3
        assert trajectory[0] == Trajectory(0.0, 0.0, 0.0)
        assert trajectory[1] == Trajectory(1.0, -2.0, 0.1)
        assert trajectory[2].x == pytest.approx(4.0)
        assert trajectory[2].y == pytest.approx(-1.5)
        assert trajectory[2].a == pytest.approx(0.05)

    def test_nonzero_first_transform(self):
        """Test a nonzero first transform is included in the trajectory."""
        trajectory = accumulate([RelativeTransform(5.0, 1.0, 0.2)])
        assert trajectory == [Trajectory(5.0, 1.0, 0.2)]


class TestValidateWindow:
    """Tests for smoothing window validation."""

    def test_valid(self):
        """Test valid windows are returned as ints."""
        assert validate_window(0) == 0
        assert validate_window(30) == 30
        assert isinstance(validate_window(np.int64(4)), int)

    def test_negative(self):
        """Test negative window is rejected."""
        with pytest.raises(ConfigurationError, match="non-negative"):
            validate_window(-1)

    @pytest.mark.parametrize("window", [1.5, "3", None, True])
    def test_non_integer(self, window):
        """Test non-integer windows are rejected."""
        with pytest.raises(ConfigurationError):
            validate_window(window)


class TestTrajectorySmoother:
    """Tests for TrajectorySmoother."""

    def test_default_window(self):
        """Test default smoothing window."""
        assert TrajectorySmoother().window == DEFAULT_SMOOTHING_WINDOW == 30

    def test_invalid_window(self):
        """Test constructor validates the window."""
        with pytest.raises(ConfigurationError):
            TrajectorySmoother(window=-3)

    def test_empty(self):
        """Test smoothing an empty trajectory."""
        assert TrajectorySmoother(5).smooth([]) == {}

    def test_single_frame(self):
        """Test a single pose is returned unchanged."""
        smoothed = TrajectorySmoother(10).smooth([Trajectory(3.0, -1.0, 0.2)])
        assert smoothed == {0: Trajectory(3.0, -1.0, 0.2)}

    def test_window_zero_is_identity(self):
        """Test window 0 returns the trajectory exactly."""
        trajectory = [Trajectory(0.1 * i, -0.3 * i, 0.07 * i) for i in range(12)]
        smoothed = TrajectorySmoother(0).smooth(trajectory)

        assert list(smoothed.keys()) == list(range(12))
        for i, pose in enumerate(trajectory):
            assert smoothed[i] == pose

    def test_keys_cover_every_frame(self):
        """Test the output has one entry per input pose."""
        trajectory = accumulate(_relative(*range(20)))
        smoothed = TrajectorySmoother(3).smooth(trajectory)
        assert sorted(smoothed) == list(range(20))

    def test_concrete_example(self):
        """Test averaging for a constant 2px pan with window 1."""
        trajectory = accumulate(_relative(0.0, 2.0, 2.0, 2.0))
        assert [t.x for t in trajectory] == [0.0, 2.0, 4.0, 6.0]

        smoothed = TrajectorySmoother(1).smooth(trajectory)

        # Shrinking divisor at both ends
        assert smoothed[0].x == pytest.approx(1.0)
        assert smoothed[1].x == pytest.approx(2.0)
        assert smoothed[2].x == pytest.approx(4.0)
        assert smoothed[3].x == pytest.approx(5.0)

    def test_interior_divisor(self):
        """Test interior frames average 2 * window + 1 samples."""
        smoother = TrajectorySmoother(3)
        trajectory = [Trajectory(float(i == 10), 0.0, 0.0) for i in range(30)]
        smoothed = smoother.smooth(trajectory)
        assert smoothed[10].x == pytest.approx(1.0 / 7)
        assert smoothed[13].x == pytest.approx(1.0 / 7)
        assert smoothed[14].x == 0.0

    def test_edge_divisor_shrinks(self):
        """Test edge frames average only the samples that exist."""
        smoother = TrajectorySmoother(3)
        trajectory = [Trajectory(6.0, 0.0, 0.0)] + [Trajectory() for _ in range(9)]
        smoothed = smoother.smooth(trajectory)
        assert smoothed[0].x == pytest.approx(6.0 / 4)
        assert smoothed[1].x == pytest.approx(6.0 / 5)

        tail = [Trajectory() for _ in range(9)] + [Trajectory(6.0, 0.0, 0.0)]
        assert smoother.smooth(tail)[9].x == pytest.approx(6.0 / 4)

    def test_window_larger_than_clip(self):
        """Test every frame averages the whole clip when the window is huge."""
        trajectory = [Trajectory(float(i), 0.0, 0.0) for i in range(5)]
        smoothed = TrajectorySmoother(100).smooth(trajectory)
        for pose in smoothed.values():
            assert pose.x == pytest.approx(2.0)

    def test_constant_trajectory_unchanged(self):
        """Test a constant trajectory is a fixed point of smoothing."""
        trajectory = [Trajectory(4.0, -2.0, 0.3)] * 15
        smoothed = TrajectorySmoother(4).smooth(trajectory)
        for pose in smoothed.values():
            assert pose.x == pytest.approx(4.0)
            assert pose.y == pytest.approx(-2.0)
            assert pose.a == pytest.approx(0.3)


class TestCorrectionGenerator:
    """Tests for CorrectionGenerator."""

    def test_concrete_example(self):
        """Test corrections for a constant 2px pan with window 1."""
        relative = _relative(0.0, 2.0, 2.0, 2.0)
        smoothed = TrajectorySmoother(1).smooth(accumulate(relative))
        corrections = CorrectionGenerator().generate(relative, smoothed)

        assert corrections[0].dx == pytest.approx(1.0)
        assert corrections[1].dx == pytest.approx(2.0)
        assert corrections[2].dx == pytest.approx(2.0 + (4.0 - 4.0))
        assert corrections[3].dx == pytest.approx(1.0)
        assert all(isinstance(c, CorrectiveTransform) for c in corrections.values())

    def test_correction_law(self):
        """Test correction = relative + (smoothed - raw) on every axis."""
        rng = np.random.default_rng(7)
        relative = [
            RelativeTransform(*map(float, rng.normal(0.0, [3.0, 3.0, 0.02])))
            for _ in range(40)
        ]
        raw = accumulate(relative)
        smoothed = TrajectorySmoother(5).smooth(raw)
        corrections = CorrectionGenerator().generate(relative, smoothed)

        for i, rel in enumerate(relative):
            diff = smoothed[i] - raw[i]
            assert corrections[i].dx == pytest.approx(rel.dx + diff.x)
            assert corrections[i].dy == pytest.approx(rel.dy + diff.y)
            assert corrections[i].da == pytest.approx(rel.da + diff.a)

    def test_window_zero_returns_relative(self):
        """Test corrections equal the relative transforms without smoothing."""
        relative = [RelativeTransform(1.0, -0.5, 0.01), RelativeTransform(-2.0, 0.25, 0.0)]
        smoothed = TrajectorySmoother(0).smooth(accumulate(relative))
        corrections = CorrectionGenerator().generate(relative, smoothed)

        for i, rel in enumerate(relative):
            assert corrections[i].dx == pytest.approx(rel.dx)
            assert corrections[i].dy == pytest.approx(rel.dy)
            assert corrections[i].da == pytest.approx(rel.da)

    def test_empty(self):
        """Test no transforms produce no corrections."""
        assert CorrectionGenerator().generate([], {}) == {}

    def test_missing_smoothed_entry(self):
        """Test a gap in the smoothed table is a lookup contract violation."""
        relative = _relative(0.0, 1.0, 1.0)
        smoothed = TrajectorySmoother(1).smooth(accumulate(relative))
        del smoothed[2]

        with pytest.raises(LookupContractError) as exc_info:
            CorrectionGenerator().generate(relative, smoothed)

        assert exc_info.value.frame_index == 2
        assert exc_info.value.table == "smoothed trajectory"


# Run tests if executed directly
if __name__ == "__main__":
    pytest.main([__file__, "-v"])

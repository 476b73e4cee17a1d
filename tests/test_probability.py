"""Tests for collision probability calculations."""

from __future__ import annotations

import math

import numpy as np
import pytest

from orbwatch.core.probability import (
    PcMethod,
    collision_probability,
    combined_sigma,
    compute_pc_foster,
    format_probability,
    gaussian_overlap_pc,
    probability_color,
)


class TestCombinedSigma:
    def test_root_sum_square(self):
        assert combined_sigma(3.0, 4.0) == pytest.approx(5.0)

    def test_one_zero(self):
        assert combined_sigma(0.0, 2.0) == pytest.approx(2.0)


class TestGaussianOverlap:
    """Test the closed-form overlap model."""

    def test_zero_miss_is_certain(self):
        assert gaussian_overlap_pc(0.0, 1.0) == pytest.approx(1.0)

    def test_one_sigma(self):
        assert gaussian_overlap_pc(1.0, 1.0) == pytest.approx(math.exp(-0.5))

    def test_large_miss_negligible(self):
        assert gaussian_overlap_pc(50.0, 1.0) < 1e-100

    def test_increases_with_uncertainty(self):
        values = [gaussian_overlap_pc(5.0, s) for s in (0.5, 1.0, 2.0, 5.0, 20.0)]
        assert all(b > a for a, b in zip(values, values[1:]))

    def test_decreases_with_distance(self):
        values = [gaussian_overlap_pc(d, 2.0) for d in (0.1, 1.0, 3.0, 10.0)]
        assert all(b < a for a, b in zip(values, values[1:]))

    def test_zero_sigma(self):
        assert gaussian_overlap_pc(0.0, 0.0) == 1.0
        assert gaussian_overlap_pc(0.5, 0.0) == 0.0

    def test_range(self):
        for d in np.linspace(0, 30, 31):
            for s in (0.1, 1.0, 10.0):
                assert 0.0 <= gaussian_overlap_pc(float(d), s) <= 1.0


class TestFosterPc:
    """Test Foster method with isotropic covariance."""

    def test_zero_miss_small_hbr(self):
        # Disk much smaller than sigma: Pc ~ R² / (2 σ²)
        pc = compute_pc_foster(0.0, 1.0, 0.02)
        assert pc == pytest.approx(0.02 ** 2 / 2.0, rel=1e-3)

    def test_large_miss_zero_pc(self):
        assert compute_pc_foster(100.0, 0.1, 0.02) < 1e-10

    def test_pc_increases_with_hbr(self):
        assert compute_pc_foster(0.5, 0.5, 0.05) > compute_pc_foster(0.5, 0.5, 0.01)

    def test_zero_sigma(self):
        assert compute_pc_foster(0.01, 0.0, 0.02) == 1.0
        assert compute_pc_foster(1.0, 0.0, 0.02) == 0.0


class TestCollisionProbability:
    def test_unknown_uncertainty_is_none(self):
        assert collision_probability(1.0, None, 2.0) is None
        assert collision_probability(1.0, 2.0, None) is None

    def test_unknown_is_not_zero(self):
        assert collision_probability(1000.0, None, None) is None
        assert collision_probability(1000.0, 1.0, 1.0) == pytest.approx(0.0)

    def test_default_method(self):
        pc = collision_probability(2.0, 1.0, 1.0)
        assert pc == pytest.approx(gaussian_overlap_pc(2.0, math.sqrt(2.0)))

    def test_foster_method(self):
        pc = collision_probability(0.1, 0.5, 0.5, method=PcMethod.FOSTER_1992, hard_body_radius_m=20.0)
        assert 0.0 < pc < 1e-2

    def test_invalid_method_raises(self):
        class FakeMethod:
            value = "fake"

        with pytest.raises(ValueError):
            collision_probability(1.0, 1.0, 1.0, method=FakeMethod())


class TestFormatProbability:
    def test_none(self):
        assert format_probability(None) == "N/A"

    def test_tiny(self):
        assert format_probability(1e-9) == "<1e-6"

    def test_scientific(self):
        assert format_probability(3.2e-4) == "3.2e-04"

    def test_percent(self):
        assert format_probability(0.25) == "25.0%"


class TestProbabilityColor:
    @pytest.mark.parametrize(
        "pc, expected",
        [
            (None, "#888888"),
            (0.3, "#ff0000"),
            (1e-4, "#ff0000"),
            (5e-5, "#ffaa00"),
            (1e-5, "#ffaa00"),
            (9e-6, "#00cc66"),
            (0.0, "#00cc66"),
        ],
    )
    def test_bands(self, pc, expected):
        assert probability_color(pc) == expected

    def test_tracks_collision_probability(self):
        near = collision_probability(0.5, 1.0, 1.0)
        far = collision_probability(20.0, 1.0, 1.0)
        assert probability_color(near) == "#ff0000"
        assert probability_color(far) == "#00cc66"

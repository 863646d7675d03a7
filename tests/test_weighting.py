import math

import numpy as np
import pytest

from warpfield.weighting import gaussian_weights, weighting


@pytest.mark.parametrize("scale", [0.01, 1.0, 100.0])
def test_weight_is_one_at_zero_distance(scale):
    p = np.array([1.5, -2.0, 0.25])
    assert weighting(p, p, scale) == 1.0


def test_weight_matches_gaussian():
    assert weighting([0, 0, 0], [1, 0, 0], 1.0) == pytest.approx(math.exp(-0.5))
    assert weighting([0, 0, 0], [0, 3, 4], 2.0) == pytest.approx(math.exp(-25.0 / 8.0))


def test_weight_strictly_decreasing_in_distance():
    d = np.linspace(0.0, 3.0, 31)
    w = gaussian_weights(d, 1.0)
    assert np.all(np.diff(w) < 0.0)
    assert np.all((w > 0.0) & (w <= 1.0))


def test_weight_increasing_in_scale():
    scales = np.array([0.5, 1.0, 2.0, 4.0])
    w = [weighting([0, 0, 0], [1, 1, 0], s) for s in scales]
    assert all(a < b for a, b in zip(w, w[1:]))


@pytest.mark.parametrize("scale", [0.0, -1.0])
def test_non_positive_scale_rejected(scale):
    with pytest.raises(ValueError):
        gaussian_weights([1.0], scale)


def test_weighting_requires_3d_points():
    with pytest.raises(ValueError):
        weighting([0.0, 0.0], [1.0, 0.0], 1.0)

import numpy as np
import pytest

from kaggle_reports.ensemble import (
    average_predictions,
    blend_predictions,
    optimize_blend_weights,
    rmse,
)


def test_average_predictions():
    avg = average_predictions([np.array([0.0, 1.0]), np.array([1.0, 1.0])])
    np.testing.assert_allclose(avg, [0.5, 1.0])


def test_average_requires_predictions():
    with pytest.raises(ValueError):
        average_predictions([])


def test_blend_normalizes_weights():
    blended = blend_predictions([np.array([0.0, 2.0]), np.array([4.0, 2.0])], [1, 3])
    np.testing.assert_allclose(blended, [3.0, 2.0])


def test_blend_rejects_bad_weights():
    with pytest.raises(ValueError):
        blend_predictions([np.zeros(2), np.ones(2)], [1.0])
    with pytest.raises(ValueError):
        blend_predictions([np.zeros(2), np.ones(2)], [0.0, 0.0])


def test_optimized_weights_favor_the_accurate_model():
    rng = np.random.default_rng(0)
    y = rng.normal(size=200)
    good = y + rng.normal(scale=0.01, size=200)
    noisy = y + rng.normal(scale=1.0, size=200)

    weights = optimize_blend_weights([good, noisy], y, rmse, ["good", "noisy"])

    assert weights.sum() == pytest.approx(1.0)
    assert (weights >= 0).all()
    assert weights[0] > 0.9

from __future__ import annotations

import numpy as np

from ..model import Model


def gaussian_with_offset_func(x, x0, y0, a, sigma):
    """Gaussian with baseline: y = y0 + a * exp(-0.5 * ((x - x0)/sigma)^2)."""
    return y0 + a * np.exp(-0.5 * ((x - x0) / sigma) ** 2)


def gaussian_with_offset_jac(x, x0, y0, a, sigma):
    u = (x - x0) / sigma
    e = np.exp(-0.5 * u * u)
    return [
        a * e * u / sigma,  # d/dx0
        1.0,  # d/dy0
        e,  # d/da
        a * e * u * u / sigma,  # d/dsigma
    ]


def gaussian_with_offset(*, name: str = "gaussian") -> Model:
    """Return a Gaussian Model with offset.

    Parameters in the model
    -----------------------
    x0   : center position
    y0   : baseline
    a    : amplitude
    sigma: width; the fit may return a negative value, only |sigma| matters

    The full width at half maximum is 2.35482 * |sigma|.
    """
    return Model.from_function(
        gaussian_with_offset_func, gaussian_with_offset_jac, name=name
    )

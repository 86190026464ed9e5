from __future__ import annotations

import numpy as np

from ..model import Model


def exponential_func(x, width, amp, offset):
    """y = amp * exp(x / width) + offset; a negative width gives a decay."""
    return amp * np.exp(x / width) + offset


def exponential_jac(x, width, amp, offset):
    arg = x / width
    ex = np.exp(arg)
    return [-amp * ex * arg / width, ex, 1.0]


def exponential(*, name: str = "exponential") -> Model:
    """Return a single-exponential Model with parameters (width, amp, offset)."""
    return Model.from_function(exponential_func, exponential_jac, name=name)

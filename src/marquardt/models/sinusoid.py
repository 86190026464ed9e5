from __future__ import annotations

import numpy as np

from ..model import Model


def sinusoid_func(x, amplitude, offset, frequency, phase):
    """Module-level sinusoid: offset + amplitude * sin(2π f x + phase)."""
    return offset + amplitude * np.sin(2 * np.pi * frequency * x + phase)


def sinusoid_jac(x, amplitude, offset, frequency, phase):
    arg = 2 * np.pi * frequency * x + phase
    c = amplitude * np.cos(arg)
    return [np.sin(arg), 1.0, 2 * np.pi * x * c, c]


def sinusoid(*, name: str = "sinusoid") -> Model:
    """Return a sinusoid Model.

    LM only finds the local optimum, so the initial frequency must already
    be close; otherwise the fit locks onto an alias.
    """
    return Model.from_function(sinusoid_func, sinusoid_jac, name=name)

"""Exception types raised by fits."""

from __future__ import annotations

from typing import Any, Optional

import numpy as np

__all__ = [
    "FitError",
    "ConvergenceError",
    "SingularMatrixError",
    "ShapeMismatchError",
]


class FitError(Exception):
    """Base class for every error raised while fitting."""


class ConvergenceError(FitError, RuntimeError):
    """Iteration budget exhausted before the chi-square change fell below eps.

    The last accepted state is attached as ``result`` (a FitResult) so callers
    can inspect or recover it. ``result.covariance`` is None when the final
    alpha matrix could not be inverted.
    """

    def __init__(
        self,
        message: str = "iteration did not converge",
        *,
        result: Optional[Any] = None,
        iterations: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.result = result
        self.iterations = iterations


class SingularMatrixError(FitError, np.linalg.LinAlgError):
    """A normal-equation matrix could not be factored or inverted."""


class ShapeMismatchError(FitError, ValueError):
    """Inconsistent dimensions among x, y, sigma, parameters or model output."""

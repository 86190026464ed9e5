"""Dense linear algebra used by the LM engine.

The engine only needs three operations on a small square matrix: an LU
factorisation, a back-substitution against that factorisation, and an
inverse for the covariance estimate. They are delegated to ``scipy.linalg``;
this module adapts its failure modes to SingularMatrixError so a singular
system surfaces as a fit failure instead of a matrix of NaNs or of huge
values.

A matrix counts as numerically singular when its reciprocal condition
number (LAPACK ``gecon``, 1-norm) is below ``m * machine epsilon``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
import warnings

import numpy as np
from scipy import linalg as sla

from .errors import ShapeMismatchError, SingularMatrixError

__all__ = ["LUFactorization", "LinearSolver", "default_solver"]


@dataclass(frozen=True)
class LUFactorization:
    lu: np.ndarray
    piv: np.ndarray
    rcond: float


class LinearSolver:
    """LU-based solver for the damped normal equations."""

    def factorize(self, matrix: Any) -> LUFactorization:
        a = _square(matrix)
        if not np.all(np.isfinite(a)):
            raise SingularMatrixError("Matrix contains non-finite entries.")
        with warnings.catch_warnings():
            # scipy warns (rather than raising) on an exactly zero pivot.
            warnings.simplefilter("ignore", sla.LinAlgWarning)
            lu, piv = sla.lu_factor(a, check_finite=False)
        if np.any(np.diag(lu) == 0.0) or not np.all(np.isfinite(lu)):
            raise SingularMatrixError("Matrix is singular; LU factorisation failed.")

        rcond = _rcond(a, lu)
        limit = a.shape[0] * np.finfo(float).eps
        if not rcond >= limit:
            raise SingularMatrixError(
                f"Matrix is numerically singular (reciprocal condition number "
                f"{rcond:.3g} < {limit:.3g})."
            )
        return LUFactorization(lu=lu, piv=piv, rcond=rcond)

    def solve(self, factorization: LUFactorization, rhs: Any) -> np.ndarray:
        b = np.asarray(rhs, dtype=float)
        m = factorization.lu.shape[0]
        if b.shape[:1] != (m,) or b.ndim > 2:
            raise ShapeMismatchError(f"rhs must have shape ({m},); got {b.shape}.")
        x = sla.lu_solve((factorization.lu, factorization.piv), b, check_finite=False)
        if not np.all(np.isfinite(x)):
            raise SingularMatrixError("Back-substitution produced non-finite values.")
        return x

    def invert(self, matrix: Any) -> np.ndarray:
        """Inverse via the same checked LU factorisation used for solving."""
        factorization = self.factorize(matrix)
        m = factorization.lu.shape[0]
        return self.solve(factorization, np.eye(m))


def _rcond(a: np.ndarray, lu: np.ndarray) -> float:
    (gecon,) = sla.get_lapack_funcs(("gecon",), (lu,))
    rcond, info = gecon(lu, np.linalg.norm(a, 1), norm="1")
    if info != 0:
        raise SingularMatrixError(f"Condition estimate failed (LAPACK info={info}).")
    return float(rcond)


def _square(matrix: Any) -> np.ndarray:
    a = np.asarray(matrix, dtype=float)
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        raise ShapeMismatchError(f"Expected a square matrix; got shape {a.shape}.")
    return a


default_solver = LinearSolver()

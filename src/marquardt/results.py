from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Tuple

import numpy as np

from .util import uncertainty_to_string


@dataclass(frozen=True)
class IterationRecord:
    """One pass of the LM loop.

    chisq is the value at the trial parameters, accepted_chisq the value kept
    after the accept/reject decision, lam the damping after its update and
    params the accepted parameters after the decision.
    """

    iteration: int
    chisq: float
    accepted_chisq: float
    lam: float
    accepted: bool
    params: np.ndarray


@dataclass(frozen=True)
class FitResult:
    """Outcome of one Levenberg-Marquardt fit.

    Unpacks as ``y, params, covariance, iterations``.
    """

    y: np.ndarray
    params: np.ndarray
    covariance: Optional[np.ndarray]
    iterations: int
    chisq: float = float("nan")
    param_names: Optional[Tuple[str, ...]] = None
    history: Tuple[IterationRecord, ...] = ()
    model: Any = field(default=None, repr=False, compare=False)

    def __iter__(self) -> Iterator[Any]:
        return iter((self.y, self.params, self.covariance, self.iterations))

    def __getitem__(self, key):
        """Return a parameter value by name, or a tuple item by position."""
        if isinstance(key, str):
            return float(self.params[self._index(key)])
        return tuple(self)[key]

    def __len__(self) -> int:
        return 4

    def _index(self, name: str) -> int:
        names = self.names
        try:
            return names.index(name)
        except ValueError as e:
            raise KeyError(name) from e

    @property
    def names(self) -> Tuple[str, ...]:
        if self.param_names is not None:
            return tuple(self.param_names)
        return tuple(f"p{i}" for i in range(self.params.shape[0]))

    @property
    def npoints(self) -> int:
        return int(self.y.shape[0])

    @property
    def dof(self) -> int:
        return self.npoints - int(self.params.shape[0])

    @property
    def redchi(self) -> float:
        """Chi-square per degree of freedom (nan when dof == 0)."""
        if self.dof <= 0:
            return float("nan")
        return float(self.chisq) / self.dof

    @property
    def stderr(self) -> Optional[np.ndarray]:
        """Square root of the covariance diagonal."""
        if self.covariance is None:
            return None
        return np.sqrt(np.abs(np.diag(self.covariance)))

    def correlated(self):
        """Return parameters as correlated ``uncertainties`` values.

        Requires the optional ``uncertainties`` package.
        """
        if self.covariance is None:
            raise ValueError("No covariance available for correlated values.")
        import uncertainties

        return uncertainties.correlated_values(
            [float(v) for v in self.params], np.asarray(self.covariance, dtype=float)
        )

    def predict(self, x: Any) -> np.ndarray:
        """Evaluate the fitted model at x."""
        if self.model is None:
            raise ValueError("This FitResult does not carry its model.")
        y, _ = self.model.evaluate(x, self.params)
        return y

    def summary(self, digits: int = 4) -> str:
        """Return a human-readable summary string."""
        name = getattr(self.model, "name", None)
        head = f"FitResult(model={name!r}, iterations={self.iterations})"
        lines = [head, f"  {'chisq':>12s}: {float(self.chisq):.{digits}g}"]
        if self.dof > 0:
            lines.append(f"  {'redchi':>12s}: {self.redchi:.{digits}g}")
        err = self.stderr
        for j, n in enumerate(self.names):
            v = float(self.params[j])
            if err is None:
                lines.append(f"  {n:>12s}: {v:.{digits}g}")
            else:
                lines.append(f"  {n:>12s}: {uncertainty_to_string(v, err[j], 'auto')}")
        return "\n".join(lines)

    def plot(
        self,
        x: Any,
        y: Any = None,
        *,
        sigma: Any = None,
        ax: Optional[Any] = None,
        **kwargs: Any,
    ):
        """Plot the fit (and the data, if given); see ``marquardt.plotting.plot_fit``."""
        from .plotting import plot_fit

        return plot_fit(x=x, y=y, sigma=sigma, result=self, ax=ax, **kwargs)


@dataclass(frozen=True)
class BatchResult:
    """Per-dataset outcomes of a batch fit, in input order.

    ``params`` has shape batch_shape + (m,). ``y`` is stacked to
    batch_shape + (n,) when every dataset has the same length, otherwise it
    is a list. ``covariance`` and ``results`` are object arrays shaped
    batch_shape holding per-item values (None for failed items).

    Iterating yields ``(fitted_y, params)`` pairs.
    """

    batch_shape: Tuple[int, ...]
    y: Any
    params: np.ndarray
    covariance: np.ndarray
    iterations: np.ndarray
    success: np.ndarray
    message: np.ndarray
    results: np.ndarray
    param_names: Optional[Tuple[str, ...]] = None

    @property
    def size(self) -> int:
        return math.prod(self.batch_shape)

    def __len__(self) -> int:
        return self.size

    def _flat(self, name: str) -> list:
        a = getattr(self, name)
        if isinstance(a, list):
            return a
        a = np.asarray(a)
        if self.batch_shape == ():
            return [a.item() if a.dtype == object and a.shape == () else a]
        return list(a.reshape((self.size,) + a.shape[len(self.batch_shape):]))

    def __iter__(self) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        return iter(zip(self._flat("y"), self._flat("params")))

    def __getitem__(self, idx) -> Optional[FitResult]:
        """Return the FitResult for one dataset (None if that fit failed)."""
        if self.batch_shape == ():
            if idx in ((), 0):
                return self._flat("results")[0]
            raise IndexError("Scalar BatchResult only supports index 0.")
        out = self.results[idx]
        if isinstance(out, np.ndarray):
            raise IndexError("Index a single dataset, e.g. result[i] or result[i, j].")
        return out

    @property
    def all_succeeded(self) -> bool:
        return bool(np.all(self.success))

    def summary(self, digits: int = 4) -> str:
        """Return a human-readable table of fitted parameters."""
        lines = [f"BatchResult(batch_shape={self.batch_shape})"]
        params = self._flat("params")
        m = params[0].shape[0] if params else 0
        names = list(self.param_names) if self.param_names else [f"p{j}" for j in range(m)]
        show = min(self.size, 10)

        header = "idx " + " ".join([f"{n:>14s}" for n in names]) + "  iters  ok"
        lines.append(header)
        lines.append("-" * len(header))

        iters = np.asarray(self.iterations).reshape((self.size,))
        ok = np.asarray(self.success).reshape((self.size,))
        for i in range(show):
            row = [f"{i:>3d}"]
            for j in range(m):
                row.append(f"{float(params[i][j]):>14.{digits}g}")
            row.append(f"{int(iters[i]):>6d}")
            row.append("yes" if ok[i] else " no")
            lines.append(" ".join(row))

        if self.size > show:
            lines.append(f"... ({self.size - show} more)")
        return "\n".join(lines)

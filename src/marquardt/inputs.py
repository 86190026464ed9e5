from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

import numpy as np

from .errors import ShapeMismatchError


@dataclass(frozen=True)
class FitData:
    """One measured dataset with Gaussian errors plus plotting labels.

    ``lmfit``/``tlmfit`` take raw arrays; FitData only bundles them so that
    ``Model.fit(data)`` and ``data.plot(result=...)`` need no repetition.
    ``sigma`` is a scalar or per-point standard deviation.
    """

    x: Any
    y: Any
    sigma: Any = 1.0

    x_label: Optional[str] = None
    y_label: Optional[str] = None
    label: Optional[str] = None  # legend entry for the data points

    meta: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def normal(
        *,
        x: Any,
        y: Any,
        sigma: Any = 1.0,
        x_label: Optional[str] = None,
        y_label: Optional[str] = None,
        label: Optional[str] = None,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> "FitData":
        return FitData(x, y, sigma, x_label, y_label, label, dict(meta or {}))

    def with_labels(self, **labels: Optional[str]) -> "FitData":
        """Copy with any of x_label/y_label/label replaced (None keeps the old one)."""
        unknown = set(labels) - {"x_label", "y_label", "label"}
        if unknown:
            raise TypeError(f"Unknown label fields: {sorted(unknown)}")
        return replace(self, **{k: v for k, v in labels.items() if v is not None})

    def with_meta(self, **meta: Any) -> "FitData":
        return replace(self, meta={**self.meta, **meta})

    def append(self, *, x: Any, y: Any, sigma: Optional[Any] = None) -> "FitData":
        """Add measurements to a 1D dataset.

        Without ``sigma`` the new points reuse the current sigma, which must
        then be a scalar.
        """
        old_x, old_y = _as_vector(self.x), _as_vector(self.y)
        new_x, new_y = _as_vector(x), _as_vector(y)
        if old_y.shape != old_x.shape:
            raise ShapeMismatchError("Existing y must match x shape.")
        if new_y.shape != new_x.shape:
            raise ShapeMismatchError("New y must match x shape.")
        if new_x.size == 0:
            return self

        old_s = np.asarray(self.sigma, dtype=float)
        if sigma is None and old_s.ndim != 0:
            raise ValueError("Appending without sigma requires existing sigma to be scalar.")
        new_s = old_s if sigma is None else np.asarray(sigma, dtype=float)

        if old_s.ndim == 0 and new_s.ndim == 0 and float(old_s) == float(new_s):
            out_sigma: Any = float(old_s)
        else:
            out_sigma = np.concatenate(
                [np.broadcast_to(old_s, old_x.shape), np.broadcast_to(new_s, new_x.shape)]
            )
        return replace(
            self,
            x=np.concatenate([old_x, new_x]),
            y=np.concatenate([old_y, new_y]),
            sigma=out_sigma,
        )

    def sorted(self) -> "FitData":
        """Copy ordered by increasing x (1D x only)."""
        x = _as_vector(self.x)
        order = np.argsort(x, kind="stable")
        s = np.asarray(self.sigma, dtype=float)
        return replace(
            self,
            x=x[order],
            y=_as_vector(self.y)[order],
            sigma=self.sigma if s.ndim == 0 else s.reshape((-1,))[order],
        )

    def plot(self, **kwargs: Any):
        """Plot the data as error bars, and the fit if ``result=`` is given."""
        from .plotting import plot_data

        return plot_data(self, **kwargs)


def _as_vector(v: Any) -> np.ndarray:
    return np.asarray(v, dtype=float).reshape((-1,))

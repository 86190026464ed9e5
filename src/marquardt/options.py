from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

__all__ = ["FitOptions", "DEFAULT_MAX_ITER", "DEFAULT_EPS"]

DEFAULT_MAX_ITER = 200
DEFAULT_EPS = 1e-4

# Lower-cased spellings accepted by FitOptions.from_mapping.
_ALIASES = {
    "maxiter": "max_iter",
    "max_iter": "max_iter",
    "eps": "eps",
}


@dataclass(frozen=True)
class FitOptions:
    """Iteration budget and convergence threshold for one fit.

    max_iter:
        Maximum number of iterations (model evaluations) before giving up.
    eps:
        Convergence criterion; success when the normalised change in
        chi-square is no larger than eps.
    """

    max_iter: int = DEFAULT_MAX_ITER
    eps: float = DEFAULT_EPS

    def __post_init__(self) -> None:
        if int(self.max_iter) != self.max_iter or int(self.max_iter) < 1:
            raise ValueError(f"max_iter must be a positive integer; got {self.max_iter!r}.")
        if not float(self.eps) >= 0.0:
            raise ValueError(f"eps must be >= 0; got {self.eps!r}.")
        object.__setattr__(self, "max_iter", int(self.max_iter))
        object.__setattr__(self, "eps", float(self.eps))

    @staticmethod
    def from_mapping(opts: Optional[Mapping[str, Any]]) -> "FitOptions":
        """Build options from a mapping such as ``{"MaxIter": 300, "Eps": 1e-3}``.

        Keys are matched case-insensitively; unknown keys raise ValueError.
        """
        if opts is None:
            return FitOptions()
        if isinstance(opts, FitOptions):
            return opts
        if not isinstance(opts, Mapping):
            raise TypeError("options must be a mapping or FitOptions.")

        kwargs: dict[str, Any] = {}
        for key, value in opts.items():
            field_name = _ALIASES.get(str(key).lower())
            if field_name is None:
                raise ValueError(
                    f"Unknown fit option {key!r}. Available: ('MaxIter', 'Eps')"
                )
            kwargs[field_name] = value
        return FitOptions(**kwargs)

    def merged(
        self, *, max_iter: Optional[int] = None, eps: Optional[float] = None
    ) -> "FitOptions":
        """Return a copy with any non-None overrides applied."""
        changes: dict[str, Any] = {}
        if max_iter is not None:
            changes["max_iter"] = max_iter
        if eps is not None:
            changes["eps"] = eps
        return replace(self, **changes) if changes else self

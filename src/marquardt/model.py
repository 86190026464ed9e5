from __future__ import annotations

from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    runtime_checkable,
)

import numpy as np

from .errors import ShapeMismatchError
from .inputs import FitData
from .util import infer_param_names

Evaluator = Callable[[Any, np.ndarray], Tuple[Any, Any]]


@runtime_checkable
class ModelEvaluator(Protocol):
    """Anything that can produce model values and a Jacobian.

    ``evaluate(x, params)`` must return ``(y, jacobian)`` with ``y`` of shape
    (n,) and ``jacobian`` of shape (n, m), ``jacobian[i, j]`` being the
    derivative of ``y[i]`` with respect to ``params[j]``. It must be a pure
    function of its inputs; fits call it repeatedly and, in threaded batch
    mode, concurrently.
    """

    def evaluate(self, x: Any, params: np.ndarray) -> Tuple[Any, Any]: ...


@dataclass(frozen=True)
class Model:
    """A model function paired with its Jacobian and parameter names."""

    name: str
    evaluator: Evaluator
    param_names: Optional[Tuple[str, ...]] = None

    # ---- constructors ----
    @staticmethod
    def from_function(
        func: Callable[..., Any],
        jacobian: Callable[..., Any],
        *,
        name: Optional[str] = None,
    ) -> "Model":
        """Construct a Model from ``func(x, p1, ...)`` and ``jacobian(x, p1, ...)``.

        Parameter names come from ``func``'s signature. ``jacobian`` returns
        either an (n, m) array or a sequence of m partial derivatives, each
        broadcast against the model output, so a constant derivative can be
        given as a plain number.
        """
        names = infer_param_names(func)

        def evaluate(x: Any, params: np.ndarray) -> Tuple[Any, Any]:
            args = [float(v) for v in params]
            y = np.asarray(func(x, *args), dtype=float)
            dyda = jacobian(x, *args)
            return y, _stack_columns(dyda, y.shape, len(names))

        return Model(
            name=name or getattr(func, "__name__", "model"),
            evaluator=evaluate,
            param_names=names,
        )

    @staticmethod
    def from_evaluator(
        evaluate: Evaluator,
        *,
        param_names: Optional[Sequence[str]] = None,
        name: Optional[str] = None,
    ) -> "Model":
        """Wrap a raw ``evaluate(x, params) -> (y, jacobian)`` callable."""
        names = None if param_names is None else tuple(str(n) for n in param_names)
        if names is not None and len(set(names)) != len(names):
            raise TypeError("Duplicate parameter names.")
        return Model(
            name=name or getattr(evaluate, "__name__", "model"),
            evaluator=evaluate,
            param_names=names,
        )

    @property
    def nparams(self) -> Optional[int]:
        return None if self.param_names is None else len(self.param_names)

    # ---- evaluation ----
    def evaluate(self, x: Any, params: Any) -> Tuple[np.ndarray, np.ndarray]:
        """Return ``(y, jacobian)`` at ``params``, checking output shapes."""
        p = np.asarray(params, dtype=float)
        if p.ndim != 1:
            raise ShapeMismatchError(f"params must be 1D; got shape {p.shape}.")
        if self.param_names is not None and p.shape[0] != len(self.param_names):
            raise ShapeMismatchError(
                f"Model {self.name!r} takes {len(self.param_names)} parameters "
                f"{self.param_names}; got {p.shape[0]}."
            )
        y, jac = self.evaluator(x, p)
        return _check_output(y, jac, p.shape[0], self.name)

    def eval(
        self, x: Any, *, params: Optional[Any] = None, **kwargs: float
    ) -> np.ndarray:
        """Evaluate the model values only.

        Parameters may be given as a vector/mapping via ``params=`` or by
        name as keyword arguments.
        """
        p = self._param_vector(params, kwargs)
        y, _ = self.evaluator(x, p)
        return np.asarray(y, dtype=float)

    def _param_vector(self, params: Optional[Any], kwargs: Mapping[str, float]) -> np.ndarray:
        if params is not None and kwargs:
            raise TypeError("Pass parameters either via params= or as keywords, not both.")
        if isinstance(params, Mapping):
            kwargs, params = params, None
        if params is not None:
            return np.asarray(params, dtype=float).reshape((-1,))
        if self.param_names is None:
            raise TypeError(
                f"Model {self.name!r} has no parameter names; pass params= as a vector."
            )
        missing = [n for n in self.param_names if n not in kwargs]
        if missing:
            raise TypeError(f"Missing parameter values for: {missing}")
        unknown = [k for k in kwargs if k not in self.param_names]
        if unknown:
            raise TypeError(f"Unknown parameters: {unknown}")
        return np.asarray([float(kwargs[n]) for n in self.param_names], dtype=float)

    # ---- fitting ----
    def fit(
        self,
        x: Any,
        y: Any = None,
        sigma: Any = None,
        *,
        p0: Any = None,
        options: Optional[Mapping[str, Any]] = None,
        max_iter: Optional[int] = None,
        eps: Optional[float] = None,
        **kwargs: Any,
    ):
        """Fit a single dataset; see ``marquardt.engine.lmfit``.

        ``p0`` may be a vector or a mapping of parameter name -> value. ``x``
        may be a FitData, in which case y/sigma come from it.
        """
        from .engine import lmfit

        x, y, sigma = _unpack_fitdata(x, y, sigma)
        return lmfit(
            x,
            y,
            1.0 if sigma is None else sigma,
            self,
            self._initial(p0),
            options,
            max_iter=max_iter,
            eps=eps,
            **kwargs,
        )

    def fit_batch(
        self,
        x: Any,
        y: Any = None,
        sigma: Any = None,
        *,
        p0: Any = None,
        **kwargs: Any,
    ):
        """Fit a batch of datasets; see ``marquardt.batch.tlmfit``."""
        from .batch import tlmfit

        x, y, sigma = _unpack_fitdata(x, y, sigma)
        return tlmfit(
            x,
            y,
            1.0 if sigma is None else sigma,
            self,
            self._initial(p0),
            **kwargs,
        )

    def _initial(self, p0: Any) -> Any:
        if p0 is None:
            raise TypeError("fit() requires initial parameters p0=...")
        if isinstance(p0, Mapping):
            return self._param_vector(None, p0)
        return p0


def as_model(model: Any) -> Model:
    """Coerce a Model, ModelEvaluator or plain callable to a Model."""
    if isinstance(model, Model):
        return model
    if isinstance(model, ModelEvaluator):
        return Model.from_evaluator(
            model.evaluate,
            param_names=getattr(model, "param_names", None),
            name=getattr(model, "name", None) or type(model).__name__,
        )
    if callable(model):
        return Model.from_evaluator(model)
    raise TypeError(
        "model must be a Model, an object with evaluate(x, params), "
        "or a callable (x, params) -> (y, jacobian)."
    )


def _stack_columns(dyda: Any, y_shape: Tuple[int, ...], m: int) -> np.ndarray:
    """Turn a Jacobian given as m columns into an (n, m) array."""
    if isinstance(dyda, np.ndarray) and dyda.ndim == 2:
        return np.asarray(dyda, dtype=float)
    cols = list(dyda)
    if len(cols) != m:
        raise ShapeMismatchError(
            f"Jacobian must provide {m} partial derivatives; got {len(cols)}."
        )
    out = np.empty(y_shape + (m,), dtype=float)
    for j, col in enumerate(cols):
        try:
            out[..., j] = np.broadcast_to(np.asarray(col, dtype=float), y_shape)
        except ValueError as e:
            raise ShapeMismatchError(
                f"Jacobian column {j} with shape {np.shape(col)} does not "
                f"broadcast to model output shape {y_shape}."
            ) from e
    return out


def _check_output(y: Any, jac: Any, m: int, name: str) -> Tuple[np.ndarray, np.ndarray]:
    y_arr = np.asarray(y, dtype=float)
    j_arr = np.asarray(jac, dtype=float)
    if y_arr.ndim != 1:
        raise ShapeMismatchError(
            f"Model {name!r} must return 1D y; got shape {y_arr.shape}."
        )
    n = y_arr.shape[0]
    if j_arr.shape != (n, m):
        raise ShapeMismatchError(
            f"Model {name!r} returned a Jacobian of shape {j_arr.shape}; "
            f"expected {(n, m)}."
        )
    return y_arr, j_arr


def _unpack_fitdata(x: Any, y: Any, sigma: Any) -> Tuple[Any, Any, Any]:
    if isinstance(x, FitData):
        if y is not None or sigma is not None:
            raise TypeError("If x is FitData, do not also pass y/sigma.")
        return x.x, x.y, x.sigma
    if y is None:
        raise TypeError("fit() missing required argument: y")
    return x, y, sigma

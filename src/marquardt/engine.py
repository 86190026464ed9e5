"""Levenberg-Marquardt fitting of a user supplied model function.

For a fairly concise overview of the method see Numerical Recipes,
chapter 15 "Modeling of data".

Each iteration after the first solves the damped normal equations

    (alpha + lam * diag(alpha)) @ delta = beta

where ``alpha = J.T @ W @ J`` and ``beta = J.T @ W @ (y - y_model)`` with
``W = diag(1 / sigma**2)``. A step that strictly lowers chi-square is kept
and lam shrinks by 10; otherwise the step is discarded and lam grows by 10.
The fit stops once the change in chi-square relative to chi-square is no
larger than ``eps``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, List, Mapping, Optional, Union

import numpy as np

from .data import Dataset, make_dataset
from .errors import ConvergenceError, ShapeMismatchError, SingularMatrixError
from .linalg import LinearSolver, default_solver
from .model import Model, as_model
from .options import FitOptions
from .results import FitResult, IterationRecord

__all__ = [
    "INITIAL_LAMBDA",
    "FitState",
    "IterationRecord",
    "LMEngine",
    "Snapshot",
    "lmfit",
]

logger = logging.getLogger(__name__)

INITIAL_LAMBDA = 0.001
LAMBDA_DOWN = 0.1
LAMBDA_UP = 10.0


@dataclass(frozen=True)
class Snapshot:
    """Model evaluation and normal equations at one parameter vector."""

    params: np.ndarray
    y: np.ndarray
    chisq: float
    alpha: np.ndarray
    beta: np.ndarray


@dataclass
class FitState:
    """Mutable state of one fit.

    ``accepted`` is the best point found so far; ``trial`` is the most
    recent evaluation, which may have been rejected.
    """

    accepted: Snapshot
    trial: Snapshot
    lam: float = INITIAL_LAMBDA
    iteration: int = 0
    history: List[IterationRecord] = field(default_factory=list)


class LMEngine:
    """Runs the LM iteration for one dataset at a time."""

    def __init__(self, model: Any, solver: Optional[LinearSolver] = None) -> None:
        self.model: Model = as_model(model)
        self.solver = default_solver if solver is None else solver

    def evaluate(self, dataset: Dataset, isig2: np.ndarray, params: np.ndarray) -> Snapshot:
        """Evaluate the model and assemble chi-square, alpha and beta."""
        ym, dyda = self.model.evaluate(dataset.x, params)
        if ym.shape != dataset.y.shape:
            raise ShapeMismatchError(
                f"Model {self.model.name!r} returned {ym.shape[0]} values for "
                f"{dataset.npoints} data points."
            )
        resid = dataset.y - ym
        chisq = np.sum(resid * resid * isig2)
        alpha = dyda.T @ (dyda * isig2[:, None])
        beta = dyda.T @ (resid * isig2)
        return Snapshot(params=params.copy(), y=ym, chisq=chisq, alpha=alpha, beta=beta)

    def step(self, state: FitState) -> np.ndarray:
        """Solve the damped system built from the accepted alpha and beta."""
        damped = state.accepted.alpha.copy()
        diag = np.diag_indices_from(damped)
        damped[diag] = state.accepted.alpha[diag] * (1.0 + state.lam)
        lu = self.solver.factorize(damped)
        return self.solver.solve(lu, state.accepted.beta)

    def fit(
        self,
        x: Any,
        y: Any,
        sigma: Any,
        p0: Any,
        options: Union[FitOptions, Mapping[str, Any], None] = None,
        *,
        max_iter: Optional[int] = None,
        eps: Optional[float] = None,
    ) -> FitResult:
        opts = FitOptions.from_mapping(options).merged(max_iter=max_iter, eps=eps)
        dataset = make_dataset(x, y, sigma)
        params = _initial_params(p0, dataset.npoints, self.model)
        isig2 = 1.0 / (dataset.sigma * dataset.sigma)

        state: Optional[FitState] = None
        ratio = np.float64(np.nan)
        while True:
            if state is not None:
                delta = self.step(state)
                params[:] = state.accepted.params
                params += delta
            trial = self.evaluate(dataset, isig2, params)
            if state is None:
                state = FitState(accepted=trial, trial=trial)
            state.trial = trial

            di = np.abs(trial.chisq - state.accepted.chisq)
            accepted = bool(trial.chisq < state.accepted.chisq)
            if accepted:
                state.lam *= LAMBDA_DOWN
                state.accepted = trial
            else:
                state.lam *= LAMBDA_UP

            # chisq == 0 gives inf/nan here; nan ends the loop as converged.
            ratio = np.float64(di) / np.float64(state.accepted.chisq)
            state.history.append(
                IterationRecord(
                    iteration=state.iteration,
                    chisq=float(trial.chisq),
                    accepted_chisq=float(state.accepted.chisq),
                    lam=float(state.lam),
                    accepted=accepted,
                    params=state.accepted.params.copy(),
                )
            )
            logger.debug(
                "%s iter %d: chisq=%g lam=%g di/chisq=%g%s",
                self.model.name,
                state.iteration,
                trial.chisq,
                state.lam,
                ratio,
                "" if accepted else " (rejected)",
            )
            state.iteration += 1
            if state.iteration > 1 and (
                state.iteration >= opts.max_iter or not ratio > opts.eps
            ):
                break

        if state.iteration >= opts.max_iter and ratio > opts.eps:
            partial = self._result(state, covariance=self._try_invert(state))
            logger.debug(
                "%s did not converge after %d iterations (di/chisq=%g > eps=%g)",
                self.model.name,
                state.iteration,
                ratio,
                opts.eps,
            )
            raise ConvergenceError(
                f"iteration did not converge after {state.iteration} iterations "
                f"(relative chi-square change {float(ratio):.3g} > eps={opts.eps:g})",
                result=partial,
                iterations=state.iteration,
            )

        covariance = self.solver.invert(state.accepted.alpha)
        logger.debug(
            "%s converged in %d iterations, chisq=%g",
            self.model.name,
            state.iteration,
            state.accepted.chisq,
        )
        return self._result(state, covariance=covariance)

    def _try_invert(self, state: FitState) -> Optional[np.ndarray]:
        try:
            return self.solver.invert(state.accepted.alpha)
        except SingularMatrixError:
            return None

    def _result(self, state: FitState, covariance: Optional[np.ndarray]) -> FitResult:
        acc = state.accepted
        return FitResult(
            y=acc.y.copy(),
            params=acc.params.copy(),
            covariance=covariance,
            iterations=state.iteration,
            chisq=float(acc.chisq),
            param_names=self.model.param_names,
            history=tuple(state.history),
            model=self.model,
        )


def lmfit(
    x: Any,
    y: Any,
    sigma: Any,
    model: Any,
    p0: Any,
    options: Union[FitOptions, Mapping[str, Any], None] = None,
    *,
    max_iter: Optional[int] = None,
    eps: Optional[float] = None,
    full_output: bool = True,
    solver: Optional[LinearSolver] = None,
) -> Union[FitResult, np.ndarray]:
    """Levenberg-Marquardt fit of ``model`` to ``(x, y, sigma)``.

    Parameters
    ----------
    x : array-like
        Independent variable, passed to the model unchanged.
    y : array-like, shape (n,)
        Dependent variable.
    sigma : float or array-like, shape (n,)
        Standard deviation of each y; a scalar applies to every point. Must
        be positive (not checked).
    model : Model, ModelEvaluator or callable
        Supplies ``evaluate(x, params) -> (y, jacobian)``.
    p0 : array-like, shape (m,)
        Initial parameters; the caller's array is not modified.
    options : mapping or FitOptions, optional
        ``{"MaxIter": 200, "Eps": 1e-4}`` style options.
    max_iter, eps : optional
        Override the corresponding option.
    full_output : bool
        If False return only the fitted y values.

    Returns
    -------
    FitResult
        Unpacks as ``(y_fit, params, covariance, iterations)``. The
        covariance is the inverse of the final accepted alpha matrix.

    Raises
    ------
    ConvergenceError
        The iteration budget was exhausted; ``.result`` holds the last
        accepted state.
    SingularMatrixError
        A damped system or the final alpha could not be solved/inverted.
    ShapeMismatchError
        Inconsistent input or model output shapes.
    """
    result = LMEngine(model, solver=solver).fit(
        x, y, sigma, p0, options, max_iter=max_iter, eps=eps
    )
    return result if full_output else result.y


def _initial_params(p0: Any, npoints: int, model: Model) -> np.ndarray:
    params = np.array(p0, dtype=float)
    if params.ndim != 1 or params.shape[0] == 0:
        raise ShapeMismatchError(
            f"Initial parameters must be a non-empty 1D vector; got shape {params.shape}."
        )
    m = params.shape[0]
    if model.param_names is not None and m != len(model.param_names):
        raise ShapeMismatchError(
            f"Model {model.name!r} takes {len(model.param_names)} parameters; "
            f"got {m} initial values."
        )
    if npoints < m:
        raise ShapeMismatchError(
            f"Need at least as many data points as parameters; got {npoints} < {m}."
        )
    return params

"""Fit many datasets that share one model.

Each dataset gets its own engine run, with its own damping parameter,
parameter vector and convergence test; only the model and the iteration
budget are shared.
"""

from __future__ import annotations

import concurrent.futures
import logging
from typing import Any, List, Literal, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
from warnings import warn

from .data import Dataset, prepare_datasets, prepare_initial_params
from .engine import LMEngine
from .errors import ConvergenceError
from .linalg import LinearSolver
from .options import DEFAULT_EPS, DEFAULT_MAX_ITER, FitOptions
from .results import BatchResult, FitResult
from .util import unflatten_batch

__all__ = ["BatchFitDriver", "tlmfit"]

logger = logging.getLogger(__name__)

OnError = Literal["raise", "isolate"]
Parallel = Optional[Literal["threads"]]


class BatchFitDriver:
    """Apply the single-fit engine independently across datasets.

    on_error:
        "raise" propagates the exception of the first failing dataset (in
        input order) and leaves the remaining datasets unfitted.
        "isolate" records failures per dataset: ``success`` is False and
        ``message`` holds the error text. A dataset that ran out of
        iterations reports its last accepted state; any other failure
        reports NaN values.
    parallel:
        None fits datasets one after another; "threads" fits them on a
        thread pool. The model must then be safe to call concurrently.
    """

    def __init__(
        self,
        model: Any,
        options: Union[FitOptions, Mapping[str, Any], None] = None,
        *,
        on_error: OnError = "raise",
        parallel: Parallel = None,
        max_workers: Optional[int] = None,
        solver: Optional[LinearSolver] = None,
    ) -> None:
        if on_error not in ("raise", "isolate"):
            raise ValueError(f"on_error must be 'raise' or 'isolate'; got {on_error!r}.")
        if parallel not in (None, "threads"):
            raise ValueError(f"parallel must be None or 'threads'; got {parallel!r}.")
        self.engine = LMEngine(model, solver=solver)
        self.options = FitOptions.from_mapping(options)
        self.on_error = on_error
        self.parallel = parallel
        self.max_workers = max_workers

    def fit(
        self, x: Any, y: Any, sigma: Any, p0: Any, *, strict: bool = False
    ) -> BatchResult:
        datasets, batch_shape = prepare_datasets(x, y, sigma, strict=strict)
        p0s = prepare_initial_params(p0, batch_shape, len(datasets))
        outcomes = self._run_all(datasets, p0s)
        return self._collect(datasets, p0s, outcomes, batch_shape)

    # ---- execution ----
    def _fit_one(self, ds: Dataset, p0: np.ndarray) -> FitResult:
        return self.engine.fit(ds.x, ds.y, ds.sigma, p0, self.options)

    def _run_all(
        self, datasets: Sequence[Dataset], p0s: Sequence[np.ndarray]
    ) -> List[Union[FitResult, Exception]]:
        if self.parallel == "threads" and len(datasets) > 1:
            return self._run_threads(datasets, p0s)

        outcomes: List[Union[FitResult, Exception]] = []
        for i, (ds, p0) in enumerate(zip(datasets, p0s)):
            try:
                outcomes.append(self._fit_one(ds, p0))
            except Exception as e:
                if self.on_error == "raise":
                    raise
                self._log_failure(i, e)
                outcomes.append(e)
        return outcomes

    def _run_threads(
        self, datasets: Sequence[Dataset], p0s: Sequence[np.ndarray]
    ) -> List[Union[FitResult, Exception]]:
        outcomes: List[Union[FitResult, Exception]] = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [pool.submit(self._fit_one, ds, p0) for ds, p0 in zip(datasets, p0s)]
            # Collected in submission order so "raise" reports the first
            # failing dataset by index, not by completion time.
            for i, fut in enumerate(futures):
                try:
                    outcomes.append(fut.result())
                except Exception as e:
                    if self.on_error == "raise":
                        for pending in futures[i + 1:]:
                            pending.cancel()
                        raise
                    self._log_failure(i, e)
                    outcomes.append(e)
        return outcomes

    def _log_failure(self, index: int, exc: Exception) -> None:
        logger.warning("batch item %d failed: %s: %s", index, type(exc).__name__, exc)

    # ---- assembly ----
    def _collect(
        self,
        datasets: Sequence[Dataset],
        p0s: Sequence[np.ndarray],
        outcomes: Sequence[Union[FitResult, Exception]],
        batch_shape: Tuple[int, ...],
    ) -> BatchResult:
        B = len(datasets)
        m = p0s[0].shape[0]

        ys: List[np.ndarray] = []
        params = np.empty((B, m), dtype=float)
        covs = np.empty((B,), dtype=object)
        results = np.empty((B,), dtype=object)
        iters = np.zeros((B,), dtype=int)
        successes = np.zeros((B,), dtype=bool)
        messages = np.empty((B,), dtype=object)
        failed: List[int] = []

        for i, (ds, out) in enumerate(zip(datasets, outcomes)):
            res = out
            if isinstance(out, ConvergenceError) and out.result is not None:
                res = out.result
            if isinstance(res, FitResult):
                ys.append(res.y)
                params[i] = res.params
                covs[i] = res.covariance
                iters[i] = res.iterations
            else:
                ys.append(np.full(ds.y.shape, np.nan))
                params[i] = np.nan
                covs[i] = None
            if isinstance(out, Exception):
                failed.append(i)
                successes[i] = False
                messages[i] = f"{type(out).__name__}: {out}"
                results[i] = None
            else:
                successes[i] = True
                messages[i] = "ok"
                results[i] = out

        if failed:
            warn(
                f"{len(failed)} of {B} fits failed (indices {failed}); "
                "see BatchResult.message.",
                UserWarning,
                stacklevel=3,
            )

        sizes = {yi.shape for yi in ys}
        if len(sizes) == 1:
            y_out: Any = unflatten_batch(np.stack(ys, axis=0), batch_shape)
        else:
            y_out = ys

        return BatchResult(
            batch_shape=tuple(batch_shape),
            y=y_out,
            params=unflatten_batch(params, batch_shape),
            covariance=_unflatten_objects(covs, batch_shape),
            iterations=unflatten_batch(iters, batch_shape),
            success=unflatten_batch(successes, batch_shape),
            message=_unflatten_objects(messages, batch_shape),
            results=_unflatten_objects(results, batch_shape),
            param_names=self.engine.model.param_names,
        )


def tlmfit(
    x: Any,
    y: Any,
    sigma: Any,
    model: Any,
    p0: Any,
    *,
    max_iter: int = DEFAULT_MAX_ITER,
    eps: float = DEFAULT_EPS,
    on_error: OnError = "raise",
    parallel: Parallel = None,
    max_workers: Optional[int] = None,
    strict: bool = False,
    solver: Optional[LinearSolver] = None,
) -> BatchResult:
    """Fit ``model`` independently to every dataset in a batch.

    ``y`` is shaped batch_shape + (n,) against a common ``x``, or ``x`` and
    ``y`` are equal-length lists (ragged batch). ``p0`` is one vector for all
    datasets or one per dataset. Iterating the result yields
    ``(fitted_y, params)`` pairs in input order.
    """
    driver = BatchFitDriver(
        model,
        FitOptions(max_iter=max_iter, eps=eps),
        on_error=on_error,
        parallel=parallel,
        max_workers=max_workers,
        solver=solver,
    )
    return driver.fit(x, y, sigma, p0, strict=strict)


def _unflatten_objects(values: np.ndarray, batch_shape: Tuple[int, ...]) -> np.ndarray:
    out = np.empty(batch_shape, dtype=object)
    flat = out.reshape(-1)
    for i, v in enumerate(values):
        flat[i] = v
    return out

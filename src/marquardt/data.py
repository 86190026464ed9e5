from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Tuple

import numpy as np
from warnings import warn

from .errors import ShapeMismatchError
from .util import flatten_batch


@dataclass(frozen=True)
class Dataset:
    x: Any
    y: np.ndarray  # (n,)
    sigma: np.ndarray  # (n,), scalar sigma already broadcast

    @property
    def npoints(self) -> int:
        return int(self.y.shape[0])


def prepare_datasets(
    x: Any, y: Any, sigma: Any = 1.0, strict: bool = False
) -> Tuple[List[Dataset], Tuple[int, ...]]:
    """Normalize user inputs into a list of per-dataset payloads + batch shape.

    Accepted layouts:
    - 1D y: a single dataset, batch shape ()
    - y shaped batch_shape + (n,) with a common x: one dataset per leading index
    - x and y both lists of equal length: a ragged batch of shape (len(x),)
    - x (or each array of a tuple x) with exactly y's ND shape: one gridded
      dataset, flattened

    sigma may be a scalar, anything broadcastable to y, or (ragged batches)
    a list with one entry per dataset.
    """
    x = _scalars_to_array(x)
    y = _scalars_to_array(y)

    if isinstance(x, list):
        if not isinstance(y, list):
            raise TypeError("Ragged batches require list inputs for both x and y.")
        if len(x) != len(y):
            raise ValueError("Ragged batch requires x and y lists of equal length.")
        if len(y) == 0:
            raise ShapeMismatchError("Ragged batch contains no datasets.")
        sigmas = _ragged_sigmas(sigma, len(y))
        datasets = [make_dataset(xi, yi, si) for xi, yi, si in zip(x, y, sigmas)]
        return datasets, (len(datasets),)

    if isinstance(y, list):
        if len(y) == 0:
            raise ValueError("Empty y list; cannot infer batch.")
        try:
            arr = np.asarray(y, dtype=float)
        except ValueError:
            # ragged y against one shared x
            sigmas = _ragged_sigmas(sigma, len(y))
            datasets = [make_dataset(x, yi, si) for yi, si in zip(y, sigmas)]
            return datasets, (len(datasets),)
        y = arr

    yobs = np.asarray(y, dtype=float)
    if yobs.ndim == 0:
        raise ShapeMismatchError("y must contain at least one data point.")

    if yobs.ndim > 1 and _x_matches_y_shape(x, yobs):
        sarr = _broadcast_sigma(sigma, yobs.shape)
        return [
            make_dataset(_flatten_grid_x(x), yobs.reshape(-1), sarr.reshape(-1))
        ], ()

    if _x_is_nd(x) and yobs.ndim > 1:
        _warn_or_raise(
            strict,
            "ND x with y shape not matching x; treating leading y axes as batch. "
            "If this is a 2D/ND dataset, flatten y (and x) explicitly.",
        )

    if yobs.ndim == 1:
        return [make_dataset(x, yobs, sigma)], ()

    yflat, batch_shape = flatten_batch(yobs)  # (B,N)
    if yflat.shape[0] == 0:
        raise ShapeMismatchError(
            f"y with shape {yobs.shape} contains no datasets; batch axes must be non-empty."
        )
    sflat, _ = flatten_batch(_broadcast_sigma(sigma, yobs.shape))
    datasets = [
        make_dataset(x, yflat[i], sflat[i]) for i in range(yflat.shape[0])
    ]
    return datasets, batch_shape


def prepare_initial_params(
    p0: Any, batch_shape: Tuple[int, ...], nbatch: int
) -> List[np.ndarray]:
    """Return one initial parameter vector per dataset.

    p0 may be a single (m,) vector (copied to every dataset), an array shaped
    batch_shape + (m,) or (B, m), or a list of B vectors.
    """
    if isinstance(p0, (list, tuple)) and p0 and not all(_is_scalar_like(v) for v in p0):
        if len(p0) != nbatch:
            raise ShapeMismatchError(
                f"Got {len(p0)} initial parameter vectors for {nbatch} datasets."
            )
        out = [np.array(v, dtype=float).reshape((-1,)) for v in p0]
        sizes = {v.shape[0] for v in out}
        if len(sizes) != 1:
            raise ShapeMismatchError(
                "All initial parameter vectors must have the same length."
            )
        return out

    arr = np.asarray(p0, dtype=float)
    if arr.ndim == 0:
        arr = arr.reshape((1,))
    if arr.ndim == 1:
        return [arr.copy() for _ in range(nbatch)]

    lead = tuple(arr.shape[:-1])
    if lead != tuple(batch_shape) and lead != (nbatch,):
        raise ShapeMismatchError(
            f"Initial parameters with shape {arr.shape} do not match batch shape "
            f"{tuple(batch_shape)}; expected {tuple(batch_shape)} + (m,) or (m,)."
        )
    flat = arr.reshape((nbatch, arr.shape[-1]))
    return [flat[i].copy() for i in range(nbatch)]


def make_dataset(x: Any, y: Any, sigma: Any) -> Dataset:
    """Build a single Dataset, broadcasting sigma to y."""
    yarr = np.asarray(y, dtype=float)
    if yarr.ndim != 1:
        raise ShapeMismatchError(f"Each dataset's y must be 1D; got shape {yarr.shape}.")
    n = yarr.shape[0]
    xarr = x
    if isinstance(x, list) and _list_all_scalars(x):
        xarr = np.asarray(x, dtype=float)
    if isinstance(xarr, np.ndarray) and xarr.ndim >= 1 and xarr.shape[0] != n:
        raise ShapeMismatchError(
            f"x has {xarr.shape[0]} points but y has {n}."
        )
    if isinstance(xarr, tuple):
        for xi in xarr:
            if isinstance(xi, np.ndarray) and xi.ndim >= 1 and xi.shape[0] != n:
                raise ShapeMismatchError(
                    f"Every x coordinate array must have {n} points."
                )
    return Dataset(x=xarr, y=yarr, sigma=_broadcast_sigma(sigma, (n,)))


def _broadcast_sigma(sigma: Any, shape: Tuple[int, ...]) -> np.ndarray:
    if sigma is None:
        sigma = 1.0
    sarr = np.asarray(sigma, dtype=float)
    try:
        return np.array(np.broadcast_to(sarr, shape), dtype=float)
    except ValueError as e:
        raise ShapeMismatchError(
            f"sigma with shape {sarr.shape} does not broadcast to y shape {shape}."
        ) from e


def _ragged_sigmas(sigma: Any, nbatch: int) -> List[Any]:
    if isinstance(sigma, list):
        if len(sigma) != nbatch:
            raise ShapeMismatchError(
                f"Got {len(sigma)} sigma entries for {nbatch} datasets."
            )
        return list(sigma)
    if sigma is None or np.asarray(sigma).shape == ():
        return [sigma] * nbatch
    raise TypeError(
        "Ragged batches need sigma as a scalar or a list with one entry per dataset."
    )


def _scalars_to_array(v: Any) -> Any:
    if isinstance(v, list) and v and _list_all_scalars(v):
        return np.asarray(v, dtype=float)
    return v


def _warn_or_raise(strict: bool, message: str) -> None:
    """Warn or raise based on strict mode."""
    if strict:
        raise ValueError(message)
    warn(message, UserWarning, stacklevel=3)


def _list_all_scalars(data: List[Any]) -> bool:
    """Return True if every element is scalar-like."""
    return all(_is_scalar_like(v) for v in data)


def _is_scalar_like(v: Any) -> bool:
    """Return True if v is a scalar or 0-d numpy array."""
    if isinstance(v, np.ndarray):
        return v.shape == ()
    return isinstance(v, (int, float, np.number, bool))


def _x_matches_y_shape(x: Any, y: np.ndarray) -> bool:
    """Return True if x shape(s) match y shape exactly."""
    if isinstance(x, (tuple, list)) and x:
        shapes = [np.asarray(xi).shape for xi in x]
        return all(s == y.shape for s in shapes)
    if isinstance(x, np.ndarray):
        return x.shape == y.shape
    return False


def _x_is_nd(x: Any) -> bool:
    """Return True if x contains arrays with ndim > 1."""
    if isinstance(x, np.ndarray):
        return x.ndim > 1
    if isinstance(x, (tuple, list)) and x:
        return any(np.asarray(xi).ndim > 1 for xi in x)
    return False


def _flatten_grid_x(x: Any) -> Any:
    """Flatten grid-like x into 1D coordinate arrays."""
    if isinstance(x, (tuple, list)) and x:
        return tuple(np.asarray(xi).reshape(-1) for xi in x)
    if isinstance(x, np.ndarray):
        return x.reshape(-1)
    return x

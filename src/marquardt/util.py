from __future__ import annotations

import inspect
import math
from typing import Any, Callable, Tuple

import numpy as np

_UNSUPPORTED_KINDS = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


def infer_param_names(func: Callable[..., Any]) -> Tuple[str, ...]:
    """Names of the fit parameters of ``func(x, p1, p2, ...)``.

    The first argument is the independent variable; every later argument is
    a parameter, in order. Variadic signatures are rejected.
    """
    params = list(inspect.signature(func).parameters.values())
    if len(params) < 2:
        raise TypeError("Model function must have at least (x, p1, ...).")
    if any(p.kind in _UNSUPPORTED_KINDS for p in params):
        raise TypeError("*args/**kwargs are not supported in model functions.")

    names = tuple(p.name for p in params[1:])
    if len(set(names)) != len(names):
        raise TypeError("Duplicate parameter names in function signature.")
    return names


def flatten_batch(arr: Any) -> Tuple[np.ndarray, Tuple[int, ...]]:
    """Collapse an array shaped batch_shape + (n,) to (B, n).

    A 1D array is a single dataset: it comes back as (1, n) with batch
    shape ().
    """
    arr = np.asarray(arr)
    batch_shape = tuple(arr.shape[:-1])
    return arr.reshape((math.prod(batch_shape), arr.shape[-1])), batch_shape


def unflatten_batch(values: Any, batch_shape: Tuple[int, ...]) -> np.ndarray:
    """Inverse of flatten_batch for arrays with a leading axis of length B."""
    values = np.asarray(values)
    return values.reshape(tuple(batch_shape) + values.shape[1:])


def uncertainty_to_string(
    x: float, err: float, precision: int | str | None = 1
) -> str:
    """Format ``x +/- err`` in parenthesis notation, e.g. ``12.346(1)``.

    ``precision`` is the number of significant digits quoted for the
    uncertainty; "auto" (or None) quotes two when the leading digit is 1
    and one otherwise. Of the fixed-point and the ``x.xx(ee)e+xx`` forms the
    shorter is returned, fixed-point on a tie.
    """
    x = float(x)
    err = float(err)
    if math.isnan(x) or math.isnan(err):
        return "NaN"
    if math.isinf(x) or math.isinf(err):
        return "inf"

    err = abs(err)
    digits = _error_digits(err, precision)
    if err == 0.0:
        return f"{x:.{digits}g}(0)"

    err_exp = _decade(err)
    x_exp = err_exp if (x == 0.0 or abs(x) < err) else _decade(abs(x))

    # decade of the last quoted digit
    last = err_exp - digits + 1
    err_int = round(err * 10 ** (-last))
    x_int = round(x * 10 ** (-last))

    width = x_exp - last
    scientific = f"{x_int * 10 ** (-width):.{width}f}({err_int:.0f})e{x_exp:d}"
    fixed = f"{x_int * 10 ** last:.{max(0, -last)}f}({err_int * 10 ** max(0, last):.0f})"
    return fixed if len(fixed) <= len(scientific) else scientific


def _decade(v: float) -> int:
    return int(math.floor(math.log10(v)))


def _error_digits(err: float, precision: int | str | None) -> int:
    if precision is None or (isinstance(precision, str) and precision.lower() == "auto"):
        if err == 0.0:
            return 1
        leading = int(err / (10 ** _decade(err)) + 1e-12)
        return 2 if leading == 1 else 1
    return max(1, int(precision))

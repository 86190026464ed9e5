"""Matplotlib helpers for drawing data and fitted curves.

matplotlib is an optional dependency and is imported on first use.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .util import uncertainty_to_string

_PARAM_BOX = {"boxstyle": "round", "facecolor": "white", "alpha": 0.7, "edgecolor": "none"}


def plot_fit(
    *,
    ax: Optional[Any] = None,
    x: Any,
    y: Optional[Any] = None,
    sigma: Optional[Any] = None,
    result: Optional[Any] = None,
    xg: Optional[np.ndarray] = None,
    data_kwargs: Optional[Mapping[str, Any]] = None,
    line_kwargs: Optional[Mapping[str, Any]] = None,
    show_params: bool = False,
    param_names: Optional[Sequence[str]] = None,
    param_digits: int | str | None = "auto",
    text_kwargs: Optional[Mapping[str, Any]] = None,
    x_label: Optional[str] = None,
    y_label: Optional[str] = None,
) -> Tuple[Any, Any]:
    """Plot data points and an optional fitted curve.

    Parameters
    ----------
    ax : matplotlib.axes.Axes, optional
        Axes to draw on; a new figure is created if None.
    x, y : array-like
        1D data. ``y`` may be omitted to draw only the fit.
    sigma : float or array-like, optional
        Symmetric error bars.
    result : FitResult, optional
        Fit to draw. If it carries its model the curve is evaluated on
        ``xg`` (default: 400 points spanning x), otherwise the fitted values
        are drawn at x.
    show_params : bool
        Annotate the fitted parameters (``param_names`` selects which) with
        uncertainties formatted to ``param_digits``.

    Returns
    -------
    (figure, axes)
    """
    import matplotlib.pyplot as plt

    if ax is None:
        fig, ax = plt.subplots()
    else:
        fig = ax.figure

    x_arr = np.asarray(x, dtype=float)
    if x_arr.ndim != 1:
        raise ValueError("plot_fit requires 1D x.")

    if y is not None:
        _draw_data(ax, x_arr, y, sigma, dict(data_kwargs or {}))
    if result is not None:
        _draw_fit(ax, x_arr, result, xg, dict(line_kwargs or {}))
        if show_params:
            lines = _param_lines(result, param_names, param_digits)
            if lines:
                text_kwargs = dict(text_kwargs or {})
                text_kwargs.setdefault("ha", "left")
                text_kwargs.setdefault("va", "top")
                text_kwargs.setdefault("fontsize", 9)
                text_kwargs.setdefault("transform", ax.transAxes)
                text_kwargs.setdefault("bbox", dict(_PARAM_BOX))
                ax.text(0.02, 0.98, "\n".join(lines), **text_kwargs)

    if x_label is not None:
        ax.set_xlabel(x_label)
    if y_label is not None:
        ax.set_ylabel(y_label)
    return fig, ax


def plot_data(
    data: Any,
    *,
    ax: Optional[Any] = None,
    result: Optional[Any] = None,
    **kwargs: Any,
) -> Tuple[Any, Any]:
    """Plot a FitData (and optionally a FitResult) using its labels."""
    data_kwargs = dict(kwargs.pop("data_kwargs", None) or {})
    if data.label is not None:
        data_kwargs.setdefault("label", data.label)
    kwargs.setdefault("x_label", data.x_label)
    kwargs.setdefault("y_label", data.y_label)
    return plot_fit(
        ax=ax,
        x=data.x,
        y=data.y,
        sigma=data.sigma,
        result=result,
        data_kwargs=data_kwargs,
        **kwargs,
    )


def _draw_data(ax: Any, x: np.ndarray, y: Any, sigma: Any, kwargs: dict) -> None:
    y_arr = np.asarray(y, dtype=float)
    if y_arr.shape != x.shape:
        raise ValueError("plot_fit requires x and y to have the same shape.")
    if sigma is None:
        kwargs.setdefault("marker", "o")
        kwargs.setdefault("linestyle", "none")
        ax.plot(x, y_arr, **kwargs)
        return
    s = np.asarray(sigma, dtype=float)
    if s.shape not in ((), x.shape):
        raise ValueError("plot_fit requires sigma to be scalar or same shape as y.")
    kwargs.setdefault("fmt", "o")
    kwargs.setdefault("ms", 4)
    kwargs.setdefault("capsize", 2)
    ax.errorbar(x, y_arr, yerr=s, **kwargs)


def _draw_fit(ax: Any, x: np.ndarray, result: Any, xg: Optional[np.ndarray], kwargs: dict) -> None:
    kwargs.setdefault("label", "fit")
    if getattr(result, "model", None) is None:
        order = np.argsort(x)
        ax.plot(x[order], np.asarray(result.y)[order], **kwargs)
        return
    if xg is None:
        xg = np.linspace(float(np.min(x)), float(np.max(x)), 400)
    ax.plot(xg, result.predict(xg), **kwargs)


def _param_lines(
    result: Any, param_names: Optional[Sequence[str]], digits: int | str | None
) -> List[str]:
    names = list(result.names if param_names is None else param_names)
    err = result.stderr
    lines = []
    for name in names:
        j = result.names.index(name)
        val = float(result.params[j])
        if err is None:
            lines.append(f"{name}={val:.4g}")
        else:
            lines.append(f"{name}={uncertainty_to_string(val, err[j], precision=digits)}")
    return lines

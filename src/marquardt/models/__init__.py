"""Built-in models with analytic Jacobians."""

from .exponential import exponential, exponential_func, exponential_jac
from .gaussian import gaussian_with_offset, gaussian_with_offset_func, gaussian_with_offset_jac
from .line import straight_line, straight_line_func, straight_line_jac
from .sinusoid import sinusoid, sinusoid_func, sinusoid_jac

__all__ = [
    "exponential",
    "exponential_func",
    "exponential_jac",
    "gaussian_with_offset",
    "gaussian_with_offset_func",
    "gaussian_with_offset_jac",
    "sinusoid",
    "sinusoid_func",
    "sinusoid_jac",
    "straight_line",
    "straight_line_func",
    "straight_line_jac",
]

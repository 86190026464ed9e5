"""marquardt public API."""
import logging

from .batch import BatchFitDriver, tlmfit
from .engine import LMEngine, lmfit
from .errors import ConvergenceError, FitError, ShapeMismatchError, SingularMatrixError
from .inputs import FitData
from .linalg import LinearSolver
from .model import Model, ModelEvaluator
from .options import FitOptions
from .results import BatchResult, FitResult
from . import models

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "BatchFitDriver",
    "BatchResult",
    "ConvergenceError",
    "FitData",
    "FitError",
    "FitOptions",
    "FitResult",
    "LMEngine",
    "LinearSolver",
    "Model",
    "ModelEvaluator",
    "ShapeMismatchError",
    "SingularMatrixError",
    "lmfit",
    "models",
    "tlmfit",
]

"""sensible_cogmodels public API."""
from .choicerules import AVAILABLE_CHOICERULES, get_choicerule
from .errors import (
    CogModelError,
    ConfigurationError,
    FitFailureError,
    InvalidInputError,
    UnsupportedTypeError,
)
from .model import Continuous, Discrete, ModelConfig, ModelOptions, ParametricModel
from .models import ThresholdModel, threshold, threshold_c, threshold_d
from .params import ParameterSpace, ParameterSpec, make_parspace
from .results import FitResult
from . import models

__all__ = [
    "AVAILABLE_CHOICERULES",
    "CogModelError",
    "ConfigurationError",
    "Continuous",
    "Discrete",
    "FitFailureError",
    "FitResult",
    "InvalidInputError",
    "ModelConfig",
    "ModelOptions",
    "ParameterSpace",
    "ParameterSpec",
    "ParametricModel",
    "ThresholdModel",
    "UnsupportedTypeError",
    "get_choicerule",
    "make_parspace",
    "models",
    "threshold",
    "threshold_c",
    "threshold_d",
]

"""
Model registry and factory.

Provides registry of supported classifiers with their default configurations
and the hyperparameter grids searched during cross-validation.
"""

from typing import Any

from sklearn.base import BaseEstimator
from sklearn.ensemble import ExtraTreesClassifier, RandomForestClassifier

from pigmentrf.utils.logging import get_logger

log = get_logger(__name__)


# Model configurations: name -> (class, default_kwargs)
MODEL_REGISTRY: dict[str, tuple[type[BaseEstimator], dict[str, Any]]] = {
    "Random Forest": (
        RandomForestClassifier,
        {
            "n_estimators": 500,
            "n_jobs": -1,
        },
    ),
    "Extra Trees": (
        ExtraTreesClassifier,
        {
            "n_estimators": 500,
            "n_jobs": -1,
        },
    ),
}


# max_features plays the role of mtry: the number of candidate features per split
PARAM_GRIDS: dict[str, dict[str, list[Any]]] = {
    "Random Forest": {
        "model__max_features": ["sqrt", "log2", 0.33, 0.66, 1.0],
    },
    "Extra Trees": {
        "model__max_features": ["sqrt", "log2", 0.33, 0.66, 1.0],
    },
}


def get_model(name: str, **kwargs: Any) -> BaseEstimator:
    """
    Get a model instance by name.

    Args:
        name: Model name from registry.
        **kwargs: Override default parameters.

    Returns:
        Model instance.

    Raises:
        KeyError: If model not found.
    """
    if name not in MODEL_REGISTRY:
        available = ", ".join(MODEL_REGISTRY.keys())
        msg = f"Unknown model '{name}'. Available: {available}"
        raise KeyError(msg)

    model_class, default_kwargs = MODEL_REGISTRY[name]
    params = {**default_kwargs, **kwargs}

    log.debug("Creating model", name=name, params=params)
    return model_class(**params)


def get_param_grid(name: str) -> dict[str, list[Any]] | None:
    """
    Get hyperparameter grid for a model.

    Args:
        name: Model name.

    Returns:
        Parameter grid or None if not defined.
    """
    return PARAM_GRIDS.get(name)


def list_models() -> list[str]:
    """List all available model names."""
    return list(MODEL_REGISTRY.keys())

"""Argument checks shared by constructors and public entry points."""

import math

import numpy as np


def require_non_negative(value, name: str) -> None:
    if not value >= 0:
        raise ValueError(f"{name} must be non-negative, got {value}")


def require_positive(value, name: str) -> None:
    if not value > 0:
        raise ValueError(f"{name} must be positive, got {value}")


def require_greater_equal(value, name: str, minimum) -> None:
    if not value >= minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")


def require_in_range(value, name: str, low, high) -> None:
    """Inclusive range check; NaN always fails."""
    if not low <= value <= high:
        raise ValueError(f"{name} must be in [{low}, {high}], got {value}")


def require_finite(value: float, name: str) -> None:
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite, got {value}")


def require_not_none(value, name: str) -> None:
    if value is None:
        raise ValueError(f"{name} must not be None")


def as_vector(x, dimensionality: int, name: str = "input") -> np.ndarray:
    """Convert ``x`` to a 1-D float vector of the expected length."""
    vector = np.asarray(x, dtype=np.float64)
    if vector.ndim != 1:
        raise ValueError(f"{name} must be a 1D vector, got {vector.ndim}D")
    if vector.shape[0] != dimensionality:
        raise ValueError(
            f"Expected {dimensionality} features, got {vector.shape[0]}"
        )
    if not np.all(np.isfinite(vector)):
        raise ValueError(f"{name} contains NaN or infinite values")
    return vector


def as_matrix(data, dimensionality: int) -> np.ndarray:
    """
    Convert a dataset to a 2-D float array of shape (n_samples, dimensionality).

    Accepts arrays, sequences of vectors, or items exposing an ``input``
    attribute.
    """
    if not isinstance(data, np.ndarray):
        data = np.asarray([getattr(item, "input", item) for item in data])

    data = data.astype(np.float64, copy=False)

    if data.ndim != 2:
        raise ValueError(f"Input data must be 2D array, got {data.ndim}D")

    if data.shape[0] == 0:
        raise ValueError("Input data is empty")

    if data.shape[1] != dimensionality:
        raise ValueError(f"Expected {dimensionality} features, got {data.shape[1]}")

    if np.any(np.isnan(data)) or np.any(np.isinf(data)):
        raise ValueError("Input data contains NaN or infinite values")

    return data

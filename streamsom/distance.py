"""Metric distances between input vectors and prototypes."""

import numpy as np

from .config import DistanceMetric


class MetricDistance:
    """
    Immutable distance strategy shared by a map and its learners.

    Every kernel broadcasts over leading axes and reduces the last one, so
    ``distance_between`` compares two vectors, ``distances_to`` compares every
    row of a prototype matrix against one vector and ``pairwise`` builds the
    full sample/prototype matrix, all through the same numpy call.
    """

    __slots__ = ("_metric", "_func")

    def __init__(self, metric: DistanceMetric = DistanceMetric.EUCLIDEAN):
        if not isinstance(metric, DistanceMetric):
            metric = DistanceMetric(metric)
        self._metric = metric
        self._func = getattr(MetricDistance, metric.value)

    @staticmethod
    def euclidean(a: np.ndarray, b: np.ndarray) -> np.ndarray:
        return np.sqrt(np.sum((a - b) ** 2, axis=-1))

    @staticmethod
    def manhattan(a: np.ndarray, b: np.ndarray) -> np.ndarray:
        return np.abs(a - b).sum(axis=-1)

    @staticmethod
    def chebyshev(a: np.ndarray, b: np.ndarray) -> np.ndarray:
        return np.abs(a - b).max(axis=-1)

    @staticmethod
    def cosine(a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """One minus the cosine similarity; a zero vector is orthogonal to everything"""
        dot = np.sum(a * b, axis=-1)
        magnitudes = np.linalg.norm(a, axis=-1) * np.linalg.norm(b, axis=-1)
        safe = np.where(magnitudes > 0, magnitudes, 1.0)
        return np.where(magnitudes > 0, 1.0 - dot / safe, 1.0)

    @property
    def metric(self) -> DistanceMetric:
        return self._metric

    def distance_between(self, a: np.ndarray, b: np.ndarray) -> float:
        if np.shape(a) != np.shape(b):
            raise ValueError(
                f"Vectors must have the same dimensions, got {np.shape(a)} and {np.shape(b)}"
            )
        return float(self._func(np.asarray(a, dtype=np.float64), np.asarray(b, dtype=np.float64)))

    def distances_to(self, prototypes: np.ndarray, x: np.ndarray) -> np.ndarray:
        return self._func(prototypes, x[np.newaxis, :])

    def pairwise(self, data: np.ndarray, prototypes: np.ndarray) -> np.ndarray:
        """Distance matrix of shape (n_samples, n_prototypes)"""
        return self._func(data[:, np.newaxis, :], prototypes[np.newaxis, :, :])

    def __eq__(self, other) -> bool:
        return isinstance(other, MetricDistance) and other._metric == self._metric

    def __hash__(self) -> int:
        return hash(self._metric)

    def __repr__(self) -> str:
        return f"MetricDistance({self._metric.value})"

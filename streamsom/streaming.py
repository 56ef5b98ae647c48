"""
Streaming self-organizing maps: one input at a time, no epochs
"""

import math
from abc import ABC, abstractmethod
from typing import List

import numpy as np
import structlog

from .config import DSOMConfig, PLSOMConfig
from .core import SelfOrganizingMap
from .functions import NeighboringFunction, updatable
from .observability import log_stream_sample
from .validation import as_matrix, as_vector

logger = structlog.get_logger(__name__)


class StreamingSOM(SelfOrganizingMap, ABC):
    """A map that adapts to each input as it arrives"""

    def learn(self, x) -> None:
        """Adapt the map to a single input vector"""
        x = as_vector(x, self.dimensionality)
        self._learn(x)
        self.metadata["total_samples_seen"] += 1
        log_stream_sample(self.implementation_name)

    def learn_batch(self, data) -> None:
        """Feed every row of ``data`` to ``learn``, in order"""
        for x in as_matrix(data, self.dimensionality):
            self.learn(x)

    @abstractmethod
    def _learn(self, x: np.ndarray) -> None:
        pass


class DSOM(StreamingSOM):
    """
    The dynamic SOM: the neighborhood width follows the BMU's quantization
    error, so the map stops adapting to inputs it already represents well.
    """

    def __init__(
        self,
        width: int,
        height: int,
        dimensionality: int,
        plasticity: float = 1.0,
        epsilon: float = 0.1,
        **kwargs,
    ):
        """
        Args:
            plasticity: elasticity of the neighborhood, must be positive
            epsilon: learning rate
            **kwargs: lattice, metric_distance and seed, as for the base map
        """
        self.config = DSOMConfig(plasticity=plasticity, epsilon=epsilon)
        super().__init__(width, height, dimensionality, **kwargs)

    @property
    def plasticity(self) -> float:
        return self.config.plasticity

    @property
    def epsilon(self) -> float:
        return self.config.epsilon

    def _learn(self, x: np.ndarray) -> None:
        index, qe = self._nearest(x)
        bmu = self.neurons[index]
        weights = self.prototypes

        grid_distances = self.lattice.distances_from(bmu)
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            neigh = np.exp(
                (-np.square(grid_distances) / (qe * qe))
                * (1.0 / (self.plasticity * self.plasticity))
            )
        mask = updatable(neigh)

        # Scaled by how far each prototype sits from the BMU's
        spread = self.metric_distance.distances_to(weights[mask], weights[index].copy())
        weights[mask] += (
            self.epsilon * (spread * neigh[mask])[:, np.newaxis] * (x - weights[mask])
        )

        self.prototypes_updated()


class PLSOM(StreamingSOM):
    """
    The parameter-less SOM.

    The learning rate is the BMU error relative to the diameter of a small
    set of remembered inputs (at most ``dimensionality + 1``), and the
    neighborhood radius follows the learning rate.
    """

    MAX_EPSILON = 0.5

    def __init__(
        self,
        width: int,
        height: int,
        dimensionality: int,
        neighborhood_range: float = 2.0,
        **kwargs,
    ):
        self.config = PLSOMConfig(neighborhood_range=neighborhood_range)
        super().__init__(width, height, dimensionality, **kwargs)
        self._k = dimensionality + 1
        self._members: List[np.ndarray] = []
        self._diameter = -1.0

    @property
    def neighborhood_range(self) -> float:
        return self.config.neighborhood_range

    @property
    def diameter(self) -> float:
        """Largest input-space diameter seen so far (-1 before any input)"""
        return self._diameter

    def _learn(self, x: np.ndarray) -> None:
        index, qe = self._nearest(x)
        bmu = self.neurons[index]

        epsilon = self.epsilon_for(x, qe)
        radius = self.neighborhood_range * math.log(1 + epsilon * (math.e - 1))

        neigh = NeighboringFunction.gaussian(self.lattice.distances_from(bmu), radius)
        mask = updatable(neigh)
        weights = self.prototypes
        weights[mask] += epsilon * neigh[mask, np.newaxis] * (x - weights[mask])

        self.prototypes_updated()

    def epsilon_for(self, x: np.ndarray, qe: float) -> float:
        """Learning rate for ``x``, growing the remembered set when it widens"""
        s = self._diameter_with(x)
        if s > self._diameter:
            self._diameter = s
            self._contract(x)
            self._members.append(x.copy())

        if self._diameter <= 0:
            # Nothing to normalize against yet
            return self.MAX_EPSILON if qe > 0 else 0.0
        return min(qe / self._diameter, self.MAX_EPSILON)

    def _diameter_with(self, x: np.ndarray) -> float:
        union = self._members + [x]
        if len(union) == 1:
            return 0.0
        points = np.vstack(union)
        distances = self.metric_distance.pairwise(points, points)
        return float(distances.max())

    def _contract(self, x: np.ndarray) -> None:
        while len(self._members) >= self._k:
            distances = [
                self.metric_distance.distance_between(member, x)
                for member in self._members
            ]
            del self._members[int(np.argmin(distances))]

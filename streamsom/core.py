"""
Core self-organizing map: prototype neurons, lattice and metric strategies
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterator, Optional, Tuple, Union

import numpy as np
import structlog
from sklearn.decomposition import PCA

from .callbacks import Observable
from .config import DistanceMetric, InitStrategy, SOMConfig, Topology
from .distance import MetricDistance
from .lattice import Lattice
from .validation import (
    as_matrix,
    as_vector,
    require_in_range,
    require_non_negative,
)

logger = structlog.get_logger(__name__)


class PrototypeNeuron:
    """
    A lattice cell with fixed grid coordinates and a mutable prototype.

    The prototype is a view of one row of the owning map's weight arena, so
    in-place changes through either the neuron or the map are the same change.
    """

    __slots__ = ("_x", "_y", "_index", "_arena")

    def __init__(self, x: int, y: int, index: int, arena: np.ndarray):
        self._x = x
        self._y = y
        self._index = index
        self._arena = arena

    @property
    def x(self) -> int:
        return self._x

    @property
    def y(self) -> int:
        return self._y

    @property
    def index(self) -> int:
        """Position of this neuron in the map's iteration order"""
        return self._index

    @property
    def prototype(self) -> np.ndarray:
        return self._arena[self._index]

    @prototype.setter
    def prototype(self, vector) -> None:
        self.set_prototype(vector)

    def set_prototype(self, vector) -> None:
        """Copy ``vector`` into this prototype; dimensionality must match"""
        vector = np.asarray(vector, dtype=np.float64)
        if vector.shape != self._arena[self._index].shape:
            raise ValueError(
                f"Prototype must have {self._arena.shape[1]} dimensions, got {vector.shape}"
            )
        self._arena[self._index] = vector

    def __repr__(self) -> str:
        return f"(x = {self._x:2d}, y = {self._y:2d}) - {np.array2string(self.prototype, precision=4)}"


@dataclass(frozen=True)
class SOMStatistics:
    """Quality measures of a map against a dataset"""

    quantization_error: float
    topographic_error: float

    def __str__(self) -> str:
        return (
            f"Quantization Error = {self.quantization_error:.3f} | "
            f"Topographic Error = {self.topographic_error:.3f}"
        )


_DEFAULT = object()


class SelfOrganizingMap(Observable):
    """
    A width x height grid of prototype neurons in a d-dimensional input space.

    Neurons live in one flat ``(width * height, d)`` arena. Iteration visits
    them x-major (``index = x * height + y``) and ``get(x, y)`` returns the
    same neuron objects. The lattice and metric strategies are shared and
    immutable for the lifetime of the map.
    """

    def __init__(
        self,
        width: int,
        height: int,
        dimensionality: int,
        lattice: Union[Lattice, Topology, None] = _DEFAULT,
        metric_distance: Union[MetricDistance, DistanceMetric, None] = _DEFAULT,
        seed: Optional[int] = None,
    ):
        """
        Args:
            width: width of the 2d lattice
            height: height of the 2d lattice
            dimensionality: dimensionality of the prototypes
            lattice: Lattice instance or Topology (hexagonal by default)
            metric_distance: MetricDistance or DistanceMetric (euclidean by default)
            seed: seed for the prototype initialization

        Raises:
            ValueError: on negative sizes or a missing lattice/metric
        """
        super().__init__()
        require_non_negative(width, "width")
        require_non_negative(height, "height")
        require_non_negative(dimensionality, "dimensionality")
        if lattice is None:
            raise ValueError("lattice must not be None")
        if metric_distance is None:
            raise ValueError("metric_distance must not be None")

        if lattice is _DEFAULT:
            lattice = Topology.HEXAGONAL
        if metric_distance is _DEFAULT:
            metric_distance = DistanceMetric.EUCLIDEAN

        if isinstance(lattice, Lattice):
            if (lattice.width, lattice.height) != (width, height):
                raise ValueError(
                    f"Lattice is sized {lattice.width}x{lattice.height}, "
                    f"map is {width}x{height}"
                )
        else:
            lattice = Lattice.create(lattice, width, height)

        if not isinstance(metric_distance, MetricDistance):
            metric_distance = MetricDistance(metric_distance)

        self._width = int(width)
        self._height = int(height)
        self._dimensionality = int(dimensionality)
        self._lattice = lattice
        self._metric_distance = metric_distance

        self.rng = np.random.RandomState(seed)

        # Prototypes start uniform in [0, 1)
        self._weights = self.rng.random(
            (self._width * self._height, self._dimensionality)
        )
        self._neurons = tuple(
            PrototypeNeuron(x, y, x * self._height + y, self._weights)
            for x in range(self._width)
            for y in range(self._height)
        )

        self.metadata = {
            "creation_time": datetime.now().isoformat(),
            "total_epochs": 0,
            "total_samples_seen": 0,
        }

    @classmethod
    def from_config(cls, config: SOMConfig, data=None, **kwargs) -> "SelfOrganizingMap":
        """Build a map from a SOMConfig, initializing from ``data`` when given"""
        som = cls(
            config.width,
            config.height,
            config.dimensionality,
            lattice=config.topology,
            metric_distance=config.distance_metric,
            seed=config.seed,
            **kwargs,
        )
        if config.init_strategy != InitStrategy.RANDOM or data is not None:
            som.initialize(config.init_strategy, data)
        return som

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def dimensionality(self) -> int:
        return self._dimensionality

    @property
    def lattice(self) -> Lattice:
        return self._lattice

    @property
    def metric_distance(self) -> MetricDistance:
        return self._metric_distance

    @property
    def n_neurons(self) -> int:
        return len(self._neurons)

    @property
    def neurons(self) -> Tuple[PrototypeNeuron, ...]:
        """All neurons in iteration order"""
        return self._neurons

    @property
    def prototypes(self) -> np.ndarray:
        """The live ``(n_neurons, d)`` weight arena, in iteration order"""
        return self._weights

    @property
    def implementation_name(self) -> str:
        return type(self).__name__

    def get(self, x: int, y: int) -> PrototypeNeuron:
        """Neuron at lattice location (x, y)"""
        require_in_range(x, "x", 0, self._width - 1)
        require_in_range(y, "y", 0, self._height - 1)
        return self._neurons[x * self._height + y]

    def __iter__(self) -> Iterator[PrototypeNeuron]:
        return iter(self._neurons)

    def __len__(self) -> int:
        return len(self._neurons)

    def get_weights(self) -> np.ndarray:
        """Copy of the weights in grid format (width, height, d)"""
        return self._weights.reshape(
            self._width, self._height, self._dimensionality
        ).copy()

    def set_prototypes(self, prototypes) -> None:
        """Overwrite every prototype from a (n_neurons, d) array"""
        prototypes = np.asarray(prototypes, dtype=np.float64)
        if prototypes.shape != self._weights.shape:
            raise ValueError(
                f"Expected prototypes of shape {self._weights.shape}, got {prototypes.shape}"
            )
        self._weights[:] = prototypes

    def lattice_distance_between(self, a: PrototypeNeuron, b: PrototypeNeuron) -> float:
        return self._lattice.distance_between(a, b)

    def distance_between_prototypes(
        self, a: PrototypeNeuron, b: PrototypeNeuron
    ) -> float:
        return self._metric_distance.distance_between(a.prototype, b.prototype)

    def best_matching_unit_for(self, x) -> PrototypeNeuron:
        """
        Neuron whose prototype is closest to ``x``.

        Ties resolve to the first neuron in iteration order.
        """
        if not self._neurons:
            raise ValueError("Map has no neurons")
        x = as_vector(x, self._dimensionality)
        index, _ = self._nearest(x)
        return self._neurons[index]

    def _nearest(self, x: np.ndarray) -> Tuple[int, float]:
        """Index and distance of the closest prototype to a validated ``x``"""
        distances = self._metric_distance.distances_to(self._weights, x)
        index = int(np.argmin(distances))
        return index, float(distances[index])

    def prototypes_updated(self) -> None:
        """
        Signal that prototypes changed and notify every observer.

        No check is made that anything really changed.
        """
        self.notify_observers()

    def randomize(self) -> None:
        """Re-draw every prototype uniformly in [0, 1)"""
        self._weights[:] = self.rng.random(self._weights.shape)

    def initialize(
        self, strategy: InitStrategy, data=None, seed: Optional[int] = None
    ) -> None:
        """Initialize prototypes with ``strategy``; SAMPLE and PCA need data"""
        if not isinstance(strategy, InitStrategy):
            strategy = InitStrategy(strategy)
        if seed is not None:
            self.rng = np.random.RandomState(seed)

        if strategy == InitStrategy.RANDOM:
            self.randomize()
            return

        if data is None:
            raise ValueError(f"{strategy.value} initialization requires data")
        data = as_matrix(data, self._dimensionality)

        if strategy == InitStrategy.SAMPLE:
            indices = self.rng.choice(len(data), self.n_neurons, replace=True)
            self._weights[:] = data[indices]
        else:  # PCA
            self._weights[:] = self._pca_grid(data)

    def _pca_grid(self, data: np.ndarray) -> np.ndarray:
        """Grid spanned by the leading principal components, one std each way"""
        n_components = min(2, data.shape[0], self._dimensionality)
        pca = PCA(n_components=n_components)
        pca.fit(data)
        spread = np.sqrt(pca.explained_variance_)

        xs = np.linspace(-1, 1, self._width) if self._width > 1 else np.zeros(1)
        ys = np.linspace(-1, 1, self._height) if self._height > 1 else np.zeros(1)

        points = np.zeros((self.n_neurons, n_components))
        for neuron in self._neurons:
            points[neuron.index, 0] = xs[neuron.x] * spread[0]
            if n_components > 1:
                points[neuron.index, 1] = ys[neuron.y] * spread[1]
        return pca.inverse_transform(points)

    def quantization_error(self, data) -> float:
        """Mean distance between each input and its BMU prototype"""
        data = as_matrix(data, self._dimensionality)
        distances = self._metric_distance.pairwise(data, self._weights)
        return float(np.mean(distances.min(axis=1)))

    def topographic_error(self, data) -> float:
        """Fraction of inputs whose two closest prototypes are not lattice neighbors"""
        data = as_matrix(data, self._dimensionality)
        if self.n_neurons < 2:
            return 0.0

        distances = self._metric_distance.pairwise(data, self._weights)
        order = np.argsort(distances, axis=1, kind="stable")[:, :2]

        errors = 0
        for first, second in order:
            if not self._lattice.are_neighbors(
                self._neurons[first], self._neurons[second]
            ):
                errors += 1
        return errors / len(data)

    def short_description(self) -> str:
        return (
            f"{self.implementation_name} "
            f"({self._width} x {self._height} x {self._dimensionality})"
        )

    def get_info(self) -> Dict:
        """Summary of the map shape, strategies and training totals"""
        return {
            "implementation": self.implementation_name,
            "shape": (self._width, self._height),
            "dimensionality": self._dimensionality,
            "n_neurons": self.n_neurons,
            "topology": self._lattice.topology.value,
            "distance_metric": self._metric_distance.metric.value,
            "metadata": dict(self.metadata),
        }

    def __str__(self) -> str:
        lines = [
            f"{self.short_description()} | {type(self._lattice).__name__} | "
            f"{self._metric_distance.metric.value}:"
        ]
        lines.extend(repr(neuron) for neuron in self._neurons)
        return "\n".join(lines)


class BasicSOM(SelfOrganizingMap):
    """A plain self-organizing map, trained by an offline learner"""


def compute_statistics(som: SelfOrganizingMap, data) -> SOMStatistics:
    """Quantization and topographic error of ``som`` over ``data``"""
    return SOMStatistics(
        quantization_error=som.quantization_error(data),
        topographic_error=som.topographic_error(data),
    )

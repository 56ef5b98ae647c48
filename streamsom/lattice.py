"""
Lattice topologies: grid distance and neighborhood between map cells

Every lattice is sized once, at construction, and is immutable afterwards.
Cells are addressed by integer ``(x, y)`` indices; the flat arena order used
by the maps is ``index = x * height + y``.
"""

from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np

from .config import Topology
from .validation import require_non_negative


class Lattice(ABC):
    """Abstract base class for lattice shapes"""

    def __init__(self, width: int, height: int):
        require_non_negative(width, "width")
        require_non_negative(height, "height")
        self._width = int(width)
        self._height = int(height)

        xs, ys = np.meshgrid(
            np.arange(self._width), np.arange(self._height), indexing="ij"
        )
        self._xs = xs.ravel()
        self._ys = ys.ravel()

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    @abstractmethod
    def topology(self) -> Topology:
        pass

    @abstractmethod
    def _distances(self, x: int, y: int, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        """Grid distances from cell (x, y) to each of the cells (xs, ys)."""

    @abstractmethod
    def _neighbors(self, x: int, y: int, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        """Neighbor mask of cell (x, y) against each of the cells (xs, ys)."""

    def distance_between(self, a, b) -> float:
        """Lattice distance between two neurons (anything with ``x`` and ``y``)."""
        return float(self._distances(a.x, a.y, np.array([b.x]), np.array([b.y]))[0])

    def are_neighbors(self, a, b) -> bool:
        return bool(self._neighbors(a.x, a.y, np.array([b.x]), np.array([b.y]))[0])

    def distances_from(self, neuron) -> np.ndarray:
        """Distances from ``neuron`` to every cell, in arena order."""
        return self._distances(neuron.x, neuron.y, self._xs, self._ys)

    def neighbors_of(self, neuron) -> np.ndarray:
        """Boolean neighbor mask of ``neuron`` over every cell, in arena order."""
        return self._neighbors(neuron.x, neuron.y, self._xs, self._ys)

    @staticmethod
    def create(topology: Topology, width: int, height: int) -> "Lattice":
        """Build the lattice implementing ``topology`` for a width x height grid"""
        lattice_map = {
            Topology.RECTANGULAR: SimpleRectangularLattice,
            Topology.HEXAGONAL: SimpleHexagonalLattice,
            Topology.TOROIDAL_RECTANGULAR: TorusRectangularLattice,
            Topology.TOROIDAL_HEXAGONAL: TorusHexagonalLattice,
        }
        if not isinstance(topology, Topology):
            topology = Topology(topology)
        return lattice_map[topology](width, height)

    def __eq__(self, other) -> bool:
        return (
            type(other) is type(self)
            and other.width == self.width
            and other.height == self.height
        )

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._width, self._height))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._width}x{self._height})"


class SimpleRectangularLattice(Lattice):
    """Bounded rectangular grid; each inner cell has 8 neighbors"""

    @property
    def topology(self) -> Topology:
        return Topology.RECTANGULAR

    def _deltas(self, x, y, xs, ys) -> Tuple[np.ndarray, np.ndarray]:
        return np.abs(xs - x), np.abs(ys - y)

    def _distances(self, x, y, xs, ys):
        dx, dy = self._deltas(x, y, xs, ys)
        return np.sqrt(dx**2 + dy**2)

    def _neighbors(self, x, y, xs, ys):
        dx, dy = self._deltas(x, y, xs, ys)
        return np.maximum(dx, dy) <= 1


class TorusRectangularLattice(SimpleRectangularLattice):
    """Rectangular grid whose borders wrap around"""

    @property
    def topology(self) -> Topology:
        return Topology.TOROIDAL_RECTANGULAR

    def _deltas(self, x, y, xs, ys):
        dx = np.abs(xs - x)
        dy = np.abs(ys - y)
        dx = np.minimum(dx, self._width - dx)
        dy = np.minimum(dy, self._height - dy)
        return dx, dy


class SimpleHexagonalLattice(Lattice):
    """
    Bounded hexagonal grid.

    Odd rows are shifted half a cell along x and rows are sqrt(3)/2 apart, so
    the six neighbors of a cell sit at unit distance.
    """

    ROW_SPACING = np.sqrt(3) / 2
    ADJACENCY_TOLERANCE = 1.1

    @property
    def topology(self) -> Topology:
        return Topology.HEXAGONAL

    @classmethod
    def positions(cls, xs, ys) -> Tuple[np.ndarray, np.ndarray]:
        xs = np.asarray(xs, dtype=np.float64)
        ys = np.asarray(ys)
        return xs + 0.5 * (ys % 2), ys * cls.ROW_SPACING

    def _distances(self, x, y, xs, ys):
        px, py = self.positions(np.array([x]), np.array([y]))
        qx, qy = self.positions(xs, ys)
        return np.sqrt((qx - px) ** 2 + (qy - py) ** 2)

    def _neighbors(self, x, y, xs, ys):
        return self._distances(x, y, xs, ys) <= self.ADJACENCY_TOLERANCE


class TorusHexagonalLattice(SimpleHexagonalLattice):
    """
    Hexagonal grid whose borders wrap around.

    The first and last rows must have opposite offsets to meet as hexagonal
    neighbors across the seam, so the height must be even.
    """

    def __init__(self, width: int, height: int):
        super().__init__(width, height)
        if self._height % 2:
            raise ValueError(
                f"Toroidal hexagonal lattice needs an even height, got {height}"
            )

    @property
    def topology(self) -> Topology:
        return Topology.TOROIDAL_HEXAGONAL

    def _distances(self, x, y, xs, ys):
        px, py = self.positions(np.array([x]), np.array([y]))
        qx, qy = self.positions(xs, ys)
        span_x = self._width
        span_y = self._height * self.ROW_SPACING
        base_dx = qx - px
        base_dy = qy - py

        # Shortest distance over the eight wrapped images plus the cell itself
        best = np.full(np.shape(qx), np.inf)
        for kx in (-1, 0, 1):
            for ky in (-1, 0, 1):
                dx = base_dx + kx * span_x
                dy = base_dy + ky * span_y
                best = np.minimum(best, np.sqrt(dx**2 + dy**2))
        return best

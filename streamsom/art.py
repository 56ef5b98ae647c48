"""
StreamART2A: streaming adaptive-resonance micro-clustering

Summarizes an unbounded stream into at most ``K`` micro-categories. An input
resonates with its nearest category when it falls within that category's
vigilance radius; otherwise a new category is created at the input. Landmark
windows of ``landmark_window_size`` inputs bound how many live categories a
single window may contribute (``q``).
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np
import structlog

from .callbacks import Observable
from .config import EvictionPolicy, StreamART2AConfig, WindowOverflow
from .filters import SimpleRunningMeanFilter, TimeSeries
from .observability import (
    log_category_created,
    log_category_evicted,
    log_category_merged,
    log_stream_sample,
    update_codebook_size,
)
from .validation import as_vector, require_in_range

logger = structlog.get_logger(__name__)

# Similarity this close below the vigilance still resonates
RESONANCE_TOLERANCE = 1e-13


@dataclass(eq=False)
class MicroCategory:
    """A micro-cluster summarizing the inputs that resonated with it"""

    prototype: np.ndarray
    vigilance_radius: float
    weight: int = 1
    created_at: int = 0
    # Iteration of creation or latest resonance
    timestamp: int = 0
    window: int = 0

    def copy(self) -> "MicroCategory":
        return MicroCategory(
            prototype=self.prototype.copy(),
            vigilance_radius=self.vigilance_radius,
            weight=self.weight,
            created_at=self.created_at,
            timestamp=self.timestamp,
            window=self.window,
        )

    def to_dict(self) -> dict:
        return {
            "prototype": self.prototype.tolist(),
            "vigilance_radius": self.vigilance_radius,
            "weight": self.weight,
            "created_at": self.created_at,
            "timestamp": self.timestamp,
        }


def maximum_weight_among(categories: Iterable[MicroCategory]) -> int:
    """Largest weight among ``categories``, -1 when there are none"""
    return max((c.weight for c in categories), default=-1)


class StreamART2A(Observable):
    """
    Bounded-memory micro-clustering of a data stream.

    Observers are notified at every landmark-window boundary.
    """

    def __init__(
        self,
        dimensionality: int,
        dmin: float = 0.0,
        dmax: float = 1.0,
        learning_rate: float = 0.1,
        landmark_window_size: int = 1000,
        q: int = 50,
        K: int = 500,
        vigilance: float = 0.9,
        eviction_policy: EvictionPolicy = EvictionPolicy.OLDEST,
        window_overflow: WindowOverflow = WindowOverflow.EVICT,
    ):
        super().__init__()
        self.config = StreamART2AConfig(
            dimensionality=dimensionality,
            dmin=dmin,
            dmax=dmax,
            learning_rate=learning_rate,
            landmark_window_size=landmark_window_size,
            q=q,
            K=K,
            vigilance=vigilance,
            eviction_policy=EvictionPolicy(eviction_policy),
            window_overflow=WindowOverflow(window_overflow),
        )
        self._input_manifold = (dmax - dmin) * math.sqrt(dimensionality)
        self._vigilance = vigilance
        self._learn_input_count = 0
        self._window = 0
        self._codebook: List[MicroCategory] = []

    @classmethod
    def from_config(cls, config: StreamART2AConfig) -> "StreamART2A":
        return cls(**config.to_dict())

    @property
    def dimensionality(self) -> int:
        return self.config.dimensionality

    @property
    def input_manifold(self) -> float:
        """Diagonal of the ``[dmin, dmax]^d`` input hypercube"""
        return self._input_manifold

    @property
    def vigilance(self) -> float:
        """Vigilance of the current landmark window"""
        return self._vigilance

    @property
    def learn_input_count(self) -> int:
        return self._learn_input_count

    @property
    def window(self) -> int:
        """Index of the current landmark window"""
        return self._window

    def __len__(self) -> int:
        return len(self._codebook)

    def vigilance_to_distance(self, vigilance: float) -> float:
        require_in_range(vigilance, "vigilance", 0.0, 1.0)
        return self._input_manifold * (1 - vigilance)

    def distance_to_similarity(self, distance: float) -> float:
        return 1 - distance / self._input_manifold

    def learn(self, x) -> None:
        """Absorb one input: resonate with the nearest category or create one"""
        x = as_vector(x, self.config.dimensionality)
        self._learn_input_count += 1

        if self._learn_input_count % self.config.landmark_window_size == 0:
            self._start_landmark_window()

        category, distance = self._nearest(x)
        if category is not None and self._resonates(category, distance):
            lr = self.config.learning_rate
            category.prototype *= 1 - lr
            category.prototype += lr * x
            category.weight += 1
            category.timestamp = self._learn_input_count
        else:
            self._create(x)

        log_stream_sample(type(self).__name__)

    def _resonates(self, category: MicroCategory, distance: float) -> bool:
        slack = RESONANCE_TOLERANCE * self._input_manifold
        return distance <= category.vigilance_radius + slack

    def _nearest(self, x: np.ndarray):
        if not self._codebook:
            return None, math.inf
        distances = self._distances_to(x)
        index = int(np.argmin(distances))
        return self._codebook[index], float(distances[index])

    def _distances_to(self, x: np.ndarray) -> np.ndarray:
        prototypes = np.vstack([c.prototype for c in self._codebook])
        return np.linalg.norm(prototypes - x, axis=1)

    def _start_landmark_window(self) -> None:
        self._window += 1
        self._vigilance = self.config.vigilance
        logger.info(
            "Landmark window started",
            window=self._window,
            learn_input_count=self._learn_input_count,
            codebook_size=len(self._codebook),
        )
        self.notify_observers()

    def _window_categories(self) -> List[MicroCategory]:
        return [c for c in self._codebook if c.window == self._window]

    def _create(self, x: np.ndarray) -> None:
        # Per-window cap first, then the global capacity
        if len(self._window_categories()) >= self.config.q:
            self._resolve_window_overflow()
        if len(self._codebook) >= self.config.K:
            self._evict(self._capacity_victim(), reason="capacity")

        self._codebook.append(
            MicroCategory(
                prototype=x.copy(),
                vigilance_radius=self.vigilance_to_distance(self._vigilance),
                created_at=self._learn_input_count,
                timestamp=self._learn_input_count,
                window=self._window,
            )
        )
        log_category_created()
        update_codebook_size(len(self._codebook))

    def _resolve_window_overflow(self) -> None:
        candidates = self._window_categories()
        if self.config.window_overflow == WindowOverflow.MERGE and len(candidates) >= 2:
            self._merge_closest(candidates)
        else:
            victim = min(candidates, key=lambda c: (c.weight, c.created_at))
            self._evict(victim, reason="window")

    def _capacity_victim(self) -> MicroCategory:
        if self.config.eviction_policy == EvictionPolicy.LOWEST_WEIGHT:
            return min(self._codebook, key=lambda c: (c.weight, c.timestamp, c.created_at))
        return min(self._codebook, key=lambda c: (c.timestamp, c.created_at))

    def _evict(self, victim: MicroCategory, reason: str) -> None:
        self._codebook.remove(victim)
        logger.debug(
            "Micro-category evicted",
            reason=reason,
            weight=victim.weight,
            timestamp=victim.timestamp,
        )
        log_category_evicted(reason)

    def _merge_closest(self, candidates: List[MicroCategory]) -> None:
        """Replace the two closest window categories by their weighted mean"""
        prototypes = np.vstack([c.prototype for c in candidates])
        distances = np.linalg.norm(
            prototypes[:, np.newaxis, :] - prototypes[np.newaxis, :, :], axis=-1
        )
        np.fill_diagonal(distances, np.inf)
        i, j = np.unravel_index(int(np.argmin(distances)), distances.shape)
        first, second = candidates[min(i, j)], candidates[max(i, j)]

        similarity = max(self.distance_to_similarity(float(distances[i, j])), 0.0)
        if similarity < self._vigilance:
            self._vigilance = similarity
            radius = self.vigilance_to_distance(similarity)
            for category in candidates:
                category.vigilance_radius = radius

        total = first.weight + second.weight
        merged = MicroCategory(
            prototype=(first.weight * first.prototype + second.weight * second.prototype)
            / total,
            vigilance_radius=self.vigilance_to_distance(self._vigilance),
            weight=total,
            created_at=self._learn_input_count,
            timestamp=self._learn_input_count,
            window=self._window,
        )
        self._codebook.remove(first)
        self._codebook.remove(second)
        self._codebook.append(merged)

        logger.debug(
            "Micro-categories merged", weight=total, vigilance=self._vigilance
        )
        log_category_merged()

    def get_codebook_between(self, ti: int, tf: int) -> List[MicroCategory]:
        """Copies of the categories last touched within ``[ti, tf]``, oldest first"""
        if tf < ti:
            raise ValueError(f"tf must be >= ti, got ti={ti}, tf={tf}")
        selected = [c.copy() for c in self._codebook if ti <= c.timestamp <= tf]
        selected.sort(key=lambda c: c.timestamp)
        return selected

    def get_codebook(self) -> List[MicroCategory]:
        return self.get_codebook_between(0, self._learn_input_count)

    def get_codebook_until(self, horizon: int) -> List[MicroCategory]:
        """Categories touched from ``horizon`` up to the latest input"""
        return self.get_codebook_between(horizon, self._learn_input_count)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(codebook_size={len(self._codebook)}, "
            f"input_manifold={self._input_manifold:.4f}, "
            f"learning_rate={self.config.learning_rate}, "
            f"landmark_window_size={self.config.landmark_window_size}, "
            f"q={self.config.q}, K={self.config.K}, vigilance={self._vigilance}, "
            f"learn_input_count={self._learn_input_count})"
        )


class StreamART2AWithConceptDrift(StreamART2A):
    """
    StreamART2A that tracks how well the codebook fits the stream.

    Each input's distance to the nearest category that existed before the
    input arrived, relative to the input manifold, is smoothed over one
    landmark window and appended to ``quantization_error_series``. The first
    input, met by an empty codebook, records nothing. Clustering is
    unaffected.
    """

    def __init__(self, dimensionality: int, *args, **kwargs):
        super().__init__(dimensionality, *args, **kwargs)
        self._qe_mean = SimpleRunningMeanFilter("QE", self.config.landmark_window_size)
        self._qe_series = TimeSeries("Running QE")

    @property
    def quantization_error_series(self) -> TimeSeries:
        return self._qe_series

    @property
    def current_quantization_error(self) -> Optional[float]:
        if self._qe_series.is_empty():
            return None
        return self._qe_series[-1].value

    def learn(self, x) -> None:
        x = as_vector(x, self.config.dimensionality)
        # Fit is measured against the codebook before x is absorbed
        _, distance = self._nearest(x)
        super().learn(x)
        if math.isinf(distance):
            return
        value = self._qe_mean.filter(distance / self._input_manifold)
        self._qe_series.append(self._learn_input_count, value)

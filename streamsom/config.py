"""
Configuration classes and enums for streamsom models
"""

from enum import Enum
from dataclasses import dataclass, asdict
from typing import Optional, Dict

from .validation import (
    require_non_negative,
    require_positive,
    require_in_range,
    require_greater_equal,
)


class Topology(Enum):
    """Grid topologies, bounded or wrapped around a torus"""

    RECTANGULAR = "rectangular"
    HEXAGONAL = "hexagonal"
    TOROIDAL_RECTANGULAR = "toroidal_rectangular"
    TOROIDAL_HEXAGONAL = "toroidal_hexagonal"


class DecaySchedule(Enum):
    """Decay schedules for learning rate and neighborhood radius"""

    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    INVERSE_TIME = "inverse_time"


class NeighborhoodKernel(Enum):
    """Neighborhood functions over lattice distance"""

    GAUSSIAN = "gaussian"
    BUBBLE = "bubble"
    PYRAMID = "pyramid"


class DistanceMetric(Enum):
    """Metric distances between prototype vectors"""

    EUCLIDEAN = "euclidean"
    MANHATTAN = "manhattan"
    CHEBYSHEV = "chebyshev"
    COSINE = "cosine"


class InitStrategy(Enum):
    """Prototype initialization strategies"""

    RANDOM = "random"
    SAMPLE = "sample"
    PCA = "pca"


class EvictionPolicy(Enum):
    """Which micro-category leaves a full StreamART2A codebook"""

    OLDEST = "oldest"
    LOWEST_WEIGHT = "lowest_weight"


class WindowOverflow(Enum):
    """How StreamART2A honors the per-window creation cap"""

    EVICT = "evict"
    MERGE = "merge"


class _ConfigMixin:
    """Dictionary round-tripping shared by all config dataclasses"""

    _enum_fields: Dict[str, type] = {}

    def to_dict(self) -> Dict:
        """Convert config to dictionary for serialization"""
        config_dict = asdict(self)
        for key, value in config_dict.items():
            if isinstance(value, Enum):
                config_dict[key] = value.value
        return config_dict

    @classmethod
    def from_dict(cls, config_dict: Dict):
        """Create config from dictionary"""
        config_dict = dict(config_dict)
        for field_name, enum_class in cls._enum_fields.items():
            if field_name in config_dict and isinstance(config_dict[field_name], str):
                config_dict[field_name] = enum_class(config_dict[field_name])
        return cls(**config_dict)


@dataclass
class SOMConfig(_ConfigMixin):
    """Shape, topology and metric of a self-organizing map"""

    width: int
    height: int
    dimensionality: int = 3

    topology: Topology = Topology.HEXAGONAL
    distance_metric: DistanceMetric = DistanceMetric.EUCLIDEAN

    init_strategy: InitStrategy = InitStrategy.RANDOM

    # Reproducibility
    seed: Optional[int] = None

    _enum_fields = {
        "topology": Topology,
        "distance_metric": DistanceMetric,
        "init_strategy": InitStrategy,
    }

    def __post_init__(self):
        require_non_negative(self.width, "width")
        require_non_negative(self.height, "height")
        require_non_negative(self.dimensionality, "dimensionality")


@dataclass
class ClassicLearningConfig(_ConfigMixin):
    """Parameters of the classic (online, epoch-based) Kohonen training"""

    i_alpha: float = 0.1
    f_alpha: float = 0.01
    i_sigma: float = 2.0
    f_sigma: float = 0.1
    order_epochs: int = 50
    fine_tune_epochs: int = 50

    shuffle: bool = False
    seed: Optional[int] = None

    def __post_init__(self):
        require_non_negative(self.i_alpha, "i_alpha")
        require_non_negative(self.f_alpha, "f_alpha")
        require_non_negative(self.i_sigma, "i_sigma")
        require_non_negative(self.f_sigma, "f_sigma")
        require_non_negative(self.order_epochs, "order_epochs")
        require_non_negative(self.fine_tune_epochs, "fine_tune_epochs")


@dataclass
class BatchLearningConfig(_ConfigMixin):
    """Parameters of batch training (also used for micro-category training)"""

    i_sigma: float = 2.0
    f_sigma: float = 0.1
    order_epochs: int = 10
    convergence_epochs: int = 10

    def __post_init__(self):
        require_non_negative(self.i_sigma, "i_sigma")
        require_non_negative(self.f_sigma, "f_sigma")
        require_non_negative(self.order_epochs, "order_epochs")
        require_non_negative(self.convergence_epochs, "convergence_epochs")


@dataclass
class UbiSOMConfig(_ConfigMixin):
    """Parameters of the ubiquitous SOM"""

    alpha_0: float = 0.1
    alpha_f: float = 0.08
    sigma_0: float = 0.6
    sigma_f: float = 0.2
    beta: float = 0.7
    T: int = 2000

    # None: use the drift value observed when Converging is entered
    drift_threshold: Optional[float] = None

    def __post_init__(self):
        require_non_negative(self.alpha_0, "alpha_0")
        require_non_negative(self.alpha_f, "alpha_f")
        require_non_negative(self.sigma_0, "sigma_0")
        require_non_negative(self.sigma_f, "sigma_f")
        require_in_range(self.beta, "beta", 0.0, 1.0)
        require_greater_equal(self.T, "T", 1)
        if self.drift_threshold is not None:
            require_non_negative(self.drift_threshold, "drift_threshold")


@dataclass
class DSOMConfig(_ConfigMixin):
    """Parameters of the dynamic SOM"""

    plasticity: float = 1.0
    epsilon: float = 0.1

    def __post_init__(self):
        require_positive(self.plasticity, "plasticity")
        require_non_negative(self.epsilon, "epsilon")


@dataclass
class PLSOMConfig(_ConfigMixin):
    """Parameters of the parameter-less SOM"""

    neighborhood_range: float = 2.0

    def __post_init__(self):
        require_positive(self.neighborhood_range, "neighborhood_range")


@dataclass
class StreamART2AConfig(_ConfigMixin):
    """Parameters of the StreamART2A micro-clustering engine"""

    dimensionality: int
    dmin: float = 0.0
    dmax: float = 1.0
    learning_rate: float = 0.1
    landmark_window_size: int = 1000
    q: int = 50
    K: int = 500

    # Initial vigilance of each landmark window, in [0, 1]
    vigilance: float = 0.9

    eviction_policy: EvictionPolicy = EvictionPolicy.OLDEST
    window_overflow: WindowOverflow = WindowOverflow.EVICT

    _enum_fields = {
        "eviction_policy": EvictionPolicy,
        "window_overflow": WindowOverflow,
    }

    def __post_init__(self):
        require_greater_equal(self.dimensionality, "dimensionality", 1)
        if not self.dmax > self.dmin:
            raise ValueError(
                f"dmax must be greater than dmin, got dmin={self.dmin}, dmax={self.dmax}"
            )
        require_in_range(self.learning_rate, "learning_rate", 0.0, 1.0)
        require_greater_equal(self.landmark_window_size, "landmark_window_size", 1)
        require_greater_equal(self.q, "q", 1)
        require_greater_equal(self.K, "K", 1)
        require_in_range(self.vigilance, "vigilance", 0.0, 1.0)

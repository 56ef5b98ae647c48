"""
streamsom: Self-Organizing Maps for offline and streaming data

Offline (classic, batch) and streaming (UbiSOM, DSOM, PLSOM) self-organizing
maps over pluggable lattices and metrics, plus StreamART2A micro-clustering
of unbounded streams.
"""

from .config import (
    SOMConfig,
    ClassicLearningConfig,
    BatchLearningConfig,
    UbiSOMConfig,
    DSOMConfig,
    PLSOMConfig,
    StreamART2AConfig,
    Topology,
    DecaySchedule,
    NeighborhoodKernel,
    DistanceMetric,
    InitStrategy,
    EvictionPolicy,
    WindowOverflow,
)
from .distance import MetricDistance
from .lattice import (
    Lattice,
    SimpleRectangularLattice,
    TorusRectangularLattice,
    SimpleHexagonalLattice,
    TorusHexagonalLattice,
)
from .functions import DecayFunction, NeighboringFunction
from .callbacks import (
    Observer,
    Observable,
    Callback,
    EarlyStoppingCallback,
    HistoryCallback,
)
from .core import (
    PrototypeNeuron,
    SelfOrganizingMap,
    BasicSOM,
    SOMStatistics,
    compute_statistics,
)
from .learning import (
    OfflineLearning,
    ClassicLearning,
    BatchLearning,
    MicroCategoryBatchLearning,
)
from .streaming import StreamingSOM, DSOM, PLSOM
from .ubisom import UbiSOM, OrderingState, ConvergingState, Phase, advance
from .art import (
    MicroCategory,
    StreamART2A,
    StreamART2AWithConceptDrift,
    maximum_weight_among,
)
from .filters import (
    RunningMeanFilter,
    SimpleRunningMeanFilter,
    TripleCascadedMeanFilter,
    TimeSeries,
    TimeValue,
)
from .observability import (
    setup_logging,
    trace_operation,
    get_metrics,
    get_health_status,
    RequestTracingMiddleware,
)

__version__ = "0.1.0"

__all__ = [
    "SOMConfig",
    "ClassicLearningConfig",
    "BatchLearningConfig",
    "UbiSOMConfig",
    "DSOMConfig",
    "PLSOMConfig",
    "StreamART2AConfig",
    "Topology",
    "DecaySchedule",
    "NeighborhoodKernel",
    "DistanceMetric",
    "InitStrategy",
    "EvictionPolicy",
    "WindowOverflow",
    "MetricDistance",
    "Lattice",
    "SimpleRectangularLattice",
    "TorusRectangularLattice",
    "SimpleHexagonalLattice",
    "TorusHexagonalLattice",
    "DecayFunction",
    "NeighboringFunction",
    "Observer",
    "Observable",
    "Callback",
    "EarlyStoppingCallback",
    "HistoryCallback",
    "PrototypeNeuron",
    "SelfOrganizingMap",
    "BasicSOM",
    "SOMStatistics",
    "compute_statistics",
    "OfflineLearning",
    "ClassicLearning",
    "BatchLearning",
    "MicroCategoryBatchLearning",
    "StreamingSOM",
    "DSOM",
    "PLSOM",
    "UbiSOM",
    "OrderingState",
    "ConvergingState",
    "Phase",
    "advance",
    "MicroCategory",
    "StreamART2A",
    "StreamART2AWithConceptDrift",
    "maximum_weight_among",
    "RunningMeanFilter",
    "SimpleRunningMeanFilter",
    "TripleCascadedMeanFilter",
    "TimeSeries",
    "TimeValue",
    "setup_logging",
    "trace_operation",
    "get_metrics",
    "get_health_status",
    "RequestTracingMiddleware",
]

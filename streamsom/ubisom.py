"""
The ubiquitous SOM: a streaming map that keeps learning indefinitely

The model alternates between two states. Ordering runs for ``T`` iterations
with exponentially decaying parameters; Converging derives its parameters
from a drift signal and falls back to Ordering once the drift has kept
``sigma`` pinned at its floor for ``T`` consecutive iterations.
"""

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, ClassVar, Optional, Tuple, Union

import numpy as np
import structlog

from .config import UbiSOMConfig
from .core import PrototypeNeuron
from .filters import SimpleRunningMeanFilter, TripleCascadedMeanFilter
from .functions import DecayFunction, NeighboringFunction, updatable
from .observability import log_state_transition
from .streaming import StreamingSOM
from .validation import require_finite

logger = structlog.get_logger(__name__)

# |sigma - sigma_f| below this counts as pinned at the floor
PINNED_TOLERANCE = 1e-4


class Phase(Enum):
    ORDERING = "ordering"
    CONVERGING = "converging"


@dataclass(frozen=True)
class OrderingState:
    processed_iterations: int = 0

    phase: ClassVar[Phase] = Phase.ORDERING


@dataclass(frozen=True)
class ConvergingState:
    drift_threshold: float
    parameters_high_count: int = 0

    phase: ClassVar[Phase] = Phase.CONVERGING


UbiSOMState = Union[OrderingState, ConvergingState]


@dataclass(frozen=True)
class LearningParameters:
    alpha: float
    sigma: float


def converging_parameters(
    drift: float, threshold: float, config: UbiSOMConfig
) -> LearningParameters:
    """Floor values above the threshold, proportionally lower below it"""
    if threshold <= 0 or drift > threshold:
        return LearningParameters(config.alpha_f, config.sigma_f)
    return LearningParameters(
        drift * (config.alpha_f / threshold), drift * (config.sigma_f / threshold)
    )


def advance(
    state: UbiSOMState, drift: float, config: UbiSOMConfig
) -> Tuple[UbiSOMState, LearningParameters, Optional[Phase]]:
    """
    One iteration of the state machine.

    Args:
        state: current state
        drift: drift signal observed at this iteration
        config: model parameters

    Returns:
        The next state, the parameters to apply this iteration and the phase
        entered, or None when no transition happened
    """
    if state.phase is Phase.ORDERING:
        processed = state.processed_iterations + 1
        params = LearningParameters(
            DecayFunction.exponential(config.alpha_0, config.alpha_f, processed, config.T),
            DecayFunction.exponential(config.sigma_0, config.sigma_f, processed, config.T),
        )
        if processed >= config.T:
            threshold = (
                drift if config.drift_threshold is None else config.drift_threshold
            )
            return ConvergingState(drift_threshold=threshold), params, Phase.CONVERGING
        return OrderingState(processed), params, None

    params = converging_parameters(drift, state.drift_threshold, config)
    if abs(params.sigma - config.sigma_f) < PINNED_TOLERANCE:
        count = state.parameters_high_count + 1
        if count >= config.T:
            return OrderingState(), params, Phase.ORDERING
        return replace(state, parameters_high_count=count), params, None
    return replace(state, parameters_high_count=0), params, None


DriftSource = Callable[["UbiSOM"], float]


def smoothed_drift(model: "UbiSOM") -> float:
    """Default drift signal: the model's smoothed QE/activity mixture"""
    return model.current_drift


class UbiSOM(StreamingSOM):
    """
    Ubiquitous self-organizing map for non-stationary streams.

    The drift signal defaults to ``beta * mean_qe + (1 - beta) * (1 -
    mean_activity)`` smoothed over ``T`` iterations; any ``(model) -> float``
    callable can replace it.
    """

    def __init__(
        self,
        width: int,
        height: int,
        dimensionality: int,
        alpha_0: float = 0.1,
        alpha_f: float = 0.08,
        sigma_0: float = 0.6,
        sigma_f: float = 0.2,
        beta: float = 0.7,
        T: int = 2000,
        drift_threshold: Optional[float] = None,
        drift_source: Optional[DriftSource] = None,
        **kwargs,
    ):
        self.config = UbiSOMConfig(
            alpha_0=alpha_0,
            alpha_f=alpha_f,
            sigma_0=sigma_0,
            sigma_f=sigma_f,
            beta=beta,
            T=T,
            drift_threshold=drift_threshold,
        )
        super().__init__(width, height, dimensionality, **kwargs)

        self._drift_source = drift_source or smoothed_drift
        self._lattice_diagonal = math.sqrt((width - 1) ** 2 + (height - 1) ** 2)
        self._dimensionality_ratio = math.sqrt(dimensionality) or 1.0

        self._activity_timestamps = np.zeros(self.n_neurons, dtype=np.int64)
        self._bmu_timestamps = np.zeros(self.n_neurons, dtype=np.int64)

        self._qe_mean = TripleCascadedMeanFilter("Mean QE", T)
        self._activity_mean = SimpleRunningMeanFilter("Mean Activity", T)
        self._drift_mean = TripleCascadedMeanFilter("Drift", T)

        self._state: UbiSOMState = OrderingState()
        self._parameters = LearningParameters(alpha_0, sigma_0)

    @classmethod
    def from_configs(cls, som_config, ubisom_config: UbiSOMConfig, **kwargs) -> "UbiSOM":
        return cls.from_config(som_config, **ubisom_config.to_dict(), **kwargs)

    @property
    def state(self) -> UbiSOMState:
        return self._state

    @property
    def last_parameters(self) -> LearningParameters:
        """alpha and sigma applied at the latest iteration"""
        return self._parameters

    @property
    def lattice_diagonal(self) -> float:
        return self._lattice_diagonal

    @property
    def current_drift(self) -> float:
        return self._drift_mean.last_output

    @property
    def current_activity(self) -> float:
        return self._activity_mean.last_output

    @property
    def current_quantization_error(self) -> float:
        return self._qe_mean.last_output

    def timestamp_bmu(self, x: int, y: int) -> int:
        """0 when (x, y) was the latest BMU, minus the iterations since otherwise"""
        return int(self._bmu_timestamps[self.get(x, y).index])

    def timestamp_activity(self, x: int, y: int) -> int:
        """0 when (x, y) was updated last iteration, minus the idle iterations otherwise"""
        return int(self._activity_timestamps[self.get(x, y).index])

    def _learn(self, x: np.ndarray) -> None:
        index, _ = self._nearest(x)
        bmu = self.neurons[index]

        drift = float(self._drift_source(self))
        require_finite(drift, "drift")

        ordering = self._state.phase is Phase.ORDERING
        new_state, params, transition = advance(self._state, drift, self.config)

        self._adjust_weights(bmu, x, params, ordering)
        self._parameters = params

        # The threshold is the drift once the final ordering step has been applied
        if transition is Phase.CONVERGING and self.config.drift_threshold is None:
            drift = float(self._drift_source(self))
            require_finite(drift, "drift")
            new_state = replace(new_state, drift_threshold=drift)

        previous = self._state
        self._state = new_state
        if transition is not None:
            self._on_transition(previous, transition, drift)

        self.prototypes_updated()

    def _adjust_weights(
        self,
        bmu: PrototypeNeuron,
        x: np.ndarray,
        params: LearningParameters,
        ordering: bool,
    ) -> None:
        T = self.config.T
        active_fraction = np.count_nonzero(self._activity_timestamps > -T) / self.n_neurons

        neigh = NeighboringFunction.gaussian(
            self.lattice.distances_from(bmu), params.sigma * self._lattice_diagonal
        )
        mask = updatable(neigh)

        self._activity_timestamps[~mask] -= 1
        self._activity_timestamps[mask] = 0
        self._bmu_timestamps -= 1
        self._bmu_timestamps[bmu.index] = 0

        weights = self.prototypes
        weights[mask] += params.alpha * neigh[mask, np.newaxis] * (x - weights[mask])

        normalized_qe = (
            self.metric_distance.distance_between(bmu.prototype, x)
            / self._dimensionality_ratio
        )
        qe = self._qe_mean.filter(normalized_qe)
        activity = self._activity_mean.filter(active_fraction)

        # Ordering reports the raw error and full activity
        if ordering:
            activity = 1.0
            qe = normalized_qe

        beta = self.config.beta
        self._drift_mean.filter(beta * qe + (1 - beta) * (1 - activity))

    def _on_transition(self, previous: UbiSOMState, target: Phase, drift: float) -> None:
        if target is Phase.ORDERING:
            self.randomize()
            self._activity_timestamps[:] = 0
            self._bmu_timestamps[:] = 0

        logger.info(
            "UbiSOM state transition",
            source=previous.phase.value,
            target=target.value,
            drift=drift,
            drift_threshold=getattr(self._state, "drift_threshold", None),
        )
        log_state_transition(previous.phase.value, target.value)

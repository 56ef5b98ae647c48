"""
Offline training algorithms for self-organizing maps
"""

import time
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

import numpy as np
import structlog
from tqdm import tqdm

from .callbacks import Callback
from .config import BatchLearningConfig, ClassicLearningConfig
from .core import PrototypeNeuron, SelfOrganizingMap
from .functions import DecayFunction, NeighboringFunction, updatable
from .observability import log_training_metrics, trace_operation
from .validation import as_matrix, require_non_negative

logger = structlog.get_logger(__name__)


def kohonen_update(
    som: SelfOrganizingMap,
    bmu: PrototypeNeuron,
    x: np.ndarray,
    alpha: float,
    sigma: float,
) -> np.ndarray:
    """
    Apply ``W += alpha * gaussian(dist, sigma) * (x - W)`` around ``bmu``.

    Returns the mask of neurons that were updated.
    """
    neigh = NeighboringFunction.gaussian(som.lattice.distances_from(bmu), sigma)
    mask = updatable(neigh)
    weights = som.prototypes
    weights[mask] += alpha * neigh[mask, np.newaxis] * (x - weights[mask])
    return mask


def accumulate_batch(
    som: SelfOrganizingMap,
    bmu: PrototypeNeuron,
    x: np.ndarray,
    sigma: float,
    numerator: np.ndarray,
    denominator: np.ndarray,
    scale: float = 1.0,
) -> None:
    """Add one input's neighborhood-weighted contribution to the batch sums"""
    neigh = NeighboringFunction.gaussian(som.lattice.distances_from(bmu), sigma)
    mask = updatable(neigh)
    contribution = scale * neigh[mask]
    numerator[mask] += contribution[:, np.newaxis] * x
    denominator[mask] += contribution


def apply_batch(
    som: SelfOrganizingMap, numerator: np.ndarray, denominator: np.ndarray
) -> None:
    """Replace prototypes by the accumulated ratio where any input contributed"""
    touched = denominator > 0
    som.prototypes[touched] = numerator[touched] / denominator[touched, np.newaxis]


class OfflineLearning(ABC):
    """
    Epoch-based training of a SelfOrganizingMap over a finite dataset.

    Subclasses define the epoch sequence and what one epoch does; this class
    runs the loop, drives callbacks and honors ``stop_training`` between
    epochs.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.stop_training = False
        self.callbacks: List[Callback] = []

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def _epochs(self) -> List[int]:
        """Epoch identifiers, in training order"""

    @abstractmethod
    def _run_epoch(self, som: SelfOrganizingMap, data: np.ndarray, epoch: int) -> Dict:
        """Train one epoch and return its metrics"""

    def _prepare(self, som: SelfOrganizingMap, dataset) -> np.ndarray:
        if som is None:
            raise ValueError("som must not be None")
        return as_matrix(dataset, som.dimensionality)

    def _begin(self, som: SelfOrganizingMap, data: np.ndarray) -> None:
        """Hook to reset per-run state before the first epoch"""

    def train(
        self,
        som: SelfOrganizingMap,
        dataset,
        callbacks: Optional[List[Callback]] = None,
    ) -> "OfflineLearning":
        """
        Train ``som`` on ``dataset``.

        Args:
            som: map to train in place
            dataset: 2D array, sequence of vectors or items with ``.input``
            callbacks: optional list of callback objects

        Returns:
            self for method chaining
        """
        data = self._prepare(som, dataset)

        self.stop_training = False
        self.callbacks = list(callbacks or [])
        self._begin(som, data)

        for callback in self.callbacks:
            callback.on_training_begin(self)

        start_time = time.time()
        with trace_operation(
            "offline_training", learner=self.name, som=som.short_description()
        ):
            epochs_completed = self._train_loop(som, data)
        duration = time.time() - start_time

        for callback in self.callbacks:
            callback.on_training_end(self)

        log_training_metrics(
            self.name, som.width, som.height, duration, epochs_completed * len(data)
        )
        som.metadata["total_epochs"] += epochs_completed
        som.metadata["total_samples_seen"] += len(data) * epochs_completed
        return self

    def _train_loop(self, som: SelfOrganizingMap, data: np.ndarray) -> int:
        epochs = self._epochs()
        iterator: Iterable[int] = epochs
        if self.verbose:
            iterator = tqdm(epochs, desc=f"Training {som.short_description()}")

        epochs_completed = 0
        for epoch in iterator:
            if self.stop_training:
                logger.info("Training stopped", learner=self.name, epoch=epoch)
                break

            for callback in self.callbacks:
                callback.on_epoch_begin(epoch, self)

            metrics = self._run_epoch(som, data, epoch)

            if self.verbose:
                iterator.set_postfix(
                    {"QE": f"{metrics.get('qe', 0):.4f}", "σ": f"{metrics['sigma']:.3f}"}
                )

            for callback in self.callbacks:
                callback.on_epoch_end(epoch, self, metrics)

            epochs_completed += 1

        return epochs_completed


class ClassicLearning(OfflineLearning):
    """
    The online Kohonen algorithm, adjusting prototypes after every input.

    ``alpha`` and ``sigma`` decay exponentially over the ordering iterations
    (``order_epochs * n_samples``) and stay at their final values during
    fine tuning.
    """

    def __init__(
        self,
        i_alpha: float,
        f_alpha: float,
        i_sigma: float,
        f_sigma: float,
        order_epochs: int,
        fine_tune_epochs: int,
        shuffle: bool = False,
        seed: Optional[int] = None,
        verbose: bool = False,
    ):
        super().__init__(verbose)
        self.config = ClassicLearningConfig(
            i_alpha=i_alpha,
            f_alpha=f_alpha,
            i_sigma=i_sigma,
            f_sigma=f_sigma,
            order_epochs=order_epochs,
            fine_tune_epochs=fine_tune_epochs,
            shuffle=shuffle,
            seed=seed,
        )
        self.rng = np.random.RandomState(seed)
        self.iteration = 0
        self._order_iterations = 0

    @classmethod
    def from_config(
        cls, config: ClassicLearningConfig, verbose: bool = False
    ) -> "ClassicLearning":
        return cls(verbose=verbose, **config.to_dict())

    def _epochs(self) -> List[int]:
        total = self.config.order_epochs + self.config.fine_tune_epochs
        return list(range(1, total + 1))

    def _begin(self, som: SelfOrganizingMap, data: np.ndarray) -> None:
        self.iteration = 0
        self._order_iterations = len(data) * self.config.order_epochs

    def _run_epoch(self, som: SelfOrganizingMap, data: np.ndarray, epoch: int) -> Dict:
        config = self.config
        order = self.rng.permutation(len(data)) if config.shuffle else range(len(data))

        total_error = 0.0
        alpha = sigma = 0.0
        for i in order:
            x = data[i]
            alpha = DecayFunction.exponential(
                config.i_alpha, config.f_alpha, self.iteration, self._order_iterations
            )
            sigma = DecayFunction.exponential(
                config.i_sigma, config.f_sigma, self.iteration, self._order_iterations
            )

            index, distance = som._nearest(x)
            total_error += distance
            kohonen_update(som, som.neurons[index], x, alpha, sigma)
            som.prototypes_updated()

            self.iteration += 1

        return {"qe": total_error / len(data), "alpha": alpha, "sigma": sigma}


class BatchLearning(OfflineLearning):
    """
    The batch SOM algorithm: prototypes are replaced once per epoch by the
    neighborhood-weighted mean of the inputs.

    Ordering epochs keep ``sigma`` at its initial value; convergence epochs
    decay it exponentially to the final value.
    """

    def __init__(
        self,
        i_sigma: float,
        f_sigma: float,
        order_epochs: int,
        convergence_epochs: int,
        verbose: bool = False,
    ):
        super().__init__(verbose)
        self.config = BatchLearningConfig(
            i_sigma=i_sigma,
            f_sigma=f_sigma,
            order_epochs=order_epochs,
            convergence_epochs=convergence_epochs,
        )

    @classmethod
    def from_config(
        cls, config: BatchLearningConfig, verbose: bool = False
    ) -> "BatchLearning":
        return cls(verbose=verbose, **config.to_dict())

    def _epochs(self) -> List[int]:
        # Non-positive epochs are the ordering phase
        return list(
            range(-self.config.order_epochs + 1, self.config.convergence_epochs + 1)
        )

    def sigma_at(self, epoch: int) -> float:
        config = self.config
        if epoch <= 0:
            return config.i_sigma
        return DecayFunction.exponential(
            config.i_sigma, config.f_sigma, epoch, config.convergence_epochs
        )

    def _run_epoch(self, som: SelfOrganizingMap, data: np.ndarray, epoch: int) -> Dict:
        sigma = self.sigma_at(epoch)
        numerator = np.zeros_like(som.prototypes)
        denominator = np.zeros(som.n_neurons)

        total_error = 0.0
        for x in data:
            index, distance = som._nearest(x)
            total_error += distance
            accumulate_batch(som, som.neurons[index], x, sigma, numerator, denominator)

        apply_batch(som, numerator, denominator)
        som.prototypes_updated()

        return {"qe": total_error / len(data), "sigma": sigma}


class MicroCategoryBatchLearning(OfflineLearning):
    """
    Batch training over a StreamART2A codebook instead of raw inputs.

    Each micro-category contributes with its prototype scaled by
    ``weight / max_weight``; ``sigma`` decays by epoch over the ordering
    epochs.
    """

    def __init__(
        self,
        i_sigma: float,
        f_sigma: float,
        order_epochs: int,
        fine_tune_epochs: int,
        verbose: bool = False,
    ):
        super().__init__(verbose)
        require_non_negative(i_sigma, "i_sigma")
        require_non_negative(f_sigma, "f_sigma")
        require_non_negative(order_epochs, "order_epochs")
        require_non_negative(fine_tune_epochs, "fine_tune_epochs")
        self.i_sigma = i_sigma
        self.f_sigma = f_sigma
        self.order_epochs = order_epochs
        self.fine_tune_epochs = fine_tune_epochs
        self._scales = np.zeros(0)

    def _prepare(self, som: SelfOrganizingMap, categories) -> np.ndarray:
        if som is None:
            raise ValueError("som must not be None")
        if categories is None:
            raise ValueError("categories must not be None")
        categories = list(categories)
        if not categories:
            raise ValueError("Codebook is empty")

        data = as_matrix([c.prototype for c in categories], som.dimensionality)
        weights = np.array([c.weight for c in categories], dtype=np.float64)
        self._scales = weights / weights.max()
        return data

    def _epochs(self) -> List[int]:
        return list(range(1, self.order_epochs + self.fine_tune_epochs + 1))

    def _run_epoch(self, som: SelfOrganizingMap, data: np.ndarray, epoch: int) -> Dict:
        sigma = DecayFunction.exponential(
            self.i_sigma, self.f_sigma, epoch, self.order_epochs
        )
        numerator = np.zeros_like(som.prototypes)
        denominator = np.zeros(som.n_neurons)

        total_error = 0.0
        for x, scale in zip(data, self._scales):
            index, distance = som._nearest(x)
            total_error += scale * distance
            accumulate_batch(
                som, som.neurons[index], x, sigma, numerator, denominator, scale
            )

        apply_batch(som, numerator, denominator)
        som.prototypes_updated()

        return {"qe": total_error / self._scales.sum(), "sigma": sigma}

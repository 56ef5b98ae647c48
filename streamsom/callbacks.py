"""
Observer and callback hooks for monitoring and intervention during training
"""

from abc import ABC, abstractmethod
from typing import Dict, List, TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from .learning import OfflineLearning

logger = structlog.get_logger(__name__)


class Observer(ABC):
    """Receives change notifications from an Observable"""

    @abstractmethod
    def on_notify(self, subject: "Observable") -> None:
        pass


class Observable:
    """
    Subscribe/unsubscribe registry with synchronous dispatch.

    Observers run in-line on the notifying thread, in no particular order.
    Expensive observers should hand the work off to their own event loop.
    """

    def __init__(self):
        self._observers: List[Observer] = []

    def add_observer(self, observer: Observer) -> None:
        if observer is None:
            raise ValueError("observer must not be None")
        if observer not in self._observers:
            self._observers.append(observer)

    def remove_observer(self, observer: Observer) -> None:
        if observer is None:
            raise ValueError("observer must not be None")
        if observer in self._observers:
            self._observers.remove(observer)

    @property
    def observers(self) -> List[Observer]:
        return list(self._observers)

    def notify_observers(self) -> None:
        for observer in list(self._observers):
            observer.on_notify(self)


class Callback(ABC):
    """Abstract base class for offline training callbacks"""

    @abstractmethod
    def on_epoch_begin(self, epoch: int, learner: "OfflineLearning") -> None:
        pass

    @abstractmethod
    def on_epoch_end(
        self, epoch: int, learner: "OfflineLearning", metrics: Dict
    ) -> None:
        pass

    @abstractmethod
    def on_training_begin(self, learner: "OfflineLearning") -> None:
        pass

    @abstractmethod
    def on_training_end(self, learner: "OfflineLearning") -> None:
        pass


class EarlyStoppingCallback(Callback):
    """Stop offline training once a monitored metric stops improving"""

    def __init__(
        self, monitor: str = "qe", patience: int = 10, min_delta: float = 1e-4
    ):
        self.monitor = monitor
        self.patience = patience
        self.min_delta = min_delta
        self.best_value = float("inf")
        self.wait = 0

    def on_epoch_begin(self, epoch: int, learner: "OfflineLearning") -> None:
        pass

    def on_epoch_end(
        self, epoch: int, learner: "OfflineLearning", metrics: Dict
    ) -> None:
        current_value = metrics.get(self.monitor, float("inf"))
        if current_value < self.best_value - self.min_delta:
            self.best_value = current_value
            self.wait = 0
        else:
            self.wait += 1
            if self.wait >= self.patience:
                learner.stop_training = True
                logger.info(
                    "Early stopping triggered",
                    epoch=epoch,
                    monitor=self.monitor,
                    best_value=self.best_value,
                )

    def on_training_begin(self, learner: "OfflineLearning") -> None:
        self.best_value = float("inf")
        self.wait = 0

    def on_training_end(self, learner: "OfflineLearning") -> None:
        pass


class HistoryCallback(Callback):
    """Record per-epoch metrics and schedule values"""

    def __init__(self):
        self.history: List[Dict] = []

    def on_epoch_begin(self, epoch: int, learner: "OfflineLearning") -> None:
        pass

    def on_epoch_end(
        self, epoch: int, learner: "OfflineLearning", metrics: Dict
    ) -> None:
        self.history.append({"epoch": epoch, **metrics})

    def on_training_begin(self, learner: "OfflineLearning") -> None:
        self.history = []

    def on_training_end(self, learner: "OfflineLearning") -> None:
        pass

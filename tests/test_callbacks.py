"""
Tests for observer and callback functionality
"""

import pytest
from unittest.mock import MagicMock

from streamsom import BasicSOM, ClassicLearning
from streamsom.callbacks import (
    Callback,
    EarlyStoppingCallback,
    HistoryCallback,
    Observable,
    Observer,
)


class CountingObserver(Observer):
    def __init__(self):
        self.subjects = []

    def on_notify(self, subject):
        self.subjects.append(subject)


@pytest.mark.unit
class TestObservable:
    """Test the observer registry"""

    def test_notify_reaches_every_observer(self):
        subject = Observable()
        first, second = CountingObserver(), CountingObserver()
        subject.add_observer(first)
        subject.add_observer(second)

        subject.notify_observers()

        assert first.subjects == [subject]
        assert second.subjects == [subject]

    def test_duplicate_registration_ignored(self):
        subject = Observable()
        observer = CountingObserver()
        subject.add_observer(observer)
        subject.add_observer(observer)

        subject.notify_observers()

        assert len(observer.subjects) == 1
        assert subject.observers == [observer]

    def test_remove_unknown_observer_is_noop(self):
        subject = Observable()
        subject.remove_observer(CountingObserver())
        assert subject.observers == []

    def test_none_observer_rejected(self):
        subject = Observable()
        with pytest.raises(ValueError):
            subject.add_observer(None)
        with pytest.raises(ValueError):
            subject.remove_observer(None)

    def test_observer_may_unsubscribe_during_dispatch(self):
        subject = Observable()

        class OneShot(Observer):
            calls = 0

            def on_notify(self, s):
                OneShot.calls += 1
                s.remove_observer(self)

        subject.add_observer(OneShot())
        subject.notify_observers()
        subject.notify_observers()

        assert OneShot.calls == 1


@pytest.mark.integration
class TestEarlyStoppingCallback:
    """Test early stopping callback functionality"""

    @pytest.mark.unit
    def test_early_stopping_creation(self):
        callback = EarlyStoppingCallback(monitor="qe", patience=5, min_delta=1e-3)
        assert callback.monitor == "qe"
        assert callback.patience == 5
        assert callback.min_delta == 1e-3
        assert callback.best_value == float("inf")
        assert callback.wait == 0

    @pytest.mark.unit
    def test_sets_stop_flag_after_patience(self):
        callback = EarlyStoppingCallback(patience=2, min_delta=0.0)
        learner = MagicMock()
        learner.stop_training = False

        callback.on_epoch_end(1, learner, {"qe": 1.0})
        callback.on_epoch_end(2, learner, {"qe": 1.0})
        assert learner.stop_training is False

        callback.on_epoch_end(3, learner, {"qe": 1.0})
        assert learner.stop_training is True

    @pytest.mark.unit
    def test_improvement_resets_wait(self):
        callback = EarlyStoppingCallback(patience=2)
        learner = MagicMock()
        callback.on_epoch_end(1, learner, {"qe": 1.0})
        callback.on_epoch_end(2, learner, {"qe": 1.0})
        callback.on_epoch_end(3, learner, {"qe": 0.5})
        assert callback.wait == 0
        assert callback.best_value == 0.5

    @pytest.mark.unit
    def test_early_stopping_reset_on_training_begin(self):
        callback = EarlyStoppingCallback(patience=5)
        callback.best_value = 0.5
        callback.wait = 3

        callback.on_training_begin(None)

        assert callback.best_value == float("inf")
        assert callback.wait == 0

    @pytest.mark.slow
    def test_early_stopping_trigger(self, small_data):
        som = BasicSOM(3, 3, 2, seed=42)
        callback = EarlyStoppingCallback(monitor="qe", patience=3, min_delta=1.0)
        learner = ClassicLearning(0.1, 0.01, 1.0, 0.1, 50, 50)

        learner.train(som, small_data, callbacks=[callback])

        # No epoch can improve QE by a full unit
        assert som.metadata["total_epochs"] == 4


@pytest.mark.unit
class TestHistoryCallback:
    """Test metric history recording"""

    def test_records_every_epoch(self, small_data):
        som = BasicSOM(2, 2, 2, seed=1)
        history = HistoryCallback()

        ClassicLearning(0.1, 0.01, 1.0, 0.1, 2, 3).train(
            som, small_data, callbacks=[history]
        )

        assert [entry["epoch"] for entry in history.history] == [1, 2, 3, 4, 5]
        assert set(history.history[0]) == {"epoch", "qe", "alpha", "sigma"}

    def test_reset_on_training_begin(self):
        history = HistoryCallback()
        history.history = [{"epoch": 1}]
        history.on_training_begin(None)
        assert history.history == []

    def test_callback_order(self, small_data):
        som = BasicSOM(2, 2, 2, seed=1)
        callback = MagicMock(spec=Callback)

        learner = ClassicLearning(0.1, 0.01, 1.0, 0.1, 1, 0)
        learner.train(som, small_data, callbacks=[callback])

        names = [call[0] for call in callback.method_calls]
        assert names == [
            "on_training_begin",
            "on_epoch_begin",
            "on_epoch_end",
            "on_training_end",
        ]

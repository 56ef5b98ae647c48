"""
Tests for offline training algorithms
"""

import pytest
import numpy as np
from unittest.mock import MagicMock

from streamsom.art import MicroCategory
from streamsom.callbacks import Callback, Observer
from streamsom.config import BatchLearningConfig, ClassicLearningConfig, Topology
from streamsom.core import BasicSOM
from streamsom.learning import (
    BatchLearning,
    ClassicLearning,
    MicroCategoryBatchLearning,
    kohonen_update,
)


class StopAfter(Callback):
    """Request a stop at the end of a given epoch"""

    def __init__(self, epoch):
        self.epoch = epoch

    def on_epoch_begin(self, epoch, learner):
        pass

    def on_epoch_end(self, epoch, learner, metrics):
        if epoch == self.epoch:
            learner.stop_training = True

    def on_training_begin(self, learner):
        pass

    def on_training_end(self, learner):
        pass


@pytest.fixture
def square_som():
    return BasicSOM(2, 2, 2, lattice=Topology.RECTANGULAR, seed=0)


@pytest.mark.unit
class TestKohonenUpdate:
    """Test the single-input update rule"""

    def test_bmu_moves_toward_input(self, corner_som):
        bmu = corner_som.get(0, 0)
        kohonen_update(corner_som, bmu, np.array([0.2, 0.2]), 0.5, 1.0)
        np.testing.assert_array_almost_equal(bmu.prototype, [0.1, 0.1])

    def test_far_neurons_untouched_with_small_sigma(self, corner_som):
        before = corner_som.prototypes.copy()
        mask = kohonen_update(
            corner_som, corner_som.get(0, 0), np.array([0.2, 0.2]), 0.5, 0.1
        )
        assert mask.sum() == 1
        np.testing.assert_array_equal(corner_som.prototypes[1:], before[1:])

    def test_zero_sigma_updates_nothing(self, corner_som):
        before = corner_som.prototypes.copy()
        kohonen_update(corner_som, corner_som.get(0, 0), np.array([0.2, 0.2]), 0.5, 0.0)
        np.testing.assert_array_equal(corner_som.prototypes, before)


@pytest.mark.integration
class TestClassicLearning:
    """Test the online Kohonen trainer"""

    @pytest.mark.slow
    def test_reduces_quantization_error(self, square_som, two_clusters):
        before = square_som.quantization_error(two_clusters)

        ClassicLearning(0.5, 0.01, 1.0, 0.1, 50, 50).train(square_som, two_clusters)

        after = square_som.quantization_error(two_clusters)
        assert after < before
        assert after < 0.1

    def test_metadata_updated(self, square_som, small_data):
        ClassicLearning(0.1, 0.01, 1.0, 0.1, 2, 1).train(square_som, small_data)
        assert square_som.metadata["total_epochs"] == 3
        assert square_som.metadata["total_samples_seen"] == 30

    def test_observers_notified_per_sample(self, square_som, small_data):
        observer = MagicMock(spec=Observer)
        square_som.add_observer(observer)

        ClassicLearning(0.1, 0.01, 1.0, 0.1, 1, 1).train(square_som, small_data)

        assert observer.on_notify.call_count == 2 * len(small_data)

    def test_stop_training_between_epochs(self, square_som, small_data):
        learner = ClassicLearning(0.1, 0.01, 1.0, 0.1, 10, 10)
        learner.train(square_som, small_data, callbacks=[StopAfter(3)])
        assert square_som.metadata["total_epochs"] == 3

    def test_stop_flag_reset_on_next_run(self, square_som, small_data):
        learner = ClassicLearning(0.1, 0.01, 1.0, 0.1, 2, 2)
        learner.train(square_som, small_data, callbacks=[StopAfter(1)])
        learner.train(square_som, small_data)
        assert square_som.metadata["total_epochs"] == 5

    def test_shuffle_is_reproducible(self, small_data):
        results = []
        for _ in range(2):
            som = BasicSOM(2, 2, 2, seed=3)
            ClassicLearning(0.3, 0.01, 1.0, 0.1, 3, 2, shuffle=True, seed=11).train(
                som, small_data
            )
            results.append(som.prototypes.copy())
        np.testing.assert_array_equal(results[0], results[1])

    def test_invalid_data_leaves_map_untouched(self, square_som):
        before = square_som.prototypes.copy()
        with pytest.raises(ValueError, match="Expected 2 features"):
            ClassicLearning(0.1, 0.01, 1.0, 0.1, 1, 1).train(
                square_som, np.zeros((5, 3))
            )
        np.testing.assert_array_equal(square_som.prototypes, before)

    def test_none_map_rejected(self, small_data):
        with pytest.raises(ValueError, match="som"):
            ClassicLearning(0.1, 0.01, 1.0, 0.1, 1, 1).train(None, small_data)

    def test_invalid_parameters_rejected(self):
        with pytest.raises(ValueError, match="i_alpha"):
            ClassicLearning(-0.1, 0.01, 1.0, 0.1, 1, 1)

    def test_from_config(self):
        learner = ClassicLearning.from_config(ClassicLearningConfig(order_epochs=3))
        assert learner.config.order_epochs == 3
        assert learner.name == "ClassicLearning"

    def test_accepts_items_with_input_attribute(self, square_som):
        class Sample:
            def __init__(self, values):
                self.input = values

        dataset = [Sample([0.1, 0.2]), Sample([0.8, 0.9])]
        ClassicLearning(0.1, 0.01, 1.0, 0.1, 1, 0).train(square_som, dataset)
        assert square_som.metadata["total_samples_seen"] == 2

    def test_verbose_progress(self, square_som, small_data):
        learner = ClassicLearning(0.1, 0.01, 1.0, 0.1, 1, 1, verbose=True)
        assert learner.train(square_som, small_data) is learner


@pytest.mark.integration
class TestBatchLearning:
    """Test the batch trainer"""

    def test_sigma_schedule(self):
        learner = BatchLearning(2.0, 0.1, order_epochs=3, convergence_epochs=4)
        assert learner._epochs() == [-2, -1, 0, 1, 2, 3, 4]
        assert learner.sigma_at(-2) == 2.0
        assert learner.sigma_at(0) == 2.0
        assert learner.sigma_at(4) == pytest.approx(0.1)
        assert learner.sigma_at(1) < 2.0

    def test_reduces_quantization_error(self, square_som, two_clusters):
        before = square_som.quantization_error(two_clusters)

        BatchLearning(1.0, 0.1, 5, 10).train(square_som, two_clusters)

        assert square_som.quantization_error(two_clusters) < before
        assert square_som.metadata["total_epochs"] == 15

    def test_small_sigma_gives_voronoi_means(self, corner_som):
        data = np.array([[0.1, 0.0], [0.0, 0.1], [0.9, 1.0]])
        BatchLearning(0.1, 0.1, 0, 1).train(corner_som, data)

        np.testing.assert_array_almost_equal(corner_som.get(0, 0).prototype, [0.05, 0.05])
        np.testing.assert_array_almost_equal(corner_som.get(1, 1).prototype, [0.9, 1.0])
        # Neurons that won no input keep their prototype
        np.testing.assert_array_almost_equal(corner_som.get(1, 0).prototype, [1.0, 0.0])

    def test_from_config(self):
        learner = BatchLearning.from_config(BatchLearningConfig(order_epochs=2))
        assert learner.config.order_epochs == 2


@pytest.mark.integration
class TestMicroCategoryBatchLearning:
    """Test batch training over a micro-category codebook"""

    def test_converges_to_categories(self):
        som = BasicSOM(2, 1, 2, lattice=Topology.RECTANGULAR)
        som.get(0, 0).prototype = [0.2, 0.2]
        som.get(1, 0).prototype = [0.8, 0.8]
        categories = [
            MicroCategory(np.array([0.1, 0.1]), 0.1, weight=10),
            MicroCategory(np.array([0.9, 0.9]), 0.1, weight=5),
        ]

        MicroCategoryBatchLearning(1.0, 0.1, 5, 5).train(som, categories)

        np.testing.assert_array_almost_equal(som.get(0, 0).prototype, [0.1, 0.1])
        np.testing.assert_array_almost_equal(som.get(1, 0).prototype, [0.9, 0.9])

    def test_empty_codebook_rejected(self, square_som):
        with pytest.raises(ValueError, match="Codebook is empty"):
            MicroCategoryBatchLearning(1.0, 0.1, 1, 1).train(square_som, [])

    def test_none_codebook_rejected(self, square_som):
        with pytest.raises(ValueError, match="categories"):
            MicroCategoryBatchLearning(1.0, 0.1, 1, 1).train(square_som, None)

    def test_dimension_mismatch_rejected(self, square_som):
        categories = [MicroCategory(np.array([0.1, 0.1, 0.1]), 0.1)]
        with pytest.raises(ValueError, match="Expected 2 features"):
            MicroCategoryBatchLearning(1.0, 0.1, 1, 1).train(square_som, categories)

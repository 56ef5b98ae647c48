"""
Pytest configuration and fixtures for streamsom tests
"""

import pytest
import numpy as np
from streamsom import (
    BasicSOM,
    SOMConfig,
    Topology,
    DistanceMetric,
)


@pytest.fixture
def sample_data():
    """Generate sample 3D data for testing"""
    np.random.seed(42)
    return np.random.random((50, 3))


@pytest.fixture
def small_data():
    """Generate small 2D dataset for quick tests"""
    np.random.seed(42)
    return np.random.random((10, 2))


@pytest.fixture
def two_clusters():
    """Two tight 2D clusters around (0.1, 0.1) and (0.9, 0.9)"""
    rng = np.random.RandomState(7)
    low = 0.1 + rng.normal(0, 0.02, size=(20, 2))
    high = 0.9 + rng.normal(0, 0.02, size=(20, 2))
    return np.vstack([low, high])


@pytest.fixture
def basic_config():
    """Basic SOM configuration for testing"""
    return SOMConfig(width=5, height=5, dimensionality=3, seed=42)


@pytest.fixture
def minimal_config():
    """Minimal SOM configuration for quick tests"""
    return SOMConfig(
        width=3,
        height=3,
        dimensionality=2,
        topology=Topology.RECTANGULAR,
        seed=42,
    )


@pytest.fixture
def corner_som():
    """2x2 rectangular map pinned to the corners of the unit square"""
    som = BasicSOM(2, 2, 2, lattice=Topology.RECTANGULAR, seed=0)
    som.get(0, 0).prototype = [0.0, 0.0]
    som.get(0, 1).prototype = [0.0, 1.0]
    som.get(1, 0).prototype = [1.0, 0.0]
    som.get(1, 1).prototype = [1.0, 1.0]
    return som


@pytest.fixture
def all_topologies():
    return list(Topology)


@pytest.fixture
def all_distance_metrics():
    """All distance metrics for testing"""
    return [
        DistanceMetric.EUCLIDEAN,
        DistanceMetric.MANHATTAN,
        DistanceMetric.COSINE,
        DistanceMetric.CHEBYSHEV,
    ]

"""
Test neighborhood queries, parameter validation and spatial indexes
"""

import numpy as np
import pytest

from dbscan_engine.clustering import NOISE, InvalidParameterError, validate_parameters
from dbscan_engine.clustering.metrics import euclidean
from dbscan_engine.clustering.utils import (
    SpatialIndex,
    as_point_array,
    build_spatial_index,
    cluster_stats,
    region_query,
    vectorized_region_query
)


def test_region_query_includes_self_and_is_ordered():
    objects = [5.0, 0.0, 4.5, 9.0, 5.5]
    neighbors = region_query(objects, lambda a, b: abs(a - b), 0, 1.0)
    assert neighbors == [0, 2, 4]


def test_region_query_does_not_evaluate_self_pair():
    calls = []

    def metric(a, b):
        calls.append((a, b))
        return abs(a - b)

    objects = [0.0, 1.0, 2.0, 3.0]
    region_query(objects, metric, 1, 5.0)

    assert len(calls) == len(objects) - 1
    assert (1.0, 1.0) not in calls


def test_region_query_singleton():
    # metric(x, x) may be non-zero, the point is still its own neighbor
    assert region_query([1.0, 2.0], lambda a, b: 100.0, 1, 0.5) == [1]


def test_region_query_is_strict():
    assert region_query([0.0, 1.0, 2.0], lambda a, b: abs(a - b), 0, 1.0) == [0]


def test_vectorized_region_query_matches_linear_scan():
    rng = np.random.default_rng(1)
    points = rng.normal(size=(60, 3))

    for i in (0, 17, 59):
        assert vectorized_region_query(points, 'euclidean', i, 1.0) == \
            region_query(points, euclidean, i, 1.0)


def test_as_point_array():
    assert as_point_array([[0, 1], [2, 3]]) is None
    assert as_point_array(np.arange(4)) is None
    assert as_point_array(np.array([['a', 'b']])) is None

    converted = as_point_array(np.arange(6).reshape(3, 2))
    assert converted.dtype == np.float64
    assert converted.flags['C_CONTIGUOUS']


@pytest.mark.parametrize('epsilon, min_points', [(0.5, 1), (2, 10), (np.float64(0.1), np.int64(3))])
def test_validate_parameters_accepts(epsilon, min_points):
    validate_parameters(epsilon, min_points)


@pytest.mark.parametrize('epsilon, min_points', [
    (0.0, 1),
    (-0.1, 1),
    (float('nan'), 1),
    (None, 1),
    (True, 1),
    (1.0, 0),
    (1.0, -3),
    (1.0, 2.0),
    (1.0, None),
])
def test_validate_parameters_rejects(epsilon, min_points):
    with pytest.raises(InvalidParameterError):
        validate_parameters(epsilon, min_points)


def test_kdtree_index_matches_linear_scan():
    rng = np.random.default_rng(2)
    points = rng.uniform(0, 10, size=(80, 2))

    index = build_spatial_index(points, 'kdtree', 'euclidean')
    assert isinstance(index, SpatialIndex)

    for i in range(0, 80, 7):
        assert region_query(points, euclidean, i, 1.2, index) == region_query(points, euclidean, i, 1.2)


def test_build_spatial_index_fallbacks():
    points = np.zeros((5, 2))

    with pytest.warns(UserWarning):
        assert build_spatial_index([[0.0, 0.0]], 'kdtree', 'euclidean') is None
    with pytest.warns(UserWarning):
        assert build_spatial_index(points, 'kdtree', 'haversine') is None
    with pytest.warns(UserWarning):
        assert build_spatial_index(points, 'balltree', None) is None
    with pytest.warns(UserWarning):
        assert build_spatial_index(points, 'octree', 'euclidean') is None


def test_cluster_stats():
    labels = np.array([2, 2, 3, NOISE, 3, 3])
    core = np.array([True, False, True, False, True, False])

    stats = cluster_stats(labels, [0, 2], core)

    assert stats == {
        'n_clusters': 2,
        'n_noise': 1,
        'n_core_points': 3,
        'cluster_sizes': {2: 2, 3: 3}
    }

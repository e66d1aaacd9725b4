"""
Test DensityClustering (DBSCAN driver, cluster expansion and neighborhood queries)
"""

import numpy as np
import pytest
from sklearn.cluster import DBSCAN
from sklearn.metrics import adjusted_rand_score

from dbscan_engine.clustering import (
    FIRST_CLUSTER,
    NOISE,
    UNCLASSIFIED,
    DensityClustering,
    InvalidParameterError,
    dbscan
)
from dbscan_engine.clustering.metrics import euclidean


def absolute_difference(a, b):
    return abs(a - b)


def graph_metric(edges):
    """距离为1的点对由edges给出，其他点对的距离为10"""
    close = {frozenset(e) for e in edges}

    def metric(a, b):
        if a == b:
            return 0.0
        return 1.0 if frozenset((a, b)) in close else 10.0

    return metric


def assert_valid_partition(clusterer):
    labels = clusterer.labels_
    assert not np.any(labels == UNCLASSIFIED), "no point may stay unclassified"

    cluster_ids = sorted(set(int(l) for l in labels if l >= FIRST_CLUSTER))
    assert cluster_ids == list(range(FIRST_CLUSTER, FIRST_CLUSTER + clusterer.total_clusters_))
    assert len(clusterer.medoid_ids) == clusterer.total_clusters_
    assert clusterer.current_cluster_id_ == FIRST_CLUSTER + clusterer.total_clusters_

    for i, medoid in enumerate(clusterer.medoid_ids):
        assert labels[medoid] == FIRST_CLUSTER + i


def test_constants():
    assert (UNCLASSIFIED, NOISE, FIRST_CLUSTER) == (0, 1, 2)
    assert DensityClustering.NOISE == NOISE
    assert DensityClustering.FIRST_CLUSTER == FIRST_CLUSTER


def test_line_scenario(line_points):
    """Two clusters on the real line, the far point is noise."""
    clusterer = DensityClustering(epsilon=2, min_points=2, metric=absolute_difference)
    clusterer.fit(line_points)

    assert clusterer.labels_.tolist() == [2, 2, 2, 3, 3, NOISE]
    assert clusterer.medoid_ids == [0, 3]
    assert clusterer.total_clusters_ == 2
    assert clusterer.core_sample_indices_.tolist() == [0, 1, 2, 3, 4]
    # 0 -> 1 -> 2, 3 -> 4, 5
    assert clusterer.n_queries_ == 6
    assert_valid_partition(clusterer)


@pytest.mark.parametrize('metric', ['absolute', 'euclidean', absolute_difference])
def test_line_scenario_with_named_metrics(line_points, metric):
    clusterer = dbscan(line_points, metric, epsilon=2, min_points=2)
    assert clusterer.labels_.tolist() == [2, 2, 2, 3, 3, NOISE]


def test_vectorized_query_matches_generic_query(line_points):
    points = np.array(line_points).reshape(-1, 1)

    fast = DensityClustering(epsilon=2, min_points=2, metric='euclidean').fit(points)
    slow = DensityClustering(epsilon=2, min_points=2, metric=lambda a, b: euclidean(a, b)).fit(points)

    assert fast.labels_.tolist() == [2, 2, 2, 3, 3, NOISE]
    assert np.array_equal(fast.labels_, slow.labels_)
    assert fast.medoid_ids == slow.medoid_ids
    assert fast.n_queries_ == slow.n_queries_
    assert np.array_equal(fast.components_, points[[0, 3]])


def test_neighborhood_uses_strict_inequality():
    # 距离恰好等于epsilon的点不是邻居
    clusterer = dbscan([0.0, 2.0], 'absolute', epsilon=2.0, min_points=2)
    assert clusterer.labels_.tolist() == [NOISE, NOISE]
    assert clusterer.total_clusters_ == 0


def test_single_cluster_when_epsilon_covers_everything(line_points):
    clusterer = dbscan(line_points, 'absolute', epsilon=100.0, min_points=1)

    assert clusterer.total_clusters_ == 1
    assert clusterer.labels_.tolist() == [FIRST_CLUSTER] * len(line_points)
    assert clusterer.medoid_ids == [0]


def test_min_points_one_makes_every_point_a_cluster(line_points):
    clusterer = dbscan(line_points, 'absolute', epsilon=0.5, min_points=1)

    assert clusterer.total_clusters_ == len(line_points)
    assert clusterer.labels_.tolist() == list(range(FIRST_CLUSTER, FIRST_CLUSTER + len(line_points)))
    assert clusterer.medoid_ids == list(range(len(line_points)))


def test_everything_is_noise_when_epsilon_is_tiny(line_points):
    clusterer = dbscan(line_points, 'absolute', epsilon=0.5, min_points=2)

    assert clusterer.labels_.tolist() == [NOISE] * len(line_points)
    assert clusterer.medoid_ids == []
    assert clusterer.total_clusters_ == 0
    assert clusterer.get_cluster_stats()['n_noise'] == len(line_points)


def test_empty_input():
    clusterer = dbscan([], 'absolute', epsilon=1.0, min_points=2)

    assert len(clusterer.labels_) == 0
    assert clusterer.medoid_ids == []
    assert clusterer.total_clusters_ == 0
    assert clusterer.completed_


def test_noise_point_is_reclaimed_by_later_cluster():
    # 0 is examined first with only one neighbor, then reached from core point 1
    clusterer = dbscan([0.0, 1.0, 2.0, 2.5], 'absolute', epsilon=1.5, min_points=3)

    assert clusterer.labels_.tolist() == [2, 2, 2, 2]
    assert clusterer.medoid_ids == [1]
    assert clusterer.core_sample_indices_.tolist() == [1, 2]
    assert_valid_partition(clusterer)


def test_border_point_keeps_first_cluster():
    # 3 is a border point of both {0,1,2} and {4,5,6}
    edges = [(0, 1), (0, 2), (1, 2), (0, 3), (3, 4), (4, 5), (4, 6), (5, 6)]
    clusterer = dbscan(list(range(7)), graph_metric(edges), epsilon=2, min_points=4)

    assert clusterer.labels_.tolist() == [2, 2, 2, 2, 3, 3, 3]
    assert clusterer.medoid_ids == [0, 4]
    assert clusterer.core_sample_indices_.tolist() == [0, 4]


def test_isolated_point_is_noise(blobs):
    clusterer = DensityClustering(epsilon=1.5, min_points=4).fit(blobs)

    assert np.all(clusterer.labels_[-3:] == NOISE)
    assert clusterer.total_clusters_ == 3
    assert_valid_partition(clusterer)


def test_permutation_yields_same_cluster_sets(blobs):
    original = DensityClustering(epsilon=1.5, min_points=4).fit(blobs)

    perm = np.random.default_rng(7).permutation(len(blobs))
    permuted = DensityClustering(epsilon=1.5, min_points=4).fit(blobs[perm])

    original_sets = {frozenset(c) for c in original.partition.to_cluster_list()}
    permuted_sets = {
        frozenset(int(perm[i]) for i in c)
        for c in permuted.partition.to_cluster_list()
    }
    assert original_sets == permuted_sets

    noise = set(original.partition.noise_indices())
    assert {int(perm[i]) for i in permuted.partition.noise_indices()} == noise


def test_agrees_with_sklearn_on_separated_blobs(blobs):
    ours = DensityClustering(epsilon=1.5, min_points=4).fit(blobs)
    reference = DBSCAN(eps=1.5, min_samples=4).fit(blobs)

    assert np.array_equal(ours.labels_ == NOISE, reference.labels_ == -1)
    assert adjusted_rand_score(ours.labels_, reference.labels_) == pytest.approx(1.0)


def test_runs_are_deterministic(blobs):
    first = DensityClustering(epsilon=1.5, min_points=4).fit(blobs)
    second = DensityClustering(epsilon=1.5, min_points=4).fit(blobs)

    assert np.array_equal(first.labels_, second.labels_)
    assert first.medoid_ids == second.medoid_ids


def test_refit_resets_state(line_points):
    clusterer = DensityClustering(epsilon=2, min_points=2, metric='absolute')
    clusterer.fit(line_points)
    clusterer.fit(line_points[:3])

    assert clusterer.labels_.tolist() == [2, 2, 2]
    assert clusterer.medoid_ids == [0]
    assert clusterer.total_clusters_ == 1
    assert clusterer.current_cluster_id_ == FIRST_CLUSTER + 1


@pytest.mark.parametrize('epsilon, min_points', [
    (0, 2),
    (-1.0, 2),
    (float('nan'), 2),
    (float('inf'), 2),
    ('1.0', 2),
    (1.0, 0),
    (1.0, 1.5),
    (1.0, True),
])
def test_invalid_parameters_fail_before_scan(epsilon, min_points):
    calls = []

    def metric(a, b):
        calls.append((a, b))
        return abs(a - b)

    with pytest.raises(InvalidParameterError):
        dbscan([0.0, 1.0, 2.0], metric, epsilon=epsilon, min_points=min_points)

    assert calls == []


def test_invalid_parameter_error_is_value_error():
    assert issubclass(InvalidParameterError, ValueError)


def test_metric_failure_propagates(line_points):
    def failing_metric(a, b):
        if 20.0 in (a, b):
            raise RuntimeError("metric failed")
        return abs(a - b)

    clusterer = DensityClustering(epsilon=2, min_points=2, metric=failing_metric)
    with pytest.raises(RuntimeError, match="metric failed"):
        clusterer.fit(line_points)

    assert not clusterer.completed_
    assert clusterer.get_cluster_stats() == {}

    # 新的一次运行从干净的状态开始
    clusterer.dbscan(line_points, 'absolute', 2, 2)
    assert clusterer.completed_
    assert clusterer.labels_.tolist() == [2, 2, 2, 3, 3, NOISE]


def test_unknown_metric_name():
    with pytest.raises(ValueError, match="不支持的度量方式"):
        dbscan([0.0, 1.0], 'cosine-ish', epsilon=1.0, min_points=1)


def test_get_cluster_stats(line_points):
    clusterer = dbscan(line_points, 'absolute', epsilon=2, min_points=2)
    stats = clusterer.get_cluster_stats()

    assert stats['n_clusters'] == 2
    assert stats['n_noise'] == 1
    assert stats['n_core_points'] == 5
    assert stats['cluster_sizes'] == {2: 3, 3: 2}
    assert stats['n_queries'] == 6
    assert stats['execution_time'] >= 0


def test_spatial_index_matches_linear_scan(blobs):
    linear = DensityClustering(epsilon=1.5, min_points=4).fit(blobs)
    kdtree = DensityClustering(epsilon=1.5, min_points=4, spatial_index='kdtree').fit(blobs)
    balltree = DensityClustering(epsilon=1.5, min_points=4, spatial_index='balltree').fit(blobs)

    assert np.array_equal(linear.labels_, kdtree.labels_)
    assert np.array_equal(linear.labels_, balltree.labels_)
    assert linear.medoid_ids == kdtree.medoid_ids == balltree.medoid_ids


def test_haversine_balltree_matches_linear_scan():
    rng = np.random.default_rng(3)
    # 北京附近的两个热点区域
    centers = np.array([[39.90, 116.40], [39.99, 116.30]])
    points = np.vstack([c + rng.normal(scale=0.001, size=(30, 2)) for c in centers])

    linear = DensityClustering(epsilon=300.0, min_points=5, metric='haversine').fit(points)
    indexed = DensityClustering(epsilon=300.0, min_points=5, metric='haversine',
                                spatial_index='balltree').fit(points)

    assert linear.total_clusters_ == 2
    assert np.array_equal(linear.labels_, indexed.labels_)


def test_spatial_index_falls_back_for_custom_metric(line_points):
    with pytest.warns(UserWarning):
        clusterer = DensityClustering(epsilon=2, min_points=2, metric=absolute_difference,
                                      spatial_index='kdtree').fit(line_points)
    assert clusterer.labels_.tolist() == [2, 2, 2, 3, 3, NOISE]


def test_verbose_output(line_points, capsys):
    DensityClustering(epsilon=2, min_points=2, metric='absolute', verbose=True).fit(line_points)
    out = capsys.readouterr().out
    assert "发现 2 个聚类" in out


def test_partition_property(line_points):
    clusterer = dbscan(line_points, 'absolute', epsilon=2, min_points=2)

    assert clusterer.partition.cluster_ids is clusterer.labels_
    assert clusterer.partition.to_cluster_list() == [{0, 1, 2}, {3, 4}]
    assert clusterer.partition.is_medoid(3)
    assert not clusterer.partition.is_medoid(4)

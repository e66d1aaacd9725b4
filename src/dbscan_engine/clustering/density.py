"""
DBSCAN密度聚类
Ester等人在 "A Density-Based Algorithm for Discovering Clusters in Large
Spatial Databases with Noise" 中提出的经典算法
"""

import time
from collections import deque
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np

from .metrics import MetricLike, get_metric, has_row_kernel, metric_name
from .partition import FIRST_CLUSTER, NOISE, UNCLASSIFIED, Clusterer, PartitionState
from .utils import (
    as_point_array,
    build_spatial_index,
    cluster_stats,
    region_query,
    validate_parameters,
    vectorized_region_query,
)


class DensityClustering(Clusterer):
    """串行版本的DBSCAN聚类算法"""

    UNCLASSIFIED = UNCLASSIFIED
    NOISE = NOISE
    FIRST_CLUSTER = FIRST_CLUSTER

    def __init__(self, epsilon: float = 1.0, min_points: int = 2,
                 metric: MetricLike = 'euclidean',
                 spatial_index: Optional[str] = None,
                 verbose: bool = False):
        """
        初始化DBSCAN参数

        Args:
            epsilon: 邻域半径，两个对象的相异度严格小于它时互为邻居
            min_points: 核心点的最小邻域大小（包含自身）
            metric: 度量名称（见metrics.available_metrics）或可调用对象
            spatial_index: 可选的空间索引，'kdtree'或'balltree'
            verbose: 是否打印进度信息
        """
        self.epsilon = epsilon
        self.min_points = min_points
        self.metric = metric
        self.spatial_index = spatial_index
        self.verbose = verbose

        self._partition = PartitionState()
        self._core_mask = np.zeros(0, dtype=bool)
        self._query: Optional[Callable[[int], List[int]]] = None

        self.current_cluster_id_ = FIRST_CLUSTER
        self.total_clusters_ = 0
        self.n_queries_ = 0
        self.components_ = None
        self.completed_ = False
        self.execution_time = 0.0

    @property
    def partition(self) -> PartitionState:
        return self._partition

    @property
    def labels_(self) -> np.ndarray:
        return self._partition.cluster_ids

    @property
    def medoid_ids(self) -> List[int]:
        return self._partition.medoid_ids

    @property
    def core_sample_indices_(self) -> np.ndarray:
        return np.flatnonzero(self._core_mask)

    def fit(self, objects: Sequence[Any]) -> 'DensityClustering':
        """
        使用构造函数中的参数执行聚类

        Args:
            objects: 可索引的对象序列，例如形状为(n_samples, n_features)的numpy数组

        Returns:
            self: 返回聚类器实例
        """
        return self.dbscan(objects, self.metric, self.epsilon, self.min_points)

    def dbscan(self, objects: Sequence[Any], metric: MetricLike,
               epsilon: float, min_points: int) -> 'DensityClustering':
        """
        DBSCAN聚类

        对每个仍未分类的对象尝试扩展聚类，成功时记录代表点并递增聚类计数。
        度量函数抛出的异常会直接传播，此时部分修改的状态不可继续使用，
        需要重新调用fit/dbscan。

        Args:
            objects: 可索引的对象序列
            metric: 度量名称或可调用对象
            epsilon: 邻域半径
            min_points: 核心点的最小邻域大小

        Returns:
            self: 返回聚类器实例
        """
        validate_parameters(epsilon, min_points)
        dmetric = get_metric(metric)

        start_time = time.time()

        self.epsilon = epsilon
        self.min_points = min_points
        self.metric = metric

        n_objects = len(objects)
        self._partition.reset(n_objects)
        self._core_mask = np.zeros(n_objects, dtype=bool)
        self.current_cluster_id_ = FIRST_CLUSTER
        self.total_clusters_ = 0
        self.n_queries_ = 0
        self.components_ = None
        self.completed_ = False

        self._query = self._build_query(objects, dmetric)

        if self.verbose:
            print(f"DBSCAN聚类: {n_objects} 个对象, epsilon={epsilon}, min_points={min_points}")

        cluster_ids = self._partition.cluster_ids
        for i in range(n_objects):
            if cluster_ids[i] == UNCLASSIFIED:
                if self._expand_cluster(i):
                    self._partition.medoid_ids.append(i)
                    self.current_cluster_id_ += 1
                    self.total_clusters_ += 1

        if isinstance(objects, np.ndarray):
            self.components_ = objects[np.asarray(self.medoid_ids, dtype=np.intp)]

        self.completed_ = True
        self.execution_time = time.time() - start_time

        if self.verbose:
            print(f"发现 {self.total_clusters_} 个聚类，耗时 {self.execution_time:.4f} 秒")

        return self

    def _build_query(self, objects: Sequence[Any],
                     dmetric: Callable) -> Callable[[int], List[int]]:
        """根据对象类型和度量选择邻域查询方式"""
        name = metric_name(self.metric)

        if self.spatial_index is not None:
            index = build_spatial_index(objects, self.spatial_index, name)
            if index is not None:
                return lambda i: region_query(objects, dmetric, i, self.epsilon, index)

        points = as_point_array(objects) if has_row_kernel(name) else None
        if points is not None:
            return lambda i: vectorized_region_query(points, name, i, self.epsilon)

        return lambda i: region_query(objects, dmetric, i, self.epsilon)

    def _epsilon_range_query(self, point_idx: int) -> List[int]:
        neighbors = self._query(point_idx)
        self.n_queries_ += 1
        if len(neighbors) >= self.min_points:
            self._core_mask[point_idx] = True
        return neighbors

    def _expand_cluster(self, seed: int) -> bool:
        """
        从种子点扩展聚类

        Args:
            seed: 未分类的种子点索引

        Returns:
            是否形成了新的聚类（否则种子点被标记为噪声）
        """
        cluster_ids = self._partition.cluster_ids
        cluster_id = self.current_cluster_id_

        neighbors = self._epsilon_range_query(seed)

        if len(neighbors) < self.min_points:
            cluster_ids[seed] = NOISE
            return False

        # 将当前聚类ID分配给种子点的邻域，已属于其他聚类的点保持不变
        worklist = deque()
        for idx in neighbors:
            if cluster_ids[idx] == UNCLASSIFIED or cluster_ids[idx] == NOISE:
                cluster_ids[idx] = cluster_id
                if idx != seed:
                    worklist.append(idx)

        # 逐个扩展种子
        while worklist:
            current = worklist.popleft()
            current_neighbors = self._epsilon_range_query(current)

            if len(current_neighbors) < self.min_points:
                continue  # 边界点

            for idx in current_neighbors:
                label = cluster_ids[idx]
                if label == UNCLASSIFIED:
                    worklist.append(idx)
                    cluster_ids[idx] = cluster_id
                elif label == NOISE:
                    cluster_ids[idx] = cluster_id

        return True

    def get_cluster_stats(self) -> Dict[str, Any]:
        """
        获取聚类统计信息

        Returns:
            包含聚类统计信息的字典
        """
        if not self.completed_:
            return {}

        stats = cluster_stats(self.labels_, self.medoid_ids, self._core_mask)
        stats.update({
            'n_queries': self.n_queries_,
            'execution_time': self.execution_time
        })
        return stats


def dbscan(objects: Sequence[Any], metric: MetricLike, epsilon: float,
           min_points: int, **kwargs) -> DensityClustering:
    """
    对对象集合执行DBSCAN聚类的便捷函数

    Args:
        objects: 可索引的对象序列
        metric: 度量名称或可调用对象
        epsilon: 邻域半径
        min_points: 核心点的最小邻域大小
        **kwargs: 传给DensityClustering的其他参数（spatial_index, verbose）

    Returns:
        拟合完成的DensityClustering实例
    """
    return DensityClustering(epsilon=epsilon, min_points=min_points,
                             metric=metric, **kwargs).fit(objects)

"""
聚类工具函数
邻域查询、参数校验、空间索引以及聚类统计
"""

import math
import numbers
import warnings
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np
from scipy.spatial import KDTree
from sklearn.neighbors import BallTree

from .metrics import EARTH_RADIUS_M, distance_row
from .partition import FIRST_CLUSTER, NOISE

# 空间索引查询半径的放大系数，候选点随后用精确度量过滤
_RADIUS_SLACK = 1e-9


class InvalidParameterError(ValueError):
    """epsilon或min_points不合法"""


def validate_parameters(epsilon: float, min_points: int) -> None:
    """
    在扫描开始前检查聚类参数

    Args:
        epsilon: 邻域半径，必须是大于0的有限数
        min_points: 核心点的最小邻域大小（包含自身），必须是>=1的整数
    """
    if isinstance(epsilon, bool) or not isinstance(epsilon, numbers.Real):
        raise InvalidParameterError(f"epsilon必须是实数: {epsilon!r}")
    if not math.isfinite(epsilon) or epsilon <= 0:
        raise InvalidParameterError(f"epsilon必须大于0: {epsilon!r}")

    if isinstance(min_points, bool) or not isinstance(min_points, numbers.Integral):
        raise InvalidParameterError(f"min_points必须是整数: {min_points!r}")
    if min_points < 1:
        raise InvalidParameterError(f"min_points必须大于等于1: {min_points!r}")


def region_query(objects: Sequence[Any], metric: Callable, point_idx: int,
                 epsilon: float,
                 spatial_index: Optional['SpatialIndex'] = None) -> List[int]:
    """
    查找指定点epsilon邻域内的所有点（包含自身）

    Args:
        objects: 所有对象
        metric: 相异度函数
        point_idx: 目标点的索引
        epsilon: 邻域半径（严格小于）
        spatial_index: 可选的空间索引

    Returns:
        按升序排列的邻域点索引列表
    """
    if spatial_index is not None:
        return spatial_index.query(objects, metric, point_idx, epsilon)

    neighbors = []
    current = objects[point_idx]

    for i in range(len(objects)):
        if i == point_idx:
            neighbors.append(i)
            continue

        if metric(current, objects[i]) < epsilon:
            neighbors.append(i)

    return neighbors


def vectorized_region_query(points: np.ndarray, metric_name: str, point_idx: int,
                            epsilon: float) -> List[int]:
    """
    使用Numba行计算的邻域查询，结果与region_query一致

    Args:
        points: 形状为(n_samples, n_features)的float64数组
        metric_name: 已注册的度量名称
        point_idx: 目标点的索引
        epsilon: 邻域半径

    Returns:
        按升序排列的邻域点索引列表
    """
    mask = distance_row(points, point_idx, metric_name) < epsilon
    mask[point_idx] = True
    return np.flatnonzero(mask).tolist()


def as_point_array(objects: Sequence[Any]) -> Optional[np.ndarray]:
    """若对象是数值型二维数组则返回float64副本，否则返回None"""
    if not isinstance(objects, np.ndarray):
        return None
    if objects.ndim != 2 or not np.issubdtype(objects.dtype, np.number):
        return None
    return np.ascontiguousarray(objects, dtype=np.float64)


class SpatialIndex:
    """空间索引：先用树结构取候选点，再用精确度量过滤"""

    def __init__(self, method: str, tree: Any, points: np.ndarray, metric_name: str):
        self.method = method
        self.tree = tree
        self.points = points
        self.metric_name = metric_name

    def candidates(self, point_idx: int, epsilon: float) -> np.ndarray:
        radius = epsilon * (1.0 + _RADIUS_SLACK)

        if self.method == 'kdtree':
            return np.asarray(self.tree.query_ball_point(self.points[point_idx], radius),
                              dtype=np.intp)

        if self.metric_name == 'haversine':
            query = np.radians(self.points[point_idx]).reshape(1, -1)
            radius = radius / EARTH_RADIUS_M
        else:
            query = self.points[point_idx].reshape(1, -1)

        return self.tree.query_radius(query, r=radius)[0]

    def query(self, objects: Sequence[Any], metric: Callable, point_idx: int,
              epsilon: float) -> List[int]:
        current = objects[point_idx]
        neighbors = {point_idx}

        for j in self.candidates(point_idx, epsilon):
            j = int(j)
            if j != point_idx and metric(current, objects[j]) < epsilon:
                neighbors.add(j)

        return sorted(neighbors)


def build_spatial_index(points: Any, method: str = 'kdtree',
                        metric_name: Optional[str] = 'euclidean') -> Optional[SpatialIndex]:
    """
    构建空间索引以加速邻域查询

    Args:
        points: 点数据数组
        method: 索引方法，支持'kdtree'或'balltree'
        metric_name: 度量名称，自定义度量传None

    Returns:
        空间索引对象，无法构建时返回None（退回线性扫描）
    """
    array = as_point_array(points)
    if array is None:
        warnings.warn("空间索引需要数值型二维数组，使用线性扫描")
        return None

    if method == 'kdtree':
        if metric_name != 'euclidean':
            warnings.warn(f"KDTree只支持欧氏距离，度量 '{metric_name}' 使用线性扫描")
            return None
        return SpatialIndex(method, KDTree(array), array, metric_name)

    elif method == 'balltree':
        if metric_name == 'haversine':
            tree = BallTree(np.radians(array), metric='haversine')
        elif metric_name in ('euclidean', 'manhattan'):
            tree = BallTree(array, metric=metric_name)
        else:
            warnings.warn(f"BallTree不支持度量 '{metric_name}'，使用线性扫描")
            return None
        return SpatialIndex(method, tree, array, metric_name)

    else:
        warnings.warn(f"Unsupported spatial index method: {method}")
        return None


def cluster_stats(labels: np.ndarray, medoid_ids: Sequence[int],
                  core_mask: Optional[np.ndarray] = None) -> Dict[str, Any]:
    """
    获取聚类统计信息

    Args:
        labels: 聚类标签数组
        medoid_ids: 每个聚类的代表点
        core_mask: 核心点布尔掩码

    Returns:
        包含聚类统计信息的字典
    """
    labels = np.asarray(labels)
    n_clusters = len(medoid_ids)

    return {
        'n_clusters': n_clusters,
        'n_noise': int(np.sum(labels == NOISE)),
        'n_core_points': int(np.sum(core_mask)) if core_mask is not None else 0,
        'cluster_sizes': {
            FIRST_CLUSTER + i: int(np.sum(labels == FIRST_CLUSTER + i))
            for i in range(n_clusters)
        }
    }

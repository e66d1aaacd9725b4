"""
距离度量
提供可按名称选择的相异度函数，以及用于邻域查询的Numba向量化行计算
"""

import math
from typing import Callable, Dict, List, Optional, Union

import numpy as np
from numba import jit, prange

# 地球平均半径（米）
EARTH_RADIUS_M = 6371000.0

MetricLike = Union[str, Callable]


@jit(nopython=True)
def _euclidean(a: np.ndarray, b: np.ndarray) -> float:
    s = 0.0
    for k in range(a.shape[0]):
        d = a[k] - b[k]
        s += d * d
    return math.sqrt(s)


@jit(nopython=True)
def _manhattan(a: np.ndarray, b: np.ndarray) -> float:
    s = 0.0
    for k in range(a.shape[0]):
        s += abs(a[k] - b[k])
    return s


@jit(nopython=True)
def _haversine(a: np.ndarray, b: np.ndarray) -> float:
    lat1 = math.radians(a[0])
    lon1 = math.radians(a[1])
    lat2 = math.radians(b[0])
    lon2 = math.radians(b[1])

    dlon = lon2 - lon1
    dlat = lat2 - lat1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_M * c


@jit(nopython=True, parallel=True)
def _euclidean_row(points: np.ndarray, index: int) -> np.ndarray:
    n_samples = points.shape[0]
    out = np.empty(n_samples)
    for j in prange(n_samples):
        out[j] = _euclidean(points[index], points[j])
    return out


@jit(nopython=True, parallel=True)
def _manhattan_row(points: np.ndarray, index: int) -> np.ndarray:
    n_samples = points.shape[0]
    out = np.empty(n_samples)
    for j in prange(n_samples):
        out[j] = _manhattan(points[index], points[j])
    return out


@jit(nopython=True, parallel=True)
def _haversine_row(points: np.ndarray, index: int) -> np.ndarray:
    n_samples = points.shape[0]
    out = np.empty(n_samples)
    for j in prange(n_samples):
        out[j] = _haversine(points[index], points[j])
    return out


def _as_vector(x) -> np.ndarray:
    return np.atleast_1d(np.asarray(x, dtype=np.float64))


def euclidean(a, b) -> float:
    """欧氏距离"""
    return _euclidean(_as_vector(a), _as_vector(b))


def manhattan(a, b) -> float:
    """曼哈顿距离"""
    return _manhattan(_as_vector(a), _as_vector(b))


def haversine(a, b) -> float:
    """
    Haversine球面距离，适用于地理坐标

    Args:
        a: 第一个点 [lat, lon]（十进制度数）
        b: 第二个点 [lat, lon]（十进制度数）

    Returns:
        两点之间的距离（米）
    """
    return _haversine(_as_vector(a), _as_vector(b))


def absolute(a, b) -> float:
    """实数轴上的绝对差"""
    return abs(float(a) - float(b))


_METRICS: Dict[str, Callable] = {
    'euclidean': euclidean,
    'manhattan': manhattan,
    'haversine': haversine,
    'absolute': absolute,
}

_ROW_KERNELS: Dict[str, Callable] = {
    'euclidean': _euclidean_row,
    'manhattan': _manhattan_row,
    'haversine': _haversine_row,
}


def available_metrics() -> List[str]:
    """返回所有已注册的度量名称"""
    return sorted(_METRICS)


def get_metric(metric: MetricLike) -> Callable:
    """
    解析度量参数

    Args:
        metric: 度量名称或可调用对象 f(x, y) -> float

    Returns:
        相异度函数
    """
    if isinstance(metric, str):
        try:
            return _METRICS[metric]
        except KeyError:
            raise ValueError(f"不支持的度量方式: {metric}") from None

    if callable(metric):
        return metric

    raise TypeError(f"度量必须是名称或可调用对象，而不是 {type(metric).__name__}")


def metric_name(metric: MetricLike) -> Optional[str]:
    """返回已注册度量的名称，自定义函数返回None"""
    if isinstance(metric, str):
        return metric if metric in _METRICS else None

    for name, func in _METRICS.items():
        if func is metric:
            return name
    return None


def has_row_kernel(name: Optional[str]) -> bool:
    return name in _ROW_KERNELS


def distance_row(points: np.ndarray, index: int, name: str) -> np.ndarray:
    """
    计算一个点到所有点的距离（Numba加速）

    Args:
        points: 形状为(n_samples, n_features)的float64数组
        index: 目标点索引
        name: 度量名称，必须有对应的行计算核

    Returns:
        形状为(n_samples,)的距离数组
    """
    if name not in _ROW_KERNELS:
        raise ValueError(f"度量 '{name}' 没有向量化实现")
    if name == 'haversine' and points.shape[1] != 2:
        raise ValueError(f"haversine需要[lat, lon]两列，实际为 {points.shape[1]} 列")

    return _ROW_KERNELS[name](points, index)

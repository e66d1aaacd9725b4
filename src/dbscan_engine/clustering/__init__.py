"""
聚类算法模块
包含DBSCAN算法的串行和并行实现
"""

from .partition import (
    UNCLASSIFIED,
    NOISE,
    FIRST_CLUSTER,
    PartitionState,
    Clusterer,
    mirkin_distance
)
from .metrics import available_metrics, get_metric
from .utils import InvalidParameterError, validate_parameters, region_query, build_spatial_index
from .density import DensityClustering, dbscan
from .dbscan_parallel import ParallelDensityClustering

__all__ = [
    'UNCLASSIFIED',
    'NOISE',
    'FIRST_CLUSTER',
    'PartitionState',
    'Clusterer',
    'mirkin_distance',
    'available_metrics',
    'get_metric',
    'InvalidParameterError',
    'validate_parameters',
    'region_query',
    'build_spatial_index',
    'DensityClustering',
    'dbscan',
    'ParallelDensityClustering'
]

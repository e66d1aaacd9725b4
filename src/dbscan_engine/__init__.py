"""
dbscan_engine
基于密度的DBSCAN聚类引擎，以及数据加载、性能分析和可视化工具
"""

from .clustering import (
    UNCLASSIFIED,
    NOISE,
    FIRST_CLUSTER,
    DensityClustering,
    ParallelDensityClustering,
    InvalidParameterError,
    dbscan
)

__version__ = '0.1.0'

__all__ = [
    'UNCLASSIFIED',
    'NOISE',
    'FIRST_CLUSTER',
    'DensityClustering',
    'ParallelDensityClustering',
    'InvalidParameterError',
    'dbscan'
]

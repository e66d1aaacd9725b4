"""
可视化模块
聚类结果的可视化
"""

from .plot_clusters import ClusterVisualizer

__all__ = [
    'ClusterVisualizer'
]

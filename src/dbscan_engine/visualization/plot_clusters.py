"""
聚类结果可视化
二维散点图、代表点标记以及聚类大小分布
"""

from typing import Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np
from scipy.spatial import ConvexHull, QhullError

from ..clustering.partition import FIRST_CLUSTER, NOISE


def _as_2d(points: np.ndarray) -> np.ndarray:
    """一维数据画在y=0的基线上，高维数据只取前两列"""
    points = np.asarray(points, dtype=np.float64)
    if points.ndim == 1:
        return np.column_stack([points, np.zeros(len(points))])
    if points.shape[1] == 1:
        return np.column_stack([points[:, 0], np.zeros(len(points))])
    return points[:, :2]


class ClusterVisualizer:
    """聚类可视化器"""

    def __init__(self, figsize: Tuple[int, int] = (12, 10),
                 colormap: str = 'tab20'):
        """
        初始化可视化器

        Args:
            figsize: 图形大小
            colormap: 颜色映射
        """
        self.figsize = figsize
        self.colormap = colormap
        self.cmap = plt.get_cmap(colormap)

    def plot_clusters_2d(self, points: np.ndarray, labels: np.ndarray,
                         medoid_ids: Optional[Sequence[int]] = None,
                         title: str = "DBSCAN聚类结果",
                         save_path: Optional[str] = None,
                         show_noise: bool = True,
                         alpha: float = 0.6,
                         s: float = 10.0) -> plt.Figure:
        """
        绘制2D聚类结果

        Args:
            points: 点数据，形状为(n,)、(n, 1)或(n, d)
            labels: 聚类标签，形状为(n,)
            medoid_ids: 每个聚类的代表点，用星号标出
            title: 图表标题
            save_path: 保存路径
            show_noise: 是否显示噪声点
            alpha: 透明度
            s: 点的大小

        Returns:
            matplotlib图形对象
        """
        points = _as_2d(points)
        labels = np.asarray(labels)

        fig, ax = plt.subplots(figsize=self.figsize)

        cluster_labels = [l for l in np.unique(labels) if l >= FIRST_CLUSTER]
        colors = self.cmap(np.linspace(0, 1, max(len(cluster_labels), 1)))

        if show_noise and np.any(labels == NOISE):
            noise_points = points[labels == NOISE]
            ax.scatter(noise_points[:, 0], noise_points[:, 1], c='gray', label='噪声点',
                       marker='x', s=s * 0.5, alpha=alpha * 0.5)

        for color, label in zip(colors, cluster_labels):
            cluster_points = points[labels == label]
            ax.scatter(cluster_points[:, 0], cluster_points[:, 1],
                       c=[color], label=f'聚类 {label}',
                       marker='o', s=s, alpha=alpha, edgecolors='w', linewidths=0.5)

            # 绘制凸包（对于较大的聚类），共线的点没有凸包
            if len(cluster_points) > 3:
                try:
                    hull = ConvexHull(cluster_points)
                except (QhullError, ValueError):
                    continue
                hull_points = cluster_points[hull.vertices]
                hull_points = np.vstack([hull_points, hull_points[0]])
                ax.plot(hull_points[:, 0], hull_points[:, 1],
                        color=color, alpha=0.3, linewidth=1, linestyle='--')

        if medoid_ids is not None and len(medoid_ids) > 0:
            medoids = points[np.asarray(medoid_ids, dtype=np.intp)]
            ax.scatter(medoids[:, 0], medoids[:, 1], c='black', marker='*',
                       s=s * 8, label='代表点')

        ax.set_title(title, fontsize=14, fontweight='bold')
        ax.set_xlabel('X')
        ax.set_ylabel('Y')
        ax.grid(True, alpha=0.3)

        # 图例最多显示15项
        handles, labels_legend = ax.get_legend_handles_labels()
        if handles:
            ax.legend(handles[:15], labels_legend[:15], loc='upper right', fontsize=8)

        stats_text = (f'聚类数: {len(cluster_labels)}\n'
                      f'噪声点: {int(np.sum(labels == NOISE))}\n'
                      f'总点数: {len(points)}')
        ax.text(0.02, 0.98, stats_text, transform=ax.transAxes,
                fontsize=10, verticalalignment='top',
                bbox=dict(boxstyle='round', facecolor='wheat', alpha=0.8))

        fig.tight_layout()

        if save_path:
            fig.savefig(save_path, dpi=150, bbox_inches='tight')
            print(f"聚类图已保存到: {save_path}")

        return fig

    def plot_cluster_sizes(self, labels: np.ndarray,
                           title: str = "聚类大小分布",
                           save_path: Optional[str] = None) -> plt.Figure:
        """
        绘制每个聚类的大小以及噪声点数量

        Args:
            labels: 聚类标签
            title: 图表标题
            save_path: 保存路径

        Returns:
            matplotlib图形对象
        """
        labels = np.asarray(labels)
        cluster_labels = [l for l in np.unique(labels) if l >= FIRST_CLUSTER]
        sizes = [int(np.sum(labels == l)) for l in cluster_labels]

        names = [str(l) for l in cluster_labels] + ['噪声']
        values = sizes + [int(np.sum(labels == NOISE))]
        colors = list(self.cmap(np.linspace(0, 1, max(len(sizes), 1))))[:len(sizes)] + ['gray']

        fig, ax = plt.subplots(figsize=self.figsize)
        ax.bar(names, values, color=colors, edgecolor='black', alpha=0.8)
        ax.set_title(title, fontsize=14, fontweight='bold')
        ax.set_xlabel('聚类ID')
        ax.set_ylabel('点数')
        ax.grid(True, axis='y', alpha=0.3)
        fig.tight_layout()

        if save_path:
            fig.savefig(save_path, dpi=150, bbox_inches='tight')
            print(f"聚类大小分布图已保存到: {save_path}")

        return fig

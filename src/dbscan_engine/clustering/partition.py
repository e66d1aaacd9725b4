"""
划分状态
聚类结果的标签数组、代表点（medoid）列表以及划分之间的比较
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Union

import numpy as np

# 特殊的聚类ID
UNCLASSIFIED = 0   # 尚未分类的点
NOISE = 1          # 噪声点
FIRST_CLUSTER = 2  # 第一个真实聚类的ID

ClusterList = List[Set[int]]


@dataclass
class PartitionState:
    """每个对象的聚类ID和每个聚类的代表点"""
    cluster_ids: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int32))
    medoid_ids: List[int] = field(default_factory=list)

    def reset(self, n_objects: int) -> None:
        """将所有对象重置为未分类，并清空代表点列表"""
        self.cluster_ids = np.full(n_objects, UNCLASSIFIED, dtype=np.int32)
        self.medoid_ids = []

    def num_objects(self) -> int:
        return len(self.cluster_ids)

    def num_clusters(self) -> int:
        return len(self.medoid_ids)

    def cluster_index(self, cluster_id: int) -> int:
        """聚类ID在代表点列表中的位置"""
        position = int(cluster_id) - FIRST_CLUSTER
        if position < 0 or position >= self.num_clusters():
            raise KeyError(f"不存在的聚类ID: {cluster_id}")
        return position

    def members(self, cluster_id: int) -> List[int]:
        """
        获取聚类的成员

        Args:
            cluster_id: 聚类ID（>= FIRST_CLUSTER）

        Returns:
            按升序排列的对象索引
        """
        self.cluster_index(cluster_id)
        return np.flatnonzero(self.cluster_ids == cluster_id).tolist()

    def cluster_size(self, cluster_id: int) -> int:
        self.cluster_index(cluster_id)
        return int(np.sum(self.cluster_ids == cluster_id))

    def noise_indices(self) -> List[int]:
        return np.flatnonzero(self.cluster_ids == NOISE).tolist()

    def is_medoid(self, index: int) -> bool:
        """对象是否是其所属聚类的代表点"""
        cluster_id = int(self.cluster_ids[index])
        if cluster_id < FIRST_CLUSTER:
            return False
        return self.medoid_ids[self.cluster_index(cluster_id)] == index

    def to_cluster_list(self, include_noise: bool = False) -> ClusterList:
        """
        转换为聚类集合列表

        Args:
            include_noise: 是否把每个噪声点作为单独的集合追加在末尾

        Returns:
            按发现顺序排列的索引集合列表
        """
        clusters: ClusterList = [set() for _ in range(self.num_clusters())]
        noise: ClusterList = []

        for index, cluster_id in enumerate(self.cluster_ids):
            if cluster_id >= FIRST_CLUSTER:
                clusters[int(cluster_id) - FIRST_CLUSTER].add(index)
            elif include_noise:
                noise.append({index})

        return clusters + noise

    def write_members(self, cluster_id: int, max_members: Optional[int] = None) -> str:
        """以 "[i j k]" 的形式输出聚类成员，超过max_members时以 " ..." 结尾"""
        members = self.members(cluster_id)
        shown = members if max_members is None else members[:max_members]

        text = ' '.join(str(i) for i in shown)
        if len(shown) < len(members):
            text += ' ...'
        return f'[{text}]'

    def summary(self) -> Dict[str, Any]:
        return {
            'n_objects': self.num_objects(),
            'n_clusters': self.num_clusters(),
            'n_noise': len(self.noise_indices()),
            'medoid_ids': list(self.medoid_ids),
            'cluster_sizes': {
                FIRST_CLUSTER + i: self.cluster_size(FIRST_CLUSTER + i)
                for i in range(self.num_clusters())
            }
        }


class Clusterer(ABC):
    """聚类算法的通用接口：产生标签数组和代表点列表"""

    @abstractmethod
    def fit(self, objects: Sequence[Any]) -> 'Clusterer':
        """对对象集合执行聚类"""

    @property
    @abstractmethod
    def partition(self) -> PartitionState:
        """聚类结果"""


def _total_size(clusters: ClusterList) -> int:
    return sum(len(c) for c in clusters)


def mirkin_distance(a: Union[PartitionState, ClusterList],
                    b: Union[PartitionState, ClusterList]) -> float:
    """
    计算两个划分之间的Mirkin距离

    两个划分必须覆盖相同数量的对象。PartitionState中的噪声点被视为单点集合。

    Args:
        a: 第一个划分或聚类集合列表
        b: 第二个划分或聚类集合列表

    Returns:
        归一化到[0, 1)的距离，0表示两个划分完全相同
    """
    if isinstance(a, PartitionState):
        a = a.to_cluster_list(include_noise=True)
    if isinstance(b, PartitionState):
        b = b.to_cluster_list(include_noise=True)

    n_a = _total_size(a)
    n_b = _total_size(b)
    if n_a != n_b:
        raise ValueError(f"划分的对象数量不一致: {n_a} != {n_b}")
    if n_a == 0:
        return 0.0

    sum_a = sum(len(c) ** 2 for c in a)
    sum_b = sum(len(c) ** 2 for c in b)
    sum_ab = sum(len(ca & cb) ** 2 for ca in a for cb in b)

    return (sum_a + sum_b - 2 * sum_ab) / float(n_a * n_a)

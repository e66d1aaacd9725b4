"""
并行DBSCAN实现
邻域查询按数据块分配到多个进程，聚类扩展仍按串行顺序执行
"""

import multiprocessing as mp
import time
import warnings
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .density import DensityClustering
from .metrics import MetricLike, get_metric, has_row_kernel, metric_name
from .utils import as_point_array, region_query, vectorized_region_query

# 工作进程中的只读数据，由进程池初始化函数设置
_worker_query: Optional[Callable[[int], List[int]]] = None


def _make_query(objects: Sequence[Any], metric: MetricLike,
                epsilon: float) -> Callable[[int], List[int]]:
    name = metric_name(metric)
    points = as_point_array(objects) if has_row_kernel(name) else None
    if points is not None:
        return lambda i: vectorized_region_query(points, name, i, epsilon)

    dmetric = get_metric(metric)
    return lambda i: region_query(objects, dmetric, i, epsilon)


def _init_worker(objects: Sequence[Any], metric: MetricLike, epsilon: float) -> None:
    global _worker_query
    _worker_query = _make_query(objects, metric, epsilon)


def _find_neighbors_chunk(chunk: Tuple[int, int]) -> List[List[int]]:
    """
    处理一个数据块的邻居查找（工作进程函数）

    Args:
        chunk: (起始索引, 结束索引)

    Returns:
        数据块内每个点的邻域
    """
    chunk_start, chunk_end = chunk
    return [_worker_query(i) for i in range(chunk_start, chunk_end)]


class ParallelDensityClustering(DensityClustering):
    """并行版本的DBSCAN聚类算法"""

    def __init__(self, epsilon: float = 1.0, min_points: int = 2,
                 metric: MetricLike = 'euclidean', n_jobs: int = -1,
                 chunk_size: int = 1000, verbose: bool = False):
        """
        初始化并行DBSCAN参数

        Args:
            epsilon: 邻域半径
            min_points: 核心点的最小邻域大小（包含自身）
            metric: 度量名称或可在进程间序列化的模块级函数
            n_jobs: 并行工作进程数，-1表示使用所有CPU核心
            chunk_size: 每个任务处理的数据块大小
            verbose: 是否打印进度信息
        """
        super().__init__(epsilon=epsilon, min_points=min_points,
                         metric=metric, verbose=verbose)

        if chunk_size < 1:
            raise ValueError(f"chunk_size必须大于等于1: {chunk_size}")

        cpu_count = mp.cpu_count()
        if n_jobs == -1:
            n_jobs = cpu_count
        elif n_jobs < 1:
            raise ValueError(f"n_jobs必须是-1或正整数: {n_jobs}")
        elif n_jobs > cpu_count:
            warnings.warn(f"n_jobs={n_jobs} 超过CPU核心数，限制为 {cpu_count}")
            n_jobs = cpu_count

        self.n_jobs = n_jobs
        self.chunk_size = chunk_size
        self.parallel_time = 0.0

    def _partition_data(self, n_samples: int) -> List[Tuple[int, int]]:
        """
        将数据划分为多个块

        Args:
            n_samples: 总样本数

        Returns:
            数据块列表，每个元素是(start_idx, end_idx)元组
        """
        chunks = []
        for start_idx in range(0, n_samples, self.chunk_size):
            end_idx = min(start_idx + self.chunk_size, n_samples)
            chunks.append((start_idx, end_idx))
        return chunks

    def _build_query(self, objects: Sequence[Any],
                     dmetric: Callable) -> Callable[[int], List[int]]:
        """先并行计算所有点的邻域，扩展阶段直接读取"""
        start_time = time.time()
        chunks = self._partition_data(len(objects))

        if self.n_jobs == 1 or len(chunks) <= 1:
            query = _make_query(objects, self.metric, self.epsilon)
            neighborhoods = [query(i) for i in range(len(objects))]
        else:
            if self.verbose:
                print(f"使用 {self.n_jobs} 个进程进行并行计算...")

            # Numba的线程池在fork之后不安全，工作进程用spawn启动
            ctx = mp.get_context('spawn')
            with ctx.Pool(processes=self.n_jobs, initializer=_init_worker,
                          initargs=(objects, self.metric, self.epsilon)) as pool:
                neighborhoods = []
                for chunk_neighbors in pool.map(_find_neighbors_chunk, chunks):
                    neighborhoods.extend(chunk_neighbors)

        self.parallel_time = time.time() - start_time
        return lambda i: neighborhoods[i]

    def get_performance_stats(self) -> Dict[str, Any]:
        """
        获取性能统计信息

        Returns:
            性能统计字典
        """
        stats = self.get_cluster_stats()
        stats.update({
            'n_jobs': self.n_jobs,
            'chunk_size': self.chunk_size,
            'parallel_time': self.parallel_time
        })
        return stats

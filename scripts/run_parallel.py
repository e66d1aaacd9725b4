#!/usr/bin/env python3
"""
运行并行DBSCAN聚类算法
邻域查询分配到多个进程，可选与串行版本的结果对比
"""

import sys
from pathlib import Path

# 未安装时从源码目录导入
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / 'src'))
sys.path.insert(0, str(Path(__file__).parent))

import argparse
import time
from typing import Any, Dict, List, Optional

import numpy as np
from sklearn.metrics import adjusted_rand_score

from dbscan_engine.clustering import (
    DensityClustering,
    ParallelDensityClustering,
    available_metrics,
    mirkin_distance
)
from dbscan_engine.data_processing import load_points, save_labels, save_results
from dbscan_engine.profiling import MemoryProfiler
from run_sequential import parse_columns, print_cluster_summary, visualize_results


def run_parallel_dbscan(points: np.ndarray,
                        epsilon: float,
                        min_points: int,
                        metric: str = 'euclidean',
                        n_jobs: int = -1,
                        chunk_size: int = 1000) -> Dict[str, Any]:
    """
    运行并行DBSCAN算法

    Args:
        points: 点数据
        epsilon: 邻域半径
        min_points: 核心点的最小邻域大小
        metric: 距离度量
        n_jobs: 并行工作进程数
        chunk_size: 数据块大小

    Returns:
        聚类结果和性能数据
    """
    print("\n" + "=" * 60)
    print("运行并行DBSCAN聚类")
    print("=" * 60)

    clusterer = ParallelDensityClustering(
        epsilon=epsilon,
        min_points=min_points,
        metric=metric,
        n_jobs=n_jobs,
        chunk_size=chunk_size,
        verbose=True
    )

    print(f"算法参数:")
    print(f"  epsilon (邻域半径): {epsilon}")
    print(f"  min_points (最小邻域大小): {min_points}")
    print(f"  metric (距离度量): {metric}")
    print(f"  数据点数量: {len(points)}")
    print(f"  工作进程数: {clusterer.n_jobs}")
    print(f"  数据块大小: {chunk_size}")

    memory_profiler = MemoryProfiler(track_detailed=False)
    with memory_profiler:
        memory_before = memory_profiler.take_snapshot("聚类开始前")
        start_time = time.time()
        clusterer.fit(points)
        execution_time = time.time() - start_time
        memory_after = memory_profiler.take_snapshot("聚类结束后")

    memory_usage = memory_after.memory_usage_mb - memory_before.memory_usage_mb
    stats = clusterer.get_performance_stats()

    print_cluster_summary(stats, len(points))

    print(f"\n性能统计:")
    print(f"  执行时间: {execution_time:.4f} 秒")
    print(f"  并行邻域计算时间: {stats['parallel_time']:.4f} 秒")
    print(f"  内存使用: {memory_usage:.2f} MB")
    print(f"  工作进程: {stats['n_jobs']}")

    return {
        'algorithm': 'DBSCAN_Parallel',
        'parameters': {
            'epsilon': epsilon,
            'min_points': min_points,
            'metric': metric,
            'n_points': len(points),
            'n_jobs': clusterer.n_jobs,
            'chunk_size': chunk_size
        },
        'results': {
            'n_clusters': stats['n_clusters'],
            'n_core_points': stats['n_core_points'],
            'n_noise': stats['n_noise'],
            'cluster_sizes': stats['cluster_sizes'],
            'medoid_ids': list(clusterer.medoid_ids)
        },
        'performance': {
            'execution_time': execution_time,
            'parallel_time': stats['parallel_time'],
            'memory_usage_mb': memory_usage,
            'peak_memory_mb': memory_after.peak_memory_mb
        },
        'clusterer': clusterer
    }


def compare_with_sequential(points: np.ndarray,
                            parallel: ParallelDensityClustering) -> Dict[str, Any]:
    """
    用相同参数运行串行版本并比较结果

    Args:
        points: 点数据
        parallel: 已完成聚类的并行聚类器

    Returns:
        对比结果
    """
    print("\n运行串行版本进行对比...")
    sequential = DensityClustering(
        epsilon=parallel.epsilon,
        min_points=parallel.min_points,
        metric=parallel.metric
    ).fit(points)

    comparison = {
        'sequential_time': sequential.execution_time,
        'parallel_time': parallel.execution_time,
        'speedup': (sequential.execution_time / parallel.execution_time
                    if parallel.execution_time > 0 else 0.0),
        'identical_labels': bool(np.array_equal(sequential.labels_, parallel.labels_)),
        'mirkin_distance': mirkin_distance(sequential.partition, parallel.partition),
        'adjusted_rand_index': float(adjusted_rand_score(sequential.labels_, parallel.labels_))
    }

    print(f"  串行时间: {comparison['sequential_time']:.4f} 秒")
    print(f"  加速比: {comparison['speedup']:.2f}x")
    print(f"  标签完全一致: {comparison['identical_labels']}")
    print(f"  Mirkin距离: {comparison['mirkin_distance']:.6f}")

    return comparison


def main(argv: Optional[List[str]] = None) -> int:
    """主函数"""
    parser = argparse.ArgumentParser(description='运行并行DBSCAN聚类算法')
    parser.add_argument('--data', type=str, required=True,
                        help='点数据CSV文件路径')
    parser.add_argument('--columns', type=str,
                        help='使用的列，逗号分隔的列名或列位置（默认: 所有数值列）')
    parser.add_argument('--no-header', action='store_true',
                        help='CSV文件没有表头')
    parser.add_argument('--eps', type=float, default=1.0,
                        help='DBSCAN邻域半径（默认: 1.0）')
    parser.add_argument('--min-points', type=int, default=5,
                        help='核心点的最小邻域大小，包含自身（默认: 5）')
    parser.add_argument('--metric', type=str, default='euclidean',
                        choices=available_metrics(),
                        help='距离度量方式（默认: euclidean）')
    parser.add_argument('--n-jobs', type=int, default=-1,
                        help='并行工作进程数，-1表示使用所有CPU核心（默认: -1）')
    parser.add_argument('--chunk-size', type=int, default=1000,
                        help='数据块大小（默认: 1000）')
    parser.add_argument('--compare', action='store_true',
                        help='与串行版本对比结果和耗时')
    parser.add_argument('--output-dir', type=str, default='./results/parallel',
                        help='输出目录（默认: ./results/parallel）')
    parser.add_argument('--no-visualize', action='store_true',
                        help='不生成可视化图表')

    args = parser.parse_args(argv)

    try:
        print("并行DBSCAN聚类算法")
        print("=" * 60)

        points = load_points(args.data, columns=parse_columns(args.columns),
                             header=None if args.no_header else 'infer')
        print(f"加载了 {len(points)} 个点")

        result = run_parallel_dbscan(
            points,
            epsilon=args.eps,
            min_points=args.min_points,
            metric=args.metric,
            n_jobs=args.n_jobs,
            chunk_size=args.chunk_size
        )
        clusterer = result.pop('clusterer')

        if args.compare:
            result['comparison'] = compare_with_sequential(points, clusterer)

        output_dir = Path(args.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        if not args.no_visualize:
            visualize_results(points, clusterer, output_dir, 'parallel')

        labels_file = save_labels(output_dir / 'parallel_labels',
                                  clusterer.labels_, clusterer.medoid_ids)
        result_file, summary_file = save_results(result, output_dir, prefix='parallel')

        print(f"\n标签已保存到: {labels_file}")
        print(f"结果已保存到: {result_file}")
        print(f"摘要已保存到: {summary_file}")

    except Exception as e:
        print(f"错误: {e}")
        import traceback
        traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())

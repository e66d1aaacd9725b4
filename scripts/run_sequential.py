#!/usr/bin/env python3
"""
运行串行DBSCAN聚类算法
从CSV读取点数据，聚类后保存标签、摘要和可视化图表
"""

import sys
from pathlib import Path

# 未安装时从源码目录导入
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / 'src'))

import argparse
import time
from typing import Any, Dict, List, Optional

import numpy as np

from dbscan_engine.clustering import DensityClustering, available_metrics
from dbscan_engine.data_processing import load_points, save_labels, save_results
from dbscan_engine.profiling import MemoryProfiler, TimeProfiler


def parse_columns(columns: Optional[str]) -> Optional[List[Any]]:
    """把 "0,1" 或 "lat,lon" 解析为列位置或列名列表"""
    if not columns:
        return None
    items = [c.strip() for c in columns.split(',') if c.strip()]
    if all(c.isdigit() for c in items):
        return [int(c) for c in items]
    return items


def print_cluster_summary(stats: Dict[str, Any], n_points: int) -> None:
    print(f"\n聚类结果:")
    print(f"  聚类数量: {stats['n_clusters']}")
    print(f"  核心点数量: {stats['n_core_points']}")
    print(f"  噪声点数量: {stats['n_noise']}")
    print(f"  总点数: {n_points}")

    if stats['cluster_sizes']:
        print(f"  聚类大小分布:")
        for label, size in list(stats['cluster_sizes'].items())[:10]:
            print(f"    聚类 {label}: {size} 个点")
        if len(stats['cluster_sizes']) > 10:
            print(f"    ... 还有 {len(stats['cluster_sizes']) - 10} 个聚类")


def run_sequential_dbscan(points: np.ndarray,
                          epsilon: float,
                          min_points: int,
                          metric: str = 'euclidean',
                          spatial_index: Optional[str] = None,
                          detailed_profile: bool = False) -> Dict[str, Any]:
    """
    运行串行DBSCAN算法

    Args:
        points: 点数据
        epsilon: 邻域半径
        min_points: 核心点的最小邻域大小
        metric: 距离度量
        spatial_index: 可选的空间索引
        detailed_profile: 是否用cProfile统计邻域查询耗时

    Returns:
        聚类结果和性能数据
    """
    print("\n" + "=" * 60)
    print("运行串行DBSCAN聚类")
    print("=" * 60)

    print(f"算法参数:")
    print(f"  epsilon (邻域半径): {epsilon}")
    print(f"  min_points (最小邻域大小): {min_points}")
    print(f"  metric (距离度量): {metric}")
    print(f"  spatial_index (空间索引): {spatial_index}")
    print(f"  数据点数量: {len(points)}")

    clusterer = DensityClustering(
        epsilon=epsilon,
        min_points=min_points,
        metric=metric,
        spatial_index=spatial_index
    )

    time_profiler = TimeProfiler(enable_profiling=detailed_profile)
    memory_profiler = MemoryProfiler(track_detailed=False)

    with memory_profiler:
        memory_before = memory_profiler.take_snapshot("聚类开始前")
        _, time_analysis = time_profiler.profile_clustering(clusterer, points)
        memory_after = memory_profiler.take_snapshot("聚类结束后")

    execution_time = time_analysis['execution_time']
    memory_usage = memory_after.memory_usage_mb - memory_before.memory_usage_mb
    stats = clusterer.get_cluster_stats()

    print_cluster_summary(stats, len(points))

    print(f"\n性能统计:")
    print(f"  执行时间: {execution_time:.4f} 秒")
    print(f"  邻域查询次数: {stats['n_queries']} ({time_analysis['queries_per_second']:.0f} 次/秒)")
    if 'query_time_ratio' in time_analysis:
        print(f"  邻域查询耗时占比: {time_analysis['query_time_ratio']:.1%}")
    print(f"  内存使用: {memory_usage:.2f} MB")

    return {
        'algorithm': 'DBSCAN_Sequential',
        'parameters': {
            'epsilon': epsilon,
            'min_points': min_points,
            'metric': metric,
            'spatial_index': spatial_index,
            'n_points': len(points)
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
            'n_queries': stats['n_queries'],
            'queries_per_second': time_analysis['queries_per_second'],
            'query_time_ratio': time_analysis.get('query_time_ratio'),
            'memory_usage_mb': memory_usage,
            'peak_memory_mb': memory_after.peak_memory_mb,
            'memory_patterns': memory_profiler.analyze_memory_patterns()
        },
        'clusterer': clusterer
    }


def visualize_results(points: np.ndarray, clusterer: DensityClustering,
                      output_dir: Path, prefix: str) -> None:
    """保存聚类散点图和聚类大小分布图"""
    import matplotlib
    matplotlib.use('Agg')
    import matplotlib.pyplot as plt

    from dbscan_engine.visualization import ClusterVisualizer

    print("\n生成可视化图表...")
    visualizer = ClusterVisualizer(figsize=(12, 10))

    fig1 = visualizer.plot_clusters_2d(
        points, clusterer.labels_, clusterer.medoid_ids,
        title=f"DBSCAN聚类结果 (epsilon={clusterer.epsilon}, min_points={clusterer.min_points})",
        save_path=str(output_dir / f"{prefix}_clusters_2d.png")
    )
    fig2 = visualizer.plot_cluster_sizes(
        clusterer.labels_,
        save_path=str(output_dir / f"{prefix}_cluster_sizes.png")
    )
    plt.close(fig1)
    plt.close(fig2)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='运行串行DBSCAN聚类算法')
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
    parser.add_argument('--spatial-index', type=str, choices=['kdtree', 'balltree'],
                        help='用于加速邻域查询的空间索引')
    parser.add_argument('--output-dir', type=str, default='./results/sequential',
                        help='输出目录（默认: ./results/sequential）')
    parser.add_argument('--profile', action='store_true',
                        help='用cProfile统计邻域查询耗时')
    parser.add_argument('--no-visualize', action='store_true',
                        help='不生成可视化图表')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """主函数"""
    args = build_parser().parse_args(argv)

    try:
        print("串行DBSCAN聚类算法")
        print("=" * 60)

        start_time = time.time()
        points = load_points(args.data, columns=parse_columns(args.columns),
                             header=None if args.no_header else 'infer')
        print(f"加载了 {len(points)} 个点，耗时 {time.time() - start_time:.2f} 秒")

        result = run_sequential_dbscan(
            points,
            epsilon=args.eps,
            min_points=args.min_points,
            metric=args.metric,
            spatial_index=args.spatial_index,
            detailed_profile=args.profile
        )
        clusterer = result.pop('clusterer')

        output_dir = Path(args.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        if not args.no_visualize:
            visualize_results(points, clusterer, output_dir, 'sequential')

        labels_file = save_labels(output_dir / 'sequential_labels',
                                  clusterer.labels_, clusterer.medoid_ids)
        result_file, summary_file = save_results(result, output_dir, prefix='sequential')

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

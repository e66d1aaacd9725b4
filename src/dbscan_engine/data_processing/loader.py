"""
数据加载器
负责读取点数据CSV以及保存聚类结果
"""

import json
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..clustering.partition import FIRST_CLUSTER, NOISE

PathLike = Union[str, Path]


def load_points(file_path: PathLike, columns: Optional[Sequence[Union[str, int]]] = None,
                nrows: Optional[int] = None, header: Optional[str] = 'infer') -> np.ndarray:
    """
    从CSV文件加载点数据

    Args:
        file_path: CSV文件路径
        columns: 要使用的列名或列位置，None表示使用所有数值列
        nrows: 限制加载的行数
        header: 传给pandas.read_csv的header参数，无表头时传None

    Returns:
        形状为(n_samples, n_features)的float64数组
    """
    file_path = Path(file_path)
    if not file_path.is_file():
        raise FileNotFoundError(f"数据文件不存在: {file_path}")

    df = pd.read_csv(file_path, nrows=nrows, header=header)

    if columns is not None:
        if all(isinstance(c, int) for c in columns):
            df = df.iloc[:, list(columns)]
        else:
            df = df[list(columns)]

    df = df.select_dtypes(include=[np.number])
    if df.shape[1] == 0:
        raise ValueError(f"文件中没有数值列: {file_path}")

    n_before = len(df)
    df = df.dropna()
    if len(df) < n_before:
        warnings.warn(f"丢弃了 {n_before - len(df)} 行包含缺失值的数据")

    return df.to_numpy(dtype=np.float64)


def labels_to_dataframe(labels: np.ndarray, medoid_ids: Sequence[int]) -> pd.DataFrame:
    """
    将聚类标签转换为DataFrame

    Args:
        labels: 聚类标签数组
        medoid_ids: 每个聚类的代表点

    Returns:
        包含index, cluster_id, is_noise, is_medoid列的DataFrame
    """
    labels = np.asarray(labels)
    is_medoid = np.zeros(len(labels), dtype=bool)
    is_medoid[np.asarray(medoid_ids, dtype=np.intp)] = True

    return pd.DataFrame({
        'index': np.arange(len(labels)),
        'cluster_id': labels,
        'is_noise': labels == NOISE,
        'is_medoid': is_medoid
    })


def save_labels(output_path: PathLike, labels: np.ndarray, medoid_ids: Sequence[int],
                format: str = 'csv') -> Path:
    """
    保存聚类标签

    Args:
        output_path: 输出文件路径（后缀按格式替换）
        labels: 聚类标签数组
        medoid_ids: 每个聚类的代表点
        format: 输出格式 ('csv', 'pickle')

    Returns:
        实际写入的文件路径
    """
    df = labels_to_dataframe(labels, medoid_ids)
    output_path = Path(output_path)

    if format == 'csv':
        output_path = output_path.with_suffix('.csv')
        df.to_csv(output_path, index=False)
    elif format == 'pickle':
        output_path = output_path.with_suffix('.pkl')
        df.to_pickle(output_path)
    else:
        raise ValueError(f"不支持的格式: {format}")

    return output_path


def _to_serializable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _to_serializable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_serializable(v) for v in value]
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    return value


def save_results(result: Dict[str, Any], output_dir: PathLike,
                 prefix: str = 'dbscan') -> Tuple[Path, Path]:
    """
    保存聚类结果摘要

    Args:
        result: 包含parameters, results, performance的结果字典
        output_dir: 输出目录
        prefix: 文件名前缀

    Returns:
        (JSON文件路径, 文本摘要文件路径)
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    result_file = output_path / f"{prefix}_results.json"
    with open(result_file, 'w', encoding='utf-8') as f:
        json.dump(_to_serializable(result), f, indent=2, ensure_ascii=False)

    summary_file = output_path / f"{prefix}_summary.txt"
    with open(summary_file, 'w', encoding='utf-8') as f:
        f.write("DBSCAN聚类结果摘要\n")
        f.write("=" * 50 + "\n\n")

        f.write("算法参数:\n")
        for key, value in result.get('parameters', {}).items():
            f.write(f"  {key}: {value}\n")

        results = result.get('results', {})
        f.write("\n聚类结果:\n")
        f.write(f"  聚类数量: {results.get('n_clusters', 0)}\n")
        f.write(f"  核心点数量: {results.get('n_core_points', 0)}\n")
        f.write(f"  噪声点数量: {results.get('n_noise', 0)}\n")

        medoids: List[int] = results.get('medoid_ids', [])
        for i, medoid in enumerate(medoids[:10]):
            f.write(f"  聚类 {FIRST_CLUSTER + i}: 代表点 {medoid}\n")

        performance = result.get('performance', {})
        if performance:
            f.write("\n性能统计:\n")
            f.write(f"  执行时间: {performance.get('execution_time', 0):.4f} 秒\n")
            if 'memory_usage_mb' in performance:
                f.write(f"  内存使用: {performance['memory_usage_mb']:.2f} MB\n")

    return result_file, summary_file

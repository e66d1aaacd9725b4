"""
内存分析器
监控DBSCAN聚类过程中的内存使用
"""

import gc
import os
import time
import tracemalloc
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import psutil


@dataclass
class MemorySnapshot:
    """内存快照"""
    label: str
    timestamp: float
    memory_usage_mb: float
    peak_memory_mb: float
    top_consumers: List[Tuple[str, float]]
    gc_counts: Tuple[int, int, int]


class MemoryProfiler:
    """内存分析器"""

    def __init__(self, track_detailed: bool = False, verbose: bool = True):
        """
        初始化内存分析器

        Args:
            track_detailed: 是否用tracemalloc跟踪详细的内存分配信息
            verbose: 是否打印快照信息
        """
        self.track_detailed = track_detailed
        self.verbose = verbose
        self.snapshots: List[MemorySnapshot] = []
        self.start_time: Optional[float] = None
        self.process = psutil.Process(os.getpid())
        self.peak_memory = 0.0
        self._started_tracing = False

    def start(self) -> None:
        """开始内存分析"""
        self.start_time = time.time()
        self.snapshots.clear()
        self.peak_memory = 0.0

        if self.track_detailed and not tracemalloc.is_tracing():
            tracemalloc.start(25)  # 跟踪25个帧
            self._started_tracing = True

    def take_snapshot(self, label: str = "") -> MemorySnapshot:
        """
        拍摄内存快照

        Args:
            label: 快照标签

        Returns:
            内存快照对象
        """
        current_time = time.time() - self.start_time if self.start_time else 0.0

        memory_usage_mb = self.process.memory_info().rss / 1024 / 1024
        self.peak_memory = max(self.peak_memory, memory_usage_mb)

        # 内存消耗最大的代码位置
        top_consumers = []
        if self.track_detailed and tracemalloc.is_tracing():
            for stat in tracemalloc.take_snapshot().statistics('lineno')[:10]:
                top_consumers.append((
                    stat.traceback.format()[-1] if stat.traceback else "Unknown",
                    stat.size / 1024 / 1024
                ))

        snapshot = MemorySnapshot(
            label=label,
            timestamp=current_time,
            memory_usage_mb=memory_usage_mb,
            peak_memory_mb=self.peak_memory,
            top_consumers=top_consumers,
            gc_counts=gc.get_count()
        )
        self.snapshots.append(snapshot)

        if label and self.verbose:
            print(f"[{label}] 内存使用: {memory_usage_mb:.2f} MB, 峰值: {self.peak_memory:.2f} MB")

        return snapshot

    def stop(self) -> None:
        """停止内存分析"""
        if self._started_tracing and tracemalloc.is_tracing():
            tracemalloc.stop()
        self._started_tracing = False

    def profile_function(self, func: Callable, *args, **kwargs) -> Tuple[Any, Dict[str, Any]]:
        """
        分析函数的内存使用

        Args:
            func: 要分析的函数
            *args: 函数参数
            **kwargs: 函数关键字参数

        Returns:
            (函数结果, 内存分析结果)
        """
        with self:
            before = self.take_snapshot("开始前")
            start_time = time.time()
            result = func(*args, **kwargs)
            execution_time = time.time() - start_time
            after = self.take_snapshot("结束后")

        analysis = {
            'function_name': getattr(func, '__name__', repr(func)),
            'execution_time': execution_time,
            'memory_usage_before_mb': before.memory_usage_mb,
            'memory_usage_after_mb': after.memory_usage_mb,
            'memory_increase_mb': after.memory_usage_mb - before.memory_usage_mb,
            'peak_memory_mb': after.peak_memory_mb
        }
        return result, analysis

    def analyze_memory_patterns(self) -> Dict[str, Any]:
        """
        分析内存使用模式

        Returns:
            内存模式分析结果，快照少于两个时返回空字典
        """
        if len(self.snapshots) < 2:
            return {}

        df = pd.DataFrame([
            {'timestamp': s.timestamp, 'memory_usage_mb': s.memory_usage_mb}
            for s in self.snapshots
        ])

        total_time = df['timestamp'].iloc[-1] - df['timestamp'].iloc[0]
        total_growth = df['memory_usage_mb'].iloc[-1] - df['memory_usage_mb'].iloc[0]

        return {
            'total_time': float(total_time),
            'avg_memory_usage_mb': float(df['memory_usage_mb'].mean()),
            'max_memory_usage_mb': float(df['memory_usage_mb'].max()),
            'min_memory_usage_mb': float(df['memory_usage_mb'].min()),
            'total_memory_growth_mb': float(total_growth),
            'memory_growth_rate_mb_per_sec': float(total_growth / total_time) if total_time > 0 else 0.0,
            'std_memory_usage_mb': float(np.std(df['memory_usage_mb'].to_numpy()))
        }

    def __enter__(self):
        """上下文管理器入口"""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """上下文管理器出口"""
        self.stop()

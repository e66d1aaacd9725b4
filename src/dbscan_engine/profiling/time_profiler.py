"""
时间性能分析器
分析DBSCAN算法的执行时间和主要耗时函数
"""

import cProfile
import io
import pstats
import time
import warnings
from collections import defaultdict
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np


@dataclass
class TimeMeasurement:
    """时间测量结果"""
    name: str
    start_time: float
    end_time: Optional[float] = None
    duration: Optional[float] = None
    children: List['TimeMeasurement'] = field(default_factory=list)

    def stop(self) -> float:
        """停止计时并返回持续时间"""
        self.end_time = time.time()
        self.duration = self.end_time - self.start_time
        return self.duration


class TimeProfiler:
    """时间性能分析器"""

    def __init__(self, enable_profiling: bool = True):
        """
        初始化时间分析器

        Args:
            enable_profiling: 是否启用cProfile详细分析
        """
        self.enable_profiling = enable_profiling
        self.measurements: List[TimeMeasurement] = []
        self.current_stack: List[TimeMeasurement] = []
        self.function_timings: Dict[str, List[float]] = defaultdict(list)
        self.profiler: Optional[cProfile.Profile] = None

        self.total_execution_time = 0.0
        self.n_calls = 0

    def start(self, name: str) -> TimeMeasurement:
        """
        开始计时，嵌套调用形成调用树

        Args:
            name: 测量名称

        Returns:
            时间测量对象
        """
        measurement = TimeMeasurement(name=name, start_time=time.time())

        if self.current_stack:
            self.current_stack[-1].children.append(measurement)
        else:
            self.measurements.append(measurement)

        self.current_stack.append(measurement)
        return measurement

    def stop(self, name: Optional[str] = None) -> Optional[float]:
        """
        停止计时

        Args:
            name: 要停止的测量名称（如果为None则停止当前）

        Returns:
            持续时间（秒）
        """
        if not self.current_stack:
            return None

        if name is None:
            measurement = self.current_stack.pop()
        else:
            for i, meas in enumerate(reversed(self.current_stack)):
                if meas.name == name:
                    # 先停止嵌套在其中的测量
                    for _ in range(i):
                        self.current_stack.pop().stop()
                    measurement = self.current_stack.pop()
                    break
            else:
                warnings.warn(f"未找到测量 '{name}'")
                return None

        duration = measurement.stop()

        self.function_timings[measurement.name].append(duration)
        self.total_execution_time += duration
        self.n_calls += 1

        return duration

    def profile_function(self, func: Callable, *args, **kwargs) -> Tuple[Any, Dict[str, Any]]:
        """
        分析函数的执行时间

        Args:
            func: 要分析的函数
            *args: 函数参数
            **kwargs: 函数关键字参数

        Returns:
            (函数结果, 性能分析结果)
        """
        name = getattr(func, '__name__', repr(func))

        if self.enable_profiling:
            self.profiler = cProfile.Profile()
            self.profiler.enable()

        self.start(name)
        try:
            result = func(*args, **kwargs)
        finally:
            self.stop(name)
            if self.enable_profiling and self.profiler:
                self.profiler.disable()

        return result, self.analyze_function(name)

    def profile_clustering(self, clusterer: Any, objects: Any) -> Tuple[Any, Dict[str, Any]]:
        """
        分析一次聚类：总耗时、邻域查询次数以及邻域查询所占的时间

        Args:
            clusterer: 提供fit和n_queries_的聚类器
            objects: 待聚类的对象

        Returns:
            (拟合后的聚类器, 性能分析结果)
        """
        result, analysis = self.profile_function(clusterer.fit, objects)

        n_queries = getattr(clusterer, 'n_queries_', 0)
        execution_time = analysis['execution_time']
        analysis['n_queries'] = n_queries
        analysis['queries_per_second'] = n_queries / execution_time if execution_time > 0 else 0.0

        if self.profiler:
            query_time = self._cumulative_time('_epsilon_range_query')
            analysis['query_time'] = query_time
            analysis['query_time_ratio'] = query_time / execution_time if execution_time > 0 else 0.0

        return result, analysis

    def _cumulative_time(self, func_name: str) -> float:
        """cProfile中某个函数名的累计时间"""
        stats = pstats.Stats(self.profiler).stats
        return sum(ct for (_, _, name), (_, _, _, ct, _) in stats.items() if name == func_name)

    def analyze_function(self, function_name: str) -> Dict[str, Any]:
        """
        汇总某个测量名称的计时

        Args:
            function_name: 测量名称

        Returns:
            性能分析结果
        """
        timings = self.function_timings.get(function_name, [])
        values = timings or [0.0]

        analysis = {
            'function_name': function_name,
            'execution_time': timings[-1] if timings else 0.0,
            'n_calls': len(timings),
            'avg_time': float(np.mean(values)),
            'std_time': float(np.std(values)),
            'min_time': float(np.min(values)),
            'max_time': float(np.max(values))
        }

        if self.profiler:
            profile_data = self._get_profile_stats()
            analysis['top_functions'] = profile_data['top_functions'][:5]

        return analysis

    def _get_profile_stats(self, limit: int = 20) -> Dict[str, Any]:
        """获取cProfile统计信息，按累计时间排序"""
        s = io.StringIO()
        ps = pstats.Stats(self.profiler, stream=s).sort_stats('cumulative')
        ps.print_stats(limit)

        top_functions = []
        for (filename, lineno, func_name), (cc, nc, tt, ct, _) in ps.stats.items():
            top_functions.append({
                'function': f"{filename}:{lineno}({func_name})",
                'ncalls': nc,
                'tottime': tt,
                'cumtime': ct
            })
        top_functions.sort(key=lambda x: x['cumtime'], reverse=True)

        return {
            'stats_output': s.getvalue(),
            'top_functions': top_functions[:limit]
        }

    def generate_performance_report(self) -> Dict[str, Any]:
        """
        生成性能分析报告

        Returns:
            性能报告
        """
        def process_measurement(meas: TimeMeasurement, depth: int = 0) -> Dict[str, Any]:
            return {
                'name': meas.name,
                'duration': meas.duration or 0,
                'depth': depth,
                'children': [process_measurement(c, depth + 1) for c in meas.children]
            }

        return {
            'summary': {
                'total_execution_time': self.total_execution_time,
                'n_function_calls': self.n_calls,
                'n_unique_functions': len(self.function_timings)
            },
            'call_tree': [process_measurement(m) for m in self.measurements],
            'function_timings': {
                func: {
                    'total': float(np.sum(times)),
                    'avg': float(np.mean(times)),
                    'n_calls': len(times)
                }
                for func, times in self.function_timings.items()
            }
        }

    def reset(self) -> None:
        """重置分析器"""
        self.measurements.clear()
        self.current_stack.clear()
        self.function_timings.clear()
        self.total_execution_time = 0.0
        self.n_calls = 0
        self.profiler = None


def profile_function(func: Callable = None, detailed: bool = False):
    """
    装饰器：分析函数执行时间，被装饰函数返回 (结果, 分析结果)

    Args:
        func: 要装饰的函数
        detailed: 是否启用cProfile并打印主要耗时函数
    """

    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            profiler = TimeProfiler(enable_profiling=detailed)
            result, analysis = profiler.profile_function(f, *args, **kwargs)

            if detailed:
                print(f"\n函数 {f.__name__} 性能分析:")
                print(f"  执行时间: {analysis['execution_time']:.4f} 秒")
                for func_info in analysis.get('top_functions', [])[:3]:
                    print(f"    {func_info['function']}: {func_info['cumtime']:.4f} 秒")

            return result, analysis

        return wrapper

    if func is None:
        return decorator
    else:
        return decorator(func)

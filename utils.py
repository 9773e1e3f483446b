"""
Utility functions for lazy pipelines.

This module provides logging setup, a runner for independent units of work,
performance measurement, and building pipelines from declarative stage specs.
"""

import gc
import logging
import os
import sys
import time
import tracemalloc
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional, Union

import psutil

from functional import Runnable
from lazy import Pipeline
from models import OperationSpec, PerformanceReport, StageType, StreamSettings

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(funcName)s:%(lineno)d] - %(message)s'


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure root logging on stderr; level defaults to LAZY_STREAMS_LOG_LEVEL"""
    level = level or StreamSettings.from_env().log_level
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
    return logging.getLogger('lazy_streams')


# ---------- Independent units of work ----------

class TaskRunner:
    """Runs zero-argument actions either inline or on a worker thread."""

    def __init__(self, max_workers: Optional[int] = None):
        self.max_workers = max_workers or StreamSettings.from_env().parallel_workers
        self._executor: Optional[ThreadPoolExecutor] = None

    def run(self, action: Runnable) -> None:
        """Execute action on the calling thread; its exceptions propagate."""
        action()

    def submit(self, action: Runnable) -> Future:
        """Execute action on a worker thread and return its Future."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="task-runner"
            )
            logger.info(f"Started task runner with {self.max_workers} worker thread(s)")
        future = self._executor.submit(action)
        future.add_done_callback(self._log_failure)
        return future

    @staticmethod
    def _log_failure(future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Background task failed: {error!r}")

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
            logger.info("Task runner stopped")

    def __enter__(self) -> "TaskRunner":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(wait=True)


# ---------- Performance tracking ----------

_performance_metrics = {
    "operations": [],
    "total_time_ms": 0.0,
    "total_memory_mb": 0.0,
    "operation_count": 0
}


def _record(report: PerformanceReport) -> PerformanceReport:
    _performance_metrics["operations"].append(report)
    _performance_metrics["total_time_ms"] += report.execution_time_ms
    _performance_metrics["total_memory_mb"] += report.memory_usage_mb
    _performance_metrics["operation_count"] += 1
    return report


def _rss_mb() -> float:
    return psutil.Process(os.getpid()).memory_info().rss / 1024 / 1024


def measure_performance(operation_name: str, func, *args, **kwargs) -> PerformanceReport:
    """Measure one call's wall time, peak traced memory and process RSS.

    The report is recorded in the module history. When func raises, a failed
    report is recorded and the exception is re-raised.
    """
    tracemalloc.start()
    gc.collect()
    start_time = time.perf_counter()

    try:
        result = func(*args, **kwargs)
    except Exception as e:
        execution_time_ms = (time.perf_counter() - start_time) * 1000
        _, peak = tracemalloc.get_traced_memory()
        _record(PerformanceReport(
            operation=operation_name,
            execution_time_ms=execution_time_ms,
            memory_usage_mb=peak / 1024 / 1024,
            rss_mb=_rss_mb(),
            success=False,
            error=str(e),
            timestamp=time.time()
        ))
        logger.error(f"{operation_name} failed after {execution_time_ms:.2f} ms: {e}")
        raise
    finally:
        _, peak = tracemalloc.get_traced_memory()
        tracemalloc.stop()

    execution_time_ms = (time.perf_counter() - start_time) * 1000
    report = _record(PerformanceReport(
        operation=operation_name,
        execution_time_ms=execution_time_ms,
        memory_usage_mb=peak / 1024 / 1024,
        rss_mb=_rss_mb(),
        success=True,
        result_size=len(result) if hasattr(result, "__len__") else None,
        timestamp=time.time()
    ))
    logger.debug(f"{operation_name} took {execution_time_ms:.2f} ms")
    return report


def get_performance_summary() -> Dict[str, Any]:
    """Get summary of all performance metrics"""
    count = _performance_metrics["operation_count"]
    if count == 0:
        return {
            "total_operations": 0,
            "total_time_ms": 0.0,
            "total_memory_mb": 0.0,
            "avg_time_ms": 0.0,
            "avg_memory_mb": 0.0
        }

    return {
        "total_operations": count,
        "total_time_ms": _performance_metrics["total_time_ms"],
        "total_memory_mb": _performance_metrics["total_memory_mb"],
        "avg_time_ms": _performance_metrics["total_time_ms"] / count,
        "avg_memory_mb": _performance_metrics["total_memory_mb"] / count
    }


def clear_performance_metrics():
    """Clear all performance metrics"""
    global _performance_metrics
    _performance_metrics = {
        "operations": [],
        "total_time_ms": 0.0,
        "total_memory_mb": 0.0,
        "operation_count": 0
    }


# ---------- Declarative pipelines ----------

def apply_operation(pipeline: Pipeline, op: OperationSpec) -> Pipeline:
    """Append the stage described by op to pipeline."""
    if op.type == StageType.MAP:
        return pipeline.map(op.function)
    elif op.type == StageType.MAP_OR_DEFAULT:
        return pipeline.map_or_default(op.function, op.default)
    elif op.type == StageType.FILTER:
        return pipeline.filter(op.function)
    elif op.type == StageType.PEEK:
        return pipeline.peek(op.function)
    elif op.type == StageType.LIMIT:
        return pipeline.limit(op.count)
    elif op.type == StageType.SKIP:
        return pipeline.skip(op.count)
    elif op.type == StageType.SORTED:
        return pipeline.sorted(key=op.function, reverse=op.reverse)
    elif op.type == StageType.DISTINCT:
        return pipeline.distinct()
    elif op.type == StageType.BATCH:
        return pipeline.batch(op.count)
    raise ValueError(f"Unknown op: {op.type}")


def build_pipeline(source: Union[Pipeline, Iterable[Any]],
                   operations: List[Union[OperationSpec, Dict[str, Any]]]) -> Pipeline:
    """Chain validated stage specs onto a source; dicts are validated into OperationSpec."""
    pipeline = source if isinstance(source, Pipeline) else Pipeline(source)
    for op in operations:
        spec = op if isinstance(op, OperationSpec) else OperationSpec.model_validate(op)
        pipeline = apply_operation(pipeline, spec)
    return pipeline


def process_operations(source: Iterable[Any],
                       operations: List[Union[OperationSpec, Dict[str, Any]]],
                       parallel: bool = False) -> Dict[str, Any]:
    """Build, run and measure a declarative pipeline, collecting survivors into a list."""
    specs = [op if isinstance(op, OperationSpec) else OperationSpec.model_validate(op)
             for op in operations]
    pipeline = build_pipeline(source, specs)
    if parallel:
        pipeline = pipeline.parallel()

    holder: Dict[str, Any] = {}

    def _collect():
        holder["result"] = pipeline.to_list()
        return holder["result"]

    report = measure_performance(f"pipeline_{len(specs)}_stages", _collect)
    return {
        "result": holder["result"],
        "operations_applied": [spec.type.value for spec in specs],
        "performance": report,
    }

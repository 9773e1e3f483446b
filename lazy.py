"""
Lazy, single-use pipelines over in-memory sequences and generators.

A Pipeline records stages and does no work until a terminal operation runs.
The terminal operation chains one sink per stage and pushes source elements
through the chain one at a time, so every element visits all stages before
the next one is pulled. A pipeline can be operated on exactly once: chaining
from it or running a terminal operation on it makes it unusable.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from functools import reduce as fold
from typing import Any, Callable, Iterable, List, Optional, Tuple, Type

import collectors
from collectors import Collector, SummaryStatistics
from functional import (
    BinaryOperator, Consumer, Function, OptionalValue, Predicate, Supplier,
    identity, with_default,
)
from models import StageType, StreamSettings

logger = logging.getLogger(__name__)

_MISSING = object()

# Stages that carry state across elements and cannot run per partition
_STATEFUL_STAGES = {StageType.LIMIT, StageType.SKIP, StageType.SORTED,
                    StageType.DISTINCT, StageType.BATCH}


class PipelineConsumedError(RuntimeError):
    """Raised when a pipeline is used after being chained from or consumed."""

    def __init__(self, message: str = "pipeline has already been operated upon or consumed"):
        super().__init__(message)


class UnboundedSourceError(RuntimeError):
    """Raised when a terminal operation would have to exhaust an infinite source."""


# ---------- sinks ----------

class _Sink:
    """Receives elements pushed by the driver loop and forwards survivors downstream."""

    def __init__(self, downstream: Optional["_Sink"] = None):
        self.downstream = downstream

    def begin(self):
        if self.downstream is not None:
            self.downstream.begin()

    def accept(self, item):
        self.downstream.accept(item)

    def end(self):
        if self.downstream is not None:
            self.downstream.end()

    def cancelled(self) -> bool:
        """True once no further elements can make a difference."""
        return self.downstream.cancelled() if self.downstream is not None else False


class _FilterSink(_Sink):
    def __init__(self, predicate, downstream):
        super().__init__(downstream)
        self.predicate = predicate

    def accept(self, item):
        if self.predicate(item):
            self.downstream.accept(item)


class _MapSink(_Sink):
    def __init__(self, fn, downstream):
        super().__init__(downstream)
        self.fn = fn

    def accept(self, item):
        self.downstream.accept(self.fn(item))


class _PeekSink(_Sink):
    def __init__(self, action, downstream):
        super().__init__(downstream)
        self.action = action

    def accept(self, item):
        self.action(item)
        self.downstream.accept(item)


class _LimitSink(_Sink):
    def __init__(self, n, downstream):
        super().__init__(downstream)
        self.remaining = n

    def accept(self, item):
        if self.remaining > 0:
            self.remaining -= 1
            self.downstream.accept(item)

    def cancelled(self):
        return self.remaining <= 0 or self.downstream.cancelled()


class _SkipSink(_Sink):
    def __init__(self, n, downstream):
        super().__init__(downstream)
        self.to_skip = n

    def accept(self, item):
        if self.to_skip > 0:
            self.to_skip -= 1
            return
        self.downstream.accept(item)


class _DistinctSink(_Sink):
    def __init__(self, downstream):
        super().__init__(downstream)
        self.seen = set()

    def accept(self, item):
        if item in self.seen:
            return
        self.seen.add(item)
        self.downstream.accept(item)


class _SortedSink(_Sink):
    """Barrier: holds every upstream survivor and releases them sorted at end()."""

    def __init__(self, key, reverse, downstream):
        super().__init__(downstream)
        self.key = key
        self.reverse = reverse
        self.buffer: List[Any] = []

    def accept(self, item):
        self.buffer.append(item)

    def end(self):
        self.buffer.sort(key=self.key, reverse=self.reverse)
        for item in self.buffer:
            if self.downstream.cancelled():
                break
            self.downstream.accept(item)
        self.buffer = []
        self.downstream.end()

    def cancelled(self):
        return False


class _BatchSink(_Sink):
    def __init__(self, size, downstream):
        super().__init__(downstream)
        self.size = size
        self.bucket: List[Any] = []

    def accept(self, item):
        self.bucket.append(item)
        if len(self.bucket) == self.size:
            self.downstream.accept(tuple(self.bucket))
            self.bucket = []

    def end(self):
        if self.bucket and not self.downstream.cancelled():
            self.downstream.accept(tuple(self.bucket))
        self.bucket = []
        self.downstream.end()


class _Terminal(_Sink):
    """Last sink in the chain; sets stopped to short-circuit the driver."""

    def __init__(self):
        super().__init__()
        self.stopped = False

    def cancelled(self):
        return self.stopped


class _ForEachSink(_Terminal):
    def __init__(self, action):
        super().__init__()
        self.action = action

    def accept(self, item):
        self.action(item)


class _FirstSink(_Terminal):
    def __init__(self):
        super().__init__()
        self.result = OptionalValue.empty()

    def accept(self, item):
        self.result = OptionalValue.of(item)
        self.stopped = True


class _MatchSink(_Terminal):
    """Stops at the first element whose predicate result equals stop_on."""

    def __init__(self, predicate, stop_on: bool):
        super().__init__()
        self.predicate = predicate
        self.stop_on = stop_on

    def accept(self, item):
        if bool(self.predicate(item)) == self.stop_on:
            self.stopped = True


class _CollectSink(_Terminal):
    def __init__(self, collector: Collector):
        super().__init__()
        self.collector = collector
        self.container = collector.supplier()

    def accept(self, item):
        self.container = self.collector.accumulator(self.container, item)


class _ReduceSink(_Terminal):
    def __init__(self, fn, initial=_MISSING):
        super().__init__()
        self.fn = fn
        self.value = initial

    def accept(self, item):
        self.value = item if self.value is _MISSING else self.fn(self.value, item)


# ---------- sources ----------

def _iterate(seed, next_fn):
    value = seed
    while True:
        yield value
        value = next_fn(value)


def _generate(supplier):
    while True:
        yield supplier()


def _partition(items: List[Any], parts: int) -> List[List[Any]]:
    if not items:
        return [[]]
    size = -(-len(items) // parts)
    return [items[i:i + size] for i in range(0, len(items), size)]


class Pipeline:
    """
    A chainable, single-use lazy pipeline.

    Intermediate operations return a new Pipeline and retire the receiver.
    Terminal operations drive the source through the recorded stages.
    """

    def __init__(self, source: Iterable[Any], ops: Optional[Tuple] = None,
                 bounded: bool = True, parallel: bool = False,
                 max_workers: Optional[int] = None):
        self._source = source
        self._ops = tuple(ops or ())   # sequence of (StageType, argument)
        self._bounded = bounded
        self._parallel = parallel
        self._max_workers = max_workers
        self._consumed = False

    # --------- sources ----------
    @classmethod
    def of(cls, *items) -> "Pipeline":
        return cls(items)

    @classmethod
    def empty(cls) -> "Pipeline":
        return cls(())

    @classmethod
    def range(cls, start: int, stop: int) -> "Pipeline":
        """Integers from start up to, not including, stop."""
        return cls(range(start, stop))

    @classmethod
    def range_closed(cls, start: int, end: int) -> "Pipeline":
        """Integers from start up to and including end."""
        return cls(range(start, end + 1))

    @classmethod
    def iterate(cls, seed: Any, next_fn: Function) -> "Pipeline":
        """Unbounded source: seed, next_fn(seed), next_fn(next_fn(seed)), ..."""
        return cls(_iterate(seed, next_fn), bounded=False)

    @classmethod
    def generate(cls, supplier: Supplier) -> "Pipeline":
        """Unbounded source of repeated supplier() calls."""
        return cls(_generate(supplier), bounded=False)

    # --------- state ----------
    @property
    def is_consumed(self) -> bool:
        return self._consumed

    @property
    def is_parallel(self) -> bool:
        return self._parallel

    @property
    def is_bounded(self) -> bool:
        """Whether an exhausting terminal operation is guaranteed to finish."""
        if self._bounded:
            return True
        for op, _ in self._ops:
            if op == StageType.SORTED:
                return False
            if op == StageType.LIMIT:
                return True
        return False

    @property
    def stages(self) -> Tuple[str, ...]:
        return tuple(op.value for op, _ in self._ops)

    # --------- chainable operators (lazy) ----------
    def filter(self, predicate: Predicate) -> "Pipeline":
        return self._with_op(StageType.FILTER, predicate)

    def map(self, fn: Function) -> "Pipeline":
        return self._with_op(StageType.MAP, fn)

    def map_or_default(self, fn: Function, default: Any,
                       errors: Tuple[Type[BaseException], ...] = (ValueError, TypeError)) -> "Pipeline":
        """Map with fallback: the listed errors replace the element with default."""
        return self._with_op(StageType.MAP_OR_DEFAULT, with_default(fn, default, errors))

    def peek(self, action: Consumer) -> "Pipeline":
        return self._with_op(StageType.PEEK, action)

    def limit(self, n: int) -> "Pipeline":
        """Keep at most n survivors, then stop pulling from the source."""
        if n < 0:
            raise ValueError(f"limit must be >= 0, got {n}")
        return self._with_op(StageType.LIMIT, int(n))

    def skip(self, n: int) -> "Pipeline":
        if n < 0:
            raise ValueError(f"skip must be >= 0, got {n}")
        return self._with_op(StageType.SKIP, int(n))

    def sorted(self, key: Optional[Function] = None, reverse: bool = False) -> "Pipeline":
        return self._with_op(StageType.SORTED, (key, reverse))

    def distinct(self) -> "Pipeline":
        return self._with_op(StageType.DISTINCT, None)

    def batch(self, size: int) -> "Pipeline":
        if size < 1:
            raise ValueError(f"batch size must be >= 1, got {size}")
        return self._with_op(StageType.BATCH, int(size))

    def chunk(self, size: int) -> "Pipeline":
        """Alias for batch()"""
        return self.batch(size)

    def parallel(self, max_workers: Optional[int] = None) -> "Pipeline":
        self._claim()
        return Pipeline(self._source, self._ops, self._bounded, True,
                        max_workers or self._max_workers)

    def sequential(self) -> "Pipeline":
        self._claim()
        return Pipeline(self._source, self._ops, self._bounded, False, self._max_workers)

    # --------- terminal operations ----------
    def for_each(self, action: Consumer) -> None:
        """Call action on every survivor; encounter order unless parallel."""
        self._run(lambda: _ForEachSink(action))

    def find_first(self) -> OptionalValue:
        return self._run(_FirstSink, exhausts=False, splittable=False)[0].result

    def find_any(self) -> OptionalValue:
        return self.find_first()

    def any_match(self, predicate: Predicate) -> bool:
        return self._run(lambda: _MatchSink(predicate, True), exhausts=False, splittable=False)[0].stopped

    def all_match(self, predicate: Predicate) -> bool:
        return not self._run(lambda: _MatchSink(predicate, False), exhausts=False, splittable=False)[0].stopped

    def none_match(self, predicate: Predicate) -> bool:
        return not self._run(lambda: _MatchSink(predicate, True), exhausts=False, splittable=False)[0].stopped

    def collect(self, collector: Collector) -> Any:
        terminals = self._run(lambda: _CollectSink(collector))
        container = fold(collector.combiner, (t.container for t in terminals))
        return collector.finisher(container)

    def to_list(self) -> List[Any]:
        return self.collect(collectors.to_list())

    def to_set(self) -> set:
        return self.collect(collectors.to_set())

    def to_map(self, key_fn: Function, value_fn: Function = identity,
               merge: Optional[BinaryOperator] = None) -> dict:
        return self.collect(collectors.to_map(key_fn, value_fn, merge))

    def group_by(self, key_fn: Function) -> dict:
        """Group survivors by key_fn, keeping encounter order inside each group"""
        return self.collect(collectors.grouping_by(key_fn))

    def joining(self, delimiter: str = "", prefix: str = "", suffix: str = "") -> str:
        return self.collect(collectors.joining(delimiter, prefix, suffix))

    def reduce(self, fn: BinaryOperator, initial: Any = _MISSING) -> Any:
        """
        Fold survivors left to right with fn.

        With an initial value the folded value is returned; without one the
        result is an OptionalValue that is empty when nothing survived.
        In parallel mode fn must be associative.
        """
        split = self._parallel and self._splittable()
        seed = _MISSING if split else initial
        values = [t.value for t in self._run(lambda: _ReduceSink(fn, seed)) if t.value is not _MISSING]
        if split and initial is not _MISSING:
            values.insert(0, initial)
        if not values:
            return initial if initial is not _MISSING else OptionalValue.empty()
        result = fold(fn, values)
        return result if initial is not _MISSING else OptionalValue.of(result)

    def count(self) -> int:
        return self.collect(collectors.counting())

    def sum(self, start: Any = 0) -> Any:
        return start + self.collect(collectors.summing())

    def summary_statistics(self, fn: Function = identity) -> SummaryStatistics:
        return self.collect(collectors.summarizing(fn))

    def average(self) -> OptionalValue:
        stats = self.summary_statistics()
        return OptionalValue.of(stats.average) if stats.count else OptionalValue.empty()

    def min(self, key: Optional[Function] = None) -> OptionalValue:
        key = key or identity
        return self.reduce(lambda a, b: b if key(b) < key(a) else a)

    def max(self, key: Optional[Function] = None) -> OptionalValue:
        key = key or identity
        return self.reduce(lambda a, b: b if key(b) > key(a) else a)

    # --------- evaluation ----------
    def _run(self, make_terminal: Callable[[], _Terminal], exhausts: bool = True,
             splittable: bool = True) -> List[_Terminal]:
        """Consume the pipeline and return the terminal sink of every partition."""
        if self._consumed:
            raise PipelineConsumedError()
        if exhausts and not self.is_bounded:
            raise UnboundedSourceError(
                "terminal operation would never finish: unbounded source without limit()"
            )
        self._consumed = True
        logger.debug(f"Consuming pipeline {list(self.stages)} (parallel={self._parallel})")

        if self._parallel:
            if splittable and self._splittable():
                return self._run_parallel(make_terminal)
            logger.debug(f"Parallel pipeline {self.stages} evaluated sequentially")
        return [self._drive(self._source, make_terminal())]

    def _drive(self, source: Iterable[Any], terminal: _Terminal) -> _Terminal:
        sink = self._wrap(terminal)
        sink.begin()
        if not sink.cancelled():
            for item in source:
                sink.accept(item)
                if sink.cancelled():
                    break
        sink.end()
        return terminal

    def _wrap(self, terminal: _Terminal) -> _Sink:
        sink: _Sink = terminal
        for op, arg in reversed(self._ops):
            if op in (StageType.MAP, StageType.MAP_OR_DEFAULT):
                sink = _MapSink(arg, sink)
            elif op == StageType.FILTER:
                sink = _FilterSink(arg, sink)
            elif op == StageType.PEEK:
                sink = _PeekSink(arg, sink)
            elif op == StageType.LIMIT:
                sink = _LimitSink(arg, sink)
            elif op == StageType.SKIP:
                sink = _SkipSink(arg, sink)
            elif op == StageType.SORTED:
                key, reverse = arg
                sink = _SortedSink(key, reverse, sink)
            elif op == StageType.DISTINCT:
                sink = _DistinctSink(sink)
            elif op == StageType.BATCH:
                sink = _BatchSink(arg, sink)
            else:
                raise ValueError(f"Unknown op: {op}")
        return sink

    def _splittable(self) -> bool:
        return self._bounded and not any(op in _STATEFUL_STAGES for op, _ in self._ops)

    def _run_parallel(self, make_terminal) -> List[_Terminal]:
        workers = self._max_workers or StreamSettings.from_env().parallel_workers
        partitions = _partition(list(self._source), workers)
        logger.debug(f"Evaluating {self.stages} over {len(partitions)} partition(s) with {workers} worker(s)")
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(lambda part: self._drive(part, make_terminal()), partitions))

    # --------- helpers ----------
    def _claim(self):
        if self._consumed:
            raise PipelineConsumedError()
        self._consumed = True

    def _with_op(self, op: StageType, arg: Any) -> "Pipeline":
        self._claim()
        return Pipeline(self._source, self._ops + ((op, arg),), self._bounded,
                        self._parallel, self._max_workers)

    def __repr__(self) -> str:
        return (f"Pipeline(stages={list(self.stages)}, parallel={self._parallel}, "
                f"consumed={self._consumed})")

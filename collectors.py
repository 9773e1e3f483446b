"""
Collectors: recipes for folding pipeline survivors into a result container.

Each recipe is a supplier (fresh container), an accumulator (fold one
element in, return the container), a combiner (merge two partial containers
produced by parallel partitions, left before right) and a finisher.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from functional import BinaryOperator, Function, identity


class DuplicateKeyError(ValueError):
    """Two elements mapped to the same key and no merge function was given."""

    def __init__(self, key: Any, existing: Any, incoming: Any):
        self.key = key
        self.existing = existing
        self.incoming = incoming
        super().__init__(
            f"Duplicate key {key!r} (attempted merging values {existing!r} and {incoming!r})"
        )


@dataclass(frozen=True)
class Collector:
    supplier: Callable[[], Any]
    accumulator: Callable[[Any, Any], Any]
    combiner: Callable[[Any, Any], Any]
    finisher: Callable[[Any], Any] = field(default=identity)


def _append(container: List[Any], item: Any) -> List[Any]:
    container.append(item)
    return container


def _extend(left: List[Any], right: List[Any]) -> List[Any]:
    left.extend(right)
    return left


def _add(container: set, item: Any) -> set:
    container.add(item)
    return container


def _union(left: set, right: set) -> set:
    left |= right
    return left


def to_list() -> Collector:
    return Collector(list, _append, _extend)


def to_set() -> Collector:
    return Collector(set, _add, _union)


def _put(mapping: Dict[Any, Any], key: Any, value: Any, merge: Optional[BinaryOperator]) -> None:
    if key in mapping:
        if merge is None:
            raise DuplicateKeyError(key, mapping[key], value)
        mapping[key] = merge(mapping[key], value)
    else:
        mapping[key] = value


def to_map(key_fn: Function, value_fn: Function = identity,
           merge: Optional[BinaryOperator] = None) -> Collector:
    """
    Collect into a dict of key_fn(element) -> value_fn(element).

    Colliding values are folded left to right in encounter order with merge.
    Without merge, a collision raises DuplicateKeyError.
    """

    def accumulate(mapping, item):
        _put(mapping, key_fn(item), value_fn(item), merge)
        return mapping

    def combine(left, right):
        for key, value in right.items():
            _put(left, key, value, merge)
        return left

    return Collector(dict, accumulate, combine)


def grouping_by(key_fn: Function, downstream: Optional[Collector] = None) -> Collector:
    """
    Collect into a dict of key -> downstream result (a list by default).

    Keys appear in first-encounter order and each group keeps the source
    encounter order of its members.
    """
    downstream = downstream or to_list()

    def accumulate(groups, item):
        key = key_fn(item)
        if key not in groups:
            groups[key] = downstream.supplier()
        groups[key] = downstream.accumulator(groups[key], item)
        return groups

    def combine(left, right):
        for key, partial in right.items():
            if key in left:
                left[key] = downstream.combiner(left[key], partial)
            else:
                left[key] = partial
        return left

    def finish(groups):
        return {key: downstream.finisher(partial) for key, partial in groups.items()}

    return Collector(dict, accumulate, combine, finish)


def joining(delimiter: str = "", prefix: str = "", suffix: str = "") -> Collector:
    """Concatenate str(element) values; the delimiter only goes between elements."""

    def accumulate(parts, item):
        parts.append(str(item))
        return parts

    def finish(parts):
        return prefix + delimiter.join(parts) + suffix

    return Collector(list, accumulate, _extend, finish)


def averaging(fn: Function = identity) -> Collector:
    """Arithmetic mean of fn(element); 0.0 for no elements."""

    def accumulate(state, item):
        state[0] += fn(item)
        state[1] += 1
        return state

    def combine(left, right):
        return [left[0] + right[0], left[1] + right[1]]

    def finish(state):
        total, count = state
        return total / count if count else 0.0

    return Collector(lambda: [0, 0], accumulate, combine, finish)


def counting() -> Collector:
    return Collector(lambda: 0, lambda n, _: n + 1, lambda a, b: a + b)


def summing(fn: Function = identity) -> Collector:
    return Collector(lambda: 0, lambda total, item: total + fn(item), lambda a, b: a + b)


def mapping(fn: Function, downstream: Collector) -> Collector:
    """Apply fn to each element before handing it to downstream."""
    return Collector(
        downstream.supplier,
        lambda container, item: downstream.accumulator(container, fn(item)),
        downstream.combiner,
        downstream.finisher,
    )


class SummaryStatistics(NamedTuple):
    count: int
    total: Any
    minimum: Any
    maximum: Any

    @property
    def average(self) -> float:
        return self.total / self.count if self.count else 0.0


def summarizing(fn: Function = identity) -> Collector:
    """Count, total, minimum and maximum of fn(element) in one pass."""

    def accumulate(state, item):
        value = fn(item)
        if state[0] == 0:
            state[2] = state[3] = value
        else:
            state[2] = min(state[2], value)
            state[3] = max(state[3], value)
        state[0] += 1
        state[1] += value
        return state

    def combine(left, right):
        if right[0] == 0:
            return left
        if left[0] == 0:
            return right
        return [left[0] + right[0], left[1] + right[1],
                min(left[2], right[2]), max(left[3], right[3])]

    return Collector(lambda: [0, 0, None, None], accumulate, combine,
                     lambda state: SummaryStatistics(*state))

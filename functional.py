"""
Functional building blocks shared by the pipeline and collectors.

A "capability" here is a named operation with exactly one required method.
Any plain function or lambda with the right shape satisfies it, so the
aliases and protocols below exist for type hints and documentation only.
"""

from typing import Any, Callable, Generic, Optional, Protocol, Tuple, Type, TypeVar

T = TypeVar('T')
U = TypeVar('U')

Predicate = Callable[[T], bool]
Function = Callable[[T], U]
Consumer = Callable[[T], None]
Supplier = Callable[[], T]
BinaryOperator = Callable[[T, T], T]
Runnable = Callable[[], None]

# Marker returned by parse_int when text is not an integer
INVALID = -1


class Comparator(Protocol):
    """Orders two values: negative, zero or positive."""

    def __call__(self, x: Any, y: Any) -> int:
        ...


class TriConcat(Protocol):
    """Joins three strings into one."""

    def __call__(self, s: str, x: str, z: str) -> str:
        ...


class Action(Protocol):
    """Zero-argument unit of work."""

    def __call__(self) -> None:
        ...


def compare(x: Any, y: Any) -> int:
    """Three-way comparison returning -1, 0 or 1."""
    return (x > y) - (x < y)


def identity(value: T) -> T:
    return value


class OptionalValue(Generic[T]):
    """
    A value that may be absent.

    Terminal operations such as find_first() and average() return one of these
    instead of None so that a legitimately-None element can still be reported
    as present.
    """

    __slots__ = ("_value", "_present")

    def __init__(self, value: Any = None, present: bool = False):
        self._value = value
        self._present = present

    @classmethod
    def of(cls, value: T) -> "OptionalValue[T]":
        return cls(value, True)

    @classmethod
    def empty(cls) -> "OptionalValue[Any]":
        return cls()

    @classmethod
    def of_nullable(cls, value: Optional[T]) -> "OptionalValue[T]":
        return cls.empty() if value is None else cls.of(value)

    def is_present(self) -> bool:
        return self._present

    def is_empty(self) -> bool:
        return not self._present

    def get(self) -> T:
        """Return the value, or raise ValueError when absent"""
        if not self._present:
            raise ValueError("No value present")
        return self._value

    def or_else(self, default: Any) -> Any:
        return self._value if self._present else default

    def or_else_get(self, supplier: Supplier) -> Any:
        return self._value if self._present else supplier()

    def if_present(self, action: Consumer) -> None:
        if self._present:
            action(self._value)

    def map(self, fn: Function) -> "OptionalValue":
        if not self._present:
            return self
        return OptionalValue.of(fn(self._value))

    def filter(self, pred: Predicate) -> "OptionalValue":
        if self._present and pred(self._value):
            return self
        return OptionalValue.empty()

    def __bool__(self) -> bool:
        return self._present

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OptionalValue):
            return NotImplemented
        return (self._present, self._value) == (other._present, other._value)

    def __hash__(self) -> int:
        return hash((self._present, self._value))

    def __repr__(self) -> str:
        if self._present:
            return f"OptionalValue({self._value!r})"
        return "OptionalValue.empty"


def with_default(fn: Function, default: Any,
                 errors: Tuple[Type[BaseException], ...] = (ValueError, TypeError)) -> Function:
    """Wrap fn so that the listed errors yield default instead of propagating"""

    def _guarded(value):
        try:
            return fn(value)
        except errors:
            return default

    _guarded.__name__ = getattr(fn, "__name__", "guarded")
    return _guarded


def parse_int(text: Any, default: int = INVALID) -> int:
    """Convert text to an int, falling back to default (INVALID unless given)."""
    try:
        return int(text)
    except (TypeError, ValueError):
        return default

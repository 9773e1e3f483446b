"""Models for lazy pipelines (stage specs, settings, performance reports, demo records)."""

import logging
import os
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class StageType(str, Enum):
    """Intermediate operations a pipeline can record."""
    MAP = "map"
    MAP_OR_DEFAULT = "map_or_default"
    FILTER = "filter"
    PEEK = "peek"
    LIMIT = "limit"
    SKIP = "skip"
    SORTED = "sorted"
    DISTINCT = "distinct"
    BATCH = "batch"


FUNCTION_STAGES = {StageType.MAP, StageType.MAP_OR_DEFAULT, StageType.FILTER, StageType.PEEK}
COUNT_STAGES = {StageType.LIMIT, StageType.SKIP, StageType.BATCH}


class OperationSpec(BaseModel):
    """One declarative pipeline stage, e.g. {"type": "filter", "predicate": fn}."""
    type: StageType = Field(..., description="Stage kind")
    function: Optional[Callable[..., Any]] = Field(
        None,
        description="Mapping/predicate/action; optional sort key for 'sorted'"
    )
    count: Optional[int] = Field(
        None,
        ge=0,
        description="Element count for limit/skip, chunk size for batch"
    )
    default: Any = Field(None, description="Fallback value for map_or_default")
    reverse: bool = Field(False, description="Descending order for 'sorted'")

    @model_validator(mode='before')
    @classmethod
    def accept_aliases(cls, data: Any) -> Any:
        """Accept 'predicate' for filters and 'size' for batches."""
        if isinstance(data, dict):
            data = dict(data)
            if "function" not in data and "predicate" in data:
                data["function"] = data.pop("predicate")
            if "count" not in data and "size" in data:
                data["count"] = data.pop("size")
        return data

    @model_validator(mode='after')
    def validate_arguments(self):
        """Enforce that each stage carries the argument it needs."""
        if self.type in FUNCTION_STAGES and self.function is None:
            raise ValueError(f"'{self.type.value}' stage requires a function")
        if self.type in COUNT_STAGES and self.count is None:
            raise ValueError(f"'{self.type.value}' stage requires a count")
        if self.type == StageType.BATCH and self.count < 1:
            raise ValueError("Batch size must be >= 1")
        return self


class PerformanceReport(BaseModel):
    """Timing and memory figures for one measured operation."""
    operation: str = Field(..., description="Name of the measured operation")
    execution_time_ms: float = Field(..., ge=0, description="Wall-clock time in milliseconds")
    memory_usage_mb: float = Field(..., ge=0, description="Peak traced allocation in MB")
    rss_mb: float = Field(..., ge=0, description="Process resident set size in MB after the call")
    success: bool = Field(True, description="Whether the operation returned normally")
    result_size: Optional[int] = Field(None, description="len() of the result when sized")
    error: Optional[str] = Field(None, description="Error message for failed operations")
    timestamp: float = Field(..., description="Unix time the measurement finished")


def _default_workers() -> int:
    return min(4, os.cpu_count() or 1)


class StreamSettings(BaseModel):
    """Runtime configuration read from LAZY_STREAMS_* environment variables."""
    log_level: str = Field("INFO", description="Root logging level")
    parallel_workers: int = Field(
        default_factory=_default_workers,
        ge=1,
        description="Worker threads used by parallel pipelines"
    )

    ENV_PREFIX: ClassVar[str] = "LAZY_STREAMS_"

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Normalise and check against the logging module's level names."""
        level = str(v).strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "StreamSettings":
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for name in ("log_level", "parallel_workers"):
            key = cls.ENV_PREFIX + name.upper()
            if key in env:
                values[name] = env[key]
        return cls(**values)


class Person(BaseModel):
    """Demo record used throughout the grouping and mapping examples."""
    name: str = Field(..., min_length=1)
    age: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return self.name

import logging

import pytest
from pydantic import ValidationError

from lazy import Pipeline
from models import OperationSpec, PerformanceReport, Person, StageType, StreamSettings
from utils import (
    build_pipeline, get_performance_summary, measure_performance,
    process_operations, setup_logging,
)


class TestOperationSpec:
    """Test validation of declarative stage specs"""

    def test_aliases(self):
        spec = OperationSpec.model_validate({"type": "filter", "predicate": bool})
        assert spec.type == StageType.FILTER
        assert spec.function is bool

        spec = OperationSpec.model_validate({"type": "batch", "size": 3})
        assert spec.count == 3

    @pytest.mark.parametrize("payload", [
        {"type": "map"},
        {"type": "limit"},
        {"type": "skip", "count": -1},
        {"type": "batch", "count": 0},
        {"type": "explode"},
        {"type": "map", "function": "not callable"},
    ])
    def test_invalid_specs(self, payload):
        with pytest.raises(ValidationError):
            OperationSpec.model_validate(payload)

    def test_sorted_and_distinct_need_no_arguments(self):
        assert OperationSpec(type="sorted").function is None
        assert OperationSpec(type="distinct").count is None


class TestDeclarativePipelines:
    """Test building and running pipelines from stage specs"""

    def test_build_pipeline(self):
        pipeline = build_pipeline(range(20), [
            {"type": "map", "function": lambda x: x * 2},
            {"type": "filter", "predicate": lambda x: x > 10},
            {"type": "skip", "count": 3},
            {"type": "limit", "count": 5},
        ])
        assert isinstance(pipeline, Pipeline)
        assert pipeline.to_list() == [18, 20, 22, 24, 26]

    def test_build_on_existing_pipeline(self):
        source = Pipeline.iterate(1, lambda i: i + 1)
        pipeline = build_pipeline(source, [OperationSpec(type="limit", count=3)])
        assert pipeline.to_list() == [1, 2, 3]

    def test_process_operations(self):
        outcome = process_operations(["3", "x", "1", "3"], [
            {"type": "map_or_default", "function": int, "default": 0},
            {"type": "distinct"},
            {"type": "sorted", "reverse": True},
            {"type": "batch", "size": 2},
        ])
        assert outcome["result"] == [(3, 1), (0,)]
        assert outcome["operations_applied"] == ["map_or_default", "distinct", "sorted", "batch"]
        report = outcome["performance"]
        assert isinstance(report, PerformanceReport)
        assert report.success and report.result_size == 2

    def test_process_operations_parallel(self):
        outcome = process_operations(range(100), [{"type": "filter", "function": lambda x: x % 10 == 0}],
                                     parallel=True)
        assert outcome["result"] == list(range(0, 100, 10))

    def test_process_operations_rejects_bad_spec(self):
        with pytest.raises(ValidationError):
            process_operations([1], [{"type": "limit"}])


class TestPerformanceMeasurement:
    """Test timing and memory reports"""

    def test_measure_success(self):
        report = measure_performance("squares", lambda n: [i * i for i in range(n)], 1000)
        assert report.success
        assert report.operation == "squares"
        assert report.result_size == 1000
        assert report.execution_time_ms >= 0
        assert report.rss_mb > 0

        summary = get_performance_summary()
        assert summary["total_operations"] == 1

    def test_measure_failure_is_recorded_and_reraised(self):
        def broken():
            raise KeyError("missing")

        with pytest.raises(KeyError):
            measure_performance("broken", broken)

        summary = get_performance_summary()
        assert summary["total_operations"] == 1

    def test_empty_summary(self):
        assert get_performance_summary()["avg_time_ms"] == 0.0


class TestSettings:
    """Test environment configuration"""

    def test_defaults(self):
        settings = StreamSettings.from_env({})
        assert settings.log_level == "INFO"
        assert settings.parallel_workers >= 1

    def test_from_env(self):
        settings = StreamSettings.from_env({
            "LAZY_STREAMS_LOG_LEVEL": "debug",
            "LAZY_STREAMS_PARALLEL_WORKERS": "3",
        })
        assert settings.log_level == "DEBUG"
        assert settings.parallel_workers == 3

    @pytest.mark.parametrize("env", [
        {"LAZY_STREAMS_LOG_LEVEL": "chatty"},
        {"LAZY_STREAMS_PARALLEL_WORKERS": "0"},
        {"LAZY_STREAMS_PARALLEL_WORKERS": "many"},
    ])
    def test_invalid_env(self, env):
        with pytest.raises(ValidationError):
            StreamSettings.from_env(env)

    def test_setup_logging_uses_env_level(self, monkeypatch):
        monkeypatch.setenv("LAZY_STREAMS_LOG_LEVEL", "WARNING")
        setup_logging()
        assert logging.getLogger().level == logging.WARNING
        setup_logging("INFO")
        assert logging.getLogger().level == logging.INFO


class TestPerson:
    def test_person_is_hashable_and_prints_name(self):
        ross = Person(name="Ross", age=29)
        assert str(ross) == "Ross"
        assert len({ross, Person(name="Ross", age=29)}) == 1

    def test_person_validation(self):
        with pytest.raises(ValidationError):
            Person(name="", age=3)
        with pytest.raises(ValidationError):
            Person(name="Old", age=-1)

"""
Pytest configuration for the lazy pipeline tests.

Ensures the project root is on the Python path so tests can import
lazy, collectors, functional, models and utils directly.
"""

import sys
from pathlib import Path

import pytest

parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

from models import Person
from utils import clear_performance_metrics


@pytest.fixture
def people():
    return [
        Person(name="Ross", age=29),
        Person(name="Dave", age=30),
        Person(name="Alan", age=50),
        Person(name="Chris", age=29),
        Person(name="Ross", age=30),
    ]


@pytest.fixture
def call_log():
    """List that tracking functions append to, in call order."""
    return []


@pytest.fixture(autouse=True)
def reset_performance_metrics():
    clear_performance_metrics()
    yield
    clear_performance_metrics()

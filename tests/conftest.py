"""
Pytest configuration and shared fixtures for Colony tests.

Engines are built with a manual clock so that TTLs, day boundaries and
retention windows are driven explicitly by the tests.
"""
from typing import List
from unittest.mock import Mock

import pytest

from Colony.core.foundation.configs import ColonyConfig, CostThresholds
from Colony.core.foundation.data_structures import Task
from Colony.core.learning.collective_learning import CollectiveLearningEngine
from Colony.core.learning.types import AgentExperience
from Colony.core.optimization.cost_optimizer import CostOptimizer
from Colony.core.utils.async_utils import EventBus
from Colony.core.utils.clock import ManualClock
from Colony.core.validation.quality_validator import QualityValidator

# 2023-11-14 22:13:20 UTC
EPOCH_START = 1_700_000_000.0


# =============================================================================
# Clock & Bus Fixtures
# =============================================================================

@pytest.fixture
def clock():
    """Manual clock starting at a fixed, realistic epoch."""
    return ManualClock(start=EPOCH_START)


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def recorder():
    """Mock listener that records every event it receives."""
    return Mock(name="listener")


# =============================================================================
# Engine Fixtures
# =============================================================================

@pytest.fixture
def config():
    return ColonyConfig()


@pytest.fixture
def optimizer(clock):
    """Cost optimizer with default resources and thresholds."""
    return CostOptimizer(thresholds=CostThresholds(), clock=clock)


@pytest.fixture
def validator():
    return QualityValidator()


@pytest.fixture
def engine(clock):
    """Learning engine with deterministic sampling and predictor weights."""
    return CollectiveLearningEngine(clock=clock, seed=42)


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture
def simple_task():
    return Task(title="Rename variable", description="Rename a local variable", complexity=1)


@pytest.fixture
def complex_task():
    return Task(
        title="Design payment service",
        description="Write code for a payment service with fraud analysis",
        complexity=9,
    )


@pytest.fixture
def make_experience(clock):
    """Factory for experiences stamped with the manual clock."""
    def _make(agent_id: str = "dev-1", task_type: str = "code_generation", **overrides) -> AgentExperience:
        values = dict(
            agent_id=agent_id,
            task_type=task_type,
            action="scaffold",
            success=True,
            reward=0.9,
            context={'language': 'python'},
            timestamp=clock.now(),
        )
        values.update(overrides)
        return AgentExperience(**values)
    return _make


@pytest.fixture
def experiences(make_experience) -> List[AgentExperience]:
    return [make_experience() for _ in range(6)]


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: fast, isolated unit tests"
    )
    config.addinivalue_line(
        "markers", "asyncio: test runs inside an event loop"
    )

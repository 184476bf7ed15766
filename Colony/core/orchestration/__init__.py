"""
Orchestration Layer - Task Pipeline
===================================

- coordinator: ColonyCoordinator facade (optimize, invoke, validate, learn)
"""

from .coordinator import ColonyCoordinator, ModelInvoker, ModelRequest, ModelResponse, TaskOutcome

__all__ = [
    'ColonyCoordinator',
    'ModelInvoker',
    'ModelRequest',
    'ModelResponse',
    'TaskOutcome',
]

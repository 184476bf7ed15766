"""
Foundation Layer - Defaults, Configuration and Core Types
=========================================================

This layer contains the building blocks every engine depends on. These
files have no dependencies on the rest of Colony.

Modules:
--------
- config_defaults: Centralized hand-tuned constants
- configs: Typed, validated configuration sections
- exceptions: Exception hierarchy
- data_structures: Shared task type
"""

from .config_defaults import ColonyDefaults, DEFAULTS, DEFAULT_SKILL_IMPORTANCE, DEFAULT_AGENT_COST_MULTIPLIERS
from .configs import (
    CostThresholds,
    QualityThresholds,
    ScoringWeights,
    EmergenceWeights,
    OptimizerConfig,
    LearningConfig,
    ColonyConfig,
)
from .exceptions import ColonyError, ConfigurationError, BatchExecutionError
from .data_structures import Task

__all__ = [
    'ColonyDefaults',
    'DEFAULTS',
    'DEFAULT_SKILL_IMPORTANCE',
    'DEFAULT_AGENT_COST_MULTIPLIERS',
    'CostThresholds',
    'QualityThresholds',
    'ScoringWeights',
    'EmergenceWeights',
    'OptimizerConfig',
    'LearningConfig',
    'ColonyConfig',
    'ColonyError',
    'ConfigurationError',
    'BatchExecutionError',
    'Task',
]

"""
Colony - Swarm Optimization & Learning Core
===========================================

Cost optimization, quality validation and collective learning for a colony
of cooperating agents.

- CostOptimizer: spend ledger, resource selection, compression, caching, batching
- QualityValidator: static analysis, rule pass and weighted quality metrics
- CollectiveLearningEngine: skill profiles, pattern mining, skill transfer
- ColonyCoordinator: wires a task through all three

All imports are lazy: ``import Colony`` does not load numpy or rich.
"""

import importlib as _importlib

__version__ = "1.0.0"
__author__ = "Colony Contributors"

_LAZY_IMPORTS: dict[str, str] = {
    # --- Engines ---
    "CostOptimizer": ".core.optimization.cost_optimizer",
    "QualityValidator": ".core.validation.quality_validator",
    "CollectiveLearningEngine": ".core.learning.collective_learning",
    "ColonyCoordinator": ".core.orchestration.coordinator",

    # --- Configuration ---
    "ColonyConfig": ".core.foundation.configs",
    "CostThresholds": ".core.foundation.configs",
    "QualityThresholds": ".core.foundation.configs",
    "OptimizerConfig": ".core.foundation.configs",
    "LearningConfig": ".core.foundation.configs",
    "ColonyError": ".core.foundation.exceptions",
    "ConfigurationError": ".core.foundation.exceptions",

    # --- Data ---
    "Task": ".core.foundation.data_structures",
    "Artifact": ".core.validation.types",
    "ValidationResult": ".core.validation.types",
    "AgentExperience": ".core.learning.types",
    "KnowledgeFragment": ".core.learning.types",
    "ModelRequest": ".core.orchestration.coordinator",
    "ModelResponse": ".core.orchestration.coordinator",
    "TaskOutcome": ".core.orchestration.coordinator",

    # --- Utilities ---
    "EventBus": ".core.utils.async_utils",
    "ColonyEvent": ".core.utils.async_utils",
    "ManualClock": ".core.utils.clock",
    "SystemClock": ".core.utils.clock",
}


def __getattr__(name: str):
    if name in _LAZY_IMPORTS:
        module_path = _LAZY_IMPORTS[name]
        module = _importlib.import_module(module_path, __name__)
        value = getattr(module, name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["__version__"] + list(_LAZY_IMPORTS.keys())

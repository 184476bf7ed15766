"""
Colony Core
===========

- foundation: defaults, configuration, exceptions, Task
- utils: clock, token estimation, event bus, periodic tasks
- optimization: CostOptimizer and its ledger, cache, batcher, compressor
- validation: QualityValidator, code analysis, rules
- learning: CollectiveLearningEngine, knowledge store, experience buffer, predictor
- orchestration: ColonyCoordinator

Subpackages are loaded on first attribute access.
"""

import importlib as _importlib

_LAZY_IMPORTS: dict[str, str] = {
    "CostOptimizer": ".optimization",
    "QualityValidator": ".validation",
    "CollectiveLearningEngine": ".learning",
    "ColonyCoordinator": ".orchestration",
    "ColonyConfig": ".foundation",
}


def __getattr__(name: str):
    if name in _LAZY_IMPORTS:
        module = _importlib.import_module(_LAZY_IMPORTS[name], __name__)
        value = getattr(module, name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = list(_LAZY_IMPORTS.keys())

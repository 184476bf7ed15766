"""
Utils Layer - Clock, Token Estimation & Async Helpers
=====================================================

All imports are lazy so that importing a single utility does not pull in
the others.
"""

import importlib as _importlib

_LAZY_IMPORTS: dict[str, str] = {
    # clock
    "Clock": ".clock",
    "SystemClock": ".clock",
    "ManualClock": ".clock",
    "day_of": ".clock",
    # tokenizer
    "TokenEstimator": ".tokenizer",
    "estimate_units": ".tokenizer",
    # async_utils
    "ColonyEvent": ".async_utils",
    "EventBus": ".async_utils",
    "PeriodicTask": ".async_utils",
}


def __getattr__(name: str):
    if name in _LAZY_IMPORTS:
        module_path = _LAZY_IMPORTS[name]
        module = _importlib.import_module(module_path, __name__)
        value = getattr(module, name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = list(_LAZY_IMPORTS.keys())

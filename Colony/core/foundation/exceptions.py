"""
Colony Exceptions
=================

Only configuration problems and broken batch runners are raised. Budget
breaches, invalid artifacts and refused skill transfers are expected outcomes
and are reported through return values and signals instead.
"""

from typing import Any, Optional


class ColonyError(Exception):
    """Base class for all Colony errors."""


class ConfigurationError(ColonyError):
    """Raised when a threshold, weight or resource registration is invalid."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


class BatchExecutionError(ColonyError):
    """Raised on every caller of a batch whose runner misbehaved."""

    def __init__(self, message: str, batch_id: str = "", size: int = 0):
        super().__init__(message)
        self.batch_id = batch_id
        self.size = size


__all__ = [
    'ColonyError',
    'ConfigurationError',
    'BatchExecutionError',
]

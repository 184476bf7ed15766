"""
Shared data structures used across the Colony engines.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


# Keywords that mark a task as templated work likely to be asked for again
REPEATABLE_TITLE_KEYWORDS = ('template', 'boilerplate')
REPEATABLE_DESCRIPTION_KEYWORDS = ('standard',)


@dataclass
class Task:
    """
    A unit of work handed to the swarm.

    ``repeatable`` and ``simple`` may be declared explicitly. An undeclared
    ``repeatable`` is derived from the title/description keywords below; an
    undeclared ``simple`` is decided by ``CostOptimizer.is_simple`` against
    its configured limits.
    """
    title: str
    description: str = ""
    complexity: int = 1
    task_type: str = "general"
    id: str = field(default_factory=lambda: f"task_{uuid.uuid4().hex[:8]}")
    estimated_units: Optional[int] = None
    repeatable: Optional[bool] = None
    simple: Optional[bool] = None
    context: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.complexity = max(1, min(10, int(self.complexity or 1)))

    @property
    def is_repeatable(self) -> bool:
        if self.repeatable is not None:
            return self.repeatable
        title = self.title.lower()
        description = self.description.lower()
        return (any(k in title for k in REPEATABLE_TITLE_KEYWORDS)
                or any(k in description for k in REPEATABLE_DESCRIPTION_KEYWORDS))

    @property
    def cache_key(self) -> str:
        """Key under which results for this task are memoized."""
        return f"{self.task_type}:{self.title.strip().lower()}:{self.description.strip().lower()}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'complexity': self.complexity,
            'task_type': self.task_type,
            'estimated_units': self.estimated_units,
            'repeatable': self.is_repeatable,
            'simple': self.simple,
            'context_length': len(self.context),
        }


__all__ = [
    'Task',
]

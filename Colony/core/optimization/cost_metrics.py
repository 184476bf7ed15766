"""
Cost Metrics
============

Ledger records, running spend aggregates and budget alert signals.

``CostMetrics`` is only ever changed through ``apply(record)``; every
breakdown is updated there and ``total_cost`` is derived from the
per-resource breakdown, so the total always equals the sum of its parts.
"""

import copy
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional

from Colony.core.utils.clock import day_of

logger = logging.getLogger(__name__)


class BudgetScope(Enum):
    """Scope of a spend limit."""
    DAILY = "daily"       # Calendar day (UTC)
    MONTHLY = "monthly"   # Calendar month (UTC)
    TASK = "task"         # Per task id
    AGENT = "agent"       # Per agent id


class AlertLevel(Enum):
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class CostRecord:
    """Immutable ledger entry for one recorded cost."""
    timestamp: float
    agent_id: str
    task_id: str
    resource: str
    units_used: int
    cost: float

    @property
    def day(self) -> date:
        return day_of(self.timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'agent_id': self.agent_id,
            'task_id': self.task_id,
            'resource': self.resource,
            'units_used': self.units_used,
            'cost': self.cost,
        }


@dataclass
class CostMetrics:
    """Running spend aggregates."""
    units_used: int = 0
    api_calls: int = 0
    cost_by_resource: Dict[str, float] = field(default_factory=lambda: defaultdict(float))
    cost_by_agent: Dict[str, float] = field(default_factory=lambda: defaultdict(float))
    cost_by_task: Dict[str, float] = field(default_factory=lambda: defaultdict(float))
    cost_by_day: Dict[date, float] = field(default_factory=lambda: defaultdict(float))
    daily_cost: float = 0.0
    monthly_cost: float = 0.0
    cost_efficiency: float = 100.0

    @property
    def total_cost(self) -> float:
        return sum(self.cost_by_resource.values())

    @property
    def average_cost_per_call(self) -> float:
        return self.total_cost / self.api_calls if self.api_calls else 0.0

    def apply(self, record: CostRecord, today: Optional[date] = None) -> None:
        """Fold one record into every breakdown and recompute derived spend."""
        self.units_used += record.units_used
        self.api_calls += 1
        self.cost_by_resource[record.resource] += record.cost
        self.cost_by_agent[record.agent_id] += record.cost
        self.cost_by_task[record.task_id] += record.cost
        self.cost_by_day[record.day] += record.cost
        self.refresh(today or record.day)

    def refresh(self, today: date) -> None:
        """Recompute daily/monthly spend for ``today`` and the efficiency score."""
        self.daily_cost = self.cost_by_day.get(today, 0.0)
        self.monthly_cost = sum(
            cost for day, cost in self.cost_by_day.items()
            if day.year == today.year and day.month == today.month
        )
        tasks = len(self.cost_by_task)
        average_cost_per_task = self.total_cost / max(tasks, 1)
        self.cost_efficiency = max(0.0, 100.0 - average_cost_per_task * 10)

    def snapshot(self) -> 'CostMetrics':
        """Independent copy for read accessors."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_cost': self.total_cost,
            'units_used': self.units_used,
            'api_calls': self.api_calls,
            'average_cost_per_call': self.average_cost_per_call,
            'cost_by_resource': dict(self.cost_by_resource),
            'cost_by_agent': dict(self.cost_by_agent),
            'cost_by_task': dict(self.cost_by_task),
            'cost_by_day': {d.isoformat(): c for d, c in self.cost_by_day.items()},
            'daily_cost': self.daily_cost,
            'monthly_cost': self.monthly_cost,
            'cost_efficiency': self.cost_efficiency,
        }


@dataclass(frozen=True)
class CostAlert:
    """Structured budget signal emitted when a threshold band is crossed."""
    level: AlertLevel
    scope: BudgetScope
    subject: str
    current: float
    limit: float
    percentage: float
    action: str
    timestamp: float

    @property
    def message(self) -> str:
        return (f"{self.level.value.upper()}: {self.scope.value} spend for '{self.subject}' "
                f"at ${self.current:.2f} of ${self.limit:.2f} ({self.percentage:.1f}%), {self.action}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'level': self.level.value,
            'scope': self.scope.value,
            'subject': self.subject,
            'current': self.current,
            'limit': self.limit,
            'percentage': self.percentage,
            'action': self.action,
            'message': self.message,
            'timestamp': self.timestamp,
        }


__all__ = [
    'BudgetScope',
    'AlertLevel',
    'CostRecord',
    'CostMetrics',
    'CostAlert',
]

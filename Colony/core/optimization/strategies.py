"""
Optimization strategies and the decision returned by ``CostOptimizer.optimize``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List


class StrategyType(Enum):
    CONTEXT_COMPRESSION = "context_compression"
    MODEL_SELECTION = "model_selection"
    BATCH_PROCESSING = "batch_processing"
    CACHING = "caching"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class OptimizationStrategy:
    """Named, prioritized remediation (lower priority value runs first)."""
    type: StrategyType
    name: str
    description: str
    priority: int
    estimated_savings: float  # percent

    @property
    def id(self) -> str:
        return self.type.value


DEFAULT_STRATEGIES: Dict[StrategyType, OptimizationStrategy] = {
    StrategyType.CONTEXT_COMPRESSION: OptimizationStrategy(
        type=StrategyType.CONTEXT_COMPRESSION,
        name="Context Compression",
        description="Compress context to reduce unit usage",
        priority=1,
        estimated_savings=30.0,
    ),
    StrategyType.MODEL_SELECTION: OptimizationStrategy(
        type=StrategyType.MODEL_SELECTION,
        name="Smart Model Selection",
        description="Select the optimal resource for the task complexity",
        priority=2,
        estimated_savings=50.0,
    ),
    StrategyType.BATCH_PROCESSING: OptimizationStrategy(
        type=StrategyType.BATCH_PROCESSING,
        name="Batch Processing",
        description="Process multiple tasks together",
        priority=3,
        estimated_savings=20.0,
    ),
    StrategyType.CACHING: OptimizationStrategy(
        type=StrategyType.CACHING,
        name="Intelligent Caching",
        description="Cache results to avoid redundant calls",
        priority=4,
        estimated_savings=40.0,
    ),
    StrategyType.FALLBACK: OptimizationStrategy(
        type=StrategyType.FALLBACK,
        name="Fallback Models",
        description="Use cheaper resources for simple tasks",
        priority=5,
        estimated_savings=60.0,
    ),
}


def combined_savings(strategies: List[OptimizationStrategy]) -> float:
    """Compound the percentage savings of independent strategies."""
    remaining = 1.0
    for strategy in strategies:
        remaining *= 1.0 - strategy.estimated_savings / 100.0
    return round((1.0 - remaining) * 100.0, 2)


@dataclass
class OptimizationDecision:
    """Resource choice plus the strategies to apply for one task."""
    resource: str
    estimated_cost: float
    strategies: List[OptimizationStrategy] = field(default_factory=list)
    savings: float = 0.0
    requirements: List[str] = field(default_factory=list)
    degraded: bool = False
    estimated_units: int = 0

    @property
    def strategies_applied(self) -> List[str]:
        return [s.name for s in self.strategies]

    @property
    def strategy_savings_percent(self) -> float:
        return combined_savings(self.strategies)

    def applies(self, strategy_type: StrategyType) -> bool:
        return any(s.type is strategy_type for s in self.strategies)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'resource': self.resource,
            'estimated_cost': self.estimated_cost,
            'strategies_applied': self.strategies_applied,
            'savings': self.savings,
            'strategy_savings_percent': self.strategy_savings_percent,
            'requirements': list(self.requirements),
            'degraded': self.degraded,
            'estimated_units': self.estimated_units,
        }


__all__ = [
    'StrategyType',
    'OptimizationStrategy',
    'DEFAULT_STRATEGIES',
    'OptimizationDecision',
    'combined_savings',
]

"""
Optimization Layer - Cost Tracking & Resource Selection
=======================================================

- cost_optimizer: CostOptimizer facade (ledger, selection, strategies)
- cost_metrics: Ledger records, aggregates and budget alerts
- resources: Immutable resource profiles and registry
- context_compressor: Heuristic context reduction
- result_cache: TTL result memo
- batch_executor: Size-or-window task batching
- strategies: Optimization strategies and decisions
"""

from .cost_metrics import AlertLevel, BudgetScope, CostAlert, CostMetrics, CostRecord
from .resources import DEFAULT_RESOURCES, ResourceProfile, ResourceRegistry
from .context_compressor import CompressionResult, ContextCompressor
from .result_cache import CacheEntry, ResultCache
from .batch_executor import BatchExecutor
from .strategies import DEFAULT_STRATEGIES, OptimizationDecision, OptimizationStrategy, StrategyType
from .cost_optimizer import CostOptimizer

__all__ = [
    'AlertLevel',
    'BudgetScope',
    'CostAlert',
    'CostMetrics',
    'CostRecord',
    'DEFAULT_RESOURCES',
    'ResourceProfile',
    'ResourceRegistry',
    'CompressionResult',
    'ContextCompressor',
    'CacheEntry',
    'ResultCache',
    'BatchExecutor',
    'DEFAULT_STRATEGIES',
    'OptimizationDecision',
    'OptimizationStrategy',
    'StrategyType',
    'CostOptimizer',
]

"""
Cost Optimizer
==============

Tracks spend and decides which resource a task should run on.

Features:
- Single cost ledger with per-resource/agent/task/day breakdowns
- Weighted resource selection (cost savings, quality, speed, capability)
- Strategy selection (compression, reselection, caching, fallback)
- Heuristic context compression
- TTL result cache whose hits are credited back into the ledger
- Size-or-window batching of task submissions

Budget breaches never raise. They emit ``CostAlert`` signals to registered
callbacks and switch selection into a degraded (cheapest-first) mode.

Usage:
    optimizer = CostOptimizer()
    optimizer.add_alert_callback(lambda alert: print(alert.message))

    decision = optimizer.optimize(task, agent_id="developer")
    ...
    optimizer.record_cost("developer", task.id, decision.resource, units, cost)
"""

import logging
import math
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Union

from Colony.core.foundation.configs import CostThresholds, OptimizerConfig
from Colony.core.foundation.data_structures import Task
from Colony.core.utils.async_utils import ColonyEvent, EventBus
from Colony.core.utils.clock import Clock, SystemClock
from Colony.core.utils.tokenizer import TokenEstimator

from .batch_executor import BatchExecutor, BatchRunner, Scheduler
from .context_compressor import ContextCompressor
from .cost_metrics import AlertLevel, BudgetScope, CostAlert, CostMetrics, CostRecord
from .resources import ResourceProfile, ResourceRegistry
from .result_cache import ResultCache
from .strategies import DEFAULT_STRATEGIES, OptimizationDecision, OptimizationStrategy, StrategyType

logger = logging.getLogger(__name__)

AlertCallback = Callable[[CostAlert], Any]

CACHE_AGENT = "cache"
CACHE_TASK = "cache_hit"
CACHE_RESOURCE = "cache"

EMERGENCY_ACTION = "emergency optimization: fallback resources, forced caching and compression"
THROTTLE_ACTION = "agent throttled: cheapest qualifying resources only"


class CostOptimizer:
    """
    Cost-aware execution optimizer.

    Args:
        thresholds: Spend limits and alert bands
        config: Selection, compression, cache and batch settings
        resources: Registry (or iterable of profiles); defaults to the built-in table
        clock: Time source for the ledger, day boundaries and cache TTL
        batch_runner: Async callable executing a list of tasks; required for ``batch``
        scheduler: Timer source for the batch window (defaults to the running loop)
        event_bus: Optional bus receiving ``cost_alert`` events
    """

    def __init__(
        self,
        thresholds: Optional[Union[CostThresholds, Mapping[str, Any]]] = None,
        config: Optional[OptimizerConfig] = None,
        resources: Optional[Union[ResourceRegistry, Iterable[ResourceProfile]]] = None,
        clock: Optional[Clock] = None,
        estimator: Optional[TokenEstimator] = None,
        batch_runner: Optional[BatchRunner] = None,
        scheduler: Optional[Scheduler] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.thresholds = self._coerce_thresholds(thresholds)
        self.config = config or OptimizerConfig()
        if isinstance(resources, ResourceRegistry):
            self.resources = resources
        else:
            self.resources = ResourceRegistry(resources)
        self.clock = clock or SystemClock()
        self.estimator = estimator or TokenEstimator()
        self.compressor = ContextCompressor(estimator=self.estimator)
        self.event_bus = event_bus

        self._metrics = CostMetrics()
        self._history: List[CostRecord] = []
        self._cache = ResultCache(ttl_seconds=self.config.cache_ttl_seconds, clock=self.clock)
        self._batcher = BatchExecutor(
            runner=batch_runner,
            window_seconds=self.config.batch_window_seconds,
            max_size=self.config.batch_max_size,
            scheduler=scheduler,
        )
        self._strategies: Dict[StrategyType, OptimizationStrategy] = dict(DEFAULT_STRATEGIES)

        self._throttled: Set[str] = set()
        self._signalled: Set[tuple] = set()
        self._completed_tasks: Set[str] = set()
        self._alert_callbacks: List[AlertCallback] = []

        logger.info(
            f"CostOptimizer initialized: {len(self.resources)} resources, "
            f"daily=${self.thresholds.daily}, per_agent=${self.thresholds.per_agent}"
        )

    @staticmethod
    def _coerce_thresholds(thresholds) -> CostThresholds:
        if thresholds is None:
            return CostThresholds()
        if isinstance(thresholds, CostThresholds):
            return thresholds
        return CostThresholds().updated(**dict(thresholds))

    # =========================================================================
    # COST TRACKING
    # =========================================================================

    def record_cost(
        self,
        agent_id: str,
        task_id: str,
        resource: str,
        units_used: int,
        cost: float,
    ) -> List[CostAlert]:
        """
        Append one ledger entry and check every threshold band.

        Returns:
            The alerts raised by this recording (also sent to callbacks)
        """
        record = CostRecord(
            timestamp=self.clock.now(),
            agent_id=agent_id,
            task_id=task_id,
            resource=resource,
            units_used=units_used,
            cost=cost,
        )
        self._history.append(record)
        self._metrics.apply(record, today=self.clock.today())

        alerts = self._check_thresholds(record)
        for alert in alerts:
            self._emit(alert)

        logger.debug(
            f"Cost recorded: {agent_id}/{task_id} on {resource} - "
            f"units={units_used}, cost=${cost:.4f}, daily=${self._metrics.daily_cost:.4f}"
        )
        return alerts

    def _check_thresholds(self, record: CostRecord) -> List[CostAlert]:
        alerts: List[CostAlert] = []
        today = self.clock.today()
        t = self.thresholds

        alert = self._band_alert(BudgetScope.DAILY, today.isoformat(),
                                 self._metrics.daily_cost, t.daily, latch=today)
        if alert:
            alerts.append(alert)

        month = (today.year, today.month)
        alert = self._band_alert(BudgetScope.MONTHLY, f"{today.year}-{today.month:02d}",
                                 self._metrics.monthly_cost, t.monthly, latch=month)
        if alert:
            alerts.append(alert)

        alert = self._band_alert(BudgetScope.TASK, record.task_id,
                                 self._metrics.cost_by_task.get(record.task_id, 0.0), t.per_task,
                                 latch=record.task_id)
        if alert:
            alerts.append(alert)

        agent_cost = self._metrics.cost_by_agent.get(record.agent_id, 0.0)
        if agent_cost > t.per_agent and record.agent_id not in self._throttled:
            alerts.append(self._throttle(record.agent_id, agent_cost))

        return alerts

    def _band_alert(
        self,
        scope: BudgetScope,
        subject: str,
        current: float,
        limit: float,
        latch: Any,
    ) -> Optional[CostAlert]:
        """Alert once per band per latch key (day, month or task)."""
        percentage = current / limit * 100 if limit > 0 else 0.0
        if percentage >= self.thresholds.critical:
            level, action = AlertLevel.CRITICAL, EMERGENCY_ACTION
        elif percentage >= self.thresholds.warning:
            level, action = AlertLevel.WARNING, "monitoring spend"
        else:
            return None

        key = (scope, level, latch)
        if key in self._signalled:
            return None
        self._signalled.add(key)

        alert = self._make_alert(level, scope, subject, current, limit, percentage, action)
        if level is AlertLevel.CRITICAL:
            logger.error(f"🚨 {alert.message}")
        else:
            logger.warning(f"⚠️ {alert.message}")
        return alert

    def _throttle(self, agent_id: str, agent_cost: float) -> CostAlert:
        self._throttled.add(agent_id)
        limit = self.thresholds.per_agent
        alert = self._make_alert(AlertLevel.CRITICAL, BudgetScope.AGENT, agent_id, agent_cost, limit,
                                 agent_cost / limit * 100, THROTTLE_ACTION)
        logger.warning(f"⚠️ Throttling agent {agent_id} due to cost limits (${agent_cost:.2f} > ${limit:.2f})")
        return alert

    def _make_alert(self, level, scope, subject, current, limit, percentage, action) -> CostAlert:
        return CostAlert(
            level=level,
            scope=scope,
            subject=subject,
            current=current,
            limit=limit,
            percentage=percentage,
            action=action,
            timestamp=self.clock.now(),
        )

    def _emit(self, alert: CostAlert) -> None:
        for callback in self._alert_callbacks:
            try:
                callback(alert)
            except Exception as e:
                logger.error(f"Alert callback error: {e}")
        if self.event_bus is not None:
            self.event_bus.emit(ColonyEvent(type="cost_alert", data=alert.to_dict(), source="cost_optimizer"))

    def add_alert_callback(self, callback: AlertCallback) -> None:
        """Add a callback to be called with every ``CostAlert``."""
        self._alert_callbacks.append(callback)

    def remove_alert_callback(self, callback: AlertCallback) -> None:
        try:
            self._alert_callbacks.remove(callback)
        except ValueError:
            pass

    def get_cost_metrics(self) -> CostMetrics:
        return self._metrics.snapshot()

    def get_cost_by_agent(self, agent_id: str) -> float:
        return self._metrics.cost_by_agent.get(agent_id, 0.0)

    def get_cost_by_task(self, task_id: str) -> float:
        return self._metrics.cost_by_task.get(task_id, 0.0)

    def get_cost_history(self) -> List[CostRecord]:
        return list(self._history)

    def clear_cost_history(self) -> None:
        """Reset the ledger, the aggregates and all throttle/alert state."""
        self._history = []
        self._metrics = CostMetrics()
        self._throttled.clear()
        self._signalled.clear()
        self._completed_tasks.clear()
        logger.info("Cost history cleared")

    # =========================================================================
    # THRESHOLDS & DEGRADED MODE
    # =========================================================================

    def set_cost_thresholds(self, thresholds: Optional[Mapping[str, Any]] = None, **changes: Any) -> CostThresholds:
        """
        Update thresholds in place.

        Raises:
            ConfigurationError: If the resulting thresholds are invalid
        """
        merged = {**dict(thresholds or {}), **changes}
        self.thresholds = self.thresholds.updated(**merged)
        logger.info(f"Cost thresholds updated: {merged}")
        return self.thresholds

    def get_cost_thresholds(self) -> CostThresholds:
        return self.thresholds.updated()

    def is_throttled(self, agent_id: str) -> bool:
        return agent_id in self._throttled

    def reset_throttle(self, agent_id: Optional[str] = None) -> None:
        if agent_id is None:
            self._throttled.clear()
        else:
            self._throttled.discard(agent_id)

    def daily_percentage(self) -> float:
        return self._metrics.daily_cost / self.thresholds.daily * 100

    def is_degraded(self, agent_id: Optional[str] = None) -> bool:
        """Daily spend at the critical band, or the agent is throttled."""
        if self.daily_percentage() >= self.thresholds.critical:
            return True
        return agent_id is not None and agent_id in self._throttled

    # =========================================================================
    # RESOURCE SELECTION
    # =========================================================================

    def derive_requirements(self, task: Task, estimated_units: int) -> List[str]:
        """Capability tags a resource must carry to run ``task``."""
        cfg = self.config
        requirements = []
        if task.complexity > cfg.complex_task_threshold:
            requirements.append('complex_tasks')
        if task.complexity > cfg.reasoning_task_threshold:
            requirements.append('reasoning')
        description = task.description.lower()
        if 'analysis' in description:
            requirements.append('analysis')
        if 'code' in description:
            requirements.append('code_generation')
        if estimated_units > cfg.large_context_units:
            requirements.append('large_context')
        return requirements

    def qualifying_resources(self, requirements: List[str]) -> List[ResourceProfile]:
        return [profile for profile in self.resources if profile.covers(requirements)]

    def select_resource(
        self,
        task: Task,
        estimated_units: Optional[int] = None,
        agent_id: Optional[str] = None,
    ) -> str:
        """
        Pick the best qualifying resource for ``task``.

        Falls back to the configured fallback resource when nothing qualifies,
        and to the cheapest qualifying resource when degraded.
        """
        units = self._units_for(task, estimated_units)
        requirements = self.derive_requirements(task, units)
        candidates = self.qualifying_resources(requirements)
        if not candidates:
            fallback = self.fallback_resource()
            logger.info(f"No resource covers {requirements} for '{task.title}', falling back to {fallback}")
            return fallback

        if self.is_degraded(agent_id):
            return self.resources.cheapest(candidates).name

        reference_cost = self._reference_cost_per_unit()
        best = max(candidates, key=lambda p: self.score_resource(p, requirements, reference_cost))
        return best.name

    def score_resource(
        self,
        profile: ResourceProfile,
        requirements: List[str],
        reference_cost: Optional[float] = None,
    ) -> float:
        """Weighted sum of cost savings, quality, speed and capability match."""
        weights = self.config.scoring_weights
        if reference_cost is None:
            reference_cost = self._reference_cost_per_unit()
        if reference_cost > 0:
            cost_savings = max(0.0, 1.0 - profile.cost_per_unit / reference_cost)
        else:
            cost_savings = 0.0
        return (
            cost_savings * weights.cost
            + profile.quality / 100 * weights.quality
            + profile.speed / 100 * weights.speed
            + profile.capability_match(requirements) * weights.capability
        )

    def fallback_resource(self) -> str:
        if self.config.fallback_resource in self.resources or not len(self.resources):
            return self.config.fallback_resource
        return self.resources.cheapest().name

    def reference_resource(self) -> Optional[ResourceProfile]:
        reference = self.resources.get(self.config.reference_resource)
        return reference or self.resources.most_expensive()

    def _reference_cost_per_unit(self) -> float:
        reference = self.reference_resource()
        return reference.cost_per_unit if reference else 0.0

    def estimate_cost(self, resource_id: str, units: int) -> float:
        profile = self.resources.get(resource_id)
        if profile is None:
            return units * self.config.default_cost_per_unit
        return units * profile.cost_per_unit

    def estimate_task_units(self, task: Task) -> int:
        """Fixed overhead plus description units scaled by complexity, plus context."""
        description_units = self.estimator.estimate(task.description)
        context_units = self.estimator.estimate(task.context)
        return math.ceil(self.config.task_base_units + description_units * task.complexity + context_units)

    def _units_for(self, task: Task, estimated_units: Optional[int]) -> int:
        if estimated_units is not None:
            return estimated_units
        if task.estimated_units is not None:
            return task.estimated_units
        return self.estimate_task_units(task)

    def estimate_execution_cost(self, tasks: Iterable[Task]) -> float:
        total = 0.0
        for task in tasks:
            units = self._units_for(task, None)
            total += self.estimate_cost(self.select_resource(task, units), units)
        return total

    def calculate_agent_cost(self, agent_id: str, minutes: float) -> float:
        """Time-based cost of an agent, scaled by its role multiplier."""
        multipliers = self.config.agent_cost_multipliers
        role = agent_id.replace('_', '-').split('-')[0]
        multiplier = multipliers.get(agent_id, multipliers.get(role, 1.0))
        return self.config.agent_cost_per_minute * minutes * multiplier

    # =========================================================================
    # OPTIMIZATION
    # =========================================================================

    def is_simple(self, task: Task) -> bool:
        """Declared ``task.simple``, else low complexity and a short description."""
        if task.simple is not None:
            return task.simple
        return (task.complexity <= self.config.simple_task_max_complexity
                and len(task.description) < self.config.simple_task_max_description)

    def select_strategies(self, task: Task, estimated_units: int, degraded: bool = False) -> List[OptimizationStrategy]:
        selected: Set[StrategyType] = set()
        if estimated_units > self.config.compression_token_threshold:
            selected.add(StrategyType.CONTEXT_COMPRESSION)
        if self._metrics.daily_cost > self.thresholds.daily * self.config.reselection_daily_fraction:
            selected.add(StrategyType.MODEL_SELECTION)
        if task.is_repeatable:
            selected.add(StrategyType.CACHING)
        if self.is_simple(task):
            selected.add(StrategyType.FALLBACK)
        if degraded:
            selected.update({StrategyType.FALLBACK, StrategyType.CACHING, StrategyType.CONTEXT_COMPRESSION})
        return sorted((self._strategies[s] for s in selected), key=lambda s: s.priority)

    def optimize(
        self,
        task: Task,
        agent_id: str,
        estimated_units: Optional[int] = None,
    ) -> OptimizationDecision:
        """Choose a resource and the strategies to apply for one task."""
        units = self._units_for(task, estimated_units)
        degraded = self.is_degraded(agent_id)
        strategies = self.select_strategies(task, units, degraded)
        requirements = self.derive_requirements(task, units)

        if any(s.type is StrategyType.FALLBACK for s in strategies):
            candidates = self.qualifying_resources(requirements)
            if candidates:
                resource = self.resources.cheapest(candidates).name
            else:
                resource = self.fallback_resource()
        else:
            resource = self.select_resource(task, units, agent_id)

        estimated_cost = self.estimate_cost(resource, units)
        reference = self.reference_resource()
        reference_cost = self.estimate_cost(reference.name, units) if reference else estimated_cost

        decision = OptimizationDecision(
            resource=resource,
            estimated_cost=estimated_cost,
            strategies=strategies,
            savings=reference_cost - estimated_cost,
            requirements=requirements,
            degraded=degraded,
            estimated_units=units,
        )
        logger.debug(
            f"Optimized '{task.title}' for {agent_id}: {resource} (${estimated_cost:.4f}), "
            f"strategies={decision.strategies_applied}, degraded={degraded}"
        )
        return decision

    def compress_context(self, text: str, max_units: float) -> str:
        return self.compressor.compress(text, max_units)

    # =========================================================================
    # CACHING & BATCHING
    # =========================================================================

    def get_cached_result(self, key: str) -> Optional[Any]:
        """Return a live cached result; a hit credits its cost back into the ledger."""
        entry = self._cache.get(key)
        if entry is None:
            return None
        self.record_cost(CACHE_AGENT, CACHE_TASK, CACHE_RESOURCE, 0, -entry.cost)
        return entry.result

    def set_cached_result(self, key: str, result: Any, cost: float) -> None:
        self._cache.set(key, result, cost)

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @property
    def batcher(self) -> BatchExecutor:
        return self._batcher

    async def batch(self, tasks: List[Any]) -> List[Any]:
        """
        Coalesce ``tasks`` with other queued submissions.

        Raises:
            ConfigurationError: If no batch runner was injected
        """
        return await self._batcher.batch(tasks)

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def complete_task(self, task_id: str) -> None:
        """Mark ``task_id`` finished; its alert latches go at the next maintenance tick."""
        self._completed_tasks.add(task_id)

    def _prune_alert_latches(self) -> int:
        today = self.clock.today()
        month = (today.year, today.month)
        stale = set()
        for key in self._signalled:
            scope, _, latch = key
            if ((scope is BudgetScope.DAILY and latch < today)
                    or (scope is BudgetScope.MONTHLY and latch < month)
                    or (scope is BudgetScope.TASK and latch in self._completed_tasks)):
                stale.add(key)
        self._signalled -= stale
        self._completed_tasks.clear()
        return len(stale)

    def run_maintenance(self) -> Dict[str, Any]:
        """Monitoring tick: day rollover, breach logging, throttles, cache and alert-latch eviction."""
        self._metrics.refresh(self.clock.today())

        daily_exceeded = self._metrics.daily_cost > self.thresholds.daily
        if daily_exceeded:
            logger.warning(f"⚠️ Daily cost limit exceeded: ${self._metrics.daily_cost:.2f}")

        for agent_id, cost in list(self._metrics.cost_by_agent.items()):
            if cost > self.thresholds.per_agent and agent_id not in self._throttled:
                self._emit(self._throttle(agent_id, cost))

        evicted = self._cache.evict_expired()
        pruned = self._prune_alert_latches()
        return {
            'daily_cost': self._metrics.daily_cost,
            'daily_limit_exceeded': daily_exceeded,
            'throttled_agents': sorted(self._throttled),
            'cache_evicted': evicted,
            'alerts_pruned': pruned,
        }

    def get_stats(self) -> Dict[str, Any]:
        return {
            'metrics': self._metrics.to_dict(),
            'throttled_agents': sorted(self._throttled),
            'cache': self._cache.get_stats(),
            'batch': self._batcher.get_stats(),
            'compression': self.compressor.get_statistics(),
        }


__all__ = [
    'CostOptimizer',
    'AlertCallback',
]

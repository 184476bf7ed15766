"""
Tests for CostOptimizer
=======================
Covers the cost ledger, threshold bands and agent throttling, resource
selection (including the fallback path), strategy selection, caching with
ledger credits, batching, maintenance and threshold updates.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from Colony.core.foundation.configs import CostThresholds, OptimizerConfig
from Colony.core.foundation.data_structures import Task
from Colony.core.foundation.exceptions import ConfigurationError
from Colony.core.optimization.cost_metrics import AlertLevel, BudgetScope
from Colony.core.optimization.cost_optimizer import CostOptimizer
from Colony.core.optimization.resources import ResourceProfile, ResourceRegistry
from Colony.core.optimization.strategies import StrategyType, combined_savings, DEFAULT_STRATEGIES
from Colony.core.utils.async_utils import EventBus

DAY = 24 * 3600


def _agent_alerts(alerts):
    return [a for a in alerts if a.scope is BudgetScope.AGENT]


# =============================================================================
# Task heuristics
# =============================================================================

@pytest.mark.unit
class TestTask:

    def test_complexity_clamped(self):
        assert Task(title="t", complexity=42).complexity == 10
        assert Task(title="t", complexity=0).complexity == 1

    def test_repeatable_from_keywords(self):
        assert Task(title="Fill in the email template").is_repeatable
        assert Task(title="x", description="Standard onboarding flow").is_repeatable
        assert not Task(title="Investigate outage").is_repeatable

    def test_explicit_flags_win(self, optimizer):
        task = Task(title="template", repeatable=False, simple=False)
        assert not task.is_repeatable
        assert not optimizer.is_simple(task)
        assert task.to_dict()['simple'] is False

    def test_simplicity_follows_optimizer_config(self, clock):
        task = Task(title="Refactor module", description="Split helpers", complexity=5)
        assert not CostOptimizer(clock=clock).is_simple(task)
        relaxed = CostOptimizer(clock=clock, config=OptimizerConfig(simple_task_max_complexity=5))
        assert relaxed.is_simple(task)
        assert relaxed.is_simple(Task(title="t", complexity=1, simple=False)) is False

    def test_cache_key_normalized(self):
        a = Task(title=" Summarize README ", description="Short")
        b = Task(title="summarize readme", description="short")
        assert a.cache_key == b.cache_key


# =============================================================================
# Cost ledger
# =============================================================================

@pytest.mark.unit
class TestCostLedger:

    def test_record_cost_updates_metrics(self, optimizer):
        optimizer.record_cost("dev-1", "t1", "gpt-4", 1000, 0.03)
        metrics = optimizer.get_cost_metrics()
        assert metrics.total_cost == pytest.approx(0.03)
        assert metrics.units_used == 1000
        assert optimizer.get_cost_by_agent("dev-1") == pytest.approx(0.03)
        assert optimizer.get_cost_by_task("t1") == pytest.approx(0.03)
        assert len(optimizer.get_cost_history()) == 1

    def test_total_equals_sum_including_cache_credit(self, optimizer):
        optimizer.record_cost("dev-1", "t1", "gpt-4", 500, 0.5)
        optimizer.record_cost("dev-2", "t2", "gpt-3.5-turbo", 500, 0.25)
        optimizer.set_cached_result("summary", "cached answer", cost=0.5)
        assert optimizer.get_cached_result("summary") == "cached answer"

        history = optimizer.get_cost_history()
        metrics = optimizer.get_cost_metrics()
        assert len(history) == 3
        assert history[-1].cost == -0.5
        assert metrics.total_cost == pytest.approx(sum(r.cost for r in history))
        assert metrics.total_cost == pytest.approx(0.25)

    def test_cache_miss_records_nothing(self, optimizer):
        assert optimizer.get_cached_result("nothing") is None
        assert optimizer.get_cost_history() == []

    def test_expired_cache_entry(self, optimizer, clock):
        optimizer.set_cached_result("k", "v", cost=0.1)
        clock.advance(optimizer.config.cache_ttl_seconds + 1)
        assert optimizer.get_cached_result("k") is None

    def test_metrics_snapshot_is_a_copy(self, optimizer):
        optimizer.record_cost("dev-1", "t1", "gpt-4", 10, 1.0)
        snapshot = optimizer.get_cost_metrics()
        snapshot.cost_by_agent["dev-1"] = 99.0
        assert optimizer.get_cost_by_agent("dev-1") == 1.0

    def test_clear_cost_history(self, optimizer):
        optimizer.record_cost("dev-1", "t1", "gpt-4", 10, 20.0)
        assert optimizer.is_throttled("dev-1")
        optimizer.clear_cost_history()
        assert optimizer.get_cost_metrics().total_cost == 0
        assert not optimizer.is_throttled("dev-1")


# =============================================================================
# Thresholds & alerts
# =============================================================================

@pytest.mark.unit
class TestBudgetAlerts:

    def test_agent_throttled_once_on_second_recording(self, optimizer):
        callback = Mock()
        optimizer.add_alert_callback(callback)

        first = optimizer.record_cost("dev-1", "t1", "gpt-4", 100, 10.0)
        second = optimizer.record_cost("dev-1", "t2", "gpt-4", 100, 15.0)
        third = optimizer.record_cost("dev-1", "t3", "gpt-4", 100, 30.0)

        assert _agent_alerts(first) == []
        assert len(_agent_alerts(second)) == 1
        assert _agent_alerts(third) == []

        delivered = [call.args[0] for call in callback.call_args_list]
        throttles = _agent_alerts(delivered)
        assert len(throttles) == 1
        assert throttles[0].subject == "dev-1"
        assert throttles[0].level is AlertLevel.CRITICAL
        assert optimizer.is_throttled("dev-1")

    def test_daily_warning_then_critical(self, optimizer):
        alerts = []
        optimizer.add_alert_callback(alerts.append)
        optimizer.record_cost("a1", "t1", "gpt-4", 1, 40.0)   # 80%
        optimizer.record_cost("a2", "t2", "gpt-4", 1, 1.0)    # 82%, already warned
        optimizer.record_cost("a3", "t3", "gpt-4", 1, 7.0)    # 96%
        daily = [(a.level, a.scope) for a in alerts if a.scope is BudgetScope.DAILY]
        assert daily == [(AlertLevel.WARNING, BudgetScope.DAILY), (AlertLevel.CRITICAL, BudgetScope.DAILY)]
        assert optimizer.is_degraded()

    def test_per_task_alert(self, optimizer):
        alerts = optimizer.record_cost("a1", "big-task", "gpt-4", 1, 6.0)
        task_alerts = [a for a in alerts if a.scope is BudgetScope.TASK]
        assert len(task_alerts) == 1
        assert task_alerts[0].subject == "big-task"

    def test_alerts_published_on_event_bus(self, clock):
        bus = EventBus()
        listener = Mock()
        bus.subscribe("cost_alert", listener)
        optimizer = CostOptimizer(clock=clock, event_bus=bus)
        optimizer.record_cost("dev-1", "t1", "gpt-4", 1, 11.0)
        scopes = [call.args[0].data['scope'] for call in listener.call_args_list]
        assert "agent" in scopes

    def test_failing_callback_does_not_break_recording(self, optimizer):
        optimizer.add_alert_callback(Mock(side_effect=RuntimeError("boom")))
        alerts = optimizer.record_cost("dev-1", "t1", "gpt-4", 1, 11.0)
        assert _agent_alerts(alerts)

    def test_remove_alert_callback(self, optimizer):
        callback = Mock()
        optimizer.add_alert_callback(callback)
        optimizer.remove_alert_callback(callback)
        optimizer.record_cost("dev-1", "t1", "gpt-4", 1, 11.0)
        callback.assert_not_called()

    def test_set_cost_thresholds(self, optimizer):
        updated = optimizer.set_cost_thresholds(per_agent=2.0)
        assert updated.per_agent == 2.0
        assert optimizer.get_cost_thresholds().per_agent == 2.0

    def test_invalid_threshold_update_keeps_previous(self, optimizer):
        with pytest.raises(ConfigurationError):
            optimizer.set_cost_thresholds({'daily': -5})
        assert optimizer.get_cost_thresholds().daily == 50.0

    def test_thresholds_from_mapping(self, clock):
        optimizer = CostOptimizer(thresholds={'per_agent': 1.0}, clock=clock)
        assert optimizer.thresholds.per_agent == 1.0
        assert optimizer.thresholds.daily == 50.0

    def test_reset_throttle(self, optimizer):
        optimizer.record_cost("dev-1", "t1", "gpt-4", 1, 11.0)
        optimizer.reset_throttle("dev-1")
        assert not optimizer.is_throttled("dev-1")


# =============================================================================
# Resource selection
# =============================================================================

@pytest.mark.unit
class TestResourceSelection:

    def test_requirements_for_complex_task(self, optimizer, complex_task):
        requirements = optimizer.derive_requirements(complex_task, 100)
        assert requirements == ['complex_tasks', 'reasoning', 'analysis', 'code_generation']

    def test_large_context_requirement(self, optimizer):
        assert 'large_context' in optimizer.derive_requirements(Task(title="t"), 5000)

    def test_selected_resource_covers_requirements(self, optimizer, complex_task):
        name = optimizer.select_resource(complex_task)
        requirements = optimizer.derive_requirements(complex_task, optimizer.estimate_task_units(complex_task))
        assert optimizer.resources.get(name).covers(requirements)
        assert name == "gpt-4-turbo"

    def test_every_selection_covers_or_falls_back(self, optimizer):
        for complexity in range(1, 11):
            for description in ("", "code", "analysis of code"):
                for units in (10, 5000):
                    task = Task(title="t", description=description, complexity=complexity)
                    name = optimizer.select_resource(task, units)
                    requirements = optimizer.derive_requirements(task, units)
                    if optimizer.qualifying_resources(requirements):
                        assert optimizer.resources.get(name).covers(requirements)
                    else:
                        assert name == optimizer.fallback_resource()

    def test_fallback_when_nothing_qualifies(self, clock, complex_task):
        registry = ResourceRegistry([
            ResourceProfile(name="basic", cost_per_unit=0.000001, capabilities={'simple_tasks'}),
            ResourceProfile(name="gpt-3.5-turbo", cost_per_unit=0.0000015, capabilities={'fast_response'}),
        ])
        optimizer = CostOptimizer(resources=registry, clock=clock)
        assert optimizer.qualifying_resources(optimizer.derive_requirements(complex_task, 100)) == []
        assert optimizer.select_resource(complex_task) == "gpt-3.5-turbo"

    def test_fallback_unregistered_uses_cheapest(self, clock, complex_task):
        registry = ResourceRegistry([
            ResourceProfile(name="pricey", cost_per_unit=0.01),
            ResourceProfile(name="basic", cost_per_unit=0.001),
        ])
        optimizer = CostOptimizer(resources=registry, clock=clock)
        assert optimizer.select_resource(complex_task) == "basic"

    def test_degraded_picks_cheapest_qualifying(self, clock):
        registry = ResourceRegistry([
            ResourceProfile(name="premium", cost_per_unit=0.00001, quality=100, speed=100),
            ResourceProfile(name="budget", cost_per_unit=0.000009, quality=10, speed=10),
        ])
        optimizer = CostOptimizer(resources=registry, clock=clock,
                                  config=OptimizerConfig(reference_resource="premium"))
        task = Task(title="t", complexity=5, description="d" * 300)
        assert optimizer.select_resource(task) == "premium"
        optimizer.record_cost("dev-1", "t1", "premium", 1, 11.0)
        assert optimizer.select_resource(task, agent_id="dev-1") == "budget"
        assert optimizer.select_resource(task, agent_id="dev-2") == "premium"

    def test_score_weights(self, optimizer):
        reference = optimizer.resources.get("gpt-4")
        score = optimizer.score_resource(reference, [])
        assert score == pytest.approx(0.95 * 0.3 + 0.7 * 0.2 + 0.1)

    def test_estimate_cost(self, optimizer):
        assert optimizer.estimate_cost("gpt-4", 1000) == pytest.approx(0.03)
        assert optimizer.estimate_cost("unknown", 1000) == pytest.approx(0.1)

    def test_estimate_task_units(self, optimizer):
        assert optimizer.estimate_task_units(Task(title="t")) == 100

    def test_estimate_execution_cost(self, optimizer, simple_task, complex_task):
        assert optimizer.estimate_execution_cost([simple_task, complex_task]) > 0

    def test_calculate_agent_cost(self, optimizer):
        assert optimizer.calculate_agent_cost("architect-1", 10) == pytest.approx(0.2)
        assert optimizer.calculate_agent_cost("stranger", 10) == pytest.approx(0.1)


# =============================================================================
# Optimization decisions
# =============================================================================

@pytest.mark.unit
class TestOptimize:

    def test_simple_task_uses_fallback_strategy(self, optimizer, simple_task):
        decision = optimizer.optimize(simple_task, "dev-1")
        assert decision.applies(StrategyType.FALLBACK)
        assert decision.resource == "gpt-3.5-turbo"
        assert decision.savings > 0

    def test_complex_task_no_strategies(self, optimizer, complex_task):
        decision = optimizer.optimize(complex_task, "dev-1")
        assert decision.strategies == []
        assert decision.resource == "gpt-4-turbo"
        assert not decision.degraded

    def test_compression_and_caching_selected(self, optimizer):
        task = Task(title="Generate boilerplate", complexity=5, estimated_units=3000, description="d" * 300)
        decision = optimizer.optimize(task, "dev-1")
        assert decision.applies(StrategyType.CONTEXT_COMPRESSION)
        assert decision.applies(StrategyType.CACHING)
        priorities = [s.priority for s in decision.strategies]
        assert priorities == sorted(priorities)

    def test_model_selection_after_half_daily_budget(self, optimizer, complex_task):
        optimizer.record_cost("a1", "t1", "gpt-4", 1, 26.0)
        decision = optimizer.optimize(complex_task, "dev-1")
        assert decision.applies(StrategyType.MODEL_SELECTION)

    def test_degraded_forces_emergency_strategies(self, optimizer, complex_task):
        optimizer.record_cost("dev-1", "t1", "gpt-4", 1, 11.0)
        decision = optimizer.optimize(complex_task, "dev-1")
        assert decision.degraded
        for strategy in (StrategyType.FALLBACK, StrategyType.CACHING, StrategyType.CONTEXT_COMPRESSION):
            assert decision.applies(strategy)
        assert optimizer.resources.get(decision.resource).covers(decision.requirements)

    def test_decision_to_dict(self, optimizer, simple_task):
        data = optimizer.optimize(simple_task, "dev-1").to_dict()
        assert data['strategies_applied'] == ["Fallback Models"]
        assert data['strategy_savings_percent'] == 60.0

    def test_combined_savings(self):
        strategies = [DEFAULT_STRATEGIES[StrategyType.CONTEXT_COMPRESSION],
                      DEFAULT_STRATEGIES[StrategyType.CACHING]]
        assert combined_savings(strategies) == pytest.approx(58.0)

    def test_compress_context(self, optimizer):
        text = "\n".join(f"Important line {i} must be kept for the critical path." for i in range(200))
        compressed = optimizer.compress_context(text, 200)
        assert optimizer.estimator.estimate(compressed) <= 200


# =============================================================================
# Batching & maintenance
# =============================================================================

@pytest.mark.unit
class TestBatchingAndMaintenance:

    @pytest.mark.asyncio
    async def test_batch_uses_injected_runner(self, clock):
        runner = AsyncMock(side_effect=lambda tasks: [f"done:{t}" for t in tasks])
        optimizer = CostOptimizer(clock=clock, config=OptimizerConfig(batch_max_size=2), batch_runner=runner)
        assert await optimizer.batch(["a", "b"]) == ["done:a", "done:b"]
        runner.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_batch_without_runner(self, optimizer):
        with pytest.raises(ConfigurationError):
            await optimizer.batch(["a"])

    def test_maintenance_rolls_over_day(self, optimizer, clock):
        optimizer.record_cost("a1", "t1", "gpt-4", 1, 60.0)
        report = optimizer.run_maintenance()
        assert report['daily_limit_exceeded']
        assert "a1" in report['throttled_agents']

        clock.advance(DAY)
        report = optimizer.run_maintenance()
        assert report['daily_cost'] == 0.0
        assert not report['daily_limit_exceeded']
        assert not optimizer.is_degraded()

    def test_maintenance_evicts_expired_cache(self, optimizer, clock):
        optimizer.set_cached_result("k", "v", cost=0.1)
        clock.advance(optimizer.config.cache_ttl_seconds + 1)
        assert optimizer.run_maintenance()['cache_evicted'] == 1

    def test_maintenance_prunes_stale_alert_latches(self, clock):
        optimizer = CostOptimizer(thresholds={'daily': 10.0, 'per_task': 5.0, 'per_agent': 100.0}, clock=clock)
        first = optimizer.record_cost("a1", "t1", "gpt-4", 1, 9.0)
        assert {(a.scope, a.level) for a in first} == {
            (BudgetScope.DAILY, AlertLevel.WARNING),
            (BudgetScope.TASK, AlertLevel.CRITICAL),
        }
        assert optimizer.record_cost("a1", "t1", "gpt-4", 1, 0.01) == []

        optimizer.complete_task("t1")
        clock.advance(DAY)
        assert optimizer.run_maintenance()['alerts_pruned'] == 2
        assert optimizer.run_maintenance()['alerts_pruned'] == 0

        again = optimizer.record_cost("a1", "t1", "gpt-4", 1, 9.0)
        assert {a.scope for a in again} == {BudgetScope.DAILY, BudgetScope.TASK}

    def test_unfinished_task_alert_stays_latched(self, clock):
        optimizer = CostOptimizer(thresholds={'per_task': 5.0, 'per_agent': 100.0}, clock=clock)
        optimizer.record_cost("a1", "t1", "gpt-4", 1, 6.0)
        optimizer.run_maintenance()
        assert optimizer.record_cost("a1", "t1", "gpt-4", 1, 1.0) == []

    def test_maintenance_throttles_after_threshold_lowered(self, optimizer):
        optimizer.record_cost("dev-1", "t1", "gpt-4", 1, 3.0)
        optimizer.set_cost_thresholds(per_agent=2.0)
        callback = Mock()
        optimizer.add_alert_callback(callback)
        optimizer.run_maintenance()
        assert optimizer.is_throttled("dev-1")
        callback.assert_called_once()

    def test_get_stats(self, optimizer):
        stats = optimizer.get_stats()
        assert set(stats) == {'metrics', 'throttled_agents', 'cache', 'batch', 'compression'}

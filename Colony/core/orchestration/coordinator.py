"""
Colony Coordinator
==================

Thin facade wiring one task through the three engines:

    optimize -> (compress) -> cache check -> invoke model -> record cost
             -> validate -> learn

The coordinator builds the engines from one ``ColonyConfig``, shares a clock
and event bus between them, and owns the maintenance loops (cost monitoring,
cache eviction, knowledge decay). The model call itself is a caller-supplied
async capability; its errors propagate after the failure has been learned from.

Usage:
    async def invoke(request: ModelRequest) -> ModelResponse:
        text = await my_client.complete(request.resource, request.prompt)
        return ModelResponse(content=text, units_used=len(text) // 4, confidence=0.8)

    async with ColonyCoordinator(invoke) as colony:
        outcome = await colony.run_task(Task(title="Add pagination"), agent_id="dev-1")
        print(outcome.validation.grade, outcome.cost)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from Colony.core.foundation.configs import ColonyConfig
from Colony.core.foundation.data_structures import Task
from Colony.core.foundation.exceptions import ConfigurationError
from Colony.core.learning.collective_learning import CollectiveLearningEngine
from Colony.core.learning.types import AgentExperience, SkillRecommendation
from Colony.core.optimization.batch_executor import BatchRunner, Scheduler
from Colony.core.optimization.cost_optimizer import CostOptimizer
from Colony.core.optimization.strategies import OptimizationDecision, StrategyType
from Colony.core.utils.async_utils import ColonyEvent, EventBus, PeriodicTask
from Colony.core.utils.clock import Clock, SystemClock
from Colony.core.validation.quality_validator import QualityValidator
from Colony.core.validation.types import Artifact, ValidationResult

logger = logging.getLogger(__name__)


# =============================================================================
# MODEL CAPABILITY
# =============================================================================

@dataclass
class ModelRequest:
    """What the coordinator asks the injected model capability to run."""
    task: Task
    agent_id: str
    resource: str
    prompt: str
    context: str = ""
    estimated_units: int = 0


@dataclass
class ModelResponse:
    """Model output; ``units_used``/``cost`` default to the optimizer's estimates."""
    content: str
    units_used: Optional[int] = None
    cost: Optional[float] = None
    confidence: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def coerce(cls, value: Union['ModelResponse', str, Mapping[str, Any]]) -> 'ModelResponse':
        if isinstance(value, ModelResponse):
            return value
        if isinstance(value, str):
            return cls(content=value)
        if isinstance(value, Mapping):
            return cls(
                content=str(value.get('content', '')),
                units_used=value.get('units_used'),
                cost=value.get('cost'),
                confidence=float(value.get('confidence', 0.0) or 0.0),
                metadata=dict(value.get('metadata', {})),
            )
        raise TypeError(f"Model capability returned unsupported {type(value).__name__}")


ModelInvoker = Callable[[ModelRequest], Awaitable[Union[ModelResponse, str, Mapping[str, Any]]]]


@dataclass
class TaskOutcome:
    """Everything the coordinator learned about one task run."""
    task_id: str
    agent_id: str
    decision: OptimizationDecision
    response: ModelResponse
    validation: ValidationResult
    cost: float
    units_used: int
    cached: bool
    success: bool
    reward: float
    skill_level: float
    duration: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'task_id': self.task_id,
            'agent_id': self.agent_id,
            'decision': self.decision.to_dict(),
            'validation': self.validation.to_dict(),
            'cost': self.cost,
            'units_used': self.units_used,
            'cached': self.cached,
            'success': self.success,
            'reward': self.reward,
            'skill_level': self.skill_level,
            'duration': self.duration,
        }


# =============================================================================
# COORDINATOR
# =============================================================================

class ColonyCoordinator:
    """
    Owns the optimizer, validator and learning engine for one colony.

    Args:
        invoke_model: Async capability running a ``ModelRequest``
        config: Full configuration (defaults when omitted)
        clock: Shared time source
        event_bus: Shared bus; a private one is created when omitted
        batch_runner: Passed to the optimizer for ``CostOptimizer.batch``
        scheduler: Batch-window timer source
        seed: Seeds the learning engine
    """

    def __init__(
        self,
        invoke_model: Optional[ModelInvoker] = None,
        config: Optional[ColonyConfig] = None,
        clock: Optional[Clock] = None,
        event_bus: Optional[EventBus] = None,
        batch_runner: Optional[BatchRunner] = None,
        scheduler: Optional[Scheduler] = None,
        seed: Optional[int] = None,
    ):
        self.config = config or ColonyConfig()
        self.clock = clock or SystemClock()
        self.event_bus = event_bus or EventBus()
        self._invoke_model = invoke_model

        self.optimizer = CostOptimizer(
            thresholds=self.config.cost_thresholds,
            config=self.config.optimizer,
            clock=self.clock,
            batch_runner=batch_runner,
            scheduler=scheduler,
            event_bus=self.event_bus,
        )
        self.validator = QualityValidator(
            thresholds=self.config.quality_thresholds,
            event_bus=self.event_bus,
        )
        self.learner = CollectiveLearningEngine(
            config=self.config.learning,
            clock=self.clock,
            event_bus=self.event_bus,
            seed=seed,
        )
        self.learner.attach(self.event_bus)

        self._maintenance = [
            PeriodicTask("cost-monitor", self.config.optimizer.monitoring_interval_seconds,
                         self.optimizer.run_maintenance),
            PeriodicTask("knowledge-maintenance", self.config.learning.learning_interval_seconds,
                         self.learner.run_maintenance),
        ]
        self._tasks_run = 0
        self._tasks_failed = 0

    @classmethod
    def from_config_file(cls, path: Union[str, Path], **kwargs: Any) -> 'ColonyCoordinator':
        return cls(config=ColonyConfig.from_yaml(path), **kwargs)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        """Start the maintenance loops on the running event loop."""
        for task in self._maintenance:
            task.start()

    async def stop(self) -> None:
        for task in self._maintenance:
            await task.stop()
        await self.optimizer.batcher.close()
        self.learner.detach()

    async def __aenter__(self) -> 'ColonyCoordinator':
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    @property
    def maintenance_tasks(self) -> List[PeriodicTask]:
        return list(self._maintenance)

    # =========================================================================
    # TASK PIPELINE
    # =========================================================================

    async def run_task(self, task: Task, agent_id: str) -> TaskOutcome:
        """
        Run one task end to end.

        Raises:
            ConfigurationError: If no model capability was injected
            Exception: Whatever the model capability raises (after learning from it)
        """
        if self._invoke_model is None:
            raise ConfigurationError("ColonyCoordinator.run_task needs an invoke_model capability")

        started = time.monotonic()
        decision = self.optimizer.optimize(task, agent_id)
        context = self._prepare_context(task, decision)

        cache_key = task.cache_key
        cached = self.optimizer.get_cached_result(cache_key)
        if cached is not None:
            response = ModelResponse.coerce(cached)
            units_used, cost = 0, 0.0
            logger.info(f"Cache hit for task {task.id} ({agent_id})")
        else:
            request = ModelRequest(
                task=task,
                agent_id=agent_id,
                resource=decision.resource,
                prompt=self._build_prompt(task, context),
                context=context,
                estimated_units=decision.estimated_units,
            )
            try:
                response = ModelResponse.coerce(await self._invoke_model(request))
            except Exception as e:
                self._tasks_failed += 1
                logger.error(f"❌ Model invocation failed for task {task.id} on {decision.resource}: {e}")
                self.learner.learn(self._experience(task, agent_id, decision, False, 0.0, 0.0, started))
                raise
            units_used = response.units_used if response.units_used is not None else decision.estimated_units
            cost = response.cost if response.cost is not None else self.optimizer.estimate_cost(
                decision.resource, units_used
            )
            self.optimizer.record_cost(agent_id, task.id, decision.resource, units_used, cost)
            if decision.applies(StrategyType.CACHING):
                self.optimizer.set_cached_result(cache_key, response, cost)

        validation = self.validator.validate(Artifact(
            content=response.content,
            confidence=response.confidence,
            metadata=response.metadata,
        ))
        reward = validation.quality_score / 100.0
        skill = self.learner.learn(
            self._experience(task, agent_id, decision, validation.is_valid, reward, cost, started)
        )

        self._tasks_run += 1
        outcome = TaskOutcome(
            task_id=task.id,
            agent_id=agent_id,
            decision=decision,
            response=response,
            validation=validation,
            cost=cost,
            units_used=units_used,
            cached=cached is not None,
            success=validation.is_valid,
            reward=reward,
            skill_level=skill.level,
            duration=time.monotonic() - started,
        )
        self.optimizer.complete_task(task.id)
        self.event_bus.emit(ColonyEvent(type="task_complete", data=outcome.to_dict(), source="coordinator"))
        return outcome

    async def run_tasks(self, tasks: List[Task], agent_id: str) -> List[TaskOutcome]:
        """Run several tasks concurrently; the first failure propagates."""
        return list(await asyncio.gather(*(self.run_task(task, agent_id) for task in tasks)))

    def _prepare_context(self, task: Task, decision: OptimizationDecision) -> str:
        context = task.context or ""
        budget = self.config.optimizer.compression_token_threshold
        if context and decision.applies(StrategyType.CONTEXT_COMPRESSION):
            compressed = self.optimizer.compress_context(context, budget)
            if compressed != context:
                logger.debug(f"Compressed context of {task.id}: {len(context)} -> {len(compressed)} chars")
            return compressed
        return context

    @staticmethod
    def _build_prompt(task: Task, context: str) -> str:
        parts = [task.title]
        if task.description:
            parts.append(task.description)
        if context:
            parts.append(f"Context:\n{context}")
        return "\n\n".join(parts)

    def _experience(
        self,
        task: Task,
        agent_id: str,
        decision: OptimizationDecision,
        success: bool,
        reward: float,
        cost: float,
        started: float,
    ) -> AgentExperience:
        return AgentExperience(
            agent_id=agent_id,
            task_type=task.task_type,
            action=decision.resource,
            success=success,
            reward=reward,
            context={
                'complexity': task.complexity,
                'strategies': ",".join(decision.strategies_applied),
                'degraded': decision.degraded,
            },
            difficulty=task.complexity / 10.0,
            time_spent=(time.monotonic() - started) * 1000.0,
            resources_used=cost,
            timestamp=self.clock.now(),
        )

    # =========================================================================
    # LEARNING DELEGATION
    # =========================================================================

    def transfer_skill(self, from_agent: str, to_agent: str, skill: str) -> bool:
        return self.learner.transfer_skill(from_agent, to_agent, skill)

    def request_transfer(self, from_agent: str, to_agent: str, skill: str) -> None:
        """Publish a ``transfer_request`` event for any attached learning engine."""
        self.event_bus.emit(ColonyEvent(
            type="transfer_request",
            data={'source_agent': from_agent, 'target_agent': to_agent, 'skill': skill},
            source="coordinator",
        ))

    def recommend_skills(self, agent_id: str) -> List[SkillRecommendation]:
        return self.learner.recommend_skills(agent_id)

    def get_status(self) -> Dict[str, Any]:
        return {
            'tasks_run': self._tasks_run,
            'tasks_failed': self._tasks_failed,
            'cost': self.optimizer.get_cost_metrics().to_dict(),
            'validation': self.validator.get_stats(),
            'learning': self.learner.get_metrics().to_dict(),
            'maintenance': {t.name: {'running': t.running, 'ticks': t.ticks, 'errors': t.errors}
                            for t in self._maintenance},
        }


__all__ = [
    'ModelRequest',
    'ModelResponse',
    'ModelInvoker',
    'TaskOutcome',
    'ColonyCoordinator',
]

"""
Experience replay buffer with reward- and recency-weighted sampling.
"""

import logging
import random
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional

from Colony.core.foundation.config_defaults import DEFAULTS
from Colony.core.utils.clock import Clock, SystemClock

from .types import AgentExperience

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 3600


class ExperienceBuffer:
    """
    Bounded FIFO of experiences, indexed by agent and task type.

    Sampling weight is ``max(0.1, reward) * max(0.1, 1 - age / horizon)``;
    samples are drawn without replacement.
    """

    def __init__(
        self,
        capacity: int = DEFAULTS.EXPERIENCE_BUFFER_CAPACITY,
        horizon_days: float = DEFAULTS.SAMPLE_HORIZON_DAYS,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
    ):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.horizon_seconds = horizon_days * DAY_SECONDS
        self.clock = clock or SystemClock()
        self._rng = rng or random.Random()
        self._items: Deque[AgentExperience] = deque()
        self._by_agent: Dict[str, Deque[AgentExperience]] = {}
        self._by_task: Dict[str, Deque[AgentExperience]] = {}
        self.evicted = 0

    def add(self, experience: AgentExperience) -> None:
        if len(self._items) >= self.capacity:
            self._evict_oldest()
        self._items.append(experience)
        self._by_agent.setdefault(experience.agent_id, deque()).append(experience)
        self._by_task.setdefault(experience.task_type, deque()).append(experience)

    def _evict_oldest(self) -> None:
        oldest = self._items.popleft()
        # The oldest overall is also the oldest in its agent and task queues
        for index, key in ((self._by_agent, oldest.agent_id), (self._by_task, oldest.task_type)):
            queue = index[key]
            queue.popleft()
            if not queue:
                del index[key]
        self.evicted += 1

    def __len__(self) -> int:
        return len(self._items)

    def by_agent(self, agent_id: str) -> List[AgentExperience]:
        return list(self._by_agent.get(agent_id, ()))

    def by_task(self, task_type: str) -> List[AgentExperience]:
        return list(self._by_task.get(task_type, ()))

    def recent(self, count: int) -> List[AgentExperience]:
        if count <= 0:
            return []
        return list(self._items)[-count:]

    def weight(self, experience: AgentExperience, now: Optional[float] = None) -> float:
        now = self.clock.now() if now is None else now
        age = max(0.0, now - experience.timestamp)
        recency = 1 - age / self.horizon_seconds
        return max(0.1, experience.reward) * max(0.1, recency)

    def sample(
        self,
        batch_size: int,
        agent_id: Optional[str] = None,
        task_type: Optional[str] = None,
        min_reward: Optional[float] = None,
        success_only: bool = False,
    ) -> List[AgentExperience]:
        """Weighted sample of at most ``batch_size`` distinct experiences matching the filters."""
        if agent_id is not None:
            candidates: Iterable[AgentExperience] = self._by_agent.get(agent_id, ())
            if task_type is not None:
                candidates = [e for e in candidates if e.task_type == task_type]
        elif task_type is not None:
            candidates = self._by_task.get(task_type, ())
        else:
            candidates = self._items

        pool = [
            e for e in candidates
            if (min_reward is None or e.reward >= min_reward) and (not success_only or e.success)
        ]
        if batch_size <= 0 or not pool:
            return []
        if len(pool) <= batch_size:
            return pool

        # Weighted sampling without replacement: keep the largest u ** (1 / w)
        now = self.clock.now()
        keyed = [
            (self._rng.random() ** (1.0 / self.weight(e, now)), index)
            for index, e in enumerate(pool)
        ]
        keyed.sort(reverse=True)
        chosen = sorted(index for _, index in keyed[:batch_size])
        return [pool[index] for index in chosen]

    def clear(self) -> None:
        self._items.clear()
        self._by_agent.clear()
        self._by_task.clear()

    def get_stats(self) -> Dict[str, object]:
        return {
            'size': len(self._items),
            'capacity': self.capacity,
            'agents': len(self._by_agent),
            'task_types': len(self._by_task),
            'evicted': self.evicted,
        }


__all__ = ['ExperienceBuffer']

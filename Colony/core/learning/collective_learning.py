"""
Collective Learning Engine
==========================

Ingests task outcomes from every agent, keeps per-agent skill profiles,
mines emergent patterns and moves skills between agents.

Features:
- Skill updates weighted by reward, difficulty and experience count
- Knowledge extraction from successful, high-reward experiences
- Pattern mining over reward/recency-weighted samples of one task type
- Skill transfer seeded from a donor's level times a transfer efficiency
- Skill recommendations ranked by improvement, gap and importance
- Online outcome predictor (pluggable)

Optional enrichment (extraction, pattern mining, predictor training) is
best-effort: failures are logged and never abort ``learn``. Transfer failures
are reported as ``False``.

Usage:
    engine = CollectiveLearningEngine()
    engine.learn(AgentExperience(
        agent_id="dev-1", task_type="code_generation", action="scaffold",
        success=True, reward=0.9,
    ))
    engine.transfer_skill("dev-1", "dev-2", "code_generation")
    for rec in engine.recommend_skills("dev-2"):
        ...
"""

import copy
import logging
import math
import random
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from Colony.core.foundation.configs import ColonyConfig, LearningConfig
from Colony.core.utils.async_utils import ColonyEvent, EventBus
from Colony.core.utils.clock import Clock, SystemClock

from .experience_buffer import ExperienceBuffer, DAY_SECONDS
from .knowledge_store import KnowledgeStore
from .predictor import MomentumPerceptron, OutcomePredictor
from .types import (
    AgentExperience,
    CollectiveLearningMetrics,
    FragmentType,
    KnowledgeFragment,
    LearningPattern,
    SkillLevel,
    SkillProfile,
    SkillRecommendation,
    SkillStage,
    content_hash,
)

logger = logging.getLogger(__name__)

PATTERN_SOURCE = "collective_learning"
VELOCITY_WINDOW = 100

ExperienceLike = Union[AgentExperience, Mapping[str, Any]]


def common_elements(groups: Sequence[Sequence[str]], ratio: float) -> List[str]:
    """
    Elements present in at least ``max(2, floor(ratio * n))`` of ``n`` groups.

    Each group counts an element once.
    """
    counts: Dict[str, int] = {}
    for group in groups:
        for element in set(group):
            counts[element] = counts.get(element, 0) + 1
    threshold = max(2, math.floor(len(groups) * ratio))
    return sorted(element for element, count in counts.items() if count >= threshold)


class CollectiveLearningEngine:
    """
    Shared learning across a colony of agents.

    Args:
        config: Learning constants (thresholds, rates, weights)
        clock: Time source for recency weighting and knowledge decay
        knowledge: Fragment store (created if omitted)
        buffer: Experience buffer (created if omitted)
        predictor: Outcome predictor; defaults to ``MomentumPerceptron``
        event_bus: Optional bus receiving ``learning_update`` events
        seed: Seeds sampling and predictor initialization for reproducible runs
    """

    def __init__(
        self,
        config: Optional[Union[LearningConfig, Mapping[str, Any]]] = None,
        clock: Optional[Clock] = None,
        knowledge: Optional[KnowledgeStore] = None,
        buffer: Optional[ExperienceBuffer] = None,
        predictor: Optional[OutcomePredictor] = None,
        event_bus: Optional[EventBus] = None,
        seed: Optional[int] = None,
    ):
        if config is None:
            config = LearningConfig()
        elif not isinstance(config, LearningConfig):
            config = ColonyConfig.from_dict({"learning": dict(config)}).learning
        self.config = config
        self.clock = clock or SystemClock()
        self.knowledge = knowledge or KnowledgeStore(clock=self.clock)
        self.buffer = buffer or ExperienceBuffer(
            capacity=config.buffer_capacity,
            horizon_days=config.sample_horizon_days,
            clock=self.clock,
            rng=random.Random(seed),
        )
        self.predictor = predictor or MomentumPerceptron(
            learning_rate=config.predictor_learning_rate,
            momentum=config.predictor_momentum,
            seed=seed,
        )
        self.event_bus = event_bus

        self._profiles: Dict[str, SkillProfile] = {}
        self._patterns: Dict[str, LearningPattern] = {}
        self._metrics = CollectiveLearningMetrics()
        self._attached: List[EventBus] = []
        self._stats = {
            'extractions': 0,
            'extraction_failures': 0,
            'pattern_failures': 0,
            'trainings': 0,
            'training_failures': 0,
            'failed_transfers': 0,
        }

        logger.info(
            f"CollectiveLearningEngine initialized: batch={config.batch_size}, "
            f"pattern_threshold={config.pattern_detection_threshold}"
        )

    # =========================================================================
    # LEARNING
    # =========================================================================

    def learn(self, experience: ExperienceLike) -> SkillLevel:
        """
        Ingest one experience.

        Returns:
            A copy of the agent's updated skill level for the experience's task type
        """
        if not isinstance(experience, AgentExperience):
            experience = AgentExperience.from_dict(experience)
        logger.debug(f"🧠 Learning from experience: {experience.agent_id} - {experience.task_type}")

        self.buffer.add(experience)
        self._metrics.total_experiences += 1

        skill_level = self._update_skill(experience)

        if experience.success and experience.reward > self.config.knowledge_extraction_reward:
            try:
                self._extract_knowledge(experience)
            except Exception as e:
                self._stats['extraction_failures'] += 1
                logger.error(f"❌ Failed to extract knowledge: {e}")

        try:
            self.detect_patterns(experience)
        except Exception as e:
            self._stats['pattern_failures'] += 1
            logger.error(f"❌ Pattern detection failed: {e}")

        if len(self.buffer) >= self.config.batch_size:
            self.train_predictor(self.buffer.sample(self.config.batch_size))

        self._publish("learning_update", {
            'agent_id': experience.agent_id,
            'task_type': experience.task_type,
            'success': experience.success,
            'reward': experience.reward,
            'skill_level': skill_level.level,
        })
        return copy.copy(skill_level)

    def _profile(self, agent_id: str) -> SkillProfile:
        profile = self._profiles.get(agent_id)
        if profile is None:
            profile = SkillProfile(
                agent_id=agent_id,
                learning_rate=self.config.base_learning_rate,
                last_update=self.clock.now(),
            )
            self._profiles[agent_id] = profile
        return profile

    def _update_skill(self, experience: AgentExperience) -> SkillLevel:
        now = self.clock.now()
        profile = self._profile(experience.agent_id)
        skill = experience.task_type
        level = profile.skills.get(skill)
        if level is None:
            level = SkillLevel(skill=skill, level=0.1, confidence=0.1, last_improvement=now)
            profile.skills[skill] = level

        delta = self.learning_delta(experience, level)
        level.level = max(0.0, min(1.0, level.level + delta))
        level.experience_count += 1
        if delta > 0:
            level.last_improvement = now
            level.confidence = min(1.0, level.confidence + 0.1)

        profile.last_update = now
        profile.refresh_adaptability()
        return level

    def learning_delta(self, experience: AgentExperience, level: SkillLevel) -> float:
        """``base_rate * reward * difficulty / sqrt(count + 1)``, attenuated for failures."""
        delta = (
            self.config.base_learning_rate
            * experience.reward
            * experience.difficulty
            / math.sqrt(level.experience_count + 1)
        )
        if not experience.success:
            delta *= self.config.failure_attenuation
        return delta

    def _extract_knowledge(self, experience: AgentExperience) -> KnowledgeFragment:
        fragment = KnowledgeFragment.create(
            type=FragmentType.SOLUTION,
            domain=experience.task_type,
            description=f"Successful {experience.task_type} solution",
            content={
                'action': experience.action,
                'context': dict(experience.context) if isinstance(experience.context, Mapping) else experience.context,
                'result': experience.result,
            },
            confidence=min(1.0, experience.reward),
            usefulness=experience.reward,
            source=experience.agent_id,
            now=self.clock.now(),
        )
        stored = self.knowledge.store(fragment)
        self._profile(experience.agent_id).knowledge_contributions += 1
        self._metrics.knowledge_fragments = len(self.knowledge)
        self._stats['extractions'] += 1
        logger.info(f"📚 Knowledge extracted: {stored.id}")
        return stored

    # =========================================================================
    # PATTERNS
    # =========================================================================

    def detect_patterns(self, experience: AgentExperience) -> Optional[LearningPattern]:
        """
        Mine a pattern from similar experiences of ``experience.task_type``.

        Returns:
            The created or updated pattern, or None below the sample threshold
            or when nothing recurs
        """
        sample = self.buffer.sample(self.config.pattern_sample_size, task_type=experience.task_type)
        if len(sample) < self.config.pattern_detection_threshold:
            return None

        ratio = self.config.common_element_ratio
        actions = common_elements([[e.action] for e in sample], ratio)
        contexts = common_elements([e.context_elements() for e in sample], ratio)
        if not actions and not contexts:
            return None

        now = self.clock.now()
        size = len(sample)
        success_rate = sum(1 for e in sample if e.success) / size
        average_reward = sum(e.reward for e in sample) / size
        score = self.emergence_score(success_rate, average_reward, size)

        pattern_id = f"pattern_{content_hash(experience.task_type, actions, contexts)}"
        pattern = self._patterns.get(pattern_id)
        if pattern is None:
            pattern = LearningPattern(
                id=pattern_id,
                task_type=experience.task_type,
                actions=actions,
                contexts=contexts,
                discovered_by=[experience.agent_id],
                first_seen=now,
            )
            self._patterns[pattern_id] = pattern
            logger.info(f"🌟 Emergent pattern detected: {pattern_id} ({experience.task_type})")
        elif (experience.agent_id not in pattern.discovered_by
              and experience.agent_id not in pattern.validated_by):
            pattern.validated_by.append(experience.agent_id)

        pattern.frequency = size
        pattern.success_rate = success_rate
        pattern.average_reward = average_reward
        pattern.emergence_score = score
        pattern.last_seen = now
        self._metrics.emergent_patterns = len(self._patterns)

        self.knowledge.store(KnowledgeFragment(
            id=f"pattern_knowledge_{pattern_id}",
            type=FragmentType.PATTERN,
            domain=experience.task_type,
            description=f"Emergent pattern for {experience.task_type}",
            content=pattern.to_dict(),
            confidence=success_rate,
            usefulness=max(0.0, min(1.0, score)),
            source=PATTERN_SOURCE,
            created_at=now,
            last_used=now,
            success_rate=success_rate,
        ))
        self._metrics.knowledge_fragments = len(self.knowledge)
        return copy.deepcopy(pattern)

    def emergence_score(self, success_rate: float, average_reward: float, frequency: int) -> float:
        weights = self.config.emergence_weights
        return (
            weights.success_rate * success_rate
            + weights.reward * average_reward
            + weights.frequency * min(1.0, frequency / weights.frequency_norm)
        )

    # =========================================================================
    # TRANSFER & RECOMMENDATIONS
    # =========================================================================

    def transfer_skill(self, from_agent: str, to_agent: str, skill: str) -> bool:
        """
        Seed ``to_agent``'s ``skill`` from ``from_agent``.

        Returns:
            False (with nothing changed) when the donor lacks a confident skill
            or no knowledge exists for it
        """
        logger.info(f"🔄 Transferring skill '{skill}' from {from_agent} to {to_agent}")
        source = self._profiles.get(from_agent)
        if source is None:
            return self._reject_transfer(f"no profile for source agent {from_agent}")
        source_skill = source.skills.get(skill)
        if source_skill is None or source_skill.confidence < self.config.min_confidence_for_transfer:
            return self._reject_transfer(f"source skill '{skill}' missing or confidence too low")
        fragments = self.knowledge.retrieve(skill)
        if not fragments:
            return self._reject_transfer(f"no knowledge available for '{skill}'")

        now = self.clock.now()
        efficiency = self.transfer_efficiency(source, self._profiles.get(to_agent), skill)
        target = self._profile(to_agent)
        existing = target.skills.get(skill)
        seeded = source_skill.level * efficiency
        target.skills[skill] = SkillLevel(
            skill=skill,
            level=max(existing.level, seeded) if existing else seeded,
            confidence=source_skill.confidence * self.config.transferred_confidence_factor,
            experience_count=existing.experience_count if existing else 0,
            last_improvement=now,
            transferred_from=from_agent,
        )
        target.last_update = now
        target.refresh_adaptability()
        source.transfers_given += 1

        for fragment in fragments:
            self.knowledge.record_usage(fragment.id)
            if fragment.content.get('adapted_for') == to_agent:
                continue
            self.knowledge.store(self._adapt(fragment, from_agent, to_agent, now))

        self._metrics.successful_transfers += 1
        self._metrics.knowledge_fragments = len(self.knowledge)
        logger.info(
            f"✅ Skill transfer completed: {to_agent}.{skill} = {target.skills[skill].level:.2f} "
            f"(efficiency {efficiency:.2f})"
        )
        return True

    def _reject_transfer(self, reason: str) -> bool:
        self._stats['failed_transfers'] += 1
        logger.warning(f"⚠️ Skill transfer rejected: {reason}")
        return False

    def _adapt(self, fragment: KnowledgeFragment, from_agent: str, to_agent: str, now: float) -> KnowledgeFragment:
        return KnowledgeFragment(
            id=f"adapted_{fragment.id}_{to_agent}",
            type=fragment.type,
            domain=fragment.domain,
            description=fragment.description,
            content={
                'original': fragment.content,
                'adapted_from': from_agent,
                'adapted_for': to_agent,
            },
            confidence=fragment.confidence * self.config.adapted_confidence_factor,
            usefulness=fragment.usefulness,
            source=f"adapted_from_{from_agent}",
            created_at=now,
            last_used=now,
            success_rate=fragment.success_rate,
        )

    def transfer_efficiency(self, source: SkillProfile, target: Optional[SkillProfile], skill: str) -> float:
        efficiency = self.config.base_transfer_efficiency
        efficiency *= 1 + source.teaching_history * 0.01
        if target is not None:
            efficiency *= 1 + target.adaptability * 0.3
            if skill in target.skills:
                # Easier to improve an existing skill
                efficiency *= 1.2
        return min(self.config.max_transfer_efficiency, efficiency)

    def recommend_skills(self, agent_id: str) -> List[SkillRecommendation]:
        profile = self._profiles.get(agent_id)
        if profile is None:
            return []

        recommendations = []
        for skill, level in profile.skills.items():
            if level.level >= self.config.proficiency_level:
                continue
            donors = self._skill_sources(skill, level.level, exclude=agent_id)
            if not donors:
                continue
            best = donors[0][1]
            improvement = (best - level.level) * self.config.average_transfer_efficiency
            priority = (
                improvement * 10
                + (1 - level.level) * 5
                + self.config.skill_importance.get(skill, 1)
            )
            recommendations.append(SkillRecommendation(
                skill=skill,
                current_level=level.level,
                sources=[agent for agent, _ in donors],
                expected_improvement=improvement,
                priority=priority,
            ))
        recommendations.sort(key=lambda rec: rec.priority, reverse=True)
        return recommendations

    def _skill_sources(self, skill: str, current: float, exclude: str) -> List[tuple]:
        donors = [
            (agent_id, profile.skills[skill].level)
            for agent_id, profile in self._profiles.items()
            if agent_id != exclude
            and skill in profile.skills
            and profile.skills[skill].level > current + self.config.donor_margin
        ]
        donors.sort(key=lambda donor: donor[1], reverse=True)
        return donors

    # =========================================================================
    # PREDICTOR
    # =========================================================================

    def train_predictor(self, batch: Sequence[AgentExperience]) -> Optional[float]:
        """Best-effort online training; returns the mean error or None on failure."""
        if not batch:
            return None
        try:
            error = self.predictor.train(batch)
        except Exception as e:
            self._stats['training_failures'] += 1
            logger.error(f"❌ Failed to train predictor: {e}")
            return None
        self._stats['trainings'] += 1
        logger.debug(f"🔬 Predictor trained on {len(batch)} experiences (error={error:.3f})")
        return error

    def predict_success(self, experience: ExperienceLike) -> float:
        if not isinstance(experience, AgentExperience):
            experience = AgentExperience.from_dict(experience)
        return self.predictor.predict_experience(experience)

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def run_maintenance(self) -> Dict[str, Any]:
        """Recompute aggregate metrics and evict stale, rarely used knowledge."""
        evicted = self.knowledge.evict_stale(
            self.config.knowledge_retention_days * DAY_SECONDS,
            self.config.min_usage_to_retain,
        )
        self._update_metrics()
        return {'evicted': len(evicted), 'metrics': self._metrics.to_dict()}

    def _update_metrics(self) -> None:
        levels = [level.level for profile in self._profiles.values() for level in profile.skills.values()]
        recent = self.buffer.recent(VELOCITY_WINDOW)
        self._metrics.knowledge_fragments = len(self.knowledge)
        self._metrics.average_skill_level = sum(levels) / len(levels) if levels else 0.0
        self._metrics.learning_velocity = (
            sum(1 for e in recent if e.success) / len(recent) if recent else 0.0
        )
        self._metrics.knowledge_utilization = self.knowledge.utilization()
        self._metrics.emergent_patterns = len(self._patterns)

    # =========================================================================
    # EVENTS
    # =========================================================================

    def attach(self, event_bus: EventBus) -> None:
        """Consume ``agent_experience`` and ``transfer_request`` events from ``event_bus``."""
        event_bus.subscribe("agent_experience", self._on_experience)
        event_bus.subscribe("transfer_request", self._on_transfer_request)
        self._attached.append(event_bus)
        if self.event_bus is None:
            self.event_bus = event_bus

    def detach(self) -> None:
        for bus in self._attached:
            bus.unsubscribe("agent_experience", self._on_experience)
            bus.unsubscribe("transfer_request", self._on_transfer_request)
        self._attached.clear()

    def _on_experience(self, event: ColonyEvent) -> None:
        try:
            self.learn(AgentExperience.from_dict(event.data))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"⚠️ Ignoring malformed agent_experience event: {e}")

    def _on_transfer_request(self, event: ColonyEvent) -> None:
        try:
            self.transfer_skill(event.data['source_agent'], event.data['target_agent'], event.data['skill'])
        except KeyError as e:
            logger.warning(f"⚠️ Ignoring malformed transfer_request event: missing {e}")

    def _publish(self, event_type: str, data: Dict[str, Any]) -> None:
        if self.event_bus is not None:
            self.event_bus.emit(ColonyEvent(type=event_type, data=data, source="collective_learning"))

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def get_metrics(self) -> CollectiveLearningMetrics:
        return copy.copy(self._metrics)

    def get_skill_profile(self, agent_id: str) -> Optional[SkillProfile]:
        profile = self._profiles.get(agent_id)
        return copy.deepcopy(profile) if profile else None

    def skill_stage(self, agent_id: str, skill: str) -> SkillStage:
        """Stage of ``skill`` for ``agent_id`` against the configured proficiency level."""
        profile = self._profiles.get(agent_id)
        if profile is None:
            return SkillStage.UNSEEN
        return profile.stage(skill, self.config.proficiency_level)

    def load_profile(self, profile: SkillProfile) -> None:
        """Install a (restored) profile, replacing any existing one for that agent."""
        self._profiles[profile.agent_id] = copy.deepcopy(profile)

    def agents(self) -> List[str]:
        return list(self._profiles)

    def search_knowledge(self, query: str) -> List[KnowledgeFragment]:
        return self.knowledge.search(query)

    def use_knowledge(self, fragment_id: str, success: Optional[bool] = None) -> bool:
        return self.knowledge.record_usage(fragment_id, success)

    def get_learning_patterns(self) -> List[LearningPattern]:
        return [copy.deepcopy(pattern) for pattern in self._patterns.values()]

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self._stats,
            'agents': len(self._profiles),
            'patterns': len(self._patterns),
            'buffer': self.buffer.get_stats(),
            'knowledge': self.knowledge.get_stats(),
        }


__all__ = [
    'CollectiveLearningEngine',
    'common_elements',
]

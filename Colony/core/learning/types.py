"""
Learning Types
==============

Records shared by the collective learning engine and its stores:

- AgentExperience: one immutable task attempt
- KnowledgeFragment: reusable insight mined from experiences
- SkillLevel / SkillProfile: per-agent competence
- LearningPattern: regularity recurring across similar experiences
- SkillRecommendation, CollectiveLearningMetrics: engine outputs
"""

import hashlib
import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from Colony.core.foundation.config_defaults import DEFAULTS


def content_hash(*parts: Any) -> str:
    """Stable short hash of JSON-serializable parts (non-JSON values use ``str``)."""
    payload = json.dumps(parts, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode('utf-8')).hexdigest()[:16]


# =============================================================================
# EXPERIENCE
# =============================================================================

@dataclass(frozen=True)
class AgentExperience:
    """One recorded attempt at a task, with outcome and reward."""
    agent_id: str
    task_type: str
    action: str
    success: bool
    reward: float
    context: Mapping[str, Any] = field(default_factory=dict)
    result: Any = None
    difficulty: float = 1.0
    time_spent: float = 0.0  # milliseconds
    resources_used: float = 0.0
    timestamp: float = field(default_factory=time.time)

    def context_elements(self) -> List[str]:
        """Context flattened to sorted ``key=value`` strings."""
        if isinstance(self.context, Mapping):
            return sorted(f"{key}={value}" for key, value in self.context.items())
        if self.context:
            return [str(self.context)]
        return []

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'AgentExperience':
        """Build from an event payload; raises KeyError/TypeError/ValueError when malformed."""
        kwargs = dict(
            agent_id=str(data['agent_id']),
            task_type=str(data['task_type']),
            action=str(data.get('action', '')),
            success=bool(data['success']),
            reward=float(data['reward']),
            context=dict(data.get('context') or {}),
            result=data.get('result'),
            difficulty=float(data.get('difficulty', 1.0)),
            time_spent=float(data.get('time_spent', 0.0)),
            resources_used=float(data.get('resources_used', 0.0)),
        )
        if data.get('timestamp') is not None:
            kwargs['timestamp'] = float(data['timestamp'])
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'agent_id': self.agent_id,
            'task_type': self.task_type,
            'action': self.action,
            'success': self.success,
            'reward': self.reward,
            'context': dict(self.context) if isinstance(self.context, Mapping) else self.context,
            'result': self.result,
            'difficulty': self.difficulty,
            'time_spent': self.time_spent,
            'resources_used': self.resources_used,
            'timestamp': self.timestamp,
        }


# =============================================================================
# KNOWLEDGE
# =============================================================================

class FragmentType(Enum):
    PATTERN = "pattern"
    SOLUTION = "solution"
    OPTIMIZATION = "optimization"
    ERROR_FIX = "error-fix"
    BEST_PRACTICE = "best-practice"


@dataclass
class KnowledgeFragment:
    """A stored, reusable piece of extracted knowledge tied to a domain and type."""
    id: str
    type: FragmentType
    domain: str
    description: str
    content: Dict[str, Any] = field(default_factory=dict)
    confidence: float = 0.5
    usefulness: float = 0.5
    source: str = ""
    created_at: float = field(default_factory=time.time)
    last_used: float = field(default_factory=time.time)
    usage_count: int = 0
    success_rate: float = 1.0

    @classmethod
    def create(
        cls,
        type: FragmentType,
        domain: str,
        description: str,
        content: Dict[str, Any],
        confidence: float,
        usefulness: float,
        source: str,
        now: float,
        success_rate: float = 1.0,
    ) -> 'KnowledgeFragment':
        """Factory assigning a content-hash id, so identical knowledge collapses to one fragment."""
        fragment_id = f"knowledge_{content_hash(type.value, domain, source, content)}"
        return cls(
            id=fragment_id,
            type=type,
            domain=domain,
            description=description,
            content=content,
            confidence=max(0.0, min(1.0, confidence)),
            usefulness=max(0.0, min(1.0, usefulness)),
            source=source,
            created_at=now,
            last_used=now,
            success_rate=success_rate,
        )

    @property
    def value(self) -> float:
        """Ranking key used by retrieval."""
        return self.confidence * self.usefulness

    def record_usage(self, now: float, success: Optional[bool] = None) -> None:
        self.usage_count += 1
        self.last_used = now
        if success is not None:
            # Running mean over recorded uses
            outcome = 1.0 if success else 0.0
            self.success_rate += (outcome - self.success_rate) / self.usage_count

    def is_stale(self, now: float, retention_seconds: float, min_usage: int) -> bool:
        return now - self.last_used > retention_seconds and self.usage_count < min_usage

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type.value,
            'domain': self.domain,
            'description': self.description,
            'content': self.content,
            'confidence': self.confidence,
            'usefulness': self.usefulness,
            'source': self.source,
            'created_at': self.created_at,
            'last_used': self.last_used,
            'usage_count': self.usage_count,
            'success_rate': self.success_rate,
        }


# =============================================================================
# SKILLS
# =============================================================================

class SkillStage(Enum):
    UNSEEN = "unseen"
    LEARNING = "learning"
    PROFICIENT = "proficient"
    TRANSFERRED = "transferred"


@dataclass
class SkillLevel:
    skill: str
    level: float = 0.1
    confidence: float = 0.1
    experience_count: int = 0
    last_improvement: float = field(default_factory=time.time)
    transferred_from: Optional[str] = None

    @property
    def stage(self) -> SkillStage:
        return self.stage_at(DEFAULTS.PROFICIENCY_LEVEL)

    def stage_at(self, proficiency_level: float) -> SkillStage:
        # A transferred skill stays "transferred" until the agent practices it
        if self.transferred_from and self.experience_count == 0:
            return SkillStage.TRANSFERRED
        if self.level >= proficiency_level:
            return SkillStage.PROFICIENT
        return SkillStage.LEARNING

    def to_dict(self, proficiency_level: float = DEFAULTS.PROFICIENCY_LEVEL) -> Dict[str, Any]:
        return {
            'skill': self.skill,
            'level': self.level,
            'confidence': self.confidence,
            'experience_count': self.experience_count,
            'last_improvement': self.last_improvement,
            'transferred_from': self.transferred_from,
            'stage': self.stage_at(proficiency_level).value,
        }


@dataclass
class SkillProfile:
    """Per-agent skill map plus learning traits."""
    agent_id: str
    skills: Dict[str, SkillLevel] = field(default_factory=dict)
    learning_rate: float = DEFAULTS.BASE_LEARNING_RATE
    adaptability: float = 0.0
    knowledge_contributions: int = 0
    transfers_given: int = 0
    last_update: float = field(default_factory=time.time)

    @property
    def teaching_history(self) -> int:
        return self.knowledge_contributions + self.transfers_given

    def stage(self, skill: str, proficiency_level: float = DEFAULTS.PROFICIENCY_LEVEL) -> SkillStage:
        level = self.skills.get(skill)
        return level.stage_at(proficiency_level) if level else SkillStage.UNSEEN

    def refresh_adaptability(self) -> None:
        # More distinct skills, more adaptable
        self.adaptability = min(1.0, len(self.skills) / 10)

    def to_dict(self, proficiency_level: float = DEFAULTS.PROFICIENCY_LEVEL) -> Dict[str, Any]:
        return {
            'agent_id': self.agent_id,
            'skills': {name: level.to_dict(proficiency_level) for name, level in self.skills.items()},
            'learning_rate': self.learning_rate,
            'adaptability': self.adaptability,
            'knowledge_contributions': self.knowledge_contributions,
            'transfers_given': self.transfers_given,
            'last_update': self.last_update,
        }


# =============================================================================
# PATTERNS & OUTPUTS
# =============================================================================

@dataclass
class LearningPattern:
    """Emergent regularity shared by similar experiences of one task type."""
    id: str
    task_type: str
    actions: List[str] = field(default_factory=list)
    contexts: List[str] = field(default_factory=list)
    frequency: int = 0
    success_rate: float = 0.0
    average_reward: float = 0.0
    discovered_by: List[str] = field(default_factory=list)
    validated_by: List[str] = field(default_factory=list)
    emergence_score: float = 0.0
    first_seen: float = field(default_factory=time.time)
    last_seen: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'task_type': self.task_type,
            'actions': list(self.actions),
            'contexts': list(self.contexts),
            'frequency': self.frequency,
            'success_rate': self.success_rate,
            'average_reward': self.average_reward,
            'discovered_by': list(self.discovered_by),
            'validated_by': list(self.validated_by),
            'emergence_score': self.emergence_score,
            'first_seen': self.first_seen,
            'last_seen': self.last_seen,
        }


@dataclass(frozen=True)
class SkillRecommendation:
    skill: str
    current_level: float
    sources: List[str]
    expected_improvement: float
    priority: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'skill': self.skill,
            'current_level': self.current_level,
            'sources': list(self.sources),
            'expected_improvement': self.expected_improvement,
            'priority': self.priority,
        }


@dataclass
class CollectiveLearningMetrics:
    total_experiences: int = 0
    knowledge_fragments: int = 0
    successful_transfers: int = 0
    average_skill_level: float = 0.0
    learning_velocity: float = 0.0
    knowledge_utilization: float = 0.0
    emergent_patterns: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_experiences': self.total_experiences,
            'knowledge_fragments': self.knowledge_fragments,
            'successful_transfers': self.successful_transfers,
            'average_skill_level': self.average_skill_level,
            'learning_velocity': self.learning_velocity,
            'knowledge_utilization': self.knowledge_utilization,
            'emergent_patterns': self.emergent_patterns,
        }


__all__ = [
    'content_hash',
    'AgentExperience',
    'FragmentType',
    'KnowledgeFragment',
    'SkillStage',
    'SkillLevel',
    'SkillProfile',
    'LearningPattern',
    'SkillRecommendation',
    'CollectiveLearningMetrics',
]

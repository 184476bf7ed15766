"""
Learning Layer - Collective Learning & Skill Transfer
=====================================================

- collective_learning: CollectiveLearningEngine facade
- knowledge_store: Fragments indexed by domain and type
- experience_buffer: Bounded replay buffer with weighted sampling
- predictor: Pluggable outcome predictor (numpy perceptron by default)
- types: Experiences, fragments, skills, patterns, metrics
"""

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
)
from .knowledge_store import KnowledgeStore
from .experience_buffer import ExperienceBuffer
from .predictor import MomentumPerceptron, OutcomePredictor
from .collective_learning import CollectiveLearningEngine

__all__ = [
    'AgentExperience',
    'CollectiveLearningMetrics',
    'FragmentType',
    'KnowledgeFragment',
    'LearningPattern',
    'SkillLevel',
    'SkillProfile',
    'SkillRecommendation',
    'SkillStage',
    'KnowledgeStore',
    'ExperienceBuffer',
    'MomentumPerceptron',
    'OutcomePredictor',
    'CollectiveLearningEngine',
]

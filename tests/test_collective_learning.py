"""
Tests for the collective learning engine.
"""

import math

import pytest

from Colony.core.foundation.exceptions import ConfigurationError
from Colony.core.learning.collective_learning import CollectiveLearningEngine, common_elements
from Colony.core.learning.types import (
    AgentExperience,
    FragmentType,
    KnowledgeFragment,
    SkillLevel,
    SkillProfile,
    SkillStage,
)
from Colony.core.utils.async_utils import ColonyEvent

DAY = 24 * 3600


def _expert(agent_id="A", skill="code_generation", level=0.9, confidence=0.9):
    return SkillProfile(
        agent_id=agent_id,
        skills={skill: SkillLevel(skill=skill, level=level, confidence=confidence)},
    )


def _seed_knowledge(engine, domain="code_generation"):
    return engine.knowledge.store(KnowledgeFragment.create(
        type=FragmentType.SOLUTION,
        domain=domain,
        description="Scaffold then fill in",
        content={'action': 'scaffold'},
        confidence=0.9,
        usefulness=0.8,
        source="A",
        now=engine.clock.now(),
    ))


# =============================================================================
# Types
# =============================================================================

@pytest.mark.unit
class TestLearningTypes:

    def test_experience_from_dict(self):
        experience = AgentExperience.from_dict({
            'agent_id': 'dev-1', 'task_type': 'testing', 'success': 1, 'reward': '0.5',
            'context': {'b': 2, 'a': 1}, 'timestamp': 10,
        })
        assert experience.success is True
        assert experience.reward == 0.5
        assert experience.timestamp == 10.0
        assert experience.context_elements() == ['a=1', 'b=2']

    def test_experience_from_dict_missing_field(self):
        with pytest.raises(KeyError):
            AgentExperience.from_dict({'agent_id': 'dev-1'})

    def test_skill_stages(self):
        assert SkillLevel(skill="s", level=0.3).stage is SkillStage.LEARNING
        assert SkillLevel(skill="s", level=0.85).stage is SkillStage.PROFICIENT
        assert SkillLevel(skill="s", level=0.5, transferred_from="A").stage is SkillStage.TRANSFERRED
        practiced = SkillLevel(skill="s", level=0.5, transferred_from="A", experience_count=1)
        assert practiced.stage is SkillStage.LEARNING
        assert SkillProfile(agent_id="x").stage("s") is SkillStage.UNSEEN

    def test_stage_threshold_is_adjustable(self):
        level = SkillLevel(skill="s", level=0.6)
        assert level.stage_at(0.5) is SkillStage.PROFICIENT
        assert level.to_dict(0.5)['stage'] == "proficient"
        assert level.to_dict()['stage'] == "learning"
        profile = SkillProfile(agent_id="x", skills={"s": level})
        assert profile.stage("s", 0.5) is SkillStage.PROFICIENT

    def test_common_elements(self):
        assert common_elements([["a"], ["a"], ["b"]], 0.3) == ["a"]
        assert common_elements([["a", "a"], ["b"]], 0.3) == []
        assert common_elements([], 0.3) == []


# =============================================================================
# Learning
# =============================================================================

@pytest.mark.unit
class TestLearn:

    def test_first_experience_raises_level(self, engine, make_experience):
        level = engine.learn(make_experience())
        assert level.level == pytest.approx(0.19)
        assert level.confidence == pytest.approx(0.2)
        assert level.experience_count == 1

    def test_diminishing_returns(self, engine, make_experience):
        engine.learn(make_experience())
        level = engine.learn(make_experience())
        assert level.level == pytest.approx(0.19 + 0.09 / math.sqrt(2))

    def test_failure_attenuated(self, engine, make_experience):
        level = engine.learn(make_experience(success=False, reward=0.5))
        assert level.level == pytest.approx(0.105)

    def test_level_clamped(self, engine, make_experience):
        level = engine.learn(make_experience(reward=100.0, difficulty=1.0))
        assert level.level == 1.0

    def test_learn_from_mapping(self, engine):
        level = engine.learn({'agent_id': 'dev-2', 'task_type': 'testing', 'success': True, 'reward': 0.5})
        assert level.skill == "testing"
        assert engine.agents() == ["dev-2"]

    def test_returned_level_is_copy(self, engine, make_experience):
        level = engine.learn(make_experience())
        level.level = 0.0
        profile = engine.get_skill_profile("dev-1")
        assert profile.skills["code_generation"].level == pytest.approx(0.19)

    def test_high_reward_extracts_knowledge(self, engine, make_experience):
        engine.learn(make_experience(reward=0.9))
        engine.learn(make_experience(agent_id="dev-2", reward=0.5))
        solutions = engine.knowledge.retrieve("code_generation", FragmentType.SOLUTION)
        assert len(solutions) == 1
        assert solutions[0].source == "dev-1"
        assert engine.get_skill_profile("dev-1").knowledge_contributions == 1

    def test_failed_experience_extracts_nothing(self, engine, make_experience):
        engine.learn(make_experience(success=False, reward=0.95))
        assert len(engine.knowledge) == 0


# =============================================================================
# Patterns
# =============================================================================

@pytest.mark.unit
class TestPatterns:

    def test_pattern_needs_threshold(self, engine, make_experience):
        for _ in range(4):
            engine.learn(make_experience())
        assert engine.get_learning_patterns() == []

    def test_identical_experiences_form_one_pattern(self, engine, experiences):
        for experience in experiences:
            engine.learn(experience)
        patterns = engine.get_learning_patterns()
        assert len(patterns) == 1
        pattern = patterns[0]
        assert pattern.actions == ["scaffold"]
        assert pattern.contexts == ["language=python"]
        assert pattern.success_rate == 1.0
        assert pattern.frequency == 6
        assert pattern.emergence_score == pytest.approx(0.4 + 0.4 * 0.9 + 0.2 * 0.6)
        assert pattern.discovered_by == ["dev-1"]

    def test_pattern_stored_as_knowledge(self, engine, experiences):
        for experience in experiences:
            engine.learn(experience)
        assert len(engine.knowledge.retrieve("code_generation", FragmentType.SOLUTION)) == 1
        [fragment] = engine.knowledge.retrieve("code_generation", FragmentType.PATTERN)
        assert fragment.id.startswith("pattern_knowledge_pattern_")
        assert engine.get_metrics().emergent_patterns == 1
        assert engine.get_metrics().knowledge_fragments == 2

    def test_other_agents_validate(self, engine, make_experience):
        for _ in range(5):
            engine.learn(make_experience())
        engine.learn(make_experience(agent_id="dev-2"))
        [pattern] = engine.get_learning_patterns()
        assert pattern.validated_by == ["dev-2"]

    def test_no_common_elements(self, engine, make_experience):
        for i in range(5):
            engine.learn(make_experience(action=f"a{i}", context={'n': i}))
        assert engine.get_learning_patterns() == []


# =============================================================================
# Transfer & Recommendations
# =============================================================================

@pytest.mark.unit
class TestTransfer:

    def test_transfer_seeds_target(self, engine):
        engine.load_profile(_expert())
        original = _seed_knowledge(engine)
        assert engine.transfer_skill("A", "B", "code_generation")

        level = engine.get_skill_profile("B").skills["code_generation"]
        assert level.level == pytest.approx(0.63)
        assert level.confidence == pytest.approx(0.72)
        assert level.transferred_from == "A"
        assert level.stage is SkillStage.TRANSFERRED
        assert engine.get_skill_profile("A").transfers_given == 1
        assert engine.get_metrics().successful_transfers == 1

        adapted = engine.knowledge.get(f"adapted_{original.id}_B")
        assert adapted.confidence == pytest.approx(0.81)
        assert adapted.content['adapted_for'] == "B"
        assert engine.knowledge.get(original.id).usage_count == 1

    def test_transfer_keeps_higher_existing_level(self, engine):
        engine.load_profile(_expert())
        engine.load_profile(_expert(agent_id="B", level=0.8, confidence=0.3))
        _seed_knowledge(engine)
        assert engine.transfer_skill("A", "B", "code_generation")
        assert engine.get_skill_profile("B").skills["code_generation"].level == pytest.approx(0.8)

    def test_missing_source_rejected(self, engine):
        _seed_knowledge(engine)
        assert not engine.transfer_skill("ghost", "B", "code_generation")
        assert engine.get_skill_profile("B") is None

    def test_low_confidence_rejected(self, engine):
        engine.load_profile(_expert(confidence=0.5))
        _seed_knowledge(engine)
        assert not engine.transfer_skill("A", "B", "code_generation")

    def test_no_knowledge_rejected(self, engine):
        engine.load_profile(_expert())
        assert not engine.transfer_skill("A", "B", "code_generation")
        assert engine.get_stats()['failed_transfers'] == 1
        assert engine.get_metrics().successful_transfers == 0

    def test_efficiency_capped(self, engine):
        source = _expert()
        source.transfers_given = 1000
        assert engine.transfer_efficiency(source, None, "code_generation") == pytest.approx(0.95)


@pytest.mark.unit
class TestRecommendations:

    def test_recommends_from_stronger_peer(self, engine):
        engine.load_profile(_expert())
        engine.load_profile(_expert(agent_id="B", level=0.3, confidence=0.5))
        [rec] = engine.recommend_skills("B")
        assert rec.skill == "code_generation"
        assert rec.sources == ["A"]
        assert rec.expected_improvement == pytest.approx(0.42)
        assert rec.priority == pytest.approx(4.2 + 3.5 + 5.0)

    def test_no_recommendation_without_margin(self, engine):
        engine.load_profile(_expert(level=0.6))
        engine.load_profile(_expert(agent_id="B", level=0.5))
        assert engine.recommend_skills("B") == []

    def test_proficient_skill_skipped(self, engine):
        engine.load_profile(_expert())
        engine.load_profile(_expert(agent_id="B", level=0.1))
        assert engine.recommend_skills("A") == []

    def test_unknown_agent(self, engine):
        assert engine.recommend_skills("nobody") == []


# =============================================================================
# Predictor, Maintenance & Config
# =============================================================================

@pytest.mark.unit
class TestEngineMisc:

    def test_train_predictor_failure_is_contained(self, engine, make_experience):
        assert engine.train_predictor([make_experience(reward=math.nan)]) is None
        assert engine.get_stats()['training_failures'] == 1
        assert engine.train_predictor([]) is None

    def test_knowledge_store_failure_does_not_abort_learning(self, engine, event_bus, recorder,
                                                             make_experience, mocker):
        for _ in range(4):
            engine.learn(make_experience())
        mocker.patch.object(engine.knowledge, "store", side_effect=RuntimeError("disk full"))
        engine.attach(event_bus)
        event_bus.subscribe("learning_update", recorder)

        level = engine.learn(make_experience())

        assert level.experience_count == 5
        recorder.assert_called_once()
        assert recorder.call_args[0][0].data['skill_level'] == level.level
        stats = engine.get_stats()
        assert stats['extraction_failures'] == 1
        assert stats['pattern_failures'] == 1
        assert engine.get_skill_profile("dev-1").skills["code_generation"].experience_count == 5

    def test_skill_stage_uses_configured_proficiency(self, clock):
        engine = CollectiveLearningEngine(config={'proficiency_level': 0.5}, clock=clock)
        engine.load_profile(_expert(agent_id="B", level=0.6))
        assert engine.skill_stage("B", "code_generation") is SkillStage.PROFICIENT
        assert engine.skill_stage("B", "testing") is SkillStage.UNSEEN
        assert engine.skill_stage("nobody", "code_generation") is SkillStage.UNSEEN

        strict = CollectiveLearningEngine(clock=clock)
        strict.load_profile(_expert(agent_id="B", level=0.6))
        assert strict.skill_stage("B", "code_generation") is SkillStage.LEARNING

    def test_predict_success(self, engine, make_experience):
        assert 0.0 < engine.predict_success(make_experience()) < 1.0

    def test_batch_triggers_training(self, clock, make_experience):
        engine = CollectiveLearningEngine(config={'batch_size': 3}, clock=clock, seed=1)
        for i in range(3):
            engine.learn(make_experience(action=f"a{i}", context={'n': i}))
        assert engine.get_stats()['trainings'] == 1

    def test_maintenance_evicts_stale_knowledge(self, engine, make_experience):
        _seed_knowledge(engine)
        engine.learn(make_experience(success=False, reward=0.2))
        engine.clock.advance(31 * DAY)
        report = engine.run_maintenance()
        assert report['evicted'] == 1
        metrics = report['metrics']
        assert metrics['knowledge_fragments'] == 0
        assert metrics['average_skill_level'] == pytest.approx(0.102)
        assert metrics['learning_velocity'] == 0.0

    def test_invalid_mapping_config(self):
        with pytest.raises(ConfigurationError):
            CollectiveLearningEngine(config={'bogus': 1})
        with pytest.raises(ConfigurationError):
            CollectiveLearningEngine(config={'batch_size': 0})


# =============================================================================
# Events
# =============================================================================

@pytest.mark.unit
class TestEvents:

    def test_experience_events_are_learned(self, engine, event_bus, recorder):
        engine.attach(event_bus)
        event_bus.subscribe("learning_update", recorder)
        event_bus.emit(ColonyEvent(type="agent_experience", data={
            'agent_id': 'dev-3', 'task_type': 'testing', 'success': True, 'reward': 0.6,
        }))
        assert engine.get_metrics().total_experiences == 1
        recorder.assert_called_once()
        assert recorder.call_args[0][0].data['agent_id'] == 'dev-3'

    def test_malformed_events_ignored(self, engine, event_bus):
        engine.attach(event_bus)
        event_bus.emit(ColonyEvent(type="agent_experience", data={'agent_id': 'dev-3'}))
        event_bus.emit(ColonyEvent(type="transfer_request", data={'skill': 'testing'}))
        assert engine.get_metrics().total_experiences == 0

    def test_transfer_request_event(self, engine, event_bus):
        engine.load_profile(_expert())
        _seed_knowledge(engine)
        engine.attach(event_bus)
        event_bus.emit(ColonyEvent(type="transfer_request", data={
            'source_agent': 'A', 'target_agent': 'B', 'skill': 'code_generation',
        }))
        assert engine.get_skill_profile("B").skills["code_generation"].transferred_from == "A"

    def test_detach(self, engine, event_bus):
        engine.attach(event_bus)
        engine.detach()
        assert event_bus.listener_count("agent_experience") == 0
        assert event_bus.listener_count("transfer_request") == 0

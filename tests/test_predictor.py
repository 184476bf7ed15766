"""
Tests for the outcome predictor.
"""

import math

import numpy as np
import pytest

from Colony.core.learning.predictor import MomentumPerceptron, OutcomePredictor
from Colony.core.learning.types import AgentExperience


def _experience(success=True, reward=1.0, **overrides):
    values = dict(agent_id="dev-1", task_type="testing", action="run", success=success, reward=reward)
    values.update(overrides)
    return AgentExperience(**values)


@pytest.mark.unit
class TestMomentumPerceptron:

    def test_is_outcome_predictor(self):
        assert isinstance(MomentumPerceptron(seed=0), OutcomePredictor)

    def test_success_flag_is_not_a_feature(self):
        predictor = MomentumPerceptron(seed=0)
        won = predictor.encode(_experience(success=True, reward=0.4))
        lost = predictor.encode(_experience(success=False, reward=0.4))
        assert np.array_equal(won, lost)
        assert len(won) == len(MomentumPerceptron.FEATURES)

    def test_time_spent_in_seconds(self):
        vector = MomentumPerceptron(seed=0).encode(_experience(time_spent=2500.0))
        assert vector[2] == pytest.approx(2.5)

    def test_prediction_is_probability(self):
        predictor = MomentumPerceptron(seed=0)
        value = predictor.predict_experience(_experience(reward=0.7, difficulty=0.5))
        assert 0.0 < value < 1.0

    def test_extreme_activation_does_not_overflow(self):
        predictor = MomentumPerceptron(seed=0)
        predictor.weights = np.full(4, 1000.0)
        assert predictor.predict(np.full(4, 1000.0)) == pytest.approx(1.0)
        assert predictor.predict(np.full(4, -1000.0)) == pytest.approx(0.0)

    def test_same_seed_same_weights(self):
        assert np.array_equal(MomentumPerceptron(seed=3).weights, MomentumPerceptron(seed=3).weights)

    def test_training_reduces_error(self):
        predictor = MomentumPerceptron(seed=0)
        batch = [_experience(success=True, reward=1.0) for _ in range(10)]
        batch += [_experience(success=False, reward=0.0) for _ in range(10)]
        first = predictor.train(batch)
        for _ in range(100):
            last = predictor.train(batch)
        assert last < first
        assert predictor.predict_experience(batch[0]) > predictor.predict_experience(batch[-1])
        assert predictor.updates == 101 * len(batch)

    def test_empty_batch(self):
        predictor = MomentumPerceptron(seed=0)
        assert predictor.train([]) == 0.0
        assert predictor.updates == 0

    def test_non_finite_features_rejected(self):
        with pytest.raises(ValueError):
            MomentumPerceptron(seed=0).encode(_experience(reward=math.nan))
        with pytest.raises(ValueError):
            MomentumPerceptron(seed=0).encode(_experience(resources_used=math.inf))

    def test_stats(self):
        stats = MomentumPerceptron(seed=0).get_stats()
        assert stats['updates'] == 0
        assert set(stats['weights']) == set(MomentumPerceptron.FEATURES)

"""
Outcome Predictor
=================

Lightweight success predictor trained online from experience batches.

``OutcomePredictor`` is the pluggable interface (encode / predict / update);
``MomentumPerceptron`` is the default: one sigmoid unit trained with
momentum SGD on numpy arrays.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence

import numpy as np

from Colony.core.foundation.config_defaults import DEFAULTS

from .types import AgentExperience

logger = logging.getLogger(__name__)


class OutcomePredictor(ABC):
    """Scores how likely an experience-shaped attempt is to succeed (0-1)."""

    @abstractmethod
    def encode(self, experience: AgentExperience) -> np.ndarray:
        """Feature vector for one experience."""

    @abstractmethod
    def predict(self, vector: np.ndarray) -> float:
        """Success probability for an encoded experience."""

    @abstractmethod
    def update(self, vector: np.ndarray, target: float) -> float:
        """One online step towards ``target``; returns the pre-update error."""

    def train(self, batch: Sequence[AgentExperience]) -> float:
        """Single pass over ``batch``; returns the mean absolute error."""
        if not batch:
            return 0.0
        errors = [
            abs(self.update(self.encode(experience), 1.0 if experience.success else 0.0))
            for experience in batch
        ]
        return float(np.mean(errors))

    def predict_experience(self, experience: AgentExperience) -> float:
        return self.predict(self.encode(experience))


class MomentumPerceptron(OutcomePredictor):
    """
    Single-layer sigmoid unit.

    Features: reward, difficulty, time spent (seconds), resources used.
    The success flag is the training target, never a feature.
    """

    FEATURES = ('reward', 'difficulty', 'time_spent_seconds', 'resources_used')

    def __init__(
        self,
        learning_rate: float = DEFAULTS.PREDICTOR_LEARNING_RATE,
        momentum: float = DEFAULTS.PREDICTOR_MOMENTUM,
        seed: Optional[int] = None,
    ):
        self.learning_rate = learning_rate
        self.momentum = momentum
        rng = np.random.default_rng(seed)
        self.weights = rng.uniform(-0.5, 0.5, size=len(self.FEATURES))
        self.bias = float(rng.uniform(-0.5, 0.5))
        self._velocity = np.zeros_like(self.weights)
        self.updates = 0

    def encode(self, experience: AgentExperience) -> np.ndarray:
        vector = np.array([
            experience.reward,
            experience.difficulty,
            experience.time_spent / 1000.0,
            experience.resources_used,
        ], dtype=float)
        if not np.all(np.isfinite(vector)):
            raise ValueError(f"Experience from {experience.agent_id} has non-finite features")
        return vector

    def predict(self, vector: np.ndarray) -> float:
        activation = float(np.dot(self.weights, vector) + self.bias)
        return float(1.0 / (1.0 + np.exp(-np.clip(activation, -500.0, 500.0))))

    def update(self, vector: np.ndarray, target: float) -> float:
        error = target - self.predict(vector)
        gradient = self.learning_rate * error * vector
        self._velocity = self.momentum * self._velocity + gradient
        self.weights = self.weights + self._velocity
        self.bias += self.learning_rate * error
        self.updates += 1
        return error

    def get_stats(self) -> Dict[str, Any]:
        return {
            'updates': self.updates,
            'weights': dict(zip(self.FEATURES, self.weights.round(4).tolist())),
            'bias': round(self.bias, 4),
        }


__all__ = ['OutcomePredictor', 'MomentumPerceptron']

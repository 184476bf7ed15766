"""
Colony Configuration
====================

Typed configuration objects for the three engines.

Each section validates itself on construction so that a bad threshold is a
fatal error at startup rather than a silent misbehaviour later on. The whole
tree can be built from a plain mapping or a YAML file:

    config = ColonyConfig.from_yaml("colony.yaml")

    # colony.yaml
    cost_thresholds:
      daily: 25
      per_agent: 5
    quality_thresholds:
      minimum: 70
"""

import dataclasses
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Type, TypeVar, Union

import yaml

from .config_defaults import DEFAULTS, DEFAULT_SKILL_IMPORTANCE, DEFAULT_AGENT_COST_MULTIPLIERS
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar('T')


def _require_non_negative(section: str, name: str, value: Any) -> None:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or math.isnan(value) or value < 0:
        raise ConfigurationError(
            f"{section}.{name} must be a non-negative number, got {value!r}",
            field=f"{section}.{name}",
            value=value,
        )


def _require_fraction(section: str, name: str, value: Any) -> None:
    _require_non_negative(section, name, value)
    if value > 1:
        raise ConfigurationError(
            f"{section}.{name} must be within [0, 1], got {value!r}",
            field=f"{section}.{name}",
            value=value,
        )


def _build(cls: Type[T], data: Optional[Mapping[str, Any]], section: str) -> T:
    """Instantiate a config dataclass from a mapping, rejecting unknown keys."""
    if data is None:
        return cls()
    if isinstance(data, cls):
        return data
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"{section} must be a mapping, got {type(data).__name__}", field=section)
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(
            f"Unknown {section} keys: {', '.join(unknown)}",
            field=section,
            value=unknown,
        )
    return cls(**dict(data))


@dataclass
class CostThresholds:
    """Spend limits (USD) and alert bands (percent of limit)."""
    daily: float = DEFAULTS.DAILY_COST_LIMIT
    monthly: float = DEFAULTS.MONTHLY_COST_LIMIT
    per_task: float = DEFAULTS.PER_TASK_COST_LIMIT
    per_agent: float = DEFAULTS.PER_AGENT_COST_LIMIT
    warning: float = DEFAULTS.WARNING_PERCENT
    critical: float = DEFAULTS.CRITICAL_PERCENT

    def __post_init__(self) -> None:
        for f in dataclasses.fields(self):
            _require_non_negative('cost_thresholds', f.name, getattr(self, f.name))
        for name in ('daily', 'monthly', 'per_task', 'per_agent'):
            if getattr(self, name) == 0:
                raise ConfigurationError(
                    f"cost_thresholds.{name} must be greater than zero",
                    field=f"cost_thresholds.{name}",
                    value=0,
                )
        if self.warning > self.critical:
            raise ConfigurationError(
                f"cost_thresholds.warning ({self.warning}) exceeds critical ({self.critical})",
                field='cost_thresholds.warning',
                value=self.warning,
            )

    def updated(self, **changes: Any) -> 'CostThresholds':
        """Return a validated copy with ``changes`` applied."""
        return _build(CostThresholds, {**self.to_dict(), **changes}, 'cost_thresholds')

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass
class QualityThresholds:
    """Quality score bands (0-100)."""
    minimum: float = DEFAULTS.QUALITY_MINIMUM
    good: float = DEFAULTS.QUALITY_GOOD
    excellent: float = DEFAULTS.QUALITY_EXCELLENT
    critical: float = DEFAULTS.QUALITY_CRITICAL

    def __post_init__(self) -> None:
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            _require_non_negative('quality_thresholds', f.name, value)
            if value > 100:
                raise ConfigurationError(
                    f"quality_thresholds.{f.name} must be within [0, 100], got {value!r}",
                    field=f"quality_thresholds.{f.name}",
                    value=value,
                )
        if not self.critical <= self.minimum <= self.good <= self.excellent:
            raise ConfigurationError(
                "quality_thresholds must satisfy critical <= minimum <= good <= excellent",
                field='quality_thresholds',
                value=self.to_dict(),
            )

    def updated(self, **changes: Any) -> 'QualityThresholds':
        """Return a validated copy with ``changes`` applied."""
        return _build(QualityThresholds, {**self.to_dict(), **changes}, 'quality_thresholds')

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass
class ScoringWeights:
    """Weights of the resource score; hand-tuned, kept configurable."""
    cost: float = DEFAULTS.COST_WEIGHT
    quality: float = DEFAULTS.QUALITY_WEIGHT
    speed: float = DEFAULTS.SPEED_WEIGHT
    capability: float = DEFAULTS.CAPABILITY_WEIGHT

    def __post_init__(self) -> None:
        for f in dataclasses.fields(self):
            _require_non_negative('scoring_weights', f.name, getattr(self, f.name))


@dataclass
class EmergenceWeights:
    """Weights of the emergence score for detected patterns."""
    success_rate: float = DEFAULTS.EMERGENCE_SUCCESS_WEIGHT
    reward: float = DEFAULTS.EMERGENCE_REWARD_WEIGHT
    frequency: float = DEFAULTS.EMERGENCE_FREQUENCY_WEIGHT
    frequency_norm: int = DEFAULTS.EMERGENCE_FREQUENCY_NORM

    def __post_init__(self) -> None:
        for f in dataclasses.fields(self):
            _require_non_negative('emergence_weights', f.name, getattr(self, f.name))
        if self.frequency_norm == 0:
            raise ConfigurationError("emergence_weights.frequency_norm must be positive",
                                     field='emergence_weights.frequency_norm', value=0)


@dataclass
class OptimizerConfig:
    """Behavioural knobs of the cost optimizer."""
    scoring_weights: ScoringWeights = field(default_factory=ScoringWeights)
    fallback_resource: str = DEFAULTS.FALLBACK_RESOURCE
    reference_resource: str = DEFAULTS.REFERENCE_RESOURCE
    default_cost_per_unit: float = DEFAULTS.DEFAULT_COST_PER_UNIT
    complex_task_threshold: int = DEFAULTS.COMPLEX_TASK_THRESHOLD
    reasoning_task_threshold: int = DEFAULTS.REASONING_TASK_THRESHOLD
    large_context_units: int = DEFAULTS.LARGE_CONTEXT_UNITS
    simple_task_max_complexity: int = DEFAULTS.SIMPLE_TASK_MAX_COMPLEXITY
    simple_task_max_description: int = DEFAULTS.SIMPLE_TASK_MAX_DESCRIPTION
    reselection_daily_fraction: float = DEFAULTS.RESELECTION_DAILY_FRACTION
    compression_token_threshold: int = DEFAULTS.COMPRESSION_TOKEN_THRESHOLD
    cache_ttl_seconds: float = DEFAULTS.CACHE_TTL_SECONDS
    batch_window_seconds: float = DEFAULTS.BATCH_WINDOW_SECONDS
    batch_max_size: int = DEFAULTS.BATCH_MAX_SIZE
    monitoring_interval_seconds: float = DEFAULTS.COST_MONITORING_INTERVAL
    task_base_units: int = DEFAULTS.TASK_BASE_UNITS
    agent_cost_per_minute: float = DEFAULTS.AGENT_COST_PER_MINUTE
    agent_cost_multipliers: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_AGENT_COST_MULTIPLIERS)
    )

    def __post_init__(self) -> None:
        if isinstance(self.scoring_weights, Mapping):
            self.scoring_weights = _build(ScoringWeights, self.scoring_weights, 'scoring_weights')
        for name in ('default_cost_per_unit', 'cache_ttl_seconds', 'batch_window_seconds',
                     'monitoring_interval_seconds', 'agent_cost_per_minute',
                     'complex_task_threshold', 'reasoning_task_threshold',
                     'large_context_units', 'compression_token_threshold', 'task_base_units'):
            _require_non_negative('optimizer', name, getattr(self, name))
        _require_fraction('optimizer', 'reselection_daily_fraction', self.reselection_daily_fraction)
        if not isinstance(self.batch_max_size, int) or self.batch_max_size < 1:
            raise ConfigurationError("optimizer.batch_max_size must be a positive integer",
                                     field='optimizer.batch_max_size', value=self.batch_max_size)
        if not self.fallback_resource:
            raise ConfigurationError("optimizer.fallback_resource must be set",
                                     field='optimizer.fallback_resource')


@dataclass
class LearningConfig:
    """Constants of the collective learning engine."""
    batch_size: int = DEFAULTS.LEARNING_BATCH_SIZE
    learning_interval_seconds: float = DEFAULTS.LEARNING_INTERVAL_SECONDS
    pattern_detection_threshold: int = DEFAULTS.PATTERN_DETECTION_THRESHOLD
    pattern_sample_size: int = DEFAULTS.PATTERN_SAMPLE_SIZE
    common_element_ratio: float = DEFAULTS.COMMON_ELEMENT_RATIO
    knowledge_retention_days: float = DEFAULTS.KNOWLEDGE_RETENTION_DAYS
    min_usage_to_retain: int = DEFAULTS.MIN_USAGE_TO_RETAIN
    min_confidence_for_transfer: float = DEFAULTS.MIN_CONFIDENCE_FOR_TRANSFER
    base_learning_rate: float = DEFAULTS.BASE_LEARNING_RATE
    failure_attenuation: float = DEFAULTS.FAILURE_ATTENUATION
    knowledge_extraction_reward: float = DEFAULTS.KNOWLEDGE_EXTRACTION_REWARD
    proficiency_level: float = DEFAULTS.PROFICIENCY_LEVEL
    donor_margin: float = DEFAULTS.DONOR_MARGIN
    average_transfer_efficiency: float = DEFAULTS.AVERAGE_TRANSFER_EFFICIENCY
    base_transfer_efficiency: float = DEFAULTS.BASE_TRANSFER_EFFICIENCY
    max_transfer_efficiency: float = DEFAULTS.MAX_TRANSFER_EFFICIENCY
    transferred_confidence_factor: float = DEFAULTS.TRANSFERRED_CONFIDENCE_FACTOR
    adapted_confidence_factor: float = DEFAULTS.ADAPTED_CONFIDENCE_FACTOR
    buffer_capacity: int = DEFAULTS.EXPERIENCE_BUFFER_CAPACITY
    sample_horizon_days: float = DEFAULTS.SAMPLE_HORIZON_DAYS
    emergence_weights: EmergenceWeights = field(default_factory=EmergenceWeights)
    skill_importance: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SKILL_IMPORTANCE))
    predictor_learning_rate: float = DEFAULTS.PREDICTOR_LEARNING_RATE
    predictor_momentum: float = DEFAULTS.PREDICTOR_MOMENTUM

    def __post_init__(self) -> None:
        if isinstance(self.emergence_weights, Mapping):
            self.emergence_weights = _build(EmergenceWeights, self.emergence_weights, 'emergence_weights')
        for name in ('batch_size', 'pattern_detection_threshold', 'pattern_sample_size',
                     'buffer_capacity'):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 1:
                raise ConfigurationError(f"learning.{name} must be a positive integer",
                                         field=f"learning.{name}", value=value)
        for name in ('common_element_ratio', 'min_confidence_for_transfer', 'failure_attenuation',
                     'knowledge_extraction_reward', 'proficiency_level', 'donor_margin',
                     'average_transfer_efficiency', 'base_transfer_efficiency',
                     'max_transfer_efficiency', 'transferred_confidence_factor',
                     'adapted_confidence_factor', 'predictor_momentum'):
            _require_fraction('learning', name, getattr(self, name))
        for name in ('learning_interval_seconds', 'knowledge_retention_days', 'min_usage_to_retain',
                     'base_learning_rate', 'sample_horizon_days', 'predictor_learning_rate'):
            _require_non_negative('learning', name, getattr(self, name))
        if self.sample_horizon_days == 0:
            raise ConfigurationError("learning.sample_horizon_days must be positive",
                                     field='learning.sample_horizon_days', value=0)


@dataclass
class ColonyConfig:
    """Complete configuration for the optimizer, validator and learning engine."""
    cost_thresholds: CostThresholds = field(default_factory=CostThresholds)
    quality_thresholds: QualityThresholds = field(default_factory=QualityThresholds)
    optimizer: OptimizerConfig = field(default_factory=OptimizerConfig)
    learning: LearningConfig = field(default_factory=LearningConfig)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'ColonyConfig':
        """
        Build a configuration tree from a nested mapping.

        Raises:
            ConfigurationError: On unknown sections, unknown keys or invalid values
        """
        data = dict(data or {})
        sections = {
            'cost_thresholds': CostThresholds,
            'quality_thresholds': QualityThresholds,
            'optimizer': OptimizerConfig,
            'learning': LearningConfig,
        }
        unknown = sorted(set(data) - set(sections))
        if unknown:
            raise ConfigurationError(f"Unknown configuration sections: {', '.join(unknown)}",
                                     value=unknown)
        try:
            return cls(**{name: _build(section_cls, data.get(name), name)
                          for name, section_cls in sections.items()})
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> 'ColonyConfig':
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}", value=str(path))
        with open(path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Could not parse {path}: {e}", value=str(path)) from e
        logger.info(f"Loaded Colony configuration from {path}")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


__all__ = [
    'CostThresholds',
    'QualityThresholds',
    'ScoringWeights',
    'EmergenceWeights',
    'OptimizerConfig',
    'LearningConfig',
    'ColonyConfig',
]

"""
Colony Configuration Defaults
=============================

Centralized, documented defaults for all Colony components.

Every hand-tuned constant used by the optimizer, the validator and the
learning engine lives here so it can be overridden through configuration
instead of being edited in place.

Usage:
------
    from Colony.core.foundation.config_defaults import DEFAULTS

    thresholds = CostThresholds(daily=DEFAULTS.DAILY_COST_LIMIT)
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ColonyDefaults:
    """
    Centralized default values for all Colony configuration parameters.

    Categories:
    -----------
    1. Cost Thresholds - Spend limits and alert bands
    2. Resource Selection - Scoring weights and requirement triggers
    3. Context Compression - Token budgets for the compressor
    4. Caching & Batching - Memo TTL and batch window
    5. Quality Thresholds - Validation bands
    6. Collective Learning - Skill, pattern and transfer parameters
    """

    # =========================================================================
    # COST THRESHOLDS
    # =========================================================================

    DAILY_COST_LIMIT: float = 50.0
    """USD allowed per calendar day."""

    MONTHLY_COST_LIMIT: float = 1000.0
    """USD allowed per calendar month."""

    PER_TASK_COST_LIMIT: float = 5.0
    """USD allowed per task id."""

    PER_AGENT_COST_LIMIT: float = 10.0
    """USD allowed per agent before throttling."""

    WARNING_PERCENT: float = 80.0
    """Percentage of a limit that triggers a warning."""

    CRITICAL_PERCENT: float = 95.0
    """Percentage of a limit that triggers emergency optimization."""

    DEFAULT_COST_PER_UNIT: float = 0.0001
    """Price used for resources that are not registered."""

    # =========================================================================
    # RESOURCE SELECTION
    # =========================================================================

    COST_WEIGHT: float = 0.4
    QUALITY_WEIGHT: float = 0.3
    SPEED_WEIGHT: float = 0.2
    CAPABILITY_WEIGHT: float = 0.1

    FALLBACK_RESOURCE: str = "gpt-3.5-turbo"
    """Safe low-cost resource used when nothing qualifies."""

    REFERENCE_RESOURCE: str = "gpt-4"
    """Resource whose price is the baseline for savings."""

    COMPLEX_TASK_THRESHOLD: int = 7
    """Complexity above which ``complex_tasks`` is required."""

    REASONING_TASK_THRESHOLD: int = 5
    """Complexity above which ``reasoning`` is required."""

    LARGE_CONTEXT_UNITS: int = 4_000
    """Estimated units above which ``large_context`` is required."""

    SIMPLE_TASK_MAX_COMPLEXITY: int = 3
    SIMPLE_TASK_MAX_DESCRIPTION: int = 200

    RESELECTION_DAILY_FRACTION: float = 0.5
    """Fraction of the daily limit after which reselection kicks in."""

    TASK_BASE_UNITS: int = 100
    """Fixed overhead added to every task estimate."""

    AGENT_COST_PER_MINUTE: float = 0.01
    """Base USD per agent-minute before the role multiplier."""

    # =========================================================================
    # CONTEXT COMPRESSION
    # =========================================================================

    COMPRESSION_TOKEN_THRESHOLD: int = 2_000
    """Estimated units above which context compression is applied."""

    LOW_IMPORTANCE_CUTOFF: float = 0.3
    """Lines at or below this importance are dropped first."""

    LINE_STAGE_BUDGET_RATIO: float = 0.8
    """Line removal strips down to this fraction of the budget."""

    DEDUP_MIN_UNITS: int = 10
    """Repeated lines shorter than this are kept."""

    LONG_SECTION_UNITS: int = 500
    """Paragraphs above this size get summarized."""

    SUMMARY_SENTENCES: int = 3
    """Sentences kept per summarized paragraph."""

    # =========================================================================
    # CACHING & BATCHING
    # =========================================================================

    CACHE_TTL_SECONDS: float = 3_600.0
    BATCH_WINDOW_SECONDS: float = 5.0
    BATCH_MAX_SIZE: int = 5
    COST_MONITORING_INTERVAL: float = 60.0

    # =========================================================================
    # QUALITY THRESHOLDS
    # =========================================================================

    QUALITY_MINIMUM: float = 60.0
    QUALITY_GOOD: float = 75.0
    QUALITY_EXCELLENT: float = 90.0
    QUALITY_CRITICAL: float = 50.0

    MAX_LINE_LENGTH: int = 120
    LARGE_FILE_LINES: int = 200
    HIGH_COMPLEXITY: int = 10

    # =========================================================================
    # COLLECTIVE LEARNING
    # =========================================================================

    LEARNING_BATCH_SIZE: int = 32
    LEARNING_INTERVAL_SECONDS: float = 30.0
    PATTERN_DETECTION_THRESHOLD: int = 5
    PATTERN_SAMPLE_SIZE: int = 50
    COMMON_ELEMENT_RATIO: float = 0.3
    KNOWLEDGE_RETENTION_DAYS: int = 30
    MIN_USAGE_TO_RETAIN: int = 5
    MIN_CONFIDENCE_FOR_TRANSFER: float = 0.7
    BASE_LEARNING_RATE: float = 0.1
    FAILURE_ATTENUATION: float = 0.1
    KNOWLEDGE_EXTRACTION_REWARD: float = 0.7
    PROFICIENCY_LEVEL: float = 0.8
    DONOR_MARGIN: float = 0.2
    AVERAGE_TRANSFER_EFFICIENCY: float = 0.7
    BASE_TRANSFER_EFFICIENCY: float = 0.7
    MAX_TRANSFER_EFFICIENCY: float = 0.95
    TRANSFERRED_CONFIDENCE_FACTOR: float = 0.8
    ADAPTED_CONFIDENCE_FACTOR: float = 0.9
    EXPERIENCE_BUFFER_CAPACITY: int = 10_000
    SAMPLE_HORIZON_DAYS: int = 30

    EMERGENCE_SUCCESS_WEIGHT: float = 0.4
    EMERGENCE_REWARD_WEIGHT: float = 0.4
    EMERGENCE_FREQUENCY_WEIGHT: float = 0.2
    EMERGENCE_FREQUENCY_NORM: int = 10

    PREDICTOR_LEARNING_RATE: float = 0.01
    PREDICTOR_MOMENTUM: float = 0.9


# Skill importance used when ranking recommendations
DEFAULT_SKILL_IMPORTANCE = {
    'code_generation': 5.0,
    'problem_solving': 4.0,
    'optimization': 4.0,
    'testing': 3.0,
    'documentation': 2.0,
}

# Cost multipliers per agent role
DEFAULT_AGENT_COST_MULTIPLIERS = {
    'coordinator': 1.5,
    'architect': 2.0,
    'developer': 1.0,
    'analyst': 1.2,
    'reviewer': 1.3,
    'testing': 0.8,
}


DEFAULTS = ColonyDefaults()

__all__ = [
    'ColonyDefaults',
    'DEFAULTS',
    'DEFAULT_SKILL_IMPORTANCE',
    'DEFAULT_AGENT_COST_MULTIPLIERS',
]

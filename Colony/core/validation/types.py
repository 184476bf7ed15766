"""
Validation Types
================

Immutable findings and scores produced by one validation pass.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union


class IssueType(Enum):
    ERROR = "error"
    WARNING = "warning"
    SUGGESTION = "suggestion"


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class IssueCategory(Enum):
    SYNTAX = "syntax"
    LOGIC = "logic"
    PERFORMANCE = "performance"
    SECURITY = "security"
    BEST_PRACTICES = "best_practices"
    STYLE = "style"


class Grade(Enum):
    """Quality band derived from the configured thresholds."""
    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    POOR = "poor"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ValidationIssue:
    """One finding of a validation pass."""
    type: IssueType
    severity: Severity
    category: IssueCategory
    message: str
    line: Optional[int] = None
    suggestion: Optional[str] = None

    @property
    def is_blocking(self) -> bool:
        """Critical errors make an artifact invalid regardless of its score."""
        return self.type is IssueType.ERROR and self.severity is Severity.CRITICAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type.value,
            'severity': self.severity.value,
            'category': self.category.value,
            'message': self.message,
            'line': self.line,
            'suggestion': self.suggestion,
        }


@dataclass
class CodeAnalysis:
    """Static facts about one code snippet."""
    language: str
    complexity: int
    lines_of_code: int
    functions: int
    classes: int
    imports: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    patterns: List[str] = field(default_factory=list)
    smells: List[str] = field(default_factory=list)
    comment_count: int = 0
    doc_comments: int = 0

    def has_pattern(self, name: str) -> bool:
        return name in self.patterns

    def to_dict(self) -> Dict[str, Any]:
        return {
            'language': self.language,
            'complexity': self.complexity,
            'lines_of_code': self.lines_of_code,
            'functions': self.functions,
            'classes': self.classes,
            'imports': list(self.imports),
            'dependencies': list(self.dependencies),
            'patterns': list(self.patterns),
            'smells': list(self.smells),
            'comment_count': self.comment_count,
            'doc_comments': self.doc_comments,
        }


METRIC_WEIGHTS = {
    'code_quality': 0.25,
    'performance': 0.20,
    'security': 0.20,
    'maintainability': 0.15,
    'testability': 0.10,
    'documentation': 0.10,
}


@dataclass(frozen=True)
class QualityMetrics:
    """Six bounded scores (0-100) plus their weighted overall."""
    code_quality: float = 0.0
    performance: float = 0.0
    security: float = 0.0
    maintainability: float = 0.0
    testability: float = 0.0
    documentation: float = 0.0
    overall: float = 0.0

    @classmethod
    def combine(cls, **scores: float) -> 'QualityMetrics':
        """Build metrics from the six dimension scores, computing ``overall``."""
        bounded = {name: max(0.0, min(100.0, float(scores.get(name, 0.0)))) for name in METRIC_WEIGHTS}
        overall = round(sum(bounded[name] * weight for name, weight in METRIC_WEIGHTS.items()))
        return cls(overall=overall, **bounded)

    def to_dict(self) -> Dict[str, float]:
        return {
            'code_quality': self.code_quality,
            'performance': self.performance,
            'security': self.security,
            'maintainability': self.maintainability,
            'testability': self.testability,
            'documentation': self.documentation,
            'overall': self.overall,
        }


@dataclass
class Artifact:
    """Something an agent produced: text or code plus its declared confidence (0-1)."""
    content: str
    confidence: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def coerce(cls, value: Union['Artifact', str, Mapping[str, Any]]) -> 'Artifact':
        if isinstance(value, Artifact):
            return value
        if isinstance(value, str):
            return cls(content=value)
        if isinstance(value, Mapping):
            return cls(
                content=str(value.get('content', '')),
                confidence=float(value.get('confidence', 0.0) or 0.0),
                metadata=dict(value.get('metadata', {})),
            )
        raise TypeError(f"Cannot validate {type(value).__name__}")


@dataclass
class ValidationResult:
    """Outcome of ``QualityValidator.validate``."""
    is_valid: bool
    quality_score: float
    metrics: QualityMetrics
    issues: List[ValidationIssue] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    confidence: float = 0.0
    timestamp: float = field(default_factory=time.time)
    analysis: Optional[CodeAnalysis] = None
    grade: Grade = Grade.CRITICAL

    @property
    def blocking_issues(self) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.is_blocking]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_valid': self.is_valid,
            'quality_score': self.quality_score,
            'grade': self.grade.value,
            'metrics': self.metrics.to_dict(),
            'issues': [issue.to_dict() for issue in self.issues],
            'suggestions': list(self.suggestions),
            'confidence': self.confidence,
            'timestamp': self.timestamp,
            'analysis': self.analysis.to_dict() if self.analysis else None,
        }


__all__ = [
    'IssueType',
    'Severity',
    'IssueCategory',
    'Grade',
    'ValidationIssue',
    'CodeAnalysis',
    'METRIC_WEIGHTS',
    'QualityMetrics',
    'Artifact',
    'ValidationResult',
]

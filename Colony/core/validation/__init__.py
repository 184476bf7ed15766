"""
Validation Layer - Artifact Quality Scoring
===========================================

- quality_validator: QualityValidator facade (validate, grade, thresholds)
- code_analyzer: Heuristic static analysis
- rules: Per-category validation rules
- types: Issues, metrics and results
"""

from .types import (
    Artifact,
    CodeAnalysis,
    Grade,
    IssueCategory,
    IssueType,
    QualityMetrics,
    Severity,
    ValidationIssue,
    ValidationResult,
)
from .code_analyzer import CodeAnalyzer, detect_language
from .rules import (
    BestPracticesRule,
    LogicRule,
    PerformanceRule,
    SecurityRule,
    StyleRule,
    SyntaxRule,
    ValidationRule,
    default_rules,
)
from .quality_validator import QualityValidator, extract_code

__all__ = [
    'Artifact',
    'CodeAnalysis',
    'Grade',
    'IssueCategory',
    'IssueType',
    'QualityMetrics',
    'Severity',
    'ValidationIssue',
    'ValidationResult',
    'CodeAnalyzer',
    'detect_language',
    'BestPracticesRule',
    'LogicRule',
    'PerformanceRule',
    'SecurityRule',
    'StyleRule',
    'SyntaxRule',
    'ValidationRule',
    'default_rules',
    'QualityValidator',
    'extract_code',
]

"""
Quality Validator
=================

Scores agent artifacts. Code (fenced or bare) goes through static analysis,
the rule pass and six weighted quality metrics; plain text falls back to a
confidence-based content score.

Usage:
    validator = QualityValidator()
    result = validator.validate(Artifact(content=answer, confidence=0.8))
    if not result.is_valid:
        for issue in result.blocking_issues:
            ...
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from Colony.core.foundation.configs import QualityThresholds
from Colony.core.utils.async_utils import ColonyEvent, EventBus

from .code_analyzer import CodeAnalyzer
from .rules import ValidationRule, default_rules, run_rules
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

logger = logging.getLogger(__name__)

_FENCE = re.compile(r'```([\w+-]*)[^\n]*\n([\s\S]*?)```')
_LOOKS_LIKE_CODE = re.compile(r'\b(?:function|class|import|def)\b')

FENCE_LANGUAGES = {
    'py': 'python',
    'python': 'python',
    'js': 'javascript',
    'javascript': 'javascript',
    'jsx': 'javascript',
    'ts': 'typescript',
    'tsx': 'typescript',
    'typescript': 'typescript',
    'java': 'java',
}

SEVERITY_PENALTY = {
    Severity.CRITICAL: 20,
    Severity.HIGH: 10,
    Severity.MEDIUM: 5,
    Severity.LOW: 2,
}
INEFFICIENT_PATTERNS = ('nested_loops', 'recursive_calls', 'large_objects')
DANGEROUS_PATTERNS = ('eval', 'innerHTML', 'dangerous_imports')
TESTABLE_PATTERNS = ('pure_functions', 'dependency_injection', 'mockable')
UNTESTABLE_PATTERNS = ('static_methods', 'global_state', 'tight_coupling')

ArtifactLike = Union[Artifact, str, Mapping[str, Any]]


def extract_code(content: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Pull code out of an artifact body.

    Returns:
        (code, fence language hint); code is None for plain prose
    """
    blocks = _FENCE.findall(content)
    if blocks:
        code = '\n\n'.join(body for _, body in blocks)
        return code, FENCE_LANGUAGES.get(blocks[0][0].lower())
    if _LOOKS_LIKE_CODE.search(content):
        return content, None
    return None, None


def _clamp(score: float) -> float:
    return max(0.0, min(100.0, score))


class QualityValidator:
    """
    Validates artifacts and grades them against ``QualityThresholds``.

    Args:
        thresholds: Quality bands (default 60/75/90, critical 50)
        analyzer: Static analyzer used for code artifacts
        rules: Rule set; defaults to one rule per issue category
        event_bus: Optional bus receiving ``validation_complete`` events
    """

    def __init__(
        self,
        thresholds: Optional[Union[QualityThresholds, Mapping[str, Any]]] = None,
        analyzer: Optional[CodeAnalyzer] = None,
        rules: Optional[Sequence[ValidationRule]] = None,
        event_bus: Optional[EventBus] = None,
    ):
        if thresholds is None:
            thresholds = QualityThresholds()
        elif not isinstance(thresholds, QualityThresholds):
            thresholds = QualityThresholds().updated(**dict(thresholds))
        self.thresholds = thresholds
        self.analyzer = analyzer or CodeAnalyzer()
        self.rules = list(rules) if rules is not None else default_rules()
        self.event_bus = event_bus
        self._validations = 0
        self._failures = 0

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate(self, artifact: ArtifactLike) -> ValidationResult:
        """Validate one artifact. Never raises for malformed content."""
        artifact = Artifact.coerce(artifact)
        result = ValidationResult(
            is_valid=True,
            quality_score=0.0,
            metrics=QualityMetrics(),
            confidence=artifact.confidence,
        )

        try:
            code, language = extract_code(artifact.content)
            if code is not None:
                analysis = self.analyzer.analyze(code, language)
                result.analysis = analysis
                result.issues = self.validate_code(code, analysis)
                result.metrics = self.calculate_metrics(code, analysis, result.issues)
                result.quality_score = result.metrics.overall
                result.suggestions = self.suggest(result.issues, analysis)
                result.is_valid = self._is_valid(result)
            else:
                result.metrics = self.content_metrics(artifact)
                result.quality_score = result.metrics.overall
                result.is_valid = result.quality_score >= self.thresholds.minimum
        except Exception as e:
            logger.error(f"❌ Validation failed: {e}", exc_info=True)
            result.is_valid = False
            result.quality_score = 0.0
            result.metrics = QualityMetrics()
            result.issues.append(ValidationIssue(
                type=IssueType.ERROR,
                severity=Severity.CRITICAL,
                category=IssueCategory.LOGIC,
                message=f"Validation failed: {e}",
            ))

        result.grade = self.grade(result.quality_score)
        self._validations += 1
        if not result.is_valid:
            self._failures += 1
        logger.debug(
            f"Validated artifact: score={result.quality_score} grade={result.grade.value} "
            f"valid={result.is_valid} issues={len(result.issues)}"
        )
        if self.event_bus is not None:
            self.event_bus.emit(ColonyEvent(
                type="validation_complete",
                data=result.to_dict(),
                source="quality_validator",
            ))
        return result

    def validate_code(self, code: str, analysis: Optional[CodeAnalysis] = None) -> List[ValidationIssue]:
        """Run the rule pass over ``code`` and return its issues."""
        if analysis is None:
            analysis = self.analyzer.analyze(code)
        return run_rules(self.rules, code, analysis)

    def analyze(self, code: str) -> CodeAnalysis:
        return self.analyzer.analyze(code)

    def _is_valid(self, result: ValidationResult) -> bool:
        if result.blocking_issues:
            return False
        return result.quality_score >= self.thresholds.minimum

    # =========================================================================
    # METRICS
    # =========================================================================

    def calculate_metrics(
        self, code: str, analysis: CodeAnalysis, issues: List[ValidationIssue]
    ) -> QualityMetrics:
        return QualityMetrics.combine(
            code_quality=self._code_quality(analysis, issues),
            performance=self._performance(analysis, issues),
            security=self._security(analysis, issues),
            maintainability=self._maintainability(analysis, issues),
            testability=self._testability(analysis),
            documentation=self._documentation(code, analysis),
        )

    @staticmethod
    def _code_quality(analysis: CodeAnalysis, issues: List[ValidationIssue]) -> float:
        score = 100.0
        if analysis.complexity > 10:
            score -= 20
        elif analysis.complexity > 5:
            score -= 10
        score -= len(analysis.smells) * 5
        score -= sum(SEVERITY_PENALTY[issue.severity] for issue in issues)
        return _clamp(score)

    @staticmethod
    def _performance(analysis: CodeAnalysis, issues: List[ValidationIssue]) -> float:
        score = 100.0
        score -= 10 * sum(1 for issue in issues if issue.category is IssueCategory.PERFORMANCE)
        score -= 5 * sum(1 for pattern in analysis.patterns if pattern in INEFFICIENT_PATTERNS)
        return _clamp(score)

    @staticmethod
    def _security(analysis: CodeAnalysis, issues: List[ValidationIssue]) -> float:
        score = 100.0
        score -= 15 * sum(1 for issue in issues if issue.category is IssueCategory.SECURITY)
        score -= 10 * sum(1 for pattern in analysis.patterns if pattern in DANGEROUS_PATTERNS)
        return _clamp(score)

    @staticmethod
    def _maintainability(analysis: CodeAnalysis, issues: List[ValidationIssue]) -> float:
        score = 100.0
        if analysis.lines_of_code > 200:
            score -= 10
        if analysis.functions > 20:
            score -= 5
        if analysis.classes > 10:
            score -= 5
        score -= 3 * sum(
            1 for issue in issues
            if issue.category in (IssueCategory.BEST_PRACTICES, IssueCategory.STYLE)
        )
        return _clamp(score)

    @staticmethod
    def _testability(analysis: CodeAnalysis) -> float:
        score = 100.0
        score += 5 * sum(1 for pattern in analysis.patterns if pattern in TESTABLE_PATTERNS)
        score -= 10 * sum(1 for pattern in analysis.patterns if pattern in UNTESTABLE_PATTERNS)
        return _clamp(score)

    @staticmethod
    def _documentation(code: str, analysis: CodeAnalysis) -> float:
        score = 0.0
        ratio = analysis.comment_count / max(1, analysis.lines_of_code)
        if ratio > 0.2:
            score += 40
        elif ratio > 0.1:
            score += 20
        elif ratio > 0.05:
            score += 10
        if analysis.doc_comments > 0:
            score += 30
        if 'README' in code or 'documentation' in code:
            score += 30
        return min(100.0, score)

    def content_metrics(self, artifact: Artifact) -> QualityMetrics:
        """Score prose by declared confidence and a few content markers."""
        content = artifact.content
        score = artifact.confidence * 100
        if 'TODO' in content or 'FIXME' in content:
            score -= 10
        if 'error' in content or 'bug' in content:
            score -= 5
        if len(content) > 1000:
            score += 5
        score = _clamp(score)
        return QualityMetrics(code_quality=score, overall=score)

    # =========================================================================
    # SUGGESTIONS & GRADING
    # =========================================================================

    @staticmethod
    def suggest(issues: List[ValidationIssue], analysis: CodeAnalysis) -> List[str]:
        suggestions = [issue.suggestion for issue in issues if issue.suggestion]
        if analysis.complexity > 10:
            suggestions.append('Consider breaking down complex functions into smaller, more manageable pieces')
        if 'long_method' in analysis.smells:
            suggestions.append('Refactor long methods to improve readability and maintainability')
        if 'duplicate_code' in analysis.smells:
            suggestions.append('Extract common code into reusable functions or utilities')
        return list(dict.fromkeys(suggestions))

    def grade(self, score: float) -> Grade:
        if score >= self.thresholds.excellent:
            return Grade.EXCELLENT
        if score >= self.thresholds.good:
            return Grade.GOOD
        if score >= self.thresholds.minimum:
            return Grade.ACCEPTABLE
        if score >= self.thresholds.critical:
            return Grade.POOR
        return Grade.CRITICAL

    def get_quality_thresholds(self) -> QualityThresholds:
        return self.thresholds

    def set_quality_thresholds(self, mapping: Optional[Mapping[str, Any]] = None, **changes: Any) -> QualityThresholds:
        """
        Replace some thresholds.

        Raises:
            ConfigurationError: if the resulting bands are out of range or unordered
        """
        self.thresholds = self.thresholds.updated(**{**dict(mapping or {}), **changes})
        logger.info(f"Quality thresholds updated: {self.thresholds.to_dict()}")
        return self.thresholds

    def get_stats(self) -> Dict[str, Any]:
        return {
            'validations': self._validations,
            'failures': self._failures,
            'rules': [rule.name for rule in self.rules if rule.enabled],
            'thresholds': self.thresholds.to_dict(),
        }


__all__ = [
    'QualityValidator',
    'extract_code',
    'FENCE_LANGUAGES',
]

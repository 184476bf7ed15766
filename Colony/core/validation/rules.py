"""
Validation Rules
================

Each rule inspects one category of problems and returns ``ValidationIssue``s:

- SyntaxRule: unbalanced brackets, Python parse errors
- LogicRule: redundant boolean comparisons, constant conditions
- PerformanceRule: nested loops, DOM lookups inside loops
- SecurityRule: eval/exec, unsafe innerHTML, shell execution, unsafe deserialization
- BestPracticesRule: oversized or overly complex code, ``any``/``var``
- StyleRule: long lines, leftover console logging

Rules never raise for bad input code; parse failures become issues.
"""

import ast
import logging
import re
from abc import ABC, abstractmethod
from typing import List, Sequence

from Colony.core.foundation.config_defaults import DEFAULTS

from .code_analyzer import strip_comments, strip_strings, scan_loops
from .types import CodeAnalysis, IssueCategory, IssueType, Severity, ValidationIssue

logger = logging.getLogger(__name__)


# =============================================================================
# BASE RULE
# =============================================================================

class ValidationRule(ABC):
    """
    Base class for validation rules.

    Subclasses set ``category`` and implement ``check()``.
    """

    category: IssueCategory

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled

    @property
    def name(self) -> str:
        return self.category.value

    @abstractmethod
    def check(self, code: str, analysis: CodeAnalysis) -> List[ValidationIssue]:
        """Return every issue this rule finds in ``code``."""

    def _issue(self, type: IssueType, severity: Severity, message: str, line: int = None,
               suggestion: str = None) -> ValidationIssue:
        return ValidationIssue(
            type=type,
            severity=severity,
            category=self.category,
            message=message,
            line=line,
            suggestion=suggestion,
        )


def _line_of(code: str, position: int) -> int:
    return code.count('\n', 0, position) + 1


# =============================================================================
# RULES
# =============================================================================

class SyntaxRule(ValidationRule):
    category = IssueCategory.SYNTAX

    PAIRS = (('{', '}', 'braces'), ('(', ')', 'parentheses'), ('[', ']', 'brackets'))

    def check(self, code: str, analysis: CodeAnalysis) -> List[ValidationIssue]:
        issues = []
        stripped = strip_comments(strip_strings(code), analysis.language)
        for opening, closing, label in self.PAIRS:
            if stripped.count(opening) != stripped.count(closing):
                issues.append(self._issue(
                    IssueType.ERROR, Severity.CRITICAL,
                    f"Mismatched {label}",
                    suggestion=f"Check that every '{opening}' has a matching '{closing}'",
                ))

        if analysis.language == 'python' and not issues:
            try:
                ast.parse(code)
            except SyntaxError as e:
                issues.append(self._issue(
                    IssueType.ERROR, Severity.CRITICAL,
                    f"Syntax error: {e.msg}",
                    line=e.lineno,
                    suggestion="Fix the syntax error before running this code",
                ))
        return issues


class LogicRule(ValidationRule):
    category = IssueCategory.LOGIC

    REDUNDANT_COMPARISON = re.compile(r'[=!]==?\s*(?:true|false|True|False)\b')
    CONSTANT_CONDITION = re.compile(r'\bif\s*\(\s*(?:true|false)\s*\)|\bif\s+(?:True|False)\s*:')

    def check(self, code: str, analysis: CodeAnalysis) -> List[ValidationIssue]:
        issues = []
        stripped = strip_comments(strip_strings(code), analysis.language)
        match = self.REDUNDANT_COMPARISON.search(stripped)
        if match:
            issues.append(self._issue(
                IssueType.WARNING, Severity.MEDIUM,
                "Redundant boolean comparison",
                line=_line_of(stripped, match.start()),
                suggestion="Use the boolean value directly",
            ))
        match = self.CONSTANT_CONDITION.search(stripped)
        if match:
            issues.append(self._issue(
                IssueType.WARNING, Severity.HIGH,
                "Condition is always constant",
                line=_line_of(stripped, match.start()),
                suggestion="Remove the constant condition or the unreachable branch",
            ))
        return issues


class PerformanceRule(ValidationRule):
    category = IssueCategory.PERFORMANCE

    DOM_LOOKUP = re.compile(r'document\.(?:getElementById|getElementsBy\w+|querySelector(?:All)?)\s*\(')

    def check(self, code: str, analysis: CodeAnalysis) -> List[ValidationIssue]:
        issues = []
        if analysis.has_pattern('nested_loops'):
            issues.append(self._issue(
                IssueType.WARNING, Severity.MEDIUM,
                "Nested loops detected - potential O(n^2) complexity",
                suggestion="Consider a lookup table or a more efficient algorithm",
            ))

        lines = strip_comments(strip_strings(code), analysis.language).split('\n')
        _, inside_loop = scan_loops(lines)
        for index in sorted(inside_loop):
            if self.DOM_LOOKUP.search(lines[index]):
                issues.append(self._issue(
                    IssueType.WARNING, Severity.MEDIUM,
                    "DOM query inside a loop",
                    line=index + 1,
                    suggestion="Cache DOM references outside the loop",
                ))
                break
        return issues


class SecurityRule(ValidationRule):
    category = IssueCategory.SECURITY

    UNSAFE_INNER_HTML = re.compile(r'innerHTML\s*=.*\b(?:user|input|params|query)', re.IGNORECASE)
    SHELL_EXECUTION = re.compile(
        r'shell\s*=\s*True|\bos\.system\s*\(|\bos\.popen\s*\(|child_process|\bexecSync\s*\('
    )
    UNSAFE_DESERIALIZATION = re.compile(
        r'\b(?:pickle|cPickle|marshal|shelve)\.loads?\s*\(|\byaml\.load\s*\((?![^)]*(?:SafeLoader|safe_load))'
    )

    def check(self, code: str, analysis: CodeAnalysis) -> List[ValidationIssue]:
        issues = []
        if analysis.has_pattern('eval'):
            issues.append(self._issue(
                IssueType.ERROR, Severity.CRITICAL,
                "Use of eval/exec detected - security risk",
                suggestion="Avoid evaluating dynamic code; parse the input explicitly",
            ))
        match = self.UNSAFE_INNER_HTML.search(code)
        if match:
            issues.append(self._issue(
                IssueType.ERROR, Severity.HIGH,
                "Potential XSS vulnerability with innerHTML",
                line=_line_of(code, match.start()),
                suggestion="Use textContent or sanitize the input",
            ))
        stripped = strip_comments(strip_strings(code), analysis.language)
        # Strings stay in: require('child_process') names the module in a literal
        commentless = strip_comments(code, analysis.language)
        match = self.SHELL_EXECUTION.search(commentless)
        if match:
            issues.append(self._issue(
                IssueType.ERROR, Severity.HIGH,
                "Shell command execution detected",
                line=_line_of(commentless, match.start()),
                suggestion="Pass an argument list instead of a shell string",
            ))
        match = self.UNSAFE_DESERIALIZATION.search(stripped)
        if match:
            issues.append(self._issue(
                IssueType.ERROR, Severity.HIGH,
                "Unsafe deserialization of untrusted data",
                line=_line_of(stripped, match.start()),
                suggestion="Use json or yaml.safe_load for untrusted input",
            ))
        return issues


class BestPracticesRule(ValidationRule):
    category = IssueCategory.BEST_PRACTICES

    def __init__(self, max_lines: int = DEFAULTS.LARGE_FILE_LINES,
                 max_complexity: int = DEFAULTS.HIGH_COMPLEXITY, enabled: bool = True) -> None:
        super().__init__(enabled)
        self.max_lines = max_lines
        self.max_complexity = max_complexity

    def check(self, code: str, analysis: CodeAnalysis) -> List[ValidationIssue]:
        issues = []
        if analysis.lines_of_code > self.max_lines:
            issues.append(self._issue(
                IssueType.SUGGESTION, Severity.MEDIUM,
                "Large file - consider splitting into smaller modules",
                suggestion="Break the code into smaller, focused modules",
            ))
        if analysis.complexity > self.max_complexity:
            issues.append(self._issue(
                IssueType.SUGGESTION, Severity.MEDIUM,
                "High complexity - consider refactoring",
                suggestion="Extract helpers to reduce branching",
            ))
        stripped = strip_comments(strip_strings(code), analysis.language)
        if analysis.language == 'typescript' and re.search(r':\s*any\b', stripped):
            issues.append(self._issue(
                IssueType.WARNING, Severity.MEDIUM,
                "Use of 'any' type reduces type safety",
                suggestion="Declare a specific type",
            ))
        if analysis.language in ('javascript', 'typescript') and re.search(r'\bvar\s+\w', stripped):
            issues.append(self._issue(
                IssueType.WARNING, Severity.MEDIUM,
                "Use of 'var' - prefer 'const' or 'let'",
                suggestion="Replace 'var' with 'const' or 'let'",
            ))
        return issues


class StyleRule(ValidationRule):
    category = IssueCategory.STYLE

    def __init__(self, max_line_length: int = DEFAULTS.MAX_LINE_LENGTH, enabled: bool = True) -> None:
        super().__init__(enabled)
        self.max_line_length = max_line_length

    def check(self, code: str, analysis: CodeAnalysis) -> List[ValidationIssue]:
        issues = []
        for index, line in enumerate(code.split('\n')):
            if len(line) > self.max_line_length:
                issues.append(self._issue(
                    IssueType.SUGGESTION, Severity.LOW,
                    f"Line exceeds {self.max_line_length} characters",
                    line=index + 1,
                    suggestion="Break the line into several lines",
                ))
        if 'console.log' in strip_comments(code, analysis.language):
            issues.append(self._issue(
                IssueType.SUGGESTION, Severity.LOW,
                "Console.log statements found",
                suggestion="Remove console.log or use a logger",
            ))
        return issues


def default_rules() -> List[ValidationRule]:
    return [SyntaxRule(), LogicRule(), PerformanceRule(), SecurityRule(), BestPracticesRule(), StyleRule()]


def run_rules(rules: Sequence[ValidationRule], code: str, analysis: CodeAnalysis) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    for rule in rules:
        if rule.enabled:
            issues.extend(rule.check(code, analysis))
    return issues


__all__ = [
    'ValidationRule',
    'SyntaxRule',
    'LogicRule',
    'PerformanceRule',
    'SecurityRule',
    'BestPracticesRule',
    'StyleRule',
    'default_rules',
    'run_rules',
]

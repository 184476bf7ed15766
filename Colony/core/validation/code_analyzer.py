"""
Code Analyzer
=============

Regex/indentation heuristics that turn a code snippet into a
``CodeAnalysis``: language, complexity, size counts, imports, detected
design/performance/security patterns and code smells.

Works on Python and the C-family languages (JavaScript, TypeScript, Java).
Strings and comments are blanked out before structural checks so that a
brace inside a string literal does not count as nesting.
"""

import logging
import re
from typing import List, Optional, Set, Tuple


from .types import CodeAnalysis

logger = logging.getLogger(__name__)

CONTROL_KEYWORDS = ('if', 'else', 'elif', 'for', 'while', 'switch', 'case', 'catch', 'try', 'except')
_CONTROL_RE = re.compile(r'\b(?:' + '|'.join(CONTROL_KEYWORDS) + r')\b')

_TRIPLE_STRING = re.compile(r'("""|\'\'\')[\s\S]*?\1')
_TEMPLATE_STRING = re.compile(r'`(?:\\.|[^`\\])*`')
_STRING = re.compile(r'"(?:\\.|[^"\\\n])*"|\'(?:\\.|[^\'\\\n])*\'')
_C_COMMENT = re.compile(r'//[^\n]*|/\*[\s\S]*?\*/')
_C_DOC_COMMENT = re.compile(r'/\*\*[\s\S]*?\*/')
_HASH_COMMENT = re.compile(r'#[^\n]*')

_FUNCTION_PATTERNS = (
    re.compile(r'function\s+\w+\s*\('),
    re.compile(r'const\s+\w+\s*=\s*\('),
    re.compile(r'=>\s*{'),
    re.compile(r'def\s+\w+\s*\('),
)
_CLASS_PATTERNS = (
    re.compile(r'\bclass\s+\w+'),
    re.compile(r'\binterface\s+\w+'),
    re.compile(r'\btype\s+\w+\s*='),
)
_JS_IMPORT_PATTERNS = (
    re.compile(r'import\s+[^;\'"]*?\s+from\s+[\'"]([^\'"]+)[\'"]'),
    re.compile(r'import\s+[\'"]([^\'"]+)[\'"]'),
    re.compile(r'require\s*\(\s*[\'"]([^\'"]+)[\'"]\s*\)'),
)
_PY_IMPORT = re.compile(r'^\s*import\s+([\w.]+(?:\s*,\s*[\w.]+)*)', re.MULTILINE)
_PY_FROM_IMPORT = re.compile(r'^\s*from\s+(\.*[\w.]*)\s+import\b', re.MULTILINE)

_PY_DEF = re.compile(r'^([ \t]*)(?:async\s+)?def\s+(\w+)\s*\(', re.MULTILINE)
_JS_FUNCTION = re.compile(
    r'(?:function\s+(\w+)\s*\([^)]*\)|(?:const|let|var)\s+(\w+)\s*=\s*(?:async\s*)?\([^)]*\)\s*=>)\s*{'
)
_LOOP_LINE = re.compile(r'^\s*(?:async\s+)?(?:for|while)\b')

DANGEROUS_MODULES = ('pickle', 'marshal', 'subprocess', 'child_process', 'shelve')


def strip_strings(code: str) -> str:
    """Blank out string literals, keeping line structure."""
    def _blank(match):
        return '""' + '\n' * match.group(0).count('\n')
    code = _TRIPLE_STRING.sub(_blank, code)
    code = _TEMPLATE_STRING.sub(_blank, code)
    return _STRING.sub('""', code)


def strip_comments(code: str, language: str) -> str:
    def _blank(match):
        return '\n' * match.group(0).count('\n')
    if language == 'python':
        return _HASH_COMMENT.sub('', code)
    return _C_COMMENT.sub(_blank, code)


def detect_language(code: str) -> str:
    if 'import React' in code or re.search(r'from\s+[\'"]react[\'"]', code):
        return 'typescript'
    if (re.search(r'^\s*(?:async\s+)?def\s+\w+\s*\(.*\)\s*(?:->\s*[^:]+)?:', code, re.MULTILINE)
            or re.search(r'^\s*from\s+[\w.]+\s+import\s', code, re.MULTILINE)):
        return 'python'
    if re.search(r'^\s*package\s+[\w.]+;', code, re.MULTILINE) or 'public class' in code:
        return 'java'
    if re.search(r'\binterface\s+\w+\s*{', code) or re.search(r':\s*(?:string|number|boolean|any)\b', code):
        return 'typescript'
    if re.search(r'\bfunction\b', code) or '=>' in code:
        return 'javascript'
    if 'class ' in code and 'extends' in code:
        return 'typescript'
    if re.search(r'^\s*import\s+[\w.]+\s*$', code, re.MULTILINE) or re.search(r'^\s*class\s+\w+.*:\s*$', code, re.MULTILINE):
        return 'python'
    return 'unknown'


def nesting_level(code: str) -> int:
    """Maximum depth of ``{``/``(`` nesting."""
    max_nesting = 0
    current = 0
    for char in code:
        if char in '{(':
            current += 1
            max_nesting = max(max_nesting, current)
        elif char in '})':
            current = max(0, current - 1)
    return max_nesting


def scan_loops(lines: List[str]) -> Tuple[bool, Set[int]]:
    """
    Indentation-based loop scan.

    Returns:
        (whether a loop is nested inside another, indices of lines inside a loop body)
    """
    nested = False
    inside: Set[int] = set()
    stack: List[int] = []
    for index, line in enumerate(lines):
        if not line.strip():
            continue
        indent = len(line) - len(line.lstrip())
        while stack and indent <= stack[-1]:
            stack.pop()
        if stack:
            inside.add(index)
        if _LOOP_LINE.match(line) or '.forEach(' in line:
            if stack:
                nested = True
            stack.append(indent)
    return nested, inside


def calls_itself(name: str, body: str) -> bool:
    """True if ``body`` calls ``name`` bare or through ``self.``/``this.``."""
    call = rf'(?:(?<![\w.])|(?<=\bself\.)|(?<=\bthis\.)){re.escape(name)}\s*\('
    return re.search(call, body) is not None


def function_bodies(stripped: str, language: str) -> List[Tuple[str, str]]:
    """(name, body) for every named function found in string/comment-free code."""
    bodies = []
    if language == 'python':
        lines = stripped.split('\n')
        starts = {}
        offset = 0
        for index, line in enumerate(lines):
            starts[offset] = index
            offset += len(line) + 1
        for match in _PY_DEF.finditer(stripped):
            def_index = starts.get(match.start(), 0)
            def_indent = len(match.group(1))
            body = []
            for line in lines[def_index + 1:]:
                if line.strip() and len(line) - len(line.lstrip()) <= def_indent:
                    break
                body.append(line)
            bodies.append((match.group(2), '\n'.join(body)))
        return bodies

    for match in _JS_FUNCTION.finditer(stripped):
        name = match.group(1) or match.group(2)
        depth = 0
        start = match.end() - 1
        end = len(stripped)
        for position in range(start, len(stripped)):
            char = stripped[position]
            if char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    end = position
                    break
        bodies.append((name, stripped[start + 1:end]))
    return bodies


def _non_blank(text: str) -> int:
    return sum(1 for line in text.split('\n') if line.strip())


class CodeAnalyzer:
    """
    Heuristic static analyzer.

    Usage:
        analysis = CodeAnalyzer().analyze(source)
        if analysis.has_pattern('nested_loops'):
            ...
    """

    def __init__(self, long_method_lines: int = 50, large_class_count: int = 10,
                 duplicate_line_limit: int = 5):
        self.long_method_lines = long_method_lines
        self.large_class_count = large_class_count
        self.duplicate_line_limit = duplicate_line_limit

    def analyze(self, code: str, language: Optional[str] = None) -> CodeAnalysis:
        language = language or detect_language(code)
        no_strings = strip_strings(code)
        stripped = strip_comments(no_strings, language)

        imports = self.extract_imports(code, language)
        comment_count, doc_comments = self._count_comments(code, no_strings, language)
        bodies = function_bodies(stripped, language)

        return CodeAnalysis(
            language=language,
            complexity=self.complexity(stripped),
            lines_of_code=_non_blank(code),
            functions=self.count_functions(stripped),
            classes=self.count_classes(stripped),
            imports=imports,
            dependencies=[imp for imp in imports if not imp.startswith(('.', '/'))],
            patterns=self.detect_patterns(code, stripped, language, imports, bodies),
            smells=self.detect_smells(code, stripped, bodies),
            comment_count=comment_count,
            doc_comments=doc_comments,
        )

    # =========================================================================
    # COUNTS
    # =========================================================================

    @staticmethod
    def complexity(stripped: str) -> int:
        """1 + control-structure keywords + 2 x maximum bracket nesting."""
        return 1 + len(_CONTROL_RE.findall(stripped)) + nesting_level(stripped) * 2

    @staticmethod
    def count_functions(stripped: str) -> int:
        return sum(len(pattern.findall(stripped)) for pattern in _FUNCTION_PATTERNS)

    @staticmethod
    def count_classes(stripped: str) -> int:
        return sum(len(pattern.findall(stripped)) for pattern in _CLASS_PATTERNS)

    @staticmethod
    def extract_imports(code: str, language: str) -> List[str]:
        imports: List[str] = []
        if language == 'python':
            for match in _PY_IMPORT.finditer(code):
                imports.extend(name.strip() for name in match.group(1).split(','))
            imports.extend(match.group(1) for match in _PY_FROM_IMPORT.finditer(code))
        else:
            for pattern in _JS_IMPORT_PATTERNS:
                imports.extend(match.group(1) for match in pattern.finditer(code))
        # Order-preserving de-duplication
        return list(dict.fromkeys(imp for imp in imports if imp))

    @staticmethod
    def _count_comments(code: str, no_strings: str, language: str) -> Tuple[int, int]:
        if language == 'python':
            docstrings = len(_TRIPLE_STRING.findall(code))
            return len(_HASH_COMMENT.findall(no_strings)) + docstrings, docstrings
        if language == 'unknown':
            hashes = len(_HASH_COMMENT.findall(no_strings))
        else:
            hashes = 0
        return len(_C_COMMENT.findall(no_strings)) + hashes, len(_C_DOC_COMMENT.findall(no_strings))

    # =========================================================================
    # PATTERNS & SMELLS
    # =========================================================================

    def detect_patterns(
        self,
        code: str,
        stripped: str,
        language: str,
        imports: List[str],
        bodies: List[Tuple[str, str]],
    ) -> List[str]:
        patterns: List[str] = []
        python = language == 'python'

        # Design patterns
        if ('new ' in stripped and 'class' in stripped) or re.search(r'\b(?:def\s+create_\w+|\w+Factory)\b', stripped):
            patterns.append('factory')
        if 'extends' in stripped or 'implements' in stripped or re.search(r'^\s*class\s+\w+\s*\(\s*\w', stripped, re.MULTILINE):
            patterns.append('inheritance')
        if ('interface' in stripped and 'implements' in stripped) or ('ABC' in stripped and 'abstractmethod' in stripped):
            patterns.append('strategy')
        if re.search(r'singleton|getInstance|get_instance', code, re.IGNORECASE):
            patterns.append('singleton')

        # Performance patterns
        nested, _ = scan_loops(stripped.split('\n'))
        if nested:
            patterns.append('nested_loops')
        if any(calls_itself(name, body) for name, body in bodies):
            patterns.append('recursive_calls')
        if 'new Array' in stripped or 'new Object' in stripped or re.search(r'\]\s*\*\s*\d{4,}', stripped):
            patterns.append('large_objects')

        # Security patterns
        if re.search(r'(?<![\w.])(?:eval|exec)\s*\(', stripped):
            patterns.append('eval')
        if 'innerHTML' in stripped:
            patterns.append('innerHTML')
        if any(imp.split('.')[0] in DANGEROUS_MODULES for imp in imports):
            patterns.append('dangerous_imports')

        # Testability patterns
        if bodies and not re.search(r'\b(?:global|nonlocal)\s+\w+|\bwindow\.\w+\s*=', stripped):
            patterns.append('pure_functions')
        if re.search(r'def\s+__init__\s*\(\s*self\s*,\s*\w+|constructor\s*\(\s*\w+', stripped):
            patterns.append('dependency_injection')
        if '@staticmethod' in stripped or re.search(r'\bstatic\s+\w+', stripped):
            patterns.append('static_methods')
        if re.search(r'\bglobal\s+\w+|\bwindow\.\w+\s*=', stripped) or (not python and re.search(r'^var\s+\w+', stripped, re.MULTILINE)):
            patterns.append('global_state')

        return patterns

    def detect_smells(self, code: str, stripped: str, bodies: List[Tuple[str, str]]) -> List[str]:
        smells: List[str] = []

        if bodies:
            long_method = any(_non_blank(body) > self.long_method_lines for _, body in bodies)
        else:
            long_method = _non_blank(code) > self.long_method_lines
        if long_method:
            smells.append('long_method')

        if self.count_classes(stripped) > self.large_class_count:
            smells.append('large_class')

        if len(self.find_duplicate_lines(code)) > self.duplicate_line_limit:
            smells.append('duplicate_code')

        if re.search(r'\b(?:unused|deprecated)\b', code, re.IGNORECASE) or re.search(r'\bif\s*\(?\s*(?:false|False)\s*\)?\s*[:{]', stripped):
            smells.append('dead_code')

        return smells

    @staticmethod
    def find_duplicate_lines(code: str) -> List[str]:
        counts = {}
        for line in code.split('\n'):
            trimmed = line.strip()
            if len(trimmed) > 10:
                counts[trimmed] = counts.get(trimmed, 0) + 1
        return [line for line, count in counts.items() if count > 1]


__all__ = [
    'CodeAnalyzer',
    'detect_language',
    'nesting_level',
    'scan_loops',
    'function_bodies',
    'strip_strings',
    'strip_comments',
]

"""
Tests for the heuristic code analyzer and the validation rules.
"""

import pytest

from Colony.core.validation.code_analyzer import (
    CodeAnalyzer,
    detect_language,
    function_bodies,
    nesting_level,
    strip_strings,
)
from Colony.core.validation.rules import (
    BestPracticesRule,
    LogicRule,
    PerformanceRule,
    SecurityRule,
    StyleRule,
    SyntaxRule,
    default_rules,
    run_rules,
)
from Colony.core.validation.types import IssueCategory, IssueType, Severity

WORD_COUNT = '''import os
from collections import defaultdict


def count_words(text):
    """Count words."""
    counts = defaultdict(int)
    for word in text.split():
        counts[word] += 1
    return counts
'''

NESTED_PY = '''def pairs(items):
    result = []
    for a in items:
        for b in items:
            result.append((a, b))
    return result
'''

RECURSIVE_PY = '''def fact(n):
    if n <= 1:
        return 1
    return n * fact(n - 1)
'''

JS_GLOBAL = '''var total = 0;
function add(items) {
  for (var i = 0; i < items.length; i++) {
    total += items[i];
  }
  console.log(total);
  return total;
}
'''

JS_DOM_LOOP = '''function paint(items) {
  for (const item of items) {
    document.getElementById('list').appendChild(item);
  }
}
'''


@pytest.fixture
def analyzer():
    return CodeAnalyzer()


# =============================================================================
# Helpers
# =============================================================================

@pytest.mark.unit
class TestHelpers:

    @pytest.mark.parametrize("code,language", [
        (WORD_COUNT, "python"),
        (JS_GLOBAL, "javascript"),
        ("interface User {\n  name: string;\n}", "typescript"),
        ("import React from 'react';\nconst App = () => null;", "typescript"),
        ("public class Foo {\n}", "java"),
        ("just some words", "unknown"),
    ])
    def test_detect_language(self, code, language):
        assert detect_language(code) == language

    def test_nesting_level(self):
        assert nesting_level("f(g(h()))") == 3
        assert nesting_level("") == 0

    def test_strip_strings_keeps_lines(self):
        code = 'a = "x{y}"\nb = """multi\nline"""\nc = 1'
        stripped = strip_strings(code)
        assert "{" not in stripped
        assert stripped.count("\n") == code.count("\n")

    def test_function_bodies_js(self):
        bodies = function_bodies("function add(a, b) {\n  return a + b;\n}", "javascript")
        assert [name for name, _ in bodies] == ["add"]
        assert "return a + b" in bodies[0][1]

    def test_function_bodies_python(self):
        bodies = function_bodies(RECURSIVE_PY, "python")
        assert bodies[0][0] == "fact"
        assert "fact(n - 1)" in bodies[0][1]


# =============================================================================
# Analysis
# =============================================================================

@pytest.mark.unit
class TestCodeAnalyzer:

    def test_python_counts(self, analyzer):
        analysis = analyzer.analyze(WORD_COUNT)
        assert analysis.language == "python"
        assert analysis.functions == 1
        assert analysis.classes == 0
        assert analysis.imports == ["os", "collections"]
        assert analysis.lines_of_code == 8
        assert analysis.doc_comments == 1
        assert analysis.complexity == 4
        assert analysis.patterns == ["pure_functions"]
        assert analysis.smells == []

    def test_nested_loops(self, analyzer):
        assert analyzer.analyze(NESTED_PY).has_pattern("nested_loops")

    def test_single_loop_not_nested(self, analyzer):
        assert not analyzer.analyze(WORD_COUNT).has_pattern("nested_loops")

    def test_recursion(self, analyzer):
        assert analyzer.analyze(RECURSIVE_PY).has_pattern("recursive_calls")

    def test_method_recursion_through_self(self, analyzer):
        code = ("class Tree:\n"
                "    def walk(self, node):\n"
                "        for child in node.children:\n"
                "            self.walk(child)\n")
        assert analyzer.analyze(code).has_pattern("recursive_calls")

    def test_same_named_attribute_call_is_not_recursion(self, analyzer):
        code = ("class Store:\n"
                "    def get(self, key):\n"
                "        return self._items.get(key)\n")
        assert not analyzer.analyze(code).has_pattern("recursive_calls")

    def test_eval_detected(self, analyzer):
        analysis = analyzer.analyze("def run(user_input):\n    return eval(user_input)\n")
        assert analysis.has_pattern("eval")

    def test_eval_in_string_ignored(self, analyzer):
        analysis = analyzer.analyze('def doc():\n    return "never call eval(x)"\n')
        assert not analysis.has_pattern("eval")

    def test_dangerous_imports(self, analyzer):
        analysis = analyzer.analyze("import pickle\n\ndef load(b):\n    return b\n")
        assert analysis.has_pattern("dangerous_imports")

    def test_js_global_state(self, analyzer):
        analysis = analyzer.analyze(JS_GLOBAL)
        assert analysis.language == "javascript"
        assert analysis.has_pattern("global_state")
        assert analysis.comment_count == 0

    def test_js_imports(self, analyzer):
        code = "import x from './local';\nconst fs = require('fs');\nfunction f() {}\n"
        analysis = analyzer.analyze(code, "javascript")
        assert analysis.imports == ["./local", "fs"]
        assert analysis.dependencies == ["fs"]

    def test_inheritance_and_strategy(self, analyzer):
        code = (
            "from abc import ABC, abstractmethod\n\n"
            "class Base(ABC):\n"
            "    @abstractmethod\n"
            "    def run(self):\n"
            "        pass\n"
        )
        analysis = analyzer.analyze(code)
        assert analysis.has_pattern("inheritance")
        assert analysis.has_pattern("strategy")

    def test_long_method_smell(self):
        body = "\n".join(f"    x{i} = {i}" for i in range(6))
        analysis = CodeAnalyzer(long_method_lines=5).analyze(f"def big():\n{body}\n")
        assert "long_method" in analysis.smells

    def test_duplicate_code_smell(self, analyzer):
        lines = [f"result_{i} = compute_value({i})" for i in range(6)]
        code = "def f():\n" + "\n".join(f"    {line}\n    {line}" for line in lines) + "\n"
        assert "duplicate_code" in analyzer.analyze(code).smells

    def test_dead_code_smell(self, analyzer):
        assert "dead_code" in analyzer.analyze("def helper():\n    return 1  # unused\n").smells

    def test_find_duplicate_lines(self, analyzer):
        code = "print('hello world')\nprint('hello world')\nx = 1"
        assert analyzer.find_duplicate_lines(code) == ["print('hello world')"]


# =============================================================================
# Rules
# =============================================================================

@pytest.mark.unit
class TestRules:

    def _check(self, rule, code, language=None):
        return rule.check(code, CodeAnalyzer().analyze(code, language))

    def test_unbalanced_braces(self):
        issues = self._check(SyntaxRule(), "function f() { return 1;")
        assert len(issues) == 1
        assert issues[0].is_blocking
        assert issues[0].message == "Mismatched braces"

    def test_braces_in_strings_ignored(self):
        assert self._check(SyntaxRule(), "function f() { return '{'; }") == []

    def test_python_syntax_error(self):
        issues = self._check(SyntaxRule(), "def broken()\n    return 1\n", "python")
        assert len(issues) == 1
        assert issues[0].severity is Severity.CRITICAL
        assert issues[0].line == 1

    def test_redundant_comparison(self):
        issues = self._check(LogicRule(), "function f(x) {\n  if (x === true) { return 1; }\n}")
        assert [i.message for i in issues] == ["Redundant boolean comparison"]
        assert issues[0].line == 2

    def test_constant_condition(self):
        issues = self._check(LogicRule(), "function f() {\n  if (true) { return 1; }\n}")
        assert issues[0].severity is Severity.HIGH

    def test_nested_loop_warning(self):
        issues = self._check(PerformanceRule(), NESTED_PY)
        assert issues and issues[0].category is IssueCategory.PERFORMANCE

    def test_dom_lookup_in_loop(self):
        issues = self._check(PerformanceRule(), JS_DOM_LOOP)
        assert [i.message for i in issues] == ["DOM query inside a loop"]
        assert issues[0].line == 3

    def test_eval_is_critical(self):
        issues = self._check(SecurityRule(), "def run(x):\n    return eval(x)\n")
        assert issues[0].is_blocking

    def test_unsafe_inner_html(self):
        issues = self._check(SecurityRule(), "function show(el, userInput) {\n  el.innerHTML = userInput;\n}")
        assert [i.severity for i in issues] == [Severity.HIGH]

    def test_shell_execution(self):
        code = "import subprocess\n\ndef run(cmd):\n    subprocess.run(cmd, shell=True)\n"
        messages = [i.message for i in self._check(SecurityRule(), code)]
        assert "Shell command execution detected" in messages

    def test_shell_call_mentioned_in_comment_ignored(self):
        code = "def run():\n    # never call os.system() here\n    return 1\n"
        assert self._check(SecurityRule(), code) == []

    def test_child_process_require_detected(self):
        code = "const cp = require('child_process');\nfunction run(c) {\n  return cp.exec(c);\n}\n"
        issues = self._check(SecurityRule(), code)
        assert [i.message for i in issues] == ["Shell command execution detected"]
        assert issues[0].line == 1

    def test_unsafe_deserialization(self):
        code = "import yaml\n\ndef load(stream):\n    return yaml.load(stream)\n"
        messages = [i.message for i in self._check(SecurityRule(), code)]
        assert "Unsafe deserialization of untrusted data" in messages

    def test_safe_yaml_loader_allowed(self):
        code = "import yaml\n\ndef load(stream):\n    return yaml.load(stream, Loader=yaml.SafeLoader)\n"
        assert self._check(SecurityRule(), code) == []

    def test_var_and_any(self):
        code = "function f(x: any) {\n  var y = x;\n  return y;\n}"
        messages = [i.message for i in self._check(BestPracticesRule(), code, "typescript")]
        assert "Use of 'any' type reduces type safety" in messages
        assert "Use of 'var' - prefer 'const' or 'let'" in messages

    def test_complexity_threshold(self):
        issues = self._check(BestPracticesRule(max_complexity=2), NESTED_PY)
        assert any(i.message.startswith("High complexity") for i in issues)

    def test_long_line_and_console_log(self):
        code = "function f() {\n  console.log('" + "x" * 130 + "');\n}"
        issues = self._check(StyleRule(), code)
        assert [i.type for i in issues] == [IssueType.SUGGESTION, IssueType.SUGGESTION]
        assert issues[0].line == 2

    def test_disabled_rule_skipped(self):
        rules = default_rules()
        for rule in rules:
            rule.enabled = rule.category is not IssueCategory.SECURITY
        code = "def run(x):\n    return eval(x)\n"
        issues = run_rules(rules, code, CodeAnalyzer().analyze(code))
        assert all(i.category is not IssueCategory.SECURITY for i in issues)

    def test_rule_names(self):
        assert [rule.name for rule in default_rules()] == [
            "syntax", "logic", "performance", "security", "best_practices", "style",
        ]

"""
Context Compressor
==================

Heuristic, model-free reduction of a context string to a unit budget.

Stages, applied in order and each only while the text is still over budget:

1. Line pruning      - drop low-importance lines, then strip the least
                       important lines until within 80% of the budget
2. De-duplication    - drop repeated lines (short lines are always kept)
3. Summarization     - paragraphs over 500 units keep their 3 most
                       keyword-dense sentences
4. Key extraction    - drop the least important sentences until it fits

The result always fits the budget, so compressing an already compressed
text is a no-op.

Usage:
    compressor = ContextCompressor()
    short = compressor.compress(long_text, max_units=2000)
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from Colony.core.foundation.config_defaults import DEFAULTS
from Colony.core.utils.tokenizer import TokenEstimator

logger = logging.getLogger(__name__)

IMPORTANT_LINE_KEYWORDS = ('error', 'warning', 'important', 'critical', 'todo', 'fixme')
LOW_IMPORTANCE_LINE_KEYWORDS = ('comment', 'log', 'debug', 'console')
COMMENT_PREFIXES = ('//', '/*', '#')
IMPORTANT_SENTENCE_WORDS = ('error', 'warning', 'important', 'critical', 'must', 'should', 'need')

_SENTENCE_SPLIT = re.compile(r'(?<=[.!?])\s+')


@dataclass
class CompressionResult:
    """Outcome of one compression call."""
    text: str
    original_units: int
    final_units: int
    stages: List[str] = field(default_factory=list)

    @property
    def units_saved(self) -> int:
        return self.original_units - self.final_units

    def to_dict(self) -> Dict[str, Any]:
        return {
            'original_units': self.original_units,
            'final_units': self.final_units,
            'units_saved': self.units_saved,
            'stages': list(self.stages),
        }


def line_importance(line: str) -> float:
    lower = line.lower()
    importance = 0.5
    for keyword in IMPORTANT_LINE_KEYWORDS:
        if keyword in lower:
            importance += 0.3
    for keyword in LOW_IMPORTANCE_LINE_KEYWORDS:
        if keyword in lower:
            importance -= 0.2
    if line.strip().startswith(COMMENT_PREFIXES):
        importance -= 0.3
    return max(0.0, min(1.0, importance))


def sentence_importance(sentence: str) -> float:
    lower = sentence.lower()
    importance = 0.3
    for word in IMPORTANT_SENTENCE_WORDS:
        if word in lower:
            importance += 0.2
    if len(sentence) > 50:
        importance += 0.1
    return max(0.0, min(1.0, importance))


def split_sentences(text: str) -> List[str]:
    return [s for s in _SENTENCE_SPLIT.split(text.strip()) if s.strip()]


class ContextCompressor:
    """Four-stage heuristic compressor sharing the optimizer's unit estimator."""

    def __init__(
        self,
        estimator: Optional[TokenEstimator] = None,
        low_importance_cutoff: float = DEFAULTS.LOW_IMPORTANCE_CUTOFF,
        line_stage_ratio: float = DEFAULTS.LINE_STAGE_BUDGET_RATIO,
        dedup_min_units: int = DEFAULTS.DEDUP_MIN_UNITS,
        long_section_units: int = DEFAULTS.LONG_SECTION_UNITS,
        summary_sentences: int = DEFAULTS.SUMMARY_SENTENCES,
    ):
        self.estimator = estimator or TokenEstimator()
        self.low_importance_cutoff = low_importance_cutoff
        self.line_stage_ratio = line_stage_ratio
        self.dedup_min_units = dedup_min_units
        self.long_section_units = long_section_units
        self.summary_sentences = summary_sentences

        self.compressions_count = 0
        self.total_units_saved = 0

    def compress(self, text: str, max_units: float) -> str:
        return self.compress_with_report(text, max_units).text

    def compress_with_report(self, text: str, max_units: float) -> CompressionResult:
        max_units = max(0, max_units)
        original_units = self._units(text)
        if original_units <= max_units:
            return CompressionResult(text=text, original_units=original_units, final_units=original_units)

        stages = []
        result = text
        for name, stage in (
            ('line_pruning', lambda t: self._prune_lines(t, max_units * self.line_stage_ratio)),
            ('deduplication', self._deduplicate_lines),
            ('summarization', self._summarize_sections),
            ('key_extraction', lambda t: self._extract_key_sentences(t, max_units)),
        ):
            if self._units(result) <= max_units:
                break
            result = stage(result)
            stages.append(name)

        if self._units(result) > max_units:
            result = self._truncate(result, max_units)
            stages.append('truncation')

        final_units = self._units(result)
        self.compressions_count += 1
        self.total_units_saved += original_units - final_units
        logger.debug(f"Compressed context {original_units} -> {final_units} units via {', '.join(stages)}")
        return CompressionResult(text=result, original_units=original_units,
                                 final_units=final_units, stages=stages)

    # =========================================================================
    # STAGES
    # =========================================================================

    def _prune_lines(self, text: str, target_units: float) -> str:
        lines = [line for line in text.split('\n')
                 if line_importance(line) > self.low_importance_cutoff]
        if not lines:
            return text
        kept = self._drop_least_important(lines, [line_importance(line) for line in lines], target_units)
        return '\n'.join(lines[i] for i in kept)

    def _deduplicate_lines(self, text: str) -> str:
        seen = set()
        kept = []
        for line in text.split('\n'):
            normalized = line.strip().lower()
            if normalized not in seen or self._units(line) < self.dedup_min_units:
                kept.append(line)
                seen.add(normalized)
        return '\n'.join(kept)

    def _summarize_sections(self, text: str) -> str:
        sections = []
        for section in text.split('\n\n'):
            if self._units(section) > self.long_section_units:
                sections.append(self._summarize(section))
            else:
                sections.append(section)
        return '\n\n'.join(sections)

    def _summarize(self, section: str) -> str:
        sentences = split_sentences(section)
        if len(sentences) <= self.summary_sentences:
            return section
        ranked = sorted(range(len(sentences)), key=lambda i: (-sentence_importance(sentences[i]), i))
        keep = sorted(ranked[:self.summary_sentences])
        return ' '.join(sentences[i] for i in keep)

    def _extract_key_sentences(self, text: str, max_units: float) -> str:
        sentences = split_sentences(text)
        if not sentences:
            return text
        kept = self._drop_least_important(
            sentences, [sentence_importance(s) for s in sentences], max_units)
        return ' '.join(sentences[i] for i in kept)

    def _truncate(self, text: str, max_units: float) -> str:
        """Keep the longest word prefix (or character prefix) that fits."""
        words = text.split()
        lo, hi = 0, len(words)
        while lo < hi:
            mid = (lo + hi + 1) // 2
            if self._units(' '.join(words[:mid])) <= max_units:
                lo = mid
            else:
                hi = mid - 1
        if lo > 0 or not words:
            return ' '.join(words[:lo])
        first = words[0]
        lo, hi = 0, len(first)
        while lo < hi:
            mid = (lo + hi + 1) // 2
            if self._units(first[:mid]) <= max_units:
                lo = mid
            else:
                hi = mid - 1
        return first[:lo]

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _units(self, text: str) -> int:
        return self.estimator.estimate(text)

    def _drop_least_important(self, items: List[str], importance: List[float],
                              target_units: float) -> List[int]:
        """
        Indices of ``items`` left after dropping the least important ones
        (later items first among equals) until the running total fits.

        Each item is estimated once, plus one unit for its separator; the
        caller re-checks the joined text exactly.
        """
        costs = [self._units(item) + 1 for item in items]
        total = sum(costs)
        order = sorted(range(len(items)), key=lambda i: (importance[i], -i))
        kept = set(range(len(items)))
        for index in order:
            if len(kept) <= 1 or total <= target_units:
                break
            kept.discard(index)
            total -= costs[index]
        return sorted(kept)

    def get_statistics(self) -> Dict[str, Any]:
        return {
            'compressions_count': self.compressions_count,
            'total_units_saved': self.total_units_saved,
        }


__all__ = [
    'ContextCompressor',
    'CompressionResult',
    'line_importance',
    'sentence_importance',
    'split_sentences',
]

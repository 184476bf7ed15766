"""
Token Estimator
===============

Work-unit (token) counting shared by the optimizer and the context compressor.

Units are tiktoken tokens (``cl100k_base`` by default). If the encoding cannot
be loaded or fails on a piece of text, the estimate falls back to averaging a
word-based count (~1.3 units per word) and a character-based count (~4
characters per unit). The compressor and the cost model must agree on the
count, otherwise "fits within budget" means different things in different
places, so both go through ``TokenEstimator``.

Usage:
    estimator = TokenEstimator()
    units = estimator.estimate("Hello world")
"""

import math
import logging
from functools import lru_cache
from typing import Any, Dict, Optional

import tiktoken

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "cl100k_base"
UNITS_PER_WORD = 1.3
CHARS_PER_UNIT = 4.0


@lru_cache(maxsize=None)
def _load_encoding(name: str) -> "tiktoken.Encoding":
    # One encoding instance per name
    return tiktoken.get_encoding(name)


def heuristic_units(text: str) -> int:
    """Word/character estimate used when tiktoken is unavailable."""
    if not text:
        return 0
    words = len(text.split())
    chars = len(text)
    return math.ceil((words * UNITS_PER_WORD + chars / CHARS_PER_UNIT) / 2)


class TokenEstimator:
    """
    Count work units for a piece of text.

    Args:
        encoding_name: tiktoken encoding to load
        encoding: Ready encoding object (anything with ``encode``); skips loading
    """

    def __init__(self, encoding_name: str = DEFAULT_ENCODING, encoding: Optional[Any] = None):
        self.encoding_name = encoding_name
        self._encoding = encoding
        if self._encoding is None:
            self._init_tiktoken()

        self._total_calls = 0
        self._tiktoken_calls = 0
        self._heuristic_calls = 0

    def _init_tiktoken(self) -> None:
        try:
            self._encoding = _load_encoding(self.encoding_name)
            logger.debug(f"TokenEstimator: using tiktoken encoding '{self.encoding_name}'")
        except Exception as e:
            logger.warning(f"TokenEstimator: tiktoken error ({e}), using heuristics")
            self._encoding = None

    @property
    def using_tiktoken(self) -> bool:
        return self._encoding is not None

    def estimate(self, text: str) -> int:
        """Return the units for ``text`` (0 for empty text)."""
        self._total_calls += 1
        if not text:
            return 0
        if self._encoding is not None:
            try:
                units = len(self._encoding.encode(text, disallowed_special=()))
                self._tiktoken_calls += 1
                return units
            except Exception as e:
                logger.debug(f"tiktoken encoding failed: {e}, using heuristics")
        self._heuristic_calls += 1
        return heuristic_units(text)

    def fits(self, text: str, max_units: float) -> bool:
        return self.estimate(text) <= max_units

    def get_stats(self) -> Dict[str, Any]:
        return {
            'encoding': self.encoding_name if self.using_tiktoken else None,
            'total_calls': self._total_calls,
            'tiktoken_calls': self._tiktoken_calls,
            'heuristic_calls': self._heuristic_calls,
        }


_default_estimator: Optional[TokenEstimator] = None


def estimate_units(text: str) -> int:
    """Module-level convenience wrapper around a shared ``TokenEstimator``."""
    global _default_estimator
    if not text:
        return 0
    if _default_estimator is None:
        _default_estimator = TokenEstimator()
    return _default_estimator.estimate(text)


__all__ = [
    'TokenEstimator',
    'estimate_units',
    'heuristic_units',
    'DEFAULT_ENCODING',
    'UNITS_PER_WORD',
    'CHARS_PER_UNIT',
]

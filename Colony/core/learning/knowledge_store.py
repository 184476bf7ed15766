"""
Shared knowledge base: fragments indexed by domain and type.
"""

import copy
import logging
import json
from typing import Dict, Iterator, List, Optional, Set

from Colony.core.utils.clock import Clock, SystemClock

from .types import FragmentType, KnowledgeFragment

logger = logging.getLogger(__name__)

RECENCY_WINDOW_SECONDS = 7 * 24 * 3600
MIN_RELEVANCE = 0.3


class KnowledgeStore:
    """
    In-memory fragment store.

    Re-storing an existing id updates its payload but keeps its creation time
    and usage counters. Read methods return copies.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self._fragments: Dict[str, KnowledgeFragment] = {}
        self._by_domain: Dict[str, Set[str]] = {}
        self._by_type: Dict[FragmentType, Set[str]] = {}

    def store(self, fragment: KnowledgeFragment) -> KnowledgeFragment:
        existing = self._fragments.get(fragment.id)
        stored = copy.deepcopy(fragment)
        if existing is not None:
            stored.created_at = existing.created_at
            stored.usage_count = existing.usage_count
            stored.last_used = max(existing.last_used, stored.last_used)
            self._unindex(existing)
        self._fragments[stored.id] = stored
        self._by_domain.setdefault(stored.domain, set()).add(stored.id)
        self._by_type.setdefault(stored.type, set()).add(stored.id)
        return copy.deepcopy(stored)

    def get(self, fragment_id: str) -> Optional[KnowledgeFragment]:
        fragment = self._fragments.get(fragment_id)
        return copy.deepcopy(fragment) if fragment else None

    def retrieve(self, domain: str, type: Optional[FragmentType] = None) -> List[KnowledgeFragment]:
        """Fragments of ``domain`` (optionally of one ``type``), most valuable first."""
        candidates = set(self._by_domain.get(domain, ()))
        if type is not None:
            candidates &= self._by_type.get(type, set())
        fragments = sorted(
            (self._fragments[fid] for fid in candidates),
            key=lambda f: (-f.value, f.id),
        )
        return [copy.deepcopy(f) for f in fragments]

    def search(self, query: str) -> List[KnowledgeFragment]:
        """Relevance-ranked text search over description, domain and content."""
        now = self.clock.now()
        scored = []
        for fragment in list(self._fragments.values()):
            score = self._relevance(fragment, query, now)
            if score > MIN_RELEVANCE:
                scored.append((score, fragment))
        scored.sort(key=lambda item: (-item[0], item[1].id))
        return [copy.deepcopy(fragment) for _, fragment in scored]

    @staticmethod
    def _relevance(fragment: KnowledgeFragment, query: str, now: float) -> float:
        query = query.lower()
        score = 0.0
        if query in fragment.description.lower():
            score += 0.5
        if query in fragment.domain.lower():
            score += 0.3
        if query in json.dumps(fragment.content, default=str).lower():
            score += 0.2
        recency = max(0.0, 1 - (now - fragment.last_used) / RECENCY_WINDOW_SECONDS)
        score *= 1 + min(1.0, recency) * 0.3
        return score * fragment.confidence * fragment.usefulness

    def record_usage(self, fragment_id: str, success: Optional[bool] = None) -> bool:
        fragment = self._fragments.get(fragment_id)
        if fragment is None:
            return False
        fragment.record_usage(self.clock.now(), success)
        return True

    def evict_stale(self, retention_seconds: float, min_usage: int) -> List[str]:
        """Drop fragments unused for ``retention_seconds`` and used fewer than ``min_usage`` times."""
        now = self.clock.now()
        evicted = []
        for fragment in list(self._fragments.values()):
            if fragment.is_stale(now, retention_seconds, min_usage):
                self._unindex(fragment)
                del self._fragments[fragment.id]
                evicted.append(fragment.id)
        if evicted:
            logger.info(f"Evicted {len(evicted)} stale knowledge fragments")
        return evicted

    def _unindex(self, fragment: KnowledgeFragment) -> None:
        for index, key in ((self._by_domain, fragment.domain), (self._by_type, fragment.type)):
            ids = index.get(key)
            if ids is None:
                continue
            ids.discard(fragment.id)
            if not ids:
                del index[key]

    def utilization(self) -> float:
        """Fraction of fragments used at least once."""
        if not self._fragments:
            return 0.0
        used = sum(1 for f in self._fragments.values() if f.usage_count > 0)
        return used / len(self._fragments)

    def __contains__(self, fragment_id: str) -> bool:
        return fragment_id in self._fragments

    def __len__(self) -> int:
        return len(self._fragments)

    def __iter__(self) -> Iterator[KnowledgeFragment]:
        return iter([copy.deepcopy(f) for f in self._fragments.values()])

    def get_stats(self) -> Dict[str, object]:
        return {
            'fragments': len(self._fragments),
            'domains': {domain: len(ids) for domain, ids in self._by_domain.items()},
            'types': {t.value: len(ids) for t, ids in self._by_type.items()},
            'utilization': self.utilization(),
        }


__all__ = ['KnowledgeStore']

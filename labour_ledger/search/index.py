"""
Entity Search Index

Fuzzy name lookup across active workers and linked-pair accounts, with a
short-lived per-process result cache.

Scoring:
    exact name            100
    name starts with term  90
    name contains term     80
    otherwise, Levenshtein distance d accepted when d <= floor(ratio * len(term)),
    scored max(0, 100 - 10 * d)

The cache is never invalidated automatically beyond its TTL. Callers that
need immediate visibility after creating, renaming or linking workers must
call clear_cache().
"""

import asyncio
import math
import time
from typing import Callable, Optional

import structlog

from labour_ledger.config import LedgerSettings, get_settings
from labour_ledger.models.labour import LabourStatus
from labour_ledger.models.ledger import SearchResult
from labour_ledger.services.storage import EntityStoreAdapter

logger = structlog.get_logger(__name__)


def levenshtein_distance(first: str, second: str) -> int:
    """Classic edit distance (insert, delete, substitute all cost 1)."""
    if len(first) < len(second):
        first, second = second, first
    if not second:
        return len(first)

    previous = list(range(len(second) + 1))
    for i, char_a in enumerate(first, start=1):
        current = [i]
        for j, char_b in enumerate(second, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (char_a != char_b),
            ))
        previous = current
    return previous[-1]


def match_score(name: str, term: str, distance_ratio: float) -> Optional[int]:
    """Score a lowercased name against a lowercased term; None means no match."""
    if name == term:
        return 100
    if name.startswith(term):
        return 90
    if term in name:
        return 80

    distance = levenshtein_distance(name, term)
    if distance <= math.floor(distance_ratio * len(term)):
        return max(0, 100 - 10 * distance)
    return None


class EntitySearchIndex:
    """
    Cached fuzzy search over one organization's workers and pair accounts.

    Each process owns its own cache; nothing is shared across instances.
    """

    def __init__(
        self,
        adapter: EntityStoreAdapter,
        settings: Optional[LedgerSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._adapter = adapter
        self._settings = settings or get_settings().ledger
        self._clock = clock
        self._cache: dict[tuple[str, str], tuple[float, list[SearchResult]]] = {}

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def _evict_expired(self, now: float) -> None:
        ttl = self._settings.search_cache_ttl_seconds
        stale = [key for key, (stored_at, _) in self._cache.items() if now - stored_at >= ttl]
        for key in stale:
            del self._cache[key]
        if stale:
            logger.debug("search_cache_evicted", count=len(stale))

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.debug("search_cache_cleared")

    async def search(self, org_id: str, term: str) -> list[SearchResult]:
        normalized = (term or "").strip().lower()
        if len(normalized) < self._settings.search_min_term_length:
            return []

        key = (org_id, normalized)
        now = self._clock()
        cached = self._cache.get(key)
        if cached and now - cached[0] < self._settings.search_cache_ttl_seconds:
            logger.debug("search_cache_hit", org_id=org_id, term=normalized)
            return list(cached[1])

        logger.debug("search_cache_miss", org_id=org_id, term=normalized)
        page = self._settings.search_page_size
        labours, pairs = await asyncio.gather(
            self._adapter.list_labours(org_id, status=LabourStatus.ACTIVE, limit=page),
            self._adapter.list_pairs(org_id, status=LabourStatus.ACTIVE, limit=page),
        )

        ratio = self._settings.fuzzy_distance_ratio
        results: list[SearchResult] = []
        for labour in labours:
            score = match_score(labour.name.lower(), normalized, ratio)
            if score is not None:
                results.append(SearchResult(
                    type="worker",
                    id=labour.id,
                    name=labour.name,
                    description=f"Worker - {labour.labour_code}",
                    score=score,
                ))

        for pair in pairs:
            score = match_score(pair.name.lower(), normalized, ratio)
            if score is not None:
                results.append(SearchResult(
                    type="pair",
                    id=pair.id,
                    name=pair.name,
                    description=f"Linked pair account - {len(pair.member_ids)} members",
                    score=score,
                ))

        results.sort(key=lambda r: (-r.score, r.name.lower(), r.name))
        results = results[:self._settings.search_result_cap]

        self._evict_expired(now)
        self._cache[key] = (now, results)
        return list(results)

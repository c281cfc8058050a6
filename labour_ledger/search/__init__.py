"""Entity search package."""

from labour_ledger.search.index import EntitySearchIndex, levenshtein_distance, match_score

__all__ = ["EntitySearchIndex", "levenshtein_distance", "match_score"]

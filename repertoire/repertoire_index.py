"""Candidate lookup of catalogued openings for a canonical move string."""

from repertoire import config
from repertoire.db import DEFAULT_MATCH_ORDER
from repertoire.models import Opening
from repertoire.stores import OpeningStore, matches_prefix


class RepertoireIndex:
    """
    Openings that either continue the played line (prefix) or embed it as an
    interior run of moves (" line " substring, i.e. transpositions filed under
    another ECO heading). Ranked by isEcoRoot desc, eco asc, moves asc.
    """

    def __init__(self, store: OpeningStore, limit: int | None = None):
        self.store = store
        self.limit = limit if limit is not None else config.match_openings_limit()

    async def find_candidates(self, canonical: str) -> list[Opening]:
        if not canonical:
            return []
        return await self.store.find_by_prefix_or_substring(canonical, self.limit, DEFAULT_MATCH_ORDER)


def has_exact_match(candidates: list[Opening], canonical: str) -> bool:
    """True iff some candidate genuinely continues the played line."""
    if not canonical:
        return False
    return any(matches_prefix(o.moves, canonical) for o in candidates)

"""Position-transition edges bordering a played line."""

from dataclasses import replace

from repertoire import config
from repertoire.models import Transition, summarize
from repertoire.stores import OpeningStore, TransitionStore


class TransitionGraph:
    """
    Edges whose fromSrc or toSrc contains the canonical line anywhere.

    Each returned edge is a copy with from_opening/to_opening looked up by
    FEN in the opening store, in one batch; the store's own records are never
    modified. A FEN with no indexed opening leaves its side as None.
    """

    def __init__(self, transitions: TransitionStore, openings: OpeningStore, limit: int | None = None):
        self.transitions = transitions
        self.openings = openings
        self.limit = limit if limit is not None else config.match_transitions_limit()

    async def find_transitions(self, canonical: str) -> list[Transition]:
        if not canonical:
            return []
        edges = await self.transitions.find_by_canonical_substring(canonical, self.limit)
        if not edges:
            return []

        fens = list(dict.fromkeys(fen for e in edges for fen in (e.from_fen, e.to_fen)))
        found = await self.openings.find_by_positions(fens)
        summaries = {fen: summarize(o) for fen, o in found.items()}

        return [
            replace(e, from_opening=summaries.get(e.from_fen), to_opening=summaries.get(e.to_fen))
            for e in edges
        ]

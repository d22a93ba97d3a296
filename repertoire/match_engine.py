"""
Live opening matcher.

Turns the moves played so far into the canonical repertoire key, then asks
the repertoire index and the transition graph for related entries. The two
reads run concurrently and the answer is all-or-nothing: if either read
fails the whole call fails with StoreUnavailableError.
"""

import asyncio

import structlog

from repertoire.exceptions import InvalidInputError, RepertoireError, StoreUnavailableError
from repertoire.models import MatchResult, SearchInfo
from repertoire.notation import normalize_moves
from repertoire.repertoire_index import RepertoireIndex, has_exact_match
from repertoire.transition_graph import TransitionGraph

logger = structlog.get_logger(__name__)


def validate_moves(played_moves) -> list[str]:
    """Reject anything that is not a list of move strings."""
    if played_moves is None:
        raise InvalidInputError("moveHistory is required")
    if not isinstance(played_moves, list):
        raise InvalidInputError("moveHistory must be an array")
    for move in played_moves:
        if not isinstance(move, str) or not move.strip():
            raise InvalidInputError(f"Invalid move in moveHistory: {move!r}")
    return played_moves


class MatchEngine:
    def __init__(self, index: RepertoireIndex, graph: TransitionGraph):
        self.index = index
        self.graph = graph

    async def match(self, played_moves) -> MatchResult:
        moves = validate_moves(played_moves)
        if not moves:
            return MatchResult()

        normalized = normalize_moves(moves)
        openings, transitions = await asyncio.gather(
            self.index.find_candidates(normalized),
            self.graph.find_transitions(normalized),
            return_exceptions=True,
        )
        for outcome in (openings, transitions):
            if isinstance(outcome, RepertoireError):
                raise outcome
            if isinstance(outcome, Exception):
                logger.error("match_store_failed", normalized_moves=normalized, error=str(outcome))
                raise StoreUnavailableError(f"Store query failed: {outcome}") from outcome
            if isinstance(outcome, BaseException):
                raise outcome

        result = MatchResult(
            exact_matches=has_exact_match(openings, normalized),
            openings=openings,
            transitions=transitions,
            search_info=SearchInfo(normalized_moves=normalized, moves_count=len(moves), moves=list(moves)),
        )
        logger.info(
            "match_completed",
            normalized_moves=normalized,
            openings=result.count,
            transitions=len(transitions),
            exact=result.exact_matches,
        )
        return result

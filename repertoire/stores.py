"""
Opening and transition stores consumed by the match engine.

Two implementations share one contract: PostgreSQL (through db.py) for the
service, and an in-memory store used by tests and offline tooling. Both
apply the same matching and ordering rules.
"""

from dataclasses import replace
from typing import Iterable, Protocol, Sequence

import psycopg
import structlog

from repertoire import db
from repertoire.exceptions import StoreUnavailableError
from repertoire.models import Opening, Transition

logger = structlog.get_logger(__name__)

SORT_ATTRS = {
    "isEcoRoot": "is_eco_root",
    "eco": "eco",
    "moves": "moves",
    "name": "name",
}


class OpeningStore(Protocol):
    async def find_by_prefix_or_substring(
        self, canonical: str, limit: int, order_keys: Sequence[tuple[str, str]]
    ) -> list[Opening]: ...

    async def find_by_exact_position(self, fen: str) -> Opening | None: ...

    async def find_by_positions(self, fens: Sequence[str]) -> dict[str, Opening]: ...


class TransitionStore(Protocol):
    async def find_by_canonical_substring(self, canonical: str, limit: int) -> list[Transition]: ...


def matches_prefix(moves: str, canonical: str) -> bool:
    return moves.lower().startswith(canonical.lower())


def matches_interior(moves: str, canonical: str) -> bool:
    return f" {canonical.lower()} " in moves.lower()


def sort_openings(openings: Iterable[Opening], order_keys: Sequence[tuple[str, str]]) -> list[Opening]:
    """Multi-key stable sort; None values sort last in either direction."""
    items = list(openings)
    for key, direction in reversed(order_keys):
        attr = SORT_ATTRS[key]
        present = [o for o in items if getattr(o, attr) is not None]
        missing = [o for o in items if getattr(o, attr) is None]
        present.sort(key=lambda o: getattr(o, attr), reverse=direction.lower() == "desc")
        items = present + missing
    return items


class PostgresOpeningStore:
    async def find_by_prefix_or_substring(
        self,
        canonical: str,
        limit: int,
        order_keys: Sequence[tuple[str, str]] = db.DEFAULT_MATCH_ORDER,
    ) -> list[Opening]:
        try:
            async with db.get_async_connection() as conn:
                return await db.find_openings_matching(conn, canonical, limit, order_keys)
        except psycopg.Error as e:
            logger.error("opening_store_failed", query="prefix_or_substring", error=str(e))
            raise StoreUnavailableError("Opening store unavailable") from e

    async def find_by_exact_position(self, fen: str) -> Opening | None:
        try:
            async with db.get_async_connection() as conn:
                return await db.find_opening_by_fen(conn, fen)
        except psycopg.Error as e:
            logger.error("opening_store_failed", query="exact_position", error=str(e))
            raise StoreUnavailableError("Opening store unavailable") from e

    async def find_by_positions(self, fens: Sequence[str]) -> dict[str, Opening]:
        if not fens:
            return {}
        try:
            async with db.get_async_connection() as conn:
                return await db.find_openings_by_fens(conn, fens)
        except psycopg.Error as e:
            logger.error("opening_store_failed", query="positions", error=str(e))
            raise StoreUnavailableError("Opening store unavailable") from e


class PostgresTransitionStore:
    async def find_by_canonical_substring(self, canonical: str, limit: int) -> list[Transition]:
        try:
            async with db.get_async_connection() as conn:
                return await db.find_transitions_matching(conn, canonical, limit)
        except psycopg.Error as e:
            logger.error("transition_store_failed", error=str(e))
            raise StoreUnavailableError("Transition store unavailable") from e


class InMemoryOpeningStore:
    """Opening store over a plain list, keyed by FEN."""

    def __init__(self, openings: Iterable[Opening] = ()):
        self._openings: list[Opening] = []
        self._by_fen: dict[str, Opening] = {}
        for opening in openings:
            self.add(opening)

    def add(self, opening: Opening) -> Opening:
        """Store a copy of `opening`, assigning an id when it has none, and return the copy."""
        opening = replace(opening, id=opening.id or str(len(self._openings) + 1))
        existing = self._by_fen.get(opening.fen)
        if existing is not None:
            self._openings[self._openings.index(existing)] = opening
        else:
            self._openings.append(opening)
        self._by_fen[opening.fen] = opening
        return opening

    def __len__(self) -> int:
        return len(self._openings)

    def all(self) -> list[Opening]:
        return list(self._openings)

    async def find_by_prefix_or_substring(
        self,
        canonical: str,
        limit: int,
        order_keys: Sequence[tuple[str, str]] = db.DEFAULT_MATCH_ORDER,
    ) -> list[Opening]:
        hits = [
            o for o in self._openings
            if matches_prefix(o.moves, canonical) or matches_interior(o.moves, canonical)
        ]
        return sort_openings(hits, order_keys)[:limit]

    async def find_by_exact_position(self, fen: str) -> Opening | None:
        return self._by_fen.get(fen)

    async def find_by_positions(self, fens: Sequence[str]) -> dict[str, Opening]:
        return {fen: self._by_fen[fen] for fen in fens if fen in self._by_fen}


class InMemoryTransitionStore:
    """Transition store over a plain list, in insertion order."""

    def __init__(self, transitions: Iterable[Transition] = ()):
        self._transitions: list[Transition] = []
        for transition in transitions:
            self.add(transition)

    def add(self, transition: Transition) -> Transition:
        """Store a copy of `transition`, assigning an id when it has none, and return the copy."""
        transition = replace(transition, id=transition.id or str(len(self._transitions) + 1))
        self._transitions.append(transition)
        return transition

    def __len__(self) -> int:
        return len(self._transitions)

    async def find_by_canonical_substring(self, canonical: str, limit: int) -> list[Transition]:
        needle = canonical.lower()
        hits = [
            t for t in self._transitions
            if needle in t.from_src.lower() or needle in t.to_src.lower()
        ]
        return hits[:limit]

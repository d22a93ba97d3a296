"""
Free practice against the live opening matcher.

The session owns the move sequence of one board. Every legal move bumps a
generation counter; refresh() tags its match request with the generation at
issue time and drops the response if another move (or a reset) happened
while it was in flight, so only the answer for the latest position is kept.
"""

from typing import Awaitable, Callable

import chess
import structlog

from repertoire.exceptions import IllegalMoveError
from repertoire.models import MatchResult

logger = structlog.get_logger(__name__)

Matcher = Callable[[list[str]], Awaitable[MatchResult]]


class PracticeSession:
    def __init__(self, matcher: Matcher):
        self.matcher = matcher
        self.board = chess.Board()
        self.generation = 0
        self.result: MatchResult | None = None

    @property
    def moves(self) -> list[str]:
        """SAN history of the moves played so far."""
        replay = self.board.root()
        history = []
        for move in self.board.move_stack:
            history.append(replay.san(move))
            replay.push(move)
        return history

    def position(self) -> str:
        return self.board.fen()

    def is_game_over(self) -> bool:
        return self.board.is_game_over()

    def move_options(self, square: str) -> list[str]:
        """Legal destination squares for the piece on `square`."""
        try:
            from_square = chess.parse_square(square)
        except ValueError:
            return []
        return [
            chess.square_name(m.to_square)
            for m in self.board.legal_moves
            if m.from_square == from_square
        ]

    def play(self, move: str, to_square: str | None = None) -> str:
        """
        Play a move given in SAN, or as a from/to square pair. Pawns reaching
        the last rank promote to a queen unless a promotion is spelled out.
        Returns the SAN of the move played.
        """
        fen = self.board.fen()
        if to_square is None:
            try:
                parsed = self.board.parse_san(move)
            except ValueError as e:
                raise IllegalMoveError(fen, move, str(e)) from e
        else:
            try:
                parsed = chess.Move(chess.parse_square(move), chess.parse_square(to_square))
            except ValueError as e:
                raise IllegalMoveError(fen, f"{move}{to_square}", str(e)) from e
            piece = self.board.piece_at(parsed.from_square)
            if (
                piece is not None
                and piece.piece_type == chess.PAWN
                and chess.square_rank(parsed.to_square) in (0, 7)
            ):
                parsed.promotion = chess.QUEEN
            if parsed not in self.board.legal_moves:
                raise IllegalMoveError(fen, parsed.uci())

        san = self.board.san(parsed)
        self.board.push(parsed)
        self.generation += 1
        return san

    def reset(self) -> None:
        self.board.reset()
        self.generation += 1
        self.result = None

    async def refresh(self) -> MatchResult | None:
        """
        Query the matcher for the current move sequence.

        Returns the applied result, or None when the query was skipped
        (game over) or its response went stale before it arrived.
        """
        if self.is_game_over():
            return None
        moves = self.moves
        if not moves:
            self.result = MatchResult()
            return self.result

        issued_at = self.generation
        result = await self.matcher(moves)
        if issued_at != self.generation:
            logger.debug("stale_match_dropped", issued_at=issued_at, current=self.generation)
            return None
        self.result = result
        return result

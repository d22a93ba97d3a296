"""
Step-through replay of a catalogued opening.

The full position trace is computed once, eagerly, when the navigator is
built; afterwards only the cursor and the board orientation change.
"""

import math
from typing import Callable, Literal

import chess
import structlog

from repertoire.exceptions import IllegalMoveError
from repertoire.notation import parse_moves

logger = structlog.get_logger(__name__)

Orientation = Literal["white", "black"]
MoveApplier = Callable[[str, str], str]


def apply_move(fen: str, san: str) -> str:
    """Play `san` from `fen` with python-chess and return the resulting FEN."""
    board = chess.Board(fen)
    try:
        board.push_san(san)
    except (chess.IllegalMoveError, chess.InvalidMoveError, chess.AmbiguousMoveError) as e:
        raise IllegalMoveError(fen, san, str(e)) from e
    return board.fen()


class ReplayNavigator:
    def __init__(
        self,
        moves: str,
        apply: MoveApplier = apply_move,
        initial_position: str = chess.STARTING_FEN,
    ):
        self.moves = parse_moves(moves)
        positions = [initial_position]
        for san in self.moves:
            try:
                positions.append(apply(positions[-1], san))
            except IllegalMoveError as e:
                # Catalogued data is trusted only up to the last move that applies.
                logger.warning(
                    "illegal_move_in_data",
                    move=san,
                    ply=len(positions),
                    moves=moves,
                    error=str(e),
                )
                break
        self.positions: tuple[str, ...] = tuple(positions)
        self.cursor = 0
        self.orientation: Orientation = "white"

    @property
    def last_index(self) -> int:
        return len(self.positions) - 1

    def seek(self, index: int) -> None:
        """Move the cursor; out-of-range indices are ignored."""
        if 0 <= index <= self.last_index:
            self.cursor = index

    def next(self) -> None:
        self.seek(self.cursor + 1)

    def prev(self) -> None:
        self.seek(self.cursor - 1)

    def reset(self) -> None:
        self.seek(0)

    def toggle_orientation(self) -> Orientation:
        self.orientation = "black" if self.orientation == "white" else "white"
        return self.orientation

    def current_position(self) -> str:
        return self.positions[self.cursor]

    def move_label(self, index: int) -> str:
        """
        Label for a trace index: "Start position", "1. e4", "1... e5", "2. Nf3".
        Indices past the last parsed move, and negative ones, have no label ("").
        """
        if not 0 <= index <= len(self.moves):
            return ""
        if index == 0:
            return "Start position"
        move_number = math.ceil(index / 2)
        marker = "." if index % 2 == 1 else "..."
        return f"{move_number}{marker} {self.moves[index - 1]}"

    def labels(self) -> list[str]:
        return [self.move_label(i) for i in range(len(self.positions))]

"""
Error taxonomy for the repertoire matcher.

InvalidInputError and StoreUnavailableError reach the caller; an
IllegalMoveError raised while replaying catalogued data is recovered by the
navigator and only logged.
"""


class RepertoireError(Exception):
    """Base class for all catchable repertoire errors."""


class InvalidInputError(RepertoireError):
    """Played-moves payload is missing or not a list of move strings."""


class IllegalMoveError(RepertoireError):
    """A move cannot be applied to the given position."""

    def __init__(self, position: str, move: str, reason: str = ""):
        message = f"Illegal move {move!r} in position {position!r}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.position = position
        self.move = move


class StoreUnavailableError(RepertoireError):
    """
    The opening or transition store failed to answer.

    Retryable by the caller; the core never retries on its own.
    """

    retryable = True

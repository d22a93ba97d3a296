"""
Canonical move-string notation.

The repertoire is keyed by numbered PGN-like strings such as
"1. e4 e5 2. Nf3 Nc6 3. Bb5". normalize_moves() builds that key from a
list of played SAN moves; parse_moves() recovers the move list from it.
"""

import re

MOVE_NUMBER_RE = re.compile(r"\d+\.(\.\.)?")
RESULT_TOKENS = ("1-0", "0-1", "1/2-1/2", "*")


def normalize_moves(moves: list[str]) -> str:
    """
    Format played moves as the canonical repertoire key.

    >>> normalize_moves(["e4", "e5", "Nf3"])
    '1. e4 e5 2. Nf3'
    """
    pairs = []
    for i in range(0, len(moves), 2):
        pair = f"{i // 2 + 1}. {moves[i]}"
        if i + 1 < len(moves):
            pair += f" {moves[i + 1]}"
        pairs.append(pair)
    return " ".join(pairs)


def parse_moves(canonical: str) -> list[str]:
    """
    Parse a canonical move string back into SAN moves.

    Strips "N." and "N..." move numbers (attached or free-standing), stray
    ellipses and game-result markers.
    """
    if not canonical:
        return []
    stripped = MOVE_NUMBER_RE.sub("", canonical)
    return [
        token
        for token in stripped.split()
        if token and token != "..." and token not in RESULT_TOKENS
    ]

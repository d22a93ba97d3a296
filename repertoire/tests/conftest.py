"""Pytest configuration."""

import os

import pytest

from repertoire.match_engine import MatchEngine
from repertoire.models import Alias, Opening, Transition
from repertoire.repertoire_index import RepertoireIndex
from repertoire.stores import InMemoryOpeningStore, InMemoryTransitionStore
from repertoire.transition_graph import TransitionGraph


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: mark test as requiring a live database (skipped in CI by default)"
    )


os.environ.setdefault("DATABASE_URL", "postgresql://localhost:5432/chess_openings?user=postgres&password=postgres")

KINGS_PAWN_FEN = "rnbqkbnr/pppp1ppp/8/4p3/4P3/8/PPPP1PPP/RNBQKBNR w KQkq - 0 2"
RUY_LOPEZ_FEN = "r1bqkbnr/pppp1ppp/2n5/1B2p3/4P3/5N2/PPPP1PPP/RNBQK2R b KQkq - 3 3"
MORPHY_FEN = "r1bqkbnr/1ppp1ppp/p1n5/1B2p3/4P3/5N2/PPPP1PPP/RNBQK2R w KQkq - 0 4"
ITALIAN_FEN = "r1bqkbnr/pppp1ppp/2n5/4p3/2B1P3/5N2/PPPP1PPP/RNBQK2R b KQkq - 3 3"
SICILIAN_FEN = "rnbqkbnr/pp1ppppp/8/2p5/4P3/8/PPPP1PPP/RNBQKBNR w KQkq - 0 2"


def make_opening(**kwargs) -> Opening:
    defaults = dict(
        fen=RUY_LOPEZ_FEN,
        eco="C60",
        moves="1. e4 e5 2. Nf3 Nc6 3. Bb5",
        name="Ruy Lopez",
        src="eco_tsv",
        is_eco_root=True,
        aliases=[Alias(source="scid", value="Spanish Game")],
    )
    defaults.update(kwargs)
    return Opening(**defaults)


def sample_openings() -> list[Opening]:
    return [
        make_opening(),
        make_opening(
            fen=MORPHY_FEN,
            eco="C70",
            moves="1. e4 e5 2. Nf3 Nc6 3. Bb5 a6",
            name="Ruy Lopez: Morphy Defense",
            is_eco_root=False,
            aliases=[],
        ),
        make_opening(
            fen=KINGS_PAWN_FEN,
            eco="C20",
            moves="1. e4 e5",
            name="King's Pawn Game",
            aliases=[],
        ),
        make_opening(
            fen=ITALIAN_FEN,
            eco="C50",
            moves="1. e4 e5 2. Nf3 Nc6 3. Bc4",
            name="Italian Game",
            aliases=[Alias(source="eco_wikip", value="Giuoco Piano")],
        ),
        make_opening(
            fen=SICILIAN_FEN,
            eco="B20",
            moves="1. e4 c5",
            name="Sicilian Defense",
            aliases=[],
        ),
    ]


def sample_transitions() -> list[Transition]:
    return [
        Transition(
            from_fen=KINGS_PAWN_FEN,
            to_fen=RUY_LOPEZ_FEN,
            from_src="1. e4 e5",
            to_src="1. e4 e5 2. Nf3 Nc6 3. Bb5",
        ),
        Transition(
            from_fen=RUY_LOPEZ_FEN,
            to_fen="8/8/8/8/8/8/8/8 w - - 0 1",
            from_src="1. e4 e5 2. Nf3 Nc6 3. Bb5",
            to_src="1. e4 e5 2. Nf3 Nc6 3. Bb5 Nd4",
        ),
    ]


@pytest.fixture
def opening_store() -> InMemoryOpeningStore:
    return InMemoryOpeningStore(sample_openings())


@pytest.fixture
def transition_store() -> InMemoryTransitionStore:
    return InMemoryTransitionStore(sample_transitions())


@pytest.fixture
def engine(opening_store, transition_store) -> MatchEngine:
    return MatchEngine(
        RepertoireIndex(opening_store, limit=15),
        TransitionGraph(transition_store, opening_store, limit=10),
    )

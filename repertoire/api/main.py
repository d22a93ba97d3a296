"""
FastAPI Query API for the opening repertoire

Endpoints:
  GET /openings/match?moveHistory=[...]  - Openings/transitions related to played moves
  GET /openings?page=&limit=&search=&eco=  - Paginated catalogue
  GET /openings/{id}  - Opening with variations and outgoing transitions
  GET /openings/{id}/replay  - Position trace for step-through replay
"""

import json
from contextlib import asynccontextmanager

import psycopg
import structlog
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from repertoire import config
from repertoire.db import (
    get_connection,
    get_opening_by_id,
    get_outgoing_transitions,
    get_variations,
    list_eco_codes,
    list_openings,
)
from repertoire.exceptions import InvalidInputError, StoreUnavailableError
from repertoire.logging_config import setup_logging
from repertoire.match_engine import MatchEngine
from repertoire.models import match_result_to_dict, opening_to_dict, transition_to_dict
from repertoire.navigator import ReplayNavigator
from repertoire.repertoire_index import RepertoireIndex
from repertoire.stores import PostgresOpeningStore, PostgresTransitionStore
from repertoire.transition_graph import TransitionGraph

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    yield


app = FastAPI(title="Chess Opening Repertoire API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(psycopg.OperationalError)
async def database_unavailable(request: Request, exc: psycopg.OperationalError):
    logger.error("database_unavailable", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=503, content={"detail": "Database unavailable"})


def get_match_engine() -> MatchEngine:
    openings = PostgresOpeningStore()
    return MatchEngine(
        RepertoireIndex(openings),
        TransitionGraph(PostgresTransitionStore(), openings),
    )


def parse_move_history(raw: str | None) -> list:
    """Decode the moveHistory query parameter (a JSON array)."""
    if not raw:
        raise InvalidInputError("moveHistory is required")
    try:
        moves = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidInputError("moveHistory must be a JSON array") from e
    if not isinstance(moves, list):
        raise InvalidInputError("moveHistory must be a JSON array")
    return moves


@app.get("/openings/match")
async def match_openings(
    move_history: str | None = Query(None, alias="moveHistory"),
    engine: MatchEngine = Depends(get_match_engine),
):
    """Openings and transitions related to the moves played so far."""
    try:
        moves = parse_move_history(move_history)
        result = await engine.match(moves)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return match_result_to_dict(result)


@app.get("/openings")
def get_openings(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = Query(""),
    eco: str = Query(""),
):
    """Catalogue page, ordered by ECO code then name."""
    with get_connection() as conn:
        openings = list_openings(conn, search=search, eco=eco, offset=(page - 1) * limit, limit=limit)
        eco_options = list_eco_codes(conn)
    return {
        "openings": [opening_to_dict(o) for o in openings],
        "ecoOptions": eco_options,
        "pagination": {"page": page, "limit": limit, "hasMore": len(openings) == limit},
    }


@app.get("/openings/{opening_id}")
def get_opening(opening_id: str):
    """Opening with its variations (same ECO) and outgoing transitions."""
    with get_connection() as conn:
        opening = get_opening_by_id(conn, opening_id)
        if not opening:
            raise HTTPException(status_code=404, detail="Opening not found")
        variations = get_variations(conn, opening, config.variations_limit())
        transitions = get_outgoing_transitions(conn, opening.fen)

    related = {}
    for summary in [t.to_opening for t in transitions if t.to_opening] + variations:
        related.setdefault(summary.id, {"id": summary.id, "name": summary.name, "eco": summary.eco, "moves": summary.moves})

    return {
        "opening": opening_to_dict(opening),
        "variations": [opening_to_dict(v) for v in variations],
        "transitions": [transition_to_dict(t) for t in transitions],
        "related": list(related.values()),
    }


@app.get("/openings/{opening_id}/replay")
def get_opening_replay(opening_id: str):
    """Position trace for stepping through an opening's moves."""
    with get_connection() as conn:
        opening = get_opening_by_id(conn, opening_id)
    if not opening:
        raise HTTPException(status_code=404, detail="Opening not found")

    navigator = ReplayNavigator(opening.moves)
    return {
        "id": opening.id,
        "name": opening.name,
        "moves": navigator.moves,
        "positions": list(navigator.positions),
        "labels": navigator.labels(),
    }


@app.get("/health")
def health():
    return {"status": "ok"}

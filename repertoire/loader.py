#!/usr/bin/env python3
"""
Repertoire loader

Loads the static opening files into the store:
  ecoA.json … ecoE.json, eco_interpolated.json  - openings keyed by FEN
  fromTo.json                                   - position transitions

Usage:
  python -m repertoire.loader --source data
  python -m repertoire.loader --source data --init-schema schema.sql
"""

import argparse
import json
import sys
from pathlib import Path

import psycopg
import structlog

from repertoire.db import get_connection, insert_transition, replace_aliases, upsert_opening
from repertoire.logging_config import setup_logging
from repertoire.models import Alias, Opening, Transition
from repertoire.stores import InMemoryOpeningStore, InMemoryTransitionStore

logger = structlog.get_logger(__name__)

ECO_FILES = ("ecoA.json", "ecoB.json", "ecoC.json", "ecoD.json", "ecoE.json", "eco_interpolated.json")
FROM_TO_FILE = "fromTo.json"
PROGRESS_EVERY = 1000


def read_eco_files(source: Path) -> dict[str, dict]:
    """Merge the ECO files present in `source`; later files win on duplicate FENs."""
    merged: dict[str, dict] = {}
    found = False
    for name in ECO_FILES:
        path = source / name
        if not path.exists():
            continue
        found = True
        logger.info("reading_eco_file", file=name)
        with open(path, encoding="utf-8") as f:
            merged.update(json.load(f))
    if not found:
        raise FileNotFoundError(f"No ECO JSON files found in {source}")
    return merged


def parse_opening(fen: str, data: dict) -> Opening:
    """Build an Opening from one FEN-keyed ECO file entry."""
    aliases = data.get("aliases") or {}
    return Opening(
        fen=fen,
        eco=data.get("eco", ""),
        moves=data.get("moves", ""),
        name=data.get("name", ""),
        src=data.get("src", ""),
        scid=data.get("scid") or None,
        is_eco_root=bool(data.get("isEcoRoot", False)),
        aliases=[Alias(source=source, value=value) for source, value in aliases.items()],
    )


def parse_transition(entry) -> Transition:
    """fromTo.json rows are either objects or [fromFen, toFen, fromSrc, toSrc] arrays."""
    if isinstance(entry, dict):
        return Transition(
            from_fen=entry["fromFen"],
            to_fen=entry["toFen"],
            from_src=entry["fromSrc"],
            to_src=entry["toSrc"],
        )
    from_fen, to_fen, from_src, to_src = entry
    return Transition(from_fen=from_fen, to_fen=to_fen, from_src=from_src, to_src=to_src)


def read_transitions(source: Path) -> list[Transition]:
    """Parse fromTo.json, skipping malformed rows."""
    path = source / FROM_TO_FILE
    if not path.exists():
        return []
    with open(path, encoding="utf-8") as f:
        entries = json.load(f)
    transitions = []
    for i, entry in enumerate(entries):
        try:
            transitions.append(parse_transition(entry))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("skip_transition", row=i, error=repr(e))
    return transitions


def load_into_database(conn: psycopg.Connection, source: Path) -> tuple[int, int]:
    """
    Upsert openings (with aliases) and transitions. Returns (openings, transitions).

    Each row is written inside its own savepoint, so a row the database
    rejects is logged and skipped without aborting the rest of the load.
    """
    openings_loaded = 0
    for fen, data in read_eco_files(source).items():
        try:
            with conn.transaction():
                opening = upsert_opening(conn, parse_opening(fen, data))
                replace_aliases(conn, opening.id, opening.aliases)
        except (KeyError, TypeError, AttributeError, psycopg.Error) as e:
            logger.warning("skip_opening", fen=fen, error=str(e))
            continue
        openings_loaded += 1
        if openings_loaded % PROGRESS_EVERY == 0:
            conn.commit()
            logger.info("openings_progress", loaded=openings_loaded)

    transitions_loaded = 0
    for transition in read_transitions(source):
        try:
            with conn.transaction():
                inserted = insert_transition(conn, transition)
        except psycopg.Error as e:
            logger.warning("skip_transition", from_fen=transition.from_fen, to_fen=transition.to_fen, error=str(e))
            continue
        if inserted:
            transitions_loaded += 1
            if transitions_loaded % PROGRESS_EVERY == 0:
                conn.commit()
                logger.info("transitions_progress", loaded=transitions_loaded)

    return openings_loaded, transitions_loaded


def load_into_memory(source: Path) -> tuple[InMemoryOpeningStore, InMemoryTransitionStore]:
    """Build in-memory stores from the same files, for offline matching."""
    openings = InMemoryOpeningStore(parse_opening(fen, data) for fen, data in read_eco_files(source).items())
    transitions = InMemoryTransitionStore(read_transitions(source))
    return openings, transitions


def apply_schema(conn: psycopg.Connection, schema_path: Path) -> None:
    with conn.cursor() as cur:
        cur.execute(schema_path.read_text(encoding="utf-8"))


def main():
    parser = argparse.ArgumentParser(description="Load opening files into the repertoire store")
    parser.add_argument("--source", default="data", help="Directory holding ecoA.json … and fromTo.json")
    parser.add_argument("--init-schema", default=None, help="Apply this SQL schema file before loading")
    args = parser.parse_args()
    setup_logging()

    source = Path(args.source)
    if not source.is_dir():
        print(f"Error: source {source} does not exist.", file=sys.stderr)
        print("Download the opening files from https://github.com/hayatbiralem/eco.json", file=sys.stderr)
        sys.exit(1)

    with get_connection() as conn:
        if args.init_schema:
            apply_schema(conn, Path(args.init_schema))
        openings, transitions = load_into_database(conn, source)
    print(f"Loaded {openings} openings, {transitions} transitions.")


if __name__ == "__main__":
    main()

"""Database layer for the opening repertoire."""

from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Iterator, Sequence

import psycopg

from repertoire.config import get_connection_string
from repertoire.models import Alias, Opening, OpeningSummary, Transition

OPENING_COLUMNS = "id, fen, eco, moves, name, src, scid, is_eco_root"
TRANSITION_COLUMNS = "id, from_fen, to_fen, from_src, to_src"

# Public sort keys -> SQL expressions. Text columns sort by code point so the
# database and the in-memory store agree on ordering.
ORDER_COLUMNS = {
    "isEcoRoot": "is_eco_root",
    "eco": 'eco COLLATE "C"',
    "moves": 'moves COLLATE "C"',
    "name": 'name COLLATE "C"',
}

DEFAULT_MATCH_ORDER: tuple[tuple[str, str], ...] = (
    ("isEcoRoot", "desc"),
    ("eco", "asc"),
    ("moves", "asc"),
)


@contextmanager
def get_connection() -> Iterator[psycopg.Connection]:
    """Context manager for database connections."""
    conn = psycopg.connect(get_connection_string())
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


@asynccontextmanager
async def get_async_connection() -> AsyncIterator[psycopg.AsyncConnection]:
    """Async counterpart of get_connection(); one connection per query keeps reads concurrent."""
    conn = await psycopg.AsyncConnection.connect(get_connection_string())
    try:
        yield conn
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
    finally:
        await conn.close()


def escape_like(value: str) -> str:
    """Escape LIKE/ILIKE wildcards so user input matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_order_by(order_keys: Sequence[tuple[str, str]]) -> str:
    parts = []
    for key, direction in order_keys:
        column = ORDER_COLUMNS.get(key)
        if column is None:
            raise ValueError(f"Unsupported order key: {key}")
        direction = direction.upper()
        if direction not in ("ASC", "DESC"):
            raise ValueError(f"Unsupported order direction: {direction}")
        parts.append(f"{column} {direction} NULLS LAST")
    return ", ".join(parts) if parts else "id"


def _row_to_opening(r) -> Opening:
    return Opening(
        id=r[0], fen=r[1], eco=r[2] or "", moves=r[3] or "", name=r[4] or "",
        src=r[5] or "", scid=r[6], is_eco_root=r[7],
    )


def _row_to_transition(r) -> Transition:
    return Transition(id=str(r[0]), from_fen=r[1], to_fen=r[2], from_src=r[3] or "", to_src=r[4] or "")


def _group_aliases(rows) -> dict[str, list[Alias]]:
    grouped: dict[str, list[Alias]] = {}
    for opening_id, source, value in rows:
        grouped.setdefault(opening_id, []).append(Alias(source=source, value=value))
    return grouped


ALIASES_SQL = "SELECT opening_id, source, value FROM aliases WHERE opening_id = ANY(%s) ORDER BY id"


# --- Match queries (async) -------------------------------------------------


async def find_openings_matching(
    conn: psycopg.AsyncConnection,
    canonical: str,
    limit: int,
    order_keys: Sequence[tuple[str, str]] = DEFAULT_MATCH_ORDER,
) -> list[Opening]:
    """Openings whose moves start with `canonical` or contain " canonical " (case-insensitive)."""
    escaped = escape_like(canonical)
    sql = f"""
        SELECT {OPENING_COLUMNS} FROM openings
        WHERE moves ILIKE %s OR moves ILIKE %s
        ORDER BY {build_order_by(order_keys)}
        LIMIT %s
    """
    async with conn.cursor() as cur:
        await cur.execute(sql, (f"{escaped}%", f"% {escaped} %", limit))
        openings = [_row_to_opening(r) for r in await cur.fetchall()]
        if openings:
            await cur.execute(ALIASES_SQL, ([o.id for o in openings],))
            aliases = _group_aliases(await cur.fetchall())
            for o in openings:
                o.aliases = aliases.get(o.id, [])
    return openings


async def find_opening_by_fen(conn: psycopg.AsyncConnection, fen: str) -> Opening | None:
    async with conn.cursor() as cur:
        await cur.execute(f"SELECT {OPENING_COLUMNS} FROM openings WHERE fen = %s", (fen,))
        row = await cur.fetchone()
        if not row:
            return None
        opening = _row_to_opening(row)
        await cur.execute(ALIASES_SQL, ([opening.id],))
        opening.aliases = _group_aliases(await cur.fetchall()).get(opening.id, [])
    return opening


async def find_openings_by_fens(conn: psycopg.AsyncConnection, fens: Sequence[str]) -> dict[str, Opening]:
    """Batch position lookup, keyed by FEN. Aliases are not loaded."""
    if not fens:
        return {}
    async with conn.cursor() as cur:
        await cur.execute(f"SELECT {OPENING_COLUMNS} FROM openings WHERE fen = ANY(%s)", (list(fens),))
        return {o.fen: o for o in map(_row_to_opening, await cur.fetchall())}


async def find_transitions_matching(conn: psycopg.AsyncConnection, canonical: str, limit: int) -> list[Transition]:
    """Edges whose from_src or to_src contains `canonical` anywhere (case-insensitive)."""
    pattern = f"%{escape_like(canonical)}%"
    async with conn.cursor() as cur:
        await cur.execute(
            f"""
            SELECT {TRANSITION_COLUMNS} FROM from_to
            WHERE from_src ILIKE %s OR to_src ILIKE %s
            ORDER BY id
            LIMIT %s
            """,
            (pattern, pattern, limit),
        )
        return [_row_to_transition(r) for r in await cur.fetchall()]


# --- Catalogue queries (sync) ----------------------------------------------


def get_opening_by_id(conn: psycopg.Connection, opening_id: str) -> Opening | None:
    """Fetch a single opening with its aliases."""
    with conn.cursor() as cur:
        cur.execute(f"SELECT {OPENING_COLUMNS} FROM openings WHERE id = %s", (opening_id,))
        row = cur.fetchone()
        if not row:
            return None
        opening = _row_to_opening(row)
        cur.execute(ALIASES_SQL, ([opening.id],))
        opening.aliases = _group_aliases(cur.fetchall()).get(opening.id, [])
    return opening


def list_openings(
    conn: psycopg.Connection,
    *,
    search: str = "",
    eco: str = "",
    offset: int = 0,
    limit: int = 10,
) -> list[Opening]:
    """Page through the catalogue, filtered by free-text search and exact ECO code."""
    conditions = []
    params: list = []
    if search:
        pattern = f"%{escape_like(search)}%"
        conditions.append(
            "(name ILIKE %s OR eco ILIKE %s OR moves ILIKE %s OR EXISTS ("
            "SELECT 1 FROM aliases a WHERE a.opening_id = openings.id AND a.value ILIKE %s))"
        )
        params.extend([pattern, pattern, pattern, pattern])
    if eco:
        conditions.append("eco = %s")
        params.append(eco)
    where = " AND ".join(conditions) if conditions else "TRUE"
    sql = f"""
        SELECT {OPENING_COLUMNS} FROM openings WHERE {where}
        ORDER BY {build_order_by((("eco", "asc"), ("name", "asc")))}
        LIMIT %s OFFSET %s
    """
    params.extend([limit, offset])
    with conn.cursor() as cur:
        cur.execute(sql, params)
        openings = [_row_to_opening(r) for r in cur.fetchall()]
        if openings:
            cur.execute(ALIASES_SQL, ([o.id for o in openings],))
            aliases = _group_aliases(cur.fetchall())
            for o in openings:
                o.aliases = aliases.get(o.id, [])
    return openings


def list_eco_codes(conn: psycopg.Connection) -> list[str]:
    """Distinct ECO codes, ascending."""
    with conn.cursor() as cur:
        cur.execute('SELECT DISTINCT eco FROM openings WHERE eco IS NOT NULL ORDER BY eco COLLATE "C"')
        return [r[0] for r in cur.fetchall()]


def get_variations(conn: psycopg.Connection, opening: Opening, limit: int) -> list[Opening]:
    """Other openings filed under the same ECO code."""
    with conn.cursor() as cur:
        cur.execute(
            f"""
            SELECT {OPENING_COLUMNS} FROM openings
            WHERE eco = %s AND id <> %s
            ORDER BY name COLLATE "C"
            LIMIT %s
            """,
            (opening.eco, opening.id, limit),
        )
        variations = [_row_to_opening(r) for r in cur.fetchall()]
        if variations:
            cur.execute(ALIASES_SQL, ([v.id for v in variations],))
            aliases = _group_aliases(cur.fetchall())
            for v in variations:
                v.aliases = aliases.get(v.id, [])
    return variations


def get_outgoing_transitions(conn: psycopg.Connection, fen: str) -> list[Transition]:
    """Edges leaving `fen` whose target position is an indexed opening."""
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT t.id, t.from_fen, t.to_fen, t.from_src, t.to_src,
                o.id, o.fen, o.eco, o.name, o.moves
            FROM from_to t
            JOIN openings o ON o.fen = t.to_fen
            WHERE t.from_fen = %s
            ORDER BY t.id
            """,
            (fen,),
        )
        rows = cur.fetchall()
    transitions = []
    for r in rows:
        transition = _row_to_transition(r[:5])
        transition.to_opening = OpeningSummary(id=r[5], fen=r[6], eco=r[7] or "", name=r[8] or "", moves=r[9] or "")
        transitions.append(transition)
    return transitions


# --- Loader writes (sync) --------------------------------------------------


def upsert_opening(conn: psycopg.Connection, opening: Opening) -> Opening:
    """
    Insert or update an opening. Uses FEN as conflict key.
    Returns the opening with id populated.
    """
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO openings (fen, eco, moves, name, src, scid, is_eco_root)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (fen) DO UPDATE SET
                eco = EXCLUDED.eco,
                moves = EXCLUDED.moves,
                name = EXCLUDED.name,
                src = EXCLUDED.src,
                scid = EXCLUDED.scid,
                is_eco_root = EXCLUDED.is_eco_root,
                updated_at = NOW()
            RETURNING id
            """,
            (
                opening.fen,
                opening.eco,
                opening.moves,
                opening.name,
                opening.src,
                opening.scid,
                opening.is_eco_root,
            ),
        )
        row = cur.fetchone()
    if not row:
        raise RuntimeError("upsert_opening failed to return row")
    opening.id = row[0]
    return opening


def replace_aliases(conn: psycopg.Connection, opening_id: str, aliases: list[Alias]) -> None:
    """Replace the alias list of an opening, keeping the given order."""
    with conn.cursor() as cur:
        cur.execute("DELETE FROM aliases WHERE opening_id = %s", (opening_id,))
        for alias in aliases:
            cur.execute(
                "INSERT INTO aliases (opening_id, source, value) VALUES (%s, %s, %s)",
                (opening_id, alias.source, alias.value),
            )


def insert_transition(conn: psycopg.Connection, transition: Transition) -> bool:
    """Insert an edge; returns False when the identical edge already exists."""
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO from_to (from_fen, to_fen, from_src, to_src)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (from_fen, to_fen, from_src, to_src) DO NOTHING
            RETURNING id
            """,
            (transition.from_fen, transition.to_fen, transition.from_src, transition.to_src),
        )
        row = cur.fetchone()
    if row:
        transition.id = str(row[0])
        return True
    return False

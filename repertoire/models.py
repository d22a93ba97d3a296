"""Data models for the opening repertoire and move matcher."""

from dataclasses import dataclass, field


@dataclass
class Alias:
    """Alternate name for an opening, attributed to a naming authority."""

    source: str = ""
    value: str = ""


@dataclass
class Opening:
    """Catalogued opening. `fen` is unique; `moves` is the repertoire key."""

    id: str = ""
    fen: str = ""
    eco: str = ""
    moves: str = ""
    name: str = ""
    src: str = ""
    scid: str | None = None
    is_eco_root: bool | None = None
    aliases: list[Alias] = field(default_factory=list)


@dataclass
class OpeningSummary:
    """Projection of an Opening attached to either side of a transition."""

    id: str
    fen: str
    eco: str
    name: str
    moves: str


@dataclass
class Transition:
    """Directed edge between two positions (a FromTo record).

    from_opening / to_opening are looked up by position at query time and
    stay None when no indexed opening sits on that exact position.
    """

    id: str = ""
    from_fen: str = ""
    to_fen: str = ""
    from_src: str = ""
    to_src: str = ""
    from_opening: OpeningSummary | None = None
    to_opening: OpeningSummary | None = None


@dataclass
class SearchInfo:
    normalized_moves: str = ""
    moves_count: int = 0
    moves: list[str] = field(default_factory=list)


@dataclass
class MatchResult:
    """Combined answer of the match engine for one list of played moves."""

    exact_matches: bool = False
    openings: list[Opening] = field(default_factory=list)
    transitions: list[Transition] = field(default_factory=list)
    search_info: SearchInfo | None = None

    @property
    def count(self) -> int:
        return len(self.openings)


def summarize(opening: Opening) -> OpeningSummary:
    return OpeningSummary(
        id=opening.id,
        fen=opening.fen,
        eco=opening.eco,
        name=opening.name,
        moves=opening.moves,
    )


def opening_to_dict(opening: Opening) -> dict:
    """Wire shape of an opening (camelCase keys)."""
    return {
        "id": opening.id,
        "fen": opening.fen,
        "eco": opening.eco,
        "moves": opening.moves,
        "name": opening.name,
        "src": opening.src,
        "scid": opening.scid,
        "isEcoRoot": opening.is_eco_root,
        "aliases": [{"source": a.source, "value": a.value} for a in opening.aliases],
    }


def summary_to_dict(summary: OpeningSummary | None) -> dict | None:
    if summary is None:
        return None
    return {
        "id": summary.id,
        "fen": summary.fen,
        "eco": summary.eco,
        "name": summary.name,
        "moves": summary.moves,
    }


def transition_to_dict(transition: Transition) -> dict:
    return {
        "id": transition.id,
        "fromFen": transition.from_fen,
        "toFen": transition.to_fen,
        "fromSrc": transition.from_src,
        "toSrc": transition.to_src,
        "fromOpening": summary_to_dict(transition.from_opening),
        "toOpening": summary_to_dict(transition.to_opening),
    }


def match_result_to_dict(result: MatchResult) -> dict:
    """
    Serialize a MatchResult to its public JSON shape.

    searchInfo is omitted for the empty short-circuit result, which carries
    only exactMatches, count, openings and transitions.
    """
    out = {
        "exactMatches": result.exact_matches,
        "count": result.count,
        "openings": [opening_to_dict(o) for o in result.openings],
        "transitions": [transition_to_dict(t) for t in result.transitions],
    }
    if result.search_info is not None:
        out["searchInfo"] = {
            "normalizedMoves": result.search_info.normalized_moves,
            "movesCount": result.search_info.moves_count,
            "moves": list(result.search_info.moves),
        }
    return out


def opening_from_dict(data: dict) -> Opening:
    """Inverse of opening_to_dict; used by the HTTP client."""
    return Opening(
        id=data.get("id", ""),
        fen=data.get("fen", ""),
        eco=data.get("eco", ""),
        moves=data.get("moves", ""),
        name=data.get("name", ""),
        src=data.get("src", ""),
        scid=data.get("scid"),
        is_eco_root=data.get("isEcoRoot"),
        aliases=[Alias(source=a.get("source", ""), value=a.get("value", "")) for a in data.get("aliases", [])],
    )


def _summary_from_dict(data: dict | None) -> OpeningSummary | None:
    if not data:
        return None
    return OpeningSummary(
        id=data.get("id", ""),
        fen=data.get("fen", ""),
        eco=data.get("eco", ""),
        name=data.get("name", ""),
        moves=data.get("moves", ""),
    )


def match_result_from_dict(data: dict) -> MatchResult:
    info = data.get("searchInfo")
    return MatchResult(
        exact_matches=bool(data.get("exactMatches", False)),
        openings=[opening_from_dict(o) for o in data.get("openings", [])],
        transitions=[
            Transition(
                id=t.get("id", ""),
                from_fen=t.get("fromFen", ""),
                to_fen=t.get("toFen", ""),
                from_src=t.get("fromSrc", ""),
                to_src=t.get("toSrc", ""),
                from_opening=_summary_from_dict(t.get("fromOpening")),
                to_opening=_summary_from_dict(t.get("toOpening")),
            )
            for t in data.get("transitions", [])
        ],
        search_info=SearchInfo(
            normalized_moves=info.get("normalizedMoves", ""),
            moves_count=info.get("movesCount", 0),
            moves=list(info.get("moves", [])),
        )
        if info
        else None,
    )

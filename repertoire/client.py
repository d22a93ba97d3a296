"""Async HTTP client for the match endpoint."""

import json

import httpx

from repertoire import config
from repertoire.exceptions import InvalidInputError, StoreUnavailableError
from repertoire.models import MatchResult, match_result_from_dict


class HttpMatchClient:
    """
    Calls GET /openings/match on a running API. Usable directly as the
    matcher of a PracticeSession.
    """

    def __init__(self, base_url: str | None = None, session: httpx.AsyncClient | None = None):
        self.base_url = (base_url or config.match_api_url()).rstrip("/")
        self._owns_session = session is None
        self.session = session or httpx.AsyncClient(timeout=30.0)

    async def __aenter__(self) -> "HttpMatchClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_session:
            await self.session.aclose()

    async def __call__(self, moves: list[str]) -> MatchResult:
        return await self.match(moves)

    async def match(self, moves: list[str]) -> MatchResult:
        try:
            resp = await self.session.get(
                f"{self.base_url}/openings/match",
                params={"moveHistory": json.dumps(moves)},
            )
        except httpx.HTTPError as e:
            raise StoreUnavailableError(f"Match API unreachable: {e}") from e

        if resp.status_code == 400:
            raise InvalidInputError(resp.json().get("detail", "Invalid moveHistory"))
        if resp.status_code >= 500:
            raise StoreUnavailableError(f"Match API error ({resp.status_code})")
        resp.raise_for_status()
        return match_result_from_dict(resp.json())

"""Jikan (MyAnimeList) API client."""

from typing import Any

import aiohttp
from limiter import Limiter

from metachan import __version__, log
from metachan.exceptions import UpstreamResponseError
from metachan.models.schemas.jikan import (
    JikanAnime,
    JikanAnimeResponse,
    JikanCharacterEntry,
    JikanCharactersResponse,
    JikanEpisode,
    JikanEpisodesResponse,
    JikanSearchResponse,
)
from metachan.utils.fetch import fetch_json

__all__ = ["JikanClient"]

# Jikan allows 3 requests per second and 60 per minute
jikan_limiter = Limiter(rate=60 / 60, capacity=3, jitter=False)

NOT_FOUND = 404


class JikanClient:
    """Client for the public Jikan REST API.

    All requests share a single aiohttp session, are throttled by a token bucket
    and go through the rate-limit-aware fetch helpers.
    """

    API_URL = "https://api.jikan.moe/v4"
    EPISODES_PAGE_SIZE = 100

    def __init__(self) -> None:
        """Initialize the Jikan client."""
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session.

        Returns:
            aiohttp.ClientSession: The active session for making HTTP requests.
        """
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "Accept": "application/json",
                    "User-Agent": f"Metachan/{__version__}",
                }
            )
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    @jikan_limiter()
    async def _get[T](
        self, path: str, model: type[T], params: dict[str, Any] | None = None
    ) -> T:
        session = await self._get_session()
        return await fetch_json(session, f"{self.API_URL}{path}", model, params=params)

    async def _get_or_none[T](
        self, path: str, model: type[T], params: dict[str, Any] | None = None
    ) -> T | None:
        try:
            return await self._get(path, model, params)
        except UpstreamResponseError as e:
            if e.status == NOT_FOUND:
                log.debug(f"No Jikan resource at $$'{path}'$$")
                return None
            raise

    async def get_full_anime(self, mal_id: int) -> JikanAnime | None:
        """Get the full anime resource, including streaming and relation data.

        Args:
            mal_id (int): MyAnimeList ID.

        Returns:
            JikanAnime | None: The anime, or None if MyAnimeList does not know it.
        """
        response = await self._get_or_none(f"/anime/{mal_id}/full", JikanAnimeResponse)
        return response.data if response else None

    async def get_anime(self, mal_id: int) -> JikanAnime | None:
        """Get the summary anime resource.

        Args:
            mal_id (int): MyAnimeList ID.

        Returns:
            JikanAnime | None: The anime, or None if MyAnimeList does not know it.
        """
        response = await self._get_or_none(f"/anime/{mal_id}", JikanAnimeResponse)
        return response.data if response else None

    async def get_episodes(self, mal_id: int) -> list[JikanEpisode]:
        """Get every episode of an anime, following pagination.

        Args:
            mal_id (int): MyAnimeList ID.

        Returns:
            list[JikanEpisode]: Episodes in provider order.
        """
        episodes: list[JikanEpisode] = []
        page = 1
        while True:
            response = await self._get_or_none(
                f"/anime/{mal_id}/episodes",
                JikanEpisodesResponse,
                {"page": page, "limit": self.EPISODES_PAGE_SIZE},
            )
            if response is None:
                break

            episodes.extend(response.data)
            if not response.pagination.has_next_page or not response.data:
                break
            page += 1

        log.debug(
            f"Fetched {len(episodes)} episodes over {page} page(s) "
            f"$${{mal_id: {mal_id}}}$$"
        )
        return episodes

    async def get_characters(self, mal_id: int) -> list[JikanCharacterEntry]:
        """Get the characters and voice cast of an anime.

        Args:
            mal_id (int): MyAnimeList ID.

        Returns:
            list[JikanCharacterEntry]: Character entries, empty if none are known.
        """
        response = await self._get_or_none(
            f"/anime/{mal_id}/characters", JikanCharactersResponse
        )
        return response.data if response else []

    async def search_anime(self, params: dict[str, str]) -> JikanSearchResponse:
        """Search anime.

        Args:
            params (dict[str, str]): Query parameters for `/anime`.

        Returns:
            JikanSearchResponse: Matching anime and pagination details.
        """
        return await self._get("/anime", JikanSearchResponse, params)

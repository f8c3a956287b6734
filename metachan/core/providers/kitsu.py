"""Kitsu edge API client."""

import aiohttp

from metachan import __version__, log
from metachan.models.schemas.kitsu import KitsuAnime, KitsuAnimeResponse
from metachan.utils.fetch import fetch_json

__all__ = ["KitsuClient"]


class KitsuClient:
    """Client for the Kitsu JSON:API edge endpoints."""

    API_URL = "https://kitsu.io/api/edge"

    def __init__(self) -> None:
        """Initialize the Kitsu client."""
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "Accept": "application/vnd.api+json",
                    "User-Agent": f"Metachan/{__version__}",
                }
            )
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def get_anime(self, kitsu_id: int) -> KitsuAnime | None:
        """Look up an anime by its Kitsu ID.

        Args:
            kitsu_id (int): Kitsu anime ID.

        Returns:
            KitsuAnime | None: The first match, or None when the filter matches nothing.
        """
        session = await self._get_session()
        response = await fetch_json(
            session,
            f"{self.API_URL}/anime",
            KitsuAnimeResponse,
            params={"filter[id]": str(kitsu_id)},
        )
        if not response.data:
            log.debug(f"No Kitsu anime matched $${{kitsu_id: {kitsu_id}}}$$")
            return None
        return response.data[0]

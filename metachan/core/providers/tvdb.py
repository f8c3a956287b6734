"""TheTVDB v4 API client."""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from itertools import batched
from typing import Any

import aiohttp

from metachan import __version__, log
from metachan.exceptions import TVDBAuthError, UpstreamError, UpstreamResponseError
from metachan.models.schemas.tvdb import (
    TVDBEpisode,
    TVDBEpisodesResponse,
    TVDBLoginResponse,
    TVDBOverviewTranslation,
    TVDBSeries,
    TVDBSeriesResponse,
    TVDBTranslationResponse,
)
from metachan.utils.fetch import fetch_json

__all__ = ["TVDBAuthToken", "TVDBClient"]

UNAUTHORIZED = 401


@dataclass(slots=True)
class TVDBAuthToken:
    """Bearer token for TheTVDB along with its expiry.

    The token is owned by the caller and passed into every request, so a single
    login can be shared across clients and refreshed in place.
    """

    token: str | None = None
    expires_at: datetime | None = None

    def is_valid(self, now: datetime | None = None) -> bool:
        """Whether the token is present and has not expired."""
        if self.token is None or self.expires_at is None:
            return False
        return self.expires_at > (now or datetime.now(UTC))

    def update(self, token: str, expires_at: datetime) -> None:
        """Store a freshly issued token."""
        self.token = token
        self.expires_at = expires_at

    def invalidate(self) -> None:
        """Forget the current token so the next request logs in again."""
        self.token = None
        self.expires_at = None


class TVDBClient:
    """Client for TheTVDB v4 API.

    Authentication state lives in a `TVDBAuthToken` handed to each call. Missing
    or expired tokens are refreshed before a request and a 401 response triggers
    exactly one refresh followed by one retry.
    """

    API_URL = "https://api4.thetvdb.com/v4"
    TOKEN_LIFETIME = timedelta(days=28)
    TRANSLATION_BATCH_SIZE = 10

    def __init__(self, api_key: str, pin: str | None = None) -> None:
        """Initialize the TheTVDB client.

        Args:
            api_key (str): TheTVDB API key.
            pin (str | None): Subscriber PIN, required for user-supported keys.
        """
        self.api_key = api_key
        self.pin = pin
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                    "User-Agent": f"Metachan/{__version__}",
                }
            )
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def authenticate(self, auth: TVDBAuthToken) -> None:
        """Log in and store the issued token in `auth`.

        Args:
            auth (TVDBAuthToken): Token holder to refresh.

        Raises:
            TVDBAuthError: If TheTVDB rejects the credentials or cannot be reached.
        """
        body: dict[str, Any] = {"apikey": self.api_key}
        if self.pin:
            body["pin"] = self.pin

        session = await self._get_session()
        try:
            response = await fetch_json(
                session,
                f"{self.API_URL}/login",
                TVDBLoginResponse,
                method="POST",
                json=body,
            )
        except UpstreamError as e:
            log.error(f"TheTVDB authentication failed: {e}")
            raise TVDBAuthError(f"TheTVDB authentication failed: {e}", e.url) from e

        expires_at = datetime.now(UTC) + self.TOKEN_LIFETIME
        if response.data.expires_at:
            try:
                expires_at = datetime.fromisoformat(response.data.expires_at)
            except ValueError:
                log.debug(
                    f"Ignoring unparseable token expiry "
                    f"$$'{response.data.expires_at}'$$"
                )
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=UTC)

        auth.update(response.data.token, expires_at)
        log.debug("TheTVDB authentication successful")

    async def _request[T](
        self,
        path: str,
        model: type[T],
        auth: TVDBAuthToken,
        params: dict[str, Any] | None = None,
    ) -> T:
        if not auth.is_valid():
            await self.authenticate(auth)

        session = await self._get_session()
        url = f"{self.API_URL}{path}"
        try:
            return await fetch_json(
                session,
                url,
                model,
                params=params,
                headers={"Authorization": f"Bearer {auth.token}"},
            )
        except UpstreamResponseError as e:
            if e.status != UNAUTHORIZED:
                raise

        log.warning("Token rejected, reauthenticating")
        auth.invalidate()
        await self.authenticate(auth)
        return await fetch_json(
            session,
            url,
            model,
            params=params,
            headers={"Authorization": f"Bearer {auth.token}"},
        )

    async def get_series(self, tvdb_id: int, auth: TVDBAuthToken) -> TVDBSeries:
        """Get the extended series record, including its seasons.

        Args:
            tvdb_id (int): TheTVDB series ID.
            auth (TVDBAuthToken): Authentication token holder.

        Returns:
            TVDBSeries: The series.
        """
        log.debug(f"Fetching series $${{tvdb_id: {tvdb_id}}}$$")
        response = await self._request(
            f"/series/{tvdb_id}/extended", TVDBSeriesResponse, auth, {"short": "true"}
        )
        return response.data

    async def get_episodes(
        self, tvdb_id: int, auth: TVDBAuthToken, season: int | None = None
    ) -> list[TVDBEpisode]:
        """Get the aired-order episodes of a series with translated overviews.

        Args:
            tvdb_id (int): TheTVDB series ID.
            auth (TVDBAuthToken): Authentication token holder.
            season (int | None): Restrict to one season number.

        Returns:
            list[TVDBEpisode]: Episodes with `eng`/`jpn` overview translations
                attached where TheTVDB has them.
        """
        log.debug(
            f"Fetching episodes $${{tvdb_id: {tvdb_id}, "
            f"season: {season if season is not None else 'all'}}}$$"
        )
        episodes: list[TVDBEpisode] = []
        page = 0
        while True:
            params: dict[str, Any] = {"page": page}
            if season is not None:
                params["season"] = season

            response = await self._request(
                f"/series/{tvdb_id}/episodes/official",
                TVDBEpisodesResponse,
                auth,
                params,
            )
            episodes.extend(response.data.episodes)
            if not response.links.next or not response.data.episodes:
                break
            page += 1

        translated: list[TVDBEpisode] = []
        for chunk in batched(episodes, self.TRANSLATION_BATCH_SIZE, strict=False):
            translated.extend(
                await asyncio.gather(
                    *(self._with_translations(episode, auth) for episode in chunk)
                )
            )
        return translated

    async def _with_translations(
        self, episode: TVDBEpisode, auth: TVDBAuthToken
    ) -> TVDBEpisode:
        """Attach the English and Japanese overviews to an episode.

        A failed translation lookup is logged and the episode is kept as is.
        """
        translations: list[TVDBOverviewTranslation] = []
        for language in ("eng", "jpn"):
            try:
                response = await self._request(
                    f"/episodes/{episode.id}/translations/{language}",
                    TVDBTranslationResponse,
                    auth,
                )
            except UpstreamError as e:
                log.warning(
                    f"Failed to fetch $$'{language}'$$ translation for episode "
                    f"$${{id: {episode.id}}}$$: {e}"
                )
                continue
            translations.append(
                TVDBOverviewTranslation(
                    language=language, overview=response.data.overview
                )
            )

        if not translations:
            return episode
        return episode.model_copy(update={"translations": translations})

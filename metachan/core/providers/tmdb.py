"""TMDB API client used for episode enrichment."""

import re
from datetime import datetime

import aiohttp

from metachan import __version__, log
from metachan.exceptions import UpstreamError
from metachan.models.schemas.tmdb import (
    TMDBEpisode,
    TMDBSearchResponse,
    TMDBSeasonDetails,
    TMDBShowDetails,
    TMDBShowResult,
)
from metachan.utils.fetch import fetch_json

__all__ = [
    "TMDBClient",
    "normalize_title",
    "parse_title_and_season",
    "roman_to_int",
]

IMAGE_URL = "https://image.tmdb.org/t/p/original"
MIN_SEASON_SCORE = 2

_MEDIA_TYPE_SUFFIX = re.compile(
    r"\s*\b(TV_SHORT|TV|OVA|ONA|MOVIE|SPECIAL|MUSIC)\s*$", re.IGNORECASE
)
_ROMAN = r"\b(?:X|IX|VIII|VII|VI|V|IV|III|II|I)\b"
_SEASON_MARKER = re.compile(
    rf"^(.*?)\s*((?:Season|Cour|Part|Series|Level)\s+\d+|{_ROMAN}(?:\s+Part\s+\d+)?)$",
    re.IGNORECASE,
)
_ROMAN_MARKER = re.compile(rf"^({_ROMAN})", re.IGNORECASE)
_PARENTHETICAL_SUFFIX = re.compile(r"\s*\([A-Z_]+\)\s*$", re.IGNORECASE)

_ROMAN_VALUES = {"I": 1, "V": 5, "X": 10, "L": 50, "C": 100, "D": 500, "M": 1000}


def roman_to_int(roman: str) -> int:
    """Convert a roman numeral to an integer."""
    total = 0
    previous = 0
    for char in reversed(roman.upper()):
        value = _ROMAN_VALUES[char]
        total = total + value if value >= previous else total - value
        previous = value
    return total


def parse_title_and_season(title: str) -> tuple[str, str]:
    """Split a title into the show name and its season marker.

    Media-type suffixes (TV, OVA, MOVIE, ...) are dropped first. Roman numeral
    markers are rewritten as "Season N".

    Args:
        title (str): Raw title.

    Returns:
        tuple[str, str]: The show name and the season marker, which may be empty.
    """
    clean = _MEDIA_TYPE_SUFFIX.sub("", title).strip()
    match = _SEASON_MARKER.match(clean)
    if not match or not match.group(1).strip():
        return clean, ""

    show_name = match.group(1).strip()
    season_info = match.group(2).strip()
    roman = _ROMAN_MARKER.match(season_info)
    if roman:
        season_info = f"Season {roman_to_int(roman.group(1))}"
    return show_name, season_info


def normalize_title(title: str) -> str:
    """Reduce a title to the form most likely to match a TMDB show name.

    Strips "Animation" prefixes, season/part/cour markers and a trailing
    parenthetical. For "Main: Sub" titles the main title is kept, or the shorter
    of the two when one contains the other.
    """
    normalized = re.sub(r"^(TV\s+)?Animation\s+", "", title, flags=re.IGNORECASE)
    for pattern in (
        r"\s*:\s*Season\s+\d+$",
        r"\s*Season\s+\d+$",
        r"\s*Part\s+\d+$",
        r"\s*Cour\s+\d+$",
        r"\s*\([^)]+\)$",
    ):
        normalized = re.sub(pattern, "", normalized, flags=re.IGNORECASE)

    main, sep, sub = normalized.partition(":")
    if sep and main.strip():
        main, sub = main.strip(), sub.strip()
        if sub and (main.lower() in sub.lower() or sub.lower() in main.lower()):
            normalized = main if len(main) <= len(sub) else sub
        else:
            normalized = main
    return normalized.strip()


def _year(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value).year
    except ValueError:
        return None


class TMDBClient:
    """Client for the TMDB v3 API, authenticated with a read access token."""

    API_URL = "https://api.themoviedb.org/3"

    def __init__(self, read_access_token: str) -> None:
        """Initialize the TMDB client.

        Args:
            read_access_token (str): TMDB API read access token.
        """
        self.read_access_token = read_access_token
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "Accept": "application/json",
                    "Authorization": f"Bearer {self.read_access_token}",
                    "User-Agent": f"Metachan/{__version__}",
                }
            )
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    @staticmethod
    def image_url(path: str | None) -> str | None:
        """Build the full URL of a TMDB image path."""
        return f"{IMAGE_URL}{path}" if path else None

    async def _search(self, query: str) -> list[TMDBShowResult]:
        session = await self._get_session()
        response = await fetch_json(
            session,
            f"{self.API_URL}/search/tv",
            TMDBSearchResponse,
            params={"query": query},
        )
        return response.results

    async def search_shows(
        self, title: str, alternative_title: str | None = None
    ) -> list[TMDBShowResult]:
        """Search TV shows, widening the query when nothing matches.

        The part before any colon is tried first (with the alternative title
        appended when that part is a single word), then the full title, then the
        title without a trailing media-type qualifier.

        Args:
            title (str): Normalized title.
            alternative_title (str | None): Another normalized title variant.

        Returns:
            list[TMDBShowResult]: Matching shows, empty when none are found.
        """
        query = title.split(":")[0].strip()
        if " " not in query and alternative_title:
            query = f"{query} {alternative_title}"

        try:
            results = await self._search(query)
            if not results and query != title:
                results = await self._search(title)
            if not results and _PARENTHETICAL_SUFFIX.search(title):
                results = await self._search(_PARENTHETICAL_SUFFIX.sub("", title).strip())
        except UpstreamError as e:
            log.error(f"Failed to search shows for $$'{title}'$$: {e}")
            return []
        return results

    async def find_season(
        self,
        shows: list[TMDBShowResult],
        season_number: int | None,
        air_date: str | None,
        episode_count: int | None,
    ) -> tuple[int, int] | None:
        """Find the first season agreeing with at least two of three signals.

        The signals are the season number, the air year and the episode count.

        Returns:
            tuple[int, int] | None: The show ID and season number, if matched.
        """
        target_year = _year(air_date)
        session = await self._get_session()
        for show in shows:
            try:
                details = await fetch_json(
                    session, f"{self.API_URL}/tv/{show.id}", TMDBShowDetails
                )
            except UpstreamError as e:
                log.warning(f"Failed to get seasons for show $${{id: {show.id}}}$$: {e}")
                continue

            for season in details.seasons:
                score = 0
                if season_number is not None and season.season_number == season_number:
                    score += 1
                if target_year is not None and _year(season.air_date) == target_year:
                    score += 1
                if episode_count is not None and season.episode_count == episode_count:
                    score += 1

                if score >= MIN_SEASON_SCORE:
                    log.info(
                        f"Matched show $${{id: {show.id}}}$$ season "
                        f"{season.season_number} with score {score}"
                    )
                    return show.id, season.season_number
        return None

    async def get_season(self, show_id: int, season_number: int) -> TMDBSeasonDetails:
        """Get a season and its episodes."""
        session = await self._get_session()
        return await fetch_json(
            session,
            f"{self.API_URL}/tv/{show_id}/season/{season_number}",
            TMDBSeasonDetails,
        )

    async def find_season_episodes(
        self,
        candidate_titles: list[str],
        season_number: int | None,
        air_date: str | None,
        episode_count: int | None,
    ) -> list[TMDBEpisode] | None:
        """Find the TMDB season matching an anime and return its episodes.

        Each title variant is normalized and searched in turn until a show with a
        matching season is found.

        Args:
            candidate_titles (list[str]): Known titles of the anime.
            season_number (int | None): Expected season number.
            air_date (str | None): Start date of the anime.
            episode_count (int | None): Expected number of episodes.

        Returns:
            list[TMDBEpisode] | None: The season's episodes, or None if no season
                scored high enough.
        """
        normalized: list[str] = []
        for title in candidate_titles:
            if not title:
                continue
            show_name, _ = parse_title_and_season(title)
            candidate = normalize_title(show_name)
            if candidate and candidate.lower() not in (n.lower() for n in normalized):
                normalized.append(candidate)

        for title in normalized:
            alternative = next((n for n in normalized if n != title), None)
            log.debug(
                f"Searching with normalized title $$'{title}'$$"
                + (f" (alt: $$'{alternative}'$$)" if alternative else "")
            )
            shows = await self.search_shows(title, alternative)
            if not shows:
                continue

            match = await self.find_season(shows, season_number, air_date, episode_count)
            if match is None:
                continue

            season = await self.get_season(*match)
            return season.episodes

        log.warning(f"Could not find a matching season for $$'{candidate_titles}'$$")
        return None

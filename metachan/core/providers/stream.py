"""AllAnime streaming availability client."""

import asyncio
import json
import re

import aiohttp

from metachan import log
from metachan.exceptions import UpstreamError
from metachan.models.schemas.allanime import (
    ClockResponse,
    EpisodeSourcesResponse,
    ShowDetailResponse,
    ShowEdge,
    ShowSearchResponse,
)
from metachan.models.schemas.anime import StreamAvailability, StreamLink, StreamLinks
from metachan.utils.fetch import fetch_json

__all__ = [
    "StreamClient",
    "decode_source_url",
    "is_allowed_link",
    "server_name",
    "similarity",
]

SITE_URL = "https://allanime.day"
REFERER = "https://allmanga.to"
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/121.0"
)

SEARCH_QUERY = """
query(
    $search: SearchInput
    $limit: Int
    $page: Int
    $countryOrigin: VaildCountryOriginEnumType
) {
    shows(
        search: $search
        limit: $limit
        page: $page
        countryOrigin: $countryOrigin
    ) {
        edges {
            _id
            name
            availableEpisodes
            __typename
        }
    }
}
"""

EPISODES_QUERY = """
query ($showId: String!) {
    show(
        _id: $showId
    ) {
        _id
        availableEpisodesDetail
    }
}
"""

SOURCES_QUERY = """
query (
    $showId: String!
    $translationType: VaildTranslationTypeEnumType!
    $episodeString: String!
) {
    episode(
        showId: $showId
        translationType: $translationType
        episodeString: $episodeString
    ) {
        episodeString
        sourceUrls
    }
}
"""

DECODE_MAP = {
    "01": "9",
    "08": "0",
    "05": "=",
    "0a": "2",
    "0b": "3",
    "0c": "4",
    "07": "?",
    "00": "8",
    "5c": "d",
    "0f": "7",
    "5e": "f",
    "17": "/",
    "54": "l",
    "09": "1",
    "48": "p",
    "4f": "w",
    "0e": "6",
    "5b": "c",
    "5d": "e",
    "0d": "5",
    "53": "k",
    "1e": "&",
    "5a": "b",
    "59": "a",
    "4a": "r",
    "4c": "t",
    "4e": "v",
    "57": "o",
    "51": "i",
}

SERVER_NAMES = {
    "default": "Maria",
    "Luf-mp4": "Rose",
    "S-mp4": "Sina",
    "Default": "Eren",
    "Luf-Mp4": "Mikasa",
    "S-Mp4": "Armin",
}

ALLOWED_LINK_PATTERNS = ("sharepoint.com", ".m3u8", ".mp4", "fast4speed.rsvp")

_EPISODE_NUMBER = re.compile(r"\d+(?:\.\d+)?")


def similarity(query: str, title: str) -> float:
    """Score how well a search hit's title matches the query.

    Exact matches score 1.0 and titles containing the query 0.9. Otherwise the
    score is the fraction of query characters that occur anywhere in the title.
    """
    query = query.lower().strip()
    title = title.lower().strip()
    if query == title:
        return 1.0
    if query in title:
        return 0.9
    if not query:
        return 0.0
    matches = sum(1 for char in query if char in title)
    return matches / len(query)


def decode_source_url(source_url: str) -> str:
    """Decode an obfuscated source URL.

    URLs prefixed with `--` are hex-pair encoded through a fixed substitution
    table, with unknown pairs dropped. Other URLs only have escaped slashes
    restored.
    """
    if not source_url.startswith("--"):
        return source_url.replace("\\u002F", "/")
    encoded = source_url[2:]
    return "".join(
        DECODE_MAP.get(encoded[i : i + 2], "") for i in range(0, len(encoded), 2)
    )


def provider_url(url: str) -> str:
    """Resolve a provider-relative path to an absolute URL on the provider host."""
    if url.startswith("/"):
        return SITE_URL + url.replace("/apivtwo/clock", "/apivtwo/clock.json", 1)
    return url


def server_name(source_name: str) -> str:
    """Map a provider source name to its friendly server name."""
    return SERVER_NAMES.get(source_name, source_name)


def is_allowed_link(url: str) -> bool:
    """Whether a resolved link has one of the known playable shapes."""
    lowered = url.lower()
    return any(pattern in lowered for pattern in ALLOWED_LINK_PATTERNS)


def _episode_sort_key(episode: str) -> tuple[float, str]:
    match = _EPISODE_NUMBER.match(episode)
    return (float(match.group()) if match else float("inf"), episode)


class StreamClient:
    """Client for the AllAnime GraphQL API.

    Titles are matched against the provider's search index by a simple
    character-overlap similarity; the best hit is used for availability and
    stream link lookups.
    """

    API_URL = "https://api.allanime.day/api"
    SEARCH_LIMIT = 40

    def __init__(self) -> None:
        """Initialize the AllAnime client."""
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": USER_AGENT, "Referer": REFERER}
            )
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def _query[T](self, query: str, variables: dict, model: type[T]) -> T:
        session = await self._get_session()
        return await fetch_json(
            session,
            self.API_URL,
            model,
            params={"variables": json.dumps(variables), "query": query},
        )

    async def search_best_match(self, title: str) -> ShowEdge | None:
        """Find the search hit whose name is most similar to `title`.

        Args:
            title (str): Free-text title to search for.

        Returns:
            ShowEdge | None: The best hit, or None when the search is empty.
        """
        response = await self._query(
            SEARCH_QUERY,
            {
                "search": {"allowAdult": False, "allowUnknown": False, "query": title},
                "limit": self.SEARCH_LIMIT,
                "page": 1,
                "countryOrigin": "ALL",
            },
            ShowSearchResponse,
        )
        edges = response.data.shows.edges
        if not edges:
            log.warning(f"No streaming entry found for $$'{title}'$$")
            return None

        best = max(edges, key=lambda edge: similarity(title, edge.name))
        log.debug(
            f"Best streaming match for $$'{title}'$$ is $$'{best.name}'$$ "
            f"$${{id: {best.id}, score: {similarity(title, best.name):.2f}}}$$"
        )
        return best

    async def get_availability(self, title: str) -> StreamAvailability:
        """Get the sub and dub episode strings available for a title.

        Args:
            title (str): Title to search for.

        Returns:
            StreamAvailability: Numerically sorted episode strings per language.
        """
        show = await self.search_best_match(title)
        if show is None:
            return StreamAvailability()

        response = await self._query(
            EPISODES_QUERY, {"showId": show.id}, ShowDetailResponse
        )
        detail = response.data.show.available_episodes_detail
        return StreamAvailability(
            sub=tuple(sorted(detail.sub, key=_episode_sort_key)),
            dub=tuple(sorted(detail.dub, key=_episode_sort_key)),
        )

    async def get_stream_links(self, title: str, episode: int) -> StreamLinks:
        """Get playable stream links for one episode, per language.

        Args:
            title (str): Title to search for.
            episode (int): Episode number.

        Returns:
            StreamLinks: Allowed links for the subbed and dubbed versions. A
                language whose lookup fails is left empty.
        """
        try:
            show = await self.search_best_match(title)
        except UpstreamError as e:
            log.warning(f"Failed to search streams for $$'{title}'$$: {e}")
            return StreamLinks()
        if show is None:
            return StreamLinks()

        sub: tuple[StreamLink, ...] = ()
        dub: tuple[StreamLink, ...] = ()
        if show.available_episodes.sub > 0:
            sub = await self._get_links_or_empty(show.id, "sub", episode)
        if show.available_episodes.dub > 0:
            dub = await self._get_links_or_empty(show.id, "dub", episode)

        log.info(
            f"Found {len(sub)} sub and {len(dub)} dub links for $$'{title}'$$ "
            f"episode {episode}"
        )
        return StreamLinks(sub=sub, dub=dub)

    async def _get_links_or_empty(
        self, show_id: str, translation_type: str, episode: int
    ) -> tuple[StreamLink, ...]:
        try:
            return tuple(await self._get_links(show_id, translation_type, episode))
        except UpstreamError as e:
            log.warning(
                f"Failed to fetch {translation_type} links "
                f"$${{show_id: {show_id}, episode: {episode}}}$$: {e}"
            )
            return ()

    async def _get_links(
        self, show_id: str, translation_type: str, episode: int
    ) -> list[StreamLink]:
        response = await self._query(
            SOURCES_QUERY,
            {
                "showId": show_id,
                "translationType": translation_type,
                "episodeString": str(episode),
            },
            EpisodeSourcesResponse,
        )
        if response.data.episode is None:
            return []

        candidates: list[StreamLink] = []
        for source in response.data.episode.source_urls:
            if not source.source_url:
                continue
            candidates.append(
                StreamLink(
                    url=provider_url(decode_source_url(source.source_url)),
                    server=server_name(source.source_name),
                )
            )

        resolved = await asyncio.gather(
            *(self._resolve_clock(link) for link in candidates)
        )
        return [
            link for link in resolved if link is not None and is_allowed_link(link.url)
        ]

    async def _resolve_clock(self, link: StreamLink) -> StreamLink | None:
        """Replace a clock URL with the first link it resolves to.

        Returns:
            StreamLink | None: The resolved link, the link unchanged when it is not
                a clock URL, or None when resolution fails.
        """
        if "/apivtwo/clock" not in link.url:
            return link

        session = await self._get_session()
        try:
            response = await fetch_json(session, link.url, ClockResponse)
        except UpstreamError as e:
            log.warning(f"Failed to resolve clock link $$'{link.url}'$$: {e}")
            return None

        if not response.links:
            log.warning(f"No links in clock response for $$'{link.url}'$$")
            return None
        return link.model_copy(update={"url": response.links[0].link})

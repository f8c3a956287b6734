"""Anime service: cached access to canonical records, episodes and streams."""

from typing import Self

from metachan import log
from metachan.config.settings import MetachanConfig
from metachan.core.aggregator import AnimeAggregator, titles_from_jikan
from metachan.core.cache import AnimeCacheStore
from metachan.core.identity import IdentityResolver
from metachan.core.providers import (
    JikanClient,
    KitsuClient,
    LogoResolver,
    StreamClient,
    TMDBClient,
    TVDBClient,
)
from metachan.exceptions import AnimeNotFoundError
from metachan.models.db.identity_mapping import IdentityMapping
from metachan.models.schemas.anime import (
    CanonicalAnimeRecord,
    EpisodeList,
    SearchPagination,
    SearchQuery,
    SearchResult,
    SearchResults,
    StreamLinks,
)
from metachan.utils.cache import gattl_cache

__all__ = ["AnimeService"]

SEARCH_TTL_SECONDS = 3600


class AnimeService:
    """Entry point for anime lookups.

    Full records and per-episode stream links are served cache-aside from the
    `anime_cache` table; searches are memoized in process.
    """

    def __init__(
        self,
        aggregator: AnimeAggregator,
        cache: AnimeCacheStore | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            aggregator (AnimeAggregator): Builds records on cache misses.
            cache (AnimeCacheStore | None): Record and stream link cache.
        """
        self.aggregator = aggregator
        self.cache = cache or AnimeCacheStore()

    @classmethod
    def from_config(cls, config: MetachanConfig) -> Self:
        """Create a service with every provider the configuration enables."""
        tvdb = (
            TVDBClient(
                config.tvdb.api_key.get_secret_value(),
                config.tvdb.pin.get_secret_value() if config.tvdb.pin else None,
            )
            if config.tvdb.enabled and config.tvdb.api_key
            else None
        )
        tmdb = (
            TMDBClient(config.tmdb.read_access_token.get_secret_value())
            if config.tmdb.enabled and config.tmdb.read_access_token
            else None
        )
        aggregator = AnimeAggregator(
            jikan=JikanClient(),
            kitsu=KitsuClient(),
            stream=StreamClient(),
            logos=LogoResolver(),
            identity=IdentityResolver(),
            tvdb=tvdb,
            tmdb=tmdb,
        )
        return cls(aggregator)

    async def close(self) -> None:
        """Close every provider client."""
        await self.aggregator.close()

    def _get_mapping(self, mal_id: int) -> IdentityMapping:
        mapping = self.aggregator.identity.get_by_mal_id(mal_id)
        if mapping is None:
            raise AnimeNotFoundError(f"No identity mapping for MyAnimeList ID {mal_id}")
        return mapping

    async def get_full_record(self, mal_id: int) -> CanonicalAnimeRecord:
        """Get the canonical record for a MyAnimeList ID.

        Args:
            mal_id (int): The MyAnimeList ID.

        Returns:
            CanonicalAnimeRecord: The cached or freshly built record.

        Raises:
            AnimeNotFoundError: If the title is unmapped or unknown upstream.
        """
        cached = self.cache.get_anime(mal_id)
        if cached is not None:
            log.debug(f"Serving cached record $${{mal_id: {mal_id}}}$$")
            return cached

        record = await self.aggregator.build(self._get_mapping(mal_id))
        self.cache.put_anime(record)
        return record

    async def get_episodes(self, mal_id: int) -> EpisodeList:
        """Get the reconciled episode list of a title."""
        record = await self.get_full_record(mal_id)
        return record.episodes

    async def _stream_title(self, mal_id: int, kitsu_id: int | None) -> str:
        """Title used to look the show up on the streaming provider."""
        record = self.cache.get_anime(mal_id)
        title = record and (record.titles.english or record.titles.romaji)
        if title:
            return title

        if kitsu_id is not None:
            kitsu = await self.aggregator.kitsu.get_anime(kitsu_id)
            if kitsu is not None:
                title = kitsu.attributes.titles.en or kitsu.attributes.canonical_title
                if title:
                    return title

        anime = await self.aggregator.jikan.get_anime(mal_id)
        if anime is None:
            raise AnimeNotFoundError(f"MyAnimeList has no anime {mal_id}")
        return anime.title

    async def get_episode_stream_links(self, mal_id: int, episode: int) -> StreamLinks:
        """Get sub and dub stream links for one episode.

        Args:
            mal_id (int): The MyAnimeList ID.
            episode (int): The episode number.

        Returns:
            StreamLinks: Cached or freshly resolved links.

        Raises:
            AnimeNotFoundError: If the title is unmapped or unknown upstream.
        """
        cached = self.cache.get_stream_links(mal_id, episode)
        if cached is not None:
            return cached

        mapping = self._get_mapping(mal_id)
        title = await self._stream_title(mal_id, mapping.kitsu_id)
        links = await self.aggregator.stream.get_stream_links(title, episode)
        if links.sub or links.dub:
            self.cache.put_stream_links(mal_id, episode, links)
        else:
            log.info(
                f"No stream links found for $$'{title}'$$ "
                f"$${{mal_id: {mal_id}, episode: {episode}}}$$"
            )
        return links

    @gattl_cache(ttl=SEARCH_TTL_SECONDS, key=lambda _self, query: query.to_params())
    async def search_records(self, query: SearchQuery) -> SearchResults:
        """Search the primary provider.

        Args:
            query (SearchQuery): Search parameters.

        Returns:
            SearchResults: Matching titles and pagination details.
        """
        response = await self.aggregator.jikan.search_anime(query.to_params())
        pagination = response.pagination
        return SearchResults(
            results=tuple(
                SearchResult(
                    id=anime.mal_id,
                    titles=titles_from_jikan(anime),
                    type=anime.type,
                    status=anime.status,
                    episode_count=anime.episodes,
                    score=anime.score,
                    year=anime.year,
                    image=anime.images.jpg.large_image_url or anime.images.jpg.image_url,
                )
                for anime in response.data
            ),
            pagination=SearchPagination(
                current_page=pagination.current_page or query.page,
                last_visible_page=pagination.last_visible_page,
                has_next_page=pagination.has_next_page,
                total=pagination.items.total if pagination.items else None,
            ),
        )

"""Multi-provider aggregation into a canonical anime record."""

import asyncio
import re
from collections.abc import Awaitable, Sequence

from metachan import log
from metachan.core.episodes import order_seasons, reconcile
from metachan.core.identity import IdentityResolver
from metachan.core.providers import (
    JikanClient,
    KitsuClient,
    LogoResolver,
    StreamClient,
    TMDBClient,
    TVDBAuthToken,
    TVDBClient,
)
from metachan.exceptions import AnimeNotFoundError, UpstreamError
from metachan.models.db.identity_mapping import IdentityMapping
from metachan.models.schemas.anime import (
    AiredRange,
    Broadcast,
    CanonicalAnimeRecord,
    Character,
    CoverImages,
    EpisodeRecord,
    ExternalIds,
    NamedEntity,
    PosterImages,
    Ranks,
    Scores,
    SeasonSummary,
    StreamAvailability,
    Titles,
    VoiceActor,
)
from metachan.models.schemas.jikan import (
    JikanAnime,
    JikanCharacterEntry,
    JikanEntity,
    JikanEpisode,
)
from metachan.models.schemas.kitsu import KitsuAnime
from metachan.models.schemas.tmdb import TMDBEpisode
from metachan.models.schemas.tvdb import TVDBEpisode

__all__ = ["AnimeAggregator", "clean_synopsis", "titles_from_jikan"]

_MAL_REWRITE_TRAILER = re.compile(r"\n{1,2}\[Written by MAL Rewrite\]")


def clean_synopsis(synopsis: str | None) -> str | None:
    """Remove MyAnimeList's "[Written by MAL Rewrite]" attribution."""
    if synopsis is None:
        return None
    return _MAL_REWRITE_TRAILER.sub("", synopsis).strip()


def titles_from_jikan(anime: JikanAnime) -> Titles:
    """Titles of a primary provider entry, romaji taken from its default title."""
    return Titles(
        english=anime.title_english,
        japanese=anime.title_japanese,
        romaji=anime.title,
    )


def _ranks(anime: JikanAnime) -> Ranks:
    return Ranks(
        scores=Scores(average=anime.score, users=anime.scored_by),
        ranked=anime.rank,
        popularity=anime.popularity,
        members=anime.members,
        favorites=anime.favorites,
    )


def _entities(entities: Sequence[JikanEntity]) -> tuple[NamedEntity, ...]:
    return tuple(NamedEntity(id=e.mal_id, name=e.name) for e in entities)


def _characters(entries: Sequence[JikanCharacterEntry]) -> tuple[Character, ...]:
    return tuple(
        Character(
            name=entry.character.name,
            role=entry.role,
            image=entry.character.images.jpg.image_url,
            voice_actors=tuple(
                VoiceActor(
                    name=actor.person.name,
                    image=actor.person.images.jpg.image_url,
                    language=actor.language,
                )
                for actor in entry.voice_actors
            ),
        )
        for entry in entries
    )


class AnimeAggregator:
    """Builds canonical records from the primary, secondary and optional providers.

    The primary (Jikan) and secondary (Kitsu) lookups are required; every other
    provider only enriches the record and its failures are logged and ignored.
    Only one episode enrichment source is used per build: TheTVDB when the title
    has a TheTVDB ID and credentials are configured, otherwise TMDB when it is
    configured.
    """

    def __init__(
        self,
        jikan: JikanClient,
        kitsu: KitsuClient,
        stream: StreamClient,
        logos: LogoResolver,
        identity: IdentityResolver,
        tvdb: TVDBClient | None = None,
        tmdb: TMDBClient | None = None,
    ) -> None:
        """Initialize the aggregator with its provider clients.

        Args:
            jikan (JikanClient): Primary metadata client.
            kitsu (KitsuClient): Secondary metadata client.
            stream (StreamClient): Streaming availability client.
            logos (LogoResolver): Logo derivation helper.
            identity (IdentityResolver): Cross-provider ID lookups.
            tvdb (TVDBClient | None): TheTVDB client, when credentials are set.
            tmdb (TMDBClient | None): TMDB client, when credentials are set.
        """
        self.jikan = jikan
        self.kitsu = kitsu
        self.stream = stream
        self.logos = logos
        self.identity = identity
        self.tvdb = tvdb
        self.tmdb = tmdb
        self.tvdb_auth = TVDBAuthToken()

    async def close(self) -> None:
        """Close every provider client."""
        clients = [self.jikan, self.kitsu, self.stream, self.logos]
        clients.extend(c for c in (self.tvdb, self.tmdb) if c is not None)
        await asyncio.gather(*(client.close() for client in clients))

    async def _guarded[T](self, label: str, coro: Awaitable[T], default: T) -> T:
        """Await an optional lookup, falling back to `default` on provider errors."""
        try:
            return await coro
        except UpstreamError as e:
            log.warning(f"Failed to fetch {label}, continuing without it: {e}")
            return default

    async def build(self, mapping: IdentityMapping) -> CanonicalAnimeRecord:
        """Build the canonical record for a mapped title.

        Args:
            mapping (IdentityMapping): Cross-provider IDs of the title.

        Returns:
            CanonicalAnimeRecord: The reconciled record.

        Raises:
            AnimeNotFoundError: If a required provider does not know the title.
            UpstreamError: If a required provider cannot be queried.
        """
        if mapping.mal_id is None:
            raise AnimeNotFoundError("Mapping has no MyAnimeList ID")

        anime = await self.jikan.get_full_anime(mapping.mal_id)
        if anime is None:
            raise AnimeNotFoundError(f"MyAnimeList has no anime {mapping.mal_id}")

        if mapping.kitsu_id is None:
            raise AnimeNotFoundError(f"Anime {mapping.mal_id} has no Kitsu ID")
        kitsu = await self.kitsu.get_anime(mapping.kitsu_id)
        if kitsu is None:
            raise AnimeNotFoundError(f"Kitsu has no anime {mapping.kitsu_id}")

        search_title = (
            kitsu.attributes.titles.en or kitsu.attributes.canonical_title or anime.title
        )
        character_entries, jikan_episodes, availability, logos = await asyncio.gather(
            self._guarded(
                "characters",
                self.jikan.get_characters(mapping.mal_id),
                list[JikanCharacterEntry](),
            ),
            self._guarded(
                "episodes",
                self.jikan.get_episodes(mapping.mal_id),
                list[JikanEpisode](),
            ),
            self._guarded(
                "streaming availability",
                self.stream.get_availability(search_title),
                StreamAvailability(),
            ),
            self.logos.get_logos(anime.streaming),
        )

        seasons: tuple[SeasonSummary, ...] = ()
        if mapping.thetvdb_id is not None:
            seasons = await self._get_seasons(mapping.thetvdb_id, mapping.mal_id)

        tvdb_episodes: list[TVDBEpisode] | None = None
        tmdb_episodes: list[TMDBEpisode] | None = None
        if mapping.thetvdb_id is not None and self.tvdb is not None:
            tvdb_episodes = await self._get_tvdb_episodes(
                self.tvdb, mapping.thetvdb_id
            )
        elif self.tmdb is not None:
            tmdb_episodes = await self._get_tmdb_episodes(
                self.tmdb, anime, kitsu, seasons, len(jikan_episodes)
            )

        posters = kitsu.attributes.poster_image
        covers = kitsu.attributes.cover_image
        primary_image = anime.images.jpg.large_image_url or anime.images.jpg.image_url
        fallback_image = (
            (covers.original if covers else None)
            or (posters.original if posters else None)
            or primary_image
        )

        episodes = reconcile(
            jikan_episodes,
            availability=availability,
            status=anime.status,
            episode_count=anime.episodes,
            fallback_image=fallback_image,
            tvdb_episodes=tvdb_episodes,
            tmdb_episodes=tmdb_episodes,
            placeholder=EpisodeRecord(
                id=1,
                titles=Titles(
                    english=kitsu.attributes.titles.en,
                    japanese=kitsu.attributes.titles.ja_jp,
                    romaji=kitsu.attributes.canonical_title,
                ),
                aired=anime.aired.from_,
                score=anime.score,
                forum_url=f"{JikanClient.API_URL}/anime/{anime.mal_id}/forum",
            ),
        )

        log.success(
            f"Built record for $$'{search_title}'$$ $${{mal_id: {anime.mal_id}, "
            f"episodes: {episodes.total}, subbed: {episodes.subbed}, "
            f"dubbed: {episodes.dubbed}}}$$"
        )

        return CanonicalAnimeRecord(
            id=anime.mal_id,
            ids=ExternalIds(
                mal=mapping.mal_id,
                anilist=mapping.anilist_id,
                kitsu=mapping.kitsu_id,
                thetvdb=mapping.thetvdb_id,
                themoviedb=mapping.themoviedb_id,
                anidb=mapping.anidb_id,
                livechart=mapping.livechart_id,
                imdb=mapping.imdb_id,
            ),
            titles=Titles(
                english=kitsu.attributes.titles.en,
                japanese=kitsu.attributes.titles.ja_jp,
                romaji=kitsu.attributes.canonical_title,
            ),
            synonyms=tuple(anime.title_synonyms),
            synopsis=clean_synopsis(anime.synopsis),
            type=anime.type,
            source=anime.source,
            episode_count=anime.episodes,
            status=anime.status,
            airing=anime.airing,
            start_date=anime.aired.from_,
            end_date=anime.aired.to,
            duration=anime.duration,
            age_rating=anime.rating,
            ranks=_ranks(anime),
            background=anime.background,
            season=anime.season,
            year=anime.year,
            broadcast=Broadcast(**anime.broadcast.model_dump()),
            producers=_entities(anime.producers),
            licensors=_entities(anime.licensors),
            studios=_entities(anime.studios),
            genres=_entities([*anime.genres, *anime.explicit_genres]),
            posters=PosterImages(**posters.model_dump(exclude={"tiny"}))
            if posters
            else PosterImages(),
            covers=CoverImages(
                small=covers.small, large=covers.large, original=covers.original
            )
            if covers
            else CoverImages(),
            image=primary_image,
            logos=logos,
            trailer=anime.trailer.url,
            seasons=seasons,
            characters=_characters(character_entries),
            episodes=episodes,
        )

    async def _get_seasons(
        self, thetvdb_id: int, mal_id: int
    ) -> tuple[SeasonSummary, ...]:
        """Summarize every title sharing a TheTVDB series."""
        siblings = self.identity.get_siblings(thetvdb_id)

        seasons: list[SeasonSummary] = []
        seen: set[int] = set()
        for sibling in siblings:
            if sibling.mal_id is None or sibling.mal_id in seen:
                continue
            seen.add(sibling.mal_id)

            summary = await self._guarded(
                f"season {sibling.mal_id}", self.jikan.get_anime(sibling.mal_id), None
            )
            if summary is None:
                continue
            seasons.append(
                SeasonSummary(
                    id=summary.mal_id,
                    titles=titles_from_jikan(summary),
                    type=summary.type,
                    status=summary.status,
                    airing=summary.airing,
                    aired=AiredRange(start=summary.aired.from_, end=summary.aired.to),
                    ranks=_ranks(summary),
                    season=summary.season,
                    year=summary.year,
                    current=sibling.mal_id == mal_id,
                )
            )
        return tuple(order_seasons(seasons))

    async def _get_tvdb_episodes(
        self, tvdb: TVDBClient, tvdb_id: int
    ) -> list[TVDBEpisode] | None:
        try:
            return await tvdb.get_episodes(tvdb_id, self.tvdb_auth, season=1)
        except UpstreamError as e:
            log.warning(f"TheTVDB enrichment failed for $${{tvdb_id: {tvdb_id}}}$$: {e}")
            return None

    async def _get_tmdb_episodes(
        self,
        tmdb: TMDBClient,
        anime: JikanAnime,
        kitsu: KitsuAnime,
        seasons: Sequence[SeasonSummary],
        backbone_length: int,
    ) -> list[TMDBEpisode] | None:
        candidate_titles = [
            title
            for title in (
                kitsu.attributes.titles.en,
                anime.title_english,
                kitsu.attributes.canonical_title,
                anime.title,
                *anime.title_synonyms,
            )
            if title
        ]

        tv_seasons = [s for s in seasons if s.type == "TV"]
        season_number = next(
            (i for i, s in enumerate(tv_seasons, start=1) if s.current), 1
        )
        try:
            return await tmdb.find_season_episodes(
                candidate_titles,
                season_number=season_number,
                air_date=anime.aired.from_,
                episode_count=anime.episodes or backbone_length or None,
            )
        except UpstreamError as e:
            log.warning(f"TMDB enrichment failed for $${{mal_id: {anime.mal_id}}}$$: {e}")
            return None

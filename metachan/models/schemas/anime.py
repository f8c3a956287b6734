"""Canonical anime record models.

These are the reconciled values handed to callers and stored, serialized, in the
cache. They are immutable once built.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

NO_SYNOPSIS_EN = "No synopsis available"
NO_SYNOPSIS_JA = "シノプシスはありません"


class CanonicalModel(BaseModel):
    """Base for canonical models: frozen, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class Titles(CanonicalModel):
    english: str | None = None
    japanese: str | None = None
    romaji: str | None = None


class EpisodeSynopsis(CanonicalModel):
    english: str | None = None
    japanese: str | None = None


class EpisodeRecord(CanonicalModel):
    """A single reconciled episode.

    Episodes are aligned across providers by position, so `id` is the primary
    provider's episode id while `number` and `season_number` may come from an
    enrichment provider.
    """

    id: int
    number: int | None = None
    season_number: int | None = None
    titles: Titles = Field(default_factory=Titles)
    aired: str | None = None
    score: float | None = None
    duration: int | None = None
    synopsis: EpisodeSynopsis | None = None
    filler: bool = False
    recap: bool = False
    forum_url: str | None = None
    image: str | None = None


class StreamAvailability(CanonicalModel):
    """Episode strings available on the streaming index, per language."""

    sub: tuple[str, ...] = ()
    dub: tuple[str, ...] = ()


class EpisodeList(CanonicalModel):
    total: int = 0
    subbed: int = 0
    dubbed: int = 0
    episodes: tuple[EpisodeRecord, ...] = ()


class VoiceActor(CanonicalModel):
    name: str
    image: str | None = None
    language: str | None = None


class Character(CanonicalModel):
    name: str
    role: str | None = None
    image: str | None = None
    voice_actors: tuple[VoiceActor, ...] = ()


class NamedEntity(CanonicalModel):
    id: int
    name: str


class Scores(CanonicalModel):
    average: float | None = None
    users: int | None = None


class Ranks(CanonicalModel):
    scores: Scores = Field(default_factory=Scores)
    ranked: int | None = None
    popularity: int | None = None
    members: int | None = None
    favorites: int | None = None


class AiredRange(CanonicalModel):
    start: str | None = None
    end: str | None = None


class SeasonSummary(CanonicalModel):
    """A sibling entry sharing the same TV-episode-database series."""

    id: int
    titles: Titles = Field(default_factory=Titles)
    type: str | None = None
    status: str | None = None
    airing: bool = False
    aired: AiredRange = Field(default_factory=AiredRange)
    ranks: Ranks = Field(default_factory=Ranks)
    season: str | None = None
    year: int | None = None
    current: bool = False


class PosterImages(CanonicalModel):
    small: str | None = None
    medium: str | None = None
    large: str | None = None
    original: str | None = None


class CoverImages(CanonicalModel):
    small: str | None = None
    large: str | None = None
    original: str | None = None


class Logos(CanonicalModel):
    """Pre-sized title logos, keyed by pixel width."""

    small: str
    medium: str
    large: str
    xlarge: str


class Broadcast(CanonicalModel):
    day: str | None = None
    time: str | None = None
    timezone: str | None = None
    string: str | None = None


class ExternalIds(CanonicalModel):
    mal: int | None = None
    anilist: int | None = None
    kitsu: int | None = None
    thetvdb: int | None = None
    themoviedb: int | None = None
    anidb: int | None = None
    livechart: int | None = None
    imdb: str | None = None


class CanonicalAnimeRecord(CanonicalModel):
    """The single reconciled anime document returned to callers."""

    id: int
    ids: ExternalIds = Field(default_factory=ExternalIds)
    titles: Titles
    synonyms: tuple[str, ...] = ()
    synopsis: str | None = None
    type: str | None = None
    source: str | None = None
    episode_count: int | None = None
    status: str | None = None
    airing: bool = False
    start_date: str | None = None
    end_date: str | None = None
    duration: str | None = None
    age_rating: str | None = None
    ranks: Ranks = Field(default_factory=Ranks)
    background: str | None = None
    season: str | None = None
    year: int | None = None
    broadcast: Broadcast = Field(default_factory=Broadcast)
    producers: tuple[NamedEntity, ...] = ()
    licensors: tuple[NamedEntity, ...] = ()
    studios: tuple[NamedEntity, ...] = ()
    genres: tuple[NamedEntity, ...] = ()
    posters: PosterImages = Field(default_factory=PosterImages)
    covers: CoverImages = Field(default_factory=CoverImages)
    image: str | None = None
    logos: Logos | None = None
    trailer: str | None = None
    seasons: tuple[SeasonSummary, ...] = ()
    characters: tuple[Character, ...] = ()
    episodes: EpisodeList = Field(default_factory=EpisodeList)


class StreamLink(CanonicalModel):
    url: str
    server: str


class StreamLinks(CanonicalModel):
    sub: tuple[StreamLink, ...] = ()
    dub: tuple[StreamLink, ...] = ()


class SearchQuery(CanonicalModel):
    """Search parameters forwarded to the primary provider's search endpoint."""

    q: str | None = None
    page: int = 1
    limit: int = 25
    type: str | None = None
    status: str | None = None
    rating: str | None = None
    order_by: str | None = None
    sort: str | None = None
    sfw: bool = True

    def to_params(self) -> dict[str, str]:
        """Render the query as Jikan request parameters, dropping unset values."""
        params = self.model_dump(exclude_none=True)
        return {
            key: str(value).lower() if isinstance(value, bool) else str(value)
            for key, value in params.items()
        }


class SearchResult(CanonicalModel):
    id: int
    titles: Titles = Field(default_factory=Titles)
    type: str | None = None
    status: str | None = None
    episode_count: int | None = None
    score: float | None = None
    year: int | None = None
    image: str | None = None


class SearchPagination(CanonicalModel):
    current_page: int = 1
    last_visible_page: int = 1
    has_next_page: bool = False
    total: int | None = None


class SearchResults(CanonicalModel):
    results: tuple[SearchResult, ...] = ()
    pagination: SearchPagination = Field(default_factory=SearchPagination)

"""Jikan (MyAnimeList) API v4 response models."""

from pydantic import BaseModel, ConfigDict, Field


class JikanBaseModel(BaseModel):
    """Base model for Jikan payloads, which use snake_case keys."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class JikanImageSet(JikanBaseModel):
    image_url: str | None = None
    small_image_url: str | None = None
    large_image_url: str | None = None


class JikanImages(JikanBaseModel):
    jpg: JikanImageSet = Field(default_factory=JikanImageSet)
    webp: JikanImageSet | None = None


class JikanTrailer(JikanBaseModel):
    youtube_id: str | None = None
    url: str | None = None
    embed_url: str | None = None


class JikanAired(JikanBaseModel):
    """Airing range as ISO-8601 strings."""

    from_: str | None = Field(default=None, alias="from")
    to: str | None = None
    string: str | None = None


class JikanBroadcast(JikanBaseModel):
    day: str | None = None
    time: str | None = None
    timezone: str | None = None
    string: str | None = None


class JikanEntity(JikanBaseModel):
    """A studio, producer, licensor, genre or theme reference."""

    mal_id: int
    type: str | None = None
    name: str
    url: str | None = None


class JikanLink(JikanBaseModel):
    name: str
    url: str


class JikanAnime(JikanBaseModel):
    """Anime resource as returned by `/anime/{id}` and `/anime/{id}/full`."""

    mal_id: int
    url: str | None = None
    images: JikanImages = Field(default_factory=JikanImages)
    trailer: JikanTrailer = Field(default_factory=JikanTrailer)
    title: str
    title_english: str | None = None
    title_japanese: str | None = None
    title_synonyms: list[str] = Field(default_factory=list)
    type: str | None = None
    source: str | None = None
    episodes: int | None = None
    status: str | None = None
    airing: bool = False
    aired: JikanAired = Field(default_factory=JikanAired)
    duration: str | None = None
    rating: str | None = None
    score: float | None = None
    scored_by: int | None = None
    rank: int | None = None
    popularity: int | None = None
    members: int | None = None
    favorites: int | None = None
    synopsis: str | None = None
    background: str | None = None
    season: str | None = None
    year: int | None = None
    broadcast: JikanBroadcast = Field(default_factory=JikanBroadcast)
    producers: list[JikanEntity] = Field(default_factory=list)
    licensors: list[JikanEntity] = Field(default_factory=list)
    studios: list[JikanEntity] = Field(default_factory=list)
    genres: list[JikanEntity] = Field(default_factory=list)
    explicit_genres: list[JikanEntity] = Field(default_factory=list)
    themes: list[JikanEntity] = Field(default_factory=list)
    demographics: list[JikanEntity] = Field(default_factory=list)
    streaming: list[JikanLink] = Field(default_factory=list)
    external: list[JikanLink] = Field(default_factory=list)


class JikanAnimeResponse(JikanBaseModel):
    data: JikanAnime


class JikanEpisode(JikanBaseModel):
    mal_id: int
    url: str | None = None
    title: str | None = None
    title_japanese: str | None = None
    title_romanji: str | None = None
    aired: str | None = None
    score: float | None = None
    filler: bool = False
    recap: bool = False
    forum_url: str | None = None


class JikanPaginationItems(JikanBaseModel):
    count: int = 0
    total: int = 0
    per_page: int = 0


class JikanPagination(JikanBaseModel):
    last_visible_page: int = 1
    has_next_page: bool = False
    current_page: int | None = None
    items: JikanPaginationItems | None = None


class JikanEpisodesResponse(JikanBaseModel):
    data: list[JikanEpisode] = Field(default_factory=list)
    pagination: JikanPagination = Field(default_factory=JikanPagination)


class JikanPerson(JikanBaseModel):
    """A character or voice actor reference."""

    mal_id: int
    url: str | None = None
    images: JikanImages = Field(default_factory=JikanImages)
    name: str


class JikanVoiceActor(JikanBaseModel):
    person: JikanPerson
    language: str | None = None


class JikanCharacterEntry(JikanBaseModel):
    character: JikanPerson
    role: str | None = None
    voice_actors: list[JikanVoiceActor] = Field(default_factory=list)


class JikanCharactersResponse(JikanBaseModel):
    data: list[JikanCharacterEntry] = Field(default_factory=list)


class JikanSearchResponse(JikanBaseModel):
    data: list[JikanAnime] = Field(default_factory=list)
    pagination: JikanPagination = Field(default_factory=JikanPagination)

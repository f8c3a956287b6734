"""TheTVDB API v4 response models."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TVDBBaseModel(BaseModel):
    """Base model for TheTVDB payloads, which use camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


class TVDBLoginData(TVDBBaseModel):
    token: str
    expires_at: str | None = None


class TVDBLoginResponse(TVDBBaseModel):
    status: str | None = None
    data: TVDBLoginData


class TVDBSeasonType(TVDBBaseModel):
    id: int | None = None
    name: str | None = None
    type: str | None = None


class TVDBSeason(TVDBBaseModel):
    id: int
    series_id: int | None = None
    type: TVDBSeasonType | None = None
    number: int
    name: str | None = None
    image: str | None = None


class TVDBSeries(TVDBBaseModel):
    id: int
    name: str | None = None
    slug: str | None = None
    image: str | None = None
    first_aired: str | None = None
    last_aired: str | None = None
    overview: str | None = None
    average_runtime: int | None = None
    seasons: list[TVDBSeason] = Field(default_factory=list)


class TVDBSeriesResponse(TVDBBaseModel):
    status: str | None = None
    data: TVDBSeries


class TVDBOverviewTranslation(TVDBBaseModel):
    language: str
    overview: str | None = None


class TVDBEpisode(TVDBBaseModel):
    id: int
    series_id: int | None = None
    name: str | None = None
    aired: str | None = None
    runtime: int | None = None
    overview: str | None = None
    image: str | None = None
    season_number: int | None = None
    number: int | None = None
    translations: list[TVDBOverviewTranslation] = Field(default_factory=list)

    def translated_overview(self, language: str) -> str | None:
        """Return the overview translated into `language`, if one was fetched."""
        for translation in self.translations:
            if translation.language == language and translation.overview:
                return translation.overview
        return None


class TVDBEpisodesData(TVDBBaseModel):
    episodes: list[TVDBEpisode] = Field(default_factory=list)


class TVDBLinks(TVDBBaseModel):
    prev: str | None = None
    self_: str | None = Field(default=None, alias="self")
    next: str | None = None


class TVDBEpisodesResponse(TVDBBaseModel):
    status: str | None = None
    data: TVDBEpisodesData = Field(default_factory=TVDBEpisodesData)
    links: TVDBLinks = Field(default_factory=TVDBLinks)


class TVDBTranslation(TVDBBaseModel):
    language: str | None = None
    name: str | None = None
    overview: str | None = None


class TVDBTranslationResponse(TVDBBaseModel):
    status: str | None = None
    data: TVDBTranslation

"""AllAnime GraphQL API response models."""

from pydantic import BaseModel, ConfigDict, Field


class AllAnimeBaseModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AvailableEpisodes(AllAnimeBaseModel):
    sub: int = 0
    dub: int = 0


class ShowEdge(AllAnimeBaseModel):
    id: str = Field(alias="_id")
    name: str
    available_episodes: AvailableEpisodes = Field(
        default_factory=AvailableEpisodes, alias="availableEpisodes"
    )


class ShowConnection(AllAnimeBaseModel):
    edges: list[ShowEdge] = Field(default_factory=list)


class ShowSearchData(AllAnimeBaseModel):
    shows: ShowConnection = Field(default_factory=ShowConnection)


class ShowSearchResponse(AllAnimeBaseModel):
    data: ShowSearchData


class AvailableEpisodesDetail(AllAnimeBaseModel):
    sub: list[str] = Field(default_factory=list)
    dub: list[str] = Field(default_factory=list)


class ShowDetail(AllAnimeBaseModel):
    id: str = Field(alias="_id")
    available_episodes_detail: AvailableEpisodesDetail = Field(
        default_factory=AvailableEpisodesDetail, alias="availableEpisodesDetail"
    )


class ShowDetailData(AllAnimeBaseModel):
    show: ShowDetail


class ShowDetailResponse(AllAnimeBaseModel):
    data: ShowDetailData


class SourceUrl(AllAnimeBaseModel):
    source_url: str | None = Field(default=None, alias="sourceUrl")
    source_name: str = Field(default="", alias="sourceName")


class EpisodeSources(AllAnimeBaseModel):
    episode_string: str | None = Field(default=None, alias="episodeString")
    source_urls: list[SourceUrl] = Field(default_factory=list, alias="sourceUrls")


class EpisodeSourcesData(AllAnimeBaseModel):
    episode: EpisodeSources | None = None


class EpisodeSourcesResponse(AllAnimeBaseModel):
    data: EpisodeSourcesData


class ClockLink(AllAnimeBaseModel):
    link: str


class ClockResponse(AllAnimeBaseModel):
    links: list[ClockLink] = Field(default_factory=list)

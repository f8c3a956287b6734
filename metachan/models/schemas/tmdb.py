"""TMDB API v3 response models."""

from pydantic import BaseModel, ConfigDict, Field


class TMDBBaseModel(BaseModel):
    """Base model for TMDB payloads, which use snake_case keys."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TMDBShowResult(TMDBBaseModel):
    id: int
    name: str | None = None
    original_name: str | None = None
    first_air_date: str | None = None
    origin_country: list[str] = Field(default_factory=list)
    adult: bool = False


class TMDBSearchResponse(TMDBBaseModel):
    page: int = 1
    results: list[TMDBShowResult] = Field(default_factory=list)
    total_results: int = 0


class TMDBSeasonSummary(TMDBBaseModel):
    id: int | None = None
    season_number: int
    air_date: str | None = None
    episode_count: int | None = None
    name: str | None = None


class TMDBShowDetails(TMDBBaseModel):
    id: int
    name: str | None = None
    seasons: list[TMDBSeasonSummary] = Field(default_factory=list)


class TMDBEpisode(TMDBBaseModel):
    id: int
    name: str | None = None
    overview: str | None = None
    air_date: str | None = None
    episode_number: int
    season_number: int
    still_path: str | None = None
    runtime: int | None = None


class TMDBSeasonDetails(TMDBBaseModel):
    id: int | None = None
    season_number: int
    episodes: list[TMDBEpisode] = Field(default_factory=list)

"""Kitsu edge API response models."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class KitsuBaseModel(BaseModel):
    """Base model for Kitsu payloads, which use camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


class KitsuTitles(KitsuBaseModel):
    en: str | None = None
    en_jp: str | None = None
    ja_jp: str | None = None


class KitsuImage(KitsuBaseModel):
    tiny: str | None = None
    small: str | None = None
    medium: str | None = None
    large: str | None = None
    original: str | None = None


class KitsuAttributes(KitsuBaseModel):
    slug: str | None = None
    synopsis: str | None = None
    titles: KitsuTitles = Field(default_factory=KitsuTitles)
    canonical_title: str | None = None
    abbreviated_titles: list[str] | None = None
    average_rating: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    subtype: str | None = None
    status: str | None = None
    poster_image: KitsuImage | None = None
    cover_image: KitsuImage | None = None
    episode_count: int | None = None
    episode_length: int | None = None
    nsfw: bool = False


class KitsuAnime(KitsuBaseModel):
    id: str
    type: str
    attributes: KitsuAttributes


class KitsuAnimeResponse(KitsuBaseModel):
    data: list[KitsuAnime] = Field(default_factory=list)

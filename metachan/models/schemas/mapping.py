"""Fribb anime-lists entry model."""

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _loose_int(value: Any) -> Any:
    """Accept the list's stringly-typed integers, treating blanks and zero as None."""
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        return int(value)
    if value == 0:
        return None
    return value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


LooseInt = Annotated[int | None, BeforeValidator(_loose_int)]
LooseStr = Annotated[str | None, BeforeValidator(_blank_to_none)]


class FribbEntry(BaseModel):
    """A single cross-provider ID record from `anime-list-full.json`."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    livechart_id: LooseInt = None
    anime_planet_id: LooseStr = Field(default=None, alias="anime-planet_id")
    anisearch_id: LooseInt = None
    anidb_id: LooseInt = None
    kitsu_id: LooseInt = None
    mal_id: LooseInt = None
    notify_moe_id: LooseStr = Field(default=None, alias="notify.moe_id")
    anilist_id: LooseInt = None
    thetvdb_id: LooseInt = None
    imdb_id: LooseStr = None
    themoviedb_id: LooseInt = None
    type: LooseStr = None

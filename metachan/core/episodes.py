"""Episode reconciliation.

Episode lists from different providers disagree on count, numbering and content,
and no provider shares an episode key with another. Lists are therefore aligned
by position, using the primary provider's list as the backbone.

All functions here are pure: they never mutate their inputs and return new
immutable records.
"""

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from metachan.core.providers.tmdb import TMDBClient
from metachan.models.schemas.anime import (
    NO_SYNOPSIS_EN,
    NO_SYNOPSIS_JA,
    EpisodeList,
    EpisodeRecord,
    EpisodeSynopsis,
    SeasonSummary,
    StreamAvailability,
    Titles,
)
from metachan.models.schemas.jikan import JikanEpisode
from metachan.models.schemas.tmdb import TMDBEpisode
from metachan.models.schemas.tvdb import TVDBEpisode

__all__ = [
    "FINISHED_AIRING",
    "apply_tmdb",
    "apply_tvdb",
    "build_backbone",
    "fill_gaps",
    "order_seasons",
    "reconcile",
    "truncate",
]

FINISHED_AIRING = "Finished Airing"

SEASON_TYPE_PRIORITY = {"TV": 1, "Movie": 2, "OVA": 3, "Special": 4}
OTHER_TYPE_PRIORITY = 5


def build_backbone(jikan_episodes: Iterable[JikanEpisode]) -> list[EpisodeRecord]:
    """Convert the primary provider's episodes into the positional backbone."""
    return [
        EpisodeRecord(
            id=episode.mal_id,
            number=episode.mal_id,
            titles=Titles(
                english=episode.title,
                japanese=episode.title_japanese,
                romaji=episode.title_romanji,
            ),
            aired=episode.aired,
            score=episode.score,
            filler=episode.filler,
            recap=episode.recap,
            forum_url=episode.forum_url,
        )
        for episode in jikan_episodes
    ]


def apply_tvdb(
    episodes: Sequence[EpisodeRecord], tvdb_episodes: Iterable[TVDBEpisode]
) -> list[EpisodeRecord]:
    """Enrich episodes from TheTVDB.

    The episode at index i receives the season 1 episode numbered i + 1. The
    English synopsis prefers the `eng` translation and the Japanese synopsis the
    `jpn` translation, both falling back to the untranslated overview.
    """
    season_one = {
        episode.number: episode
        for episode in tvdb_episodes
        if episode.season_number == 1 and episode.number is not None
    }

    enriched: list[EpisodeRecord] = []
    for index, episode in enumerate(episodes):
        match = season_one.get(index + 1)
        if match is None:
            enriched.append(episode)
            continue

        enriched.append(
            episode.model_copy(
                update={
                    "duration": match.runtime
                    if match.runtime is not None
                    else episode.duration,
                    "synopsis": EpisodeSynopsis(
                        english=match.translated_overview("eng") or match.overview,
                        japanese=match.translated_overview("jpn") or match.overview,
                    ),
                    "image": match.image or episode.image,
                    "season_number": match.season_number,
                    "number": match.number,
                }
            )
        )
    return enriched


def apply_tmdb(
    episodes: Sequence[EpisodeRecord], tmdb_episodes: Sequence[TMDBEpisode]
) -> list[EpisodeRecord]:
    """Enrich episodes from TMDB, aligning by raw index."""
    enriched: list[EpisodeRecord] = []
    for index, episode in enumerate(episodes):
        if index >= len(tmdb_episodes):
            enriched.append(episode)
            continue

        match = tmdb_episodes[index]
        existing = episode.synopsis or EpisodeSynopsis()
        enriched.append(
            episode.model_copy(
                update={
                    "synopsis": EpisodeSynopsis(
                        english=match.overview or existing.english or NO_SYNOPSIS_EN,
                        japanese=existing.japanese or NO_SYNOPSIS_JA,
                    ),
                    "image": TMDBClient.image_url(match.still_path) or episode.image,
                    "season_number": match.season_number,
                    "number": match.episode_number,
                }
            )
        )
    return enriched


def fill_gaps(
    episodes: Sequence[EpisodeRecord], sub_count: int, fallback_image: str | None
) -> list[EpisodeRecord]:
    """Append placeholder episodes until the list covers every subbed episode.

    Placeholders are numbered on from the last real episode id and copy the
    first episode's duration.
    """
    filled = list(episodes)
    missing = sub_count - len(filled)
    if missing <= 0:
        return filled

    last_id = filled[-1].id if filled else 0
    duration = filled[0].duration if filled else None
    for offset in range(1, missing + 1):
        number = last_id + offset
        filled.append(
            EpisodeRecord(
                id=number,
                number=number,
                titles=Titles(
                    english=f"Episode {number}",
                    japanese=f"第{number}話",
                    romaji=f"Episode {number}",
                ),
                aired="Unknown",
                duration=duration,
                synopsis=EpisodeSynopsis(english=NO_SYNOPSIS_EN, japanese=NO_SYNOPSIS_JA),
                image=fallback_image,
            )
        )
    return filled


def truncate(
    episodes: Sequence[EpisodeRecord],
    availability: StreamAvailability,
    status: str | None,
    episode_count: int | None,
) -> tuple[list[EpisodeRecord], StreamAvailability]:
    """Trim over-reported episodes of a finished title to its declared count.

    Returns:
        tuple[list[EpisodeRecord], StreamAvailability]: The episodes and the
            availability, both trimmed when the title has finished airing and
            declares fewer episodes than the list holds.
    """
    if (
        status != FINISHED_AIRING
        or episode_count is None
        or episode_count >= len(episodes)
    ):
        return list(episodes), availability

    return (
        list(episodes[:episode_count]),
        StreamAvailability(
            sub=availability.sub[:episode_count], dub=availability.dub[:episode_count]
        ),
    )


def _season_start(season: SeasonSummary) -> datetime | None:
    if not season.aired.start:
        return None
    try:
        start = datetime.fromisoformat(season.aired.start)
    except ValueError:
        return None
    return start if start.tzinfo else start.replace(tzinfo=UTC)


def order_seasons(seasons: Iterable[SeasonSummary]) -> list[SeasonSummary]:
    """Order sibling seasons by type (TV, Movie, OVA, Special, other) then air date.

    Seasons without a valid air date sort last within their type.
    """

    def _key(season: SeasonSummary) -> tuple[int, int, datetime]:
        start = _season_start(season)
        return (
            SEASON_TYPE_PRIORITY.get(season.type or "", OTHER_TYPE_PRIORITY),
            start is None,
            start or datetime.max.replace(tzinfo=UTC),
        )

    return sorted(seasons, key=_key)


def reconcile(
    jikan_episodes: Iterable[JikanEpisode],
    *,
    availability: StreamAvailability,
    status: str | None,
    episode_count: int | None,
    fallback_image: str | None,
    tvdb_episodes: Iterable[TVDBEpisode] | None = None,
    tmdb_episodes: Sequence[TMDBEpisode] | None = None,
    placeholder: EpisodeRecord | None = None,
) -> EpisodeList:
    """Build the reconciled episode list.

    TheTVDB enrichment takes precedence; TMDB enrichment is only applied when no
    TheTVDB episodes are given.

    Args:
        jikan_episodes (Iterable[JikanEpisode]): Primary provider episodes.
        availability (StreamAvailability): Streaming availability per language.
        status (str | None): Airing status of the title.
        episode_count (int | None): Declared episode count of the title.
        fallback_image (str | None): Image used for placeholder episodes.
        tvdb_episodes (Iterable[TVDBEpisode] | None): TheTVDB episodes, if any.
        tmdb_episodes (Sequence[TMDBEpisode] | None): TMDB episodes, if any.
        placeholder (EpisodeRecord | None): Single episode standing in for the
            title when no other source yields any episodes.

    Returns:
        EpisodeList: The episodes with sub/dub availability counts.
    """
    episodes = build_backbone(jikan_episodes)
    if tvdb_episodes is not None:
        episodes = apply_tvdb(episodes, tvdb_episodes)
    elif tmdb_episodes is not None:
        episodes = apply_tmdb(episodes, tmdb_episodes)

    episodes = fill_gaps(episodes, len(availability.sub), fallback_image)
    episodes, availability = truncate(episodes, availability, status, episode_count)
    if not episodes and placeholder is not None:
        episodes = [placeholder]

    return EpisodeList(
        total=len(episodes),
        subbed=len(availability.sub),
        dubbed=len(availability.dub),
        episodes=tuple(episodes),
    )

"""TTL cache-aside store for canonical records and stream links."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import NamedTuple

from pydantic import ValidationError
from sqlalchemy.sql import delete, select

from metachan import log
from metachan.config.database import db
from metachan.core.episodes import FINISHED_AIRING
from metachan.models.db.anime_cache import AnimeCache, CacheKind
from metachan.models.schemas.anime import CanonicalAnimeRecord, StreamLinks

__all__ = ["AnimeCacheStore", "CacheKey"]


class CacheKey(NamedTuple):
    """Identifies one cached document."""

    mal_id: int
    kind: CacheKind
    episode_number: int | None = None

    def __str__(self) -> str:
        """Human-readable representation used in logs."""
        suffix = f":{self.episode_number}" if self.episode_number is not None else ""
        return f"{self.kind}:{self.mal_id}{suffix}"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AnimeCacheStore:
    """Expiring document store backed by the `anime_cache` table.

    Reads only consider the newest row for a key and treat it as a miss once it
    has expired; expired rows are left in place until the key is written again.
    Writes replace every row for the key. There is no locking, so concurrent
    writers for one key resolve as last write wins.
    """

    ANIME_FINISHED_TTL_DAYS = 30
    ANIME_AIRING_TTL_DAYS = 1
    STREAM_TTL_DAYS = 7

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        """Initialize the cache store.

        Args:
            clock (Callable[[], datetime]): Returns the current aware datetime.
        """
        self.clock = clock

    @staticmethod
    def _matches(key: CacheKey):
        episode_clause = (
            AnimeCache.episode_number.is_(None)
            if key.episode_number is None
            else AnimeCache.episode_number == key.episode_number
        )
        return (
            AnimeCache.mal_id == key.mal_id,
            AnimeCache.kind == key.kind,
            episode_clause,
        )

    def get(self, key: CacheKey) -> str | None:
        """Get the payload stored for a key, if it has not expired.

        Args:
            key (CacheKey): The cache key.

        Returns:
            str | None: The serialized payload, or None on a miss.
        """
        with db() as ctx:
            row = ctx.session.scalar(
                select(AnimeCache)
                .where(*self._matches(key))
                .order_by(AnimeCache.created_at.desc(), AnimeCache.id.desc())
                .limit(1)
            )

        if row is None:
            log.debug(f"Cache miss $${{key: {key}}}$$")
            return None
        if row.expires_at <= self.clock():
            log.debug(f"Cache entry expired $${{key: {key}}}$$")
            return None
        return row.data

    def put(self, key: CacheKey, payload: str, ttl_days: float) -> None:
        """Replace the payload stored for a key.

        Args:
            key (CacheKey): The cache key.
            payload (str): Serialized payload.
            ttl_days (float): Days until the entry expires.
        """
        now = self.clock()
        with db() as ctx:
            ctx.session.execute(delete(AnimeCache).where(*self._matches(key)))
            ctx.session.add(
                AnimeCache(
                    mal_id=key.mal_id,
                    kind=key.kind,
                    episode_number=key.episode_number,
                    data=payload,
                    expires_at=now + timedelta(days=ttl_days),
                    created_at=now,
                )
            )
            ctx.session.commit()
        log.debug(f"Cached $${{key: {key}, ttl_days: {ttl_days}}}$$")

    def get_anime(self, mal_id: int) -> CanonicalAnimeRecord | None:
        """Get a cached canonical record."""
        key = CacheKey(mal_id, CacheKind.ANIME)
        payload = self.get(key)
        if payload is None:
            return None
        try:
            return CanonicalAnimeRecord.model_validate_json(payload)
        except ValidationError as e:
            log.warning(f"Discarding undecodable cache entry $${{key: {key}}}$$: {e}")
            return None

    def put_anime(self, record: CanonicalAnimeRecord) -> None:
        """Cache a canonical record for 30 days when finished, else for 1 day."""
        ttl_days = (
            self.ANIME_FINISHED_TTL_DAYS
            if record.status == FINISHED_AIRING
            else self.ANIME_AIRING_TTL_DAYS
        )
        self.put(
            CacheKey(record.id, CacheKind.ANIME),
            record.model_dump_json(by_alias=True),
            ttl_days,
        )

    def get_stream_links(self, mal_id: int, episode: int) -> StreamLinks | None:
        """Get cached stream links for one episode."""
        key = CacheKey(mal_id, CacheKind.STREAM, episode)
        payload = self.get(key)
        if payload is None:
            return None
        try:
            return StreamLinks.model_validate_json(payload)
        except ValidationError as e:
            log.warning(f"Discarding undecodable cache entry $${{key: {key}}}$$: {e}")
            return None

    def put_stream_links(
        self, mal_id: int, episode: int, links: StreamLinks, ttl_days: float = STREAM_TTL_DAYS
    ) -> None:
        """Cache stream links for one episode, for 7 days by default."""
        self.put(
            CacheKey(mal_id, CacheKind.STREAM, episode),
            links.model_dump_json(by_alias=True),
            ttl_days,
        )

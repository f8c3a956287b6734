"""Tests for the TTL cache-aside store."""

from datetime import UTC, datetime, timedelta

from sqlalchemy.sql import func, select

from metachan.core.cache import AnimeCacheStore, CacheKey
from metachan.core.episodes import FINISHED_AIRING
from metachan.models.db.anime_cache import AnimeCache, CacheKind
from metachan.models.schemas.anime import (
    CanonicalAnimeRecord,
    EpisodeList,
    StreamLink,
    StreamLinks,
    Titles,
)


class FakeClock:
    """Settable clock for expiry tests."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _record(status: str = FINISHED_AIRING) -> CanonicalAnimeRecord:
    return CanonicalAnimeRecord(
        id=21,
        titles=Titles(english="One Piece", romaji="One Piece"),
        status=status,
        episodes=EpisodeList(total=0),
    )


def _row_count(db, mal_id: int) -> int:
    with db as ctx:
        return ctx.session.scalar(
            select(func.count()).select_from(AnimeCache).where(AnimeCache.mal_id == mal_id)
        )


def test_put_then_get_returns_payload(in_memory_db):
    """A stored payload is returned until it expires."""
    store = AnimeCacheStore()
    key = CacheKey(1, CacheKind.ANIME)

    store.put(key, '{"a": 1}', ttl_days=1)

    assert store.get(key) == '{"a": 1}'


def test_get_misses_unknown_key(in_memory_db):
    """Unknown keys are a miss."""
    assert AnimeCacheStore().get(CacheKey(404, CacheKind.ANIME)) is None


def test_expired_entry_is_a_miss(in_memory_db):
    """Entries past their TTL are not served."""
    clock = FakeClock(datetime(2024, 1, 1, tzinfo=UTC))
    store = AnimeCacheStore(clock=clock)
    key = CacheKey(1, CacheKind.ANIME)
    store.put(key, "payload", ttl_days=1)

    clock.now += timedelta(hours=23)
    assert store.get(key) == "payload"

    clock.now += timedelta(hours=2)
    assert store.get(key) is None


def test_put_replaces_existing_rows(in_memory_db):
    """Writing a key twice leaves a single row holding the latest payload."""
    store = AnimeCacheStore()
    key = CacheKey(7, CacheKind.ANIME)

    store.put(key, "first", ttl_days=1)
    store.put(key, "second", ttl_days=1)

    assert store.get(key) == "second"
    assert _row_count(in_memory_db, 7) == 1


def test_stream_keys_are_per_episode(in_memory_db):
    """Stream links for different episodes are cached independently."""
    store = AnimeCacheStore()
    links = StreamLinks(sub=(StreamLink(url="https://a.test/1.m3u8", server="Hianime"),))

    store.put_stream_links(5, 1, links)

    assert store.get_stream_links(5, 1) == links
    assert store.get_stream_links(5, 2) is None
    assert store.get_anime(5) is None


def test_anime_ttl_depends_on_status(in_memory_db):
    """Finished titles are cached for 30 days, airing titles for one day."""
    clock = FakeClock(datetime(2024, 1, 1, tzinfo=UTC))
    store = AnimeCacheStore(clock=clock)

    store.put_anime(_record(FINISHED_AIRING))
    clock.now += timedelta(days=29)
    assert store.get_anime(21) == _record(FINISHED_AIRING)

    store.put_anime(_record("Currently Airing"))
    clock.now += timedelta(days=2)
    assert store.get_anime(21) is None


def test_undecodable_entry_is_discarded(in_memory_db):
    """A corrupt cached record is treated as a miss."""
    store = AnimeCacheStore()
    store.put(CacheKey(21, CacheKind.ANIME), "not json", ttl_days=1)

    assert store.get_anime(21) is None

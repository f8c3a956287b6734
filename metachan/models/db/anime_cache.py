"""Anime Cache Model Module."""

from datetime import UTC, datetime
from enum import StrEnum

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql.schema import Index
from sqlalchemy.sql.sqltypes import Enum, Integer, Text

from metachan.models.db.base import Base, UTCDateTime

__all__ = ["AnimeCache", "CacheKind"]


class CacheKind(StrEnum):
    """Kind of document held in the cache."""

    ANIME = "anime"
    STREAM = "stream"


class AnimeCache(Base):
    """Serialized, expiring cache document.

    A cache key is the triple (mal_id, kind, episode_number). Rows are replaced
    rather than updated; expired rows stay until the next write for the same key.
    """

    __tablename__ = "anime_cache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mal_id: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[CacheKind] = mapped_column(Enum(CacheKind), nullable=False)
    episode_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    data: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        Index("ix_anime_cache_key", "mal_id", "kind", "episode_number"),
    )

"""Identity Mapping Model Module."""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql.sqltypes import Integer, String

from metachan.models.db.base import Base

__all__ = ["IdentityMapping"]


class IdentityMapping(Base):
    """Cross-provider identifiers for a single title.

    Several rows may share a `thetvdb_id` when a TV series is split into multiple
    seasons or entries upstream.
    """

    __tablename__ = "identity_mapping"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    mal_id: Mapped[int | None] = mapped_column(Integer, index=True)
    anilist_id: Mapped[int | None] = mapped_column(Integer, index=True)
    kitsu_id: Mapped[int | None] = mapped_column(Integer)
    thetvdb_id: Mapped[int | None] = mapped_column(Integer, index=True)
    themoviedb_id: Mapped[int | None] = mapped_column(Integer)
    anidb_id: Mapped[int | None] = mapped_column(Integer)
    livechart_id: Mapped[int | None] = mapped_column(Integer, unique=True)
    anisearch_id: Mapped[int | None] = mapped_column(Integer)
    anime_planet_id: Mapped[str | None] = mapped_column(String)
    imdb_id: Mapped[str | None] = mapped_column(String)
    notify_moe_id: Mapped[str | None] = mapped_column(String)
    type: Mapped[str | None] = mapped_column(String)

    mal_anilist_composite: Mapped[str | None] = mapped_column(String, unique=True)

    @staticmethod
    def composite_key(mal_id: int | None, anilist_id: int | None) -> str | None:
        """Build the de-duplication key for a (MAL, AniList) pair.

        Returns:
            str | None: The composite key, or None unless both IDs are present.
        """
        if mal_id is None or anilist_id is None:
            return None
        return f"{mal_id}-{anilist_id}"

    def __repr__(self) -> str:
        """Return a string representation of the mapping."""
        return (
            f"<IdentityMapping(id={self.id}, mal_id={self.mal_id}, "
            f"kitsu_id={self.kitsu_id}, thetvdb_id={self.thetvdb_id})>"
        )

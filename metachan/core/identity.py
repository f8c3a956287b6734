"""Identity resolution over the cross-provider mapping table."""

from sqlalchemy.sql import select

from metachan.config.database import db
from metachan.models.db.identity_mapping import IdentityMapping

__all__ = ["IdentityResolver"]


class IdentityResolver:
    """Read-only lookups of cross-provider identifiers.

    Rows are detached from the session on return, so callers may keep them after
    the lookup completes.
    """

    def get_by_mal_id(self, mal_id: int) -> IdentityMapping | None:
        """Get the mapping for a MyAnimeList ID.

        Args:
            mal_id (int): The MyAnimeList ID.

        Returns:
            IdentityMapping | None: The first matching mapping, if any.
        """
        with db() as ctx:
            return ctx.session.scalar(
                select(IdentityMapping)
                .where(IdentityMapping.mal_id == mal_id)
                .order_by(IdentityMapping.id)
                .limit(1)
            )

    def get_by_anilist_id(self, anilist_id: int) -> IdentityMapping | None:
        """Get the mapping for an AniList ID.

        Args:
            anilist_id (int): The AniList ID.

        Returns:
            IdentityMapping | None: The first matching mapping, if any.
        """
        with db() as ctx:
            return ctx.session.scalar(
                select(IdentityMapping)
                .where(IdentityMapping.anilist_id == anilist_id)
                .order_by(IdentityMapping.id)
                .limit(1)
            )

    def get_siblings(self, thetvdb_id: int) -> list[IdentityMapping]:
        """Get every mapping that shares a TheTVDB series ID.

        Args:
            thetvdb_id (int): TheTVDB series ID.

        Returns:
            list[IdentityMapping]: Sibling mappings ordered by row id.
        """
        with db() as ctx:
            return list(
                ctx.session.scalars(
                    select(IdentityMapping)
                    .where(IdentityMapping.thetvdb_id == thetvdb_id)
                    .order_by(IdentityMapping.id)
                ).all()
            )

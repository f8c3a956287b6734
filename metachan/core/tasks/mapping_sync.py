"""Identity mapping sync from the Fribb anime-lists project."""

import json
from collections.abc import Sequence
from datetime import timedelta
from hashlib import md5
from itertools import batched
from typing import Any

import aiohttp
from pydantic import ValidationError
from sqlalchemy.orm import Session
from sqlalchemy.sql import or_, select

from metachan import __version__, log
from metachan.config.database import db
from metachan.core.tasks.manager import Task
from metachan.models.db.housekeeping import Housekeeping
from metachan.models.db.identity_mapping import IdentityMapping
from metachan.models.schemas.mapping import FribbEntry
from metachan.utils.fetch import fetch_json

__all__ = ["MappingSync"]

MAPPING_FIELDS = (
    "mal_id",
    "anilist_id",
    "kitsu_id",
    "thetvdb_id",
    "themoviedb_id",
    "anidb_id",
    "livechart_id",
    "anisearch_id",
    "anime_planet_id",
    "imdb_id",
    "notify_moe_id",
    "type",
)


class MappingSync:
    """Keeps the `identity_mapping` table in line with the upstream ID list.

    Rows are matched by LiveChart ID, then by the (MAL, AniList) composite key,
    and upserted in batches. The write phase is skipped when the downloaded list
    hashes the same as the last synced one.
    """

    TASK_NAME = "MappingSync"
    INTERVAL = timedelta(days=7)
    BATCH_SIZE = 100
    HASH_KEY = "mappings_hash"

    def __init__(self, mappings_url: str) -> None:
        """Initialize the mapping sync.

        Args:
            mappings_url (str): URL of `anime-list-full.json`.
        """
        self.mappings_url = mappings_url
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": f"Metachan/{__version__}"}
            )
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def as_task(self) -> Task:
        """Build the scheduler task that runs this sync."""
        return Task(name=self.TASK_NAME, interval=self.INTERVAL, execute=self.run)

    async def fetch_entries(self) -> list[dict[str, Any]]:
        """Download the raw ID list.

        Returns:
            list[dict[str, Any]]: The undecoded list entries.
        """
        session = await self._get_session()
        return await fetch_json(session, self.mappings_url, list[dict[str, Any]])

    async def run(self) -> None:
        """Download the ID list and upsert it into the database."""
        raw_entries = await self.fetch_entries()
        digest = md5(json.dumps(raw_entries, sort_keys=True).encode()).hexdigest()

        with db() as ctx:
            stored = ctx.session.get(Housekeeping, self.HASH_KEY)
            if stored is not None and stored.value == digest:
                log.info("Mappings are unchanged since the last sync, skipping")
                return

        entries: list[FribbEntry] = []
        invalid = 0
        for index, raw in enumerate(raw_entries):
            try:
                entries.append(FribbEntry.model_validate(raw))
            except ValidationError as e:
                invalid += 1
                log.warning(f"Skipping invalid mapping entry $${{index: {index}}}$$: {e}")

        inserted = updated = skipped = 0
        with db() as ctx:
            for batch in batched(entries, self.BATCH_SIZE, strict=False):
                batch_inserted, batch_updated, batch_skipped = self._upsert_batch(
                    ctx.session, batch
                )
                ctx.session.commit()
                inserted += batch_inserted
                updated += batch_updated
                skipped += batch_skipped

            ctx.session.merge(Housekeeping(key=self.HASH_KEY, value=digest))
            ctx.session.commit()

        log.success(
            f"Mapping sync complete: {inserted} inserted, {updated} updated, "
            f"{skipped} conflicting, {invalid} invalid"
        )

    def _upsert_batch(
        self, session: Session, batch: Sequence[FribbEntry]
    ) -> tuple[int, int, int]:
        """Insert or update one batch of entries.

        Returns:
            tuple[int, int, int]: Counts of inserted, updated and skipped entries.
        """
        livechart_ids = {e.livechart_id for e in batch if e.livechart_id is not None}
        composites = {
            key
            for e in batch
            if (key := IdentityMapping.composite_key(e.mal_id, e.anilist_id))
        }

        existing = session.scalars(
            select(IdentityMapping).where(
                or_(
                    IdentityMapping.livechart_id.in_(livechart_ids),
                    IdentityMapping.mal_anilist_composite.in_(composites),
                )
            )
        ).all()
        by_livechart = {r.livechart_id: r for r in existing if r.livechart_id is not None}
        by_composite = {
            r.mal_anilist_composite: r
            for r in existing
            if r.mal_anilist_composite is not None
        }

        inserted = updated = skipped = 0
        for entry in batch:
            composite = IdentityMapping.composite_key(entry.mal_id, entry.anilist_id)
            row = by_livechart.get(entry.livechart_id) if entry.livechart_id else None
            composite_owner = by_composite.get(composite) if composite else None
            if row is None:
                row = composite_owner
            elif composite_owner is not None and composite_owner is not row:
                log.warning(
                    f"Skipping mapping entry $${{livechart_id: {entry.livechart_id}, "
                    f"composite: {composite}}}$$ that matches two existing rows"
                )
                skipped += 1
                continue

            if row is None:
                row = IdentityMapping()
                session.add(row)
                inserted += 1
            else:
                updated += 1
                if row.mal_anilist_composite and row.mal_anilist_composite != composite:
                    by_composite.pop(row.mal_anilist_composite, None)
                if row.livechart_id is not None and row.livechart_id != entry.livechart_id:
                    by_livechart.pop(row.livechart_id, None)

            for field in MAPPING_FIELDS:
                setattr(row, field, getattr(entry, field))
            row.mal_anilist_composite = composite

            if row.livechart_id is not None:
                by_livechart[row.livechart_id] = row
            if composite:
                by_composite[composite] = row

        session.flush()
        return inserted, updated, skipped

"""Tests for identity resolution."""

import pytest

from metachan.core.identity import IdentityResolver
from metachan.models.db.identity_mapping import IdentityMapping


@pytest.fixture
def resolver(in_memory_db) -> IdentityResolver:
    """IdentityResolver over a small mapping table."""
    with in_memory_db as ctx:
        ctx.session.add_all(
            [
                IdentityMapping(mal_id=16498, anilist_id=16498, kitsu_id=7442, thetvdb_id=267440),
                IdentityMapping(mal_id=25777, anilist_id=20958, kitsu_id=8671, thetvdb_id=267440),
                IdentityMapping(mal_id=99999, anilist_id=None, kitsu_id=None),
                IdentityMapping(mal_id=16498, anilist_id=1, kitsu_id=1),
            ]
        )
        ctx.session.commit()
    return IdentityResolver()


def test_get_by_mal_id_returns_first_row(resolver):
    """Duplicate MAL IDs resolve to the earliest row."""
    mapping = resolver.get_by_mal_id(16498)

    assert mapping is not None
    assert mapping.kitsu_id == 7442


def test_get_by_anilist_id(resolver):
    """AniList IDs resolve to their mapping."""
    mapping = resolver.get_by_anilist_id(20958)

    assert mapping is not None
    assert mapping.mal_id == 25777


def test_unknown_ids_resolve_to_none(resolver):
    """Unknown IDs are not an error."""
    assert resolver.get_by_mal_id(1) is None
    assert resolver.get_by_anilist_id(404) is None


def test_get_siblings_shares_thetvdb_id(resolver):
    """Siblings are every mapping of the same TheTVDB series, in row order."""
    siblings = resolver.get_siblings(267440)

    assert [s.mal_id for s in siblings] == [16498, 25777]
    assert resolver.get_siblings(1) == []

"""Tests for Crunchyroll logo derivation."""

import pytest

import metachan.core.providers.logos as logos_module
from metachan.core.providers import LogoResolver
from metachan.exceptions import UpstreamUnavailableError
from metachan.models.schemas.jikan import JikanLink


@pytest.fixture
def resolver(monkeypatch: pytest.MonkeyPatch) -> LogoResolver:
    """LogoResolver that never opens a real session."""
    logo_resolver = LogoResolver()

    async def _no_session():
        return None

    monkeypatch.setattr(logo_resolver, "_get_session", _no_session)
    return logo_resolver


def test_build_logos_covers_every_width():
    """Each size points at the keyart logo at its own width."""
    logos = LogoResolver.build_logos("GG5H5XQX4")

    assert logos.small.endswith("width=320/keyart/GG5H5XQX4-title_logo-en-us")
    assert "width=800" in logos.xlarge


@pytest.mark.asyncio
async def test_series_id_read_from_link(resolver):
    """Series URLs are used directly."""
    streaming = [
        JikanLink(name="Netflix", url="https://www.netflix.com/title/1"),
        JikanLink(name="Crunchyroll", url="https://www.crunchyroll.com/series/GG5H5XQX4"),
    ]

    logos = await resolver.get_logos(streaming)

    assert logos == LogoResolver.build_logos("GG5H5XQX4")


@pytest.mark.asyncio
async def test_redirects_are_followed(resolver, monkeypatch):
    """Short links are resolved to their final series page."""

    async def _final_url(session, url, **kwargs):
        return "https://www.crunchyroll.com/series/G6NQ5DWZ6/frieren"

    monkeypatch.setattr(logos_module, "fetch_final_url", _final_url)

    logos = await resolver.get_logos(
        [JikanLink(name="Crunchyroll", url="http://www.crunchyroll.com/frieren")]
    )

    assert logos == LogoResolver.build_logos("G6NQ5DWZ6")


@pytest.mark.asyncio
async def test_failures_yield_no_logos(resolver, monkeypatch):
    """Missing links and unreachable pages produce no logos."""

    async def _unreachable(session, url, **kwargs):
        raise UpstreamUnavailableError("down", url=url)

    monkeypatch.setattr(logos_module, "fetch_final_url", _unreachable)

    assert await resolver.get_logos([]) is None
    assert (
        await resolver.get_logos(
            [JikanLink(name="Crunchyroll", url="http://www.crunchyroll.com/frieren")]
        )
        is None
    )

"""Title logo derivation from Crunchyroll series pages."""

import re
from collections.abc import Iterable

import aiohttp

from metachan import log
from metachan.exceptions import MetachanError
from metachan.models.schemas.anime import Logos
from metachan.models.schemas.jikan import JikanLink
from metachan.utils.fetch import fetch_final_url

__all__ = ["LogoResolver"]

LOGO_TEMPLATE = (
    "https://imgsrv.crunchyroll.com/cdn-cgi/image/fit=contain,format=png,"
    "quality=85,width={width}/keyart/{series_id}-title_logo-en-us"
)
LOGO_WIDTHS = {"small": 320, "medium": 480, "large": 600, "xlarge": 800}

_SERIES_ID = re.compile(r"/series/([A-Z0-9]+)", re.IGNORECASE)


class LogoResolver:
    """Derives pre-sized logo URLs for titles streamed on Crunchyroll.

    Logos are cosmetic, so every failure is logged and turned into None.
    """

    def __init__(self) -> None:
        """Initialize the logo resolver."""
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    @staticmethod
    def series_id(url: str) -> str | None:
        """Extract the Crunchyroll series ID from a series page URL."""
        match = _SERIES_ID.search(url)
        return match.group(1) if match else None

    @staticmethod
    def build_logos(series_id: str) -> Logos:
        """Build the logo URLs for every supported width."""
        return Logos(
            **{
                size: LOGO_TEMPLATE.format(width=width, series_id=series_id)
                for size, width in LOGO_WIDTHS.items()
            }
        )

    async def get_logos(self, streaming: Iterable[JikanLink]) -> Logos | None:
        """Derive logos from a title's streaming links.

        Args:
            streaming (Iterable[JikanLink]): Streaming services listed for the title.

        Returns:
            Logos | None: Logo URLs, or None if they cannot be derived.
        """
        entry = next(
            (link for link in streaming if link.name.lower() == "crunchyroll"), None
        )
        if entry is None:
            return None

        try:
            series_id = self.series_id(entry.url)
            if series_id is None:
                session = await self._get_session()
                final_url = await fetch_final_url(session, entry.url)
                series_id = self.series_id(final_url)
        except MetachanError as e:
            log.warning(f"Failed to resolve Crunchyroll page $$'{entry.url}'$$: {e}")
            return None

        if series_id is None:
            log.debug(f"No Crunchyroll series ID in $$'{entry.url}'$$")
            return None
        return self.build_logos(series_id)

"""Clients for the third-party providers Metachan aggregates."""

from metachan.core.providers.jikan import JikanClient
from metachan.core.providers.kitsu import KitsuClient
from metachan.core.providers.logos import LogoResolver
from metachan.core.providers.stream import StreamClient
from metachan.core.providers.tmdb import TMDBClient
from metachan.core.providers.tvdb import TVDBAuthToken, TVDBClient

__all__ = [
    "JikanClient",
    "KitsuClient",
    "LogoResolver",
    "StreamClient",
    "TMDBClient",
    "TVDBAuthToken",
    "TVDBClient",
]

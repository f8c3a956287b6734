"""Models for Metachan database tables."""

from metachan.models.db.anime_cache import AnimeCache, CacheKind
from metachan.models.db.base import Base
from metachan.models.db.housekeeping import Housekeeping
from metachan.models.db.identity_mapping import IdentityMapping
from metachan.models.db.task_log import TaskLog, TaskOutcome

__all__ = [
    "AnimeCache",
    "Base",
    "CacheKind",
    "Housekeeping",
    "IdentityMapping",
    "TaskLog",
    "TaskOutcome",
]

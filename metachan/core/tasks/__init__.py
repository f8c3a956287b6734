"""Background tasks and their scheduler."""

from metachan.core.tasks.manager import Task, TaskManager, TaskStatus
from metachan.core.tasks.mapping_sync import MappingSync

__all__ = ["MappingSync", "Task", "TaskManager", "TaskStatus"]

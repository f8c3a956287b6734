"""Task Log Model Module."""

from datetime import UTC, datetime
from enum import StrEnum

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql.sqltypes import Enum, Integer, String, Text

from metachan.models.db.base import Base, UTCDateTime

__all__ = ["TaskLog", "TaskOutcome"]


class TaskOutcome(StrEnum):
    """Outcome of a single task execution."""

    SUCCESS = "success"
    FAILURE = "failure"


class TaskLog(Base):
    """Append-only record of scheduled task executions."""

    __tablename__ = "task_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    status: Mapped[TaskOutcome] = mapped_column(Enum(TaskOutcome), nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    executed_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC), index=True
    )

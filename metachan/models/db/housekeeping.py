"""Housekeeping Model Module."""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql.sqltypes import String

from metachan.models.db.base import Base

__all__ = ["Housekeeping"]


class Housekeeping(Base):
    """Model for the Housekeeping table.

    Stores small key/value facts such as the hash of the last synced mapping list.
    """

    __tablename__ = "house_keeping"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str | None] = mapped_column(String, nullable=True)

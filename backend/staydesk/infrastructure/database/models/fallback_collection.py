"""SQLAlchemy ORM model for the local fallback store."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from staydesk.infrastructure.database.base import Base


class FallbackCollectionModel(Base):
    """ORM model — one row per resource kind, entries kept as a JSON array.

    ``last_local_id`` is the high-water mark of issued local ids, kept even
    after the entries that used them are deleted so ids are never reused.
    """

    __tablename__ = "fallback_collections"

    resource_kind: Mapped[str] = mapped_column(String(32), primary_key=True)
    entries: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    last_local_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<FallbackCollectionModel(kind='{self.resource_kind}', "
            f"entries={len(self.entries or [])}, last_local_id={self.last_local_id})>"
        )

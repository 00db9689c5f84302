"""SQLAlchemy ORM base for the console's local tables."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (fallback records, login state)."""

    pass

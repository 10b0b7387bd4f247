from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all Stocky ORM models."""
    pass

"""Centralized SQLAlchemy declarative base for all ORM models.

Using a single base ensures all models are registered with the same
metadata registry, so ``create_tables`` sees the complete schema.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models in the A2A runtime."""

    pass

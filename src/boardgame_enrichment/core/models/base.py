"""SQLAlchemy declarative base for all ORM models.

Provides:
- Base: the DeclarativeBase subclass all models inherit from
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Shared declarative base for the enrichment pipeline models."""

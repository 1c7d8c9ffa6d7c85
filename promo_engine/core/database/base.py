"""Declarative base shared by every ORM table of the promotions engine."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base; ``Base.metadata`` drives table creation."""

"""Declarative base shared by all ORM models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    # models annotate columns with plain Python types, not Mapped[]
    __allow_unmapped__ = True

"""
Migration ledger row stored inside each tenant database
"""

from sqlmodel import Field, SQLModel
from typing import Optional


class MigrationRecord(SQLModel, table=True):
    """A migration recorded as applied; rows are never updated"""

    __tablename__ = "migrations"

    id: Optional[int] = Field(default=None, primary_key=True)
    migration: str = Field(unique=True, max_length=255)
    batch: int

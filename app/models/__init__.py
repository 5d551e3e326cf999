"""
Database models for AllergyCare.

Import all models here so they are registered on Base.metadata.
"""

from app.database import Base
from app.models.store_entry import StoreEntry

__all__ = [
    "Base",
    "StoreEntry",
]

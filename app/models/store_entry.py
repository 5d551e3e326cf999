from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func

from app.database import Base


class StoreEntry(Base):
    """One logical key of the record store with its JSON-encoded value."""

    __tablename__ = "store_entries"

    key = Column(String(64), primary_key=True)  # e.g. "ALLERGYCARE_FOOD_LOGS"
    value = Column(Text, nullable=False)  # JSON document (array or object)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

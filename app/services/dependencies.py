"""FastAPI dependencies for the record store."""
from fastapi import Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.services.record_store import RecordStore, SqlRecordStore


def get_record_store(db: Session = Depends(get_db)) -> RecordStore:
    """Request-scoped record store on the request's database session."""
    return SqlRecordStore(db)

# pms_client/models/cache.py
from sqlalchemy import Column, String, Text, DateTime, func
from pms_client.database import Base

class CacheEntry(Base):
    __tablename__ = "cache_entries"

    key = Column(String, primary_key=True)  # "entityType:key"
    value = Column(Text, nullable=False)    # JSON document
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

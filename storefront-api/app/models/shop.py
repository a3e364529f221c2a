from sqlalchemy import JSON, Column, DateTime, Text
from sqlalchemy.dialects.postgresql import JSONB

from app.database import Base


class Shop(Base):
    __tablename__ = "shops"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    config = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True))

# summary_gateway/models.py - setup the tables
from sqlalchemy import Column, Text, TIMESTAMP
from sqlalchemy.sql import func

from .db import Base


class SummaryObject(Base):
    __tablename__ = "summary_objects"
    key = Column(Text, primary_key=True)
    body = Column(Text, nullable=False)
    content_type = Column(Text, nullable=False)
    updated_ts = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)

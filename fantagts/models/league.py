from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from sqlalchemy.sql import func
from ..database import Base


class MatchResult(Base):
    __tablename__ = "match_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    turn = Column(Integer, nullable=False)
    team1_number = Column(Integer, nullable=False)
    team2_number = Column(Integer, nullable=False)
    result = Column(String(16))  # e.g. '1-0', '1-1'
    winner_slot_ids = Column(JSON, default=list)
    entered_by = Column(String(128))
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ConfigEntry(Base):
    __tablename__ = "configuration"

    key = Column(String(64), primary_key=True)
    value = Column(Text)
    description = Column(Text)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

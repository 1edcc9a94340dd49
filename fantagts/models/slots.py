from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class Slot(Base):
    __tablename__ = "slots"

    id = Column(String(64), primary_key=True)  # e.g. 'M1_RED'
    team_number = Column(Integer, ForeignKey("teams.number"), nullable=False)
    color = Column(String(32), nullable=False)
    position = Column(String(4), nullable=False, index=True)
    current_player = Column(String(128))
    total_score = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    team = relationship("Team", back_populates="slots")


class Substitution(Base):
    __tablename__ = "substitutions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slot_id = Column(String(64), ForeignKey("slots.id", ondelete="CASCADE"), nullable=False)
    old_player = Column(String(128), nullable=False)
    new_player = Column(String(128), nullable=False)
    from_turn = Column(Integer)
    reason = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

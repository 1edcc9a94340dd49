from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from ..database import Base


class Participant(Base):
    __tablename__ = "participants"

    id = Column(String(64), primary_key=True)  # slug of the display name
    display_name = Column(String(128), nullable=False)
    email = Column(String(128))
    phone = Column(String(32))
    credits = Column(Integer, nullable=False, default=2000)
    total_score = Column(Integer, nullable=False, default=0)
    season = Column(String(16))  # game session the participant enrolled in
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

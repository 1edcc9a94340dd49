from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base

# Seven male and three female positions, in draft order
POSITIONS = ["M1", "M2", "M3", "M4", "M5", "M6", "M7", "F1", "F2", "F3"]


class Team(Base):
    """Club team: a color and one named player per position."""
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    number = Column(Integer, unique=True, nullable=False)
    color = Column(String(32), nullable=False)
    m1 = Column(String(128))
    m2 = Column(String(128))
    m3 = Column(String(128))
    m4 = Column(String(128))
    m5 = Column(String(128))
    m6 = Column(String(128))
    m7 = Column(String(128))
    f1 = Column(String(128))
    f2 = Column(String(128))
    f3 = Column(String(128))
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    slots = relationship("Slot", back_populates="team")

    def player_for(self, position: str):
        return getattr(self, position.lower())

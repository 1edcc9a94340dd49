from sqlalchemy import Column, Integer, String, Boolean, Float, DateTime, ForeignKey
from sqlalchemy.sql import func
from ..database import Base


class AuctionRecord(Base):
    """One row per slot win. Append-only outside of resets."""
    __tablename__ = "auction_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    round = Column(String(8), nullable=False, index=True)
    participant_id = Column(String(64), ForeignKey("participants.id"), nullable=False)
    slot_id = Column(String(64), ForeignKey("slots.id"), nullable=False)
    bid_amount = Column(Integer, nullable=False)
    final_cost = Column(Integer, nullable=False)
    premium = Column(Float, nullable=False, default=0.0)
    winner = Column(Boolean, nullable=False, default=True)
    shared = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

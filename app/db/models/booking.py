from sqlalchemy import Column, Integer, String, ForeignKey, Date, Float, Numeric, DateTime, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from app.db.base import Base


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_provider_status", "provider_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # parties never change after creation
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    provider_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    service_category = Column(String, nullable=False)
    description = Column(String, nullable=False)

    booking_date = Column(Date, nullable=False, index=True)
    booking_time = Column(String, nullable=False)

    budget = Column(Numeric(10, 2), nullable=False)
    # set at settlement only, never decreases
    final_amount = Column(Numeric(10, 2), nullable=False, default=0)

    address = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    status = Column(String, nullable=False, default="pending", index=True)

    accepted_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(String, nullable=True)

    customer_notes = Column(String, nullable=True)
    provider_notes = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # relationships
    customer = relationship("User", foreign_keys=[customer_id])
    provider = relationship("User", foreign_keys=[provider_id])

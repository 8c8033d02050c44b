# app/db/models/payment.py
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String, text
from sqlalchemy.orm import relationship

from app.db.base import Base


class Payment(Base):
    """
    One settlement attempt for a booking.
    amount == commission + provider_payout, all rounded to cents.
    At most one payment per booking may ever reach "completed"; the partial
    unique index enforces that even when two settlements race.
    """
    __tablename__ = "payments"
    __table_args__ = (
        Index(
            "uq_payments_completed_booking",
            "booking_id",
            unique=True,
            sqlite_where=text("status = 'completed'"),
            postgresql_where=text("status = 'completed'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    provider_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    commission = Column(Numeric(10, 2), nullable=False)
    provider_payout = Column(Numeric(10, 2), nullable=False)

    payment_method = Column(String, nullable=False)
    transaction_id = Column(String, nullable=False, unique=True, index=True)
    status = Column(String, nullable=False, default="pending", index=True)

    payment_date = Column(DateTime, nullable=True)
    payout_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    booking = relationship("Booking", foreign_keys=[booking_id])
    customer = relationship("User", foreign_keys=[customer_id])
    provider = relationship("User", foreign_keys=[provider_id])

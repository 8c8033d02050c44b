"""Settlement - commission split, payment records and provider earnings"""

import logging
import secrets
import time
from collections import namedtuple
from datetime import datetime
from decimal import ROUND_HALF_UP
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import COMMISSION_RATE
from app.core.constants import PAYMENT_TRANSITIONS, BookingStatus, NotificationType, PaymentStatus, UserRole
from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.db.models.booking import Booking
from app.db.models.payment import Payment
from app.db.models.user import User
from app.services.common import CENT, require_party, require_positive, require_text, round2, to_decimal
from app.services.notifications import NotificationDispatcher, dispatch

logger = logging.getLogger(__name__)

Split = namedtuple("Split", ["commission", "payout"])


def calculate_split(amount, commission_rate=COMMISSION_RATE) -> Split:
    """
    commission = round_half_up(amount * rate, 2); payout = amount - commission.
    The payout is derived by subtraction so the two always add up to amount.
    """
    amount = round2(require_positive(amount, "Amount"))
    rate = to_decimal(commission_rate, "Commission rate")
    if rate < 0 or rate > 1:
        raise ValidationError("Commission rate must be between 0 and 1")
    commission = (amount * rate).quantize(CENT, rounding=ROUND_HALF_UP)
    return Split(commission=commission, payout=amount - commission)


def generate_transaction_id() -> str:
    # millisecond timestamp + 8 random hex chars; the column is unique as well
    return f"TXN{int(time.time() * 1000)}{secrets.token_hex(4).upper()}"


class SettlementService:
    def __init__(self, db: Session, notifier: Optional[NotificationDispatcher] = None):
        self.db = db
        self.notifier = notifier

    # --------------------------
    # Payment records
    # --------------------------

    def _build_payment(self, booking_id: int, customer_id: int, provider_id: int, amount, method: str) -> Payment:
        """Validate and add a PENDING payment to the session without committing."""
        method = require_text(method, "Payment method")
        amount = round2(require_positive(amount, "Amount"))
        split = calculate_split(amount)

        payment = Payment(
            booking_id=booking_id,
            customer_id=customer_id,
            provider_id=provider_id,
            amount=amount,
            commission=split.commission,
            provider_payout=split.payout,
            payment_method=method,
            transaction_id=generate_transaction_id(),
            status=PaymentStatus.PENDING,
        )
        self.db.add(payment)
        return payment

    def create_payment(self, booking_id: int, customer_id: int, provider_id: int, amount, method: str) -> Payment:
        payment = self._build_payment(booking_id, customer_id, provider_id, amount, method)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.error(f"Duplicate transaction id generated for booking {booking_id}")
            raise ConflictError("Transaction id already exists, retry the payment")
        self.db.refresh(payment)
        logger.info(f"Payment {payment.transaction_id} created for booking {booking_id}: {payment.amount}")
        return payment

    def _write_status(self, payment: Payment, current: str, new_status: str) -> int:
        """
        Conditional status UPDATE plus, on completion, the provider credit and
        the booking's final amount. Returns the number of payment rows moved.
        Does not commit; may raise IntegrityError from the partial unique index.
        """
        now = datetime.utcnow()
        values = {"status": new_status}
        if new_status in (PaymentStatus.COMPLETED, PaymentStatus.FAILED):
            values["payment_date"] = now
        if new_status == PaymentStatus.COMPLETED:
            # no escrow: the provider is paid out as soon as the payment clears
            values["payout_date"] = now

        updated = (
            self.db.query(Payment)
            .filter(Payment.id == payment.id, Payment.status == current)
            .update(values, synchronize_session=False)
        )
        if updated == 1 and new_status == PaymentStatus.COMPLETED:
            self.db.query(User).filter(User.id == payment.provider_id).update(
                {User.total_earnings: User.total_earnings + payment.provider_payout},
                synchronize_session=False,
            )
            self.db.query(Booking).filter(
                Booking.id == payment.booking_id,
                Booking.final_amount < payment.amount,
            ).update({Booking.final_amount: payment.amount}, synchronize_session=False)
        return updated

    def finalize_settlement(self, transaction_id: str, new_status: str) -> Payment:
        """
        Move a payment to its final status. Completing it credits the provider
        payout (atomic increment) and records the booking's final amount.
        Finalizing again with the same status is a no-op.
        """
        if new_status not in PaymentStatus.ALL:
            raise ValidationError(f"Unknown payment status: {new_status}")

        payment = self.db.query(Payment).filter(Payment.transaction_id == transaction_id).first()
        if not payment:
            raise NotFoundError("Payment not found")

        if payment.status == new_status:
            return payment

        current = payment.status
        if new_status not in PAYMENT_TRANSITIONS.get(current, set()):
            raise InvalidStateError(f"Payment cannot move from {current} to {new_status}")

        try:
            updated = self._write_status(payment, current, new_status)
        except IntegrityError:
            # partial unique index: the booking already has a completed payment
            self.db.rollback()
            logger.warning(f"Booking {payment.booking_id} already has a completed payment")
            raise ConflictError("Payment already processed for this booking")

        if updated != 1:
            # someone else finalized first
            self.db.rollback()
            self.db.refresh(payment)
            if payment.status == new_status:
                return payment
            raise InvalidStateError(f"Payment is already {payment.status}")

        self.db.commit()
        self.db.refresh(payment)
        logger.info(f"Payment {transaction_id}: {current} -> {new_status}")
        return payment

    # --------------------------
    # Processing a completed booking
    # --------------------------

    def completed_payment_for(self, booking_id: int) -> Optional[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.booking_id == booking_id, Payment.status == PaymentStatus.COMPLETED)
            .first()
        )

    def process_payment(self, booking_id: int, customer_id: int, method: str) -> Payment:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFoundError("Booking not found")
        if booking.customer_id != customer_id:
            raise ForbiddenError("You do not have access to this booking")
        if booking.status != BookingStatus.COMPLETED:
            raise InvalidStateError("Payment can only be processed for completed bookings")
        if self.completed_payment_for(booking.id):
            logger.warning(f"Duplicate settlement attempt for booking {booking.id}")
            raise ConflictError("Payment already processed")

        amount = booking.final_amount if booking.final_amount and booking.final_amount > 0 else booking.budget
        payment = self._build_payment(booking.id, customer_id, booking.provider_id, amount, method)

        # no gateway: the payment is inserted and completed in one transaction
        try:
            self.db.flush()
            self._write_status(payment, PaymentStatus.PENDING, PaymentStatus.COMPLETED)
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"Concurrent settlement of booking {booking_id} lost the race")
            raise ConflictError("Payment already processed")

        self.db.commit()
        self.db.refresh(payment)
        logger.info(f"Payment {payment.transaction_id} settled booking {booking_id}: {payment.amount}")

        dispatch(
            self.notifier,
            customer_id,
            NotificationType.PAYMENT,
            "Payment Successful",
            f"Your payment of ${payment.amount} has been processed successfully",
            "/customer/payments",
        )
        dispatch(
            self.notifier,
            booking.provider_id,
            NotificationType.PAYMENT,
            "Payment Received",
            f"You have received a payment of ${payment.provider_payout} for a completed service",
            "/provider/earnings",
        )
        return payment

    # --------------------------
    # Reads
    # --------------------------

    def get(self, payment_id: int, user_id: int, role: str) -> Payment:
        payment = self.db.query(Payment).filter(Payment.id == payment_id).first()
        if not payment:
            raise NotFoundError("Payment not found")
        require_party(payment, user_id, role, what="payment")
        return payment

    def receipt(self, payment_id: int, customer_id: int) -> Payment:
        payment = self.db.query(Payment).filter(Payment.id == payment_id).first()
        if not payment:
            raise NotFoundError("Payment not found")
        if payment.customer_id != customer_id:
            raise ForbiddenError("Only the paying customer can download the receipt")
        return payment

    def history(self, user_id: int, role: str, limit: int = 10, skip: int = 0) -> list[Payment]:
        query = self.db.query(Payment)
        if role == UserRole.CUSTOMER:
            query = query.filter(Payment.customer_id == user_id)
        elif role == UserRole.PROVIDER:
            query = query.filter(Payment.provider_id == user_id)
        else:
            raise ForbiddenError("Only customers and providers have payment history")
        return query.order_by(Payment.created_at.desc(), Payment.id.desc()).offset(skip).limit(limit).all()

    def earnings_summary(self, provider_id: int, start: datetime, end: datetime) -> dict:
        if start > end:
            raise ValidationError("start must be before end")
        total, commission, payout, count = (
            self.db.query(
                func.coalesce(func.sum(Payment.amount), 0),
                func.coalesce(func.sum(Payment.commission), 0),
                func.coalesce(func.sum(Payment.provider_payout), 0),
                func.count(Payment.id),
            )
            .filter(
                Payment.provider_id == provider_id,
                Payment.status == PaymentStatus.COMPLETED,
                Payment.payment_date >= start,
                Payment.payment_date <= end,
            )
            .one()
        )
        return {
            "provider_id": provider_id,
            "start": start,
            "end": end,
            "total_earnings": round2(total),
            "total_commission": round2(commission),
            "total_payout": round2(payout),
            "transaction_count": int(count or 0),
        }

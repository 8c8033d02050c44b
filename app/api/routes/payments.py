# app/api/routes/payments.py
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_settlement_service
from app.core.security import get_current_user, require_customer, require_provider
from app.db.models.user import User
from app.schemas.payment import (
    EarningsSummary,
    PaymentActionResponse,
    PaymentProcess,
    PaymentReceipt,
    PaymentResponse,
)
from app.services.settlement_service import SettlementService

router = APIRouter(prefix="/payments", tags=["payments"])


# Customer pays for a completed booking (settles immediately)
@router.post("/process", response_model=PaymentActionResponse)
def process_payment(
    payload: PaymentProcess,
    service: SettlementService = Depends(get_settlement_service),
    current_user: User = Depends(require_customer),
):
    payment = service.process_payment(payload.booking_id, current_user.id, payload.payment_method)
    return PaymentActionResponse(
        message="Payment processed successfully",
        payment=PaymentResponse.model_validate(payment),
    )


# Own payment history (as customer or provider)
@router.get("/me", response_model=List[PaymentResponse])
def my_payments(
    limit: int = Query(10, ge=1, le=100),
    skip: int = Query(0, ge=0),
    service: SettlementService = Depends(get_settlement_service),
    current_user: User = Depends(get_current_user),
):
    return service.history(current_user.id, current_user.role, limit=limit, skip=skip)


# Provider earnings over a window (defaults to the current month)
@router.get("/earnings/summary", response_model=EarningsSummary)
def earnings_summary(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    service: SettlementService = Depends(get_settlement_service),
    current_user: User = Depends(require_provider),
):
    now = datetime.utcnow()
    if start is None:
        start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if end is None:
        end = now + timedelta(seconds=1)
    return service.earnings_summary(current_user.id, start, end)


@router.get("/{payment_id}", response_model=PaymentResponse)
def view_payment(
    payment_id: int,
    service: SettlementService = Depends(get_settlement_service),
    current_user: User = Depends(get_current_user),
):
    return service.get(payment_id, current_user.id, current_user.role)


@router.get("/{payment_id}/receipt", response_model=PaymentReceipt)
def payment_receipt(
    payment_id: int,
    service: SettlementService = Depends(get_settlement_service),
    current_user: User = Depends(require_customer),
):
    payment = service.receipt(payment_id, current_user.id)
    return PaymentReceipt(
        transaction_id=payment.transaction_id,
        status=payment.status,
        payment_date=payment.payment_date,
        payment_method=payment.payment_method,
        amount=float(payment.amount),
        commission=float(payment.commission),
        provider_payout=float(payment.provider_payout),
        service_category=payment.booking.service_category,
        booking_date=payment.booking.booking_date,
        customer_name=payment.customer.name,
        customer_email=payment.customer.email,
        provider_name=payment.provider.name,
    )

# app/schemas/payment.py
from pydantic import BaseModel
from typing import Optional
from datetime import date, datetime


class PaymentProcess(BaseModel):
    booking_id: int
    payment_method: str


class PaymentResponse(BaseModel):
    id: int
    booking_id: int
    customer_id: int
    provider_id: int
    amount: float
    commission: float
    provider_payout: float
    payment_method: str
    transaction_id: str
    status: str
    payment_date: Optional[datetime] = None
    payout_date: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentActionResponse(BaseModel):
    success: bool = True
    message: str
    payment: PaymentResponse


# Read-only projection used for printable receipts
class PaymentReceipt(BaseModel):
    transaction_id: str
    status: str
    payment_date: Optional[datetime]
    payment_method: str
    amount: float
    commission: float
    provider_payout: float
    service_category: str
    booking_date: date
    customer_name: str
    customer_email: str
    provider_name: str


class EarningsSummary(BaseModel):
    provider_id: int
    start: datetime
    end: datetime
    total_earnings: float
    total_commission: float
    total_payout: float
    transaction_count: int

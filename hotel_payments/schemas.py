from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class BookingRequest(BaseModel):
    total_amount: Decimal
    currency: str = "INR"
    reference: Optional[str] = None


class OrderRequest(BaseModel):
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    receipt: Optional[str] = None
    booking_id: Optional[str] = None


class VerificationRequest(BaseModel):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None


class RefundCreateRequest(BaseModel):
    payment_id: Optional[str] = None
    amount: Optional[Decimal] = None
    reason: Optional[str] = None
    notes: dict[str, Any] = Field(default_factory=dict)


class ReconcileRequest(BaseModel):
    payment_id: Optional[str] = None


class RefundRequestSubmission(BaseModel):
    booking_id: str
    reason: str = "Booking cancellation"
    description: str = ""
    contact_phone: str
    preferred_refund_method: str = "original_payment_method"


class RefundRequestReview(BaseModel):
    status: Literal["approved", "rejected"]
    admin_notes: Optional[str] = None

from typing import Optional

from fastapi import APIRouter, Depends, Response

from hotel_payments.auth import actor_from_claims, verify_token
from hotel_payments.bookings import check_payable, create_booking, get_booking, link_order
from hotel_payments.config import get_settings
from hotel_payments.database import SessionLocal
from hotel_payments.gateway import PaymentGatewayClient, get_gateway
from hotel_payments.payments import confirm_booking, create_order, verify_payment
from hotel_payments.refund_requests import get_existing_request, review_request, submit_request
from hotel_payments.refunds import RefundOrchestrator, lookup_refunds
from hotel_payments.schemas import (
    BookingRequest,
    OrderRequest,
    ReconcileRequest,
    RefundCreateRequest,
    RefundRequestReview,
    RefundRequestSubmission,
    VerificationRequest,
)

router = APIRouter()


@router.post("/bookings", status_code=201)
def create_booking_api(request: BookingRequest):
    db = SessionLocal()
    try:
        booking = create_booking(db, request.total_amount, request.currency, request.reference)
        return {"success": True, "booking": booking.to_dict()}
    finally:
        db.close()


@router.get("/bookings/{booking_id}")
def get_booking_api(booking_id: str):
    db = SessionLocal()
    try:
        return {"success": True, "booking": get_booking(db, booking_id).to_dict()}
    finally:
        db.close()


@router.post("/payments/order")
def create_order_api(
    request: OrderRequest,
    gateway: PaymentGatewayClient = Depends(get_gateway),
):
    currency = request.currency or get_settings().default_currency
    db = SessionLocal()
    try:
        notes = {}
        if request.booking_id:
            booking = get_booking(db, request.booking_id)
            check_payable(booking, request.amount, currency)
            notes["booking_id"] = booking.id
            notes["booking_reference"] = booking.reference

        order = create_order(gateway, request.amount, currency, request.receipt, notes)

        if request.booking_id:
            link_order(db, request.booking_id, order.id)
        return {"success": True, "order": order.to_dict()}
    finally:
        db.close()


@router.post("/payments/verify")
def verify_payment_api(request: VerificationRequest):
    verify_payment(
        request.razorpay_order_id,
        request.razorpay_payment_id,
        request.razorpay_signature,
        get_settings().razorpay_key_secret,
    )

    db = SessionLocal()
    try:
        booking = confirm_booking(db, request.razorpay_order_id, request.razorpay_payment_id)
        body = {
            "success": True,
            "verified": True,
            "payment_id": request.razorpay_payment_id,
            "order_id": request.razorpay_order_id,
        }
        if booking is not None:
            body["booking_id"] = booking.id
        return body
    finally:
        db.close()


@router.post("/payments/refund")
def refund_api(
    request: RefundCreateRequest,
    claims: dict = Depends(verify_token),
    gateway: PaymentGatewayClient = Depends(get_gateway),
):
    db = SessionLocal()
    try:
        refund = RefundOrchestrator(db, gateway).refund(
            request.payment_id,
            amount=request.amount,
            reason=request.reason,
            notes=request.notes,
            actor=actor_from_claims(claims),
        )
        return {"success": True, "refund": refund.to_dict()}
    finally:
        db.close()


@router.get("/payments/refund")
def get_refund_api(
    refund_id: Optional[str] = None,
    payment_id: Optional[str] = None,
    claims: dict = Depends(verify_token),
    gateway: PaymentGatewayClient = Depends(get_gateway),
):
    result = lookup_refunds(gateway, refund_id=refund_id, payment_id=payment_id)
    if isinstance(result, list):
        return {"success": True, "refunds": [refund.to_dict() for refund in result]}
    return {"success": True, "refund": result.to_dict()}


@router.post("/payments/reconcile")
def reconcile_api(
    request: ReconcileRequest,
    claims: dict = Depends(verify_token),
    gateway: PaymentGatewayClient = Depends(get_gateway),
):
    db = SessionLocal()
    try:
        result = RefundOrchestrator(db, gateway).reconcile(request.payment_id, actor=actor_from_claims(claims))
    finally:
        db.close()

    refund = result["refund"]
    return {**result, "success": True, "refund": refund.to_dict() if refund else None}


@router.post("/refund-requests")
def submit_refund_request_api(request: RefundRequestSubmission, response: Response):
    db = SessionLocal()
    try:
        refund_request, created = submit_request(
            db,
            request.booking_id,
            reason=request.reason,
            description=request.description,
            contact_phone=request.contact_phone,
            preferred_refund_method=request.preferred_refund_method,
        )
        response.status_code = 201 if created else 200
        return {"success": True, "created": created, "request": refund_request.to_dict()}
    finally:
        db.close()


@router.get("/refund-requests")
def get_refund_request_api(booking_id: str):
    db = SessionLocal()
    try:
        existing = get_existing_request(db, booking_id)
        return {"success": True, "request": existing.to_dict() if existing else None}
    finally:
        db.close()


@router.post("/refund-requests/{request_id}/review")
def review_refund_request_api(
    request_id: str,
    review: RefundRequestReview,
    claims: dict = Depends(verify_token),
):
    db = SessionLocal()
    try:
        refund_request = review_request(
            db,
            request_id,
            review.status,
            actor=actor_from_claims(claims),
            admin_notes=review.admin_notes,
        )
        return {"success": True, "request": refund_request.to_dict()}
    finally:
        db.close()

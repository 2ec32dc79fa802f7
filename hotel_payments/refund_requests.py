"""
Customer refund requests.

A request is a ticket for an admin to act on; it never moves money. At most
one live request exists per booking, enforced by a partial unique index.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError

from hotel_payments.bookings import get_booking
from hotel_payments.errors import InvalidRefundRequest, RefundRequestNotFound
from hotel_payments.models import RefundRequest, RefundRequestStatus

logger = logging.getLogger(__name__)

REQUEST_REASONS = (
    "Booking cancellation",
    "Change of plans",
    "Hotel unavailable",
    "Payment error",
    "Duplicate booking",
    "Other",
)
REFUND_METHODS = ("original_payment_method", "bank_transfer", "upi", "wallet")


def get_existing_request(db, booking_id: str):
    """The live request for a booking, or the latest rejected one, or None."""
    requests_for_booking = (
        db.query(RefundRequest)
        .filter(RefundRequest.booking_id == booking_id)
        .order_by(RefundRequest.requested_at.desc())
        .all()
    )
    for request in requests_for_booking:
        if request.status in RefundRequestStatus.ACTIVE:
            return request
    return requests_for_booking[0] if requests_for_booking else None


def _active_request(db, booking_id: str):
    return (
        db.query(RefundRequest)
        .filter(
            RefundRequest.booking_id == booking_id,
            RefundRequest.status.in_(RefundRequestStatus.ACTIVE),
        )
        .first()
    )


def submit_request(
    db,
    booking_id: str,
    reason: str,
    description: str,
    contact_phone: str,
    preferred_refund_method: str = "original_payment_method",
    requested_by: str = "customer",
):
    """Create a refund request, or return the booking's live one.

    Returns ``(request, created)``.
    """
    if reason not in REQUEST_REASONS:
        raise InvalidRefundRequest(f"Unknown refund reason: {reason}")
    if preferred_refund_method not in REFUND_METHODS:
        raise InvalidRefundRequest(f"Unknown refund method: {preferred_refund_method}")
    if not contact_phone or not contact_phone.strip():
        raise InvalidRefundRequest("Contact phone is required")

    booking = get_booking(db, booking_id)

    existing = _active_request(db, booking_id)
    if existing is not None:
        return existing, False

    request = RefundRequest(
        booking_id=booking.id,
        booking_reference=booking.reference,
        total_amount=booking.total_amount,
        reason=reason,
        description=description or "",
        contact_phone=contact_phone.strip(),
        preferred_refund_method=preferred_refund_method,
        status=RefundRequestStatus.PENDING,
        requested_by=requested_by,
    )
    db.add(request)
    try:
        db.commit()
    except IntegrityError:
        # Lost the race against a concurrent submission for the same booking.
        db.rollback()
        existing = _active_request(db, booking_id)
        if existing is None:
            raise
        return existing, False

    db.refresh(request)
    logger.info("refund_request_submitted", extra={"booking_id": booking_id, "request_id": request.id})
    return request, True


def review_request(
    db,
    request_id: str,
    status: str,
    actor: str,
    admin_notes: Optional[str] = None,
):
    """Approve or reject a pending request."""
    if status not in (RefundRequestStatus.APPROVED, RefundRequestStatus.REJECTED):
        raise InvalidRefundRequest("Status must be approved or rejected")

    request = db.get(RefundRequest, request_id)
    if request is None:
        raise RefundRequestNotFound()
    if request.status != RefundRequestStatus.PENDING:
        raise InvalidRefundRequest(f"Refund request is already {request.status}")

    request.status = status
    request.processed_at = datetime.now(timezone.utc)
    request.processed_by = actor
    request.admin_notes = admin_notes
    db.commit()
    logger.info(
        "refund_request_reviewed",
        extra={"request_id": request_id, "status": status, "actor": actor},
    )
    return request

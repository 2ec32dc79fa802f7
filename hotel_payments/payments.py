import hashlib
import hmac
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

from hotel_payments.amounts import to_major_units, to_minor_units
from hotel_payments.errors import (
    GatewayTimeout,
    MissingVerificationData,
    OrderCreationFailed,
    VerificationFailed,
)
from hotel_payments.models import Booking, BookingStatus

logger = logging.getLogger(__name__)


@dataclass
class PaymentOrder:
    id: str
    amount: int          # minor units, as the gateway reports it
    currency: str
    receipt: str
    notes: dict = field(default_factory=dict)

    @property
    def amount_major(self):
        return to_major_units(self.amount)

    @classmethod
    def from_gateway(cls, order):
        return cls(
            id=order["id"],
            amount=int(order["amount"]),
            currency=order["currency"],
            receipt=order.get("receipt") or "",
            notes=order.get("notes") or {},
        )

    def to_dict(self):
        return {
            "id": self.id,
            "amount": self.amount,
            "amount_major": self.amount_major,
            "currency": self.currency,
            "receipt": self.receipt,
        }


def default_receipt():
    # Millisecond resolution only; not an idempotency key.
    return f"receipt_{int(time.time() * 1000)}"


def create_order(gateway, amount, currency="INR", receipt=None, notes=None):
    """Create a gateway order for ``amount`` major units.

    Timeouts stay GatewayTimeout; every other gateway failure becomes
    OrderCreationFailed.
    """
    minor = to_minor_units(amount)
    receipt = receipt or default_receipt()
    order_notes = {
        "booking_type": "hotel_booking",
        "created_at": datetime.now(timezone.utc).isoformat(),
        **(notes or {}),
    }

    try:
        order = gateway.create_order(minor, currency, receipt, order_notes)
    except GatewayTimeout:
        raise
    except Exception as exc:
        logger.exception("order_creation_failed", extra={"amount": minor, "error": str(exc)})
        raise OrderCreationFailed(details={"error": str(exc)})

    payment_order = PaymentOrder.from_gateway(order)
    logger.info("order_created", extra={"order_id": payment_order.id, "amount": payment_order.amount})
    return payment_order


def expected_signature(order_id: str, payment_id: str, secret: str):
    message = f"{order_id}|{payment_id}"
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


def verify_payment(order_id, payment_id, signature, secret: str):
    if not order_id or not payment_id or not signature:
        raise MissingVerificationData()
    if not secret:
        raise VerificationFailed()

    expected = expected_signature(order_id, payment_id, secret)
    if not hmac.compare_digest(expected.encode(), signature.encode()):
        logger.warning("payment_verification_failed", extra={"order_id": order_id, "payment_id": payment_id})
        raise VerificationFailed()
    return True


def confirm_booking(db, order_id: str, payment_id: str):
    """Confirm the pending booking linked to ``order_id``; only after verify_payment."""
    booking = (
        db.query(Booking)
        .filter(Booking.order_id == order_id, Booking.status == BookingStatus.PENDING)
        .first()
    )
    if booking is None:
        return None

    booking.status = BookingStatus.CONFIRMED
    booking.payment_id = payment_id
    db.commit()
    logger.info(
        "booking_confirmed",
        extra={"booking_id": booking.id, "order_id": order_id, "payment_id": payment_id},
    )
    return booking

import logging
import time
from decimal import Decimal

from hotel_payments.amounts import to_minor_units
from hotel_payments.errors import BookingNotFound, BookingNotPayable, InvalidAmount
from hotel_payments.models import Booking, BookingStatus

logger = logging.getLogger(__name__)


def generate_reference():
    return "BK" + str(int(time.time() * 1000))[-6:]


def create_booking(db, total_amount, currency="INR", reference=None):
    # Validates the amount the same way order creation does.
    to_minor_units(total_amount)

    booking = Booking(
        reference=reference or generate_reference(),
        total_amount=Decimal(str(total_amount)),
        currency=currency,
        status=BookingStatus.PENDING,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info("booking_created", extra={"booking_id": booking.id})
    return booking


def get_booking(db, booking_id: str) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise BookingNotFound()
    return booking


def find_booking_by_payment(db, payment_id: str):
    return db.query(Booking).filter(Booking.payment_id == payment_id).first()


def check_payable(booking: Booking, amount, currency):
    """Reject checkout for anything but the full total of a pending booking."""
    if booking.status != BookingStatus.PENDING:
        raise BookingNotPayable(details={"booking_id": booking.id, "status": booking.status})
    if to_minor_units(amount) != to_minor_units(booking.total_amount):
        raise InvalidAmount(
            "Order amount must equal the booking total",
            details={"booking_id": booking.id, "total_amount": booking.total_amount},
        )
    if currency != booking.currency:
        raise InvalidAmount(
            "Order currency must match the booking currency",
            details={"booking_id": booking.id, "currency": booking.currency},
        )


def link_order(db, booking_id: str, order_id: str) -> Booking:
    booking = get_booking(db, booking_id)
    if booking.status != BookingStatus.PENDING:
        raise BookingNotPayable(details={"booking_id": booking.id, "status": booking.status})
    booking.order_id = order_id
    db.commit()
    logger.info("order_linked", extra={"booking_id": booking.id, "order_id": order_id})
    return booking

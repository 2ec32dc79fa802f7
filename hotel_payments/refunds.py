"""
Refund issuance and reconciliation.

The gateway moves the money first and the booking is updated afterwards; the
two steps are not atomic. ``reconcile`` repairs a booking from the gateway's
refund list when the second step was lost.
"""
import logging
import threading
import weakref
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import requests
from sqlalchemy.exc import SQLAlchemyError

from hotel_payments.amounts import json_number, to_major_units, to_minor_units
from hotel_payments.bookings import find_booking_by_payment
from hotel_payments.errors import (
    BookingNotFound,
    BookingNotRefundable,
    InvalidAmount,
    MissingPaymentId,
    MissingRefundLookupParams,
    ReconciliationWriteFailed,
    RefundAlreadyIssued,
    RefundFetchFailed,
    RefundInProgress,
    RefundOutcomeUnknown,
)
from hotel_payments.models import Booking, BookingStatus, RefundRequest, RefundRequestStatus

logger = logging.getLogger(__name__)

DEFAULT_REFUND_REASON = "Booking cancellation"
REFUND_REASONS = (
    "Booking cancellation",
    "Customer request",
    "Hotel unavailable",
    "Payment error",
    "Duplicate payment",
    "Other",
)


@dataclass
class Refund:
    id: str
    amount: int          # minor units
    currency: str
    payment_id: str
    status: str          # created | processed | pending | failed
    created_at: Optional[int] = None
    notes: dict = field(default_factory=dict)

    @property
    def amount_major(self):
        return to_major_units(self.amount)

    @classmethod
    def from_gateway(cls, refund):
        return cls(
            id=refund["id"],
            amount=int(refund["amount"]),
            currency=refund.get("currency", "INR"),
            payment_id=refund["payment_id"],
            status=refund.get("status", "created"),
            created_at=refund.get("created_at"),
            notes=refund.get("notes") or {},
        )

    def to_dict(self):
        return {
            "id": self.id,
            "amount": self.amount,
            "amount_major": self.amount_major,
            "currency": self.currency,
            "payment_id": self.payment_id,
            "status": self.status,
            "created_at": self.created_at,
            "notes": self.notes,
        }


# One in-flight refund per payment id inside this process.
_payment_locks = weakref.WeakValueDictionary()
_payment_locks_guard = threading.Lock()


@contextmanager
def payment_lock(payment_id: str):
    with _payment_locks_guard:
        lock = _payment_locks.get(payment_id)
        if lock is None:
            lock = threading.Lock()
            _payment_locks[payment_id] = lock
    if not lock.acquire(blocking=False):
        raise RefundInProgress(details={"payment_id": payment_id})
    try:
        yield
    finally:
        lock.release()


def build_refund_info(refund: Refund, reason: str, actor: str):
    return {
        "refundId": refund.id,
        "refundAmount": json_number(refund.amount_major),
        "refundStatus": refund.status,
        "refundReason": reason,
        "refundedAt": datetime.now(timezone.utc).isoformat(),
        "refundedBy": actor,
    }


def fetch_refund(gateway, refund_id: str):
    try:
        return Refund.from_gateway(gateway.fetch_refund(refund_id))
    except requests.exceptions.RequestException as exc:
        raise RefundFetchFailed(details={"error": str(exc)})


def fetch_all_refunds_for_payment(gateway, payment_id: str):
    try:
        items = gateway.fetch_refunds_for_payment(payment_id)
    except requests.exceptions.RequestException as exc:
        raise RefundFetchFailed(details={"error": str(exc)})
    return [Refund.from_gateway(item) for item in items]


def lookup_refunds(gateway, refund_id=None, payment_id=None):
    """A single refund by id, or every refund of a payment."""
    if refund_id:
        return fetch_refund(gateway, refund_id)
    if payment_id:
        return fetch_all_refunds_for_payment(gateway, payment_id)
    raise MissingRefundLookupParams()


def _live(refunds):
    return [r for r in refunds if r.status != "failed"]


class RefundOrchestrator:

    def __init__(self, db, gateway):
        self.db = db
        self.gateway = gateway

    def refund(self, payment_id, amount=None, reason=None, notes=None, actor="admin"):
        """Refund ``amount`` major units of a payment, or all of it when amount is None.

        A confirmed booking holding the payment is cancelled and given a
        refundInfo snapshot; an approved refund request for it becomes processed.
        """
        if not payment_id:
            raise MissingPaymentId()
        reason = reason or DEFAULT_REFUND_REASON
        minor = to_minor_units(amount) if amount is not None else None

        with payment_lock(payment_id):
            booking = find_booking_by_payment(self.db, payment_id)
            if booking is not None:
                if booking.status != BookingStatus.CONFIRMED:
                    raise BookingNotRefundable(details={"status": booking.status})
                if minor is not None and minor > to_minor_units(booking.total_amount):
                    raise InvalidAmount("Refund amount exceeds the amount paid")

                # A confirmed booking may still hide an upstream refund whose
                # local write was lost; refunding again would pay out twice.
                existing = _live(fetch_all_refunds_for_payment(self.gateway, payment_id))
                if existing:
                    logger.warning(
                        "refund_already_issued",
                        extra={"booking_id": booking.id, "payment_id": payment_id, "refund_id": existing[0].id},
                    )
                    raise RefundAlreadyIssued(
                        details={"payment_id": payment_id, "refunds": [r.to_dict() for r in existing]}
                    )

            refund_notes = {
                "reason": reason,
                "refund_type": "booking_cancellation",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                **(notes or {}),
            }
            try:
                refund = Refund.from_gateway(self.gateway.refund_payment(payment_id, minor, refund_notes))
            except requests.exceptions.RequestException as exc:
                logger.error("refund_outcome_unknown", extra={"payment_id": payment_id, "error": str(exc)})
                raise RefundOutcomeUnknown(details={"payment_id": payment_id, "error": str(exc)})

            logger.info(
                "refund_issued",
                extra={
                    "payment_id": payment_id,
                    "refund_id": refund.id,
                    "amount": refund.amount,
                    "status": refund.status,
                },
            )

            if booking is None:
                logger.warning("refund_without_booking", extra={"payment_id": payment_id, "refund_id": refund.id})
                return refund

            self._record_refund(booking.id, refund, reason, actor, expected_status=BookingStatus.CONFIRMED)
            return refund

    def _record_refund(self, booking_id, refund, reason, actor, expected_status):
        # Conditional on the status read before the gateway call, so a
        # concurrent cancellation fails instead of being overwritten.
        now = datetime.now(timezone.utc)
        try:
            updated = (
                self.db.query(Booking)
                .filter(Booking.id == booking_id, Booking.status == expected_status)
                .update(
                    {
                        Booking.status: BookingStatus.CANCELLED,
                        Booking.refund_info: build_refund_info(refund, reason, actor),
                        Booking.updated_at: now,
                    },
                    synchronize_session=False,
                )
            )
            if updated != 1:
                self.db.rollback()
                raise ReconciliationWriteFailed(
                    details={"refund": refund.to_dict(), "booking_id": booking_id, "reason": "booking changed concurrently"}
                )
            (
                self.db.query(RefundRequest)
                .filter(
                    RefundRequest.booking_id == booking_id,
                    RefundRequest.status == RefundRequestStatus.APPROVED,
                )
                .update(
                    {
                        RefundRequest.status: RefundRequestStatus.PROCESSED,
                        RefundRequest.processed_at: now,
                        RefundRequest.processed_by: actor,
                    },
                    synchronize_session=False,
                )
            )
            self.db.commit()
        except ReconciliationWriteFailed:
            logger.error(
                "refund_reconciliation_write_failed",
                extra={"booking_id": booking_id, "payment_id": refund.payment_id, "refund_id": refund.id},
            )
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception(
                "refund_reconciliation_write_failed",
                extra={"booking_id": booking_id, "payment_id": refund.payment_id, "refund_id": refund.id},
            )
            raise ReconciliationWriteFailed(
                details={"refund": refund.to_dict(), "booking_id": booking_id, "error": str(exc)}
            )

        logger.info("booking_cancelled", extra={"booking_id": booking_id, "refund_id": refund.id, "actor": actor})

    def reconcile(self, payment_id, actor="reconciliation"):
        """Copy the gateway's latest refund onto a booking that is missing it.

        A booking that already carries refundInfo is left alone.
        """
        if not payment_id:
            raise MissingPaymentId()

        with payment_lock(payment_id):
            booking = find_booking_by_payment(self.db, payment_id)
            if booking is None:
                raise BookingNotFound(details={"payment_id": payment_id})

            if booking.refund_info:
                return {"booking_id": booking.id, "in_sync": True, "repaired": False, "refund": None}

            live = _live(fetch_all_refunds_for_payment(self.gateway, payment_id))
            if not live:
                return {"booking_id": booking.id, "in_sync": True, "repaired": False, "refund": None}

            latest = max(live, key=lambda r: r.created_at or 0)
            reason = latest.notes.get("reason") or DEFAULT_REFUND_REASON
            logger.warning(
                "refund_missing_locally",
                extra={"booking_id": booking.id, "payment_id": payment_id, "refund_id": latest.id},
            )
            self._record_refund(booking.id, latest, reason, actor, expected_status=booking.status)
            return {"booking_id": booking.id, "in_sync": False, "repaired": True, "refund": latest}

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Index, Numeric, String, Text, text

from hotel_payments.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


def _uuid():
    return str(uuid4())


class BookingStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class RefundRequestStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"

    # Statuses that block a second request for the same booking.
    ACTIVE = (PENDING, APPROVED, PROCESSED)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String, primary_key=True, default=_uuid)
    reference = Column(String, unique=True, index=True, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)    # major units
    currency = Column(String, nullable=False, default="INR")
    status = Column(String, nullable=False, default=BookingStatus.PENDING)
    order_id = Column(String, index=True)                    # gateway order id
    payment_id = Column(String, index=True)                  # set once the signature is verified
    refund_info = Column(JSON(none_as_null=True))
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "reference": self.reference,
            "total_amount": self.total_amount,
            "currency": self.currency,
            "status": self.status,
            "order_id": self.order_id,
            "payment_id": self.payment_id,
            "refund_info": self.refund_info,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


_ACTIVE_STATUSES_SQL = text(
    "status IN (%s)" % ", ".join("'%s'" % s for s in RefundRequestStatus.ACTIVE)
)


class RefundRequest(Base):
    __tablename__ = "refund_requests"
    __table_args__ = (
        # One live request per booking; rejected requests do not count.
        Index(
            "uq_refund_requests_active_booking",
            "booking_id",
            unique=True,
            sqlite_where=_ACTIVE_STATUSES_SQL,
            postgresql_where=_ACTIVE_STATUSES_SQL,
        ),
    )

    id = Column(String, primary_key=True, default=_uuid)
    booking_id = Column(String, index=True, nullable=False)
    booking_reference = Column(String, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    reason = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    contact_phone = Column(String, nullable=False)
    preferred_refund_method = Column(String, nullable=False)
    status = Column(String, nullable=False, default=RefundRequestStatus.PENDING)
    requested_at = Column(DateTime(timezone=True), default=_utcnow)
    requested_by = Column(String, nullable=False, default="customer")
    processed_at = Column(DateTime(timezone=True))
    processed_by = Column(String)
    admin_notes = Column(Text)

    def to_dict(self):
        return {
            "id": self.id,
            "booking_id": self.booking_id,
            "booking_reference": self.booking_reference,
            "total_amount": self.total_amount,
            "reason": self.reason,
            "description": self.description,
            "contact_phone": self.contact_phone,
            "preferred_refund_method": self.preferred_refund_method,
            "status": self.status,
            "requested_at": self.requested_at,
            "requested_by": self.requested_by,
            "processed_at": self.processed_at,
            "processed_by": self.processed_by,
            "admin_notes": self.admin_notes,
        }

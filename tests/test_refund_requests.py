import pytest
from sqlalchemy.exc import IntegrityError

from conftest import add_booking
from hotel_payments.errors import BookingNotFound, InvalidRefundRequest, RefundRequestNotFound
from hotel_payments.models import RefundRequest, RefundRequestStatus
from hotel_payments.refund_requests import (
    get_existing_request,
    review_request,
    submit_request,
)


def _submit(db, booking_id, **overrides):
    fields = {
        "reason": "Change of plans",
        "description": "Trip postponed",
        "contact_phone": "+919800000000",
        "preferred_refund_method": "original_payment_method",
    }
    fields.update(overrides)
    return submit_request(db, booking_id, **fields)


def test_submit_creates_pending_request(db):
    booking = add_booking(db)

    request, created = _submit(db, booking.id)

    assert created is True
    assert request.status == RefundRequestStatus.PENDING
    assert request.booking_reference == "BK001234"
    assert request.total_amount == booking.total_amount
    assert request.requested_by == "customer"
    assert request.requested_at is not None


def test_second_submission_returns_existing(db):
    booking = add_booking(db)
    first, _ = _submit(db, booking.id)

    second, created = _submit(db, booking.id, reason="Other", description="again")

    assert created is False
    assert second.id == first.id
    assert second.reason == "Change of plans"
    assert db.query(RefundRequest).filter_by(booking_id=booking.id).count() == 1


def test_new_request_allowed_after_rejection(db):
    booking = add_booking(db)
    first, _ = _submit(db, booking.id)
    review_request(db, first.id, RefundRequestStatus.REJECTED, actor="admin-1")

    second, created = _submit(db, booking.id)

    assert created is True
    assert second.id != first.id
    assert get_existing_request(db, booking.id).id == second.id


def test_unique_index_blocks_duplicate_active_requests(db):
    booking = add_booking(db)
    for _ in range(2):
        db.add(RefundRequest(
            booking_id=booking.id,
            booking_reference=booking.reference,
            total_amount=booking.total_amount,
            reason="Other",
            contact_phone="+919800000000",
            preferred_refund_method="upi",
        ))

    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_concurrent_submission_returns_winner(db, mocker):
    booking = add_booking(db)
    winner, _ = _submit(db, booking.id)
    # Simulate the losing request reading before the winner's insert committed.
    mocker.patch(
        "hotel_payments.refund_requests._active_request",
        side_effect=[None, winner],
    )

    request, created = _submit(db, booking.id)

    assert created is False
    assert request.id == winner.id


@pytest.mark.parametrize("overrides", [
    {"contact_phone": "  "},
    {"reason": "Bored"},
    {"preferred_refund_method": "cash"},
])
def test_submit_validation(db, overrides):
    booking = add_booking(db)

    with pytest.raises(InvalidRefundRequest):
        _submit(db, booking.id, **overrides)


def test_submit_unknown_booking(db):
    with pytest.raises(BookingNotFound):
        _submit(db, "missing")


def test_get_existing_request_none(db):
    booking = add_booking(db)
    assert get_existing_request(db, booking.id) is None


def test_review_approves_pending_request(db):
    booking = add_booking(db)
    request, _ = _submit(db, booking.id)

    reviewed = review_request(db, request.id, RefundRequestStatus.APPROVED, actor="admin-3", admin_notes="ok")

    assert reviewed.status == RefundRequestStatus.APPROVED
    assert reviewed.processed_by == "admin-3"
    assert reviewed.admin_notes == "ok"
    assert reviewed.processed_at is not None


def test_review_only_pending(db):
    booking = add_booking(db)
    request, _ = _submit(db, booking.id)
    review_request(db, request.id, RefundRequestStatus.APPROVED, actor="admin-3")

    with pytest.raises(InvalidRefundRequest):
        review_request(db, request.id, RefundRequestStatus.REJECTED, actor="admin-3")


def test_review_unknown_request(db):
    with pytest.raises(RefundRequestNotFound):
        review_request(db, "missing", RefundRequestStatus.APPROVED, actor="admin-3")


def test_refund_request_api_flow(client, db):
    booking = add_booking(db)
    payload = {
        "booking_id": booking.id,
        "reason": "Hotel unavailable",
        "description": "Hotel called to cancel",
        "contact_phone": "+919800000000",
        "preferred_refund_method": "upi",
    }

    first = client.post("/refund-requests", json=payload)
    second = client.post("/refund-requests", json=payload)

    assert first.status_code == 201
    assert first.json()["created"] is True
    assert second.status_code == 200
    assert second.json()["created"] is False
    assert second.json()["request"]["id"] == first.json()["request"]["id"]

    lookup = client.get("/refund-requests", params={"booking_id": booking.id})
    assert lookup.json()["request"]["status"] == "pending"

    review = client.post(
        f"/refund-requests/{first.json()['request']['id']}/review",
        json={"status": "approved", "admin_notes": "Verified with hotel"},
    )
    assert review.status_code == 200
    assert review.json()["request"]["status"] == "approved"
    assert review.json()["request"]["processed_by"] == "admin-1"


def test_refund_request_api_requires_phone(client, db):
    booking = add_booking(db)

    response = client.post("/refund-requests", json={"booking_id": booking.id, "contact_phone": ""})

    assert response.status_code == 400
    assert response.json()["code"] == "InvalidRefundRequest"


def test_refund_request_api_no_request(client, db):
    booking = add_booking(db)

    response = client.get("/refund-requests", params={"booking_id": booking.id})

    assert response.json() == {"success": True, "request": None}

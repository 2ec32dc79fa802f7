class PaymentServiceError(Exception):
    status_code = 500
    code = "PaymentServiceError"
    message = "Payment service error"

    def __init__(self, message=None, details=None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        body = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class InvalidAmount(PaymentServiceError):
    status_code = 400
    code = "InvalidAmount"
    message = "Invalid amount"


class MissingVerificationData(PaymentServiceError):
    status_code = 400
    code = "MissingVerificationData"
    message = "Missing payment verification data"


class VerificationFailed(PaymentServiceError):
    status_code = 400
    code = "VerificationFailed"
    message = "Payment verification failed"

    def to_dict(self):
        body = super().to_dict()
        body["verified"] = False
        return body


class MissingPaymentId(PaymentServiceError):
    status_code = 400
    code = "MissingPaymentId"
    message = "Payment ID is required"


class MissingRefundLookupParams(PaymentServiceError):
    status_code = 400
    code = "MissingRefundLookupParams"
    message = "Either refund_id or payment_id is required"


class GatewayError(PaymentServiceError):
    """Reported by the gateway itself; code and description are passed through verbatim."""

    status_code = 400
    code = "GatewayError"

    def __init__(self, gateway_code, description, details=None):
        self.gateway_code = gateway_code
        super().__init__(
            description or "Payment gateway error",
            details={"code": gateway_code, "description": description, **(details or {})},
        )

    def to_dict(self):
        body = super().to_dict()
        body["code"] = self.gateway_code
        return body


class GatewayTimeout(PaymentServiceError):
    status_code = 504
    code = "GatewayTimeout"
    message = "Payment gateway did not respond in time"


class OrderCreationFailed(PaymentServiceError):
    status_code = 500
    code = "OrderCreationFailed"
    message = "Failed to create payment order"


class RefundFetchFailed(PaymentServiceError):
    status_code = 500
    code = "RefundFetchFailed"
    message = "Failed to fetch refund details"


class RefundInProgress(PaymentServiceError):
    status_code = 409
    code = "RefundInProgress"
    message = "A refund for this payment is already being processed"


class RefundAlreadyIssued(PaymentServiceError):
    status_code = 409
    code = "RefundAlreadyIssued"
    message = (
        "The gateway already holds a refund for this payment; "
        "run reconciliation instead of refunding again"
    )


class RefundOutcomeUnknown(PaymentServiceError):
    status_code = 502
    code = "RefundOutcomeUnknown"
    message = (
        "Lost contact with the payment gateway during the refund; "
        "check GET /payments/refund?payment_id=... before retrying"
    )


class ReconciliationWriteFailed(PaymentServiceError):
    status_code = 500
    code = "ReconciliationWriteFailed"
    message = (
        "Refund was issued by the gateway but the booking could not be updated; "
        "run reconciliation for this payment before retrying"
    )


class BookingNotFound(PaymentServiceError):
    status_code = 404
    code = "BookingNotFound"
    message = "Booking not found"


class BookingNotPayable(PaymentServiceError):
    status_code = 409
    code = "BookingNotPayable"
    message = "Only pending bookings can be paid for"


class BookingNotRefundable(PaymentServiceError):
    status_code = 409
    code = "BookingNotRefundable"
    message = "Only confirmed bookings can be refunded"


class RefundRequestNotFound(PaymentServiceError):
    status_code = 404
    code = "RefundRequestNotFound"
    message = "Refund request not found"


class InvalidRefundRequest(PaymentServiceError):
    status_code = 400
    code = "InvalidRefundRequest"
    message = "Invalid refund request"

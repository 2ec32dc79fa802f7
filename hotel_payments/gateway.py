"""Payment gateway access. Amounts crossing this interface are in minor units."""
import logging
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Optional

import razorpay
from razorpay import errors as razorpay_errors
import requests

from hotel_payments.config import get_settings
from hotel_payments.errors import GatewayError, GatewayTimeout

logger = logging.getLogger(__name__)


class PaymentGatewayClient(ABC):

    @abstractmethod
    def create_order(self, amount: int, currency: str, receipt: str, notes: dict) -> dict:
        raise NotImplementedError

    @abstractmethod
    def refund_payment(self, payment_id: str, amount: Optional[int], notes: dict) -> dict:
        """Refund a captured payment. ``amount=None`` refunds the full captured amount."""
        raise NotImplementedError

    @abstractmethod
    def fetch_refund(self, refund_id: str) -> dict:
        raise NotImplementedError

    @abstractmethod
    def fetch_refunds_for_payment(self, payment_id: str) -> list[dict]:
        raise NotImplementedError


# The SDK encodes the upstream error code in the exception type.
_RAZORPAY_ERRORS_BY_TYPE = {
    razorpay_errors.BadRequestError: "BAD_REQUEST_ERROR",
    razorpay_errors.GatewayError: "GATEWAY_ERROR",
    razorpay_errors.ServerError: "SERVER_ERROR",
}
_RAZORPAY_ERRORS = tuple(_RAZORPAY_ERRORS_BY_TYPE)


class RazorpayGateway(PaymentGatewayClient):

    def __init__(self, key_id: str, key_secret: str, timeout: float = 15.0):
        self.client = razorpay.Client(auth=(key_id, key_secret))
        self.timeout = timeout

    def _call(self, operation, func, *args, **kwargs):
        try:
            return func(*args, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout:
            logger.warning("gateway_timeout", extra={"error": operation})
            raise GatewayTimeout(details={"operation": operation})
        except _RAZORPAY_ERRORS as exc:
            code = _RAZORPAY_ERRORS_BY_TYPE[type(exc)]
            logger.warning("gateway_error", extra={"code": code, "error": str(exc)})
            raise GatewayError(code, str(exc), details={"operation": operation})

    def create_order(self, amount: int, currency: str, receipt: str, notes: dict):
        data = {"amount": amount, "currency": currency, "receipt": receipt, "notes": notes}
        return self._call("order.create", self.client.order.create, data=data)

    def refund_payment(self, payment_id: str, amount: Optional[int], notes: dict):
        data = {"notes": notes}
        if amount is not None:
            data["amount"] = amount
        return self._call("payment.refund", self.client.payment.refund, payment_id, data)

    def fetch_refund(self, refund_id: str):
        return self._call("refund.fetch", self.client.refund.fetch, refund_id)

    def fetch_refunds_for_payment(self, payment_id: str):
        collection = self._call(
            "payment.fetch_multiple_refund", self.client.payment.fetch_multiple_refund, payment_id
        )
        return collection.get("items", [])


@lru_cache
def get_gateway():
    settings = get_settings()
    return RazorpayGateway(
        settings.razorpay_key_id,
        settings.razorpay_key_secret,
        timeout=settings.gateway_timeout_seconds,
    )

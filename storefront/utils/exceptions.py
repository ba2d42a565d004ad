# storefront/utils/exceptions.py
from typing import Any, Dict


class StoreException(Exception):
    """
    Raised when a domain rule is violated (e.g. 'Stock not available').
    Carries a machine readable code, the HTTP status it maps to and any
    ids the caller needs to render the error.
    """

    code = "business_error"
    status_code = 400

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code, **self.context}


class InvalidArgument(StoreException):
    code = "invalid_argument"


class InvalidStatusTransition(InvalidArgument):
    code = "invalid_status_transition"


class NotFound(StoreException):
    code = "not_found"
    status_code = 404


class AccessDenied(StoreException):
    code = "access_denied"
    status_code = 403


class ProductUnavailable(StoreException):
    code = "product_unavailable"
    status_code = 409


class OutOfStock(StoreException):
    code = "out_of_stock"
    status_code = 409


class InsufficientStock(OutOfStock):
    code = "insufficient_stock"


class MaximumQuantityExceeded(StoreException):
    code = "maximum_quantity_exceeded"


class EmptyCart(StoreException):
    code = "empty_cart"


class InvalidCart(StoreException):
    code = "invalid_cart"


class UnsupportedPaymentMethod(StoreException):
    code = "unsupported_payment_method"


class PaymentProcessingFailed(StoreException):
    code = "payment_failed"
    status_code = 402


class ConcurrentModification(StoreException):
    code = "concurrent_modification"
    status_code = 409

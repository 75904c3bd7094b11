"""
Error kinds raised by the payment lifecycle.

Every error carries a stable ``code`` for machines and a ``message`` for
humans; the API layer maps ``status_code`` onto the HTTP response.
"""


class PaymentServiceError(Exception):
    code = "payment_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PaymentServiceError):
    code = "validation_error"
    status_code = 422


class NotFoundError(PaymentServiceError):
    code = "not_found"
    status_code = 404


class InvalidTokenError(PaymentServiceError):
    code = "invalid_token"
    status_code = 401


class TokenMismatchError(PaymentServiceError):
    code = "token_mismatch"
    status_code = 403


class InvalidStateError(PaymentServiceError):
    code = "invalid_state"
    status_code = 409


class AlreadyRefundedError(PaymentServiceError):
    code = "already_refunded"
    status_code = 409


class InsufficientStockError(PaymentServiceError):
    code = "insufficient_stock"
    status_code = 409

    def __init__(self, product_id: int, quantity: int):
        super().__init__(f"Insufficient stock for product {product_id} (requested {quantity})")
        self.product_id = product_id
        self.quantity = quantity


class ForbiddenError(PaymentServiceError):
    code = "forbidden"
    status_code = 403

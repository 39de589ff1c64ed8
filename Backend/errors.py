from typing import Any, Dict, Optional


class PaymentError(Exception):
    """Base error for the checkout backend."""

    status_code = 500
    error_code = "PAYMENT_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def public_message(self) -> str:
        return self.message


class ConfigurationError(PaymentError):
    """Missing merchant credentials or gateway URLs. Fatal, for the operator."""

    status_code = 500
    error_code = "CONFIGURATION_ERROR"

    def public_message(self) -> str:
        # key names stay in the logs
        return "Payment gateway is not configured"


class ValidationError(PaymentError):
    status_code = 400
    error_code = "VALIDATION_ERROR"


class PaymentMethodUnavailable(PaymentError):
    status_code = 501
    error_code = "PAYMENT_METHOD_UNAVAILABLE"


class RecordNotFound(PaymentError):
    status_code = 404
    error_code = "NOT_FOUND"

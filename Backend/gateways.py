from enum import Enum

from errors import PaymentMethodUnavailable, ValidationError


class PaymentMethod(str, Enum):
    VNPAY = "VNPAY"
    MOMO = "MOMO"


class GatewayStatus(str, Enum):
    AVAILABLE = "available"
    NOT_IMPLEMENTED = "not_implemented"


GATEWAYS = {
    PaymentMethod.VNPAY: GatewayStatus.AVAILABLE,
    PaymentMethod.MOMO: GatewayStatus.NOT_IMPLEMENTED,
}


def parse_method(raw) -> PaymentMethod:
    if isinstance(raw, PaymentMethod):
        return raw
    value = (raw or "").strip().upper()
    try:
        return PaymentMethod(value)
    except ValueError:
        raise ValidationError(f"Unsupported payment method: {raw!r}")


def method_status(method: PaymentMethod) -> GatewayStatus:
    return GATEWAYS.get(method, GatewayStatus.NOT_IMPLEMENTED)


def require_available(method: PaymentMethod) -> PaymentMethod:
    if method_status(method) is not GatewayStatus.AVAILABLE:
        raise PaymentMethodUnavailable(
            f"{method.value} payments are not available yet, please choose VNPAY",
            details={"method": method.value},
        )
    return method

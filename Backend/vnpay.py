import datetime
import hashlib
import hmac
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, Mapping, Optional
from urllib.parse import quote

from config import GatewayConfig
from errors import ValidationError

logger = logging.getLogger("gymx.vnpay")

SECURE_HASH_FIELD = "vnp_SecureHash"
SECURE_HASH_TYPE_FIELD = "vnp_SecureHashType"
FIELD_PREFIX = "vnp_"
MAX_TXN_REF_LENGTH = 32
MAX_AMOUNT = Decimal(10) ** 15
SUCCESS_CODE = "00"

_NON_DIGITS = re.compile(r"\D")
_HEX_SIGNATURE = re.compile(r"[0-9a-f]{128}")
_MINOR_AMOUNT = re.compile(r"[0-9]{1,20}")


# -----------------------
# Canonical query
# -----------------------
def encode_value(value: str) -> str:
    """
    RFC 3986 percent-encoding: only A-Z a-z 0-9 - _ . ~ stay literal,
    space becomes %20 and ! ' ( ) * are escaped too.
    """
    try:
        return quote(value, safe="")
    except UnicodeEncodeError:
        raise ValidationError("Value cannot be encoded as UTF-8")


def build_canonical_query(fields: Mapping[str, str]) -> str:
    """
    Sort fields by name and join them as name=encoded_value pairs.

    The same string is signed and sent in the redirect URL.
    """
    if not fields:
        raise ValueError("Cannot build a query from an empty field set")

    pairs = []
    for name in sorted(fields):
        value = fields[name]
        if not isinstance(name, str) or not isinstance(value, str):
            raise TypeError(f"Field {name!r} must be a string, got {type(value).__name__}")
        pairs.append(f"{name}={encode_value(value)}")
    return "&".join(pairs)


# -----------------------
# Signature
# -----------------------
def sign(canonical_query: str, secret: str) -> str:
    return hmac.new(
        secret.encode("utf-8"),
        canonical_query.encode("utf-8"),
        hashlib.sha512
    ).hexdigest()


def signed_fields(params: Mapping[str, str]) -> Dict[str, str]:
    return {
        k: v
        for k, v in params.items()
        if k.startswith(FIELD_PREFIX) and k not in (SECURE_HASH_FIELD, SECURE_HASH_TYPE_FIELD)
    }


def verify_signature(params: Mapping[str, str], secret: str) -> bool:
    """
    Mirror of the request signing, used on gateway callbacks.
    """
    received = (params.get(SECURE_HASH_FIELD) or "").lower()
    if not _HEX_SIGNATURE.fullmatch(received):
        return False

    fields = signed_fields(params)
    if not fields:
        return False

    try:
        expected = sign(build_canonical_query(fields), secret)
    except ValidationError:
        return False
    return hmac.compare_digest(received.encode("ascii"), expected.encode("ascii"))


# -----------------------
# Field normalization
# -----------------------
def normalize_txn_ref(order_reference: str, now: datetime.datetime) -> str:
    digits = _NON_DIGITS.sub("", str(order_reference or ""))
    if not digits:
        digits = str(int(now.timestamp() * 1000))
        logger.warning(
            "order reference %r has no digits, using timestamp %s as txn ref",
            order_reference,
            digits,
        )
    return digits[:MAX_TXN_REF_LENGTH]


def format_create_date(now: datetime.datetime) -> str:
    return now.strftime("%Y%m%d%H%M%S")


def to_major_units(amount) -> int:
    """Round a major-unit amount half-up to an integer."""
    if isinstance(amount, bool):
        raise ValidationError("Amount must be a number")
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {amount!r}")
    if not value.is_finite():
        raise ValidationError(f"Invalid amount: {amount!r}")
    if value > MAX_AMOUNT:
        raise ValidationError("Amount too large")

    rounded = int(value.to_integral_value(rounding=ROUND_HALF_UP))
    if rounded <= 0:
        raise ValidationError("Amount must be positive")
    return rounded


def to_minor_units(amount) -> str:
    # VNPay amount = VND * 100
    return str(to_major_units(amount) * 100)


# -----------------------
# Payment request
# -----------------------
@dataclass(frozen=True)
class TransactionIntent:
    order_reference: str
    amount: Decimal
    description: str
    created_at: datetime.datetime = field(default_factory=datetime.datetime.now)
    client_ip: Optional[str] = None


@dataclass(frozen=True)
class PaymentRequest:
    txn_ref: str
    fields: Dict[str, str]
    signing_payload: str
    signature: str
    url: str


def build_fields(intent: TransactionIntent, config: GatewayConfig) -> Dict[str, str]:
    return {
        "vnp_Version": config.version,
        "vnp_Command": config.command,
        "vnp_TmnCode": config.tmn_code,
        "vnp_Amount": to_minor_units(intent.amount),
        "vnp_CurrCode": config.currency,
        "vnp_ReturnUrl": config.return_url,
        "vnp_TxnRef": normalize_txn_ref(intent.order_reference, intent.created_at),
        "vnp_OrderInfo": str(intent.description),
        "vnp_OrderType": config.order_type,
        "vnp_Locale": config.locale,
        "vnp_CreateDate": format_create_date(intent.created_at),
        "vnp_IpAddr": intent.client_ip or config.default_ip,
        "vnp_IpnUrl": config.ipn_url,
    }


def create_payment_request(intent: TransactionIntent, config: GatewayConfig) -> PaymentRequest:
    """
    Build the signed redirect URL for one checkout attempt.

    Raises ConfigurationError if the config is incomplete and
    ValidationError if the amount is not a positive integer after rounding.
    No network call is made.
    """
    config.require_complete()

    fields = build_fields(intent, config)

    # 1) signing payload
    signing_payload = build_canonical_query(fields)
    signature = sign(signing_payload, config.hash_secret)

    # 2) redirect query, same builder
    query = build_canonical_query(fields)
    url = f"{config.payment_url}?{query}&{SECURE_HASH_FIELD}={signature}"

    logger.info(
        "vnpay payment request txn_ref=%s amount=%s",
        fields["vnp_TxnRef"],
        fields["vnp_Amount"],
    )

    return PaymentRequest(
        txn_ref=fields["vnp_TxnRef"],
        fields=fields,
        signing_payload=signing_payload,
        signature=signature,
        url=url,
    )


# -----------------------
# Callback
# -----------------------
@dataclass(frozen=True)
class CallbackResult:
    txn_ref: str
    amount: int
    response_code: str
    transaction_status: str
    transaction_no: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.response_code == SUCCESS_CODE and self.transaction_status == SUCCESS_CODE


def parse_callback(params: Mapping[str, str], config: GatewayConfig) -> CallbackResult:
    """
    Verify and decode the gateway's return/IPN query.
    Raises ValidationError on a bad signature or malformed amount.
    """
    if not verify_signature(params, config.hash_secret):
        logger.warning("vnpay callback signature mismatch txn_ref=%s", params.get("vnp_TxnRef"))
        raise ValidationError("Invalid signature")

    raw_amount = params.get("vnp_Amount") or ""
    if not _MINOR_AMOUNT.fullmatch(raw_amount) or int(raw_amount) % 100:
        raise ValidationError(f"Invalid amount: {raw_amount!r}")

    return CallbackResult(
        txn_ref=params.get("vnp_TxnRef", ""),
        amount=int(raw_amount) // 100,
        response_code=params.get("vnp_ResponseCode", ""),
        transaction_status=params.get("vnp_TransactionStatus", ""),
        transaction_no=params.get("vnp_TransactionNo"),
    )

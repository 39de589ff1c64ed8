import pytest

from errors import ValidationError
from vnpay import parse_callback, verify_signature


def test_verify_valid_signature(signed_params):
    assert verify_signature(signed_params(), "SECRET123")


def test_verify_accepts_uppercase_hash(signed_params):
    params = signed_params()
    params["vnp_SecureHash"] = params["vnp_SecureHash"].upper()
    assert verify_signature(params, "SECRET123")


def test_verify_rejects_wrong_secret(signed_params):
    assert not verify_signature(signed_params(secret="OTHER"), "SECRET123")


def test_verify_rejects_tampered_amount(signed_params):
    params = signed_params()
    params["vnp_Amount"] = "100"
    assert not verify_signature(params, "SECRET123")


def test_verify_rejects_missing_hash(signed_params):
    params = signed_params()
    del params["vnp_SecureHash"]
    assert not verify_signature(params, "SECRET123")


def test_verify_ignores_foreign_params(signed_params):
    params = signed_params()
    params["utm_source"] = "mail"
    assert verify_signature(params, "SECRET123")


def test_parse_callback_success(gateway_config, signed_params):
    result = parse_callback(signed_params(), gateway_config)
    assert result.success
    assert result.amount == 299000
    assert result.txn_ref == "1709600889000"
    assert result.transaction_no == "14226112"


def test_parse_callback_declined(gateway_config, signed_params):
    result = parse_callback(signed_params(vnp_ResponseCode="24", vnp_TransactionStatus="02"), gateway_config)
    assert not result.success
    assert result.response_code == "24"


def test_parse_callback_bad_signature(gateway_config, signed_params):
    with pytest.raises(ValidationError):
        parse_callback(signed_params(secret="OTHER"), gateway_config)


@pytest.mark.parametrize("amount", ["", "12.5", "-100", "150"])
def test_parse_callback_bad_amount(gateway_config, signed_params, amount):
    with pytest.raises(ValidationError):
        parse_callback(signed_params(vnp_Amount=amount), gateway_config)


@pytest.mark.parametrize("secure_hash", ["é", "zz" * 64, "ab", "é" * 128, "a" * 127 + "é"])
def test_verify_rejects_malformed_hash(signed_params, secure_hash):
    params = signed_params()
    params["vnp_SecureHash"] = secure_hash
    assert not verify_signature(params, "SECRET123")


def test_verify_rejects_unencodable_field(signed_params):
    params = signed_params()
    params["vnp_OrderInfo"] = "\ud800"
    assert not verify_signature(params, "SECRET123")


@pytest.mark.parametrize("amount", ["²⁰⁰", "٢٩٩٠٠٠٠٠", "9" * 5000])
def test_parse_callback_non_ascii_or_huge_amount(gateway_config, signed_params, amount):
    with pytest.raises(ValidationError):
        parse_callback(signed_params(vnp_Amount=amount), gateway_config)

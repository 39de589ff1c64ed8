from urllib.parse import unquote

import pytest

from errors import ValidationError
from vnpay import build_canonical_query, encode_value


def test_sorted_by_field_name():
    query = build_canonical_query({"b": "2", "a": "1", "c": "3"})
    assert query == "a=1&b=2&c=3"


def test_sort_is_byte_order_not_case_insensitive():
    query = build_canonical_query({"vnp_b": "1", "vnp_B": "2", "vnp_a": "3"})
    assert query == "vnp_B=2&vnp_a=3&vnp_b=1"


def test_insertion_order_does_not_matter():
    a = {"vnp_TxnRef": "42", "vnp_Amount": "100", "vnp_Locale": "vn"}
    b = {"vnp_Locale": "vn", "vnp_TxnRef": "42", "vnp_Amount": "100"}
    assert build_canonical_query(a) == build_canonical_query(b)


def test_same_input_same_output():
    fields = {"vnp_OrderInfo": "Thanh toan goi Pro", "vnp_Amount": "79900000"}
    assert build_canonical_query(fields) == build_canonical_query(dict(fields))


def test_no_trailing_separator():
    assert not build_canonical_query({"a": "1", "b": "2"}).endswith("&")


@pytest.mark.parametrize(
    "raw, encoded",
    [
        ("a b", "a%20b"),
        ("!", "%21"),
        ("'", "%27"),
        ("(", "%28"),
        (")", "%29"),
        ("*", "%2A"),
        ("&", "%26"),
        ("=", "%3D"),
        ("+", "%2B"),
        ("/", "%2F"),
        (":", "%3A"),
        ("-_.~", "-_.~"),
        ("AZaz09", "AZaz09"),
        ("", ""),
    ],
)
def test_encode_value(raw, encoded):
    assert encode_value(raw) == encoded


def test_space_is_never_plus():
    assert "+" not in build_canonical_query({"vnp_OrderInfo": "Thanhtoan GymX Pro"})


def test_utf8_uppercase_hex():
    assert encode_value("thẻ") == "th%E1%BA%BB"


def test_url_value_fully_encoded():
    query = build_canonical_query({"vnp_ReturnUrl": "https://gymx.vn/return?x=1"})
    assert query == "vnp_ReturnUrl=https%3A%2F%2Fgymx.vn%2Freturn%3Fx%3D1"


def test_special_characters_decode_back():
    value = "Gói (Pro) it's *50%* off! & more"
    query = build_canonical_query({"vnp_OrderInfo": value})
    name, encoded = query.split("=", 1)
    assert name == "vnp_OrderInfo"
    assert "&" not in encoded
    assert unquote(encoded) == value


def test_empty_field_set_rejected():
    with pytest.raises(ValueError):
        build_canonical_query({})


def test_non_string_value_rejected():
    with pytest.raises(TypeError):
        build_canonical_query({"vnp_Amount": 100})


def test_lone_surrogate_rejected():
    with pytest.raises(ValidationError):
        build_canonical_query({"vnp_OrderInfo": "abc\ud800"})

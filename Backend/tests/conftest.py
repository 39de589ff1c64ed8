import datetime
import os

import pytest
from fastapi.testclient import TestClient

from app import app, get_gateway_config, get_invoice_store, get_plans
from config import BASE_DIR, GatewayConfig
from plans import load_plans
from store import JsonRecordStore
from vnpay import build_canonical_query, sign


@pytest.fixture
def gateway_config() -> GatewayConfig:
    return GatewayConfig(
        tmn_code="TESTCODE",
        hash_secret="SECRET123",
        payment_url="https://sandbox.vnpayment.vn/paymentv2/vpcpay.html",
        return_url="https://gymx.example/payment/return",
        ipn_url="https://gymx.example/payment/vnpay/ipn",
    )


@pytest.fixture
def fixed_now() -> datetime.datetime:
    return datetime.datetime(2024, 3, 5, 7, 8, 9)


@pytest.fixture
def invoice_store(tmp_path) -> JsonRecordStore:
    return JsonRecordStore(str(tmp_path / "invoices.json"))


@pytest.fixture
def client(gateway_config, invoice_store):
    plans = load_plans(os.path.join(BASE_DIR, "plans.json"))

    app.dependency_overrides[get_gateway_config] = lambda: gateway_config
    app.dependency_overrides[get_plans] = lambda: plans
    app.dependency_overrides[get_invoice_store] = lambda: invoice_store

    # no context manager: startup config check is covered in test_config
    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()


def _signed_callback(secret="SECRET123", **overrides):
    params = {
        "vnp_Amount": "29900000",
        "vnp_BankCode": "NCB",
        "vnp_OrderInfo": "Thanhtoan GymX Starter",
        "vnp_ResponseCode": "00",
        "vnp_TmnCode": "TESTCODE",
        "vnp_TransactionNo": "14226112",
        "vnp_TransactionStatus": "00",
        "vnp_TxnRef": "1709600889000",
    }
    params.update(overrides)
    params["vnp_SecureHash"] = sign(build_canonical_query(params), secret)
    params["vnp_SecureHashType"] = "HmacSHA512"
    return params


@pytest.fixture
def signed_params():
    """Callback query as the gateway would sign it."""
    return _signed_callback

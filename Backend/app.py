import datetime
import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from functools import lru_cache
from typing import Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

import invoices
from config import GatewayConfig, load_gateway_config, settings
from errors import ConfigurationError, PaymentError
from gateways import parse_method, require_available
from plans import Plan, get_plan, list_plans, load_plans
from store import JsonRecordStore
from vnpay import (
    TransactionIntent,
    create_payment_request,
    parse_callback,
    verify_signature,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("gymx.checkout")


# -----------------------
# Dependencies
# -----------------------
@lru_cache
def get_gateway_config() -> GatewayConfig:
    return load_gateway_config(settings)


@lru_cache
def get_plans() -> Dict[str, Plan]:
    return load_plans(settings.PLANS_FILE)


@lru_cache
def get_invoice_store() -> JsonRecordStore:
    return JsonRecordStore(settings.INVOICES_FILE)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # fail fast on missing merchant config
    try:
        get_gateway_config()
    except ConfigurationError as e:
        logger.error("vnpay configuration error: %s", e.message)
        raise
    yield


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PaymentError)
async def payment_error_handler(request: Request, exc: PaymentError):
    if isinstance(exc, ConfigurationError):
        logger.error("%s %s: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s: %s %s", request.method, request.url.path, exc.error_code, exc.message)

    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": exc.public_message()}
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning("%s %s: invalid request %s", request.method, request.url.path, exc.errors())
    return JSONResponse(
        status_code=422,
        content={"ok": False, "error": "Invalid request"}
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("%s %s: unhandled error", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"ok": False, "error": "Internal server error"}
    )


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


class CreatePaymentBody(BaseModel):
    orderId: str
    amount: Decimal
    orderInfo: str


class CheckoutBody(BaseModel):
    planId: str
    userId: str = Field(..., min_length=1)
    method: str = "VNPAY"


@app.get("/")
def home():
    return {"message": "Backend running successfully!"}


# -----------------------
# PLANS
# -----------------------
@app.get("/plans")
def plans_index(plans: Dict[str, Plan] = Depends(get_plans)):
    return {"plans": [p.to_dict() for p in list_plans(plans)]}


@app.get("/plans/{plan_id}")
def plans_show(plan_id: str, plans: Dict[str, Plan] = Depends(get_plans)):
    return get_plan(plans, plan_id).to_dict()


# -----------------------
# VNPAY CREATE
# -----------------------
@app.post("/api/vnpay/create")
def create_vnpay_payment(
        body: CreatePaymentBody,
        request: Request,
        config: GatewayConfig = Depends(get_gateway_config)
):
    intent = TransactionIntent(
        order_reference=body.orderId,
        amount=body.amount,
        description=body.orderInfo,
        created_at=datetime.datetime.now(),
        client_ip=client_ip(request),
    )
    payment = create_payment_request(intent, config)

    return {"ok": True, "payUrl": payment.url}


# -----------------------
# CHECKOUT
# -----------------------
@app.post("/checkout")
def checkout(
        body: CheckoutBody,
        request: Request,
        config: GatewayConfig = Depends(get_gateway_config),
        plans: Dict[str, Plan] = Depends(get_plans),
        store: JsonRecordStore = Depends(get_invoice_store)
):
    plan = get_plan(plans, body.planId)
    method = require_available(parse_method(body.method))

    now = datetime.datetime.now()
    invoice = invoices.create_invoice(store, body.userId, plan, method, now)

    intent = TransactionIntent(
        order_reference=invoice["id"],
        amount=Decimal(plan.price),
        description=f"Thanhtoan{plan.name}",
        created_at=now,
        client_ip=client_ip(request),
    )
    try:
        payment = create_payment_request(intent, config)
    except PaymentError:
        invoices.mark_status(store, invoice["id"], invoices.FAILED)
        raise

    invoices.attach_txn_ref(store, invoice["id"], payment.txn_ref)
    logger.info("checkout invoice=%s plan=%s txn_ref=%s", invoice["id"], plan.id, payment.txn_ref)

    return {
        "ok": True,
        "payUrl": payment.url,
        "invoiceId": invoice["id"]
    }


# -----------------------
# VNPAY CALLBACKS
# -----------------------
@app.get("/payment/vnpay/ipn")
def vnpay_ipn(
        request: Request,
        config: GatewayConfig = Depends(get_gateway_config),
        store: JsonRecordStore = Depends(get_invoice_store)
):
    params = dict(request.query_params)

    if not verify_signature(params, config.hash_secret):
        logger.warning("vnpay ipn invalid signature txn_ref=%s", params.get("vnp_TxnRef"))
        return {"RspCode": "97", "Message": "Invalid signature"}

    try:
        result = parse_callback(params, config)
    except PaymentError:
        return {"RspCode": "04", "Message": "Invalid amount"}

    invoice = invoices.find_by_txn_ref(store, result.txn_ref)
    if invoice is None:
        return {"RspCode": "01", "Message": "Order not found"}

    if int(invoice["amount"]) != result.amount:
        return {"RspCode": "04", "Message": "Invalid amount"}

    if invoice["status"] != invoices.PENDING:
        return {"RspCode": "02", "Message": "Order already confirmed"}

    status = invoices.PAID if result.success else invoices.FAILED
    invoices.mark_status(
        store,
        invoice["id"],
        status,
        transaction_no=result.transaction_no,
        response_code=result.response_code,
    )
    logger.info("vnpay ipn invoice=%s status=%s", invoice["id"], status)

    return {"RspCode": "00", "Message": "Confirm Success"}


@app.get("/payment/vnpay/return")
def vnpay_return(
        request: Request,
        config: GatewayConfig = Depends(get_gateway_config),
        store: JsonRecordStore = Depends(get_invoice_store)
):
    result = parse_callback(dict(request.query_params), config)
    invoice = invoices.find_by_txn_ref(store, result.txn_ref)

    return {
        "ok": result.success,
        "status": invoices.PAID if result.success else invoices.FAILED,
        "invoiceId": invoice["id"] if invoice else None,
        "responseCode": result.response_code
    }

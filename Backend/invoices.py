import datetime
import itertools
from typing import Any, Dict, Optional

from errors import RecordNotFound, ValidationError
from gateways import PaymentMethod
from plans import Plan
from store import JsonRecordStore

PENDING = "pending"
PAID = "paid"
FAILED = "failed"
STATUSES = (PENDING, PAID, FAILED)


def invoice_id_for(now: datetime.datetime, offset_ms: int = 0) -> str:
    return f"INV{int(now.timestamp() * 1000) + offset_ms}"


def create_invoice(
        store: JsonRecordStore,
        user_id: str,
        plan: Plan,
        method: PaymentMethod,
        now: Optional[datetime.datetime] = None
) -> Dict[str, Any]:
    now = now or datetime.datetime.now()

    # same-millisecond checkouts take the next free millisecond
    candidates = (invoice_id_for(now, i) for i in itertools.count())

    return store.insert_first_free(candidates, lambda invoice_id: {
        "id": invoice_id,
        "user_id": user_id,
        "plan_id": plan.id,
        "amount": plan.price,
        "method": method.value,
        "status": PENDING,
        "txn_ref": None,
        "created_at": now.isoformat(),
    })


def get_invoice(store: JsonRecordStore, invoice_id: str) -> Dict[str, Any]:
    invoice = store.read(invoice_id)
    if invoice is None:
        raise RecordNotFound(f"Invoice not found: {invoice_id}")
    return invoice


def attach_txn_ref(store: JsonRecordStore, invoice_id: str, txn_ref: str) -> Dict[str, Any]:
    return store.update(invoice_id, txn_ref=txn_ref)


def find_by_txn_ref(store: JsonRecordStore, txn_ref: str) -> Optional[Dict[str, Any]]:
    if not txn_ref:
        return None
    for invoice in store.all().values():
        if invoice.get("txn_ref") == txn_ref:
            return invoice
    return None


def mark_status(store: JsonRecordStore, invoice_id: str, status: str, **extra) -> Dict[str, Any]:
    if status not in STATUSES:
        raise ValidationError(f"Invalid invoice status: {status}")
    return store.update(
        invoice_id,
        status=status,
        updated_at=datetime.datetime.now().isoformat(),
        **extra
    )

"""
Bill store and the bill-creation operation.

Bills are immutable: there is an insert and there are reads, nothing else.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from config import Settings
from database import BILLS, oid, to_str_id, utc_naive
from errors import NotFound, ValidationError, translate_store_errors
from schemas import Bill, BillCreated, BillIn
from sequence import SequenceGenerator, format_invoice_number

logger = logging.getLogger(__name__)


def validate_bill(total: Any, payment_mode: Optional[str]) -> None:
    if total is None:
        raise ValidationError("Missing required field: total")
    if not math.isfinite(total):
        raise ValidationError("Bill total must be a finite number", {"total": str(total)})
    if total < 0:
        raise ValidationError("Bill total cannot be negative", {"total": total})
    if payment_mode is None or not str(payment_mode).strip():
        raise ValidationError("Missing required field: paymentMode")


class BillStore:
    def __init__(self, db: Database):
        self.collection = db[BILLS]

    @translate_store_errors()
    def create(self, bill: Dict[str, Any]) -> Bill:
        validate_bill(bill.get("total"), bill.get("paymentMode"))
        doc = {**bill}
        doc.pop("_id", None)
        doc.setdefault("customerPhone", "")
        doc.setdefault("items", [])
        doc["createdAt"] = utc_naive(doc.get("createdAt") or datetime.now(timezone.utc))
        res = self.collection.insert_one(doc)
        doc["_id"] = res.inserted_id
        return Bill.model_validate(to_str_id(doc))

    @translate_store_errors()
    def get(self, bill_id: str) -> Bill:
        _id = oid(bill_id)
        doc = self.collection.find_one({"_id": _id}) if _id else None
        if not doc:
            raise NotFound("Bill not found", {"id": bill_id})
        return Bill.model_validate(to_str_id(doc))

    @translate_store_errors()
    def query(self, since: Optional[datetime] = None, limit: Optional[int] = None) -> List[Bill]:
        """Bills created at or after `since`, newest first."""
        filt: Dict[str, Any] = {}
        if since is not None:
            filt["createdAt"] = {"$gte": utc_naive(since)}
        cursor = self.collection.find(filt).sort([("createdAt", DESCENDING), ("_id", DESCENDING)])
        if limit is not None:
            cursor = cursor.limit(limit)
        return [Bill.model_validate(to_str_id(d)) for d in cursor]

    @translate_store_errors()
    def query_range(self, start: datetime, end: Optional[datetime] = None) -> List[Bill]:
        """Bills with start <= createdAt < end, oldest first."""
        created: Dict[str, Any] = {"$gte": utc_naive(start)}
        if end is not None:
            created["$lt"] = utc_naive(end)
        cursor = self.collection.find({"createdAt": created}).sort(
            [("createdAt", ASCENDING), ("_id", ASCENDING)]
        )
        return [Bill.model_validate(to_str_id(d)) for d in cursor]


def create_bill(db: Database, payload: BillIn, settings: Settings) -> BillCreated:
    # Validate before touching the counter so rejected requests do not consume
    # a sequence value. A failed insert after this point skips its number.
    validate_bill(payload.total, payload.payment_mode)

    sequence = SequenceGenerator(db, start=settings.invoice_sequence_start)
    seq = sequence.next_invoice_sequence()
    bill_number = format_invoice_number(seq)

    saved = BillStore(db).create(
        {
            "billNumber": bill_number,
            "customerPhone": payload.customer_phone or "",
            "items": [it.model_dump(by_alias=True) for it in payload.items],
            "total": payload.total,
            "paymentMode": payload.payment_mode,
        }
    )
    logger.info(f"Bill {saved.bill_number} saved ({saved.payment_mode}, total {saved.total})")
    return BillCreated(bill_id=saved.id, bill_number=saved.bill_number, date=saved.created_at)

"""
Schemas for the POS billing API (MongoDB)

Documents are stored with camelCase keys, the same names the API speaks.
Collection names live in database.py.
"""
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def assume_utc(v: datetime) -> datetime:
    # Mongo dates are UTC; drivers without tz_aware return them naive
    if isinstance(v, datetime) and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


# Catalog
class ProductIn(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    barcode: str = Field(..., min_length=1, max_length=100)
    price: float = Field(..., ge=0)

    @field_validator("name", "barcode")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class Product(CamelModel):
    id: str
    name: str
    barcode: str
    price: float
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def utc_created_at(cls, v: datetime) -> datetime:
        return assume_utc(v)


class ProductSaved(BaseModel):
    message: str
    product: Product


# Billing
class BillItem(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    name: str
    qty: float = 0


class BillIn(CamelModel):
    customer_phone: Optional[str] = ""
    items: List[BillItem] = []
    total: float
    payment_mode: Optional[str] = None


class Bill(CamelModel):
    id: str
    bill_number: str
    customer_phone: Optional[str] = ""
    items: List[BillItem] = []
    total: float
    payment_mode: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def utc_created_at(cls, v: datetime) -> datetime:
        return assume_utc(v)


class BillCreated(CamelModel):
    message: str = "Bill saved"
    bill_id: str
    bill_number: str
    date: datetime


# Analytics (derived, never stored)
class PaymentStats(BaseModel):
    cash: float = 0
    online: float = 0


class Chart(BaseModel):
    labels: List[str]
    data: List[float]


class ProductSales(BaseModel):
    name: str
    qty: float


class AnalyticsSummary(CamelModel):
    total_revenue: float
    total_orders: int
    payment_stats: PaymentStats
    chart: Chart
    top_products: List[ProductSales]

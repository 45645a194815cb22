"""
Sales analytics over a trailing window of bills.

Two interchangeable engines produce the same AnalyticsSummary:

- InMemoryAnalytics reads the window's bills and folds them in Python.
- MongoAnalytics pushes grouping, summing, sorting and limiting into MongoDB
  aggregation pipelines and only maps the grouped rows onto day buckets.

Day buckets are keyed "<day>/<month>" from calendar components in the
configured timezone, never from locale formatting. Any payment mode other
than the literal "cash" is counted as online.
"""

import logging
from collections import OrderedDict
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from pymongo.database import Database

from bills import BillStore
from config import Settings
from database import BILLS, utc_naive
from errors import translate_store_errors
from schemas import AnalyticsSummary, Bill, Chart, PaymentStats, ProductSales

logger = logging.getLogger(__name__)

CASH = "cash"
DEFAULT_WINDOW_DAYS = 7
DEFAULT_TOP_N = 5


# -----------------------------
# Calendar helpers
# -----------------------------

def as_local(moment: datetime, tz: tzinfo) -> datetime:
    # pymongo hands back naive datetimes unless tz_aware is set; they are UTC
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz)


def day_label(moment: datetime, tz: tzinfo) -> str:
    local = as_local(moment, tz)
    return f"{local.day}/{local.month}"


def window_start(now: datetime, tz: tzinfo, days: int = DEFAULT_WINDOW_DAYS) -> datetime:
    """Start of the calendar day `days` days before `now`."""
    local = as_local(now, tz) - timedelta(days=days)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def day_buckets(now: datetime, tz: tzinfo, days: int = DEFAULT_WINDOW_DAYS) -> "OrderedDict[str, float]":
    """Zeroed revenue buckets for today and the preceding days, oldest first."""
    today = as_local(now, tz).date()
    newest_first = OrderedDict()
    for i in range(days):
        d = today - timedelta(days=i)
        newest_first[f"{d.day}/{d.month}"] = 0.0
    return OrderedDict(reversed(list(newest_first.items())))


def rank_products(product_qty: Dict[str, float], top_n: int) -> List[ProductSales]:
    # sorted() is stable, so equal quantities keep first-encountered order
    ranked = sorted(product_qty.items(), key=lambda kv: kv[1], reverse=True)
    return [ProductSales(name=name, qty=qty) for name, qty in ranked[:top_n]]


# -----------------------------
# In-memory fold
# -----------------------------

def summarize(
    bills: Iterable[Bill],
    now: datetime,
    tz: tzinfo = timezone.utc,
    days: int = DEFAULT_WINDOW_DAYS,
    top_n: int = DEFAULT_TOP_N,
) -> AnalyticsSummary:
    """
    Fold bills into an AnalyticsSummary.

    Bills should arrive oldest first; that order decides ties in the
    top-products ranking. Bills whose day falls outside the buckets still
    count towards the totals but are left out of the chart.
    """
    total_revenue = 0.0
    total_orders = 0
    payment_stats = PaymentStats()
    sales_by_date = day_buckets(now, tz, days)
    product_qty: Dict[str, float] = {}

    for bill in bills:
        total_orders += 1
        total_revenue += bill.total

        if bill.payment_mode == CASH:
            payment_stats.cash += bill.total
        else:
            payment_stats.online += bill.total

        label = day_label(bill.created_at, tz)
        if label in sales_by_date:
            sales_by_date[label] += bill.total

        for item in bill.items:
            product_qty[item.name] = product_qty.get(item.name, 0) + item.qty

    return AnalyticsSummary(
        total_revenue=total_revenue,
        total_orders=total_orders,
        payment_stats=payment_stats,
        chart=Chart(labels=list(sales_by_date.keys()), data=list(sales_by_date.values())),
        top_products=rank_products(product_qty, top_n),
    )


class InMemoryAnalytics:
    def __init__(self, store: BillStore, tz: tzinfo = timezone.utc,
                 days: int = DEFAULT_WINDOW_DAYS, top_n: int = DEFAULT_TOP_N):
        self.store = store
        self.tz = tz
        self.days = days
        self.top_n = top_n

    def summarize(self, now: Optional[datetime] = None) -> AnalyticsSummary:
        now = now or datetime.now(timezone.utc)
        bills = self.store.query_range(window_start(now, self.tz, self.days))
        return summarize(bills, now, self.tz, self.days, self.top_n)


# -----------------------------
# Store-native aggregation
# -----------------------------

class MongoAnalytics:
    def __init__(self, db: Database, tz_name: str = "UTC",
                 days: int = DEFAULT_WINDOW_DAYS, top_n: int = DEFAULT_TOP_N):
        self.collection = db[BILLS]
        self.tz_name = tz_name
        self.tz = ZoneInfo(tz_name)
        self.days = days
        self.top_n = top_n

    def _date_part(self, operator: str) -> Dict[str, Any]:
        if self.tz_name == "UTC":
            return {operator: "$createdAt"}
        return {operator: {"date": "$createdAt", "timezone": self.tz_name}}

    @translate_store_errors()
    def summarize(self, now: Optional[datetime] = None) -> AnalyticsSummary:
        now = now or datetime.now(timezone.utc)
        since = utc_naive(window_start(now, self.tz, self.days))
        match = {"$match": {"createdAt": {"$gte": since}}}

        by_mode = list(self.collection.aggregate([
            match,
            {"$group": {"_id": "$paymentMode", "revenue": {"$sum": "$total"}, "orders": {"$sum": 1}}},
        ]))

        by_day = list(self.collection.aggregate([
            match,
            {"$group": {
                "_id": {"day": self._date_part("$dayOfMonth"), "month": self._date_part("$month")},
                "revenue": {"$sum": "$total"},
            }},
        ]))

        top = list(self.collection.aggregate([
            match,
            {"$sort": {"createdAt": 1, "_id": 1}},
            {"$unwind": {"path": "$items", "includeArrayIndex": "itemIndex"}},
            {"$group": {
                "_id": "$items.name",
                "qty": {"$sum": "$items.qty"},
                "firstSeen": {"$first": "$createdAt"},
                "firstBill": {"$first": "$_id"},
                "firstIndex": {"$first": "$itemIndex"},
            }},
            {"$sort": {"qty": -1, "firstSeen": 1, "firstBill": 1, "firstIndex": 1}},
            {"$limit": self.top_n},
        ]))

        payment_stats = PaymentStats()
        total_revenue = 0.0
        total_orders = 0
        for row in by_mode:
            total_revenue += row["revenue"]
            total_orders += row["orders"]
            if row["_id"] == CASH:
                payment_stats.cash += row["revenue"]
            else:
                payment_stats.online += row["revenue"]

        sales_by_date = day_buckets(now, self.tz, self.days)
        for row in by_day:
            label = f"{row['_id']['day']}/{row['_id']['month']}"
            if label in sales_by_date:
                sales_by_date[label] += row["revenue"]

        return AnalyticsSummary(
            total_revenue=total_revenue,
            total_orders=total_orders,
            payment_stats=payment_stats,
            chart=Chart(labels=list(sales_by_date.keys()), data=list(sales_by_date.values())),
            top_products=[ProductSales(name=row["_id"], qty=row["qty"]) for row in top],
        )


def get_analytics_engine(db: Database, settings: Settings):
    if settings.analytics_strategy == "memory":
        return InMemoryAnalytics(
            BillStore(db),
            ZoneInfo(settings.analytics_timezone),
            settings.analytics_window_days,
            settings.analytics_top_n,
        )
    return MongoAnalytics(
        db,
        settings.analytics_timezone,
        settings.analytics_window_days,
        settings.analytics_top_n,
    )

"""
Invoice sequence generator.

A single counter document per name lives in the counter collection. The only
way it changes is MongoDB's atomic find_one_and_update with $inc, so
concurrent bill creations always observe distinct values.
"""

import logging

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import COUNTERS
from errors import translate_store_errors

logger = logging.getLogger(__name__)

BILL_SEQUENCE = "bill_seq"
INVOICE_PREFIX = "INV-"


def format_invoice_number(seq: int) -> str:
    return f"{INVOICE_PREFIX}{seq}"


class SequenceGenerator:
    def __init__(self, db: Database, name: str = BILL_SEQUENCE, start: int = 1001):
        self.collection = db[COUNTERS]
        self.name = name
        self.start = start

    @translate_store_errors()
    def next_invoice_sequence(self) -> int:
        """Consume and return the next value of the counter."""
        doc = self._increment()
        if doc is None:
            self._seed()
            doc = self._increment()
        return int(doc["value"])

    def _increment(self):
        return self.collection.find_one_and_update(
            {"name": self.name},
            {"$inc": {"value": 1}},
            return_document=ReturnDocument.AFTER,
        )

    def _seed(self) -> None:
        # Leaves the counter one below start so the first $inc yields start.
        # A concurrent seeder may win the race on the unique name index.
        try:
            self.collection.update_one(
                {"name": self.name},
                {"$setOnInsert": {"value": self.start - 1}},
                upsert=True,
            )
            logger.info(f"Created counter '{self.name}' starting at {self.start}")
        except DuplicateKeyError:
            pass

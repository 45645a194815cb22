"""
Product catalog backed by the product collection.

Barcode uniqueness is enforced by the unique index created in
database.ensure_indexes; a duplicate surfaces as ConflictError.
"""

import logging
from datetime import datetime, timezone
from typing import List

from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from database import PRODUCTS, oid, to_str_id, utc_naive
from errors import ConflictError, NotFound, translate_store_errors
from schemas import Product, ProductIn

logger = logging.getLogger(__name__)

DUPLICATE_BARCODE = "Barcode already exists."


class ProductStore:
    def __init__(self, db: Database):
        self.collection = db[PRODUCTS]

    @translate_store_errors(DUPLICATE_BARCODE)
    def add(self, payload: ProductIn) -> Product:
        doc = payload.model_dump()
        doc["createdAt"] = utc_naive(datetime.now(timezone.utc))
        res = self.collection.insert_one(doc)
        doc["_id"] = res.inserted_id
        logger.info(f"Product '{payload.name}' added with barcode {payload.barcode}")
        return Product.model_validate(to_str_id(doc))

    @translate_store_errors()
    def list(self) -> List[Product]:
        docs = self.collection.find({}).sort([("createdAt", DESCENDING), ("_id", DESCENDING)])
        return [Product.model_validate(to_str_id(d)) for d in docs]

    @translate_store_errors()
    def get_by_barcode(self, barcode: str) -> Product:
        doc = self.collection.find_one({"barcode": barcode.strip()})
        if not doc:
            raise NotFound("Product not found", {"barcode": barcode})
        return Product.model_validate(to_str_id(doc))

    @translate_store_errors(DUPLICATE_BARCODE)
    def update(self, product_id: str, payload: ProductIn) -> Product:
        _id = oid(product_id)
        if not _id:
            raise NotFound("Product not found", {"id": product_id})

        # Check if barcode belongs to another product
        existing = self.collection.find_one({"barcode": payload.barcode})
        if existing and existing["_id"] != _id:
            raise ConflictError("Barcode already taken", {"barcode": payload.barcode})

        upd = self.collection.find_one_and_update(
            {"_id": _id},
            {"$set": payload.model_dump()},
            return_document=ReturnDocument.AFTER,
        )
        if not upd:
            raise NotFound("Product not found", {"id": product_id})
        return Product.model_validate(to_str_id(upd))

    @translate_store_errors()
    def delete(self, product_id: str) -> None:
        _id = oid(product_id)
        if not _id:
            raise NotFound("Product not found", {"id": product_id})
        res = self.collection.delete_one({"_id": _id})
        if res.deleted_count == 0:
            raise NotFound("Product not found", {"id": product_id})

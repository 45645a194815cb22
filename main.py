import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, PyMongoError

from analytics import get_analytics_engine
from bills import BillStore, create_bill
from config import Settings, configure_logging, get_settings
from database import ensure_indexes, get_db
from errors import POSError, handle_pos_error
from products import ProductStore
from schemas import AnalyticsSummary, Bill, BillCreated, BillIn, Product, ProductIn, ProductSaved

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        ensure_indexes(get_db())
        logger.info(f"POS backend ready on database '{settings.database_name}'")
    except ConnectionFailure as e:
        # Requests report StoreUnavailable until the database comes back
        logger.error(f"MongoDB unreachable at startup, indexes not ensured: {e}")
    yield


# -----------------------------
# FastAPI App
# -----------------------------
app = FastAPI(title="POS Billing API - MongoDB", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(POSError, handle_pos_error)


@app.get("/")
def root(settings: Settings = Depends(get_settings)):
    return {"message": "POS Backend Running", "driver": "mongodb", "db": settings.database_name}


@app.get("/health")
def health(db: Database = Depends(get_db)):
    try:
        db.command("ping")
        return {"status": "ok"}
    except PyMongoError as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


# -----------------------------
# Products
# -----------------------------
@app.post("/api/add-item", response_model=ProductSaved, status_code=status.HTTP_201_CREATED)
def add_item(payload: ProductIn, db: Database = Depends(get_db)):
    product = ProductStore(db).add(payload)
    return ProductSaved(message="Product added", product=product)


@app.get("/api/products", response_model=List[Product])
def list_products(db: Database = Depends(get_db)):
    return ProductStore(db).list()


@app.get("/api/products/{barcode}", response_model=Product)
def get_product(barcode: str, db: Database = Depends(get_db)):
    return ProductStore(db).get_by_barcode(barcode)


@app.put("/api/products/{product_id}", response_model=Product)
def update_product(product_id: str, payload: ProductIn, db: Database = Depends(get_db)):
    return ProductStore(db).update(product_id, payload)


@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, db: Database = Depends(get_db)):
    ProductStore(db).delete(product_id)
    return {"message": "Deleted successfully"}


# -----------------------------
# Bills
# -----------------------------
@app.post("/api/bills", response_model=BillCreated, status_code=status.HTTP_201_CREATED)
def post_bill(
    payload: BillIn,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return create_bill(db, payload, settings)


@app.get("/api/bills", response_model=List[Bill])
def list_bills(db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    return BillStore(db).query(limit=settings.bill_history_limit)


@app.get("/api/bills/{bill_id}", response_model=Bill)
def get_bill(bill_id: str, db: Database = Depends(get_db)):
    return BillStore(db).get(bill_id)


# -----------------------------
# Analytics
# -----------------------------
@app.get("/api/analytics", response_model=AnalyticsSummary)
def analytics(db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    return get_analytics_engine(db, settings).summarize()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)

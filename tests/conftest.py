import threading
from datetime import datetime, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings, get_settings
from database import ensure_indexes, get_db
from main import app

NOW = datetime(2026, 10, 18, 15, 30, tzinfo=timezone.utc)


class SerializedCollection:
    """
    Collection proxy that applies writes one at a time.

    mongod applies a single-document update atomically; mongomock runs it as
    plain Python, so concurrent tests serialize each write call the way the
    server would. A read-then-write sequence of calls is still not atomic.
    """

    def __init__(self, collection):
        self._collection = collection
        self._lock = threading.Lock()

    def find_one_and_update(self, *args, **kwargs):
        with self._lock:
            return self._collection.find_one_and_update(*args, **kwargs)

    def update_one(self, *args, **kwargs):
        with self._lock:
            return self._collection.update_one(*args, **kwargs)

    def __getattr__(self, name):
        return getattr(self._collection, name)


@pytest.fixture
def db():
    """Fresh in-memory database with production indexes."""
    database = mongomock.MongoClient()["pos_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def settings():
    return Settings(invoice_sequence_start=1001, analytics_strategy="native")


@pytest.fixture
def client(db, settings):
    """Test client wired to the in-memory database."""
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def bill_doc():
    def _make(total, payment_mode="cash", items=None, created_at=NOW, number="INV-1"):
        return {
            "billNumber": number,
            "customerPhone": "",
            "items": items or [],
            "total": total,
            "paymentMode": payment_mode,
            "createdAt": created_at,
        }

    return _make

import os
from concurrent.futures import ThreadPoolExecutor
from unittest import mock

import pytest
from pymongo.errors import AutoReconnect, ServerSelectionTimeoutError

from conftest import SerializedCollection
from database import COUNTERS
from errors import StoreUnavailable
from sequence import BILL_SEQUENCE, SequenceGenerator, format_invoice_number


class TestSequenceGenerator:

    def test_first_value_is_configured_start(self, db):
        assert SequenceGenerator(db, start=1001).next_invoice_sequence() == 1001

    def test_counter_created_on_first_use(self, db):
        assert db[COUNTERS].find_one({"name": BILL_SEQUENCE}) is None
        SequenceGenerator(db, start=1).next_invoice_sequence()
        doc = db[COUNTERS].find_one({"name": BILL_SEQUENCE})
        assert doc["value"] == 1

    def test_sequential_calls_strictly_increase(self, db):
        gen = SequenceGenerator(db)
        values = [gen.next_invoice_sequence() for _ in range(20)]
        assert all(b > a for a, b in zip(values, values[1:]))
        assert values == list(range(1001, 1021))

    def test_existing_counter_is_continued_not_reseeded(self, db):
        db[COUNTERS].insert_one({"name": BILL_SEQUENCE, "value": 5000})
        assert SequenceGenerator(db, start=1001).next_invoice_sequence() == 5001

    def test_generators_share_the_named_counter(self, db):
        first = SequenceGenerator(db).next_invoice_sequence()
        second = SequenceGenerator(db).next_invoice_sequence()
        assert second == first + 1

    def test_separate_names_are_independent(self, db):
        SequenceGenerator(db, name="bill_seq", start=10).next_invoice_sequence()
        assert SequenceGenerator(db, name="other_seq", start=10).next_invoice_sequence() == 10

    @pytest.mark.parametrize("n", [1, 10, 100])
    def test_concurrent_calls_yield_distinct_values(self, db, n):
        gen = SequenceGenerator(db)
        gen.collection = SerializedCollection(gen.collection)

        with ThreadPoolExecutor(max_workers=min(n, 16)) as pool:
            values = list(pool.map(lambda _: gen.next_invoice_sequence(), range(n)))

        assert len(set(values)) == n
        assert sorted(values) == list(range(1001, 1001 + n))

    @pytest.mark.parametrize("error", [ServerSelectionTimeoutError("no servers"), AutoReconnect("reset")])
    def test_unreachable_store_raises_store_unavailable(self, db, error):
        gen = SequenceGenerator(db)
        with mock.patch.object(gen, "_increment", side_effect=error):
            with pytest.raises(StoreUnavailable) as exc_info:
                gen.next_invoice_sequence()
        assert exc_info.value.retryable is True

    def test_invoice_number_format(self):
        assert format_invoice_number(1001) == "INV-1001"
        assert format_invoice_number(7) == "INV-7"


@pytest.mark.mongo
@pytest.mark.skipif(not os.getenv("MONGO_TEST_URL"), reason="MONGO_TEST_URL not set")
def test_concurrent_calls_against_real_mongodb():
    from pymongo import MongoClient

    from database import ensure_indexes

    client = MongoClient(os.environ["MONGO_TEST_URL"], serverSelectionTimeoutMS=2000)
    database = client["pos_sequence_test"]
    client.drop_database(database.name)
    try:
        ensure_indexes(database)
        gen = SequenceGenerator(database)
        with ThreadPoolExecutor(max_workers=16) as pool:
            values = list(pool.map(lambda _: gen.next_invoice_sequence(), range(100)))
        assert len(set(values)) == 100
    finally:
        client.drop_database(database.name)
        client.close()

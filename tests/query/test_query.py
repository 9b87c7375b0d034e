"""
Tests for docmap.query.query module.

The driver collection is a MagicMock; tests check the filter documents and
keyword arguments handed to pymongo and the decoding of what it returns.
"""

from dataclasses import dataclass
from typing import List, Optional
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo import ReturnDocument

from docmap.datastore import Datastore
from docmap.mapping import Mapper, entity, id_field, prop
from docmap.query import filters, updates
from docmap.query.options import (
    CountOptions,
    DeleteOptions,
    FindOptions,
    ModifyOptions,
    Sort,
    UpdateOptions,
)
from docmap.query.query import MappedCursor


@entity("vehicles")
class Vehicle:
    id: Optional[ObjectId] = id_field()
    make: str = ""
    mileage: int = prop("km", default=0)
    tags: List[str] = None


@dataclass
class Truck(Vehicle):
    payload: float = 0.0


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def collection(client):
    # client[db][name] always yields the same mock
    return client.__getitem__.return_value.__getitem__.return_value


@pytest.fixture
def datastore(client):
    return Datastore(client, "garage", Mapper())


class TestToFilter:
    """Test the filter documents sent to the driver."""

    def test_filters_merged(self, datastore):
        query = datastore.find(Vehicle).filter(filters.eq("make", "Ford"), filters.gte("mileage", 10))

        assert query.to_filter() == {"make": "Ford", "km": {"$gte": 10}}

    def test_no_filters(self, datastore):
        assert datastore.find(Vehicle).to_filter() == {}

    def test_subclass_adds_discriminator(self, datastore):
        query = datastore.find(Truck).filter(filters.gt("payload", 1.0))

        assert query.to_filter() == {"payload": {"$gt": 1.0}, "_t": "Truck"}

    def test_explicit_discriminator_kept(self, datastore):
        query = datastore.find(Truck).disable_validation().filter(filters.eq("_t", "Other"))

        assert query.to_filter() == {"_t": "Other"}

    def test_validation_toggle(self, datastore):
        query = datastore.find(Vehicle).filter(filters.eq("color", "red"))

        assert query.disable_validation().to_filter() == {"color": "red"}
        with pytest.raises(Exception):
            query.enable_validation().to_filter()


class TestReads:
    """Test find, first, count and iteration."""

    def test_first_decodes(self, datastore, collection):
        oid = ObjectId()
        collection.find.return_value = [{"_id": oid, "_t": "Vehicle", "make": "Ford", "km": 5}]

        vehicle = datastore.find(Vehicle).filter(filters.eq("make", "Ford")).first()

        assert vehicle == Vehicle(id=oid, make="Ford", mileage=5)
        collection.find.assert_called_once_with({"make": "Ford"}, limit=1)

    def test_first_without_match(self, datastore, collection):
        collection.find.return_value = []

        assert datastore.find(Vehicle).first() is None

    def test_polymorphic_results(self, datastore, collection):
        collection.find.return_value = [
            {"_id": ObjectId(), "_t": "Vehicle", "make": "Fiat"},
            {"_id": ObjectId(), "_t": "Truck", "make": "Volvo", "payload": 9.5},
        ]

        results = datastore.find(Vehicle).to_list()

        assert [type(v) for v in results] == [Vehicle, Truck]
        assert results[1].payload == 9.5

    def test_find_options(self, datastore, collection):
        collection.find.return_value = []
        options = FindOptions(
            include=["make", "mileage"],
            sort=[Sort.descending("mileage")],
            skip=5,
            limit=10,
            batch_size=100,
        )

        datastore.find(Vehicle).to_list(options)

        collection.find.assert_called_once_with(
            {},
            projection={"make": 1, "km": 1, "_t": 1},
            sort=[("km", -1)],
            skip=5,
            limit=10,
            batch_size=100,
        )

    def test_iteration(self, datastore, collection):
        collection.find.return_value = [{"make": "a"}, {"make": "b"}]

        assert [v.make for v in datastore.find(Vehicle)] == ["a", "b"]

    def test_count(self, datastore, collection):
        collection.count_documents.return_value = 3

        count = datastore.find(Truck).count(CountOptions(max_time_ms=50))

        assert count == 3
        collection.count_documents.assert_called_once_with({"_t": "Truck"}, maxTimeMS=50)

    def test_explain(self, datastore, collection):
        collection.find.return_value.explain.return_value = {"queryPlanner": {}}

        assert datastore.find(Vehicle).explain() == {"queryPlanner": {}}


class TestMappedCursor:
    def test_raw_documents_without_type(self):
        cursor = MappedCursor([{"a": 1}], Mapper())

        assert cursor.to_list() == [{"a": 1}]

    def test_closes_driver_cursor(self):
        driver_cursor = MagicMock()
        driver_cursor.__iter__.return_value = iter([])

        with MappedCursor(driver_cursor, Mapper(), Vehicle) as cursor:
            assert list(cursor) == []

        driver_cursor.close.assert_called_once_with()


class TestWrites:
    """Test delete, update and modify."""

    def test_delete_one(self, datastore, collection):
        datastore.find(Vehicle).filter(filters.eq("make", "Ford")).delete()

        collection.delete_one.assert_called_once_with({"make": "Ford"})

    def test_delete_many(self, datastore, collection):
        datastore.find(Vehicle).delete(DeleteOptions(multi=True))

        collection.delete_many.assert_called_once_with({})

    def test_update_one(self, datastore, collection):
        update = datastore.find(Vehicle).filter(filters.eq("make", "Ford")).update(
            updates.inc("mileage", 100)
        )

        update.execute()

        collection.update_one.assert_called_once_with(
            {"make": "Ford"}, {"$inc": {"km": 100}}, upsert=False
        )

    def test_update_many_upsert(self, datastore, collection):
        datastore.find(Vehicle).update(updates.set_("make", "Kia")).execute(
            UpdateOptions(multi=True, upsert=True)
        )

        collection.update_many.assert_called_once_with(
            {}, {"$set": {"make": "Kia"}}, upsert=True
        )

    def test_update_document(self, datastore):
        update = datastore.find(Vehicle).update(updates.push("tags", "red"))

        assert update.to_document() == {"$push": {"tags": "red"}}

    def test_modify_returns_entity(self, datastore, collection):
        oid = ObjectId()
        collection.find_one_and_update.return_value = {"_id": oid, "make": "Ford", "km": 7}

        vehicle = (
            datastore.find(Vehicle)
            .filter(filters.eq("id", oid))
            .modify(updates.set_("mileage", 7))
            .execute(ModifyOptions(sort=[Sort.ascending("make")]))
        )

        assert vehicle == Vehicle(id=oid, make="Ford", mileage=7)
        collection.find_one_and_update.assert_called_once_with(
            {"_id": oid},
            {"$set": {"km": 7}},
            upsert=False,
            return_document=ReturnDocument.AFTER,
            sort=[("make", 1)],
        )

    def test_modify_without_match(self, datastore, collection):
        collection.find_one_and_update.return_value = None

        result = datastore.find(Vehicle).modify(updates.set_("make", "x")).execute()

        assert result is None

    def test_find_and_delete(self, datastore, collection):
        collection.find_one_and_delete.return_value = {"make": "Ford"}

        deleted = datastore.find(Vehicle).find_and_delete()

        assert deleted.make == "Ford"
        collection.find_one_and_delete.assert_called_once_with({})


class TestExport:
    """Test exporting query results as frames."""

    def test_to_dataframe(self, datastore, collection):
        oid = ObjectId()
        collection.find.return_value = [
            {"_id": oid, "_t": "Vehicle", "make": "Ford", "km": 5, "tags": ["a"]},
            {"_id": ObjectId(), "_t": "Vehicle", "make": "Fiat"},
        ]

        df = datastore.find(Vehicle).to_dataframe()

        assert list(df.columns) == ["_id", "make", "km", "tags"]
        assert df["_id"][0] == str(oid)
        assert df["make"].tolist() == ["Ford", "Fiat"]
        assert collection.find.call_args.kwargs["batch_size"] == 10_000

    def test_to_polars(self, datastore, collection):
        collection.find.return_value = [{"_id": ObjectId(), "make": "Ford", "km": 5}]

        df = datastore.find(Vehicle).to_polars()

        assert df.columns == ["_id", "make", "km", "tags"]
        assert df["km"].to_list() == [5]

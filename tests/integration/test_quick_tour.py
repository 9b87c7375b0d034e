"""
End-to-end tour against a running MongoDB.

Skipped unless DOCMAP_TEST_URI points at a server, e.g.
``DOCMAP_TEST_URI=mongodb://localhost:27017 pytest tests/integration``.
"""

import os
import uuid
from typing import List, Optional

import pytest
from bson import ObjectId
from pymongo import MongoClient

from docmap import create_datastore, embedded, entity, id_field, prop, reference, version
from docmap.aggregation import stages
from docmap.aggregation.expressions import accumulators
from docmap.errors import VersionMismatchError
from docmap.query import filters, updates
from docmap.query.options import Sort, UpdateOptions

MONGO_URI = os.environ.get("DOCMAP_TEST_URI")

pytestmark = pytest.mark.skipif(not MONGO_URI, reason="DOCMAP_TEST_URI not set")


@embedded
class Address:
    city: str = ""
    street: str = ""


@entity("tour_employees")
class Employee:
    id: Optional[ObjectId] = id_field()
    name: str = ""
    wage: float = prop("salary", default=0.0)
    address: Optional[Address] = None
    manager: Optional["Employee"] = reference(default=None)
    rev: Optional[int] = version()


@embedded
class CityTotal:
    id: str = prop("_id", default="")
    total: float = 0.0
    names: List[str] = None


@pytest.fixture
def datastore():
    """Datastore on a throwaway database, dropped afterwards."""
    client = MongoClient(MONGO_URI, serverSelectionTimeoutMS=2000)
    name = f"docmap_tour_{uuid.uuid4().hex[:8]}"
    yield create_datastore(client, name)
    client.drop_database(name)
    client.close()


def test_quick_tour(datastore):
    """Save, query, update and aggregate mapped entities."""
    datastore.ensure_indexes(Employee)
    boss = datastore.save(Employee(name="Elmer", wage=50000, address=Address("Paris", "Rue A")))
    assert boss.id is not None
    assert boss.rev == 1

    datastore.save(
        [
            Employee(name="Daffy", wage=40000, address=Address("Paris", "Rue B"), manager=boss),
            Employee(name="Pepe", wage=30000, address=Address("Lyon", "Rue C"), manager=boss),
        ]
    )

    daffy = datastore.find(Employee).filter(filters.eq("name", "Daffy")).first()
    assert daffy.wage == 40000
    assert daffy.address.city == "Paris"
    assert daffy.manager.name == "Elmer"

    raw = datastore.get_collection(Employee).find_one({"name": "Daffy"})
    assert raw["salary"] == 40000
    assert raw["_t"] == "Employee"

    result = datastore.find(Employee).filter(filters.lt("wage", 45000)).update(
        updates.inc("wage", 1000)
    ).execute(UpdateOptions(multi=True))
    assert result.modified_count == 2

    stale = datastore.find(Employee).filter(filters.eq("name", "Elmer")).first()
    boss.wage = 55000
    datastore.save(boss)
    stale.wage = 1
    with pytest.raises(VersionMismatchError):
        datastore.save(stale)

    totals = datastore.aggregate(Employee).pipeline(
        stages.group(stages.id_("$address.city"))
        .field("total", accumulators.sum_("$salary"))
        .field("names", accumulators.push("$name")),
        stages.sort(Sort.ascending("_id")),
    ).execute(CityTotal).to_list()
    assert [t.id for t in totals] == ["Lyon", "Paris"]
    assert totals[1].total == 55000 + 41000

    df = datastore.find(Employee).to_dataframe()
    assert sorted(df["name"]) == ["Daffy", "Elmer", "Pepe"]
    assert "address.city" in df.columns

"""
Tests for docmap.query.updates module.

Covers:
- Operator encoding with path translation and codecs
- Merging operators into one update document
- $push / $addToSet modifiers and $pull with filters
- Automatic version increments
"""

from datetime import date, datetime
from typing import List, Optional

import pytest
from bson import DBRef, ObjectId

from docmap.errors import UpdateError, ValidationError
from docmap.mapping import Mapper, embedded, entity, id_field, prop, reference, version
from docmap.query import filters, updates
from docmap.query.options import Sort
from docmap.query.updates import to_update_document


@embedded
class Score:
    points: int = prop("pts", default=0)
    label: str = ""


@entity("accounts")
class Account:
    id: Optional[ObjectId] = id_field()
    owner: str = ""
    balance: float = prop("bal", default=0.0)
    opened: Optional[date] = None
    scores: List[Score] = None
    tags: List[str] = None


@entity
class Ledger:
    id: Optional[ObjectId] = id_field()
    total: float = 0.0
    rev: Optional[int] = version()


@entity("branches")
class Branch:
    id: Optional[ObjectId] = id_field()
    manager: Optional[Account] = reference(default=None)
    accounts: List[Account] = reference(default_factory=list)
    account_ids: List[Account] = reference(id_only=True, default_factory=list)


@pytest.fixture
def mapper():
    return Mapper()


def encode(mapper, *ops, entity_type=Account, validate=True):
    return to_update_document(ops, mapper, entity_type, validate)


class TestBasicOperators:
    """Test field operators."""

    def test_set_translates_path(self, mapper):
        assert encode(mapper, updates.set_("balance", 10.0)) == {"$set": {"bal": 10.0}}

    def test_set_encodes_with_codecs(self, mapper):
        document = encode(mapper, updates.set_("opened", date(2024, 3, 1)))

        assert document == {"$set": {"opened": datetime(2024, 3, 1)}}

    def test_set_embedded_value(self, mapper):
        document = encode(mapper, updates.set_("scores", [Score(points=3, label="a")]))

        assert document == {"$set": {"scores": [{"pts": 3, "label": "a"}]}}

    def test_operators_merge(self, mapper):
        document = encode(
            mapper,
            updates.set_("owner", "Elmer"),
            updates.set_("balance", 1.0),
            updates.inc("balance"),
            updates.unset("tags"),
        )

        assert document == {
            "$set": {"owner": "Elmer", "bal": 1.0},
            "$inc": {"bal": 1},
            "$unset": {"tags": ""},
        }

    def test_last_value_wins(self, mapper):
        document = encode(mapper, updates.set_("owner", "a"), updates.set_("owner", "b"))

        assert document == {"$set": {"owner": "b"}}

    def test_dec(self, mapper):
        assert encode(mapper, updates.dec("balance", 5)) == {"$inc": {"bal": -5}}

    @pytest.mark.parametrize(
        "builder,operator",
        [(updates.mul, "$mul"), (updates.min_, "$min"), (updates.max_, "$max")],
    )
    def test_numeric_operators(self, mapper, builder, operator):
        assert encode(mapper, builder("balance", 2)) == {operator: {"bal": 2}}

    def test_rename_translates_both_names(self, mapper):
        document = encode(mapper, updates.rename("balance", "credit"))

        assert document == {"$rename": {"bal": "credit"}}

    def test_current_date(self, mapper):
        assert encode(mapper, updates.current_date("opened")) == {
            "$currentDate": {"opened": True}
        }
        assert encode(mapper, updates.current_date("opened", timestamp=True)) == {
            "$currentDate": {"opened": {"$type": "timestamp"}}
        }

    def test_set_on_insert(self, mapper):
        assert encode(mapper, updates.set_on_insert("owner", "new")) == {
            "$setOnInsert": {"owner": "new"}
        }

    def test_bit(self, mapper):
        document = encode(mapper, updates.bit("balance", and_=5, xor=1), validate=False)

        assert document == {"$bit": {"bal": {"and": 5, "xor": 1}}}

    def test_bit_needs_an_operation(self):
        with pytest.raises(ValueError):
            updates.bit("balance")

    def test_unknown_field(self, mapper):
        with pytest.raises(ValidationError):
            encode(mapper, updates.set_("missing", 1))

    def test_empty_update(self, mapper):
        with pytest.raises(UpdateError):
            encode(mapper)


class TestArrayOperators:
    """Test array update operators."""

    def test_push_single(self, mapper):
        assert encode(mapper, updates.push("tags", "a")) == {"$push": {"tags": "a"}}

    def test_push_list_uses_each(self, mapper):
        document = encode(mapper, updates.push("tags", ["a", "b"], position=0, slice_=5))

        assert document == {
            "$push": {"tags": {"$each": ["a", "b"], "$position": 0, "$slice": 5}}
        }

    def test_push_sorted_by_element_field(self, mapper):
        document = encode(
            mapper,
            updates.push("scores", [Score(points=1)], sort=Sort.descending("points")),
        )

        assert document == {
            "$push": {"scores": {"$each": [{"pts": 1, "label": ""}], "$sort": {"pts": -1}}}
        }

    def test_push_scalar_sort(self, mapper):
        document = encode(mapper, updates.push("tags", "z", sort=1))

        assert document == {"$push": {"tags": {"$each": ["z"], "$sort": 1}}}

    def test_add_to_set(self, mapper):
        assert encode(mapper, updates.add_to_set("tags", "a")) == {"$addToSet": {"tags": "a"}}
        assert encode(mapper, updates.add_to_set("tags", ["a", "b"])) == {
            "$addToSet": {"tags": {"$each": ["a", "b"]}}
        }

    def test_pop(self, mapper):
        assert encode(mapper, updates.pop("tags")) == {"$pop": {"tags": 1}}
        assert encode(mapper, updates.pop("tags", first=True)) == {"$pop": {"tags": -1}}

    def test_pull_value(self, mapper):
        assert encode(mapper, updates.pull("tags", "old")) == {"$pull": {"tags": "old"}}

    def test_pull_with_filters(self, mapper):
        document = encode(mapper, updates.pull("scores", filters.lt("points", 2)))

        assert document == {"$pull": {"scores": {"pts": {"$lt": 2}}}}

    def test_pull_all(self, mapper):
        document = encode(mapper, updates.pull_all("tags", ["a", "b"]))

        assert document == {"$pullAll": {"tags": ["a", "b"]}}

    def test_positional_path(self, mapper):
        document = encode(mapper, updates.set_("scores.$.points", 9))

        assert document == {"$set": {"scores.$.pts": 9}}


class TestVersioning:
    """Test version increments on versioned entities."""

    def test_version_incremented(self, mapper):
        document = encode(mapper, updates.set_("total", 2.0), entity_type=Ledger)

        assert document == {"$set": {"total": 2.0}, "$inc": {"rev": 1}}

    def test_version_left_alone_when_touched(self, mapper):
        document = encode(mapper, updates.set_("rev", 7), entity_type=Ledger)

        assert document == {"$set": {"rev": 7}}

    def test_unversioned_entity(self, mapper):
        assert "$inc" not in encode(mapper, updates.set_("owner", "x"))

    def test_without_mapper(self):
        document = to_update_document([updates.inc("count", 2)])

        assert document == {"$inc": {"count": 2}}


class TestReferenceValues:
    """Test operators whose values land in reference properties."""

    @pytest.fixture
    def accounts(self):
        return [Account(id=ObjectId(), owner="Elmer"), Account(id=ObjectId(), owner="Daffy")]

    def test_set_single_reference(self, mapper, accounts):
        document = encode(mapper, updates.set_("manager", accounts[0]), entity_type=Branch)

        assert document == {"$set": {"manager": DBRef("accounts", accounts[0].id)}}

    def test_set_reference_list(self, mapper, accounts):
        document = encode(mapper, updates.set_("accounts", accounts), entity_type=Branch)

        assert document == {"$set": {"accounts": [DBRef("accounts", a.id) for a in accounts]}}

    def test_push_one_reference(self, mapper, accounts):
        document = encode(mapper, updates.push("accounts", accounts[1]), entity_type=Branch)

        assert document == {"$push": {"accounts": DBRef("accounts", accounts[1].id)}}

    def test_push_each_id_only(self, mapper, accounts):
        document = encode(mapper, updates.push("account_ids", accounts), entity_type=Branch)

        assert document == {"$push": {"account_ids": {"$each": [a.id for a in accounts]}}}

    def test_pull_reference(self, mapper, accounts):
        document = encode(mapper, updates.pull("accounts", accounts[0]), entity_type=Branch)

        assert document == {"$pull": {"accounts": DBRef("accounts", accounts[0].id)}}

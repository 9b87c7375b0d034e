"""
Tests for docmap.query.filters module.

Covers:
- Field path translation and value encoding
- Merging of conditions on the same path
- Negation, logical, text, geo and top-level operators
"""

import re
from enum import Enum
from typing import List, Optional

import pytest
from bson import DBRef, ObjectId

from docmap.aggregation.expressions import comparison
from docmap.aggregation.expressions.base import field
from docmap.errors import ValidationError
from docmap.mapping import Mapper, embedded, entity, id_field, prop, reference
from docmap.query import filters
from docmap.query.filters import merge_filters


class Status(Enum):
    ACTIVE = 1
    RETIRED = 2


@embedded
class Skill:
    name: str = ""
    years: int = prop("yrs", default=0)


@entity("staff")
class Worker:
    id: Optional[ObjectId] = id_field()
    name: str = ""
    wage: float = prop("salary", default=0.0)
    status: Status = Status.ACTIVE
    skills: List[Skill] = None
    location: Optional[dict] = None


@entity("crews")
class Crew:
    id: Optional[ObjectId] = id_field()
    lead: Optional[Worker] = reference(default=None)
    members: List[Worker] = reference(default_factory=list)
    alumni: List[Worker] = reference(id_only=True, default_factory=list)


@pytest.fixture
def mapper():
    return Mapper()


def encode(mapper, *fs, validate=True):
    return merge_filters(fs, mapper, Worker, validate)


class TestComparison:
    """Test simple comparison operators."""

    def test_equality(self, mapper):
        assert encode(mapper, filters.eq("name", "Elmer")) == {"name": "Elmer"}

    def test_path_translated(self, mapper):
        assert encode(mapper, filters.gt("wage", 5)) == {"salary": {"$gt": 5}}

    def test_id_path(self, mapper):
        oid = ObjectId()

        assert encode(mapper, filters.eq("id", oid)) == {"_id": oid}

    def test_enum_encoded_by_name(self, mapper):
        assert encode(mapper, filters.eq("status", Status.RETIRED)) == {"status": "RETIRED"}

    def test_list_values_encoded(self, mapper):
        document = encode(mapper, filters.in_("status", [Status.ACTIVE, Status.RETIRED]))

        assert document == {"status": {"$in": ["ACTIVE", "RETIRED"]}}

    @pytest.mark.parametrize(
        "builder,operator",
        [
            (filters.ne, "$ne"),
            (filters.gte, "$gte"),
            (filters.lt, "$lt"),
            (filters.lte, "$lte"),
        ],
    )
    def test_operators(self, mapper, builder, operator):
        assert encode(mapper, builder("wage", 3)) == {"salary": {operator: 3}}

    def test_nested_path(self, mapper):
        assert encode(mapper, filters.eq("skills.years", 3)) == {"skills.yrs": 3}

    def test_unknown_field_raises(self, mapper):
        with pytest.raises(ValidationError):
            encode(mapper, filters.eq("bonus", 1))

    def test_unknown_field_without_validation(self, mapper):
        assert encode(mapper, filters.eq("bonus", 1), validate=False) == {"bonus": 1}

    def test_without_mapper(self):
        assert filters.gte("wage", 1).encode() == {"wage": {"$gte": 1}}


class TestMerging:
    """Test combining conditions into one document."""

    def test_range_on_same_field(self, mapper):
        document = encode(mapper, filters.gte("wage", 10), filters.lt("wage", 20))

        assert document == {"salary": {"$gte": 10, "$lt": 20}}

    def test_conflicting_equalities_move_to_and(self, mapper):
        document = encode(mapper, filters.eq("name", "a"), filters.eq("name", "b"))

        assert document == {"name": "a", "$and": [{"name": "b"}]}

    def test_same_operator_twice_moves_to_and(self, mapper):
        document = encode(mapper, filters.gt("wage", 1), filters.gt("wage", 2))

        assert document == {"salary": {"$gt": 1}, "$and": [{"salary": {"$gt": 2}}]}

    def test_explicit_and_extended(self, mapper):
        document = encode(
            mapper,
            filters.and_(filters.eq("name", "a")),
            filters.and_(filters.eq("name", "b")),
        )

        assert document == {"$and": [{"name": "a"}, {"name": "b"}]}


class TestNegationAndLogic:
    def test_not(self, mapper):
        document = encode(mapper, filters.gt("wage", 5).not_())

        assert document == {"salary": {"$not": {"$gt": 5}}}

    def test_negated_equality(self, mapper):
        document = encode(mapper, filters.eq("name", "x").not_())

        assert document == {"name": {"$not": {"$eq": "x"}}}

    def test_top_level_cannot_be_negated(self):
        with pytest.raises(ValidationError):
            filters.where("this.a > 1").not_()

    def test_or(self, mapper):
        document = encode(mapper, filters.or_(filters.eq("name", "a"), filters.gt("wage", 2)))

        assert document == {"$or": [{"name": "a"}, {"salary": {"$gt": 2}}]}

    def test_nor(self, mapper):
        document = encode(mapper, filters.nor(filters.exists("name", False)))

        assert document == {"$nor": [{"name": {"$exists": False}}]}

    def test_logical_needs_filters(self):
        with pytest.raises(ValidationError):
            filters.or_()


class TestArrayAndElement:
    def test_elem_match_uses_element_type(self, mapper):
        document = encode(
            mapper,
            filters.elem_match("skills", filters.eq("name", "sql"), filters.gte("years", 2)),
        )

        assert document == {"skills": {"$elemMatch": {"name": "sql", "yrs": {"$gte": 2}}}}

    def test_elem_match_needs_filters(self):
        with pytest.raises(ValidationError):
            filters.elem_match("skills")

    def test_all_and_size(self, mapper):
        document = encode(
            mapper, filters.all_("skills.name", ["a", "b"]), filters.size("skills", 2)
        )

        assert document == {"skills.name": {"$all": ["a", "b"]}, "skills": {"$size": 2}}

    def test_type(self, mapper):
        assert encode(mapper, filters.type_("name", "string")) == {"name": {"$type": "string"}}
        assert encode(mapper, filters.type_("name", "string", "null")) == {
            "name": {"$type": ["string", "null"]}
        }

    def test_mod_and_bits(self, mapper):
        document = encode(mapper, filters.mod("wage", 4, 0), filters.bits_all_set("wage", 6))

        assert document == {"salary": {"$mod": [4, 0], "$bitsAllSet": 6}}


class TestRegexAndText:
    def test_regex_with_options(self, mapper):
        document = encode(mapper, filters.regex("name", "^El", "i"))

        assert document == {"name": {"$regex": "^El", "$options": "i"}}

    def test_compiled_pattern_flags(self, mapper):
        document = encode(mapper, filters.regex("name", re.compile("^el", re.I | re.M)))

        assert document == {"name": {"$regex": "^el", "$options": "im"}}

    def test_text_search(self, mapper):
        document = encode(mapper, filters.text("coffee", language="en", case_sensitive=True))

        assert document == {
            "$text": {"$search": "coffee", "$language": "en", "$caseSensitive": True}
        }


class TestTopLevel:
    def test_expr(self, mapper):
        document = encode(mapper, filters.expr(comparison.gt(field("spent"), field("budget"))))

        assert document == {"$expr": {"$gt": ["$spent", "$budget"]}}

    def test_where_and_comment(self, mapper):
        document = encode(mapper, filters.where("this.a > 1"), filters.comment("audit"))

        assert document == {"$where": "this.a > 1", "$comment": "audit"}

    def test_sample_rate_bounds(self):
        with pytest.raises(ValueError):
            filters.sample_rate(1.5)


class TestGeo:
    POINT = {"type": "Point", "coordinates": [-73.9, 40.7]}

    def test_near(self, mapper):
        document = encode(mapper, filters.near("location", self.POINT, max_distance=500))

        assert document == {
            "location": {"$near": {"$geometry": self.POINT, "$maxDistance": 500}}
        }

    def test_geo_within_box(self, mapper):
        document = encode(mapper, filters.box("location", (0, 0), (10, 10)))

        assert document == {"location": {"$geoWithin": {"$box": [[0, 0], [10, 10]]}}}

    def test_polygon_needs_three_points(self):
        with pytest.raises(ValueError):
            filters.polygon("location", (0, 0), (1, 1))


class TestReferenceValues:
    """Test values compared against reference properties."""

    @pytest.fixture
    def workers(self):
        return [Worker(id=ObjectId(), name="Elmer"), Worker(id=ObjectId(), name="Daffy")]

    def test_equality_stored_as_dbref(self, mapper, workers):
        document = merge_filters([filters.eq("lead", workers[0])], mapper, Crew, True)

        assert document == {"lead": DBRef("staff", workers[0].id)}

    def test_in_encodes_every_entity(self, mapper, workers):
        document = merge_filters([filters.in_("members", workers)], mapper, Crew, True)

        assert document == {"members": {"$in": [DBRef("staff", w.id) for w in workers]}}

    def test_id_only_reference_uses_bare_id(self, mapper, workers):
        document = merge_filters([filters.all_("alumni", workers)], mapper, Crew, True)

        assert document == {"alumni": {"$all": [w.id for w in workers]}}

    def test_raw_id_passes_through(self, mapper):
        oid = ObjectId()

        document = merge_filters([filters.eq("alumni", oid)], mapper, Crew, True)

        assert document == {"alumni": oid}

    def test_negated_equality(self, mapper, workers):
        document = merge_filters([filters.eq("lead", workers[1]).not_()], mapper, Crew, True)

        assert document == {"lead": {"$not": {"$eq": DBRef("staff", workers[1].id)}}}

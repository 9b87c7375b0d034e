"""
Tests for docmap.mapping.mapper module.

Covers:
- Model building (collections, stored names, indexes, errors)
- Encoding entities to documents
- Decoding documents, including polymorphic subclasses
- References (DBRef / id only) and their resolution
- Attribute path translation
- Discriminator filters for shared collections
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

import pytest
from bson import DBRef, ObjectId

from docmap.config import DiscriminatorStyle, MapperOptions, NamingStrategy
from docmap.errors import (
    MappingError,
    MissingReferenceError,
    NotMappedError,
    ValidationError,
)
from docmap.mapping import (
    Index,
    Mapper,
    embedded,
    entity,
    id_field,
    indexed,
    post_load,
    pre_persist,
    prop,
    reference,
    transient,
    version,
)

# =============================================================================
# MODELS
# =============================================================================


class Level(Enum):
    JUNIOR = 1
    SENIOR = 2


@embedded
class Address:
    city: str = ""
    zip_code: Optional[str] = prop("zip", default=None)


@embedded
class Badge:
    label: str = ""


@entity("employees", indexes=[Index("name", ("wage", -1), unique=True)])
class Employee:
    id: Optional[ObjectId] = id_field()
    name: str = ""
    wage: float = prop("salary", default=0.0)
    email: Optional[str] = indexed(unique=True, default=None)
    address: Optional[Address] = None
    level: Level = Level.JUNIOR
    tags: Set[str] = field(default_factory=set)
    hired: Optional[date] = None
    manager: Optional["Employee"] = reference(default=None)
    scratch: dict = transient(default_factory=dict)


@dataclass
class Manager(Employee):
    reports: List[Employee] = reference(id_only=True, default_factory=list)


@entity
class Desk:
    id: Optional[int] = id_field()
    item: Any = None
    extras: Dict[str, Badge] = field(default_factory=dict)


@entity
class Audited:
    id: Optional[ObjectId] = id_field()
    loaded: bool = transient(default=False)
    seen_keys: List[str] = transient(default_factory=list)

    @post_load
    def mark_loaded(self, document):
        self.loaded = True
        self.seen_keys = sorted(document)

    @pre_persist
    def stamp(self, document):
        document["stamped"] = True


@entity
class SensorReading:
    id: Optional[ObjectId] = id_field()
    start_temp: float = 0.0


@entity
class Locker:
    id: Optional[ObjectId] = id_field()
    code: str = indexed(-1, unique=True, name="code_idx", default="")
    owner: str = indexed(sparse=True, stored_name="holder", default="")


@pytest.fixture
def mapper():
    return Mapper()


# =============================================================================
# MODEL BUILDING
# =============================================================================


class TestEntityModel:
    """Test the models built from declarations."""

    def test_collection_from_decorator(self, mapper):
        assert mapper.get_collection_name(Employee) == "employees"

    def test_collection_defaults_to_class_name(self, mapper):
        assert mapper.get_collection_name(Desk) == "Desk"

    def test_subclass_inherits_collection(self, mapper):
        assert mapper.get_collection_name(Manager) == "employees"

    def test_stored_names(self, mapper):
        model = mapper.get_entity_model(Employee)

        assert model.id_property.mapped_name == "_id"
        assert model.property("wage").mapped_name == "salary"
        assert model.property("salary").name == "wage"
        assert model.property("scratch") is None

    def test_indexes_collected(self, mapper):
        model = mapper.get_entity_model(Employee)

        assert model.indexes[0].fields == (("name", 1), ("wage", -1))
        assert model.indexes[0].unique is True
        assert model.indexes[1].fields == (("email", 1),)
        assert model.indexes[1].unique is True

    def test_indexed_name_is_index_name(self, mapper):
        model = mapper.get_entity_model(Locker)

        assert model.property("code").mapped_name == "code"
        assert model.indexes[0].fields == (("code", -1),)
        assert model.indexes[0].name == "code_idx"
        assert model.indexes[0].unique is True

    def test_indexed_stored_name(self, mapper):
        model = mapper.get_entity_model(Locker)

        assert model.property("owner").mapped_name == "holder"
        assert model.indexes[1].fields == (("holder", 1),)
        assert model.indexes[1].name is None
        assert model.indexes[1].sparse is True
        document = mapper.to_document(Locker(code="A1", owner="Elmer"))

        assert document == {"_t": "Locker", "code": "A1", "holder": "Elmer"}

    def test_naming_strategies(self):
        mapper = Mapper(
            MapperOptions(
                collection_naming=NamingStrategy.SNAKE_CASE,
                property_naming=NamingStrategy.CAMEL_CASE,
            )
        )

        model = mapper.get_entity_model(SensorReading)

        assert model.collection_name == "sensor_reading"
        assert model.property("start_temp").mapped_name == "startTemp"
        assert model.id_property.mapped_name == "_id"

    def test_map_returns_models(self, mapper):
        models = mapper.map(Employee, Address)

        assert [m.type for m in models] == [Employee, Address]
        assert models[0].is_entity
        assert not models[1].is_entity
        assert set(mapper.mapped_classes()) == {Employee, Address}

    def test_is_entity(self, mapper):
        assert mapper.is_entity(Employee)
        assert mapper.is_entity(Manager)
        assert not mapper.is_entity(Address)
        assert not mapper.is_entity(Level)


class TestModelErrors:
    """Test invalid declarations."""

    def test_plain_class_not_mapped(self, mapper):
        class Plain:
            pass

        with pytest.raises(NotMappedError):
            mapper.get_entity_model(Plain)

    def test_entity_without_id(self, mapper):
        @entity
        class NoId:
            name: str = ""

        with pytest.raises(MappingError, match="no id_field"):
            mapper.get_entity_model(NoId)

    def test_duplicate_stored_names(self, mapper):
        @entity
        class Clash:
            id: Optional[int] = id_field()
            first: int = prop("value", default=0)
            second: int = prop("value", default=0)

        with pytest.raises(MappingError, match="both stored as 'value'"):
            mapper.get_entity_model(Clash)

    def test_two_versions(self, mapper):
        @entity
        class TwoVersions:
            id: Optional[int] = id_field()
            a: Optional[int] = version()
            b: Optional[int] = version()

        with pytest.raises(MappingError, match="version"):
            mapper.get_entity_model(TwoVersions)

    def test_embedded_has_no_collection(self, mapper):
        with pytest.raises(MappingError, match="embedded"):
            mapper.get_collection_name(Address)


# =============================================================================
# ENCODING
# =============================================================================


class TestToDocument:
    """Test encoding entities."""

    def test_basic_document(self, mapper):
        employee = Employee(name="Elmer", wage=50000.0, address=Address(city="Burbank"))

        document = mapper.to_document(employee)

        assert document == {
            "_t": "Employee",
            "name": "Elmer",
            "salary": 50000.0,
            "address": {"city": "Burbank"},
            "level": "JUNIOR",
        }

    def test_id_comes_first(self, mapper):
        oid = ObjectId()
        document = mapper.to_document(Employee(id=oid, name="Elmer"))

        assert list(document)[:2] == ["_id", "_t"]
        assert document["_id"] == oid

    def test_subclass_discriminator(self, mapper):
        document = mapper.to_document(Manager(name="Daffy"))

        assert document["_t"] == "Manager"

    def test_qualified_discriminator(self):
        mapper = Mapper(MapperOptions(discriminator=DiscriminatorStyle.QUALIFIED))

        document = mapper.to_document(Employee(name="Elmer"))

        assert document["_t"] == f"{__name__}.Employee"

    def test_containers_and_codecs(self, mapper):
        employee = Employee(
            name="Elmer",
            tags={"hunter"},
            hired=date(2024, 1, 15),
            level=Level.SENIOR,
        )

        document = mapper.to_document(employee)

        assert document["tags"] == ["hunter"]
        assert document["hired"] == datetime(2024, 1, 15)
        assert document["level"] == "SENIOR"

    def test_transient_not_stored(self, mapper):
        document = mapper.to_document(Employee(name="Elmer", scratch={"a": 1}))

        assert "scratch" not in document

    def test_store_nulls_and_empties(self):
        mapper = Mapper(MapperOptions(store_nulls=True, store_empties=True))

        document = mapper.to_document(Employee(name="Elmer"))

        assert document["hired"] is None
        assert document["manager"] is None
        assert document["tags"] == []
        assert "_id" not in document

    def test_untyped_embedded_carries_discriminator(self, mapper):
        document = mapper.to_document(Desk(id=1, item=Badge(label="visitor")))

        assert document["item"] == {"_t": "Badge", "label": "visitor"}

    def test_typed_embedded_in_dict(self, mapper):
        document = mapper.to_document(Desk(id=1, extras={"front": Badge(label="a")}))

        assert document["extras"] == {"front": {"label": "a"}}


class TestReferences:
    """Test storing and resolving references."""

    def test_dbref(self, mapper):
        boss = Employee(id=ObjectId(), name="Bugs")
        document = mapper.to_document(Employee(name="Elmer", manager=boss))

        assert document["manager"] == DBRef("employees", boss.id)

    def test_id_only(self, mapper):
        report = Employee(id=ObjectId(), name="Elmer")
        document = mapper.to_document(Manager(name="Bugs", reports=[report]))

        assert document["reports"] == [report.id]

    def test_unsaved_reference_raises(self, mapper):
        with pytest.raises(MappingError, match="has no id"):
            mapper.to_document(Employee(name="Elmer", manager=Employee(name="Bugs")))

    def test_raw_value_kept_without_resolver(self, mapper):
        ref = DBRef("employees", ObjectId())

        loaded = mapper.from_document(Employee, {"name": "Elmer", "manager": ref})

        assert loaded.manager == ref

    def test_resolver_loads_entity(self, mapper):
        boss = Employee(id=ObjectId(), name="Bugs")
        calls = []

        def resolve(target, ref_id, collection):
            calls.append((target, ref_id, collection))
            return boss if ref_id == boss.id else None

        mapper.reference_resolver = resolve
        loaded = mapper.from_document(
            Employee, {"name": "Elmer", "manager": DBRef("employees", boss.id)}
        )

        assert loaded.manager is boss
        assert calls == [(Employee, boss.id, "employees")]

    def test_resolver_for_id_only_list(self, mapper):
        report = Employee(id=ObjectId(), name="Elmer")
        mapper.reference_resolver = lambda target, ref_id, collection: report

        loaded = mapper.from_document(Manager, {"name": "Bugs", "reports": [report.id]})

        assert loaded.reports == [report]

    def test_missing_reference_raises(self, mapper):
        mapper.reference_resolver = lambda target, ref_id, collection: None

        with pytest.raises(MissingReferenceError):
            mapper.from_document(
                Employee, {"name": "Elmer", "manager": DBRef("employees", ObjectId())}
            )

    def test_missing_reference_ignored_by_option(self):
        mapper = Mapper(MapperOptions(ignore_missing_references=True))
        mapper.reference_resolver = lambda target, ref_id, collection: None

        loaded = mapper.from_document(
            Employee, {"name": "Elmer", "manager": DBRef("employees", ObjectId())}
        )

        assert loaded.manager is None


# =============================================================================
# DECODING
# =============================================================================


class TestFromDocument:
    """Test decoding documents."""

    def test_none_document(self, mapper):
        assert mapper.from_document(Employee, None) is None

    def test_decodes_values(self, mapper):
        oid = ObjectId()
        document = {
            "_id": oid,
            "_t": "Employee",
            "name": "Elmer",
            "salary": 5,
            "address": {"city": "Burbank", "zip": "91505"},
            "level": "SENIOR",
            "tags": ["a", "b"],
            "hired": datetime(2024, 1, 15),
        }

        employee = mapper.from_document(Employee, document)

        assert employee.id == oid
        assert employee.wage == 5.0
        assert isinstance(employee.wage, float)
        assert employee.address == Address(city="Burbank", zip_code="91505")
        assert employee.level is Level.SENIOR
        assert employee.tags == {"a", "b"}
        assert employee.hired == date(2024, 1, 15)

    def test_missing_keys_keep_defaults(self, mapper):
        employee = mapper.from_document(Employee, {"name": "Elmer"})

        assert employee.wage == 0.0
        assert employee.tags == set()
        assert employee.scratch == {}

    def test_discriminator_selects_subclass(self, mapper):
        oid = ObjectId()

        loaded = mapper.from_document(
            Employee, {"_t": "Manager", "name": "Bugs", "reports": [oid]}
        )

        assert type(loaded) is Manager
        assert loaded.reports == [oid]

    def test_unknown_discriminator(self, mapper):
        with pytest.raises(MappingError, match="Unknown discriminator"):
            mapper.from_document(Employee, {"_t": "Nobody", "name": "x"})

    def test_untyped_embedded_restored(self, mapper):
        document = mapper.to_document(Desk(id=1, item=Badge(label="visitor")))

        loaded = mapper.from_document(Desk, document)

        assert loaded.item == Badge(label="visitor")

    def test_round_trip(self, mapper):
        employee = Employee(
            id=ObjectId(),
            name="Elmer",
            wage=1.5,
            address=Address(city="Burbank"),
            tags={"x"},
            hired=date(2020, 2, 29),
        )

        assert mapper.from_document(Employee, mapper.to_document(employee)) == employee

    def test_post_load_hook(self, mapper):
        loaded = mapper.from_document(Audited, {"_id": ObjectId(), "_t": "Audited"})

        assert loaded.loaded is True
        assert loaded.seen_keys == ["_id", "_t"]

    def test_hooks_registered(self, mapper):
        model = mapper.get_entity_model(Audited)

        assert [h.__name__ for h in model.hooks["pre_persist"]] == ["stamp"]
        assert [h.__name__ for h in model.hooks["post_load"]] == ["mark_loaded"]


# =============================================================================
# PATHS
# =============================================================================


class TestPaths:
    """Test attribute path translation."""

    @pytest.mark.parametrize(
        "dotted,stored",
        [
            ("wage", "salary"),
            ("salary", "salary"),
            ("id", "_id"),
            ("address.city", "address.city"),
            ("address.zip_code", "address.zip"),
            ("tags.$", "tags.$"),
            ("tags.0", "tags.0"),
            ("manager.name", "manager.name"),
        ],
    )
    def test_translation(self, mapper, dotted, stored):
        assert mapper.path(Employee, dotted) == stored

    def test_resolve_path_returns_property(self, mapper):
        stored, prop_model = mapper.resolve_path(Employee, "address.zip_code")

        assert stored == "address.zip"
        assert prop_model.name == "zip_code"

    def test_unknown_property_raises(self, mapper):
        with pytest.raises(ValidationError, match="no property 'bonus'"):
            mapper.path(Employee, "bonus")

    def test_unknown_property_without_validation(self, mapper):
        assert mapper.path(Employee, "bonus.amount", validate=False) == "bonus.amount"

    def test_subclass_property(self, mapper):
        assert mapper.path(Manager, "reports") == "reports"


class TestDiscriminatorFilter:
    """Test filters restricting shared collections."""

    def test_root_entity_has_none(self, mapper):
        assert mapper.discriminator_filter(Employee) is None

    def test_subclass_filter(self, mapper):
        assert mapper.discriminator_filter(Manager) == {"_t": "Manager"}

    def test_disabled_discriminator(self, mapper):
        @entity(use_discriminator=False)
        class Plain:
            id: Optional[int] = id_field()

        @dataclass
        class Child(Plain):
            pass

        assert mapper.discriminator_filter(Child) is None
        assert "_t" not in mapper.to_document(Plain(id=1))


class TestIds:
    """Test id access."""

    def test_get_and_set_id(self, mapper):
        employee = Employee(name="Elmer")
        oid = ObjectId()

        mapper.set_id(employee, oid)

        assert mapper.get_id(employee) == oid

    def test_set_id_on_embedded_raises(self, mapper):
        with pytest.raises(MappingError, match="no id property"):
            mapper.set_id(Address(), 1)


class TestMapPackage:
    """Test mapping every class of a package."""

    @pytest.fixture
    def package(self, tmp_path, monkeypatch):
        root = tmp_path / "hr_models_pkg"
        sub = root / "archive"
        sub.mkdir(parents=True)
        header = (
            "from typing import Optional\n"
            "from docmap import entity, embedded, id_field\n\n"
        )
        (root / "__init__.py").write_text(
            header
            + "@entity\nclass Person:\n    id: Optional[int] = id_field()\n\n"
            + "@embedded\nclass Phone:\n    number: str = ''\n\n"
            + "class NotMapped:\n    pass\n"
        )
        (sub / "__init__.py").write_text(
            header + "@entity\nclass OldPerson:\n    id: Optional[int] = id_field()\n"
        )
        monkeypatch.syspath_prepend(str(tmp_path))
        return "hr_models_pkg"

    def test_top_level_only(self, mapper, package):
        models = mapper.map_package(package)

        assert sorted(m.type.__name__ for m in models) == ["Person", "Phone"]

    def test_sub_packages(self, package):
        mapper = Mapper(MapperOptions(map_sub_packages=True))

        models = mapper.map_package(package)

        assert sorted(m.type.__name__ for m in models) == ["OldPerson", "Person", "Phone"]

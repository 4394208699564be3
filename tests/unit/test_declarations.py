"""
Unit tests for field extraction and class discovery.
"""

from dataclasses import dataclass
from typing import Annotated, ClassVar, Optional
from uuid import UUID

import pytest

from entmapper.errors import MappingTypeError, StructuralError
from entmapper.schema.annotations import Column, PartitionKey, Transient, entity, udt
from entmapper.schema.declarations import discover, extract_fields
from entmapper.schema.types import TypeRef
from tests.models.shop import Address, Customer, Order, Product


@entity
@dataclass
class Base:
    id: Annotated[UUID, PartitionKey()]
    version: ClassVar[int] = 1


@entity
@dataclass
class Derived(Base):
    name: str = ""
    _cache: Optional[dict] = None
    scratch: Annotated[str, Transient()] = ""


@entity
@dataclass
class Mixed:
    id: Annotated[UUID, PartitionKey()]
    choice: "int | str"


@udt
@dataclass
class Tag:
    label: Annotated[str, Column("name")]


@dataclass
class Pending:
    owner: "Nowhere"
    backups: "list[Nowhere]"


@dataclass
class Unparsable:
    broken: "list["


class TestExtractFields:

    def test_declaration_order(self):
        """Base class fields come first; skipped fields are dropped."""
        fields = extract_fields(Derived)

        assert [f.name for f in fields] == ["id", "name"]
        assert fields[0].owner is Derived
        assert fields[0].annotations.partition_key == PartitionKey()

    def test_string_annotations(self):
        """Postponed annotations are evaluated in the declaring module."""
        fields = {f.name: f for f in extract_fields(Order)}

        assert fields["customer"].declared_type == TypeRef(Customer)
        assert fields["product"].declared_type == TypeRef(Product)
        assert fields["shipping"].annotations.frozen

    def test_round_symbols(self):
        """Unknown names resolve through the round symbols."""
        fields = extract_fields(Tag, {"Tag": Tag})

        assert fields[0].annotations.column.name == "name"

    def test_bad_annotation_bound(self):
        with pytest.raises(MappingTypeError) as exc:
            extract_fields(Mixed)

        assert exc.value.field == "choice"

    def test_unknown_names_become_forward_references(self):
        fields = {f.name: f for f in extract_fields(Pending)}

        assert fields["owner"].declared_type == TypeRef(forward="Nowhere")
        assert fields["backups"].declared_type.origin is list
        assert fields["backups"].declared_type.args == (TypeRef(forward="Nowhere"),)

    def test_unparsable_annotation(self):
        with pytest.raises(MappingTypeError, match="Cannot evaluate annotations of 'Unparsable'") as exc:
            extract_fields(Unparsable)

        assert exc.value.entity.endswith(".Unparsable")


class TestDiscover:

    def test_module(self):
        discovery = discover(["tests.models.shop"])

        assert discovery.entities == [Customer, Order, Product]
        assert discovery.udts == [Address]

    def test_package_scan(self):
        """Packages are scanned recursively."""
        discovery = discover(["tests.models"])

        names = {cls.__name__ for cls in discovery.entities}
        assert {"Account", "Customer", "Order", "Product", "FloatAccount", "Invoice"} <= names

    def test_explicit_classes_deduplicated(self):
        discovery = discover(["tests.models.shop"], [Customer, Tag])

        assert discovery.entities == [Customer, Order, Product]
        assert discovery.udts == [Address, Tag]

    def test_symbols_first_seen(self):
        symbols = discover(classes=[Base, Derived]).symbols()

        assert symbols == {"Base": Base, "Derived": Derived}

    def test_no_entities(self):
        discovery = discover(["tests.models.empty"])

        assert discovery.entities == []

    def test_missing_module(self):
        with pytest.raises(StructuralError, match="Cannot import module 'tests.models.nowhere'") as exc:
            discover(["tests.models.nowhere"])

        assert exc.value.entity == "tests.models.nowhere"

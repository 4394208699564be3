"""
Unit tests for declared type references and the allowed type catalog.

Tests cover:
- TypeRef normalization (Optional, Annotated, typing aliases)
- Forward references
- Python expression rendering
- Catalog membership and CQL type names
"""

import typing
from dataclasses import dataclass
from typing import Annotated, Dict, List, Optional, Union
from uuid import UUID

import pytest

from entmapper.errors import MappingTypeError
from entmapper.schema.annotations import JSON, Counter, udt
from entmapper.schema.catalog import AllowedTypeCatalog
from entmapper.schema.types import Blob, Float32, Int8, Int16, Int32, TypeRef, Varint


@udt
@dataclass
class Point:
    lat: float
    lon: float


class TestTypeRef:
    """Tests for TypeRef.of."""

    def test_optional_collapses(self):
        """Optional[T] is T, marked optional."""
        ref = TypeRef.of(Optional[int])

        assert ref == TypeRef(int)
        assert ref.optional

    def test_pep604_optional(self):
        """int | None is Optional[int]."""
        assert TypeRef.of(int | None) == TypeRef(int)

    def test_union_rejected(self):
        """Unions of several types are not persistable."""
        with pytest.raises(MappingTypeError, match="not supported"):
            TypeRef.of(Union[int, str])

    def test_annotated_metadata(self):
        """Annotated metadata is kept beside the type."""
        ref = TypeRef.of(Annotated[list[str], JSON(), Counter()])

        assert ref == TypeRef.of(list[str])
        assert ref.metadata == (JSON(), Counter())

    def test_nested_metadata(self):
        """Metadata on type arguments stays on the argument."""
        ref = TypeRef.of(list[Annotated[str, JSON()]])

        assert ref.metadata == ()
        assert ref.args[0].metadata == (JSON(),)
        assert ref.has_nested_metadata()

    def test_typing_aliases(self):
        """typing.List/Dict collapse to builtin origins."""
        assert TypeRef.of(List[str]) == TypeRef.of(list[str])
        assert TypeRef.of(Dict[str, int]) == TypeRef.of(dict[str, int])

    def test_forward_reference(self):
        """Unknown names stay forward references."""
        ref = TypeRef.of(typing.ForwardRef("Later"))

        assert ref.is_forward
        assert ref.name == "Later"
        assert ref.origin is None

    def test_forward_reference_resolved(self):
        """Forward names resolve through the resolver."""
        ref = TypeRef.of("Point", {"Point": Point}.get)

        assert ref == TypeRef(Point)
        assert ref.is_udt

    def test_str(self):
        """TypeRefs render like annotations."""
        assert str(TypeRef.of(dict[str, list[int]])) == "dict[str, list[int]]"

    def test_python_expr(self):
        """Expressions collect the imports they need."""
        imports = set()

        expr = TypeRef.of(dict[str, list[UUID]]).python_expr(imports)

        assert expr == "dict[str, list[UUID]]"
        assert imports == {("uuid", "UUID")}

    def test_python_expr_local_class(self):
        """Classes defined in a function body cannot be imported."""

        class Local:
            pass

        with pytest.raises(MappingTypeError, match="inside a function"):
            TypeRef(Local).python_expr(set())


class TestAllowedTypeCatalog:
    """Tests for AllowedTypeCatalog."""

    @pytest.mark.parametrize(
        "annotation",
        [str, int, Int32, Int16, Int8, Varint, float, Float32, bool, UUID, Blob,
         list[str], set[int], frozenset[str], dict[str, list[int]], tuple[Int32, str], Point],
    )
    def test_allowed(self, annotation):
        """Scalars, composites of allowed types and UDTs are allowed."""
        assert AllowedTypeCatalog().is_allowed(TypeRef.of(annotation))

    @pytest.mark.parametrize(
        "annotation",
        [bytes, bytearray, object, list[bytes], tuple[int, ...], dict[str, object]],
    )
    def test_not_allowed(self, annotation):
        """Byte sequences and unknown types are not persisted types."""
        assert not AllowedTypeCatalog().is_allowed(TypeRef.of(annotation))

    def test_forward_not_allowed(self):
        """Unresolved references are not allowed."""
        assert not AllowedTypeCatalog().is_allowed(TypeRef(forward="Later"))

    def test_64bit_integer(self):
        """Only int is the 64-bit integer type."""
        catalog = AllowedTypeCatalog()

        assert catalog.is_64bit_integer(TypeRef(int))
        assert not catalog.is_64bit_integer(TypeRef(Int32))
        assert not catalog.is_64bit_integer(TypeRef(float))

    @pytest.mark.parametrize(
        "annotation,expected",
        [
            (str, "text"),
            (int, "bigint"),
            (Int32, "int"),
            (Float32, "float"),
            (float, "double"),
            (Blob, "blob"),
            (list[str], "list<text>"),
            (dict[str, list[int]], "map<text, frozen<list<bigint>>>"),
            (tuple[Int32, str], "frozen<tuple<int, text>>"),
            (list[Point], "list<frozen<point>>"),
        ],
    )
    def test_cql_type(self, annotation, expected):
        """CQL names of persisted types."""
        assert AllowedTypeCatalog().cql_type(TypeRef.of(annotation)) == expected

    def test_cql_type_flags(self):
        """Frozen and timeuuid rendering."""
        catalog = AllowedTypeCatalog()

        assert catalog.cql_type(TypeRef.of(list[str]), frozen=True) == "frozen<list<text>>"
        assert catalog.cql_type(TypeRef(UUID), time_uuid=True) == "timeuuid"
        assert catalog.cql_type(TypeRef(Point), udt_name=lambda cls: "geo") == "geo"

    def test_cql_type_rejects_unknown(self):
        """Rendering a type outside the catalog fails."""
        with pytest.raises(ValueError):
            AllowedTypeCatalog().cql_type(TypeRef(object))

"""
Unit tests for key ordinal validation.
"""

import pytest

from entmapper.compiler.keys import KeyColumnInfo, KeyKind, KeyOrderValidator
from entmapper.errors import StructuralError
from entmapper.schema.annotations import AnnotationSet
from entmapper.schema.declarations import FieldDescriptor
from entmapper.schema.types import TypeRef


class Sample:
    pass


def keys(*orders, kind=KeyKind.PARTITION):
    return [
        KeyColumnInfo(
            order,
            kind,
            FieldDescriptor(f"k{i}", Sample, TypeRef(str), AnnotationSet()),
        )
        for i, order in enumerate(orders)
    ]


class TestKeyOrderValidator:
    """Tests for KeyOrderValidator.validate."""

    def test_dense_orders(self):
        """Orders {0, 1, 2} validate."""
        result = KeyOrderValidator().validate("Sample", KeyKind.PARTITION, keys(0, 1, 2))

        assert [k.order for k in result] == [0, 1, 2]

    def test_sorted_by_order(self):
        """Keys are returned in declared position, not field order."""
        result = KeyOrderValidator().validate("Sample", KeyKind.CLUSTERING, keys(2, 0, 1))

        assert [k.name for k in result] == ["k1", "k2", "k0"]

    def test_empty(self):
        """No clustering columns is valid."""
        assert KeyOrderValidator().validate("Sample", KeyKind.CLUSTERING, []) == []

    def test_duplicate_with_matching_sum(self):
        """{0, 0, 2} is rejected although no ordinal is out of range."""
        with pytest.raises(StructuralError, match="Duplicate partition key order"):
            KeyOrderValidator().validate("Sample", KeyKind.PARTITION, keys(0, 0, 2))

    def test_duplicate(self):
        """{0, 1, 1} is rejected."""
        with pytest.raises(StructuralError, match=r"Duplicate clustering column order \[1\]"):
            KeyOrderValidator().validate("Sample", KeyKind.CLUSTERING, keys(0, 1, 1))

    def test_gap(self):
        """Orders must start at 0."""
        with pytest.raises(StructuralError, match=r"expected the orders 0..1"):
            KeyOrderValidator().validate("Sample", KeyKind.PARTITION, keys(1, 2))

    def test_negative(self):
        """Negative orders are out of range."""
        with pytest.raises(StructuralError, match="Invalid partition key order"):
            KeyOrderValidator().validate("Sample", KeyKind.PARTITION, keys(-1, 0))

    def test_error_bound_to_entity(self):
        """Errors carry the qualified entity name; the message uses the class name."""
        with pytest.raises(StructuralError) as exc:
            KeyOrderValidator().validate("app.models.Sample", KeyKind.PARTITION, keys(0, 0))

        assert exc.value.entity == "app.models.Sample"
        assert "in class 'Sample'" in exc.value.message

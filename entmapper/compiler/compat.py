"""
Annotation compatibility rules.

Two disjoint mutual-exclusion matrices are enforced per field:
- Structural axis: where the column lives (key, static, computed, counter)
- Encoding axis: how the value is transformed for storage

Each rule is one ForbiddenPair row in a table, never a nested
conditional, so every rule can be listed, documented and tested alone.

Invariants:
    - A violation names both annotations, the field and the owning class
    - Rules are symmetric: (a, b) forbids b with a as well
    - Static + Counter is legal (static counters exist in CQL)

How to change safely:
    - Add a row to STRUCTURAL_RULES or ENCODING_RULES
    - Add a matching case to tests/unit/test_compat.py
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Optional, Sequence, Tuple

from ..errors import ConfigurationError
from ..schema.annotations import AnnotationKind, AnnotationSet
from ..schema.declarations import FieldDescriptor

logger = logging.getLogger(__name__)

K = AnnotationKind


class Axis(Enum):
    """Which matrix a rule belongs to."""

    STRUCTURAL = "structural"
    ENCODING = "encoding"


@dataclass(frozen=True)
class ForbiddenPair:
    """Two annotations that cannot share a field.

    Attributes:
        first: One annotation kind
        second: The other annotation kind
        axis: Matrix the rule belongs to
    """

    first: AnnotationKind
    second: AnnotationKind
    axis: Axis

    def matches(self, kinds: FrozenSet[AnnotationKind]) -> bool:
        return self.first in kinds and self.second in kinds

    def message(self, field_name: str, class_name: str) -> str:
        return (
            f"Cannot have both {self.first.label} and {self.second.label} on the same field "
            f"'{field_name}' in class '{class_name}'"
        )


def _rules(axis: Axis, pairs: Sequence[Tuple[AnnotationKind, AnnotationKind]]) -> Tuple[ForbiddenPair, ...]:
    return tuple(ForbiddenPair(a, b, axis) for a, b in pairs)


STRUCTURAL_RULES = _rules(
    Axis.STRUCTURAL,
    [
        (K.PARTITION_KEY, K.STATIC),
        (K.PARTITION_KEY, K.CLUSTERING_COLUMN),
        (K.PARTITION_KEY, K.COMPUTED),
        (K.PARTITION_KEY, K.COUNTER),
        (K.CLUSTERING_COLUMN, K.STATIC),
        (K.CLUSTERING_COLUMN, K.COMPUTED),
        (K.CLUSTERING_COLUMN, K.COUNTER),
        (K.STATIC, K.COMPUTED),
        (K.COMPUTED, K.COUNTER),
    ],
)

ENCODING_RULES = _rules(
    Axis.ENCODING,
    [
        (K.JSON, K.CODEC),
        (K.ENUMERATED, K.CODEC),
        (K.ENUMERATED, K.JSON),
        (K.FROZEN, K.JSON),
        (K.FROZEN, K.ENUMERATED),
        (K.FROZEN, K.CODEC),
        (K.FROZEN, K.COMPUTED),
        (K.JSON, K.COMPUTED),
        (K.ENUMERATED, K.COMPUTED),
        (K.FROZEN, K.COUNTER),
        (K.JSON, K.COUNTER),
        (K.ENUMERATED, K.COUNTER),
        (K.FROZEN, K.TIME_UUID),
        (K.JSON, K.TIME_UUID),
        (K.ENUMERATED, K.TIME_UUID),
        (K.CODEC, K.TIME_UUID),
        (K.COMPUTED, K.TIME_UUID),
        (K.COUNTER, K.TIME_UUID),
    ],
)

FORBIDDEN_PAIRS = STRUCTURAL_RULES + ENCODING_RULES


class AnnotationCompatibilityValidator:
    """Checks a field's annotations against the forbidden-pair table.

    Example:
        >>> validator = AnnotationCompatibilityValidator()
        >>> validator.validate(field)  # raises ConfigurationError on conflict
    """

    def __init__(self, rules: Sequence[ForbiddenPair] = FORBIDDEN_PAIRS) -> None:
        self.rules = tuple(rules)

    def violations(self, annotations: AnnotationSet) -> List[ForbiddenPair]:
        """All rules the annotation set breaks, in table order."""
        kinds = annotations.kinds
        return [rule for rule in self.rules if rule.matches(kinds)]

    def validate(self, field: FieldDescriptor, annotations: Optional[AnnotationSet] = None) -> None:
        """Validate one field.

        Raises:
            ConfigurationError: On the first violated rule
        """
        annotations = annotations if annotations is not None else field.annotations
        broken = self.violations(annotations)
        if broken:
            rule = broken[0]
            raise ConfigurationError(
                rule.message(field.name, field.class_name),
                entity=field.owner_name,
                field=field.name,
                details={
                    "axis": rule.axis.value,
                    "annotations": [rule.first.value, rule.second.value],
                },
            )
        self.validate_frozen(field, annotations)

    @staticmethod
    def validate_frozen(field: FieldDescriptor, annotations: Optional[AnnotationSet] = None) -> None:
        """@Frozen is only allowed on collections, tuples and UDTs."""
        annotations = annotations if annotations is not None else field.annotations
        if annotations.frozen and not field.declared_type.is_composite:
            raise ConfigurationError(
                f"@Frozen on field '{field.name}' of class '{field.class_name}' is only "
                "allowed for collections, tuples and UDTs",
                entity=field.owner_name,
                field=field.name,
            )

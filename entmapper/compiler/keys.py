"""
Key ordinal validation.

Partition key and clustering column ordinals are 0-based. Within one key
kind the declared ordinals must be exactly {0, 1, ..., n-1}: no
duplicates, no gaps, nothing out of range. Comparing sums is not enough
({0, 0, 2} would need to be rejected by position, not by total).
"""

from __future__ import annotations

from collections import Counter as Tally
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence

from ..errors import StructuralError
from ..schema.declarations import FieldDescriptor


class KeyKind(Enum):
    PARTITION = "partition key"
    CLUSTERING = "clustering column"


@dataclass(frozen=True)
class KeyColumnInfo:
    """One key column and its declared position."""

    order: int
    kind: KeyKind
    field: FieldDescriptor
    asc: bool = True

    @property
    def name(self) -> str:
        return self.field.name


class KeyOrderValidator:
    """Checks that the ordinals of one key kind are a dense permutation."""

    def validate(
        self, entity_name: str, kind: KeyKind, keys: Sequence[KeyColumnInfo]
    ) -> List[KeyColumnInfo]:
        """Validate ordinals and return the keys sorted by position.

        Args:
            entity_name: Qualified name of the entity, used for the error binding
            kind: Partition or clustering
            keys: Key columns in declaration order

        Raises:
            StructuralError: On duplicate or out-of-range ordinals
        """
        size = len(keys)
        class_name = entity_name.rsplit(".", 1)[-1]
        tally = Tally(key.order for key in keys)

        duplicates = sorted(order for order, count in tally.items() if count > 1)
        if duplicates:
            names = ", ".join(k.name for k in keys if k.order in duplicates)
            raise StructuralError(
                f"Duplicate {kind.value} order {duplicates} in class '{class_name}' "
                f"(fields: {names}); orders must be unique and 0-based",
                entity=entity_name,
                details={"orders": sorted(tally)},
            )

        out_of_range = sorted(order for order in tally if not 0 <= order < size)
        if out_of_range:
            raise StructuralError(
                f"Invalid {kind.value} order {out_of_range} in class '{class_name}'; "
                f"expected the orders 0..{size - 1}",
                entity=entity_name,
                details={"orders": sorted(tally)},
            )

        return sorted(keys, key=lambda key: key.order)

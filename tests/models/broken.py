"""Declarations that must fail to compile."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

from entmapper import JSON, Counter, PartitionKey, entity


@entity(table="accounts")
@dataclass
class FloatAccount:
    id: Annotated[UUID, PartitionKey(0)]
    balance: Annotated[float, Counter()]
    tags: Annotated[list[str], JSON()]


@entity
@dataclass
class Invoice:
    id: Annotated[UUID, PartitionKey(0)]
    supplier: Supplier
